from __future__ import annotations

from datetime import date, datetime

import pytest
from conftest import TOKYO, MemoryKeyValueStore

from hibi.app.ai.analysis import EntryAnalysis
from hibi.app.ai.fallback import FallbackExhausted
from hibi.app.ai.router import AnalysisResult
from hibi.app.insights.history import ReviewStateRepository
from hibi.app.insights.streak import StreakEngine
from hibi.app.services.entries import (
    IMAGE_FALLBACK_TITLE,
    SYSTEM_ERROR_TITLE,
    TEXT_FALLBACK_TITLE,
    EntryRecorder,
    image_marker,
)
from hibi.app.services.logstore import LogStore


class FakeRouter:
    def __init__(self, analysis: EntryAnalysis | Exception) -> None:
        self.analysis = analysis
        self.calls: list[dict] = []

    async def analyze(self, text, *, image=None, image_mime="image/jpeg") -> AnalysisResult:
        self.calls.append({"text": text, "image": image, "image_mime": image_mime})
        if isinstance(self.analysis, Exception):
            raise self.analysis
        return AnalysisResult(analysis=self.analysis, model="model-a")


@pytest.fixture()
def log_store(session_factory) -> LogStore:
    return LogStore(session_factory, tz=TOKYO)


@pytest.fixture()
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


def _recorder(log_store, kv, router) -> EntryRecorder:
    streak = StreakEngine(ReviewStateRepository(kv), log_store)
    return EntryRecorder(log_store=log_store, streak=streak, router=router)


@pytest.mark.anyio
async def test_text_entry_is_enriched_and_counted(log_store, kv) -> None:
    router = FakeRouter(EntryAnalysis(title="実験成功", mood="🤩", tags=("研究",)))
    received = datetime(2025, 6, 8, 22, tzinfo=TOKYO)

    result = await _recorder(log_store, kv, router).record_text("ついに成功した", received_at=received)

    assert result.analysed is True
    assert result.entry.title == "実験成功"
    assert result.entry.body == "ついに成功した"
    assert result.streak is not None and result.streak.count == 1
    assert kv.data["streak_last_date"] == "2025-06-08"
    assert result.acknowledgement() == "✅ 記録しました: 実験成功 🤩 #研究\n🔥 1日連続記録中"


@pytest.mark.anyio
async def test_second_entry_same_day_keeps_streak(log_store, kv) -> None:
    router = FakeRouter(EntryAnalysis(title="日記", mood="😊", tags=()))
    recorder = _recorder(log_store, kv, router)
    await recorder.record_text("朝", received_at=datetime(2025, 6, 7, 8, tzinfo=TOKYO))
    await recorder.record_text("昼", received_at=datetime(2025, 6, 8, 12, tzinfo=TOKYO))

    result = await recorder.record_text("夜", received_at=datetime(2025, 6, 8, 22, tzinfo=TOKYO))

    assert result.streak is not None
    assert result.streak.count == 2
    assert result.streak.total_days == 2


@pytest.mark.anyio
async def test_analysis_failure_stores_raw_text(log_store, kv) -> None:
    router = FakeRouter(FallbackExhausted([("a", "quota"), ("b", "timeout")]))

    result = await _recorder(log_store, kv, router).record_text(
        "原文のまま", received_at=datetime(2025, 6, 8, 9, tzinfo=TOKYO)
    )

    assert result.analysed is False
    assert result.entry.title == TEXT_FALLBACK_TITLE
    assert result.entry.mood == "😐"
    assert result.entry.tags == ("その他",)
    assert "[a] quota\n[b] timeout" in result.entry.body
    assert result.entry.body.endswith("【原文】\n原文のまま")
    assert "原文のまま保存しました" in result.acknowledgement()
    stored = await log_store.query_by_exact_date(date(2025, 6, 8), with_body=True)
    assert [entry.id for entry in stored] == [result.entry.id]


@pytest.mark.anyio
async def test_image_entry_passes_bytes_and_keeps_reference(log_store, kv) -> None:
    router = FakeRouter(FallbackExhausted([("a", "vision unsupported")]))
    marker = image_marker("photo.jpg", "夕焼け")

    result = await _recorder(log_store, kv, router).record_image(
        b"\xff\xd8",
        description=marker,
        image_ref="file-123",
        received_at=datetime(2025, 6, 8, 18, tzinfo=TOKYO),
    )

    assert router.calls[0]["image"] == b"\xff\xd8"
    assert router.calls[0]["text"] == "📷 写真をアップロードしました\n(photo.jpg)\n夕焼け"
    assert result.entry.title == IMAGE_FALLBACK_TITLE
    assert result.entry.image_ref == "file-123"


@pytest.mark.anyio
async def test_system_error_is_recorded_without_touching_streak(log_store, kv) -> None:
    recorder = _recorder(log_store, kv, FakeRouter(RuntimeError("unused")))

    await recorder.record_system_error("Traceback: boom")

    stubs = await log_store.query_all_ids_and_dates()
    entry = await log_store.get_entry(stubs[0].id)
    assert entry is not None
    assert entry.title == SYSTEM_ERROR_TITLE
    assert entry.mood == "😰"
    assert entry.body == "Traceback: boom"
    assert kv.data == {}


@pytest.mark.anyio
async def test_system_error_storage_failure_is_swallowed(kv) -> None:
    class BrokenStore:
        async def add_entry(self, **kwargs):
            raise RuntimeError("database gone")

    recorder = EntryRecorder(
        log_store=BrokenStore(),
        streak=StreakEngine(ReviewStateRepository(kv), BrokenStore()),
        router=FakeRouter(RuntimeError("unused")),
    )

    await recorder.record_system_error("boom")
