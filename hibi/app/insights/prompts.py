# ruff: noqa: RUF001
"""Prompt assembly for weekly and monthly reviews.

Both prompts are plain concatenations of fixed sections in a fixed order, so the
same inputs always produce the same text. Nothing here trims the result; the
only length guard is applied to outbound text.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from ..core.vocabulary import DEFAULT_PROFILE, WEEKDAY_LABELS
from ..schemas.diary import LogEntry
from ..schemas.state import ReviewHistoryEntry
from .aggregate import AggregateStats
from .history import latest_review_date

WEEKLY_PREAMBLE = """あなたはユーザーの成長を見守る「信頼できるメンター」です。
厳しさと優しさを兼ね備え、ユーザーが「また来週も頑張ろう」と思える週次レビューを作成してください。
ユーザー情報は文脈の理解にのみ使い、そのまま引用しないでください。

【📝 出力ルール】
- 全体で400〜600文字程度（チャットで読みやすい長さ）
- Markdown記法（**太字**など）は使用禁止
- 見出しは【 】と絵文字で表現
- ポジティブ7割、改善提案3割のバランスで

【📊 レビュー構成】
1. 💪 今週のハイライト
   - 最も印象的だった出来事や成長を1〜2個ピックアップ
   - 「できた事実」を具体的に言語化して自己効力感を高める

2. 🔋 心身のバランスチェック
   - 気分の推移パターンを読み取る（上昇傾向？波がある？）
   - 活動量とリカバリーのバランスについて一言

3. 🎯 来週へのワンポイント
   - 今週の傾向から、来週試してほしい「小さな実験」を1つだけ提案
   - 抽象的なアドバイスではなく、すぐ実行できる具体的なアクションで"""

MONTHLY_PREAMBLE = """あなたはユーザーの成長を長期的に見守る「信頼できるメンター」です。
1か月分の週次レビューと日記の記録から、月次レビューを作成してください。
週次レビューを最も重要な根拠とし、日記のタイトル・気分・タグは補足として扱ってください。
ユーザー情報は文脈の理解にのみ使い、そのまま引用しないでください。

【📝 出力ルール】
- 全体で600〜900文字程度
- Markdown記法（**太字**など）は使用禁止
- 見出しは【 】と絵文字で表現

【📊 レビュー構成】
1. 🌱 今月の成長と変化
2. 📈 習慣と気分の傾向
3. 🧭 来月のテーマ（具体的な行動を1〜2個）"""

WEEKLY_EXAMPLES = """【✍️ 出力例】
【💪 今週のハイライト】
研究の実験を3日連続で進められたのは大きな前進です。続けた事実そのものが力になっています。

【🔋 心身のバランスチェック】
週の後半に😰が続きました。活動量が増えた分、休息の時間が少し足りなかったようです。

【🎯 来週へのワンポイント】
寝る前の10分だけスマホを置いて、翌日のやることを1行書き出してみましょう。"""


def render_profile(profile: str | None) -> str:
    return f"【👤 ユーザー情報】\n{(profile or '').strip() or DEFAULT_PROFILE}"


def render_stats(stats: AggregateStats, period_days: int) -> str:
    moods = ", ".join(f"{mood}×{count}" for mood, count in stats.moods) or "なし"
    tags = ", ".join(f"{tag}×{count}" for tag, count in stats.tags) or "なし"
    weekdays = " ".join(
        f"{WEEKDAY_LABELS[index]}{stats.weekdays.get(index, 0)}" for index in range(7)
    )
    return (
        "【📊 統計】\n"
        f"記録件数: {stats.entry_count}件\n"
        f"記録日数: {stats.unique_days}/{period_days}日"
        f"（記録率 {stats.record_rate(period_days)}%）\n"
        f"気分: {moods}\n"
        f"タグ: {tags}\n"
        f"曜日: {weekdays}"
    )


def render_entry_block(entry: LogEntry) -> str:
    tags = ",".join(entry.tags) or "なし"
    header = f"[{entry.day_key}] 気分:{entry.mood} タグ:{tags} タイトル:{entry.title}"
    body = (entry.body or "").strip()
    return f"{header}\n{body}" if body else header


def _entry_section(heading: str, entries: Sequence[LogEntry]) -> str:
    blocks = [render_entry_block(entry) for entry in entries]
    return heading + "\n" + ("\n\n".join(blocks) if blocks else "（記録なし）")


def compose_weekly_prompt(
    profile: str | None,
    prior_review: str | None,
    stats: AggregateStats,
    entries: Sequence[LogEntry],
    *,
    period_days: int = 7,
) -> str:
    sections = [WEEKLY_PREAMBLE, render_profile(profile)]
    if prior_review and prior_review.strip():
        sections.append(
            "【🔁 前回の週次レビュー（継続性のための参考）】\n" + prior_review.strip()
        )
    sections.append(render_stats(stats, period_days))
    sections.append(WEEKLY_EXAMPLES)
    sections.append(_entry_section("【日記ログ】", entries))
    return "\n\n".join(sections)


def compose_monthly_prompt(
    profile: str | None,
    weekly_history: Sequence[ReviewHistoryEntry],
    prior_monthly: str | None,
    stats: AggregateStats,
    metadata_entries: Sequence[LogEntry],
    year_month_label: str,
    supplemental_entries: Sequence[LogEntry],
    *,
    period_days: int,
) -> str:
    sections = [
        MONTHLY_PREAMBLE,
        f"【🗓 対象月】{year_month_label}",
        render_profile(profile),
    ]
    if prior_monthly and prior_monthly.strip():
        sections.append(
            "【🔁 前回の月次レビュー（継続性のための参考）】\n" + prior_monthly.strip()
        )
    if weekly_history:
        reviews = "\n\n".join(f"◆ {item.date}\n{item.text}" for item in weekly_history)
        sections.append("【📚 今月の週次レビュー】\n" + reviews)
    sections.append(render_stats(stats, period_days))
    # Bodies are dropped here; only the supplemental block carries full text.
    sections.append(
        _entry_section(
            "【日記ログ（タイトル・気分・タグ）】",
            [entry.model_copy(update={"body": None}) for entry in metadata_entries],
        )
    )
    if supplemental_entries:
        sections.append(
            _entry_section(
                "【週次レビュー以降の日記（本文あり）】",
                supplemental_entries,
            )
        )
    return "\n\n".join(sections)


def select_supplemental_entries(
    entries: Sequence[LogEntry],
    history: Sequence[ReviewHistoryEntry],
    month_end: date,
) -> list[LogEntry]:
    """Entries dated after the newest weekly review, up to ``month_end``.

    Empty when no weekly review exists, since then nothing was summarised yet
    and the metadata block already covers the month.
    """

    latest = latest_review_date(history)
    if latest is None:
        return []
    return [entry for entry in entries if latest < entry.day <= month_end]


__all__ = [
    "MONTHLY_PREAMBLE",
    "WEEKLY_EXAMPLES",
    "WEEKLY_PREAMBLE",
    "compose_monthly_prompt",
    "compose_weekly_prompt",
    "render_entry_block",
    "render_stats",
    "select_supplemental_entries",
]
