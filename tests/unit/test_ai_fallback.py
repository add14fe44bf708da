from __future__ import annotations

import pytest

from hibi.app.ai.fallback import FallbackExhausted, attempt_with_fallbacks


@pytest.mark.anyio
async def test_first_successful_candidate_wins() -> None:
    tried: list[str] = []

    async def attempt(model: str) -> str:
        tried.append(model)
        if model == "a":
            raise RuntimeError("quota")
        return f"ok:{model}"

    model, result = await attempt_with_fallbacks(["a", "b", "c"], attempt)

    assert (model, result) == ("b", "ok:b")
    assert tried == ["a", "b"]


@pytest.mark.anyio
async def test_all_failures_are_collected_in_order() -> None:
    failures: list[str] = []

    async def attempt(model: str) -> str:
        raise RuntimeError(f"{model} down")

    with pytest.raises(FallbackExhausted) as excinfo:
        await attempt_with_fallbacks(
            ["a", "b"],
            attempt,
            on_failure=lambda model, exc: failures.append(model),
        )

    assert excinfo.value.errors == [("a", "a down"), ("b", "b down")]
    assert excinfo.value.describe() == "[a] a down\n[b] b down"
    assert failures == ["a", "b"]


@pytest.mark.anyio
async def test_no_candidates_is_exhausted() -> None:
    async def attempt(model: str) -> str:  # pragma: no cover - never called
        return model

    with pytest.raises(FallbackExhausted) as excinfo:
        await attempt_with_fallbacks([], attempt)

    assert excinfo.value.errors == []
