from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FallbackExhausted(RuntimeError):
    """Every candidate failed. ``errors`` keeps ``(candidate, message)`` in try order."""

    def __init__(self, errors: Sequence[tuple[str, str]]) -> None:
        self.errors = list(errors)
        super().__init__(self.describe() or "no candidates configured")

    def describe(self) -> str:
        return "\n".join(f"[{name}] {message}" for name, message in self.errors)


async def attempt_with_fallbacks(
    candidates: Sequence[str],
    attempt: Callable[[str], Awaitable[T]],
    *,
    on_failure: Callable[[str, Exception], None] | None = None,
) -> tuple[str, T]:
    """Call ``attempt`` with each candidate in order and return the first success.

    Returns the winning candidate with its result. Raises ``FallbackExhausted``
    carrying every collected error when no candidate succeeds.
    """

    errors: list[tuple[str, str]] = []
    for candidate in candidates:
        try:
            return candidate, await attempt(candidate)
        except Exception as exc:
            errors.append((candidate, str(exc) or exc.__class__.__name__))
            logger.warning(
                "candidate failed",
                extra={"model": candidate, "error": str(exc)},
            )
            if on_failure is not None:
                on_failure(candidate, exc)
    raise FallbackExhausted(errors)


__all__ = ["FallbackExhausted", "attempt_with_fallbacks"]
