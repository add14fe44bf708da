"""Entry analysis and review writing over ordered model candidates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

__all__ = [
    "AIResponse",
    "AIRouter",
    "AnalysisError",
    "EntryAnalysis",
    "FallbackExhausted",
    "OpenAIClient",
    "attempt_with_fallbacks",
]


if TYPE_CHECKING:  # pragma: no cover - import-time helpers for type checkers only
    from .analysis import AnalysisError, EntryAnalysis
    from .fallback import FallbackExhausted, attempt_with_fallbacks
    from .openai_client import OpenAIClient
    from .router import AIResponse, AIRouter


def __getattr__(name: str) -> Any:  # pragma: no cover - thin import shim
    if name in {"AnalysisError", "EntryAnalysis"}:
        from . import analysis

        return getattr(analysis, name)
    if name in {"FallbackExhausted", "attempt_with_fallbacks"}:
        from . import fallback

        return getattr(fallback, name)
    if name == "OpenAIClient":
        from .openai_client import OpenAIClient as attr

        return attr
    if name in {"AIResponse", "AIRouter"}:
        from .router import AIResponse, AIRouter

        return {"AIResponse": AIResponse, "AIRouter": AIRouter}[name]
    raise AttributeError(name)


def __dir__() -> list[str]:  # pragma: no cover - module introspection helper
    return sorted(__all__)
