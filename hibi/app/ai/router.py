from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from ..metrics import AI_REQUESTS
from .analysis import EntryAnalysis, build_analysis_prompt, parse_analysis
from .fallback import attempt_with_fallbacks
from .openai_client import OpenAIClient

logger = logging.getLogger(__name__)


@dataclass
class AIResponse:
    text: str
    model: str


@dataclass
class AnalysisResult:
    analysis: EntryAnalysis
    model: str


class AIRouter:
    """Runs analysis and review prompts across the ordered model candidates."""

    def __init__(
        self,
        *,
        client: OpenAIClient,
        models: Sequence[str],
        max_tokens_analysis: int = 300,
        max_tokens_review: int = 1500,
    ) -> None:
        self._client = client
        self._models = list(models)
        self._max_tokens_analysis = max_tokens_analysis
        self._max_tokens_review = max_tokens_review

    @property
    def models(self) -> list[str]:
        return list(self._models)

    async def analyze(
        self,
        text: str,
        *,
        image: bytes | None = None,
        image_mime: str = "image/jpeg",
    ) -> AnalysisResult:
        """Title, mood and tags for a diary message; raises ``FallbackExhausted``."""

        prompt = build_analysis_prompt(text, with_image=image is not None)

        async def _attempt(model: str) -> EntryAnalysis:
            completion = await self._client.complete(
                model=model,
                prompt=prompt,
                max_tokens=self._max_tokens_analysis,
                json_mode=True,
                image=image,
                image_mime=image_mime,
            )
            analysis = parse_analysis(completion.text)
            AI_REQUESTS.labels(kind="analysis", model=model, result="ok").inc()
            return analysis

        model, analysis = await attempt_with_fallbacks(
            self._models,
            _attempt,
            on_failure=self._failure_hook("analysis"),
        )
        logger.info("entry analysed", extra={"kind": "analysis", "model": model})
        return AnalysisResult(analysis=analysis, model=model)

    async def write(self, kind: str, prompt: str) -> AIResponse:
        """Free-text generation for reviews; raises ``FallbackExhausted``."""

        async def _attempt(model: str) -> str:
            completion = await self._client.complete(
                model=model,
                prompt=prompt,
                max_tokens=self._max_tokens_review,
            )
            AI_REQUESTS.labels(kind=kind, model=model, result="ok").inc()
            return completion.text

        model, text = await attempt_with_fallbacks(
            self._models,
            _attempt,
            on_failure=self._failure_hook(kind),
        )
        logger.info("review written", extra={"kind": kind, "model": model})
        return AIResponse(text=text, model=model)

    @staticmethod
    def _failure_hook(kind: str):
        def _record(model: str, exc: Exception) -> None:
            AI_REQUESTS.labels(kind=kind, model=model, result="error").inc()

        return _record


__all__ = ["AIResponse", "AIRouter", "AnalysisResult"]
