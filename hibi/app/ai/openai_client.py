from __future__ import annotations

import base64
from dataclasses import dataclass

from openai import AsyncOpenAI

from ..metrics import AI_TOKENS

SYSTEM_PROMPT = "あなたは日記アプリのアシスタントです。指示に忠実に、日本語で答えてください。"


class AIUnavailable(RuntimeError):
    """No API key is configured."""


@dataclass
class Completion:
    text: str
    tokens_in: int
    tokens_out: int


class OpenAIClient:
    """Thin wrapper above the OpenAI async SDK."""

    def __init__(self, api_key: str | None, *, timeout: float = 30.0) -> None:
        self._api_key = api_key
        self._client = AsyncOpenAI(api_key=api_key, timeout=timeout) if api_key else None

    @property
    def available(self) -> bool:
        return self._client is not None

    async def complete(
        self,
        *,
        model: str,
        prompt: str,
        max_tokens: int,
        json_mode: bool = False,
        image: bytes | None = None,
        image_mime: str = "image/jpeg",
    ) -> Completion:
        if self._client is None:
            raise AIUnavailable("OPENAI_API_KEY is not configured")

        if image is not None:
            encoded = base64.b64encode(image).decode("ascii")
            content: str | list[dict] = [
                {"type": "text", "text": prompt},
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{image_mime};base64,{encoded}"},
                },
            ]
        else:
            content = prompt

        kwargs: dict = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        completion = await self._client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": content},
            ],
            max_tokens=max_tokens,
            **kwargs,
        )
        message = completion.choices[0].message.content or ""
        usage = completion.usage
        tokens_in = usage.prompt_tokens if usage else 0
        tokens_out = usage.completion_tokens if usage else 0
        AI_TOKENS.labels(direction="in").inc(tokens_in)
        AI_TOKENS.labels(direction="out").inc(tokens_out)
        if not message.strip():
            raise ValueError("empty completion")
        return Completion(text=message.strip(), tokens_in=tokens_in, tokens_out=tokens_out)


__all__ = ["AIUnavailable", "Completion", "OpenAIClient"]
