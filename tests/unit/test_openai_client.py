from __future__ import annotations

from types import SimpleNamespace

import pytest

from hibi.app.ai.openai_client import AIUnavailable, OpenAIClient


class _FakeCompletions:
    def __init__(self, content: str | None = "Result") -> None:
        self.content = content
        self.kwargs: dict = {}

    async def create(self, **kwargs):
        self.kwargs = kwargs
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))],
            usage=SimpleNamespace(prompt_tokens=12, completion_tokens=18),
        )


def _client_with(completions: _FakeCompletions) -> OpenAIClient:
    client = OpenAIClient(api_key="fake")
    client._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))  # type: ignore[assignment]
    return client


@pytest.mark.anyio
async def test_openai_client_without_key_raises() -> None:
    client = OpenAIClient(api_key=None)

    assert client.available is False
    with pytest.raises(AIUnavailable):
        await client.complete(model="gpt-4o-mini", prompt="hi", max_tokens=10)


@pytest.mark.anyio
async def test_openai_client_stubbed() -> None:
    completions = _FakeCompletions("  Result  ")
    client = _client_with(completions)

    completion = await client.complete(model="gpt-4o-mini", prompt="Need help", max_tokens=60)

    assert completion.text == "Result"
    assert completion.tokens_in == 12 and completion.tokens_out == 18
    assert completions.kwargs["model"] == "gpt-4o-mini"
    assert "response_format" not in completions.kwargs


@pytest.mark.anyio
async def test_openai_client_json_mode_and_inline_image() -> None:
    completions = _FakeCompletions('{"title": "x"}')
    client = _client_with(completions)

    await client.complete(
        model="gpt-4o-mini",
        prompt="analyse",
        max_tokens=60,
        json_mode=True,
        image=b"\xff\xd8jpeg",
    )

    assert completions.kwargs["response_format"] == {"type": "json_object"}
    content = completions.kwargs["messages"][1]["content"]
    assert content[0] == {"type": "text", "text": "analyse"}
    assert content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")


@pytest.mark.anyio
async def test_openai_client_empty_reply_is_an_error() -> None:
    client = _client_with(_FakeCompletions(None))

    with pytest.raises(ValueError):
        await client.complete(model="gpt-4o-mini", prompt="hi", max_tokens=10)
