# ruff: noqa: RUF001
from __future__ import annotations

import json
import re

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..core.vocabulary import CATCH_ALL_TAG, MOODS, TAGS

_JSON_RE = re.compile(r"\{[\s\S]*\}")


class AnalysisError(ValueError):
    """The model reply did not contain a usable title/mood/tags object."""


class EntryAnalysis(BaseModel):
    title: str = Field(min_length=1)
    mood: str
    tags: tuple[str, ...] = ()

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("mood")
    @classmethod
    def _known_mood(cls, value: str) -> str:
        if value not in MOODS:
            raise ValueError(f"unknown mood {value!r}")
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _known_tags(cls, value: object) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list | tuple):
            raise ValueError("tags must be a list")
        tags = tuple(dict.fromkeys(tag for tag in value if tag in TAGS))
        specific = tuple(tag for tag in tags if tag != CATCH_ALL_TAG)
        return specific or tags


def build_analysis_prompt(text: str, *, with_image: bool = False) -> str:
    if with_image:
        instruction = f"添付画像を分析し、日記のタイトル(20文字以内)を付けてください。入力: {text}"
    else:
        instruction = f"テキストを分析しJSONを返してください。タイトルは20文字以内。入力: {text}"
    tags = '","'.join(TAGS)
    return (
        f"{instruction}\n\n"
        f'出力JSON形式: {{ "title": "...", "mood": "{"/".join(MOODS)}", "tags": ["{tags}"] }}\n'
        f"moodは1つだけ選び、tagsは該当するものをすべて選んでください。"
        f"「{CATCH_ALL_TAG}」は他のタグと併用しないでください。"
    )


def parse_analysis(raw: str) -> EntryAnalysis:
    """Extract and validate the JSON object in a model reply."""

    match = _JSON_RE.search(raw or "")
    if not match:
        raise AnalysisError("JSON not found")
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise AnalysisError(f"invalid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise AnalysisError("JSON root is not an object")
    try:
        return EntryAnalysis.model_validate(payload)
    except ValidationError as exc:
        fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err["loc"])
        raise AnalysisError(f"invalid analysis fields: {fields or 'unknown'}") from exc


__all__ = ["AnalysisError", "EntryAnalysis", "build_analysis_prompt", "parse_analysis"]
