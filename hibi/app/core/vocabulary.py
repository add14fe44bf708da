# ruff: noqa: RUF001
"""Fixed mood symbols and tag vocabulary shared by the AI layer and reports."""

from __future__ import annotations

MOODS: tuple[str, ...] = ("🤩", "😊", "😐", "😰", "😡")
TAGS: tuple[str, ...] = ("研究", "筋トレ", "勉強", "趣味", "恋愛", "食事", "写真", "その他")

NEUTRAL_MOOD = "😐"
CATCH_ALL_TAG = "その他"

WEEKDAY_LABELS: tuple[str, ...] = ("月", "火", "水", "木", "金", "土", "日")

DEFAULT_PROFILE = "ユーザーは目標達成に向けて努力している人物です。"
