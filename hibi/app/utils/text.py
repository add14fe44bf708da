from __future__ import annotations

TRUNCATION_MARKER = "\n…(以下省略)"


def push_safe_truncate(text: str, limit: int, *, marker: str = TRUNCATION_MARKER) -> str:
    """Fit ``text`` into ``limit`` characters, ending with ``marker`` when cut."""

    if len(text) <= limit:
        return text
    if limit < len(marker):
        raise ValueError(f"limit {limit} leaves no room for the truncation marker")
    return text[: limit - len(marker)] + marker


def clip(text: str, limit: int) -> str:
    """Single-line preview used in command listings."""

    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    return flat[: max(limit - 1, 0)] + "…"
