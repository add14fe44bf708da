"""Streak tracking, aggregation and review prompt composition."""

from .aggregate import AggregateStats, aggregate
from .history import (
    ReviewStateRepository,
    append_review_to_history,
    filter_history_by_month,
)
from .prompts import (
    compose_monthly_prompt,
    compose_weekly_prompt,
    select_supplemental_entries,
)
from .streak import StreakEngine, StreakSnapshot

__all__ = [
    "AggregateStats",
    "ReviewStateRepository",
    "StreakEngine",
    "StreakSnapshot",
    "aggregate",
    "append_review_to_history",
    "compose_monthly_prompt",
    "compose_weekly_prompt",
    "filter_history_by_month",
    "select_supplemental_entries",
]
