from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..schemas.diary import LogEntry


@dataclass(frozen=True)
class AggregateStats:
    """Counts derived from a batch of entries.

    ``moods`` and ``tags`` are ranked by descending count; equal counts keep the
    order in which the value was first seen. ``weekdays`` maps Monday=0..Sunday=6.
    """

    entry_count: int = 0
    moods: list[tuple[str, int]] = field(default_factory=list)
    tags: list[tuple[str, int]] = field(default_factory=list)
    weekdays: dict[int, int] = field(default_factory=lambda: dict.fromkeys(range(7), 0))
    unique_days: int = 0

    @property
    def mood_counts(self) -> dict[str, int]:
        return dict(self.moods)

    @property
    def tag_counts(self) -> dict[str, int]:
        return dict(self.tags)

    def top_tags(self, limit: int = 5) -> list[tuple[str, int]]:
        return self.tags[:limit]

    def record_rate(self, period_days: int) -> float:
        if period_days <= 0:
            return 0.0
        return round(self.unique_days / period_days * 100, 1)


def aggregate(entries: Iterable[LogEntry]) -> AggregateStats:
    moods: Counter[str] = Counter()
    tags: Counter[str] = Counter()
    weekdays = dict.fromkeys(range(7), 0)
    days: set[str] = set()
    count = 0

    for entry in entries:
        count += 1
        moods[entry.mood] += 1
        # Tags are counted independently; an entry may carry several.
        tags.update(dict.fromkeys(entry.tags, 1))
        weekdays[entry.day.weekday()] += 1
        days.add(entry.day_key)

    # Counter.most_common sorts stably, so ties keep first-seen order.
    return AggregateStats(
        entry_count=count,
        moods=moods.most_common(),
        tags=tags.most_common(),
        weekdays=weekdays,
        unique_days=len(days),
    )


__all__ = ["AggregateStats", "aggregate"]
