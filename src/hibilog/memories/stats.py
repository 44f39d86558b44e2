"""Statistics page aggregates over a user's memories."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Protocol

from hibilog.gamification.streaks import calculate_streaks

UNKNOWN_MOOD = "unknown"
MONTHS_SHOWN = 12

# Sunday first, as the calendar UI lays out weeks
WEEKDAY_LABELS = ("日", "月", "火", "水", "木", "金", "土")


class _Dated(Protocol):
    memory_date: date
    mood_category: str | None


@dataclass(frozen=True)
class MonthCount:
    month: str  # YYYY-MM
    count: int


@dataclass(frozen=True)
class WeekdayCount:
    day: str
    count: int


@dataclass(frozen=True)
class MemoryStats:
    total_memories: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    days_since_start: int = 0
    mood_distribution: dict[str, int] = field(default_factory=dict)
    monthly_data: list[MonthCount] = field(default_factory=list)
    weekday_data: list[WeekdayCount] = field(default_factory=list)


def _month_keys(today: date, count: int) -> list[str]:
    keys = []
    year, month = today.year, today.month
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return keys[::-1]


def _weekday_index(d: date) -> int:
    # date.weekday() is Monday=0; shift to Sunday=0
    return (d.weekday() + 1) % 7


def calculate_stats(memories: Sequence[_Dated], today: date) -> MemoryStats:
    """Aggregate totals, streaks, mood mix, last 12 months and weekday counts."""
    weekday_counts = [0] * 7
    months = _month_keys(today, MONTHS_SHOWN)
    monthly = dict.fromkeys(months, 0)

    if not memories:
        return MemoryStats(
            monthly_data=[MonthCount(m, 0) for m in months],
            weekday_data=[WeekdayCount(label, 0) for label in WEEKDAY_LABELS],
        )

    dates = [m.memory_date for m in memories]
    streaks = calculate_streaks(dates, today)
    moods = Counter(m.mood_category or UNKNOWN_MOOD for m in memories)

    for d in dates:
        weekday_counts[_weekday_index(d)] += 1
        key = f"{d.year:04d}-{d.month:02d}"
        if key in monthly:
            monthly[key] += 1

    return MemoryStats(
        total_memories=len(memories),
        current_streak=streaks.current_streak,
        longest_streak=streaks.longest_streak,
        days_since_start=(today - min(dates)).days,
        mood_distribution=dict(moods),
        monthly_data=[MonthCount(m, monthly[m]) for m in months],
        weekday_data=[WeekdayCount(label, n) for label, n in zip(WEEKDAY_LABELS, weekday_counts)],
    )
