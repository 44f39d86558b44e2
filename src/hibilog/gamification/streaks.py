"""Daily posting streaks.

A streak is a run of consecutive calendar days with at least one memory.
Streaks are never stored; they are recomputed from ``memory_date`` values
on every read. "Today" is always taken in the configured reference
timezone so that clients in different zones agree.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class StreakState:
    current_streak: int = 0
    longest_streak: int = 0


def today_in(tz: str | ZoneInfo, now: datetime | None = None) -> date:
    """Calendar date of ``now`` (default: current time) in ``tz``."""
    zone = ZoneInfo(tz) if isinstance(tz, str) else tz
    if now is None:
        now = datetime.now(timezone.utc)
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    return now.astimezone(zone).date()


def _longest_run(days: list[date]) -> int:
    longest = run = 1
    for prev, cur in zip(days, days[1:]):
        if cur - prev == ONE_DAY:
            run += 1
            longest = max(longest, run)
        else:
            run = 1
    return longest


def _current_run(days: list[date], today: date) -> int:
    if today - days[-1] > ONE_DAY:
        return 0
    run = 1
    for i in range(len(days) - 1, 0, -1):
        if days[i] - days[i - 1] != ONE_DAY:
            break
        run += 1
    return run


def calculate_streaks(dates: Iterable[date], today: date) -> StreakState:
    """Compute current and longest streaks from activity dates.

    Duplicates count once. The current streak is zero unless the latest
    date is ``today`` or the day before. Dates after ``today`` are
    rejected.
    """
    days = sorted(set(dates))
    if not days:
        return StreakState()
    if days[-1] > today:
        raise ValueError(f"activity date {days[-1]} is after today ({today})")

    current = _current_run(days, today)
    longest = _longest_run(days)
    return StreakState(current_streak=current, longest_streak=max(longest, current))
