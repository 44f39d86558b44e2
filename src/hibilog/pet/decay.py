"""Baku hunger model: time decay, status tiers, and feed recovery.

Hunger starts at 100 when the pet is fed and loses 40 points per 24 hours
without food. Feeding is a jump, not a continuation of decay: it adds a
recovery amount to the current value and restarts the clock.

Nothing in this module performs I/O.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime

MAX_HUNGER = 100.0
MIN_HUNGER = 0.0

HUNGER_DECAY_PER_HOUR = 40 / 24

BASE_RECOVERY = 25.0
TEXT_BONUS = 5.0


class HungerStatus(str, enum.Enum):
    HEALTHY = "healthy"
    NORMAL = "normal"
    HUNGRY = "hungry"
    CRITICAL = "critical"


# (lower bound inclusive, status), checked top-down
STATUS_TIERS: tuple[tuple[float, HungerStatus], ...] = (
    (75.0, HungerStatus.HEALTHY),
    (50.0, HungerStatus.NORMAL),
    (25.0, HungerStatus.HUNGRY),
    (MIN_HUNGER, HungerStatus.CRITICAL),
)


@dataclass(frozen=True)
class FeedResult:
    hunger: float
    last_fed_at: datetime
    recovered: float


def _clamp(value: float) -> float:
    return max(MIN_HUNGER, min(MAX_HUNGER, value))


def hours_between(start: datetime, end: datetime) -> float:
    """Elapsed hours from ``start`` to ``end``; negative if ``end`` is earlier."""
    return (end - start).total_seconds() / 3600


def decayed_hunger(last_fed_at: datetime, now: datetime) -> float:
    """Hunger at ``now`` for a pet last fed at ``last_fed_at``.

    A ``last_fed_at`` later than ``now`` (clock skew between writers) counts
    as zero elapsed time.
    """
    elapsed = max(0.0, hours_between(last_fed_at, now))
    return _clamp(MAX_HUNGER - elapsed * HUNGER_DECAY_PER_HOUR)


def current_hunger(stored: float, last_fed_at: datetime, now: datetime) -> float:
    """Hunger as seen by a reader holding ``stored``.

    Decay never raises a value, so a reader that lags behind a feed or an
    earlier recompute cannot resurrect hunger: the result is the lower of the
    stored value and the decay curve.
    """
    return min(_clamp(stored), decayed_hunger(last_fed_at, now))


def hunger_status(hunger: float) -> HungerStatus:
    """Map a hunger value in [0, 100] to its status tier."""
    if not MIN_HUNGER <= hunger <= MAX_HUNGER:
        raise ValueError(f"hunger must be within [0, 100], got {hunger}")
    for lower, status in STATUS_TIERS:
        if hunger >= lower:
            return status
    raise AssertionError("unreachable")  # pragma: no cover


def recovery_amount(has_text: bool, mood_category: str | None = None) -> float:
    """Points restored by a feed event.

    ``mood_category`` is accepted so callers pass the full event, but does not
    change the amount yet.
    """
    return BASE_RECOVERY + (TEXT_BONUS if has_text else 0.0)


def apply_feed(
    hunger: float,
    now: datetime,
    *,
    has_text: bool = False,
    mood_category: str | None = None,
) -> FeedResult:
    """Apply a feed event to the current hunger value."""
    if not MIN_HUNGER <= hunger <= MAX_HUNGER:
        raise ValueError(f"hunger must be within [0, 100], got {hunger}")
    recovered = recovery_amount(has_text, mood_category)
    return FeedResult(
        hunger=min(MAX_HUNGER, hunger + recovered),
        last_fed_at=now,
        recovered=recovered,
    )
