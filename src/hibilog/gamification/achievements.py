"""Achievement evaluation against the catalog.

The matching itself is pure: ``build_user_stats`` aggregates a user's
memories, ``evaluate_achievements`` picks the catalog rules that are
satisfied and not yet unlocked. ``AchievementService`` wraps both with the
database reads and the idempotent insert.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Protocol
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from hibilog.db.models import Achievement, Memory, UserAchievement
from hibilog.errors import InvalidAchievementRuleError
from hibilog.gamification.streaks import calculate_streaks, today_in

logger = structlog.get_logger()

TOTAL_POSTS = "total_posts"
DAILY_POSTS = "daily_posts"
STREAK_DAYS = "streak_days"
TIME_WINDOW = "time_window"
PREFECTURE_ONCE = "prefecture_once"

CONDITION_TYPES = frozenset({TOTAL_POSTS, DAILY_POSTS, STREAK_DAYS, TIME_WINDOW, PREFECTURE_ONCE})
_THRESHOLD_TYPES = frozenset({TOTAL_POSTS, DAILY_POSTS, STREAK_DAYS})


@dataclass(frozen=True)
class UserStats:
    total_posts: int = 0
    today_posts: int = 0
    current_streak: int = 0
    post_hours: tuple[int, ...] = ()
    regions_visited: frozenset[str] = frozenset()


@dataclass(frozen=True)
class AchievementRule:
    """A validated catalog entry."""

    id: str
    condition_type: str
    threshold: int | None = None
    meta: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.condition_type not in CONDITION_TYPES:
            raise InvalidAchievementRuleError(
                f"{self.id}: unknown condition_type {self.condition_type!r}"
            )
        if self.condition_type in _THRESHOLD_TYPES:
            if self.threshold is None or self.threshold < 0:
                raise InvalidAchievementRuleError(
                    f"{self.id}: {self.condition_type} needs a non-negative threshold"
                )
        elif self.condition_type == TIME_WINDOW:
            start, end = self.meta.get("start_hour"), self.meta.get("end_hour")
            if not isinstance(start, int) or not isinstance(end, int) or not 0 <= start < end <= 24:
                raise InvalidAchievementRuleError(
                    f"{self.id}: time_window needs 0 <= start_hour < end_hour <= 24"
                )
        elif not self.meta.get("region"):
            raise InvalidAchievementRuleError(f"{self.id}: prefecture_once needs a region")

    @classmethod
    def from_model(cls, row: Achievement) -> AchievementRule:
        return cls(
            id=row.id,
            condition_type=row.condition_type,
            threshold=row.threshold,
            meta=dict(row.meta or {}),
        )


class _MemoryLike(Protocol):
    memory_date: date
    created_at: datetime
    prefecture_code: str | None


def build_user_stats(memories: Sequence[_MemoryLike], now: datetime, tz: str | ZoneInfo) -> UserStats:
    """Aggregate the statistics achievement rules are matched against."""
    zone = ZoneInfo(tz) if isinstance(tz, str) else tz
    today = today_in(zone, now)
    dates = [m.memory_date for m in memories]
    return UserStats(
        total_posts=len(memories),
        today_posts=sum(1 for d in dates if d == today),
        current_streak=calculate_streaks(dates, today).current_streak,
        post_hours=tuple(m.created_at.astimezone(zone).hour for m in memories),
        regions_visited=frozenset(m.prefecture_code for m in memories if m.prefecture_code),
    )


def is_achieved(rule: AchievementRule, stats: UserStats) -> bool:
    """Check one rule against the user's statistics."""
    threshold = rule.threshold or 0
    if rule.condition_type == TOTAL_POSTS:
        return stats.total_posts >= threshold
    if rule.condition_type == DAILY_POSTS:
        return stats.today_posts >= threshold
    if rule.condition_type == STREAK_DAYS:
        return stats.current_streak >= threshold
    if rule.condition_type == TIME_WINDOW:
        start, end = rule.meta["start_hour"], rule.meta["end_hour"]
        return any(start <= h < end for h in stats.post_hours)
    return rule.meta["region"] in stats.regions_visited


def evaluate_achievements(
    stats: UserStats,
    catalog: Iterable[AchievementRule],
    unlocked_ids: Iterable[str],
) -> list[AchievementRule]:
    """Return satisfied rules that the user has not unlocked yet, in catalog order."""
    unlocked = set(unlocked_ids)
    return [rule for rule in catalog if rule.id not in unlocked and is_achieved(rule, stats)]


class AchievementService:
    """Loads a user's history, evaluates the catalog, and records unlocks."""

    def __init__(self, db: AsyncSession, tz: str | ZoneInfo) -> None:
        self.db = db
        self.tz = tz

    async def load_catalog(self) -> list[AchievementRule]:
        result = await self.db.execute(
            select(Achievement)
            .where(Achievement.is_active.is_(True))
            .order_by(Achievement.sort_order, Achievement.id)
        )
        return [AchievementRule.from_model(row) for row in result.scalars()]

    async def load_unlocked_ids(self, user_id: uuid.UUID) -> set[str]:
        result = await self.db.execute(
            select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
        )
        return set(result.scalars())

    async def load_memories(self, user_id: uuid.UUID) -> list[Memory]:
        result = await self.db.execute(select(Memory).where(Memory.user_id == user_id))
        return list(result.scalars())

    async def unlock_for_user(self, user_id: uuid.UUID, now: datetime) -> list[str]:
        """Evaluate and persist new unlocks. Returns the ids actually inserted.

        Errors loading the unlocked set propagate before anything is
        written, so a failed read is never mistaken for "nothing unlocked".
        """
        memories = await self.load_memories(user_id)
        catalog = await self.load_catalog()
        unlocked = await self.load_unlocked_ids(user_id)

        stats = build_user_stats(memories, now, self.tz)
        candidates = evaluate_achievements(stats, catalog, unlocked)
        if not candidates:
            return []

        stmt = (
            pg_insert(UserAchievement)
            .values([
                {"user_id": user_id, "achievement_id": rule.id, "unlocked_at": now}
                for rule in candidates
            ])
            .on_conflict_do_nothing(constraint="user_achievements_user_id_achievement_id_key")
            .returning(UserAchievement.achievement_id)
        )
        result = await self.db.execute(stmt)
        inserted = set(result.scalars())
        await self.db.commit()

        newly = [rule.id for rule in candidates if rule.id in inserted]
        if newly:
            logger.info("achievements_unlocked", user_id=str(user_id), achievements=newly)
        return newly

    async def list_for_user(self, user_id: uuid.UUID) -> list[tuple[Achievement, datetime | None]]:
        """Active catalog in display order, each paired with the user's unlock time."""
        catalog = await self.db.execute(
            select(Achievement)
            .where(Achievement.is_active.is_(True))
            .order_by(Achievement.sort_order, Achievement.id)
        )
        unlocked = await self.db.execute(
            select(UserAchievement.achievement_id, UserAchievement.unlocked_at)
            .where(UserAchievement.user_id == user_id)
        )
        unlocked_at = {row.achievement_id: row.unlocked_at for row in unlocked}
        return [(row, unlocked_at.get(row.id)) for row in catalog.scalars()]
