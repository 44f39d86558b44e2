"""Memory persistence and the post-a-memory flow."""

from __future__ import annotations

import random
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hibilog.db.models import Memory
from hibilog.errors import PetSyncError
from hibilog.gamification.achievements import AchievementService
from hibilog.memories.schemas import MemoryCreateRequest
from hibilog.pet.repository import PetProfileStore
from hibilog.pet.service import feed_pet
from hibilog.pet.sync import PetState

logger = structlog.get_logger()


def month_bounds(month: str) -> tuple[date, date]:
    """``YYYY-MM`` -> (first day, first day of next month)."""
    try:
        year, mon = (int(part) for part in month.split("-"))
        start = date(year, mon, 1)
    except ValueError as e:
        raise ValueError(f"month must be YYYY-MM, got {month!r}") from e
    end = date(year + 1, 1, 1) if mon == 12 else date(year, mon + 1, 1)
    return start, end


def previous_month(today: date) -> str:
    """``YYYY-MM`` of the calendar month before ``today``."""
    return (today.replace(day=1) - timedelta(days=1)).strftime("%Y-%m")


def pick_highlights(memories: Sequence[Memory], count: int, rng: random.Random | None = None) -> list[Memory]:
    """Up to ``count`` memories in random order; all of them when there are fewer."""
    rng = rng or random.Random()
    return rng.sample(list(memories), min(count, len(memories)))


class MemoryRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def add(self, user_id: uuid.UUID, body: MemoryCreateRequest, now: datetime) -> Memory:
        memory = Memory(
            id=uuid.uuid4(),
            user_id=user_id,
            created_at=now,
            **body.model_dump(),
        )
        self.db.add(memory)
        await self.db.commit()
        return memory

    async def list_for_user(self, user_id: uuid.UUID, month: str | None = None) -> list[Memory]:
        stmt = select(Memory).where(Memory.user_id == user_id)
        if month is not None:
            start, end = month_bounds(month)
            stmt = stmt.where(Memory.memory_date >= start, Memory.memory_date < end)
        result = await self.db.execute(stmt.order_by(Memory.memory_date.desc(), Memory.created_at.desc()))
        return list(result.scalars())

    async def list_located(self, user_id: uuid.UUID) -> list[Memory]:
        result = await self.db.execute(
            select(Memory)
            .where(
                Memory.user_id == user_id,
                Memory.latitude.is_not(None),
                Memory.longitude.is_not(None),
            )
            .order_by(Memory.memory_date.desc())
        )
        return list(result.scalars())


@dataclass
class PostedMemory:
    memory: Memory
    pet: PetState | None
    unlocked: list[str] = field(default_factory=list)


async def post_memory(
    user_id: uuid.UUID,
    body: MemoryCreateRequest,
    *,
    memories: MemoryRepository,
    pets: PetProfileStore,
    achievements: AchievementService,
    clock: Callable[[], datetime],
) -> PostedMemory:
    """Record a memory, feed Baku, then check achievements.

    The memory is committed first. Feeding and achievement checks are
    follow-ups: their failures are logged and leave the memory in place.
    """
    now = clock()
    memory = await memories.add(user_id, body, now)
    logger.info("memory_created", user_id=str(user_id), memory_id=str(memory.id))

    pet: PetState | None = None
    try:
        pet = await feed_pet(
            pets, user_id, clock,
            has_text=body.has_text, mood_category=body.mood_category,
        )
    except PetSyncError:
        logger.warning("feed_after_memory_failed", user_id=str(user_id), exc_info=True)

    unlocked: list[str] = []
    try:
        unlocked = await achievements.unlock_for_user(user_id, now)
    except Exception:
        logger.error("achievement_check_failed", user_id=str(user_id), exc_info=True)

    return PostedMemory(memory=memory, pet=pet, unlocked=unlocked)
