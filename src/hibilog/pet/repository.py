"""Persistence for Baku pet profiles.

Rows cross this boundary as ``PetProfileRecord`` values, validated on the
way out, so callers never touch ORM objects or loosely typed columns.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hibilog.db.models import PetProfile
from hibilog.errors import ProfileAlreadyExistsError, ProfileNotFoundError
from hibilog.pet.decay import MAX_HUNGER, MIN_HUNGER

logger = structlog.get_logger()

DEFAULT_NOTIFICATION_INTERVAL_HOURS = 6


@dataclass(frozen=True)
class PetProfileRecord:
    user_id: uuid.UUID
    hunger_level: float
    last_fed_at: datetime
    notification_interval: int | None = DEFAULT_NOTIFICATION_INTERVAL_HOURS
    last_notification_sent_at: datetime | None = None

    def __post_init__(self) -> None:
        if not MIN_HUNGER <= self.hunger_level <= MAX_HUNGER:
            raise ValueError(f"hunger_level out of range for {self.user_id}: {self.hunger_level}")
        if self.last_fed_at.tzinfo is None:
            raise ValueError(f"last_fed_at must be timezone-aware for {self.user_id}")
        if self.last_notification_sent_at is not None and self.last_notification_sent_at.tzinfo is None:
            raise ValueError(f"last_notification_sent_at must be timezone-aware for {self.user_id}")
        if self.notification_interval is not None and self.notification_interval <= 0:
            raise ValueError(f"notification_interval must be positive for {self.user_id}")

    @classmethod
    def from_model(cls, row: PetProfile) -> PetProfileRecord:
        return cls(
            user_id=row.user_id,
            hunger_level=float(row.hunger_level),
            last_fed_at=row.last_fed_at,
            notification_interval=row.notification_interval,
            last_notification_sent_at=row.last_notification_sent_at,
        )


class PetProfileStore(Protocol):
    """What the sync orchestrator and the hunger check need from storage."""

    async def get(self, user_id: uuid.UUID) -> PetProfileRecord: ...

    async def create(self, user_id: uuid.UUID, now: datetime) -> PetProfileRecord: ...

    async def save_feed(self, user_id: uuid.UUID, hunger: float, last_fed_at: datetime) -> None: ...

    async def update_hunger(self, user_id: uuid.UUID, hunger: float) -> None: ...

    async def mark_notified(self, user_id: uuid.UUID, sent_at: datetime) -> None: ...

    async def list_all(self) -> list[PetProfileRecord]: ...

    async def rollback(self) -> None: ...


class PetProfileRepository:
    """SQLAlchemy-backed ``PetProfileStore``. Each write commits on its own."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[None]:
        # Leave the session usable for the next profile after a failed write.
        try:
            yield
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def rollback(self) -> None:
        """Discard whatever the session has pending, including an aborted transaction."""
        await self.db.rollback()

    async def get(self, user_id: uuid.UUID) -> PetProfileRecord:
        result = await self.db.execute(select(PetProfile).where(PetProfile.user_id == user_id))
        row = result.scalar_one_or_none()
        if row is None:
            raise ProfileNotFoundError(user_id)
        return PetProfileRecord.from_model(row)

    async def create(self, user_id: uuid.UUID, now: datetime) -> PetProfileRecord:
        """Insert a fresh profile (hunger 100, fed now).

        Raises ``ProfileAlreadyExistsError`` when another session won the race.
        """
        row = PetProfile(
            user_id=user_id,
            hunger_level=MAX_HUNGER,
            last_fed_at=now,
            notification_interval=DEFAULT_NOTIFICATION_INTERVAL_HOURS,
            created_at=now,
            updated_at=now,
        )
        self.db.add(row)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ProfileAlreadyExistsError(user_id) from exc
        return PetProfileRecord.from_model(row)

    async def get_or_create(self, user_id: uuid.UUID, now: datetime) -> PetProfileRecord:
        try:
            return await self.get(user_id)
        except ProfileNotFoundError:
            pass
        try:
            return await self.create(user_id, now)
        except ProfileAlreadyExistsError:
            return await self.get(user_id)

    async def _update(self, user_id: uuid.UUID, **values: object) -> None:
        async with self._write():
            await self.db.execute(
                update(PetProfile)
                .where(PetProfile.user_id == user_id)
                .values(updated_at=datetime.now(timezone.utc), **values)
            )

    async def save_feed(self, user_id: uuid.UUID, hunger: float, last_fed_at: datetime) -> None:
        await self._update(user_id, hunger_level=hunger, last_fed_at=last_fed_at)

    async def update_hunger(self, user_id: uuid.UUID, hunger: float) -> None:
        await self._update(user_id, hunger_level=hunger)

    async def mark_notified(self, user_id: uuid.UUID, sent_at: datetime) -> None:
        await self._update(user_id, last_notification_sent_at=sent_at)

    async def set_notification_interval(self, user_id: uuid.UUID, hours: int) -> None:
        await self._update(user_id, notification_interval=hours)

    async def list_all(self) -> list[PetProfileRecord]:
        """All profiles. Rows that fail validation are logged and skipped."""
        result = await self.db.execute(select(PetProfile).order_by(PetProfile.user_id))
        records = []
        for row in result.scalars():
            try:
                records.append(PetProfileRecord.from_model(row))
            except ValueError:
                logger.error("invalid_pet_profile", user_id=str(row.user_id), exc_info=True)
        return records
