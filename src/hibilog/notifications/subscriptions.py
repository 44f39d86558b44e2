"""Push subscription storage."""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hibilog.db.models import PushSubscription
from hibilog.notifications.push import PushTarget


class SubscriptionStore(Protocol):
    async def list_for_user(self, user_id: uuid.UUID) -> list[PushTarget]: ...

    async def delete_endpoints(self, endpoints: Iterable[str]) -> int: ...

    async def rollback(self) -> None: ...


class SubscriptionRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[None]:
        try:
            yield
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def rollback(self) -> None:
        await self.db.rollback()

    async def save(
        self,
        user_id: uuid.UUID,
        endpoint: str,
        p256dh: str,
        auth: str,
        device_name: str | None = None,
    ) -> None:
        """Register a device. An endpoint seen before is re-bound to this user."""
        stmt = pg_insert(PushSubscription).values(
            endpoint=endpoint,
            user_id=user_id,
            p256dh=p256dh,
            auth=auth,
            device_name=device_name,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["endpoint"],
            set_={
                "user_id": stmt.excluded.user_id,
                "p256dh": stmt.excluded.p256dh,
                "auth": stmt.excluded.auth,
                "device_name": stmt.excluded.device_name,
            },
        )
        async with self._write():
            await self.db.execute(stmt)

    async def delete_for_user(self, user_id: uuid.UUID, endpoint: str) -> bool:
        async with self._write():
            result = await self.db.execute(
                delete(PushSubscription).where(
                    PushSubscription.user_id == user_id,
                    PushSubscription.endpoint == endpoint,
                )
            )
        return result.rowcount > 0

    async def list_for_user(self, user_id: uuid.UUID) -> list[PushTarget]:
        result = await self.db.execute(
            select(PushSubscription).where(PushSubscription.user_id == user_id)
        )
        return [
            PushTarget(endpoint=row.endpoint, p256dh=row.p256dh, auth=row.auth)
            for row in result.scalars()
        ]

    async def delete_endpoints(self, endpoints: Iterable[str]) -> int:
        endpoints = list(endpoints)
        if not endpoints:
            return 0
        async with self._write():
            result = await self.db.execute(
                delete(PushSubscription).where(PushSubscription.endpoint.in_(endpoints))
            )
        return result.rowcount
