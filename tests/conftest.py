"""Shared test fixtures.

API tests run the real app with its storage and push collaborators swapped
for the in-memory fakes below, so no Postgres, Redis or push service is
needed.
"""

from __future__ import annotations

import os
import time
import uuid
from collections.abc import AsyncGenerator, Iterable
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import jwt
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

os.environ["HIBILOG_JWT_SECRET"] = "test-jwt-secret-with-at-least-32-bytes!"
os.environ["HIBILOG_CRON_SECRET"] = "test-cron-secret"
os.environ["HIBILOG_LOG_FORMAT"] = "console"

from hibilog.config import get_settings  # noqa: E402

get_settings.cache_clear()

from hibilog.db.models import Achievement, Memory  # noqa: E402
from hibilog.dependencies import (  # noqa: E402
    get_achievement_service,
    get_clock,
    get_memory_repository,
    get_pet_repository,
    get_subscription_repository,
    get_transport_factory,
)
from hibilog.errors import ProfileAlreadyExistsError, ProfileNotFoundError  # noqa: E402
from hibilog.gamification.seed import ACHIEVEMENT_SEED_DATA  # noqa: E402
from hibilog.main import create_app  # noqa: E402
from hibilog.memories.service import month_bounds  # noqa: E402
from hibilog.notifications.push import (  # noqa: E402
    DeliveryOutcome,
    DeliveryResult,
    PushMessage,
    PushTarget,
)
from hibilog.pet.repository import PetProfileRecord  # noqa: E402

NOW = datetime(2026, 10, 19, 3, 0, tzinfo=timezone.utc)  # 12:00 in Tokyo


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakePetStore:
    """In-memory pet profile store. ``fail_on`` maps an operation to the error it raises."""

    def __init__(self) -> None:
        self.records: dict[uuid.UUID, PetProfileRecord] = {}
        self.fail_on: dict[str, Exception] = {}
        self.calls: list[str] = []

    def add(self, user_id: uuid.UUID, hunger: float, last_fed_at: datetime, **kwargs: object) -> PetProfileRecord:
        record = PetProfileRecord(user_id=user_id, hunger_level=hunger, last_fed_at=last_fed_at, **kwargs)
        self.records[user_id] = record
        return record

    def _enter(self, op: str) -> None:
        self.calls.append(op)
        if op in self.fail_on:
            raise self.fail_on[op]

    async def get(self, user_id: uuid.UUID) -> PetProfileRecord:
        self._enter("get")
        if user_id not in self.records:
            raise ProfileNotFoundError(user_id)
        return self.records[user_id]

    async def create(self, user_id: uuid.UUID, now: datetime) -> PetProfileRecord:
        self._enter("create")
        if user_id in self.records:
            raise ProfileAlreadyExistsError(user_id)
        return self.add(user_id, 100.0, now)

    async def save_feed(self, user_id: uuid.UUID, hunger: float, last_fed_at: datetime) -> None:
        self._enter("save_feed")
        self.records[user_id] = replace(self.records[user_id], hunger_level=hunger, last_fed_at=last_fed_at)

    async def update_hunger(self, user_id: uuid.UUID, hunger: float) -> None:
        self._enter("update_hunger")
        self.records[user_id] = replace(self.records[user_id], hunger_level=hunger)

    async def mark_notified(self, user_id: uuid.UUID, sent_at: datetime) -> None:
        self._enter("mark_notified")
        self.records[user_id] = replace(self.records[user_id], last_notification_sent_at=sent_at)

    async def set_notification_interval(self, user_id: uuid.UUID, hours: int) -> None:
        self._enter("set_notification_interval")
        self.records[user_id] = replace(self.records[user_id], notification_interval=hours)

    async def list_all(self) -> list[PetProfileRecord]:
        self._enter("list_all")
        return list(self.records.values())

    async def rollback(self) -> None:
        self._enter("rollback")


class FakeSubscriptionStore:
    def __init__(self) -> None:
        self.targets: dict[uuid.UUID, list[PushTarget]] = {}
        self.device_names: dict[str, str | None] = {}
        self.broken_users: set[uuid.UUID] = set()
        self.deleted: list[str] = []
        self.rollbacks = 0

    def add(self, user_id: uuid.UUID, endpoint: str) -> PushTarget:
        target = PushTarget(endpoint=endpoint, p256dh=f"p256dh-{endpoint}", auth=f"auth-{endpoint}")
        self.targets.setdefault(user_id, []).append(target)
        return target

    async def save(
        self,
        user_id: uuid.UUID,
        endpoint: str,
        p256dh: str,
        auth: str,
        device_name: str | None = None,
    ) -> None:
        for targets in self.targets.values():
            targets[:] = [t for t in targets if t.endpoint != endpoint]
        self.targets.setdefault(user_id, []).append(PushTarget(endpoint, p256dh, auth))
        self.device_names[endpoint] = device_name

    async def delete_for_user(self, user_id: uuid.UUID, endpoint: str) -> bool:
        before = len(self.targets.get(user_id, []))
        self.targets[user_id] = [t for t in self.targets.get(user_id, []) if t.endpoint != endpoint]
        return len(self.targets[user_id]) < before

    async def list_for_user(self, user_id: uuid.UUID) -> list[PushTarget]:
        if user_id in self.broken_users:
            raise RuntimeError("subscription lookup failed")
        return list(self.targets.get(user_id, []))

    async def delete_endpoints(self, endpoints: Iterable[str]) -> int:
        endpoints = set(endpoints)
        removed = 0
        for user_id, targets in self.targets.items():
            kept = [t for t in targets if t.endpoint not in endpoints]
            removed += len(targets) - len(kept)
            self.targets[user_id] = kept
        self.deleted.extend(sorted(endpoints))
        return removed

    async def rollback(self) -> None:
        self.rollbacks += 1


class FakeTransport:
    """Records sends. ``outcomes`` maps endpoint to an outcome or an exception to raise."""

    def __init__(self) -> None:
        self.outcomes: dict[str, DeliveryOutcome | Exception] = {}
        self.sent: list[tuple[str, PushMessage]] = []

    async def send(self, target: PushTarget, message: PushMessage) -> DeliveryResult:
        self.sent.append((target.endpoint, message))
        outcome = self.outcomes.get(target.endpoint, DeliveryOutcome.SENT)
        if isinstance(outcome, Exception):
            raise outcome
        return DeliveryResult(target.endpoint, outcome)


class FakeMemoryRepository:
    def __init__(self) -> None:
        self.memories: list[Memory] = []

    def add_row(self, user_id: uuid.UUID, memory_date, created_at: datetime = NOW, **fields: object) -> Memory:
        memory = Memory(id=uuid.uuid4(), user_id=user_id, memory_date=memory_date, created_at=created_at, **fields)
        self.memories.append(memory)
        return memory

    async def add(self, user_id: uuid.UUID, body, now: datetime) -> Memory:
        return self.add_row(user_id, created_at=now, **body.model_dump())

    async def list_for_user(self, user_id: uuid.UUID, month: str | None = None) -> list[Memory]:
        rows = [m for m in self.memories if m.user_id == user_id]
        if month is not None:
            start, end = month_bounds(month)
            rows = [m for m in rows if start <= m.memory_date < end]
        return sorted(rows, key=lambda m: (m.memory_date, m.created_at), reverse=True)

    async def list_located(self, user_id: uuid.UUID) -> list[Memory]:
        rows = await self.list_for_user(user_id)
        return [m for m in rows if m.latitude is not None and m.longitude is not None]


class FakeAchievementService:
    def __init__(self) -> None:
        self.to_unlock: list[str] = []
        self.unlocked: dict[str, datetime] = {}
        self.checks: list[uuid.UUID] = []
        self.error: Exception | None = None

    async def unlock_for_user(self, user_id: uuid.UUID, now: datetime) -> list[str]:
        self.checks.append(user_id)
        if self.error is not None:
            raise self.error
        newly = [a for a in self.to_unlock if a not in self.unlocked]
        for achievement_id in newly:
            self.unlocked[achievement_id] = now
        return newly

    async def list_for_user(self, user_id: uuid.UUID) -> list[tuple[Achievement, datetime | None]]:
        return [(Achievement(**data), self.unlocked.get(data["id"])) for data in ACHIEVEMENT_SEED_DATA]


def make_token(user_id: uuid.UUID, **claims: object) -> str:
    payload = {
        "sub": str(user_id),
        "aud": "authenticated",
        "exp": int(time.time()) + 3600,
        **claims,
    }
    return jwt.encode(payload, get_settings().jwt_secret, algorithm="HS256")


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def pet_store() -> FakePetStore:
    return FakePetStore()


@pytest.fixture
def subscription_store() -> FakeSubscriptionStore:
    return FakeSubscriptionStore()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def memory_repo() -> FakeMemoryRepository:
    return FakeMemoryRepository()


@pytest.fixture
def achievement_service() -> FakeAchievementService:
    return FakeAchievementService()


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def auth_headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def app(
    pet_store: FakePetStore,
    subscription_store: FakeSubscriptionStore,
    transport: FakeTransport,
    memory_repo: FakeMemoryRepository,
    achievement_service: FakeAchievementService,
    clock: FrozenClock,
) -> FastAPI:
    """App wired to the fakes. Lifespan does not run under ASGITransport."""
    application = create_app()
    application.dependency_overrides[get_pet_repository] = lambda: pet_store
    application.dependency_overrides[get_subscription_repository] = lambda: subscription_store
    application.dependency_overrides[get_transport_factory] = lambda: (lambda: transport)
    application.dependency_overrides[get_memory_repository] = lambda: memory_repo
    application.dependency_overrides[get_achievement_service] = lambda: achievement_service
    application.dependency_overrides[get_clock] = lambda: clock
    return application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
