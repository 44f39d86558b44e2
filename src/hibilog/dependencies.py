"""Shared FastAPI dependencies.

Routers depend on these providers rather than constructing collaborators
themselves, so tests can swap any of them through
``app.dependency_overrides``.
"""

from collections.abc import Callable
from datetime import datetime

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hibilog.config import Settings, get_settings
from hibilog.database import get_session
from hibilog.gamification.achievements import AchievementService
from hibilog.memories.service import MemoryRepository
from hibilog.notifications.push import PushTransport, build_transport
from hibilog.notifications.subscriptions import SubscriptionRepository
from hibilog.pet.repository import PetProfileRepository
from hibilog.pet.sync import utc_now


def get_clock() -> Callable[[], datetime]:
    """Wall clock used by request handlers."""
    return utc_now


def get_pet_repository(db: AsyncSession = Depends(get_session)) -> PetProfileRepository:  # noqa: B008
    return PetProfileRepository(db)


def get_subscription_repository(db: AsyncSession = Depends(get_session)) -> SubscriptionRepository:  # noqa: B008
    return SubscriptionRepository(db)


def get_transport_factory(settings: Settings = Depends(get_settings)) -> Callable[[], PushTransport]:  # noqa: B008
    """Deferred transport construction, so a missing VAPID key surfaces inside the handler."""
    return lambda: build_transport(settings)


def get_memory_repository(db: AsyncSession = Depends(get_session)) -> MemoryRepository:  # noqa: B008
    return MemoryRepository(db)


def get_achievement_service(
    db: AsyncSession = Depends(get_session),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> AchievementService:
    return AchievementService(db, settings.reference_timezone)
