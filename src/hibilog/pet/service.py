"""Server-side use of the sync orchestrator for one request."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime

from hibilog.pet.repository import PetProfileStore
from hibilog.pet.sync import HungerSyncOrchestrator, PetState


async def load_pet(
    repository: PetProfileStore,
    user_id: uuid.UUID,
    clock: Callable[[], datetime],
) -> HungerSyncOrchestrator:
    """Return an orchestrator already synced with the stored profile."""
    orchestrator = HungerSyncOrchestrator(user_id, repository, PetState(), clock=clock)
    await orchestrator.load()
    return orchestrator


async def feed_pet(
    repository: PetProfileStore,
    user_id: uuid.UUID,
    clock: Callable[[], datetime],
    *,
    has_text: bool = False,
    mood_category: str | None = None,
) -> PetState:
    """Sync, then apply one feed event."""
    orchestrator = await load_pet(repository, user_id, clock)
    return await orchestrator.feed(has_text=has_text, mood_category=mood_category)
