"""Baku endpoints — /api/v1/pet/*."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException

from hibilog.auth.dependencies import get_current_user_id
from hibilog.dependencies import get_clock, get_pet_repository
from hibilog.errors import PetSyncError
from hibilog.pet.repository import PetProfileRepository
from hibilog.pet.schemas import FeedRequest, PetResponse, PetSettingsRequest
from hibilog.pet.service import feed_pet, load_pet

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/pet", tags=["Pet"])


@router.get("", response_model=PetResponse)
async def get_pet(
    user_id: uuid.UUID = Depends(get_current_user_id),
    repository: PetProfileRepository = Depends(get_pet_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> PetResponse:
    """Current hunger with decay applied. Creates the profile on first call."""
    try:
        orchestrator = await load_pet(repository, user_id, clock)
    except PetSyncError as e:
        raise HTTPException(status_code=503, detail="Could not load Baku, try again") from e
    return PetResponse.from_state(orchestrator.state)


@router.post("/feed", response_model=PetResponse)
async def feed(
    body: FeedRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    repository: PetProfileRepository = Depends(get_pet_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> PetResponse:
    """Feed Baku without recording a memory."""
    try:
        state = await feed_pet(
            repository, user_id, clock,
            has_text=body.has_text, mood_category=body.mood_category,
        )
    except PetSyncError as e:
        raise HTTPException(status_code=503, detail="Could not feed Baku, try again") from e
    return PetResponse.from_state(state)


@router.patch("/settings", response_model=PetResponse)
async def update_pet_settings(
    body: PetSettingsRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    repository: PetProfileRepository = Depends(get_pet_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> PetResponse:
    """Change how often hunger notifications may be sent."""
    try:
        orchestrator = await load_pet(repository, user_id, clock)
    except PetSyncError as e:
        raise HTTPException(status_code=503, detail="Could not load Baku, try again") from e
    await repository.set_notification_interval(user_id, body.notification_interval)
    orchestrator.state.notification_interval = body.notification_interval
    logger.info("notification_interval_updated", user_id=str(user_id), hours=body.notification_interval)
    return PetResponse.from_state(orchestrator.state)
