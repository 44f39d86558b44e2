"""Current user endpoint — /api/v1/me."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime

from fastapi import APIRouter, Depends

from hibilog.auth.dependencies import get_current_user_id
from hibilog.dependencies import get_clock, get_pet_repository, get_subscription_repository
from hibilog.errors import ProfileNotFoundError
from hibilog.notifications.subscriptions import SubscriptionRepository
from hibilog.pet.decay import current_hunger
from hibilog.pet.repository import PetProfileRepository
from hibilog.users.schemas import MeResponse

router = APIRouter(prefix="/api/v1", tags=["Users"])


@router.get("/me", response_model=MeResponse)
async def get_me(
    user_id: uuid.UUID = Depends(get_current_user_id),
    pets: PetProfileRepository = Depends(get_pet_repository),
    subscriptions: SubscriptionRepository = Depends(get_subscription_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> MeResponse:
    """Who is signed in, how hungry Baku is, and whether push is set up.

    Read-only: a user without a profile gets nulls, not a new profile.
    """
    response = MeResponse(
        user_id=user_id,
        has_push_subscription=bool(await subscriptions.list_for_user(user_id)),
    )
    try:
        record = await pets.get(user_id)
    except ProfileNotFoundError:
        return response
    response.hunger_level = round(current_hunger(record.hunger_level, record.last_fed_at, clock()), 2)
    response.notification_interval = record.notification_interval
    return response
