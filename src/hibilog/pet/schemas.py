"""Pydantic models for the pet endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from hibilog.pet.decay import HungerStatus
from hibilog.pet.sync import PetState


class PetResponse(BaseModel):
    hunger: float
    status: HungerStatus
    last_fed_at: datetime | None = None
    notification_interval: int

    @classmethod
    def from_state(cls, state: PetState) -> PetResponse:
        return cls(
            hunger=round(state.hunger, 2),
            status=state.status,
            last_fed_at=state.last_fed_at,
            notification_interval=state.notification_interval,
        )


class FeedRequest(BaseModel):
    has_text: bool = False
    mood_category: str | None = Field(default=None, max_length=16)


class PetSettingsRequest(BaseModel):
    notification_interval: int = Field(..., ge=1, le=24)
