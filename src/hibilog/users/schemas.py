"""Response model for the signed-in user's overview."""

from __future__ import annotations

import uuid

from pydantic import BaseModel


class MeResponse(BaseModel):
    user_id: uuid.UUID
    hunger_level: float | None = None
    notification_interval: int | None = None
    has_push_subscription: bool
