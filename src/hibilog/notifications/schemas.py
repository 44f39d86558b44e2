"""Pydantic models for push subscription endpoints."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionKeys(BaseModel):
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class SubscribeRequest(BaseModel):
    """Body shape of the browser's ``PushSubscription.toJSON()`` plus a label."""

    model_config = ConfigDict(populate_by_name=True)

    endpoint: str = Field(..., min_length=1, max_length=2048)
    keys: SubscriptionKeys
    device_name: str | None = Field(default=None, alias="deviceName", max_length=128)


class UnsubscribeRequest(BaseModel):
    endpoint: str = Field(..., min_length=1, max_length=2048)


class SubscriptionResponse(BaseModel):
    success: bool
