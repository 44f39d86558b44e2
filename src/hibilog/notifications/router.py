"""Push subscription endpoints — /api/v1/push/*."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from hibilog.auth.dependencies import get_current_user_id
from hibilog.dependencies import get_subscription_repository
from hibilog.notifications.schemas import SubscribeRequest, SubscriptionResponse, UnsubscribeRequest
from hibilog.notifications.subscriptions import SubscriptionRepository

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/push", tags=["Notifications"])


@router.post("/subscriptions", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def subscribe(
    body: SubscribeRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    subscriptions: SubscriptionRepository = Depends(get_subscription_repository),
) -> SubscriptionResponse:
    """Register this device for hunger notifications."""
    await subscriptions.save(
        user_id,
        body.endpoint,
        body.keys.p256dh,
        body.keys.auth,
        device_name=body.device_name,
    )
    logger.info("push_subscribed", user_id=str(user_id), device=body.device_name)
    return SubscriptionResponse(success=True)


@router.delete("/subscriptions", response_model=SubscriptionResponse)
async def unsubscribe(
    body: UnsubscribeRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    subscriptions: SubscriptionRepository = Depends(get_subscription_repository),
) -> SubscriptionResponse:
    """Remove one of the caller's devices."""
    if not await subscriptions.delete_for_user(user_id, body.endpoint):
        raise HTTPException(status_code=404, detail="Subscription not found")
    logger.info("push_unsubscribed", user_id=str(user_id))
    return SubscriptionResponse(success=True)
