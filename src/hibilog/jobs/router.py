"""Scheduler entry point — POST /api/cron/hunger-check.

Called by an external scheduler with ``Authorization: Bearer <cron_secret>``.
Responses keep the ``{success, ...}`` envelope the scheduler checks.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from hibilog.config import Settings, get_settings
from hibilog.dependencies import (
    get_clock,
    get_pet_repository,
    get_subscription_repository,
    get_transport_factory,
)
from hibilog.errors import ConfigurationError
from hibilog.jobs.hunger_check import HungerCheckJob
from hibilog.notifications.push import PushTransport
from hibilog.notifications.subscriptions import SubscriptionRepository
from hibilog.pet.repository import PetProfileRepository

logger = structlog.get_logger()

router = APIRouter(prefix="/api/cron", tags=["Cron"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _authorized(request: Request, secret: str) -> bool:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return False
    return secrets.compare_digest(token.encode(), secret.encode())


@router.post("/hunger-check")
async def hunger_check(
    request: Request,
    settings: Settings = Depends(get_settings),
    profiles: PetProfileRepository = Depends(get_pet_repository),
    subscriptions: SubscriptionRepository = Depends(get_subscription_repository),
    transport_factory: Callable[[], PushTransport] = Depends(get_transport_factory),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> JSONResponse:
    """Run one hunger sweep over every profile."""
    if not settings.cron_secret:
        logger.error("cron_secret_not_configured")
        return _error(500, "CRON_SECRET is not configured")
    if not _authorized(request, settings.cron_secret):
        logger.warning("cron_unauthorized", client=request.client.host if request.client else None)
        return _error(401, "Unauthorized")

    try:
        transport = transport_factory()
    except ConfigurationError as e:
        logger.error("hunger_check_misconfigured", error=str(e))
        return _error(500, str(e))

    job = HungerCheckJob.from_settings(settings, profiles, subscriptions, transport)
    try:
        result = await job.run(clock())
    except Exception as e:
        logger.error("hunger_check_failed", exc_info=True)
        return _error(500, str(e) or type(e).__name__)

    return JSONResponse(
        status_code=200,
        content={
            "success": True,
            "updatedCount": result.profiles_updated,
            "notificationsSent": result.notifications_sent,
            "message": result.message,
        },
    )
