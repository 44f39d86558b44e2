"""arq worker that runs the hunger sweep on a schedule.

Same job as ``POST /api/cron/hunger-check``, for deployments that run a
worker process instead of an external scheduler.
"""

from __future__ import annotations

import logging
from typing import Any

from arq import cron
from arq.connections import RedisSettings

from hibilog.config import get_settings
from hibilog.database import close_db, init_db, session_scope
from hibilog.jobs.hunger_check import HungerCheckJob
from hibilog.middleware.logging import setup_logging
from hibilog.notifications.push import build_transport
from hibilog.notifications.subscriptions import SubscriptionRepository
from hibilog.pet.repository import PetProfileRepository
from hibilog.pet.sync import utc_now

logger = logging.getLogger(__name__)


async def startup(ctx: dict[str, Any]) -> None:
    """Connect to Postgres and build the push transport once per worker."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url, settings.database_pool_size, settings.database_max_overflow)
    # Missing VAPID keys fail the worker at boot rather than on every run.
    ctx["transport"] = build_transport(settings)
    ctx["settings"] = settings
    logger.info("Hunger check worker started")


async def shutdown(ctx: dict[str, Any]) -> None:
    await close_db()
    logger.info("Hunger check worker shut down")


async def run_hunger_check(ctx: dict[str, Any]) -> dict[str, int]:
    """One sweep. Returns the counts arq stores as the job result."""
    async with session_scope() as db:
        job = HungerCheckJob.from_settings(
            ctx["settings"],
            PetProfileRepository(db),
            SubscriptionRepository(db),
            ctx["transport"],
        )
        result = await job.run(utc_now())
    return {
        "updated": result.profiles_updated,
        "sent": result.notifications_sent,
        "failed": result.profiles_failed,
    }


class WorkerSettings:
    """arq worker settings for the hunger sweep."""

    functions = [run_hunger_check]
    cron_jobs = [
        cron(run_hunger_check, minute={get_settings().hunger_check_cron_minute}, run_at_startup=False),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    max_jobs = 1
    job_timeout = 600
