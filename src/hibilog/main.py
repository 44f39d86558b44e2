"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from hibilog.config import get_settings
from hibilog.database import close_db, init_db, session_scope
from hibilog.gamification.router import router as gamification_router
from hibilog.gamification.seed import seed_achievements
from hibilog.health.router import router as health_router
from hibilog.jobs.router import router as cron_router
from hibilog.memories.router import router as memories_router
from hibilog.middleware import setup_middleware
from hibilog.notifications.router import router as notifications_router
from hibilog.pet.router import router as pet_router
from hibilog.redis_client import close_redis, init_redis
from hibilog.users.router import router as users_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url, settings.database_pool_size, settings.database_max_overflow)
    await init_redis(settings.redis_url, settings.redis_max_connections)

    # Catalog upsert is idempotent; a fresh database without tables just skips it.
    try:
        async with session_scope() as db:
            await seed_achievements(db)
    except Exception:
        logger.warning("achievement_seed_failed", exc_info=True)

    if not settings.cron_secret:
        logger.warning("cron_secret_missing")
    if not settings.vapid_private_key:
        logger.warning("vapid_keys_missing")

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="HibiLog API",
        description="Daily journal with Baku, the memory-eating pet",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(cron_router)
    app.include_router(pet_router)
    app.include_router(memories_router)
    app.include_router(gamification_router)
    app.include_router(notifications_router)
    app.include_router(users_router)

    return app


app = create_app()
