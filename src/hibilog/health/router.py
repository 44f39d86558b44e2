"""Liveness, readiness, and version endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from hibilog.config import Settings, get_settings
from hibilog.database import get_session
from hibilog.redis_client import get_redis

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> JSONResponse:
    """Readiness probe. Database is required; Redis and push keys are reported only."""
    checks: dict[str, str] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    try:
        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as exc:
        checks["redis"] = f"error: {exc}"

    checks["web_push"] = "ok" if settings.vapid_public_key and settings.vapid_private_key else "not configured"

    ready = checks["database"] == "ok"
    all_ok = all(v == "ok" for v in checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if all_ok else ("degraded" if ready else "unavailable"), "checks": checks},
    )


@router.get("/version")
async def version(settings: Settings = Depends(get_settings)) -> dict[str, str]:  # noqa: B008
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
