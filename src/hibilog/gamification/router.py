"""Gamification endpoints — /api/v1/streaks and /api/v1/achievements/*."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime

from fastapi import APIRouter, Depends

from hibilog.auth.dependencies import get_current_user_id
from hibilog.config import Settings, get_settings
from hibilog.dependencies import get_achievement_service, get_clock, get_memory_repository
from hibilog.gamification.achievements import AchievementService
from hibilog.gamification.schemas import (
    AchievementCheckResponse,
    AchievementListResponse,
    AchievementResponse,
    StreakResponse,
)
from hibilog.gamification.streaks import calculate_streaks, today_in
from hibilog.memories.service import MemoryRepository

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


@router.get("/streaks", response_model=StreakResponse)
async def get_streaks(
    user_id: uuid.UUID = Depends(get_current_user_id),
    memories: MemoryRepository = Depends(get_memory_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> StreakResponse:
    """Current and longest daily posting streak."""
    rows = await memories.list_for_user(user_id)
    streaks = calculate_streaks(
        (row.memory_date for row in rows),
        today_in(settings.reference_timezone, clock()),
    )
    return StreakResponse(current_streak=streaks.current_streak, longest_streak=streaks.longest_streak)


@router.get("/achievements", response_model=AchievementListResponse)
async def list_achievements(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: AchievementService = Depends(get_achievement_service),
) -> AchievementListResponse:
    """Full catalog with the user's unlock status."""
    entries = await service.list_for_user(user_id)
    achievements = [
        AchievementResponse(
            id=row.id,
            name=row.name,
            description=row.description,
            condition_type=row.condition_type,
            threshold=row.threshold,
            meta=dict(row.meta or {}),
            unlocked=unlocked_at is not None,
            unlocked_at=unlocked_at,
        )
        for row, unlocked_at in entries
    ]
    return AchievementListResponse(
        achievements=achievements,
        unlocked_count=sum(1 for a in achievements if a.unlocked),
        total=len(achievements),
    )


@router.post("/achievements/check", response_model=AchievementCheckResponse)
async def check_achievements(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: AchievementService = Depends(get_achievement_service),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> AchievementCheckResponse:
    """Evaluate the catalog now and record anything newly earned."""
    newly = await service.unlock_for_user(user_id, clock())
    return AchievementCheckResponse(newly_unlocked=newly)
