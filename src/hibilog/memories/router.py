"""Memory endpoints — /api/v1/memories/* and /api/v1/stats."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status

from hibilog.auth.dependencies import get_current_user_id
from hibilog.config import Settings, get_settings
from hibilog.dependencies import (
    get_achievement_service,
    get_clock,
    get_memory_repository,
    get_pet_repository,
)
from hibilog.gamification.achievements import AchievementService
from hibilog.gamification.streaks import today_in
from hibilog.memories.schemas import (
    HighlightResponse,
    MapMarker,
    MapMarkersResponse,
    MemoryCreateRequest,
    MemoryCreateResponse,
    MemoryListResponse,
    MemoryResponse,
    MonthCountResponse,
    StatsResponse,
    WeekdayCountResponse,
)
from hibilog.memories.service import MemoryRepository, pick_highlights, post_memory, previous_month
from hibilog.memories.stats import calculate_stats
from hibilog.pet.repository import PetProfileRepository
from hibilog.pet.schemas import PetResponse

router = APIRouter(prefix="/api/v1", tags=["Memories"])

MAP_TITLE_LENGTH = 30


@router.post("/memories", response_model=MemoryCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_memory(
    body: MemoryCreateRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    memories: MemoryRepository = Depends(get_memory_repository),
    pets: PetProfileRepository = Depends(get_pet_repository),
    achievements: AchievementService = Depends(get_achievement_service),
    clock: Callable[[], datetime] = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> MemoryCreateResponse:
    """Record a day's memory. Feeds Baku and checks achievements as follow-ups."""
    today = today_in(settings.reference_timezone, clock())
    if body.memory_date > today:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="memory_date cannot be in the future",
        )

    posted = await post_memory(
        user_id, body,
        memories=memories, pets=pets, achievements=achievements, clock=clock,
    )
    return MemoryCreateResponse(
        memory=MemoryResponse.model_validate(posted.memory),
        pet=PetResponse.from_state(posted.pet) if posted.pet is not None else None,
        unlocked_achievements=posted.unlocked,
    )


@router.get("/memories", response_model=MemoryListResponse)
async def list_memories(
    month: str | None = Query(default=None, description="YYYY-MM"),
    user_id: uuid.UUID = Depends(get_current_user_id),
    memories: MemoryRepository = Depends(get_memory_repository),
) -> MemoryListResponse:
    """List memories, newest first, optionally limited to one month."""
    try:
        rows = await memories.list_for_user(user_id, month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return MemoryListResponse(
        memories=[MemoryResponse.model_validate(row) for row in rows],
        total=len(rows),
    )


@router.get("/memories/map", response_model=MapMarkersResponse)
async def memory_map(
    user_id: uuid.UUID = Depends(get_current_user_id),
    memories: MemoryRepository = Depends(get_memory_repository),
) -> MapMarkersResponse:
    """Markers for every memory with coordinates."""
    rows = await memories.list_located(user_id)
    markers = [
        MapMarker(
            id=row.id,
            lat=row.latitude,
            lng=row.longitude,
            title=row.location_name or (row.text_content or "")[:MAP_TITLE_LENGTH] or "思い出",
            image_url=row.media_url if row.media_type == "photo" else None,
            memory_date=row.memory_date,
            mood_emoji=row.mood_emoji,
            text_content=row.text_content,
        )
        for row in rows
    ]
    return MapMarkersResponse(markers=markers)


@router.get("/memories/highlight", response_model=HighlightResponse)
async def monthly_highlight(
    count: int = Query(default=3, ge=1, le=10),
    user_id: uuid.UUID = Depends(get_current_user_id),
    memories: MemoryRepository = Depends(get_memory_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> HighlightResponse:
    """A random handful of last month's memories."""
    month = previous_month(today_in(settings.reference_timezone, clock()))
    rows = await memories.list_for_user(user_id, month)
    return HighlightResponse(
        month=month,
        memories=[MemoryResponse.model_validate(row) for row in pick_highlights(rows, count)],
    )


@router.get("/stats", response_model=StatsResponse)
async def memory_stats(
    user_id: uuid.UUID = Depends(get_current_user_id),
    memories: MemoryRepository = Depends(get_memory_repository),
    clock: Callable[[], datetime] = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> StatsResponse:
    """Totals, streaks, mood mix, and monthly/weekday histograms."""
    rows = await memories.list_for_user(user_id)
    stats = calculate_stats(rows, today_in(settings.reference_timezone, clock()))
    return StatsResponse(
        total_memories=stats.total_memories,
        current_streak=stats.current_streak,
        longest_streak=stats.longest_streak,
        days_since_start=stats.days_since_start,
        mood_distribution=stats.mood_distribution,
        monthly_data=[MonthCountResponse(month=m.month, count=m.count) for m in stats.monthly_data],
        weekday_data=[WeekdayCountResponse(day=w.day, count=w.count) for w in stats.weekday_data],
    )
