"""Pydantic models for streak and achievement endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int


class AchievementResponse(BaseModel):
    id: str
    name: str
    description: str
    condition_type: str
    threshold: int | None = None
    meta: dict[str, Any] = {}
    unlocked: bool = False
    unlocked_at: datetime | None = None


class AchievementListResponse(BaseModel):
    achievements: list[AchievementResponse]
    unlocked_count: int
    total: int


class AchievementCheckResponse(BaseModel):
    newly_unlocked: list[str]
