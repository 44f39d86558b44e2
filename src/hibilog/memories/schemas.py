"""Request/response schemas for memory endpoints."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hibilog.pet.schemas import PetResponse

MoodCategory = Literal["positive", "calm", "neutral", "negative", "tired"]


class MemoryCreateRequest(BaseModel):
    memory_date: date
    text_content: str | None = Field(default=None, max_length=2000)
    media_url: str | None = None
    media_type: Literal["photo", "video"] | None = None
    mood_emoji: str | None = Field(default=None, max_length=64)
    mood_category: MoodCategory | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    location_name: str | None = Field(default=None, max_length=256)
    address: str | None = None
    prefecture_code: str | None = Field(default=None, max_length=16)

    @model_validator(mode="after")
    def _coordinates_together(self) -> MemoryCreateRequest:
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self

    @property
    def has_text(self) -> bool:
        return bool(self.text_content and self.text_content.strip())


class MemoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    memory_date: date
    text_content: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    mood_emoji: str | None = None
    mood_category: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    location_name: str | None = None
    address: str | None = None
    prefecture_code: str | None = None
    created_at: datetime


class MemoryCreateResponse(BaseModel):
    memory: MemoryResponse
    pet: PetResponse | None = None
    unlocked_achievements: list[str] = []


class MemoryListResponse(BaseModel):
    memories: list[MemoryResponse]
    total: int


class HighlightResponse(BaseModel):
    month: str
    memories: list[MemoryResponse]


class MapMarker(BaseModel):
    id: uuid.UUID
    lat: float
    lng: float
    title: str
    image_url: str | None = None
    memory_date: date
    mood_emoji: str | None = None
    text_content: str | None = None


class MapMarkersResponse(BaseModel):
    markers: list[MapMarker]


class MonthCountResponse(BaseModel):
    month: str
    count: int


class WeekdayCountResponse(BaseModel):
    day: str
    count: int


class StatsResponse(BaseModel):
    total_memories: int
    current_streak: int
    longest_streak: int
    days_since_start: int
    mood_distribution: dict[str, int]
    monthly_data: list[MonthCountResponse]
    weekday_data: list[WeekdayCountResponse]
