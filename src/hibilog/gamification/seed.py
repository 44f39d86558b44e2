"""Achievement catalog seed data."""

from __future__ import annotations

import logging

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from hibilog.db.models import Achievement
from hibilog.gamification.achievements import AchievementRule

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Posting milestones
    {
        "id": "first_post",
        "name": "はじめての思い出",
        "description": "Record your very first memory",
        "condition_type": "total_posts",
        "threshold": 1,
        "meta": {},
        "sort_order": 1,
    },
    {
        "id": "posts_10",
        "name": "思い出コレクター",
        "description": "Record 10 memories",
        "condition_type": "total_posts",
        "threshold": 10,
        "meta": {},
        "sort_order": 2,
    },
    {
        "id": "posts_50",
        "name": "日々の記録者",
        "description": "Record 50 memories",
        "condition_type": "total_posts",
        "threshold": 50,
        "meta": {},
        "sort_order": 3,
    },
    {
        "id": "posts_100",
        "name": "百の記憶",
        "description": "Record 100 memories",
        "condition_type": "total_posts",
        "threshold": 100,
        "meta": {},
        "sort_order": 4,
    },
    {
        "id": "daily_3",
        "name": "今日は盛りだくさん",
        "description": "Record 3 memories on the same day",
        "condition_type": "daily_posts",
        "threshold": 3,
        "meta": {},
        "sort_order": 5,
    },
    # Streaks
    {
        "id": "streak_3",
        "name": "三日坊主卒業",
        "description": "Post 3 days in a row",
        "condition_type": "streak_days",
        "threshold": 3,
        "meta": {},
        "sort_order": 6,
    },
    {
        "id": "streak_7",
        "name": "一週間続いた",
        "description": "Post 7 days in a row",
        "condition_type": "streak_days",
        "threshold": 7,
        "meta": {},
        "sort_order": 7,
    },
    {
        "id": "streak_30",
        "name": "習慣マスター",
        "description": "Post 30 days in a row",
        "condition_type": "streak_days",
        "threshold": 30,
        "meta": {},
        "sort_order": 8,
    },
    # Time of day
    {
        "id": "early_bird",
        "name": "早起きバク",
        "description": "Post between 5:00 and 8:00",
        "condition_type": "time_window",
        "threshold": None,
        "meta": {"start_hour": 5, "end_hour": 8},
        "sort_order": 9,
    },
    {
        "id": "night_owl",
        "name": "夜ふかしバク",
        "description": "Post between midnight and 4:00",
        "condition_type": "time_window",
        "threshold": None,
        "meta": {"start_hour": 0, "end_hour": 4},
        "sort_order": 10,
    },
    # Places
    {
        "id": "visit_tokyo",
        "name": "東京の思い出",
        "description": "Record a memory in Tokyo",
        "condition_type": "prefecture_once",
        "threshold": None,
        "meta": {"region": "13"},
        "sort_order": 11,
    },
    {
        "id": "visit_osaka",
        "name": "大阪の思い出",
        "description": "Record a memory in Osaka",
        "condition_type": "prefecture_once",
        "threshold": None,
        "meta": {"region": "27"},
        "sort_order": 12,
    },
    {
        "id": "visit_hokkaido",
        "name": "北海道の思い出",
        "description": "Record a memory in Hokkaido",
        "condition_type": "prefecture_once",
        "threshold": None,
        "meta": {"region": "01"},
        "sort_order": 13,
    },
    {
        "id": "visit_okinawa",
        "name": "沖縄の思い出",
        "description": "Record a memory in Okinawa",
        "condition_type": "prefecture_once",
        "threshold": None,
        "meta": {"region": "47"},
        "sort_order": 14,
    },
]


def validate_seed_data(entries: list[dict]) -> list[AchievementRule]:
    """Build rules from seed rows; raises on the first malformed entry."""
    return [
        AchievementRule(
            id=e["id"],
            condition_type=e["condition_type"],
            threshold=e["threshold"],
            meta=e["meta"],
        )
        for e in entries
    ]


async def seed_achievements(db: AsyncSession) -> int:
    """Upsert the achievement catalog. Returns number of entries seeded."""
    validate_seed_data(ACHIEVEMENT_SEED_DATA)
    seeded = 0
    for data in ACHIEVEMENT_SEED_DATA:
        stmt = pg_insert(Achievement).values(**data)
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={
                "name": stmt.excluded.name,
                "description": stmt.excluded.description,
                "condition_type": stmt.excluded.condition_type,
                "threshold": stmt.excluded.threshold,
                "meta": stmt.excluded.meta,
                "sort_order": stmt.excluded.sort_order,
            },
        )
        await db.execute(stmt)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d achievements", seeded)
    return seeded
