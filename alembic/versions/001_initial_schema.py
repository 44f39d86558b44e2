"""Initial schema: Baku profiles, memories, push subscriptions, achievements.

``user_id`` columns reference users held by the auth platform and carry no
foreign key here.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Baku ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS baku_profiles (
            user_id UUID PRIMARY KEY,
            hunger_level DOUBLE PRECISION NOT NULL DEFAULT 100
                CHECK (hunger_level >= 0 AND hunger_level <= 100),
            last_fed_at TIMESTAMPTZ NOT NULL,
            notification_interval INTEGER DEFAULT 6 CHECK (notification_interval > 0),
            last_notification_sent_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Memories ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS memories (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL,
            memory_date DATE NOT NULL,
            text_content TEXT,
            media_url TEXT,
            media_type VARCHAR(8) CHECK (media_type IN ('photo', 'video')),
            mood_emoji VARCHAR(64),
            mood_category VARCHAR(16),
            latitude DOUBLE PRECISION,
            longitude DOUBLE PRECISION,
            location_name VARCHAR(256),
            address TEXT,
            prefecture_code VARCHAR(16),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_memories_user_date
        ON memories(user_id, memory_date)
    """)

    # --- Web Push ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS push_subscriptions (
            endpoint TEXT PRIMARY KEY,
            user_id UUID NOT NULL,
            p256dh TEXT NOT NULL,
            auth TEXT NOT NULL,
            device_name VARCHAR(128),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_push_subscriptions_user
        ON push_subscriptions(user_id)
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id VARCHAR(64) PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            condition_type VARCHAR(32) NOT NULL,
            threshold INTEGER,
            meta JSONB NOT NULL DEFAULT '{}',
            sort_order INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id UUID NOT NULL,
            achievement_id VARCHAR(64) NOT NULL REFERENCES achievements(id),
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_achievements_user_id_achievement_id_key UNIQUE (user_id, achievement_id)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_achievements")
    op.execute("DROP TABLE IF EXISTS achievements")
    op.execute("DROP TABLE IF EXISTS push_subscriptions")
    op.execute("DROP TABLE IF EXISTS memories")
    op.execute("DROP TABLE IF EXISTS baku_profiles")
