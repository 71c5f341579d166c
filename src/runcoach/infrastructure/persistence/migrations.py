"""
infrastructure.persistence.migrations - Table bootstrap.

Idempotent CREATE TABLE / CREATE INDEX statements run once at startup by
the factory or the CLI's ``init-db`` command.
"""

from __future__ import annotations

from runcoach.infrastructure.persistence.connection import AsyncSQLiteConnection

_TABLES = [
    """CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT,
        email TEXT,
        timezone TEXT,
        created_at TEXT,
        updated_at TEXT
    )""",
    """CREATE TABLE IF NOT EXISTS health_snapshots (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        snapshot_date TEXT NOT NULL,
        sleep_hours REAL,
        sleep_quality INTEGER,
        resting_hr INTEGER,
        hrv REAL,
        stress_level INTEGER,
        energy_level INTEGER,
        soreness_level INTEGER,
        source TEXT,
        metadata TEXT,
        created_at TEXT,
        updated_at TEXT,
        UNIQUE (user_id, snapshot_date)
    )""",
    """CREATE TABLE IF NOT EXISTS training_plans (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT,
        goal_event TEXT,
        goal_time TEXT,
        start_date TEXT,
        end_date TEXT,
        total_weeks INTEGER,
        status TEXT,
        phases TEXT,
        metadata TEXT,
        created_at TEXT
    )""",
    """CREATE TABLE IF NOT EXISTS workouts (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT,
        workout_type TEXT,
        status TEXT,
        scheduled_date TEXT,
        plan_id TEXT,
        week_number INTEGER,
        planned_duration_minutes INTEGER,
        prescribed_description TEXT,
        prescribed_distance_miles REAL,
        prescribed_pace_per_mile TEXT,
        actual_duration_minutes INTEGER,
        actual_distance_miles REAL,
        actual_pace_per_mile TEXT,
        avg_heart_rate INTEGER,
        max_heart_rate INTEGER,
        calories INTEGER,
        elevation_gain_ft REAL,
        cadence_avg REAL,
        splits TEXT,
        coach_notes TEXT,
        athlete_feedback TEXT,
        perceived_exertion INTEGER,
        external_id TEXT,
        source TEXT,
        metadata TEXT,
        completed_at TEXT,
        created_at TEXT,
        updated_at TEXT
    )""",
    # One record per device activity and user.
    """CREATE UNIQUE INDEX IF NOT EXISTS idx_workouts_user_external
        ON workouts (user_id, external_id) WHERE external_id IS NOT NULL""",
    """CREATE INDEX IF NOT EXISTS idx_workouts_user_date
        ON workouts (user_id, scheduled_date)""",
    """CREATE TABLE IF NOT EXISTS weekly_summaries (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        plan_id TEXT,
        week_number INTEGER,
        start_date TEXT,
        end_date TEXT,
        status TEXT,
        planned_miles REAL,
        actual_miles REAL,
        summary TEXT,
        workouts_completed INTEGER,
        workouts_skipped INTEGER,
        total_duration_minutes INTEGER,
        updated_at TEXT
    )""",
    """CREATE UNIQUE INDEX IF NOT EXISTS idx_weekly_summaries_user_start
        ON weekly_summaries (user_id, start_date)""",
    """CREATE TABLE IF NOT EXISTS injuries (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        body_part TEXT,
        description TEXT,
        severity INTEGER,
        status TEXT,
        reported_at TEXT
    )""",
    """CREATE TABLE IF NOT EXISTS whiteboard_entries (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        agent_id TEXT NOT NULL,
        entry_type TEXT NOT NULL,
        title TEXT,
        content TEXT NOT NULL,
        structured_data TEXT,
        priority INTEGER,
        visibility TEXT,
        requires_response INTEGER,
        tags TEXT,
        related_entity_type TEXT,
        related_entity_id TEXT,
        context_date TEXT,
        expires_at TEXT,
        created_at TEXT
    )""",
    """CREATE INDEX IF NOT EXISTS idx_whiteboard_user_created
        ON whiteboard_entries (user_id, created_at)""",
    """CREATE TABLE IF NOT EXISTS conversations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT,
        conversation_id TEXT UNIQUE,
        agent_id TEXT,
        title TEXT,
        last_message_at TEXT,
        created_at TEXT,
        updated_at TEXT
    )""",
    """CREATE TABLE IF NOT EXISTS chat_messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        conversation_id TEXT,
        role TEXT,
        content TEXT,
        created_at TEXT,
        FOREIGN KEY (conversation_id) REFERENCES conversations(conversation_id)
    )""",
]


async def run_migrations(connection: AsyncSQLiteConnection) -> None:
    """Create all tables and indexes if they don't exist."""
    async with connection.acquire() as conn:
        for ddl in _TABLES:
            await conn.execute(ddl)
