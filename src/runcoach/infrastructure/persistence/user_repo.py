"""
infrastructure.persistence.user_repo - SQLite athlete repository.
"""

from __future__ import annotations

import uuid
from typing import Optional

from runcoach.domain.entities import User
from runcoach.infrastructure.persistence.connection import AsyncSQLiteConnection, utc_now_iso


class SQLiteUserRepository:

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def save(self, user: User) -> User:
        now = utc_now_iso()
        user_id = user.id or str(uuid.uuid4())
        async with self._conn.acquire() as conn:
            await conn.execute(
                """INSERT INTO users (id, name, email, timezone, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                     name = excluded.name, email = excluded.email,
                     timezone = excluded.timezone, updated_at = excluded.updated_at""",
                (user_id, user.name, user.email, user.timezone, now, now),
            )
        return await self.get_by_id(user_id)

    async def get_by_id(self, user_id: str) -> Optional[User]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                "SELECT * FROM users WHERE id = ?", (user_id,),
            )
            return self._row_to_entity(rows[0]) if rows else None

    @staticmethod
    def _row_to_entity(row) -> User:
        return User(
            id=row["id"],
            name=row["name"] or "",
            email=row["email"] or "",
            timezone=row["timezone"] or "America/Chicago",
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
        )
