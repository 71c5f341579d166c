"""
infrastructure.persistence.injury_repo - SQLite injury repository.
"""

from __future__ import annotations

import uuid

from runcoach.domain.entities import Injury
from runcoach.infrastructure.persistence.connection import AsyncSQLiteConnection, utc_now_iso


class SQLiteInjuryRepository:

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def save(self, injury: Injury) -> str:
        injury_id = injury.id or str(uuid.uuid4())
        async with self._conn.acquire() as conn:
            await conn.execute(
                """INSERT INTO injuries
                   (id, user_id, body_part, description, severity, status, reported_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (injury_id, injury.user_id, injury.body_part, injury.description,
                 injury.severity, injury.status, injury.reported_at or utc_now_iso()),
            )
        return injury_id

    async def find_active(self, user_id: str) -> list[Injury]:
        """Active injuries, most severe first."""
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT * FROM injuries
                   WHERE user_id = ? AND status = 'active'
                   ORDER BY severity DESC""",
                (user_id,),
            )
            return [self._row_to_entity(r) for r in rows]

    @staticmethod
    def _row_to_entity(row) -> Injury:
        return Injury(
            id=row["id"],
            user_id=row["user_id"],
            body_part=row["body_part"] or "",
            description=row["description"] or "",
            severity=row["severity"] or 1,
            status=row["status"] or "active",
            reported_at=row["reported_at"] or "",
        )
