"""
infrastructure.persistence.health_repo - SQLite health snapshot repository.

One snapshot per (user, date). ``upsert`` merges the metadata dict so
several sync sources can contribute to the same day.
"""

from __future__ import annotations

import uuid
from typing import Optional

from runcoach.domain.entities import HealthSnapshot
from runcoach.infrastructure.persistence.connection import (
    AsyncSQLiteConnection,
    dumps_json,
    loads_json,
    utc_now_iso,
)

_VALUE_COLUMNS = (
    "sleep_hours", "sleep_quality", "resting_hr", "hrv",
    "stress_level", "energy_level", "soreness_level",
)


class SQLiteHealthRepository:

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def get_by_date(self, user_id: str, day: str) -> Optional[HealthSnapshot]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                "SELECT * FROM health_snapshots WHERE user_id = ? AND snapshot_date = ?",
                (user_id, day),
            )
            return self._row_to_entity(rows[0]) if rows else None

    async def get_range(
        self, user_id: str, start: str, end: str, limit: Optional[int] = None,
    ) -> list[HealthSnapshot]:
        """Snapshots with start <= date <= end, newest first."""
        sql = """SELECT * FROM health_snapshots
                 WHERE user_id = ? AND snapshot_date >= ? AND snapshot_date <= ?
                 ORDER BY snapshot_date DESC"""
        params: tuple = (user_id, start, end)
        if limit is not None:
            sql += " LIMIT ?"
            params += (limit,)
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(sql, params)
            return [self._row_to_entity(r) for r in rows]

    async def upsert(self, snapshot: HealthSnapshot) -> HealthSnapshot:
        existing = await self.get_by_date(snapshot.user_id, snapshot.snapshot_date)
        now = utc_now_iso()
        if existing is None:
            async with self._conn.acquire() as conn:
                await conn.execute(
                    f"""INSERT INTO health_snapshots
                        (id, user_id, snapshot_date, {", ".join(_VALUE_COLUMNS)},
                         source, metadata, created_at, updated_at)
                        VALUES (?, ?, ?, {", ".join("?" for _ in _VALUE_COLUMNS)}, ?, ?, ?, ?)""",
                    (snapshot.id or str(uuid.uuid4()), snapshot.user_id, snapshot.snapshot_date,
                     *(getattr(snapshot, c) for c in _VALUE_COLUMNS),
                     snapshot.source, dumps_json(snapshot.metadata), now, now),
                )
        else:
            # keep previously recorded values the new snapshot doesn't supply
            values = [
                getattr(snapshot, c) if getattr(snapshot, c) is not None else getattr(existing, c)
                for c in _VALUE_COLUMNS
            ]
            metadata = {**existing.metadata, **snapshot.metadata}
            async with self._conn.acquire() as conn:
                await conn.execute(
                    f"""UPDATE health_snapshots
                        SET {", ".join(f"{c} = ?" for c in _VALUE_COLUMNS)},
                            source = ?, metadata = ?, updated_at = ?
                        WHERE id = ?""",
                    (*values, snapshot.source, dumps_json(metadata), now, existing.id),
                )
        return await self.get_by_date(snapshot.user_id, snapshot.snapshot_date)

    @staticmethod
    def _row_to_entity(row) -> HealthSnapshot:
        return HealthSnapshot(
            id=row["id"],
            user_id=row["user_id"],
            snapshot_date=row["snapshot_date"],
            sleep_hours=row["sleep_hours"],
            sleep_quality=row["sleep_quality"],
            resting_hr=row["resting_hr"],
            hrv=row["hrv"],
            stress_level=row["stress_level"],
            energy_level=row["energy_level"],
            soreness_level=row["soreness_level"],
            source=row["source"] or "manual",
            metadata=loads_json(row["metadata"], {}),
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
        )
