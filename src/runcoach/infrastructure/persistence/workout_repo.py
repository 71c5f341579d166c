"""
infrastructure.persistence.workout_repo - SQLite workout repository.

Planned and completed sessions share one table. ``external_id`` is unique
per user (partial index), which is what makes activity sync idempotent
under concurrent runs.
"""

from __future__ import annotations

import uuid
from dataclasses import fields
from typing import Any, Optional

from runcoach.domain.entities import Workout
from runcoach.domain.exceptions import NotFoundError
from runcoach.infrastructure.persistence.connection import (
    AsyncSQLiteConnection,
    dumps_json,
    loads_json,
    utc_now_iso,
)

_COLUMNS = tuple(f.name for f in fields(Workout))
_JSON_COLUMNS = ("splits", "metadata")


class SQLiteWorkoutRepository:

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    # -- reads ---------------------------------------------------------------

    async def get_by_id(self, user_id: str, workout_id: str) -> Optional[Workout]:
        return await self._one(
            "SELECT * FROM workouts WHERE user_id = ? AND id = ?", (user_id, workout_id),
        )

    async def find_by_external_id(self, user_id: str, external_id: str) -> Optional[Workout]:
        return await self._one(
            "SELECT * FROM workouts WHERE user_id = ? AND external_id = ?",
            (user_id, external_id),
        )

    async def find_planned_for_date(self, user_id: str, day: str) -> list[Workout]:
        """Planned workouts on *day*, oldest first."""
        return await self._many(
            """SELECT * FROM workouts
               WHERE user_id = ? AND scheduled_date = ? AND status = 'planned'
               ORDER BY created_at ASC""",
            (user_id, day),
        )

    async def find_planned_after(self, user_id: str, day: str, limit: int = 3) -> list[Workout]:
        return await self._many(
            """SELECT * FROM workouts
               WHERE user_id = ? AND scheduled_date > ? AND status = 'planned'
               ORDER BY scheduled_date ASC LIMIT ?""",
            (user_id, day, limit),
        )

    async def find_completed_since(self, user_id: str, day: str) -> list[Workout]:
        return await self._many(
            """SELECT * FROM workouts
               WHERE user_id = ? AND scheduled_date >= ? AND status = 'completed'
               ORDER BY scheduled_date DESC, created_at DESC""",
            (user_id, day),
        )

    async def find_between(self, user_id: str, start: str, end: str) -> list[Workout]:
        return await self._many(
            """SELECT * FROM workouts
               WHERE user_id = ? AND scheduled_date >= ? AND scheduled_date <= ?
               ORDER BY scheduled_date ASC""",
            (user_id, start, end),
        )

    # -- writes --------------------------------------------------------------

    async def create(self, workout: Workout) -> Workout:
        now = utc_now_iso()
        values = self._entity_to_row(workout)
        values.update(id=workout.id or str(uuid.uuid4()), created_at=now, updated_at=now)
        async with self._conn.acquire() as conn:
            await conn.execute(
                f"""INSERT INTO workouts ({", ".join(_COLUMNS)})
                    VALUES ({", ".join("?" for _ in _COLUMNS)})""",
                tuple(values[c] for c in _COLUMNS),
            )
        return await self.get_by_id(workout.user_id, values["id"])

    async def update(self, user_id: str, workout_id: str, changes: dict[str, Any]) -> Workout:
        """Apply *changes* (column -> value) and return the stored record."""
        async with self._conn.acquire() as conn:
            await self._apply_changes(conn, user_id, workout_id, changes)
        return await self.get_by_id(user_id, workout_id)

    async def move_link(
        self,
        user_id: str,
        from_id: str,
        to_id: str,
        released: dict[str, Any],
        changes: dict[str, Any],
    ) -> Workout:
        """Release *from_id*'s external link and apply *changes* to *to_id* in one transaction."""
        async with self._conn.acquire() as conn:
            await self._apply_changes(conn, user_id, from_id, {**released, "external_id": None})
            await self._apply_changes(conn, user_id, to_id, changes)
        return await self.get_by_id(user_id, to_id)

    @staticmethod
    async def _apply_changes(conn, user_id: str, workout_id: str, changes: dict[str, Any]) -> None:
        unknown = set(changes) - set(_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown workout columns: {sorted(unknown)}")
        changes = {**changes, "updated_at": utc_now_iso()}
        params = [dumps_json(v) if k in _JSON_COLUMNS else v for k, v in changes.items()]
        cursor = await conn.execute(
            f"""UPDATE workouts SET {", ".join(f"{k} = ?" for k in changes)}
                WHERE user_id = ? AND id = ?""",
            (*params, user_id, workout_id),
        )
        if cursor.rowcount == 0:
            raise NotFoundError("workout", workout_id)

    # -- helpers -------------------------------------------------------------

    async def _one(self, sql: str, params: tuple) -> Optional[Workout]:
        rows = await self._fetch(sql, params)
        return rows[0] if rows else None

    async def _many(self, sql: str, params: tuple) -> list[Workout]:
        return await self._fetch(sql, params)

    async def _fetch(self, sql: str, params: tuple) -> list[Workout]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(sql, params)
            return [self._row_to_entity(r) for r in rows]

    @staticmethod
    def _entity_to_row(workout: Workout) -> dict[str, Any]:
        row = {c: getattr(workout, c) for c in _COLUMNS}
        for c in _JSON_COLUMNS:
            row[c] = dumps_json(row[c])
        return row

    @staticmethod
    def _row_to_entity(row) -> Workout:
        values = {c: row[c] for c in _COLUMNS}
        values["splits"] = loads_json(values["splits"], [])
        values["metadata"] = loads_json(values["metadata"], {})
        values["title"] = values["title"] or ""
        values["source"] = values["source"] or "plan"
        values["created_at"] = values["created_at"] or ""
        values["updated_at"] = values["updated_at"] or ""
        return Workout(**values)
