"""
infrastructure.persistence.connection - Async SQLite connection manager.

One short-lived aiosqlite connection per operation, committed on success
and rolled back on exception. Store failures are re-raised as
DatabaseError so callers see one error type regardless of driver.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

import aiosqlite

from runcoach.domain.exceptions import DatabaseError
from runcoach.infrastructure.log import CoachLogger, get_logger


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def to_utc_iso(value: datetime) -> str:
    """Normalise *value* so stored timestamps compare correctly as text."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class AsyncSQLiteConnection:
    """Async SQLite connection provider with auto-commit/rollback."""

    def __init__(self, db_path: str, logger: Optional[CoachLogger] = None):
        self._db_path = db_path
        self._logger = logger or get_logger(__name__)

    @property
    def db_path(self) -> str:
        return self._db_path

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield an async SQLite connection with FK support.

        Commits on success, rolls back on exception.
        """
        try:
            async with aiosqlite.connect(self._db_path) as conn:
                await conn.execute("PRAGMA foreign_keys = ON")
                conn.row_factory = aiosqlite.Row
                try:
                    yield conn
                    await conn.commit()
                except Exception:
                    await conn.rollback()
                    self._logger.exception("Database operation failed, transaction rolled back.")
                    raise
        except sqlite3.IntegrityError:
            # callers resolve constraint races themselves
            raise
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc), context={"db_path": self._db_path}) from exc


def dumps_json(value) -> Optional[str]:
    return None if value is None else json.dumps(value, default=str)


def loads_json(raw: Optional[str], default):
    if not raw:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        return default
