"""
infrastructure.persistence.whiteboard_repo - SQLite bulletin-board storage.

Insert-only. Expiry is a read-time filter: expired rows stay in the
table and are skipped unless the query asks for them explicitly.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from runcoach.domain.entities import WhiteboardEntry
from runcoach.domain.models import WhiteboardPayload, WhiteboardQuery
from runcoach.infrastructure.persistence.connection import (
    AsyncSQLiteConnection,
    dumps_json,
    loads_json,
    to_utc_iso,
    utc_now_iso,
)


class SQLiteWhiteboardRepository:

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def insert(
        self,
        user_id: str,
        agent_id: str,
        payload: WhiteboardPayload,
        context_date: Optional[str] = None,
    ) -> WhiteboardEntry:
        entry = WhiteboardEntry(
            id=str(uuid.uuid4()),
            user_id=user_id,
            agent_id=agent_id,
            entry_type=payload.entry_type.value,
            title=payload.title,
            content=payload.content,
            structured_data=dict(payload.structured_data),
            priority=payload.priority,
            visibility=payload.visibility.value,
            requires_response=payload.requires_response,
            tags=tuple(payload.tags),
            related_entity_type=payload.related_entity_type,
            related_entity_id=payload.related_entity_id,
            context_date=context_date,
            expires_at=to_utc_iso(payload.expires_at) if payload.expires_at else None,
            created_at=utc_now_iso(),
        )
        async with self._conn.acquire() as conn:
            await conn.execute(
                """INSERT INTO whiteboard_entries
                   (id, user_id, agent_id, entry_type, title, content, structured_data,
                    priority, visibility, requires_response, tags, related_entity_type,
                    related_entity_id, context_date, expires_at, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (entry.id, entry.user_id, entry.agent_id, entry.entry_type, entry.title,
                 entry.content, dumps_json(entry.structured_data), entry.priority,
                 entry.visibility, int(entry.requires_response), dumps_json(list(entry.tags)),
                 entry.related_entity_type, entry.related_entity_id, entry.context_date,
                 entry.expires_at, entry.created_at),
            )
        return entry

    async def find(
        self,
        user_id: str,
        query: WhiteboardQuery,
        now: Optional[datetime] = None,
    ) -> list[WhiteboardEntry]:
        """Entries matching *query*, highest priority first, then newest."""
        now = now or datetime.now(timezone.utc)
        clauses = ["user_id = ?"]
        params: list = [user_id]

        if not query.include_expired:
            clauses.append("(expires_at IS NULL OR expires_at > ?)")
            params.append(to_utc_iso(now))
        if query.authors:
            clauses.append(f"agent_id IN ({', '.join('?' for _ in query.authors)})")
            params.extend(query.authors)
        if query.entry_types:
            clauses.append(f"entry_type IN ({', '.join('?' for _ in query.entry_types)})")
            params.extend(query.entry_types)
        if query.visibility:
            clauses.append(f"visibility IN ({', '.join('?' for _ in query.visibility)})")
            params.extend(query.visibility)
        since = query.since
        if query.since_hours is not None:
            window_start = now - timedelta(hours=query.since_hours)
            since = max(since, window_start) if since else window_start
        if since is not None:
            clauses.append("created_at >= ?")
            params.append(to_utc_iso(since))
        if query.context_date is not None:
            clauses.append("context_date = ?")
            params.append(query.context_date)
        if query.requires_response is not None:
            clauses.append("requires_response = ?")
            params.append(int(query.requires_response))

        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                f"""SELECT * FROM whiteboard_entries
                    WHERE {" AND ".join(clauses)}
                    ORDER BY priority DESC, created_at DESC""",
                tuple(params),
            )
        entries = [self._row_to_entity(r) for r in rows]

        # tags live in a JSON column; match any requested tag
        if query.tags:
            wanted = set(query.tags)
            entries = [e for e in entries if wanted.intersection(e.tags)]
        if query.limit is not None:
            entries = entries[: query.limit]
        return entries

    @staticmethod
    def _row_to_entity(row) -> WhiteboardEntry:
        return WhiteboardEntry(
            id=row["id"],
            user_id=row["user_id"],
            agent_id=row["agent_id"],
            entry_type=row["entry_type"],
            title=row["title"],
            content=row["content"],
            structured_data=loads_json(row["structured_data"], {}),
            priority=row["priority"] if row["priority"] is not None else 50,
            visibility=row["visibility"] or "all",
            requires_response=bool(row["requires_response"]),
            tags=tuple(loads_json(row["tags"], [])),
            related_entity_type=row["related_entity_type"],
            related_entity_id=row["related_entity_id"],
            context_date=row["context_date"],
            expires_at=row["expires_at"],
            created_at=row["created_at"] or "",
        )
