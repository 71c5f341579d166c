"""
infrastructure.persistence.conversation_repo - SQLite conversation repository.

Stores session metadata. ``conversation_id`` is the session id handed
back to callers so a chat can be resumed.
"""

from __future__ import annotations

from typing import Optional

from runcoach.domain.entities import Conversation
from runcoach.infrastructure.persistence.connection import AsyncSQLiteConnection, utc_now_iso


class SQLiteConversationRepository:

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def save(self, conversation: Conversation) -> int:
        now = utc_now_iso()
        async with self._conn.acquire() as conn:
            cursor = await conn.execute(
                """INSERT INTO conversations
                   (user_id, conversation_id, agent_id, title, last_message_at,
                    created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (conversation.user_id, conversation.conversation_id,
                 conversation.agent_id, conversation.title, now, now, now),
            )
            return cursor.lastrowid

    async def get_by_user(self, user_id: str) -> list[Conversation]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT * FROM conversations WHERE user_id = ?
                   ORDER BY last_message_at DESC""",
                (user_id,),
            )
            return [self._row_to_entity(r) for r in rows]

    async def get_by_conversation_id(self, conversation_id: str) -> Optional[Conversation]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                "SELECT * FROM conversations WHERE conversation_id = ?",
                (conversation_id,),
            )
            return self._row_to_entity(rows[0]) if rows else None

    async def update_last_message(self, conversation_id: str) -> None:
        now = utc_now_iso()
        async with self._conn.acquire() as conn:
            await conn.execute(
                """UPDATE conversations
                   SET last_message_at = ?, updated_at = ?
                   WHERE conversation_id = ?""",
                (now, now, conversation_id),
            )

    async def update_title(self, conversation_id: str, title: str) -> None:
        async with self._conn.acquire() as conn:
            await conn.execute(
                "UPDATE conversations SET title = ? WHERE conversation_id = ?",
                (title, conversation_id),
            )

    async def delete_old_for_user(self, user_id: str, cutoff_iso: str) -> int:
        """Delete conversations whose last message is before *cutoff_iso*."""
        async with self._conn.acquire() as conn:
            await conn.execute(
                """DELETE FROM chat_messages WHERE conversation_id IN (
                       SELECT conversation_id FROM conversations
                       WHERE user_id = ? AND last_message_at < ?)""",
                (user_id, cutoff_iso),
            )
            cursor = await conn.execute(
                "DELETE FROM conversations WHERE user_id = ? AND last_message_at < ?",
                (user_id, cutoff_iso),
            )
            return cursor.rowcount

    @staticmethod
    def _row_to_entity(row) -> Conversation:
        return Conversation(
            id=row["id"],
            user_id=row["user_id"] or "",
            conversation_id=row["conversation_id"] or "",
            agent_id=row["agent_id"] or "",
            title=row["title"] or "",
            last_message_at=row["last_message_at"] or "",
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
        )
