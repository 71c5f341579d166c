"""
infrastructure.persistence.chat_message_repo - SQLite chat message repository.

Stores individual conversation turns (user and assistant text).
"""

from __future__ import annotations

from runcoach.domain.entities import ChatMessage
from runcoach.infrastructure.persistence.connection import AsyncSQLiteConnection, utc_now_iso


class SQLiteChatMessageRepository:

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def save(self, message: ChatMessage) -> int:
        async with self._conn.acquire() as conn:
            cursor = await conn.execute(
                """INSERT INTO chat_messages (conversation_id, role, content, created_at)
                   VALUES (?, ?, ?, ?)""",
                (message.conversation_id, message.role, message.content, utc_now_iso()),
            )
            return cursor.lastrowid

    async def get_by_conversation(self, conversation_id: str) -> list[ChatMessage]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT * FROM chat_messages
                   WHERE conversation_id = ?
                   ORDER BY id ASC""",
                (conversation_id,),
            )
            return [self._row_to_entity(r) for r in rows]

    @staticmethod
    def _row_to_entity(row) -> ChatMessage:
        return ChatMessage(
            id=row["id"],
            conversation_id=row["conversation_id"] or "",
            role=row["role"] or "",
            content=row["content"] or "",
            created_at=row["created_at"] or "",
        )
