"""
application.services.chat_history - Conversation persistence service.

Saves and loads chat transcripts keyed by session id. Used by the
conversation service so a chat can be resumed with ``resume_session``.
"""

from __future__ import annotations

from typing import Optional

from runcoach.domain.entities import ChatMessage, Conversation
from runcoach.infrastructure.log import CoachLogger, get_logger
from runcoach.infrastructure.persistence.chat_message_repo import SQLiteChatMessageRepository
from runcoach.infrastructure.persistence.conversation_repo import SQLiteConversationRepository


class ChatHistoryService:
    """Persists and retrieves conversation messages."""

    def __init__(
        self,
        conversation_repo: SQLiteConversationRepository,
        message_repo: SQLiteChatMessageRepository,
        logger: Optional[CoachLogger] = None,
    ):
        self._conversation_repo = conversation_repo
        self._message_repo = message_repo
        self._logger = logger or get_logger(__name__)

    async def ensure_conversation(self, user_id: str, conversation_id: str, agent_id: str = "") -> None:
        """Create the conversation record if it doesn't exist yet."""
        existing = await self._conversation_repo.get_by_conversation_id(conversation_id)
        if existing is None:
            await self._conversation_repo.save(Conversation(
                user_id=user_id, conversation_id=conversation_id, agent_id=agent_id,
            ))
            self._logger.info("Created conversation %s for user %s", conversation_id, user_id)

    async def save_user_message(self, conversation_id: str, content: str) -> int:
        """Save a user message; the first one also becomes the title."""
        msg_id = await self._message_repo.save(ChatMessage(
            conversation_id=conversation_id, role="user", content=content,
        ))
        await self._conversation_repo.update_last_message(conversation_id)

        conv = await self._conversation_repo.get_by_conversation_id(conversation_id)
        if conv and not conv.title:
            title = content[:60].strip()
            if len(content) > 60:
                title += "..."
            await self._conversation_repo.update_title(conversation_id, title)
        return msg_id

    async def save_assistant_message(self, conversation_id: str, content: str) -> int:
        msg_id = await self._message_repo.save(ChatMessage(
            conversation_id=conversation_id, role="assistant", content=content,
        ))
        await self._conversation_repo.update_last_message(conversation_id)
        return msg_id

    async def load_history(self, conversation_id: str) -> list[ChatMessage]:
        """All messages for a conversation, oldest first."""
        return await self._message_repo.get_by_conversation(conversation_id)

    async def list_conversations(self, user_id: str) -> list[Conversation]:
        return await self._conversation_repo.get_by_user(user_id)

    async def purge_old_data(self, user_id: str, cutoff_iso: str) -> int:
        """Delete conversations (and their messages) idle since before *cutoff_iso*."""
        removed = await self._conversation_repo.delete_old_for_user(user_id, cutoff_iso)
        if removed:
            self._logger.info("Purged %d old conversation(s) for user %s", removed, user_id)
        return removed
