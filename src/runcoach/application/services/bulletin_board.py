"""
application.services.bulletin_board - Shared whiteboard for agents and the user.

Authors post entries; readers pick what they need with filters. Entries
are never addressed to anyone, never edited and never deleted here.
Priority orders results and nothing else. ``requires_response`` is a
hint for readers; the board attaches no workflow to it. Expired entries
stay in storage and are dropped by the read filter.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from runcoach.domain.entities import WhiteboardEntry
from runcoach.domain.exceptions import ValidationError
from runcoach.domain.models import EntryType, WhiteboardPayload, WhiteboardQuery
from runcoach.infrastructure.log import CoachLogger, get_logger
from runcoach.infrastructure.persistence.whiteboard_repo import SQLiteWhiteboardRepository

CONTEXT_ENTRY_TYPES = (
    EntryType.OBSERVATION.value,
    EntryType.INSIGHT.value,
    EntryType.ALERT.value,
    EntryType.SUGGESTION.value,
)


class BulletinBoard:

    def __init__(self, repo: SQLiteWhiteboardRepository, logger: Optional[CoachLogger] = None):
        self._repo = repo
        self._logger = logger or get_logger(__name__)

    async def post(
        self,
        user_id: str,
        agent_id: str,
        payload: WhiteboardPayload,
        context_date: Optional[str] = None,
    ) -> WhiteboardEntry:
        """Validate and persist *payload*. Returns the stored entry."""
        if not 0 <= payload.priority <= 100:
            raise ValidationError(
                "Priority must be between 0 and 100", field="priority", value=payload.priority,
            )
        if not payload.content or not payload.content.strip():
            raise ValidationError("Whiteboard content must not be empty", field="content")
        if not isinstance(payload.entry_type, EntryType):
            raise ValidationError(
                f"Unknown entry type: {payload.entry_type}", field="entry_type",
                value=payload.entry_type,
            )

        entry = await self._repo.insert(user_id, agent_id, payload, context_date)
        self._logger.info(
            "Posted %s entry from %s (priority=%d)", entry.entry_type, agent_id, entry.priority,
        )
        return entry

    async def query(
        self,
        user_id: str,
        filters: WhiteboardQuery = WhiteboardQuery(),
        now: Optional[datetime] = None,
    ) -> list[WhiteboardEntry]:
        return await self._repo.find(user_id, filters, now or datetime.now(timezone.utc))

    # ---------------------------------------------------------------------------
    # Read helpers. Optional context: failures degrade to an empty list.
    # ---------------------------------------------------------------------------

    async def recent_for_context(
        self, user_id: str, days: int = 3, limit: int = 20,
    ) -> list[WhiteboardEntry]:
        return await self._safe_query(user_id, WhiteboardQuery(
            entry_types=CONTEXT_ENTRY_TYPES, since_hours=days * 24, limit=limit,
        ))

    async def alerts(self, user_id: str, limit: int = 10) -> list[WhiteboardEntry]:
        return await self._safe_query(user_id, WhiteboardQuery(
            entry_types=(EntryType.ALERT.value,), limit=limit,
        ))

    async def requiring_response(self, user_id: str, limit: int = 10) -> list[WhiteboardEntry]:
        return await self._safe_query(user_id, WhiteboardQuery(requires_response=True, limit=limit))

    async def _safe_query(self, user_id: str, filters: WhiteboardQuery) -> list[WhiteboardEntry]:
        try:
            return await self.query(user_id, filters)
        except Exception:
            self._logger.exception("Whiteboard read failed, continuing without entries")
            return []
