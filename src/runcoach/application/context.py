"""
application.context - Per-invocation agent context.

Every agent run receives one AgentContext, built by the ContextLoader
and never mutated afterwards. Two concurrent users get two different
contexts; nothing is shared except the Store handle.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Optional
from uuid import uuid4

from runcoach.domain.models import ContextSnapshot
from runcoach.domain.tasks import AgentTask, DailyAnalysisTask

if TYPE_CHECKING:
    from runcoach.application.store import Store


@dataclass(frozen=True)
class AgentContext:
    """Immutable bundle handed to an agent and its tools.

    Attributes:
        user_id:     Owner of every record read or written during the run.
        timezone:    IANA name; ``date`` is "today" in this zone.
        snapshot:    Data loaded up front so agents never fetch mid-conversation.
        task:        Which analysis the agent should perform.
        store:       Repositories and the bulletin board, scoped by user id in every call.
        request_id:  Unique per context, for tracing.
    """
    user_id: str
    user_name: str
    timezone: str
    date: date
    snapshot: ContextSnapshot
    store: Store
    task: AgentTask = DailyAnalysisTask()
    request_id: str = dataclasses.field(default_factory=lambda: uuid4().hex)

    @property
    def date_iso(self) -> str:
        return self.date.isoformat()

    def with_task(self, task: AgentTask, snapshot: Optional[ContextSnapshot] = None) -> AgentContext:
        return dataclasses.replace(
            self, task=task, snapshot=snapshot or self.snapshot, request_id=uuid4().hex,
        )
