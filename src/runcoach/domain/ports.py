"""
domain.ports - Abstract interfaces (Protocols) for all system boundaries.

Application services, agents and workflows depend only on these
protocols. Infrastructure modules provide the concrete implementations,
and tests substitute scripted fakes.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Optional, Protocol, runtime_checkable

from runcoach.domain.models import ConversationMessage, ConversationRequest


# ---------------------------------------------------------------------------
# LLM ports
# ---------------------------------------------------------------------------

@runtime_checkable
class ConversationServicePort(Protocol):
    """Tool-calling LLM service.

    ``query`` yields assistant, tool-call and stream-delta messages in
    order and finishes with a single ResultMessage. The service, not the
    caller, decides which tools run and when the conversation stops.
    """

    def query(self, request: ConversationRequest) -> AsyncIterator[ConversationMessage]: ...


@runtime_checkable
class LLMClientPort(Protocol):
    """What workflows receive as "the LLM client"."""

    @property
    def conversation(self) -> ConversationServicePort: ...

    async def complete(
        self, system_prompt: str, user_prompt: str, *, fast: bool = False,
    ) -> str: ...


@runtime_checkable
class ToolServerPort(Protocol):
    """Tool set bound to one agent invocation."""

    name: str

    @property
    def tool_names(self) -> list[str]: ...

    async def call(self, name: str, arguments: dict[str, Any]) -> Any: ...


# ---------------------------------------------------------------------------
# Fitness tracker port
# ---------------------------------------------------------------------------

@runtime_checkable
class ActivityTrackerPort(Protocol):
    """Date-keyed client for the fitness-tracking device API."""

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def list_activities(self, limit: int = 20) -> list[dict[str, Any]]: ...

    async def get_activity(self, activity_id: str) -> Optional[dict[str, Any]]: ...

    async def get_activity_splits(self, activity_id: str) -> Optional[dict[str, Any]]: ...

    async def get_daily_summary(self, day: str) -> Optional[dict[str, Any]]: ...

    async def get_sleep_data(self, day: str) -> Optional[dict[str, Any]]: ...

    async def get_hrv_data(self, day: str) -> Optional[dict[str, Any]]: ...

    async def get_body_battery(self, start: str, end: str) -> list[dict[str, Any]]: ...
