"""
agent.tools.whiteboard - Post to and read from the shared whiteboard.

Both agents get these two tools. Posts go through the collector so the
harness can return them with the agent's result.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from runcoach.agent.prompt import format_entry
from runcoach.agent.tools.base import BaseTool, ToolResult
from runcoach.agent.tools.registry import ToolResultCollector
from runcoach.application.context import AgentContext
from runcoach.domain.models import EntryType, Visibility, WhiteboardPayload, WhiteboardQuery


class PostToWhiteboardInput(BaseModel):
    entry_type: EntryType = Field(description="Kind of entry: observation, alert, suggestion, insight, ...")
    content: str = Field(min_length=1, description="The finding, in one or two sentences")
    title: Optional[str] = Field(default=None, description="Short headline")
    priority: int = Field(default=50, ge=0, le=100, description="0-100, higher shows first")
    requires_response: bool = Field(default=False, description="True if the athlete should answer")
    tags: list[str] = Field(default_factory=list)
    structured_data: dict[str, Any] = Field(default_factory=dict)


class PostToWhiteboardTool(BaseTool):
    """Share a finding with the athlete and the other agent."""

    name = "post_to_whiteboard"
    description = (
        "Post an observation, alert, suggestion or insight to the shared whiteboard. "
        "Use for findings the athlete or the other coach should see later."
    )

    def __init__(self, agent_id: str):
        self._agent_id = agent_id

    def get_schema(self) -> type[BaseModel]:
        return PostToWhiteboardInput

    async def execute(
        self,
        ctx: AgentContext,
        collector: ToolResultCollector,
        entry_type: EntryType = EntryType.OBSERVATION,
        content: str = "",
        title: Optional[str] = None,
        priority: int = 50,
        requires_response: bool = False,
        tags: Optional[list[str]] = None,
        structured_data: Optional[dict[str, Any]] = None,
        **kwargs,
    ) -> ToolResult:
        entry = await ctx.store.board.post(
            ctx.user_id,
            self._agent_id,
            WhiteboardPayload(
                entry_type=EntryType(entry_type),
                content=content,
                title=title,
                priority=priority,
                visibility=Visibility.ALL,
                requires_response=requires_response,
                tags=tuple(tags or ()),
                structured_data=dict(structured_data or {}),
            ),
            context_date=ctx.date_iso,
        )
        collector.add_whiteboard_entry(entry)
        return ToolResult(output=f"Posted {entry.entry_type} to whiteboard: {title or content[:60]}", data=entry)


class ReadWhiteboardInput(BaseModel):
    entry_types: list[str] = Field(default_factory=list, description="Filter by entry type")
    authors: list[str] = Field(default_factory=list, description="Filter by agent id")
    since_hours: float = Field(default=72, gt=0, le=24 * 30)
    limit: int = Field(default=10, ge=1, le=50)


class ReadWhiteboardTool(BaseTool):

    name = "read_whiteboard"
    description = (
        "Read recent whiteboard entries, optionally filtered by type or author. "
        "Use to see what the other coach has noticed."
    )

    def get_schema(self) -> type[BaseModel]:
        return ReadWhiteboardInput

    async def execute(
        self,
        ctx: AgentContext,
        collector: ToolResultCollector,
        entry_types: Optional[list[str]] = None,
        authors: Optional[list[str]] = None,
        since_hours: float = 72,
        limit: int = 10,
        **kwargs,
    ) -> ToolResult:
        entries = await ctx.store.board.query(ctx.user_id, WhiteboardQuery(
            entry_types=tuple(entry_types or ()),
            authors=tuple(authors or ()),
            since_hours=since_hours,
            limit=limit,
        ))
        if not entries:
            return ToolResult(output="No whiteboard entries match.", data=[])
        return ToolResult(output="\n".join(format_entry(e) for e in entries), data=entries)
