"""
agent.tools.registry - Tool registration and the per-run tool server.

``ToolRegistry`` holds an agent's tools. ``create_server`` binds them to
one AgentContext and one ToolResultCollector and exposes them under
names namespaced by the owning agent (``training_coach__get_training_plan``),
so two agents' tools never collide.

A failing tool is reported back to the model as ``Error: ...`` with
``is_error`` set and is still recorded. Nothing is retried here.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from langchain_core.tools import StructuredTool
from pydantic import ValidationError as SchemaValidationError

from runcoach.agent.tools.base import BaseTool
from runcoach.application.context import AgentContext
from runcoach.domain.entities import WhiteboardEntry
from runcoach.domain.models import ToolCallRecord
from runcoach.infrastructure.log import CoachLogger, get_logger


@dataclass(frozen=True)
class ToolOutput:
    text: str
    is_error: bool = False


class ToolResultCollector:
    """Accumulates tool calls and whiteboard writes for one agent run."""

    def __init__(self):
        self._calls: list[ToolCallRecord] = []
        self._entries: list[WhiteboardEntry] = []

    def record_call(self, record: ToolCallRecord) -> None:
        self._calls.append(record)

    def add_whiteboard_entry(self, entry: WhiteboardEntry) -> None:
        self._entries.append(entry)

    @property
    def tool_calls(self) -> tuple[ToolCallRecord, ...]:
        return tuple(self._calls)

    @property
    def whiteboard_entries(self) -> tuple[WhiteboardEntry, ...]:
        return tuple(self._entries)


def server_name_for(agent_id: str) -> str:
    return agent_id.replace("-", "_")


class ToolServer:
    """Tools bound to one context and collector, addressed by namespaced name."""

    version = "1.0.0"

    def __init__(
        self,
        name: str,
        tools: list[BaseTool],
        ctx: AgentContext,
        collector: ToolResultCollector,
        logger: Optional[CoachLogger] = None,
    ):
        self.name = name
        self._tools = {self.qualify(t.name): t for t in tools}
        self._ctx = ctx
        self._collector = collector
        self._logger = logger or get_logger(__name__)

    def qualify(self, tool_name: str) -> str:
        return f"{self.name}__{tool_name}"

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    async def call(self, name: str, arguments: dict[str, Any]) -> ToolOutput:
        """Validate, execute and record one tool call."""
        tool = self._tools.get(name) or self._tools.get(self.qualify(name))
        started = time.perf_counter()
        arguments = dict(arguments or {})

        if tool is None:
            output = ToolOutput(f"Error: unknown tool '{name}'", is_error=True)
            bare_name = name
        else:
            bare_name = tool.name
            output = await self._run(tool, arguments)

        self._collector.record_call(ToolCallRecord(
            name=bare_name,
            arguments=arguments,
            output=output.text,
            is_error=output.is_error,
            timestamp=datetime.now(timezone.utc),
            duration_ms=(time.perf_counter() - started) * 1000,
        ))
        return output

    async def _run(self, tool: BaseTool, arguments: dict[str, Any]) -> ToolOutput:
        try:
            validated = tool.get_schema().model_validate(arguments)
        except SchemaValidationError as e:
            self._logger.warning("Invalid arguments for %s: %s", tool.name, e)
            return ToolOutput(f"Error: invalid arguments for {tool.name}: {e}", is_error=True)
        try:
            result = await tool.execute(self._ctx, self._collector, **validated.model_dump())
        except Exception as e:
            self._logger.warning("Tool %s failed: %s", tool.name, e)
            return ToolOutput(f"Error: {e}", is_error=True)
        return ToolOutput(result.output)

    def to_langchain_tools(self) -> list[StructuredTool]:
        """Expose the tools as LangChain StructuredTools for ``bind_tools``."""
        lc_tools = []
        for qualified, tool in self._tools.items():

            def _make_coroutine(tool_name: str):
                async def run(**kwargs: Any) -> str:
                    return (await self.call(tool_name, kwargs)).text
                return run

            lc_tools.append(StructuredTool.from_function(
                coroutine=_make_coroutine(qualified),
                name=qualified,
                description=tool.description,
                args_schema=tool.get_schema(),
            ))
        return lc_tools


class ToolRegistry:
    """Manages an agent's tool set."""

    def __init__(self, logger: Optional[CoachLogger] = None):
        self._tools: dict[str, BaseTool] = {}
        self._logger = logger or get_logger(__name__)

    def register(self, tool: BaseTool) -> None:
        self._tools[tool.name] = tool
        self._logger.debug("Registered tool: %s", tool.name)

    def get(self, name: str) -> BaseTool:
        if name not in self._tools:
            raise KeyError(f"Tool '{name}' not registered")
        return self._tools[name]

    def all(self) -> list[BaseTool]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools.keys())

    def create_server(
        self, server_name: str, ctx: AgentContext, collector: ToolResultCollector,
    ) -> ToolServer:
        return ToolServer(server_name, self.all(), ctx, collector, self._logger)
