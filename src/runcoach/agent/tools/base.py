"""
agent.tools.base - Base tool interface and result container.

All agent tools inherit from BaseTool and return ToolResult. Executors
receive the AgentContext and the run's ToolResultCollector; any
whiteboard entry a tool writes goes through the collector so the
harness can report it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from runcoach.application.context import AgentContext

if TYPE_CHECKING:
    from runcoach.agent.tools.registry import ToolResultCollector


@dataclass
class ToolResult:
    """Result returned by a tool execution.

    output:  String the model sees as the tool result.
    data:    Structured data for callers and tests (not sent to the model).
    """
    output: str
    data: Any = None


class BaseTool(ABC):
    """Abstract base for all agent tools."""

    name: str
    description: str

    @abstractmethod
    async def execute(
        self, ctx: AgentContext, collector: ToolResultCollector, **kwargs,
    ) -> ToolResult:
        """Execute the tool with validated arguments."""
        ...

    @abstractmethod
    def get_schema(self) -> type[BaseModel]:
        """Return the Pydantic schema for this tool's input arguments."""
        ...
