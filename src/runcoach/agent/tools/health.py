"""
agent.tools.health - Read-only tools for the health agent.
"""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, Field

from runcoach.agent.prompt import format_health, format_injury
from runcoach.agent.tools.base import BaseTool, ToolResult
from runcoach.agent.tools.registry import ToolResultCollector
from runcoach.application.context import AgentContext


class HealthTrendsInput(BaseModel):
    days: int = Field(default=14, ge=1, le=90, description="How many days back to look")


class GetHealthTrendsTool(BaseTool):
    """Longer history than the context carries, with simple averages."""

    name = "get_health_trends"
    description = (
        "Get daily sleep, HRV, resting heart rate and stress for the last N days, "
        "with averages. Use to judge trends beyond the last week."
    )

    def get_schema(self) -> type[BaseModel]:
        return HealthTrendsInput

    async def execute(
        self, ctx: AgentContext, collector: ToolResultCollector, days: int = 14, **kwargs,
    ) -> ToolResult:
        start = (ctx.date - timedelta(days=days)).isoformat()
        snapshots = await ctx.store.health.get_range(ctx.user_id, start, ctx.date_iso)
        if not snapshots:
            return ToolResult(output=f"No health data in the last {days} days.", data=[])

        def avg(values):
            values = [v for v in values if v is not None]
            return round(sum(values) / len(values), 1) if values else None

        averages = {
            "sleep_hours": avg(s.sleep_hours for s in snapshots),
            "hrv": avg(s.hrv for s in snapshots),
            "resting_hr": avg(s.resting_hr for s in snapshots),
            "stress_level": avg(s.stress_level for s in snapshots),
        }
        lines = [format_health(s) for s in snapshots]
        lines.append("Averages: " + ", ".join(f"{k}={v}" for k, v in averages.items() if v is not None))
        return ToolResult(output="\n".join(lines), data=averages)


class InjuriesInput(BaseModel):
    pass


class GetInjuriesTool(BaseTool):

    name = "get_injuries"
    description = "List the athlete's active injuries, most severe first."

    def get_schema(self) -> type[BaseModel]:
        return InjuriesInput

    async def execute(self, ctx: AgentContext, collector: ToolResultCollector, **kwargs) -> ToolResult:
        injuries = ctx.snapshot.injuries
        if not injuries:
            return ToolResult(output="No active injuries.", data=[])
        return ToolResult(output="\n".join(format_injury(i) for i in injuries), data=list(injuries))
