"""
agent.tools.training - Read-only tools for the training coach.
"""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, Field

from runcoach.agent.prompt import format_splits, format_workout
from runcoach.agent.tools.base import BaseTool, ToolResult
from runcoach.agent.tools.registry import ToolResultCollector
from runcoach.application.context import AgentContext


class UpcomingWorkoutsInput(BaseModel):
    days: int = Field(default=7, ge=1, le=42, description="How many days ahead")


class GetUpcomingWorkoutsTool(BaseTool):

    name = "get_upcoming_workouts"
    description = "List planned workouts for the next N days, with prescribed distance and pace."

    def get_schema(self) -> type[BaseModel]:
        return UpcomingWorkoutsInput

    async def execute(
        self, ctx: AgentContext, collector: ToolResultCollector, days: int = 7, **kwargs,
    ) -> ToolResult:
        start = (ctx.date + timedelta(days=1)).isoformat()
        end = (ctx.date + timedelta(days=days)).isoformat()
        workouts = await ctx.store.workouts.find_between(ctx.user_id, start, end)
        if not workouts:
            return ToolResult(output=f"No workouts planned in the next {days} days.", data=[])
        return ToolResult(output="\n".join(format_workout(w) for w in workouts), data=workouts)


class RecentWorkoutsInput(BaseModel):
    days: int = Field(default=14, ge=1, le=90)
    include_splits: bool = Field(default=False, description="Include per-lap detail")


class GetRecentWorkoutsTool(BaseTool):

    name = "get_recent_workouts"
    description = "List completed workouts from the last N days, optionally with lap splits."

    def get_schema(self) -> type[BaseModel]:
        return RecentWorkoutsInput

    async def execute(
        self,
        ctx: AgentContext,
        collector: ToolResultCollector,
        days: int = 14,
        include_splits: bool = False,
        **kwargs,
    ) -> ToolResult:
        since = (ctx.date - timedelta(days=days)).isoformat()
        workouts = await ctx.store.workouts.find_completed_since(ctx.user_id, since)
        if not workouts:
            return ToolResult(output=f"No completed workouts in the last {days} days.", data=[])
        blocks = []
        for w in workouts:
            block = format_workout(w)
            if include_splits and w.splits:
                block += "\n" + format_splits(w)
            blocks.append(block)
        return ToolResult(output="\n".join(blocks), data=workouts)


class TrainingPlanInput(BaseModel):
    pass


class GetTrainingPlanTool(BaseTool):

    name = "get_training_plan"
    description = "Describe the active training plan: goal, current week and phase, and all phases."

    def get_schema(self) -> type[BaseModel]:
        return TrainingPlanInput

    async def execute(self, ctx: AgentContext, collector: ToolResultCollector, **kwargs) -> ToolResult:
        plan = ctx.snapshot.active_plan
        if plan is None:
            return ToolResult(output="No active training plan.")
        lines = [
            f"{plan.name}: {plan.goal_event or 'no goal event'}"
            + (f", goal time {plan.goal_time}" if plan.goal_time else ""),
            f"{plan.start_date} to {plan.end_date}, {plan.total_weeks or '?'} weeks",
            f"Current week: {ctx.snapshot.current_week or '?'}, phase: {ctx.snapshot.current_phase or '?'}",
        ]
        lines.extend(
            f"Phase {p.name}: weeks {p.start_week}-{p.end_week}" + (f" ({p.focus})" if p.focus else "")
            for p in plan.phases
        )
        return ToolResult(output="\n".join(lines), data=plan)
