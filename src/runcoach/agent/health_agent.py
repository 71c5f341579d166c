"""
agent.health_agent - Recovery and wellbeing specialist.

Reads sleep, HRV, resting heart rate, stress and injuries, and judges
how ready the athlete is to train. It never prescribes workouts; that
is the training coach's job. Findings worth keeping go on the whiteboard.
"""

from __future__ import annotations

from typing import Optional, assert_never

from runcoach.agent.harness import AgentHarness
from runcoach.agent.prompt import (
    DAILY_HEALTH_FORMAT,
    WORKOUT_ANALYSIS_FORMAT,
    chat_prompt,
    find_workout,
    format_splits,
    format_week_stats,
    format_workout,
    render_context,
)
from runcoach.agent.tools.health import GetHealthTrendsTool, GetInjuriesTool
from runcoach.agent.tools.registry import ToolRegistry
from runcoach.agent.tools.whiteboard import PostToWhiteboardTool, ReadWhiteboardTool
from runcoach.application.context import AgentContext
from runcoach.domain.models import AgentId
from runcoach.domain.tasks import (
    ChatResponseTask,
    DailyAnalysisTask,
    WeeklyReviewTask,
    WeeklySummaryTask,
    WorkoutAnalysisTask,
)
from runcoach.infrastructure.log import CoachLogger


def build_health_registry(logger: Optional[CoachLogger] = None) -> ToolRegistry:
    registry = ToolRegistry(logger)
    registry.register(PostToWhiteboardTool(AgentId.HEALTH.value))
    registry.register(ReadWhiteboardTool())
    registry.register(GetHealthTrendsTool())
    registry.register(GetInjuriesTool())
    return registry


class HealthAgent(AgentHarness):

    agent_id = AgentId.HEALTH.value

    def build_system_prompt(self, ctx: AgentContext) -> str:
        return f"""You are the health agent on a running coach team for {ctx.user_name}.

You look after recovery: sleep, HRV, resting heart rate, stress, soreness and injuries.
You do not write or change training; the training coach does that. When you see
something the coach should know (poor recovery, a new niggle, a trend), post it
to the whiteboard with post_to_whiteboard. Use alert only for things that should
change today's training.

Be specific and brief. Quote the numbers you base a judgement on. Say so when
data is missing instead of guessing.

{render_context(ctx)}"""

    def build_user_prompt(self, ctx: AgentContext) -> str:
        task = ctx.task
        match task:
            case DailyAnalysisTask():
                return (
                    "Assess today's recovery from the health data above. Compare today to the "
                    "recent baseline, note any concerns, and suggest what the athlete can do "
                    "to recover well.\n\n" + DAILY_HEALTH_FORMAT
                )
            case ChatResponseTask(message=message, history=history):
                return chat_prompt(message, history)
            case WorkoutAnalysisTask():
                return self._workout_prompt(ctx, task)
            case WeeklyReviewTask():
                notes = "\n".join(f"- {n}" for n in task.readiness_notes)
                return (
                    f"Review recovery for week {task.week_number} ({task.week_start} to "
                    f"{task.week_end}). Readiness assessment: {task.readiness_recommendation}.\n"
                    f"{notes}\n\nSummarize recovery trends in a short paragraph and post "
                    "anything the coach should weigh when planning next week."
                )
            case WeeklySummaryTask():
                return (
                    f"Summarize recovery over week {task.week_number} ({task.week_start} to "
                    f"{task.week_end}) in one short paragraph.\n\n"
                    f"{format_week_stats(task.stats, task.planned_miles)}\n\n"
                    "Say how the body handled this load, using the recent health data above."
                )
            case _:
                assert_never(task)

    def _workout_prompt(self, ctx: AgentContext, task: WorkoutAnalysisTask) -> str:
        workout = task.workout or find_workout(ctx, task.workout_id)
        detail = format_workout(workout) if workout else f"Workout {task.workout_id} (not in context)"
        if workout and workout.splits:
            detail += "\n" + format_splits(workout)
        return (
            f"The athlete just finished this run:\n{detail}\n\n"
            f"Feedback: {task.athlete_feedback or 'none given'}. "
            f"RPE: {task.perceived_exertion or 'not given'}.\n\n"
            "Judge how hard it was on the body given recent recovery, and what recovery "
            "the athlete needs next.\n\n" + WORKOUT_ANALYSIS_FORMAT
        )

