"""
agent.training_coach - Plan-aware running coach.

Owns the training plan: today's session, post-run feedback, the
weekly adjustments and the end-of-week summary. It reads the health
agent's whiteboard entries and lets them shape the advice.
"""

from __future__ import annotations

from typing import Optional, assert_never

from runcoach.agent.harness import AgentHarness
from runcoach.agent.prompt import (
    DAILY_TRAINING_FORMAT,
    WEEKLY_REVIEW_FORMAT,
    WORKOUT_ANALYSIS_FORMAT,
    chat_prompt,
    find_workout,
    format_splits,
    format_week_log,
    format_week_stats,
    format_workout,
    render_context,
)
from runcoach.agent.tools.registry import ToolRegistry
from runcoach.agent.tools.training import (
    GetRecentWorkoutsTool,
    GetTrainingPlanTool,
    GetUpcomingWorkoutsTool,
)
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


def build_training_registry(logger: Optional[CoachLogger] = None) -> ToolRegistry:
    registry = ToolRegistry(logger)
    registry.register(PostToWhiteboardTool(AgentId.TRAINING_COACH.value))
    registry.register(ReadWhiteboardTool())
    registry.register(GetUpcomingWorkoutsTool())
    registry.register(GetRecentWorkoutsTool())
    registry.register(GetTrainingPlanTool())
    return registry


class TrainingCoachAgent(AgentHarness):

    agent_id = AgentId.TRAINING_COACH.value

    def build_system_prompt(self, ctx: AgentContext) -> str:
        return f"""You are the training coach for {ctx.user_name}, a distance runner.

You own the training plan. Explain today's session, analyze completed runs and
adjust upcoming workouts when recovery or performance calls for it. Check the
whiteboard for the health agent's findings before recommending hard efforts;
an alert from the health agent outranks the plan.

Paces are minutes per mile (m:ss/mi), distances in miles. Keep answers short and
concrete. Never invent workouts that are not in the data.

{render_context(ctx)}"""

    def build_user_prompt(self, ctx: AgentContext) -> str:
        task = ctx.task
        match task:
            case DailyAnalysisTask():
                return (
                    "Give today's training recommendation. Start from the planned workout, "
                    "factor in recovery and any whiteboard alerts, and say whether it should "
                    "be modified.\n\n" + DAILY_TRAINING_FORMAT
                )
            case ChatResponseTask(message=message, history=history):
                return chat_prompt(message, history)
            case WorkoutAnalysisTask():
                return self._workout_prompt(ctx, task)
            case WeeklyReviewTask():
                return self._weekly_prompt(ctx, task)
            case WeeklySummaryTask():
                return self._summary_prompt(task)
            case _:
                assert_never(task)

    def _workout_prompt(self, ctx: AgentContext, task: WorkoutAnalysisTask) -> str:
        workout = task.workout or find_workout(ctx, task.workout_id)
        detail = format_workout(workout) if workout else f"Workout {task.workout_id} (not in context)"
        if workout and workout.splits:
            detail += "\nSplits:\n" + format_splits(workout)
        return (
            f"Analyze the run the athlete just finished:\n{detail}\n\n"
            f"Athlete feedback: {task.athlete_feedback or 'none given'}. "
            f"RPE: {task.perceived_exertion or 'not given'}.\n\n"
            "Compare it to what was prescribed, look at pacing across the splits, and say "
            "what it means for the next sessions.\n\n" + WORKOUT_ANALYSIS_FORMAT
        )

    def _weekly_prompt(self, ctx: AgentContext, task: WeeklyReviewTask) -> str:
        notes = "\n".join(f"- {n}" for n in task.readiness_notes) or "- no notes"
        planned = task.next_week or ctx.snapshot.upcoming_workouts
        upcoming = "\n".join(format_workout(w) for w in planned) or "none planned"
        return (
            f"Weekly review for week {task.week_number} ({task.week_start} to {task.week_end}).\n"
            f"Readiness: {task.readiness_recommendation}\n{notes}\n\n"
            f"Next week's planned workouts:\n{upcoming}\n\n"
            "Propose adjustments only where readiness or last week's results justify them. "
            "On 'recover' reduce volume or intensity; on 'push' you may progress modestly; "
            "on 'maintain' change little. Reference workouts by their id.\n\n"
            + WEEKLY_REVIEW_FORMAT
        )

    def _summary_prompt(self, task: WeeklySummaryTask) -> str:
        return (
            f"Write the training summary for week {task.week_number} "
            f"({task.week_start} to {task.week_end}).\n\n"
            f"{format_week_stats(task.stats, task.planned_miles)}\n\n"
            f"{format_week_log(task.workouts, task.health)}\n\n"
            "Cover, in this order: a one-sentence verdict on the week; what went well; "
            "warning signs (missed sessions, fatigue, HR drift); whether the load was right "
            "for this point in the plan; what to focus on next week. Use the numbers above, "
            "write in second person and stay between 200 and 400 words. Plain prose, no JSON."
        )
