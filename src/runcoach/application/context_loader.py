"""
application.context_loader - Gather everything an agent run needs, once.

All reads are independent and run concurrently. Empty results become
``None`` / ``()``. The optional sources (weekly summaries, whiteboard,
injuries) log and degrade to empty on failure; a failure of the core
reads (user, health, workouts, plan) propagates to the caller.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Optional, Sequence
from zoneinfo import ZoneInfo

from runcoach.application.context import AgentContext
from runcoach.application.store import Store
from runcoach.domain.entities import TrainingPlan, Workout
from runcoach.domain.models import ContextSnapshot, WhiteboardQuery
from runcoach.domain.tasks import AgentTask, DailyAnalysisTask
from runcoach.infrastructure.log import CoachLogger, get_logger

DEFAULT_USER_NAME = "Athlete"
RECENT_HEALTH_DAYS = 7
RECENT_WORKOUT_DAYS = 14
UPCOMING_WORKOUTS = 3
WEEKLY_SUMMARIES = 4
WHITEBOARD_HOURS = 24
WHITEBOARD_LIMIT = 10


class ContextLoader:

    def __init__(self, store: Store, logger: Optional[CoachLogger] = None):
        self._store = store
        self._logger = logger or get_logger(__name__)

    async def load(
        self,
        user_id: str,
        timezone: str,
        task: AgentTask = DailyAnalysisTask(),
        today: Optional[date] = None,
    ) -> AgentContext:
        today = today or datetime.now(ZoneInfo(timezone)).date()
        day = today.isoformat()
        s = self._store

        (
            user, today_health, recent_health, today_planned, upcoming,
            completed, plan, summaries, entries, injuries,
        ) = await asyncio.gather(
            s.users.get_by_id(user_id),
            s.health.get_by_date(user_id, day),
            s.health.get_range(
                user_id, (today - timedelta(days=RECENT_HEALTH_DAYS)).isoformat(), day,
                limit=RECENT_HEALTH_DAYS,
            ),
            s.workouts.find_planned_for_date(user_id, day),
            s.workouts.find_planned_after(user_id, day, UPCOMING_WORKOUTS),
            s.workouts.find_completed_since(
                user_id, (today - timedelta(days=RECENT_WORKOUT_DAYS)).isoformat(),
            ),
            s.plans.get_active(user_id),
            self._optional("weekly_summaries", s.plans.find_recent_summaries(user_id, WEEKLY_SUMMARIES)),
            self._optional("whiteboard", s.board.query(
                user_id, WhiteboardQuery(since_hours=WHITEBOARD_HOURS, limit=WHITEBOARD_LIMIT),
            )),
            self._optional("injuries", s.injuries.find_active(user_id)),
        )

        current_week, current_phase = plan_position(plan, today)
        snapshot = ContextSnapshot(
            user=user,
            today_health=today_health,
            recent_health=tuple(recent_health),
            today_workout=today_planned[0] if today_planned else None,
            upcoming_workouts=tuple(upcoming),
            recent_workouts=tuple(dedupe_by_date(completed)),
            active_plan=plan,
            current_week=current_week,
            current_phase=current_phase,
            weekly_summaries=tuple(summaries),
            whiteboard_entries=tuple(entries),
            injuries=tuple(injuries),
        )
        self._logger.debug(
            "Loaded context for %s: %d health, %d recent workouts, %d entries",
            user_id, len(snapshot.recent_health), len(snapshot.recent_workouts),
            len(snapshot.whiteboard_entries),
        )
        return AgentContext(
            user_id=user_id,
            user_name=(user.name if user and user.name else DEFAULT_USER_NAME),
            timezone=timezone,
            date=today,
            snapshot=snapshot,
            store=self._store,
            task=task,
        )

    async def _optional(self, name: str, read: Awaitable[Sequence[Any]]) -> Sequence[Any]:
        try:
            return await read
        except Exception as e:
            self._logger.warning("Optional context read '%s' failed: %s", name, e)
            return ()


def plan_position(plan: Optional[TrainingPlan], today: date) -> tuple[Optional[int], Optional[str]]:
    """(current week, current phase name) of *plan* on *today*."""
    if plan is None or not plan.start_date:
        return None, None
    try:
        start = date.fromisoformat(plan.start_date[:10])
    except ValueError:
        return None, None
    days = (today - start).days
    if days < 0:
        return None, None
    week = days // 7 + 1
    phase = next((p.name for p in plan.phases if p.start_week <= week <= p.end_week), None)
    return week, phase


def dedupe_by_date(workouts: Sequence[Workout]) -> list[Workout]:
    """One workout per date, preferring the one tied to a plan week."""
    by_date: dict[str, Workout] = {}
    for workout in workouts:
        kept = by_date.get(workout.scheduled_date)
        if kept is None or (kept.week_number is None and workout.week_number is not None):
            by_date[workout.scheduled_date] = workout
    return sorted(by_date.values(), key=lambda w: w.scheduled_date, reverse=True)
