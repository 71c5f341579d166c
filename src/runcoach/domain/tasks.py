"""
domain.tasks - Typed task payloads handed to agents.

A task is exactly one of the dataclasses below. Prompt builders match on
the concrete type, so adding a task kind without a builder fails type
checking instead of falling through to a default branch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from runcoach.domain.entities import HealthSnapshot, Workout
from runcoach.domain.models import WeekStats


@dataclass(frozen=True)
class DailyAnalysisTask:
    """Morning look at today's recovery and training."""
    focus: str = "daily"


@dataclass(frozen=True)
class ChatResponseTask:
    message: str
    history: tuple[tuple[str, str], ...] = ()  # (role, content)


@dataclass(frozen=True)
class WorkoutAnalysisTask:
    workout_id: str
    athlete_feedback: Optional[str] = None
    perceived_exertion: Optional[int] = None
    workout: Optional[Workout] = None


@dataclass(frozen=True)
class WeeklyReviewTask:
    week_start: str
    week_end: str
    week_number: int
    readiness_recommendation: str
    readiness_notes: tuple[str, ...] = ()
    next_week: tuple[Workout, ...] = ()


@dataclass(frozen=True)
class WeeklySummaryTask:
    """Look back at the week that is ending."""
    week_start: str
    week_end: str
    week_number: int
    stats: WeekStats = WeekStats()
    workouts: tuple[Workout, ...] = ()
    health: tuple[HealthSnapshot, ...] = ()
    planned_miles: Optional[float] = None


AgentTask = Union[
    DailyAnalysisTask, ChatResponseTask, WorkoutAnalysisTask, WeeklyReviewTask, WeeklySummaryTask,
]
