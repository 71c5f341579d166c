"""
domain.entities - Persistence-aware types (have IDs, timestamps).

Identifiers are opaque strings generated by the repositories. Timestamps
are ISO-8601 strings set by the repository implementations, not by the
entities themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class User:
    """Athlete profile."""
    id: str = ""
    name: str = ""
    email: str = ""
    timezone: str = "America/Chicago"
    created_at: str = ""
    updated_at: str = ""


@dataclass
class HealthSnapshot:
    """One day of recovery metrics for a user (unique per user and date)."""
    id: str = ""
    user_id: str = ""
    snapshot_date: str = ""
    sleep_hours: Optional[float] = None
    sleep_quality: Optional[int] = None
    resting_hr: Optional[int] = None
    hrv: Optional[float] = None
    stress_level: Optional[int] = None
    energy_level: Optional[int] = None
    soreness_level: Optional[int] = None
    source: str = "manual"
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""

    @property
    def hrv_status(self) -> Optional[str]:
        return (self.metadata.get("garmin") or {}).get("hrv", {}).get("status")

    @property
    def body_battery(self) -> Optional[tuple[int, int]]:
        battery = (self.metadata.get("garmin") or {}).get("bodyBattery")
        if not battery or battery.get("lowest") is None:
            return None
        return battery.get("lowest"), battery.get("highest")


@dataclass
class Workout:
    """A planned or completed training session.

    Prescribed values come from the plan; actual values come from the
    fitness tracker (or a manual log). ``external_id`` links the record to
    exactly one device activity.
    """
    id: str = ""
    user_id: str = ""
    title: str = ""
    workout_type: str = "run"
    status: str = "planned"
    scheduled_date: str = ""
    plan_id: Optional[str] = None
    week_number: Optional[int] = None
    planned_duration_minutes: Optional[int] = None
    prescribed_description: Optional[str] = None
    prescribed_distance_miles: Optional[float] = None
    prescribed_pace_per_mile: Optional[str] = None
    actual_duration_minutes: Optional[int] = None
    actual_distance_miles: Optional[float] = None
    actual_pace_per_mile: Optional[str] = None
    avg_heart_rate: Optional[int] = None
    max_heart_rate: Optional[int] = None
    calories: Optional[int] = None
    elevation_gain_ft: Optional[float] = None
    cadence_avg: Optional[float] = None
    splits: list[dict[str, Any]] = field(default_factory=list)
    coach_notes: Optional[str] = None
    athlete_feedback: Optional[str] = None
    perceived_exertion: Optional[int] = None
    external_id: Optional[str] = None
    source: str = "plan"
    metadata: dict[str, Any] = field(default_factory=dict)
    completed_at: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class PlanPhase:
    name: str
    start_week: int
    end_week: int
    focus: str = ""


@dataclass
class TrainingPlan:
    """Race-oriented training block."""
    id: str = ""
    user_id: str = ""
    name: str = ""
    goal_event: Optional[str] = None
    goal_time: Optional[str] = None
    start_date: str = ""
    end_date: str = ""
    total_weeks: Optional[int] = None
    status: str = "active"
    phases: list[PlanPhase] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str = ""


@dataclass
class WeeklySummary:
    """Per-week training volume and narrative summary."""
    id: str = ""
    user_id: str = ""
    plan_id: Optional[str] = None
    week_number: int = 0
    start_date: str = ""
    end_date: str = ""
    status: str = "upcoming"
    planned_miles: Optional[float] = None
    actual_miles: Optional[float] = None
    summary: Optional[str] = None
    workouts_completed: Optional[int] = None
    workouts_skipped: Optional[int] = None
    total_duration_minutes: Optional[int] = None
    updated_at: str = ""


@dataclass
class Injury:
    id: str = ""
    user_id: str = ""
    body_part: str = ""
    description: str = ""
    severity: int = 1
    status: str = "active"
    reported_at: str = ""


@dataclass(frozen=True)
class WhiteboardEntry:
    """A persisted bulletin-board post. Immutable once written."""
    id: str
    user_id: str
    agent_id: str
    entry_type: str
    content: str
    title: Optional[str] = None
    structured_data: dict[str, Any] = field(default_factory=dict)
    priority: int = 50
    visibility: str = "all"
    requires_response: bool = False
    tags: tuple[str, ...] = ()
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
    context_date: Optional[str] = None
    expires_at: Optional[str] = None
    created_at: str = ""


@dataclass
class Conversation:
    """Chat session metadata. ``conversation_id`` is the resumable session id."""
    id: Optional[int] = None
    user_id: str = ""
    conversation_id: str = ""
    agent_id: str = ""
    title: str = ""
    last_message_at: str = ""
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ChatMessage:
    """Single message in a conversation."""
    id: Optional[int] = None
    conversation_id: str = ""
    role: str = ""  # "user" | "assistant"
    content: str = ""
    created_at: str = ""
