"""
domain.models - Immutable value objects shared across layers.

Entities with identity live in domain.entities; everything here is a
frozen value passed between the router, the harness, the bulletin board,
the sync skills and the workflows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional, Union

from runcoach.domain.entities import (
    HealthSnapshot,
    Injury,
    TrainingPlan,
    User,
    WeeklySummary,
    WhiteboardEntry,
    Workout,
)


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------

class AgentId(str, Enum):
    HEALTH = "health-agent"
    TRAINING_COACH = "training-coach"


class EntryType(str, Enum):
    OBSERVATION = "observation"
    SUGGESTION = "suggestion"
    ALERT = "alert"
    INSIGHT = "insight"
    PLAN = "plan"
    REFLECTION = "reflection"
    SUMMARY = "summary"
    QUESTION = "question"
    RECOMMENDATION = "recommendation"
    WEEK_PREVIEW = "week_preview"


class Visibility(str, Enum):
    """Who an entry is meant for. Readers filter on it; the board does not."""
    ALL = "all"
    AGENTS = "agents"
    USER = "user"


# ---------------------------------------------------------------------------
# Bulletin board
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WhiteboardPayload:
    """What an author hands to the board. The board adds id and timestamps."""
    entry_type: EntryType
    content: str
    title: Optional[str] = None
    structured_data: dict[str, Any] = field(default_factory=dict)
    priority: int = 50
    visibility: Visibility = Visibility.ALL
    requires_response: bool = False
    tags: tuple[str, ...] = ()
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class WhiteboardQuery:
    """Reader-side filters. Unset fields do not constrain the result."""
    authors: tuple[str, ...] = ()
    entry_types: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    since: Optional[datetime] = None
    since_hours: Optional[float] = None
    context_date: Optional[str] = None
    requires_response: Optional[bool] = None
    visibility: tuple[str, ...] = ()
    limit: Optional[int] = 50
    include_expired: bool = False


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RouteResult:
    agent_id: AgentId
    confidence: float
    reasoning: str
    routing_time_ms: float = 0.0


# ---------------------------------------------------------------------------
# Tool calls and conversation stream
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToolCallRecord:
    name: str
    arguments: dict[str, Any]
    output: str
    is_error: bool
    timestamp: datetime
    duration_ms: float


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_input_tokens: int = 0
    cache_creation_input_tokens: int = 0

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            cache_read_input_tokens=self.cache_read_input_tokens + other.cache_read_input_tokens,
            cache_creation_input_tokens=(
                self.cache_creation_input_tokens + other.cache_creation_input_tokens
            ),
        )

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


ResultSubtype = Literal[
    "success", "error_max_turns", "error_max_budget_usd", "error_during_execution",
]


@dataclass(frozen=True)
class AssistantMessage:
    """One assistant turn. ``tool_calls`` lists the tool names it requested."""
    text: str
    session_id: Optional[str] = None
    tool_calls: tuple[str, ...] = ()


@dataclass(frozen=True)
class ToolCallMessage:
    name: str
    arguments: dict[str, Any]
    output: str
    is_error: bool = False
    session_id: Optional[str] = None


@dataclass(frozen=True)
class StreamDelta:
    text: str
    session_id: Optional[str] = None


@dataclass(frozen=True)
class ResultMessage:
    """Terminal message of a conversation."""
    subtype: ResultSubtype
    result: str = ""
    session_id: Optional[str] = None
    usage: TokenUsage = field(default_factory=TokenUsage)
    total_cost_usd: float = 0.0
    num_turns: int = 0
    errors: tuple[str, ...] = ()
    model_usage: dict[str, TokenUsage] = field(default_factory=dict)


ConversationMessage = Union[AssistantMessage, ToolCallMessage, StreamDelta, ResultMessage]


@dataclass(frozen=True)
class ConversationRequest:
    """Everything the conversation service needs for one run."""
    system_prompt: str
    prompt: str
    tool_server: Any = None
    model: Optional[str] = None
    max_turns: int = 10
    max_budget_usd: Optional[float] = None
    resume_session: Optional[str] = None
    include_partial_messages: bool = False
    user_id: Optional[str] = None
    agent_id: Optional[str] = None
    persist: bool = False
    transcript_prompt: Optional[str] = None


@dataclass(frozen=True)
class AgentResult:
    agent_id: str
    timestamp: datetime
    content: str
    whiteboard_entries: tuple[WhiteboardEntry, ...]
    tool_calls: tuple[ToolCallRecord, ...]
    duration_ms: float
    token_usage: TokenUsage
    session_id: Optional[str] = None
    total_cost_usd: float = 0.0
    num_turns: int = 0
    subtype: str = "success"
    model_usage: dict[str, TokenUsage] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Context snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ContextSnapshot:
    """Everything the context loader read for one pipeline stage."""
    user: Optional[User] = None
    today_health: Optional[HealthSnapshot] = None
    recent_health: tuple[HealthSnapshot, ...] = ()
    today_workout: Optional[Workout] = None
    upcoming_workouts: tuple[Workout, ...] = ()
    recent_workouts: tuple[Workout, ...] = ()
    active_plan: Optional[TrainingPlan] = None
    current_week: Optional[int] = None
    current_phase: Optional[str] = None
    weekly_summaries: tuple[WeeklySummary, ...] = ()
    whiteboard_entries: tuple[WhiteboardEntry, ...] = ()
    injuries: tuple[Injury, ...] = ()


# ---------------------------------------------------------------------------
# External activity sync
# ---------------------------------------------------------------------------

SyncAction = Literal["created", "updated", "already_synced", "no_activity"]


@dataclass(frozen=True)
class SyncedActivity:
    """Device-reported actuals for one activity, already converted to miles/feet."""
    external_id: str
    name: str
    activity_type: str
    start_time_local: str
    duration_minutes: Optional[int] = None
    distance_miles: Optional[float] = None
    pace_per_mile: Optional[str] = None
    avg_heart_rate: Optional[int] = None
    max_heart_rate: Optional[int] = None
    calories: Optional[int] = None
    elevation_gain_ft: Optional[float] = None
    cadence_avg: Optional[float] = None
    splits: tuple[dict[str, Any], ...] = ()
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SyncOptions:
    date: Optional[str] = None
    timezone: Optional[str] = None
    force_resync: bool = False
    target_workout_id: Optional[str] = None
    activity_kind: str = "run"


@dataclass(frozen=True)
class SyncActivityResult:
    success: bool
    action: SyncAction
    workout: Optional[Workout] = None
    activity: Optional[SyncedActivity] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class MetricsSyncResult:
    success: bool
    date: str
    metrics_updated: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class WeekStats:
    """Aggregates over one week's workouts. Only completed sessions count toward volume."""
    total_miles: float = 0.0
    total_duration_minutes: int = 0
    workouts_completed: int = 0
    workouts_skipped: int = 0
    avg_heart_rate: Optional[int] = None
    avg_pace: Optional[str] = None
