"""
Shared fixtures: a migrated SQLite store per test, scripted LLM fakes and
an in-memory fitness tracker.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional, Union

import pytest
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel

from runcoach.application.context import AgentContext
from runcoach.application.services.bulletin_board import BulletinBoard
from runcoach.application.services.chat_history import ChatHistoryService
from runcoach.application.store import Store
from runcoach.domain.exceptions import LLMError
from runcoach.domain.models import (
    AssistantMessage,
    ContextSnapshot,
    ConversationRequest,
    ResultMessage,
    StreamDelta,
    TokenUsage,
)
from runcoach.domain.tasks import AgentTask, DailyAnalysisTask
from runcoach.infrastructure.persistence.chat_message_repo import SQLiteChatMessageRepository
from runcoach.infrastructure.persistence.connection import AsyncSQLiteConnection
from runcoach.infrastructure.persistence.conversation_repo import SQLiteConversationRepository
from runcoach.infrastructure.persistence.health_repo import SQLiteHealthRepository
from runcoach.infrastructure.persistence.injury_repo import SQLiteInjuryRepository
from runcoach.infrastructure.persistence.migrations import run_migrations
from runcoach.infrastructure.persistence.plan_repo import SQLiteTrainingPlanRepository
from runcoach.infrastructure.persistence.user_repo import SQLiteUserRepository
from runcoach.infrastructure.persistence.whiteboard_repo import SQLiteWhiteboardRepository
from runcoach.infrastructure.persistence.workout_repo import SQLiteWorkoutRepository

USER_ID = "athlete-1"
TODAY = date(2026, 10, 14)
TZ = "America/Chicago"


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

@pytest.fixture
async def connection(tmp_path) -> AsyncSQLiteConnection:
    conn = AsyncSQLiteConnection(str(tmp_path / "coach.db"))
    await run_migrations(conn)
    return conn


@pytest.fixture
def store(connection) -> Store:
    return Store(
        users=SQLiteUserRepository(connection),
        health=SQLiteHealthRepository(connection),
        workouts=SQLiteWorkoutRepository(connection),
        plans=SQLiteTrainingPlanRepository(connection),
        injuries=SQLiteInjuryRepository(connection),
        board=BulletinBoard(SQLiteWhiteboardRepository(connection)),
    )


@pytest.fixture
def chat_history(connection) -> ChatHistoryService:
    return ChatHistoryService(
        SQLiteConversationRepository(connection),
        SQLiteChatMessageRepository(connection),
    )


def make_context(
    store: Store,
    task: AgentTask = DailyAnalysisTask(),
    snapshot: ContextSnapshot = ContextSnapshot(),
    today: date = TODAY,
    user_id: str = USER_ID,
) -> AgentContext:
    return AgentContext(
        user_id=user_id,
        user_name="Sam",
        timezone=TZ,
        date=today,
        snapshot=snapshot,
        store=store,
        task=task,
    )


# ---------------------------------------------------------------------------
# LLM fakes
# ---------------------------------------------------------------------------

Reply = Union[str, Exception, list]


class ScriptedConversation:
    """ConversationServicePort fake. Replies are keyed by agent id.

    A str reply becomes one assistant turn plus a success result; a list
    is yielded verbatim; an exception is raised from the stream.
    """

    def __init__(self, replies: Optional[dict[str, Reply]] = None, default: Reply = "ok",
                 session_id: str = "session-1"):
        self.replies = dict(replies or {})
        self.default = default
        self.session_id = session_id
        self.requests: list[ConversationRequest] = []

    async def query(self, request: ConversationRequest):
        self.requests.append(request)
        reply = self.replies.get(request.agent_id, self.default)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, list):
            for message in reply:
                yield message
            return
        if request.include_partial_messages:
            for word in reply.split(" "):
                yield StreamDelta(text=word + " ", session_id=self.session_id)
        yield AssistantMessage(text=reply, session_id=self.session_id)
        yield ResultMessage(
            subtype="success",
            result=reply,
            session_id=self.session_id,
            usage=TokenUsage(input_tokens=100, output_tokens=20),
            total_cost_usd=0.001,
            num_turns=1,
        )


class FakeLLM:
    """LLMClientPort fake: a scripted conversation plus scripted completions."""

    def __init__(self, conversation: Optional[ScriptedConversation] = None,
                 completions: Optional[list[Union[str, Exception]]] = None):
        self._conversation = conversation or ScriptedConversation()
        self.completions = list(completions or [])
        self.calls: list[tuple[str, str, bool]] = []

    @property
    def conversation(self) -> ScriptedConversation:
        return self._conversation

    async def complete(self, system_prompt: str, user_prompt: str, *, fast: bool = False) -> str:
        self.calls.append((system_prompt, user_prompt, fast))
        if not self.completions:
            raise LLMError("no scripted completion", provider="fake")
        reply = self.completions.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class ToolCallingFakeModel(GenericFakeChatModel):
    """GenericFakeChatModel that accepts bind_tools and records its inputs."""

    bound_tools: list[str] = []
    seen: list[Any] = []

    def bind_tools(self, tools, **kwargs):
        self.bound_tools = [t.name for t in tools]
        return self

    def _generate(self, messages, stop=None, run_manager=None, **kwargs):
        self.seen.append(list(messages))
        return super()._generate(messages, stop=stop, run_manager=run_manager, **kwargs)


# ---------------------------------------------------------------------------
# Fitness tracker
# ---------------------------------------------------------------------------

def garmin_run(
    activity_id: int = 111,
    day: str = "2026-10-14",
    gmt: str = "11:30:00",
    distance: float = 8046.7,
    duration: float = 2880.0,
    type_key: str = "running",
    **extra: Any,
) -> dict[str, Any]:
    """Activity summary as the tracker reports it (5.0 mi in 48 min by default)."""
    return {
        "activityId": activity_id,
        "activityName": "Morning Run",
        "activityType": {"typeKey": type_key},
        "startTimeLocal": f"{day} 06:30:00",
        "startTimeGMT": f"{day} {gmt}",
        "duration": duration,
        "distance": distance,
        "averageHR": 148,
        "maxHR": 171,
        "calories": 520,
        "elevationGain": 30.0,
        **extra,
    }


class FakeTracker:
    """In-memory ActivityTrackerPort."""

    def __init__(self, activities: Optional[list[dict[str, Any]]] = None):
        self.activities = list(activities or [])
        self.splits: dict[str, Any] = {}
        self.details: dict[str, Any] = {}
        self.daily: Optional[dict[str, Any]] = {"averageStressLevel": 28, "totalSteps": 9000}
        self.sleep: Optional[dict[str, Any]] = {"sleepTimeSeconds": 27000, "restingHeartRate": 48}
        self.hrv: Optional[dict[str, Any]] = {"lastNightAvg": 62, "status": "BALANCED"}
        self.battery: list[dict[str, Any]] = [{"bodyBatteryLow": 20, "bodyBatteryHigh": 85}]
        self.fail: dict[str, Exception] = {}
        self.connected = 0
        self.disconnected = 0

    def _check(self, name: str) -> None:
        if name in self.fail:
            raise self.fail[name]

    async def connect(self) -> None:
        self._check("connect")
        self.connected += 1

    async def disconnect(self) -> None:
        self.disconnected += 1

    async def list_activities(self, limit: int = 20) -> list[dict[str, Any]]:
        self._check("list_activities")
        return self.activities[:limit]

    async def get_activity(self, activity_id: str) -> Optional[dict[str, Any]]:
        self._check("get_activity")
        return self.details.get(activity_id)

    async def get_activity_splits(self, activity_id: str) -> Optional[dict[str, Any]]:
        self._check("get_activity_splits")
        return self.splits.get(activity_id)

    async def get_daily_summary(self, day: str) -> Optional[dict[str, Any]]:
        self._check("daily")
        return self.daily

    async def get_sleep_data(self, day: str) -> Optional[dict[str, Any]]:
        self._check("sleep")
        return self.sleep

    async def get_hrv_data(self, day: str) -> Optional[dict[str, Any]]:
        self._check("hrv")
        return self.hrv

    async def get_body_battery(self, start: str, end: str) -> list[dict[str, Any]]:
        self._check("battery")
        return self.battery


@pytest.fixture
def tracker() -> FakeTracker:
    return FakeTracker()
