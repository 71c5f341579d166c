"""
Context loader tests

Covered:
1. Empty and populated snapshots
2. Optional reads degrade, core reads propagate
3. Plan position and per-date de-duplication
"""

from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock

import pytest

from conftest import TODAY, TZ, USER_ID
from runcoach.application.context_loader import ContextLoader, dedupe_by_date, plan_position
from runcoach.domain.entities import HealthSnapshot, Injury, PlanPhase, TrainingPlan, User, Workout
from runcoach.domain.exceptions import DatabaseError
from runcoach.domain.models import EntryType, WhiteboardPayload
from runcoach.domain.tasks import ChatResponseTask

PLAN = TrainingPlan(
    user_id=USER_ID,
    name="Chicago Marathon Build",
    goal_event="Marathon",
    goal_time="3:15:00",
    start_date="2026-09-01",
    end_date="2026-12-06",
    total_weeks=14,
    phases=[PlanPhase("Base", 1, 4), PlanPhase("Build", 5, 9), PlanPhase("Peak", 10, 12)],
)


class TestLoad:
    """ContextLoader.load"""

    async def test_new_user_gets_empty_snapshot(self, store):
        ctx = await ContextLoader(store).load(USER_ID, TZ, today=TODAY)

        assert ctx.user_name == "Athlete"
        assert ctx.date == TODAY
        assert ctx.snapshot.user is None
        assert ctx.snapshot.today_workout is None
        assert ctx.snapshot.recent_health == ()
        assert ctx.snapshot.current_week is None

    async def test_task_is_attached(self, store):
        task = ChatResponseTask(message="hi")
        ctx = await ContextLoader(store).load(USER_ID, TZ, task, today=TODAY)
        assert ctx.task is task
        assert ctx.store is store

    async def test_populated_snapshot(self, store):
        await store.users.save(User(id=USER_ID, name="Sam", timezone=TZ))
        await store.health.upsert(HealthSnapshot(user_id=USER_ID, snapshot_date="2026-10-14", hrv=61.0))
        await store.health.upsert(HealthSnapshot(user_id=USER_ID, snapshot_date="2026-10-12", hrv=58.0))
        today_run = await store.workouts.create(Workout(
            user_id=USER_ID, title="Easy 5", scheduled_date="2026-10-14",
        ))
        await store.workouts.create(Workout(user_id=USER_ID, title="Tempo", scheduled_date="2026-10-15"))
        await store.workouts.create(Workout(
            user_id=USER_ID, title="Long run", scheduled_date="2026-10-11", status="completed",
        ))
        await store.plans.save(PLAN)
        await store.injuries.save(Injury(user_id=USER_ID, body_part="calf", description="tight", severity=3))
        await store.board.post(USER_ID, "health-agent", WhiteboardPayload(
            entry_type=EntryType.INSIGHT, content="HRV stable",
        ))

        snap = (await ContextLoader(store).load(USER_ID, TZ, today=TODAY)).snapshot

        assert snap.user.name == "Sam"
        assert snap.today_health.hrv == 61.0
        assert [h.snapshot_date for h in snap.recent_health] == ["2026-10-14", "2026-10-12"]
        assert snap.today_workout.id == today_run.id
        assert [w.title for w in snap.upcoming_workouts] == ["Tempo"]
        assert [w.title for w in snap.recent_workouts] == ["Long run"]
        assert snap.active_plan.name == "Chicago Marathon Build"
        assert (snap.current_week, snap.current_phase) == (7, "Build")
        assert [i.body_part for i in snap.injuries] == ["calf"]
        assert [e.content for e in snap.whiteboard_entries] == ["HRV stable"]

    async def test_optional_read_failure_degrades(self, store, monkeypatch):
        monkeypatch.setattr(store.injuries, "find_active", AsyncMock(side_effect=DatabaseError("locked")))
        monkeypatch.setattr(store.plans, "find_recent_summaries", AsyncMock(side_effect=DatabaseError("locked")))

        ctx = await ContextLoader(store).load(USER_ID, TZ, today=TODAY)
        assert ctx.snapshot.injuries == ()
        assert ctx.snapshot.weekly_summaries == ()

    async def test_core_read_failure_propagates(self, store, monkeypatch):
        monkeypatch.setattr(store.health, "get_by_date", AsyncMock(side_effect=DatabaseError("disk I/O error")))
        with pytest.raises(DatabaseError):
            await ContextLoader(store).load(USER_ID, TZ, today=TODAY)

    async def test_contexts_are_independent(self, store):
        loader = ContextLoader(store)
        first = await loader.load(USER_ID, TZ, today=TODAY)
        second = await loader.load("other-athlete", TZ, today=TODAY)
        assert first.request_id != second.request_id
        assert second.user_id == "other-athlete"


class TestPlanPosition:

    def test_week_and_phase(self):
        assert plan_position(PLAN, date(2026, 9, 1)) == (1, "Base")
        assert plan_position(PLAN, date(2026, 9, 7)) == (1, "Base")
        assert plan_position(PLAN, date(2026, 9, 8)) == (2, "Base")
        assert plan_position(PLAN, date(2026, 11, 24)) == (13, None)

    def test_before_start(self):
        assert plan_position(PLAN, date(2026, 8, 31)) == (None, None)

    def test_no_plan_or_bad_date(self):
        assert plan_position(None, TODAY) == (None, None)
        assert plan_position(TrainingPlan(start_date="soon"), TODAY) == (None, None)


class TestDedupeByDate:

    def test_prefers_plan_linked_workout(self):
        manual = Workout(id="a", scheduled_date="2026-10-10")
        planned = Workout(id="b", scheduled_date="2026-10-10", week_number=6)
        other = Workout(id="c", scheduled_date="2026-10-12")

        result = dedupe_by_date([manual, planned, other])
        assert [w.id for w in result] == ["c", "b"]

    def test_first_wins_without_week(self):
        result = dedupe_by_date([Workout(id="a", scheduled_date="d"), Workout(id="b", scheduled_date="d")])
        assert [w.id for w in result] == ["a"]
