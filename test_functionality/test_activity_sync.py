"""
External activity sync tests

Covered:
1. Idempotency: created, then already_synced
2. Target precedence: explicit id, linked record, planned workout, new record
3. Force resync, split fallbacks and structured failures
4. Unit conversions
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from conftest import USER_ID, FakeTracker, garmin_run
from runcoach.application.services.activity_sync import (
    ActivitySyncService,
    activity_type_of,
    format_pace,
    local_date_of,
    meters_to_miles,
)
from runcoach.domain.entities import Workout
from runcoach.domain.exceptions import IntegrationError
from runcoach.domain.models import SyncOptions

DAY = "2026-10-14"
ON_DAY = SyncOptions(date=DAY)


def service_for(store, tracker: FakeTracker) -> ActivitySyncService:
    return ActivitySyncService(store, lambda: tracker)


async def planned(store, title="Easy 5", day=DAY, **kwargs) -> Workout:
    return await store.workouts.create(Workout(
        user_id=USER_ID, title=title, scheduled_date=day,
        prescribed_distance_miles=5.0, prescribed_pace_per_mile="9:30/mi", **kwargs,
    ))


class TestIdempotency:
    """Re-running for the same activity never duplicates"""

    async def test_created_then_already_synced(self, store):
        tracker = FakeTracker([garmin_run()])
        sync = service_for(store, tracker)

        first = await sync.sync(USER_ID, ON_DAY)
        second = await sync.sync(USER_ID, ON_DAY)

        assert first.action == "created"
        assert first.workout.status == "completed"
        assert first.workout.external_id == "111"
        assert first.workout.title == "Morning Run"
        assert first.workout.source == "garmin"
        assert second.action == "already_synced"
        assert second.workout.id == first.workout.id
        assert len(await store.workouts.find_between(USER_ID, DAY, DAY)) == 1
        assert tracker.connected == tracker.disconnected == 2

    async def test_actuals_are_converted(self, store):
        result = await service_for(store, FakeTracker([garmin_run()])).sync(USER_ID, ON_DAY)
        workout = result.workout

        assert workout.actual_distance_miles == 5.0
        assert workout.actual_duration_minutes == 48
        assert workout.actual_pace_per_mile == "9:36/mi"
        assert workout.avg_heart_rate == 148
        assert workout.elevation_gain_ft == 98
        assert workout.metadata["garmin_activity_id"] == "111"

    async def test_lost_race_resolves_to_already_synced(self, store, monkeypatch):
        """The unique index turns a concurrent insert into already_synced"""
        existing = await store.workouts.create(Workout(
            user_id=USER_ID, title="Synced elsewhere", scheduled_date=DAY, status="completed",
            external_id="111",
        ))
        real_lookup = store.workouts.find_by_external_id
        monkeypatch.setattr(
            store.workouts, "find_by_external_id",
            AsyncMock(side_effect=[None, await real_lookup(USER_ID, "111")]),
        )

        result = await service_for(store, FakeTracker([garmin_run()])).sync(USER_ID, ON_DAY)

        assert result.success is True
        assert result.action == "already_synced"
        assert result.workout.id == existing.id


class TestTargetSelection:
    """Which record receives the activity"""

    async def test_merges_into_planned_workout(self, store):
        plan = await planned(store)
        result = await service_for(store, FakeTracker([garmin_run()])).sync(USER_ID, ON_DAY)

        assert result.action == "updated"
        assert result.workout.id == plan.id
        assert result.workout.title == "Easy 5"
        assert result.workout.prescribed_pace_per_mile == "9:30/mi"
        assert result.workout.prescribed_distance_miles == 5.0
        assert result.workout.actual_pace_per_mile == "9:36/mi"

    async def test_explicit_target_wins(self, store):
        await planned(store, "Easy 5")
        second = await planned(store, "Strides")
        result = await service_for(store, FakeTracker([garmin_run()])).sync(
            USER_ID, SyncOptions(date=DAY, target_workout_id=second.id),
        )
        assert result.workout.id == second.id

    async def test_unknown_target_is_a_structured_failure(self, store):
        result = await service_for(store, FakeTracker([garmin_run()])).sync(
            USER_ID, SyncOptions(date=DAY, target_workout_id="nope"),
        )
        assert result.success is False
        assert result.action == "no_activity"
        assert "workout not found: nope" in result.error

    async def test_other_users_workouts_are_ignored(self, store):
        await store.workouts.create(Workout(user_id="someone-else", title="Theirs", scheduled_date=DAY))
        result = await service_for(store, FakeTracker([garmin_run()])).sync(USER_ID, ON_DAY)
        assert result.action == "created"

    async def test_force_resync_updates_linked_record(self, store):
        tracker = FakeTracker([garmin_run()])
        sync = service_for(store, tracker)
        first = await sync.sync(USER_ID, ON_DAY)

        tracker.activities = [garmin_run(distance=9656.04, duration=3420.0)]
        again = await sync.sync(USER_ID, SyncOptions(date=DAY, force_resync=True))

        assert again.action == "updated"
        assert again.workout.id == first.workout.id
        assert again.workout.actual_distance_miles == 6.0
        assert again.workout.actual_pace_per_mile == "9:30/mi"

    async def test_force_resync_moves_link_to_explicit_target(self, store):
        sync = service_for(store, FakeTracker([garmin_run()]))
        first = await sync.sync(USER_ID, ON_DAY)
        other = await planned(store, "Strides")

        again = await sync.sync(
            USER_ID, SyncOptions(date=DAY, force_resync=True, target_workout_id=other.id),
        )

        assert again.action == "updated"
        assert again.workout.id == other.id
        assert again.workout.external_id == "111"
        released = await store.workouts.get_by_id(USER_ID, first.workout.id)
        assert released.external_id is None
        assert "garmin_activity_id" not in released.metadata
        assert (await store.workouts.find_by_external_id(USER_ID, "111")).id == other.id


class TestActivityPick:

    async def test_no_activity(self, store):
        tracker = FakeTracker([garmin_run(day="2026-10-13")])
        result = await service_for(store, tracker).sync(USER_ID, ON_DAY)

        assert result.success is True
        assert result.action == "no_activity"
        assert result.workout is None
        assert tracker.disconnected == 1

    async def test_latest_matching_run_wins(self, store):
        tracker = FakeTracker([
            garmin_run(activity_id=1, gmt="11:00:00"),
            garmin_run(activity_id=2, gmt="23:00:00"),
            garmin_run(activity_id=3, gmt="23:30:00", type_key="cycling"),
        ])
        result = await service_for(store, tracker).sync(USER_ID, ON_DAY)
        assert result.workout.external_id == "2"

    async def test_tracker_failure_is_structured(self, store):
        tracker = FakeTracker()
        tracker.fail["list_activities"] = IntegrationError(
            "bridge unreachable", integration="garmin", operation="list_activities",
        )
        result = await service_for(store, tracker).sync(USER_ID, ON_DAY)

        assert result.success is False
        assert result.action == "no_activity"
        assert result.error == "bridge unreachable"
        assert tracker.disconnected == 1


class TestSplits:
    """Lap detail falls back endpoint by endpoint"""

    LAP = {"lapIndex": 1, "distance": 1609.34, "duration": 480.0, "averageHR": 150}

    async def test_dedicated_endpoint(self, store):
        tracker = FakeTracker([garmin_run()])
        tracker.splits["111"] = {"lapDTOs": [self.LAP]}
        result = await service_for(store, tracker).sync(USER_ID, ON_DAY)

        [lap] = result.workout.splits
        assert lap["distance_miles"] == 1.0
        assert lap["pace_per_mile"] == "8:00/mi"
        assert lap["avg_heart_rate"] == 150

    async def test_falls_back_to_activity_detail(self, store):
        tracker = FakeTracker([garmin_run()])
        tracker.fail["get_activity_splits"] = RuntimeError("404")
        tracker.details["111"] = {"laps": [self.LAP, self.LAP]}
        result = await service_for(store, tracker).sync(USER_ID, ON_DAY)

        assert [lap["lap_number"] for lap in result.workout.splits] == [1, 1]

    async def test_no_split_source_still_syncs(self, store):
        result = await service_for(store, FakeTracker([garmin_run()])).sync(USER_ID, ON_DAY)
        assert result.success is True
        assert result.workout.splits == []


class TestConversions:

    def test_format_pace(self):
        assert format_pace(2880, 5.0) == "9:36/mi"
        assert format_pace(419.6, 1.0) == "7:00/mi"
        assert format_pace(None, 5.0) is None
        assert format_pace(600, 0) is None

    def test_meters_to_miles(self):
        assert meters_to_miles(16093.4) == 10.0
        assert meters_to_miles(None) is None

    @pytest.mark.parametrize("stamp", ["2026-10-14 06:55:29", "2026-10-14T06:55:29"])
    def test_local_date(self, stamp):
        assert local_date_of({"startTimeLocal": stamp}) == "2026-10-14"

    def test_activity_type(self):
        assert activity_type_of({"activityType": {"typeKey": "trail_running"}}) == "trail_running"
        assert activity_type_of({"activityType": "running"}) == "running"
        assert activity_type_of({}) == ""
