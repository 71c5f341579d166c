"""
Daily metrics sync tests
"""

from __future__ import annotations

from conftest import USER_ID, FakeTracker
from runcoach.application.services.metrics_sync import MetricsSyncService
from runcoach.domain.entities import HealthSnapshot

DAY = "2026-10-14"


class TestMetricsSync:
    """Per-source fetch, merge into one snapshot per date"""

    async def test_all_sources_saved(self, store):
        tracker = FakeTracker()
        result = await MetricsSyncService(store, lambda: tracker).sync(USER_ID, DAY)

        assert result.success is True
        assert result.metrics_updated == ("daily_summary", "sleep", "hrv", "body_battery")

        snapshot = await store.health.get_by_date(USER_ID, DAY)
        assert snapshot.sleep_hours == 7.5
        assert snapshot.resting_hr == 48
        assert snapshot.hrv == 62
        assert snapshot.stress_level == 28
        assert snapshot.hrv_status == "BALANCED"
        assert snapshot.body_battery == (20, 85)
        assert snapshot.source == "garmin"

    async def test_failing_source_does_not_block_others(self, store):
        tracker = FakeTracker()
        tracker.fail["hrv"] = RuntimeError("HRV not available")
        result = await MetricsSyncService(store, lambda: tracker).sync(USER_ID, DAY)

        assert result.success is False
        assert result.errors == ("hrv: HRV not available",)
        assert "hrv" not in result.metrics_updated
        assert (await store.health.get_by_date(USER_ID, DAY)).sleep_hours == 7.5

    async def test_merges_with_manual_values(self, store):
        await store.health.upsert(HealthSnapshot(
            user_id=USER_ID, snapshot_date=DAY, soreness_level=4, energy_level=6,
        ))
        await MetricsSyncService(store, lambda: FakeTracker()).sync(USER_ID, DAY)

        snapshot = await store.health.get_by_date(USER_ID, DAY)
        assert snapshot.soreness_level == 4
        assert snapshot.hrv == 62

    async def test_connect_failure(self, store):
        tracker = FakeTracker()
        tracker.fail["connect"] = ConnectionError("login failed")
        result = await MetricsSyncService(store, lambda: tracker).sync(USER_ID, DAY)

        assert result.success is False
        assert result.metrics_updated == ()
        assert result.errors == ("login failed",)
        assert tracker.disconnected == 1
        assert await store.health.get_by_date(USER_ID, DAY) is None

    async def test_nothing_reported(self, store):
        tracker = FakeTracker()
        tracker.daily = tracker.sleep = tracker.hrv = None
        tracker.battery = []
        result = await MetricsSyncService(store, lambda: tracker).sync(USER_ID, DAY)

        assert result.success is True
        assert result.metrics_updated == ()
        assert await store.health.get_by_date(USER_ID, DAY) is None
