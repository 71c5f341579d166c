"""
application.services.metrics_sync - Pull daily recovery metrics from the tracker.

Deterministic skill. Each source (daily summary, sleep, HRV, body
battery) is fetched independently; a failing source is reported in
``errors`` and the others are still saved. One snapshot per user and
date, merged into any existing one.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional

from runcoach.application.services.activity_sync import local_today
from runcoach.application.store import Store
from runcoach.domain.entities import HealthSnapshot
from runcoach.domain.models import MetricsSyncResult
from runcoach.domain.ports import ActivityTrackerPort
from runcoach.infrastructure.log import CoachLogger, get_logger


def _minutes(seconds: Optional[float]) -> Optional[int]:
    return round(seconds / 60) if seconds else None


class MetricsSyncService:

    def __init__(
        self,
        store: Store,
        tracker_factory: Callable[[], ActivityTrackerPort],
        *,
        default_timezone: str = "America/Chicago",
        logger: Optional[CoachLogger] = None,
    ):
        self._store = store
        self._tracker_factory = tracker_factory
        self._default_timezone = default_timezone
        self._logger = logger or get_logger(__name__)

    async def sync(self, user_id: str, day: Optional[str] = None) -> MetricsSyncResult:
        target_date = day or local_today(self._default_timezone).isoformat()
        log = self._logger.child(user_id=user_id, date=target_date)
        updated: list[str] = []
        errors: list[str] = []
        values: dict[str, Any] = {}
        garmin: dict[str, Any] = {}

        client = self._tracker_factory()
        try:
            await client.connect()

            try:
                summary = await client.get_daily_summary(target_date)
                if summary:
                    values["stress_level"] = summary.get("averageStressLevel")
                    garmin.update({
                        "steps": summary.get("totalSteps"),
                        "totalCalories": summary.get("totalKilocalories"),
                        "activeCalories": summary.get("activeKilocalories"),
                        "stress": {
                            "avg": summary.get("averageStressLevel"),
                            "max": summary.get("maxStressLevel"),
                        },
                    })
                    updated.append("daily_summary")
            except Exception as e:
                errors.append(f"daily_summary: {e}")

            try:
                sleep = await client.get_sleep_data(target_date)
                if sleep:
                    seconds = sleep.get("sleepTimeSeconds")
                    values["sleep_hours"] = round(seconds / 3600, 2) if seconds else None
                    if sleep.get("restingHeartRate"):
                        values["resting_hr"] = sleep["restingHeartRate"]
                    garmin["sleep"] = {
                        "deepMinutes": _minutes(sleep.get("deepSleepSeconds")),
                        "lightMinutes": _minutes(sleep.get("lightSleepSeconds")),
                        "remMinutes": _minutes(sleep.get("remSleepSeconds")),
                        "awakeMinutes": _minutes(sleep.get("awakeSleepSeconds")),
                        "scores": sleep.get("sleepScores"),
                    }
                    updated.append("sleep")
            except Exception as e:
                errors.append(f"sleep: {e}")

            try:
                hrv = await client.get_hrv_data(target_date)
                if hrv and hrv.get("lastNightAvg") is not None:
                    values["hrv"] = hrv["lastNightAvg"]
                    garmin["hrv"] = {
                        "lastNightAvg": hrv.get("lastNightAvg"),
                        "status": hrv.get("status"),
                        "baseline": hrv.get("baseline"),
                    }
                    updated.append("hrv")
            except Exception as e:
                errors.append(f"hrv: {e}")

            try:
                battery = await client.get_body_battery(target_date, target_date)
                if battery:
                    latest = battery[-1]
                    garmin["bodyBattery"] = {
                        "lowest": latest.get("bodyBatteryLow", latest.get("lowest")),
                        "highest": latest.get("bodyBatteryHigh", latest.get("highest")),
                        "charged": latest.get("bodyBatteryCharged", latest.get("charged")),
                        "drained": latest.get("bodyBatteryDrained", latest.get("drained")),
                    }
                    updated.append("body_battery")
            except Exception as e:
                errors.append(f"body_battery: {e}")

            if updated:
                await self._store.health.upsert(HealthSnapshot(
                    user_id=user_id,
                    snapshot_date=target_date,
                    source="garmin",
                    metadata={
                        "garmin": garmin,
                        "synced_at": datetime.now(timezone.utc).isoformat(),
                    },
                    **{k: v for k, v in values.items() if v is not None},
                ))
                log.info("Saved metrics: %s", ", ".join(updated))
        except Exception as e:
            log.error("Metrics sync failed: %s", e)
            errors.append(str(e))
        finally:
            try:
                await client.disconnect()
            except Exception as e:
                log.warning("Tracker disconnect failed: %s", e)

        return MetricsSyncResult(
            success=not errors,
            date=target_date,
            metrics_updated=tuple(updated),
            errors=tuple(errors),
        )
