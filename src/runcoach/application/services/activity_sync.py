"""
application.services.activity_sync - Reconcile the latest device activity.

Deterministic skill, no LLM. Pulls the most recent matching activity for
a date from the fitness tracker and links it to exactly one workout
record:

    already_synced  a record with the same external id exists (and no force)
    updated         device actuals were merged into a planned record
    created         no planned record matched, a completed one was inserted
    no_activity     nothing to sync, or the sync failed (``error`` set)

Re-running for the same activity never creates a second record. The
existence check and the insert are separate statements; the unique
(user_id, external_id) index turns a lost race into ``already_synced``.
"""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from runcoach.application.store import Store
from runcoach.domain.entities import Workout
from runcoach.domain.exceptions import NotFoundError
from runcoach.domain.models import SyncActivityResult, SyncedActivity, SyncOptions
from runcoach.domain.ports import ActivityTrackerPort
from runcoach.infrastructure.log import CoachLogger, get_logger

METERS_PER_MILE = 1609.34
FEET_PER_METER = 3.28084
ACTIVITY_WINDOW = 20
_SYNC_METADATA = ("garmin", "garmin_activity_id", "laps", "synced_at")


class ActivitySyncService:

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

    async def sync(self, user_id: str, options: SyncOptions = SyncOptions()) -> SyncActivityResult:
        target_date = options.date or local_today(options.timezone or self._default_timezone).isoformat()
        log = self._logger.child(user_id=user_id, date=target_date)
        log.info("Syncing latest %s activity", options.activity_kind)

        client = self._tracker_factory()
        try:
            await client.connect()
            raw = await self._pick_activity(client, target_date, options.activity_kind, log)
            if raw is None:
                return SyncActivityResult(success=True, action="no_activity")

            external_id = external_id_of(raw)
            workouts = self._store.workouts

            linked = await workouts.find_by_external_id(user_id, external_id)
            if linked is not None and not options.force_resync:
                log.info("Activity %s already synced to workout %s", external_id, linked.id)
                return SyncActivityResult(success=True, action="already_synced", workout=linked)

            splits = await self._fetch_splits(client, raw, log)
            activity = to_synced_activity(raw, external_id, splits)
            target = await self._find_target(user_id, target_date, options, linked)
            return await self._apply(user_id, target_date, activity, target, linked, log)
        except Exception as e:
            log.error("Activity sync failed: %s", e)
            return SyncActivityResult(success=False, action="no_activity", error=str(e))
        finally:
            try:
                await client.disconnect()
            except Exception as e:
                log.warning("Tracker disconnect failed: %s", e)

    # ---------------------------------------------------------------------------
    # Steps
    # ---------------------------------------------------------------------------

    async def _pick_activity(
        self, client: ActivityTrackerPort, target_date: str, kind: str, log: CoachLogger,
    ) -> Optional[dict[str, Any]]:
        activities = await client.list_activities(ACTIVITY_WINDOW) or []
        on_date = [a for a in activities if local_date_of(a) == target_date]
        log.info("Found %d activities for %s (of %d fetched)", len(on_date), target_date, len(activities))
        if not on_date and activities:
            available = sorted({local_date_of(a) for a in activities})
            log.debug("Available activity dates: %s", ", ".join(available))

        matching = [a for a in on_date if kind.lower() in activity_type_of(a).lower()]
        if not matching:
            return None
        return max(matching, key=lambda a: a.get("startTimeGMT") or "")

    async def _fetch_splits(
        self, client: ActivityTrackerPort, raw: dict[str, Any], log: CoachLogger,
    ) -> list[dict[str, Any]]:
        """Lap detail: dedicated endpoint, then activity detail, then the summary itself."""
        activity_id = raw.get("activityId")
        if activity_id is not None:
            try:
                laps = _laps_from(await client.get_activity_splits(str(activity_id)))
                if laps:
                    return laps
            except Exception as e:
                log.warning("Could not fetch splits for %s: %s", activity_id, e)
            try:
                laps = _laps_from(await client.get_activity(str(activity_id)))
                if laps:
                    return laps
            except Exception as e:
                log.warning("Could not fetch activity detail for %s: %s", activity_id, e)
        return _laps_from(raw)

    async def _find_target(
        self, user_id: str, target_date: str, options: SyncOptions, linked: Optional[Workout],
    ) -> Optional[Workout]:
        workouts = self._store.workouts
        if options.target_workout_id:
            target = await workouts.get_by_id(user_id, options.target_workout_id)
            if target is None:
                raise NotFoundError("workout", options.target_workout_id)
            return target
        if linked is not None:
            return linked
        planned = await workouts.find_planned_for_date(user_id, target_date)
        unlinked = [w for w in planned if not w.external_id]
        return (unlinked or planned or [None])[0]

    async def _apply(
        self,
        user_id: str,
        target_date: str,
        activity: SyncedActivity,
        target: Optional[Workout],
        linked: Optional[Workout],
        log: CoachLogger,
    ) -> SyncActivityResult:
        workouts = self._store.workouts
        changes = merge_fields(activity, target)
        try:
            if target is not None and linked is not None and linked.id != target.id:
                workout = await workouts.move_link(
                    user_id, linked.id, target.id, release_fields(linked), changes,
                )
                log.info("Moved activity %s from workout %s to %s", activity.external_id, linked.id, target.id)
                return SyncActivityResult(success=True, action="updated", workout=workout, activity=activity)
            if target is not None:
                workout = await workouts.update(user_id, target.id, changes)
                log.info("Merged activity %s into workout %s", activity.external_id, target.id)
                return SyncActivityResult(success=True, action="updated", workout=workout, activity=activity)

            workout = await workouts.create(Workout(
                user_id=user_id,
                title=activity.name or f"{target_date} Run",
                workout_type="run",
                scheduled_date=target_date,
                **changes,
            ))
            log.info("Created workout %s for activity %s", workout.id, activity.external_id)
            return SyncActivityResult(success=True, action="created", workout=workout, activity=activity)
        except sqlite3.IntegrityError:
            existing = await workouts.find_by_external_id(user_id, activity.external_id)
            if existing is None:
                raise
            log.info("Activity %s was synced concurrently", activity.external_id)
            return SyncActivityResult(success=True, action="already_synced", workout=existing)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def local_today(tz_name: str) -> date:
    return datetime.now(ZoneInfo(tz_name)).date()


def local_date_of(activity: dict[str, Any]) -> str:
    # "2025-12-11 06:55:29" or "2025-12-11T06:55:29"
    return (activity.get("startTimeLocal") or "").split("T")[0].split(" ")[0]


def activity_type_of(activity: dict[str, Any]) -> str:
    kind = activity.get("activityType")
    if isinstance(kind, dict):
        return kind.get("typeKey") or ""
    return kind or ""


def external_id_of(activity: dict[str, Any]) -> str:
    activity_id = activity.get("activityId")
    if activity_id is None:
        raise ValueError("Activity has no activityId")
    return str(activity_id)


def meters_to_miles(meters: Optional[float]) -> Optional[float]:
    return round(meters / METERS_PER_MILE, 2) if meters else None


def format_pace(seconds: Optional[float], miles: Optional[float]) -> Optional[str]:
    """Pace as ``m:ss/mi``."""
    if not seconds or not miles:
        return None
    total = round(seconds / miles)
    return f"{total // 60}:{total % 60:02d}/mi"


def _laps_from(payload: Any) -> list[dict[str, Any]]:
    if not payload:
        return []
    if isinstance(payload, list):
        raw_laps = payload
    else:
        raw_laps = (
            payload.get("lapDTOs") or payload.get("laps")
            or payload.get("splits") or payload.get("splitSummaries") or []
        )
    laps = []
    for index, lap in enumerate(raw_laps, start=1):
        if not isinstance(lap, dict):
            continue
        miles = meters_to_miles(lap.get("distance"))
        seconds = lap.get("duration") or lap.get("elapsedDuration")
        elevation = lap.get("elevationGain")
        laps.append({
            "lap_number": lap.get("lapIndex", index),
            "distance_miles": miles,
            "duration_seconds": round(seconds) if seconds else None,
            "pace_per_mile": format_pace(seconds, miles),
            "avg_heart_rate": lap.get("averageHR"),
            "max_heart_rate": lap.get("maxHR"),
            "avg_cadence": lap.get("averageRunCadence"),
            "elevation_gain_ft": round(elevation * FEET_PER_METER) if elevation else None,
        })
    return laps


def to_synced_activity(
    raw: dict[str, Any], external_id: str, splits: list[dict[str, Any]],
) -> SyncedActivity:
    seconds = raw.get("duration")
    miles = meters_to_miles(raw.get("distance"))
    elevation = raw.get("elevationGain")
    return SyncedActivity(
        external_id=external_id,
        name=raw.get("activityName") or "",
        activity_type=activity_type_of(raw),
        start_time_local=raw.get("startTimeLocal") or "",
        duration_minutes=round(seconds / 60) if seconds else None,
        distance_miles=miles,
        pace_per_mile=format_pace(seconds, miles),
        avg_heart_rate=raw.get("averageHR"),
        max_heart_rate=raw.get("maxHR"),
        calories=raw.get("calories"),
        elevation_gain_ft=round(elevation * FEET_PER_METER) if elevation else None,
        cadence_avg=raw.get("averageRunningCadenceInStepsPerMinute") or raw.get("avgRunningCadence"),
        splits=tuple(splits),
        raw=dict(raw),
    )


def merge_fields(activity: SyncedActivity, target: Optional[Workout]) -> dict[str, Any]:
    """Columns written on sync. Prescribed columns are never touched."""
    metadata = dict(target.metadata) if target is not None else {}
    metadata.update({
        "garmin": activity.raw,
        "garmin_activity_id": activity.external_id,
        "laps": list(activity.splits),
        "synced_at": datetime.now(timezone.utc).isoformat(),
    })
    return {
        "status": "completed",
        "completed_at": datetime.now(timezone.utc).isoformat(),
        "actual_duration_minutes": activity.duration_minutes,
        "actual_distance_miles": activity.distance_miles,
        "actual_pace_per_mile": activity.pace_per_mile,
        "avg_heart_rate": activity.avg_heart_rate,
        "max_heart_rate": activity.max_heart_rate,
        "calories": activity.calories,
        "elevation_gain_ft": activity.elevation_gain_ft,
        "cadence_avg": activity.cadence_avg,
        "splits": list(activity.splits),
        "external_id": activity.external_id,
        "source": "garmin",
        "metadata": metadata,
    }


def release_fields(workout: Workout) -> dict[str, Any]:
    """Columns cleared on a workout that loses its activity link."""
    metadata = {k: v for k, v in workout.metadata.items() if k not in _SYNC_METADATA}
    return {"metadata": metadata}
