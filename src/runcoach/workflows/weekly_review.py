"""
workflows.weekly_review - Sunday review of the week ahead.

    1. Assess readiness from the last 7 days of HRV and sleep
    2. Load context and next week's planned workouts (Monday-Sunday)
    3. Training coach proposes adjustments (JSON array)
    4. Apply them to the planned workouts
    5. Write a short week preview (single completion, canned text on failure)
    6. Post the preview to the whiteboard for 7 days

Readiness rules:

    HRV trend     second-half mean vs first-half mean, +/-5%; fewer than 3 values is "unknown"
    sleep         mean >= 7.5h good, >= 6.5h moderate, otherwise poor; no data is "unknown"
    recommend     push if HRV improving and sleep good; recover if HRV declining or sleep poor;
                  maintain otherwise
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Literal, Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

from runcoach.agent.harness import AgentHarness, ExecuteOptions
from runcoach.application.context import AgentContext
from runcoach.application.context_loader import ContextLoader, plan_position
from runcoach.application.store import Store
from runcoach.domain.entities import HealthSnapshot, WhiteboardEntry, Workout
from runcoach.domain.exceptions import LLMError
from runcoach.domain.models import AgentId, EntryType, WhiteboardPayload
from runcoach.domain.ports import LLMClientPort
from runcoach.domain.tasks import WeeklyReviewTask
from runcoach.infrastructure.log import CoachLogger, get_logger
from runcoach.workflows.base import PipelineRun, StageOutcome, expires_in, extract_json, pick_agent

HrvTrend = Literal["improving", "stable", "declining", "unknown"]
SleepQuality = Literal["good", "moderate", "poor", "unknown"]
Recommendation = Literal["push", "maintain", "recover"]

READINESS_DAYS = 7
HRV_CHANGE_THRESHOLD = 0.05
PREVIEW_EXPIRY_DAYS = 7

_PREVIEW_SYSTEM = (
    "You are a running coach writing a short, upbeat preview of the athlete's coming "
    "week. Three to five sentences. Mention the key sessions and how readiness shaped them."
)


@dataclass(frozen=True)
class WeeklyReviewOptions:
    today: Optional[date] = None
    apply_adjustments: bool = True
    agent_options: Optional[ExecuteOptions] = None


@dataclass(frozen=True)
class Readiness:
    hrv_trend: HrvTrend
    sleep_quality: SleepQuality
    recommendation: Recommendation
    avg_sleep_hours: Optional[float] = None

    @property
    def notes(self) -> tuple[str, ...]:
        sleep = f" ({self.avg_sleep_hours:.1f}h avg)" if self.avg_sleep_hours is not None else ""
        return (f"HRV trend: {self.hrv_trend}", f"Sleep quality: {self.sleep_quality}{sleep}")


@dataclass(frozen=True)
class WorkoutAdjustment:
    workout_id: str
    new_pace: Optional[str] = None
    new_distance: Optional[float] = None
    new_description: Optional[str] = None
    reason: str = ""

    def changes(self) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        if self.new_pace:
            changes["prescribed_pace_per_mile"] = self.new_pace
        if self.new_distance is not None:
            changes["prescribed_distance_miles"] = self.new_distance
        if self.new_description:
            changes["prescribed_description"] = self.new_description
        return changes


@dataclass
class WeeklyReviewResult:
    success: bool
    week_number: int = 1
    week_start: str = ""
    week_end: str = ""
    readiness: Optional[Readiness] = None
    adjustments: list[WorkoutAdjustment] = field(default_factory=list)
    adjusted_workouts: int = 0
    week_preview: str = ""
    whiteboard_entry: Optional[WhiteboardEntry] = None
    stages: tuple[StageOutcome, ...] = ()
    errors: list[str] = field(default_factory=list)
    duration_ms: float = 0.0


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------

def hrv_trend(values: Sequence[float]) -> HrvTrend:
    """Trend of chronologically ordered HRV readings."""
    if len(values) < 3:
        return "unknown"
    mid = len(values) // 2
    first = sum(values[:mid]) / mid
    second = sum(values[mid:]) / (len(values) - mid)
    if first == 0:
        return "unknown"
    change = (second - first) / first
    if change > HRV_CHANGE_THRESHOLD:
        return "improving"
    if change < -HRV_CHANGE_THRESHOLD:
        return "declining"
    return "stable"


def sleep_quality(avg_hours: Optional[float]) -> SleepQuality:
    if avg_hours is None or avg_hours <= 0:
        return "unknown"
    if avg_hours >= 7.5:
        return "good"
    if avg_hours >= 6.5:
        return "moderate"
    return "poor"


def assess_readiness(snapshots: Sequence[HealthSnapshot]) -> Readiness:
    """Readiness from health snapshots in any order."""
    ordered = sorted(snapshots, key=lambda s: s.snapshot_date)
    hrv = [s.hrv for s in ordered if s.hrv is not None]
    sleep = [s.sleep_hours for s in ordered if s.sleep_hours is not None]
    avg_sleep = sum(sleep) / len(sleep) if sleep else None

    trend = hrv_trend(hrv)
    quality = sleep_quality(avg_sleep)
    recommendation: Recommendation = "maintain"
    if trend == "improving" and quality == "good":
        recommendation = "push"
    elif trend == "declining" or quality == "poor":
        recommendation = "recover"
    return Readiness(trend, quality, recommendation, avg_sleep)


def next_week_bounds(today: date) -> tuple[date, date]:
    """Next Monday and the Sunday after it. On a Sunday that is tomorrow."""
    monday = today + timedelta(days=7 - today.weekday())
    return monday, monday + timedelta(days=6)


def parse_adjustments(text: str, workout_ids: Sequence[str]) -> list[WorkoutAdjustment]:
    """Adjustments for known workouts that actually change something."""
    data = extract_json(text, kind="array")
    if not isinstance(data, list):
        return []
    known = set(workout_ids)
    adjustments = []
    for item in data:
        if not isinstance(item, dict) or str(item.get("workout_id")) not in known:
            continue
        distance = item.get("new_distance")
        adjustment = WorkoutAdjustment(
            workout_id=str(item["workout_id"]),
            new_pace=item.get("new_pace") or None,
            new_distance=float(distance) if isinstance(distance, (int, float)) else None,
            new_description=item.get("new_description") or None,
            reason=str(item.get("reason") or ""),
        )
        if adjustment.changes():
            adjustments.append(adjustment)
    return adjustments


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------

async def run_weekly_review_flow(
    store: Store,
    llm: LLMClientPort,
    user_id: str,
    timezone: str = "America/Chicago",
    options: WeeklyReviewOptions = WeeklyReviewOptions(),
    *,
    agents: Optional[Mapping[str, AgentHarness]] = None,
    logger: Optional[CoachLogger] = None,
) -> WeeklyReviewResult:
    log = (logger or get_logger(__name__)).child(workflow="weekly_review", user_id=user_id)
    run = PipelineRun("weekly_review", log)
    today = options.today or datetime.now(ZoneInfo(timezone)).date()
    monday, sunday = next_week_bounds(today)
    result = WeeklyReviewResult(success=False, week_start=monday.isoformat(), week_end=sunday.isoformat())

    async def readiness() -> Readiness:
        start = (today - timedelta(days=READINESS_DAYS)).isoformat()
        return assess_readiness(await store.health.get_range(user_id, start, today.isoformat()))

    result.readiness = await run.stage("assess_readiness", readiness)
    if result.readiness is not None:
        log.info("Readiness: %s (%s)", result.readiness.recommendation, ", ".join(result.readiness.notes))

    loader = ContextLoader(store, log)
    ctx: Optional[AgentContext] = await run.stage(
        "load_context", lambda: loader.load(user_id, timezone, today=today),
    )

    async def next_week() -> list[Workout]:
        workouts = await store.workouts.find_between(user_id, monday.isoformat(), sunday.isoformat())
        return [w for w in workouts if w.status == "planned"]

    planned = await run.stage("load_next_week", next_week) or []
    if ctx is not None:
        result.week_number = plan_position(ctx.snapshot.active_plan, monday)[0] or 1

    coach = pick_agent(agents, llm, AgentId.TRAINING_COACH.value, log)

    async def propose() -> list[WorkoutAdjustment]:
        if not planned:
            log.info("No planned workouts for %s to %s", result.week_start, result.week_end)
            return []
        task = WeeklyReviewTask(
            week_start=result.week_start,
            week_end=result.week_end,
            week_number=result.week_number,
            readiness_recommendation=result.readiness.recommendation if result.readiness else "maintain",
            readiness_notes=result.readiness.notes if result.readiness else (),
            next_week=tuple(planned),
        )
        agent_result = await coach.execute(ctx.with_task(task), options.agent_options)
        if agent_result.subtype != "success":
            raise RuntimeError(agent_result.content)
        return parse_adjustments(agent_result.content, [w.id for w in planned])

    result.adjustments = await run.stage(
        "adjustments", propose, requires=("load_context", "load_next_week"),
    ) or []

    if not options.apply_adjustments:
        run.skip("apply_adjustments", "disabled")
    elif result.adjustments:
        by_id = {w.id: w for w in planned}

        async def apply() -> None:
            for adj in result.adjustments:
                workout = by_id[adj.workout_id]
                await store.workouts.update(user_id, adj.workout_id, {
                    **adj.changes(),
                    "metadata": {**workout.metadata, "weekly_adjustment": {
                        "reason": adj.reason, "week_number": result.week_number,
                    }},
                })
                result.adjusted_workouts += 1
                log.info("Adjusted workout %s: %s", adj.workout_id, adj.reason)

        await run.stage("apply_adjustments", apply, requires=("adjustments",))

    async def preview() -> str:
        return await _week_preview(llm, result, planned, log)

    result.week_preview = await run.stage("week_preview", preview) or ""

    async def post_preview() -> WhiteboardEntry:
        readiness = result.readiness
        return await store.board.post(user_id, AgentId.TRAINING_COACH.value, WhiteboardPayload(
            entry_type=EntryType.WEEK_PREVIEW,
            title=f"Week {result.week_number} Preview",
            content=result.week_preview,
            structured_data={
                "week_start": result.week_start,
                "week_end": result.week_end,
                "recommendation": readiness.recommendation if readiness else None,
                "hrv_trend": readiness.hrv_trend if readiness else None,
                "sleep_quality": readiness.sleep_quality if readiness else None,
                "adjusted_workouts": result.adjusted_workouts,
            },
            priority=70,
            tags=("weekly", "preview"),
            expires_at=expires_in(PREVIEW_EXPIRY_DAYS),
        ), context_date=today.isoformat())

    result.whiteboard_entry = await run.stage("post_preview", post_preview, requires=("week_preview",))

    run.finish()
    result.stages = run.stages
    result.errors = run.errors
    result.success = not result.errors
    result.duration_ms = run.duration_ms
    return result


async def _week_preview(
    llm: LLMClientPort, result: WeeklyReviewResult, planned: Sequence[Workout], log: CoachLogger,
) -> str:
    readiness = result.readiness
    sessions = "\n".join(
        f"- {w.scheduled_date}: {w.title}"
        + (f", {w.prescribed_distance_miles} mi" if w.prescribed_distance_miles else "")
        for w in planned
    ) or "- no sessions planned"
    prompt = (
        f"Week {result.week_number}, {result.week_start} to {result.week_end}.\n"
        f"Readiness: {readiness.recommendation if readiness else 'unknown'}"
        + (f" ({', '.join(readiness.notes)})" if readiness else "")
        + f"\nAdjusted workouts: {result.adjusted_workouts}\nSessions:\n{sessions}"
    )
    try:
        return (await llm.complete(_PREVIEW_SYSTEM, prompt)).strip()
    except LLMError as e:
        log.warning("Week preview generation failed, using fallback text: %s", e)
        return fallback_preview(result, len(planned))


def fallback_preview(result: WeeklyReviewResult, sessions: int) -> str:
    focus = {
        "push": "You're recovering well, so this week builds a little.",
        "recover": "Recovery markers are down, so this week eases off.",
        "maintain": "This week holds steady.",
    }[result.readiness.recommendation if result.readiness else "maintain"]
    return (
        f"Week {result.week_number} ({result.week_start} to {result.week_end}): "
        f"{sessions} planned session(s). {focus}"
    )
