"""
workflows.weekly_summary - End-of-week training summary.

    1. Load the week's workouts (Monday-Sunday around ``today``) and health data
    2. Load context (plan position, earlier summaries)
    3. Aggregate the week: completed miles, duration, completed / skipped
       sessions, average heart rate and pace
    4. Training coach writes the narrative summary
    5. Save it to weekly_summaries, one row per week

The saved rows are what the context loader surfaces as "Weekly summaries"
in every later prompt. Meant to run on Sunday evening.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

from runcoach.agent.harness import AgentHarness, ExecuteOptions
from runcoach.application.context import AgentContext
from runcoach.application.context_loader import ContextLoader, plan_position
from runcoach.application.store import Store
from runcoach.domain.entities import HealthSnapshot, WeeklySummary, Workout
from runcoach.domain.models import AgentId, WeekStats
from runcoach.domain.ports import LLMClientPort
from runcoach.domain.tasks import WeeklySummaryTask
from runcoach.infrastructure.log import CoachLogger, get_logger
from runcoach.workflows.base import PipelineRun, StageOutcome, pick_agent


@dataclass(frozen=True)
class WeeklySummaryOptions:
    today: Optional[date] = None
    agent_options: Optional[ExecuteOptions] = None


@dataclass
class WeeklySummaryResult:
    success: bool
    week_number: int = 1
    week_start: str = ""
    week_end: str = ""
    stats: WeekStats = WeekStats()
    summary: Optional[str] = None
    saved_week: Optional[WeeklySummary] = None
    stages: tuple[StageOutcome, ...] = ()
    errors: list[str] = field(default_factory=list)
    duration_ms: float = 0.0


@dataclass(frozen=True)
class _WeekData:
    workouts: list[Workout]
    health: list[HealthSnapshot]
    existing: Optional[WeeklySummary]


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def week_bounds(today: date) -> tuple[date, date]:
    """Monday and Sunday of the week containing *today*."""
    monday = today - timedelta(days=today.weekday())
    return monday, monday + timedelta(days=6)


def pace_seconds(pace: Optional[str]) -> Optional[int]:
    """``"8:05/mi"`` -> 485."""
    if not pace:
        return None
    minutes, _, seconds = pace.replace("/mi", "").strip().partition(":")
    try:
        return int(minutes) * 60 + int(seconds)
    except ValueError:
        return None


def week_stats(workouts: Sequence[Workout]) -> WeekStats:
    completed = [w for w in workouts if w.status == "completed"]
    skipped = sum(1 for w in workouts if w.status == "skipped")
    heart_rates = [w.avg_heart_rate for w in completed if w.avg_heart_rate]
    paces = [p for p in (pace_seconds(w.actual_pace_per_mile) for w in completed) if p is not None]

    avg_pace = None
    if paces:
        total = round(sum(paces) / len(paces))
        avg_pace = f"{total // 60}:{total % 60:02d}/mi"
    return WeekStats(
        total_miles=round(sum(w.actual_distance_miles or 0 for w in completed), 2),
        total_duration_minutes=round(sum(w.actual_duration_minutes or 0 for w in completed)),
        workouts_completed=len(completed),
        workouts_skipped=skipped,
        avg_heart_rate=round(sum(heart_rates) / len(heart_rates)) if heart_rates else None,
        avg_pace=avg_pace,
    )


def planned_miles(workouts: Sequence[Workout]) -> Optional[float]:
    total = sum(w.prescribed_distance_miles or 0 for w in workouts)
    return round(total, 2) if total else None


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------

async def run_weekly_summary_flow(
    store: Store,
    llm: LLMClientPort,
    user_id: str,
    timezone: str = "America/Chicago",
    options: WeeklySummaryOptions = WeeklySummaryOptions(),
    *,
    agents: Optional[Mapping[str, AgentHarness]] = None,
    logger: Optional[CoachLogger] = None,
) -> WeeklySummaryResult:
    log = (logger or get_logger(__name__)).child(workflow="weekly_summary", user_id=user_id)
    run = PipelineRun("weekly_summary", log)
    today = options.today or datetime.now(ZoneInfo(timezone)).date()
    monday, sunday = week_bounds(today)
    result = WeeklySummaryResult(success=False, week_start=monday.isoformat(), week_end=sunday.isoformat())

    async def load_week() -> _WeekData:
        start, end = result.week_start, result.week_end
        return _WeekData(
            workouts=await store.workouts.find_between(user_id, start, end),
            health=sorted(await store.health.get_range(user_id, start, end), key=lambda h: h.snapshot_date),
            existing=await store.plans.get_week_containing(user_id, start),
        )

    week: Optional[_WeekData] = await run.stage("load_week", load_week)

    loader = ContextLoader(store, log)
    ctx: Optional[AgentContext] = await run.stage(
        "load_context", lambda: loader.load(user_id, timezone, today=today),
    )

    if week is not None:
        result.stats = week_stats(week.workouts)
        log.info(
            "Week %s to %s: %s mi, %d completed, %d skipped",
            result.week_start, result.week_end, result.stats.total_miles,
            result.stats.workouts_completed, result.stats.workouts_skipped,
        )
    plan = ctx.snapshot.active_plan if ctx is not None else None
    if week is not None and week.existing is not None and week.existing.week_number:
        result.week_number = week.existing.week_number
    else:
        result.week_number = plan_position(plan, monday)[0] or 1

    if week is not None and not week.workouts:
        log.info("No workouts scheduled for %s to %s", result.week_start, result.week_end)
        run.skip("summary", "no workouts this week")
        run.skip("save_summary", "nothing to save")
        return _finish(run, result)

    coach = pick_agent(agents, llm, AgentId.TRAINING_COACH.value, log)
    planned = planned_miles(week.workouts) if week is not None else None
    if week is not None and week.existing is not None and week.existing.planned_miles:
        planned = week.existing.planned_miles

    async def summarize() -> str:
        task = WeeklySummaryTask(
            week_start=result.week_start,
            week_end=result.week_end,
            week_number=result.week_number,
            stats=result.stats,
            workouts=tuple(week.workouts),
            health=tuple(week.health),
            planned_miles=planned,
        )
        agent_result = await coach.execute(ctx.with_task(task), options.agent_options)
        if agent_result.subtype != "success":
            raise RuntimeError(agent_result.content)
        if not agent_result.content.strip():
            raise RuntimeError("training coach returned an empty summary")
        return agent_result.content.strip()

    result.summary = await run.stage("summary", summarize, requires=("load_week", "load_context"))

    async def save() -> WeeklySummary:
        existing = week.existing
        return await store.plans.save_week(WeeklySummary(
            id=existing.id if existing else "",
            user_id=user_id,
            plan_id=plan.id if plan else (existing.plan_id if existing else None),
            week_number=result.week_number,
            start_date=result.week_start,
            end_date=result.week_end,
            status="completed",
            planned_miles=planned,
            actual_miles=result.stats.total_miles,
            summary=result.summary,
            workouts_completed=result.stats.workouts_completed,
            workouts_skipped=result.stats.workouts_skipped,
            total_duration_minutes=result.stats.total_duration_minutes,
        ))

    result.saved_week = await run.stage("save_summary", save, requires=("summary",))
    return _finish(run, result)


def _finish(run: PipelineRun, result: WeeklySummaryResult) -> WeeklySummaryResult:
    run.finish()
    result.stages = run.stages
    result.errors = run.errors
    result.success = not result.errors
    result.duration_ms = run.duration_ms
    return result
