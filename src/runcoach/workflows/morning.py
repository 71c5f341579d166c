"""
workflows.morning - The morning briefing.

    1. Sync health metrics from the tracker        (skill, skippable)
    2. Sync today's activity                        (skill, skippable)
    3. Load context                                  (skill)
    4. Health analysis                               (health-agent)
    5. Training analysis                             (training-coach)
    6. Post both findings to the whiteboard

Analyses 4 and 5 only require the context; either can fail without
affecting the other. Each whiteboard post requires its own analysis.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from runcoach.agent.harness import AgentHarness, ExecuteOptions
from runcoach.application.context import AgentContext
from runcoach.application.context_loader import ContextLoader
from runcoach.application.services.activity_sync import ActivitySyncService
from runcoach.application.services.metrics_sync import MetricsSyncService
from runcoach.application.store import Store
from runcoach.domain.entities import WhiteboardEntry
from runcoach.domain.models import (
    AgentId,
    EntryType,
    MetricsSyncResult,
    SyncActivityResult,
    SyncOptions,
    WhiteboardPayload,
)
from runcoach.domain.ports import ActivityTrackerPort, LLMClientPort
from runcoach.domain.tasks import DailyAnalysisTask
from runcoach.infrastructure.log import CoachLogger, get_logger
from runcoach.workflows.base import (
    PipelineRun,
    StageOutcome,
    end_of_day,
    extract_json,
    pick_agent,
)

DEFAULT_TIMEZONE = "America/Chicago"


@dataclass(frozen=True)
class MorningFlowOptions:
    skip_metrics_sync: bool = False
    skip_activity_sync: bool = False
    skip_health_analysis: bool = False
    skip_training_analysis: bool = False
    agent_options: Optional[ExecuteOptions] = None


@dataclass(frozen=True)
class HealthAnalysis:
    summary: str
    recovery_score: Optional[int] = None
    concerns: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()


@dataclass(frozen=True)
class TrainingAnalysis:
    summary: str
    recommendation: str = ""
    modify_workout: bool = False


@dataclass
class MorningFlowResult:
    success: bool
    metrics_sync: Optional[MetricsSyncResult] = None
    activity_sync: Optional[SyncActivityResult] = None
    health_analysis: Optional[HealthAnalysis] = None
    training_analysis: Optional[TrainingAnalysis] = None
    whiteboard_entries: list[WhiteboardEntry] = field(default_factory=list)
    stages: tuple[StageOutcome, ...] = ()
    errors: list[str] = field(default_factory=list)
    duration_ms: float = 0.0


def parse_health_analysis(text: str) -> HealthAnalysis:
    data = extract_json(text)
    if not isinstance(data, dict):
        return HealthAnalysis(summary=text.strip()[:500])
    score = data.get("recovery_score")
    if isinstance(score, (int, float)):
        # Some models answer on a 0-1 scale.
        score = round(score * 100) if 0 < score <= 1 else round(score)
        score = max(0, min(100, score))
    else:
        score = None
    return HealthAnalysis(
        summary=str(data.get("summary") or ""),
        recovery_score=score,
        concerns=tuple(str(c) for c in data.get("concerns") or ()),
        recommendations=tuple(str(r) for r in data.get("recommendations") or ()),
    )


def parse_training_analysis(text: str) -> TrainingAnalysis:
    data = extract_json(text)
    if not isinstance(data, dict):
        return TrainingAnalysis(summary=text.strip()[:500])
    return TrainingAnalysis(
        summary=str(data.get("summary") or ""),
        recommendation=str(data.get("recommendation") or ""),
        modify_workout=bool(data.get("modify_workout", False)),
    )


async def run_morning_flow(
    store: Store,
    llm: LLMClientPort,
    user_id: str,
    timezone: str = DEFAULT_TIMEZONE,
    options: MorningFlowOptions = MorningFlowOptions(),
    *,
    tracker_factory: Optional[Callable[[], ActivityTrackerPort]] = None,
    agents: Optional[Mapping[str, AgentHarness]] = None,
    logger: Optional[CoachLogger] = None,
) -> MorningFlowResult:
    log = (logger or get_logger(__name__)).child(workflow="morning", user_id=user_id)
    run = PipelineRun("morning", log)
    result = MorningFlowResult(success=False)

    # 1-2. Skills
    if options.skip_metrics_sync:
        run.skip("metrics_sync", "disabled")
    elif tracker_factory is None:
        run.skip("metrics_sync", "no tracker configured")
    else:
        metrics = MetricsSyncService(store, tracker_factory, default_timezone=timezone, logger=log)
        await run.stage("metrics_sync", lambda: _sync_metrics(metrics, user_id, result))

    if options.skip_activity_sync:
        run.skip("activity_sync", "disabled")
    elif tracker_factory is None:
        run.skip("activity_sync", "no tracker configured")
    else:
        sync = ActivitySyncService(store, tracker_factory, default_timezone=timezone, logger=log)
        await run.stage("activity_sync", lambda: _sync_activity(sync, user_id, timezone, result))

    # 3. Context
    loader = ContextLoader(store, log)
    ctx: Optional[AgentContext] = await run.stage(
        "load_context", lambda: loader.load(user_id, timezone, DailyAnalysisTask()),
    )

    # 4. Health
    if options.skip_health_analysis:
        run.skip("health_analysis", "disabled")
    else:
        health_agent = pick_agent(agents, llm, AgentId.HEALTH.value, log)
        result.health_analysis = await run.stage(
            "health_analysis",
            lambda: _analyze(health_agent, ctx, options, parse_health_analysis),
            requires=("load_context",),
        )
        if result.health_analysis is not None and result.health_analysis.summary:
            entry = await run.stage(
                "post_health_entry",
                lambda: _post_health(store, ctx, result.health_analysis),
                requires=("health_analysis",),
            )
            if entry is not None:
                result.whiteboard_entries.append(entry)

    # 5. Training
    if options.skip_training_analysis:
        run.skip("training_analysis", "disabled")
    else:
        coach = pick_agent(agents, llm, AgentId.TRAINING_COACH.value, log)
        result.training_analysis = await run.stage(
            "training_analysis",
            lambda: _analyze(coach, ctx, options, parse_training_analysis),
            requires=("load_context",),
        )
        if result.training_analysis is not None and result.training_analysis.summary:
            entry = await run.stage(
                "post_training_entry",
                lambda: _post_training(store, ctx, result.training_analysis),
                requires=("training_analysis",),
            )
            if entry is not None:
                result.whiteboard_entries.append(entry)

    run.finish()
    result.stages = run.stages
    result.errors = run.errors
    result.success = not result.errors
    result.duration_ms = run.duration_ms
    return result


# ---------------------------------------------------------------------------
# Stage bodies
# ---------------------------------------------------------------------------

async def _sync_metrics(service: MetricsSyncService, user_id: str, result: MorningFlowResult) -> None:
    outcome = result.metrics_sync = await service.sync(user_id)
    if outcome.errors and not outcome.metrics_updated:
        raise RuntimeError("metrics sync failed: " + "; ".join(outcome.errors))


async def _sync_activity(
    service: ActivitySyncService, user_id: str, timezone: str, result: MorningFlowResult,
) -> None:
    outcome = result.activity_sync = await service.sync(user_id, SyncOptions(timezone=timezone))
    if not outcome.success:
        raise RuntimeError(f"activity sync failed: {outcome.error}")


async def _analyze(agent: AgentHarness, ctx: AgentContext, options: MorningFlowOptions, parse):
    agent_result = await agent.execute(ctx.with_task(DailyAnalysisTask()), options.agent_options)
    if agent_result.subtype != "success":
        raise RuntimeError(agent_result.content)
    return parse(agent_result.content)


async def _post_health(store: Store, ctx: AgentContext, analysis: HealthAnalysis) -> WhiteboardEntry:
    score = f"{analysis.recovery_score}%" if analysis.recovery_score is not None else "Unknown"
    has_concerns = bool(analysis.concerns)
    return await store.board.post(ctx.user_id, AgentId.HEALTH.value, WhiteboardPayload(
        entry_type=EntryType.ALERT if has_concerns else EntryType.INSIGHT,
        title=f"Recovery Status: {score}",
        content=analysis.summary,
        structured_data={
            "recovery_score": analysis.recovery_score,
            "concerns": list(analysis.concerns),
            "recommendations": list(analysis.recommendations),
        },
        priority=80 if has_concerns else 60,
        tags=("morning", "recovery"),
        expires_at=end_of_day(ctx.timezone),
    ), context_date=ctx.date_iso)


async def _post_training(store: Store, ctx: AgentContext, analysis: TrainingAnalysis) -> WhiteboardEntry:
    workout = ctx.snapshot.today_workout
    return await store.board.post(ctx.user_id, AgentId.TRAINING_COACH.value, WhiteboardPayload(
        entry_type=EntryType.RECOMMENDATION,
        title=f"Today's Training: {workout.title}" if workout else "Training Update",
        content=analysis.summary,
        structured_data={
            "recommendation": analysis.recommendation,
            "modify_workout": analysis.modify_workout,
        },
        priority=60,
        tags=("morning", "training"),
        related_entity_type="workout" if workout else None,
        related_entity_id=workout.id if workout else None,
        expires_at=end_of_day(ctx.timezone),
    ), context_date=ctx.date_iso)
