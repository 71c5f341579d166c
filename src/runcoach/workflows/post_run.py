"""
workflows.post_run - Analyze the run the athlete just finished.

    1. Sync the latest activity into its planned workout
    2. Store the athlete's feedback / RPE, if given
    3. Load context
    4. Training-coach analysis
    5. Save the analysis as coach notes on the workout
    6. Post a summary to the whiteboard
    7. Build the message that opens the post-run conversation

When there is no activity to analyze the flow stops after step 1 and
says so in the conversation starter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from runcoach.agent.harness import AgentHarness, ExecuteOptions
from runcoach.application.context import AgentContext
from runcoach.application.context_loader import ContextLoader
from runcoach.application.services.activity_sync import ActivitySyncService
from runcoach.application.store import Store
from runcoach.domain.entities import WhiteboardEntry, Workout
from runcoach.domain.exceptions import ConfigError
from runcoach.domain.models import (
    AgentId,
    EntryType,
    SyncAction,
    SyncActivityResult,
    SyncOptions,
    WhiteboardPayload,
)
from runcoach.domain.ports import ActivityTrackerPort, LLMClientPort
from runcoach.domain.tasks import WorkoutAnalysisTask
from runcoach.infrastructure.log import CoachLogger, get_logger
from runcoach.workflows.base import PipelineRun, StageOutcome, extract_json, pick_agent

NO_RUN_STARTER = "I don't see a recent run to analyze. Did you sync your watch?"


@dataclass(frozen=True)
class PostRunFlowOptions:
    date: Optional[str] = None
    force_resync: bool = False
    target_workout_id: Optional[str] = None
    athlete_feedback: Optional[str] = None
    perceived_exertion: Optional[int] = None
    agent_options: Optional[ExecuteOptions] = None


@dataclass(frozen=True)
class WorkoutAnalysis:
    summary: str
    highlights: tuple[str, ...] = ()
    areas_to_note: tuple[str, ...] = ()
    next_steps: str = "Keep building consistency."


@dataclass
class PostRunFlowResult:
    success: bool
    sync_action: SyncAction = "no_activity"
    workout: Optional[Workout] = None
    analysis: Optional[WorkoutAnalysis] = None
    coach_notes_saved: bool = False
    whiteboard_entry: Optional[WhiteboardEntry] = None
    conversation_starter: str = NO_RUN_STARTER
    stages: tuple[StageOutcome, ...] = ()
    errors: list[str] = field(default_factory=list)
    duration_ms: float = 0.0


def parse_workout_analysis(text: str) -> WorkoutAnalysis:
    data = extract_json(text)
    if not isinstance(data, dict):
        return WorkoutAnalysis(summary=text.strip()[:200], highlights=("Completed the workout!",))
    return WorkoutAnalysis(
        summary=str(data.get("summary") or "Good effort today!"),
        highlights=tuple(str(h) for h in data.get("highlights") or ()),
        areas_to_note=tuple(str(a) for a in data.get("areas_to_note") or ()),
        next_steps=str(data.get("next_steps") or "Keep up the consistency."),
    )


def format_coach_notes(analysis: WorkoutAnalysis) -> str:
    notes = f"## Summary\n{analysis.summary}\n\n"
    if analysis.highlights:
        notes += "## Highlights\n" + "\n".join(f"- {h}" for h in analysis.highlights) + "\n\n"
    if analysis.areas_to_note:
        notes += "## Areas to Note\n" + "\n".join(f"- {a}" for a in analysis.areas_to_note) + "\n\n"
    return notes + f"## Next Steps\n{analysis.next_steps}"


def conversation_starter(workout: Workout, analysis: WorkoutAnalysis, has_feedback: bool) -> str:
    distance = f"{workout.actual_distance_miles} miles" if workout.actual_distance_miles else "your run"
    parts = [f"Great work on {distance} today! {analysis.summary}"]
    if analysis.highlights:
        parts.append("**What stood out:**\n" + "\n".join(f"• {h}" for h in analysis.highlights))
    if analysis.areas_to_note:
        parts.append("**Things to keep in mind:**\n" + "\n".join(f"• {a}" for a in analysis.areas_to_note))
    parts.append(f"**Looking ahead:** {analysis.next_steps}")
    parts.append(
        "Anything else you'd like to discuss about this workout?" if has_feedback
        else "How did you feel during the run? Any specific moments that stood out?"
    )
    return "\n\n".join(parts)


async def run_post_run_flow(
    store: Store,
    llm: LLMClientPort,
    user_id: str,
    timezone: str = "America/Chicago",
    options: PostRunFlowOptions = PostRunFlowOptions(),
    *,
    tracker_factory: Optional[Callable[[], ActivityTrackerPort]] = None,
    agents: Optional[Mapping[str, AgentHarness]] = None,
    logger: Optional[CoachLogger] = None,
) -> PostRunFlowResult:
    log = (logger or get_logger(__name__)).child(workflow="post_run", user_id=user_id)
    run = PipelineRun("post_run", log)
    result = PostRunFlowResult(success=False)

    async def sync() -> SyncActivityResult:
        if tracker_factory is None:
            raise ConfigError("No activity tracker configured")
        service = ActivitySyncService(store, tracker_factory, default_timezone=timezone, logger=log)
        outcome = await service.sync(user_id, SyncOptions(
            date=options.date,
            timezone=timezone,
            force_resync=options.force_resync,
            target_workout_id=options.target_workout_id,
        ))
        if not outcome.success:
            raise RuntimeError(outcome.error or "activity sync failed")
        return outcome

    synced = await run.stage("sync_activity", sync)
    if synced is None or synced.workout is None:
        sync_error = run.error_of("sync_activity")
        result.conversation_starter = (
            f"I couldn't sync your run: {sync_error}" if sync_error else NO_RUN_STARTER
        )
        return _finish(run, result)

    result.sync_action = synced.action
    workout = result.workout = synced.workout
    log.info("Synced workout %s (%s)", workout.id, synced.action)

    feedback = {
        column: value for column, value in (
            ("athlete_feedback", options.athlete_feedback),
            ("perceived_exertion", options.perceived_exertion),
        ) if value is not None
    }
    if feedback:
        async def save_feedback() -> Workout:
            return await store.workouts.update(user_id, workout.id, feedback)

        workout = await run.stage("save_feedback", save_feedback) or workout
        result.workout = workout

    task = WorkoutAnalysisTask(
        workout_id=workout.id,
        athlete_feedback=workout.athlete_feedback,
        perceived_exertion=workout.perceived_exertion,
        workout=workout,
    )
    loader = ContextLoader(store, log)
    ctx: Optional[AgentContext] = await run.stage("load_context", lambda: loader.load(user_id, timezone, task))

    coach = pick_agent(agents, llm, AgentId.TRAINING_COACH.value, log)

    async def analyze() -> WorkoutAnalysis:
        agent_result = await coach.execute(ctx, options.agent_options)
        if agent_result.subtype != "success":
            raise RuntimeError(agent_result.content)
        return parse_workout_analysis(agent_result.content)

    analysis = result.analysis = await run.stage("analysis", analyze, requires=("load_context",))
    if analysis is None:
        result.conversation_starter = (
            "Your run is synced, but I couldn't analyze it yet: "
            + (run.error_of("analysis") or "analysis skipped")
        )
        return _finish(run, result)

    async def save_notes() -> Workout:
        return await store.workouts.update(user_id, workout.id, {"coach_notes": format_coach_notes(analysis)})

    updated = await run.stage("save_coach_notes", save_notes)
    result.coach_notes_saved = updated is not None
    result.workout = updated or workout

    async def post_summary() -> WhiteboardEntry:
        return await store.board.post(user_id, AgentId.TRAINING_COACH.value, WhiteboardPayload(
            entry_type=EntryType.SUMMARY,
            title=f"Post-Run Analysis: {workout.title}",
            content=analysis.summary,
            structured_data={
                "highlights": list(analysis.highlights),
                "areas_to_note": list(analysis.areas_to_note),
                "next_steps": analysis.next_steps,
            },
            priority=80,
            tags=("post-run",),
            related_entity_type="workout",
            related_entity_id=workout.id,
        ), context_date=ctx.date_iso)

    result.whiteboard_entry = await run.stage("post_summary", post_summary)
    result.conversation_starter = conversation_starter(
        result.workout, analysis, bool(options.athlete_feedback),
    )
    return _finish(run, result)


def _finish(run: PipelineRun, result: PostRunFlowResult) -> PostRunFlowResult:
    run.finish()
    result.stages = run.stages
    result.errors = run.errors
    result.success = not result.errors and result.workout is not None
    result.duration_ms = run.duration_ms
    return result
