"""
agent.prompt - Render an AgentContext into prompt text.

Shared formatting for both agents: the context block every prompt
starts from, and one-line renderings of workouts, health snapshots and
whiteboard entries that tools reuse in their outputs.
"""

from __future__ import annotations

from typing import Optional, Sequence

from runcoach.application.context import AgentContext
from runcoach.domain.entities import HealthSnapshot, Injury, WhiteboardEntry, Workout
from runcoach.domain.models import WeekStats

# Output contracts the workflows parse.
DAILY_HEALTH_FORMAT = (
    'Respond with ONLY a JSON object: {"summary": str, "recovery_score": 0-100, '
    '"concerns": [str], "recommendations": [str]}'
)
DAILY_TRAINING_FORMAT = (
    'Respond with ONLY a JSON object: {"summary": str, "recommendation": str, '
    '"modify_workout": bool}'
)
WORKOUT_ANALYSIS_FORMAT = (
    'Respond with ONLY a JSON object: {"summary": str, "highlights": [str], '
    '"areas_to_note": [str], "next_steps": str}'
)
WEEKLY_REVIEW_FORMAT = (
    'Respond with ONLY a JSON array of adjustments, empty if none: '
    '[{"workout_id": str, "new_pace": str|null, "new_distance": number|null, '
    '"new_description": str|null, "reason": str}]'
)


def format_health(h: HealthSnapshot) -> str:
    parts = [h.snapshot_date]
    if h.sleep_hours is not None:
        parts.append(f"sleep {h.sleep_hours:.1f}h")
    if h.hrv is not None:
        status = f" ({h.hrv_status})" if h.hrv_status else ""
        parts.append(f"HRV {h.hrv:.0f}{status}")
    if h.resting_hr is not None:
        parts.append(f"RHR {h.resting_hr}")
    if h.stress_level is not None:
        parts.append(f"stress {h.stress_level}")
    if h.body_battery is not None:
        low, high = h.body_battery
        parts.append(f"body battery {low}-{high}")
    return ", ".join(parts)


def format_workout(w: Workout) -> str:
    line = f"[{w.id}] {w.scheduled_date} {w.title} ({w.workout_type}, {w.status})"
    prescribed = [
        f"{w.prescribed_distance_miles} mi" if w.prescribed_distance_miles else "",
        f"@ {w.prescribed_pace_per_mile}" if w.prescribed_pace_per_mile else "",
    ]
    if any(prescribed):
        line += " planned " + " ".join(p for p in prescribed if p)
    if w.status == "completed":
        actual = [
            f"{w.actual_distance_miles} mi" if w.actual_distance_miles else "",
            f"in {w.actual_duration_minutes} min" if w.actual_duration_minutes else "",
            f"@ {w.actual_pace_per_mile}" if w.actual_pace_per_mile else "",
            f"avg HR {w.avg_heart_rate}" if w.avg_heart_rate else "",
        ]
        line += " actual " + " ".join(a for a in actual if a)
    if w.prescribed_description:
        line += f"\n    {w.prescribed_description}"
    return line


def format_splits(w: Workout) -> str:
    rows = []
    for lap in w.splits:
        rows.append(
            f"  lap {lap.get('lap_number')}: {lap.get('distance_miles')} mi "
            f"@ {lap.get('pace_per_mile') or '?'}"
            + (f", HR {lap['avg_heart_rate']}" if lap.get("avg_heart_rate") else "")
        )
    return "\n".join(rows)


def format_entry(e: WhiteboardEntry) -> str:
    title = f"{e.title}: " if e.title else ""
    return f"[{e.entry_type}/{e.agent_id} p{e.priority}] {title}{e.content}"


def format_injury(i: Injury) -> str:
    return f"{i.body_part} (severity {i.severity}/10): {i.description}"


def _section(title: str, lines: list[str], empty: Optional[str] = None) -> str:
    if not lines:
        return f"## {title}\n{empty}" if empty else ""
    return f"## {title}\n" + "\n".join(f"- {line}" for line in lines)


def render_context(ctx: AgentContext) -> str:
    """Full context block: athlete, health, training, plan, whiteboard."""
    snap = ctx.snapshot
    plan_lines = []
    if snap.active_plan is not None:
        plan = snap.active_plan
        plan_lines.append(f"{plan.name} (goal: {plan.goal_event or 'n/a'} {plan.goal_time or ''})".strip())
        if snap.current_week is not None:
            total = f"/{plan.total_weeks}" if plan.total_weeks else ""
            plan_lines.append(f"Week {snap.current_week}{total}, phase: {snap.current_phase or 'n/a'}")

    sections = [
        f"# Athlete: {ctx.user_name}\nDate: {ctx.date_iso} ({ctx.timezone})",
        _section("Today's health",
                 [format_health(snap.today_health)] if snap.today_health else [],
                 "No health data recorded today."),
        _section("Recent health", [format_health(h) for h in snap.recent_health]),
        _section("Today's workout",
                 [format_workout(snap.today_workout)] if snap.today_workout else [],
                 "Rest day / nothing planned."),
        _section("Upcoming workouts", [format_workout(w) for w in snap.upcoming_workouts]),
        _section("Recent workouts", [format_workout(w) for w in snap.recent_workouts]),
        _section("Training plan", plan_lines),
        _section("Weekly summaries", [
            f"Week {s.week_number}: {s.actual_miles or 0} mi. {s.summary}"
            for s in snap.weekly_summaries
        ]),
        _section("Active injuries", [format_injury(i) for i in snap.injuries]),
        _section("Whiteboard (last 24h)", [format_entry(e) for e in snap.whiteboard_entries]),
    ]
    return "\n\n".join(s for s in sections if s)


def find_workout(ctx: AgentContext, workout_id: str) -> Optional[Workout]:
    snap = ctx.snapshot
    candidates = [snap.today_workout, *snap.recent_workouts, *snap.upcoming_workouts]
    return next((w for w in candidates if w is not None and w.id == workout_id), None)


def chat_prompt(message: str, history: tuple[tuple[str, str], ...]) -> str:
    if not history:
        return message
    transcript = "\n".join(f"{role}: {content}" for role, content in history)
    return f"Conversation so far:\n{transcript}\n\nuser: {message}"


_STATUS_MARK = {"completed": "done", "skipped": "skipped"}


def format_week_stats(stats: WeekStats, planned_miles: Optional[float] = None) -> str:
    planned = f" (planned: {planned_miles:g} mi)" if planned_miles else ""
    return (
        f"Volume: {stats.total_miles:g} mi completed{planned}\n"
        f"Workouts: {stats.workouts_completed} completed, {stats.workouts_skipped} skipped\n"
        f"Avg pace: {stats.avg_pace or 'n/a'}\n"
        f"Avg HR: {stats.avg_heart_rate or 'n/a'}\n"
        f"Total duration: {stats.total_duration_minutes} min"
    )


def format_week_log(workouts: Sequence[Workout], health: Sequence[HealthSnapshot]) -> str:
    """Day-by-day sessions with notes, then the week's health readings."""
    sessions = []
    for w in workouts:
        line = f"- [{_STATUS_MARK.get(w.status, 'open')}] {format_workout(w)}"
        if w.athlete_feedback:
            line += f'\n    Athlete notes: "{w.athlete_feedback[:200]}"'
        if w.coach_notes:
            line += f"\n    Workout analysis: {w.coach_notes[:300]}"
        sessions.append(line)
    readings = [f"- {format_health(h)}" for h in health]
    return (
        "Sessions:\n" + ("\n".join(sessions) or "- none scheduled")
        + "\n\nHealth:\n" + ("\n".join(readings) or "- no health data")
    )
