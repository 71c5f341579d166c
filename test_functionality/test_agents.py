"""
Agent prompt tests

Each task type produces its own user prompt; the system prompt always
carries the rendered context.
"""

from __future__ import annotations

import pytest

from conftest import ScriptedConversation, make_context
from runcoach.agent.health_agent import HealthAgent, build_health_registry
from runcoach.agent.prompt import chat_prompt, format_workout, render_context
from runcoach.agent.training_coach import TrainingCoachAgent, build_training_registry
from runcoach.domain.entities import HealthSnapshot, Workout
from runcoach.domain.models import ContextSnapshot, WeekStats
from runcoach.domain.tasks import (
    ChatResponseTask,
    DailyAnalysisTask,
    WeeklyReviewTask,
    WeeklySummaryTask,
    WorkoutAnalysisTask,
)

TEMPO = Workout(
    id="w-1", title="Tempo 6", scheduled_date="2026-10-16",
    prescribed_distance_miles=6.0, prescribed_pace_per_mile="7:45/mi",
)


@pytest.fixture
def health_agent():
    return HealthAgent(ScriptedConversation(), build_health_registry())


@pytest.fixture
def coach():
    return TrainingCoachAgent(ScriptedConversation(), build_training_registry())


class TestToolSets:

    def test_health_tools(self, health_agent):
        assert health_agent.allowed_tools == [
            "health_agent__post_to_whiteboard",
            "health_agent__read_whiteboard",
            "health_agent__get_health_trends",
            "health_agent__get_injuries",
        ]

    def test_coach_tools(self, coach):
        assert coach.server_name == "training_coach"
        assert "training_coach__get_training_plan" in coach.allowed_tools


class TestPrompts:

    async def test_system_prompt_has_context(self, store, health_agent):
        snapshot = ContextSnapshot(
            today_health=HealthSnapshot(snapshot_date="2026-10-14", sleep_hours=6.2, hrv=48.0),
        )
        prompt = health_agent.build_system_prompt(make_context(store, snapshot=snapshot))

        assert "for Sam" in prompt
        assert "2026-10-14, sleep 6.2h, HRV 48" in prompt

    async def test_daily_prompts_ask_for_json(self, store, health_agent, coach):
        ctx = make_context(store, task=DailyAnalysisTask())
        assert '"recovery_score"' in health_agent.build_user_prompt(ctx)
        assert '"modify_workout"' in coach.build_user_prompt(ctx)

    async def test_chat_prompt(self, store, coach):
        ctx = make_context(store, task=ChatResponseTask(
            message="And Friday?", history=(("user", "Tempo Thursday?"), ("assistant", "Yes")),
        ))
        prompt = coach.build_user_prompt(ctx)
        assert prompt.startswith("Conversation so far:\nuser: Tempo Thursday?\nassistant: Yes")
        assert prompt.endswith("user: And Friday?")

    def test_chat_prompt_without_history(self):
        assert chat_prompt("Hi", ()) == "Hi"

    async def test_workout_analysis_prompt(self, store, coach):
        workout = Workout(
            id="w-9", title="Easy 5", scheduled_date="2026-10-14", status="completed",
            actual_distance_miles=5.0, actual_pace_per_mile="9:36/mi",
            splits=[{"lap_number": 1, "distance_miles": 1.0, "pace_per_mile": "9:40/mi"}],
        )
        ctx = make_context(store, task=WorkoutAnalysisTask(
            workout_id="w-9", athlete_feedback="legs heavy", perceived_exertion=6, workout=workout,
        ))
        prompt = coach.build_user_prompt(ctx)

        assert "Easy 5" in prompt
        assert "lap 1: 1.0 mi @ 9:40/mi" in prompt
        assert "legs heavy" in prompt
        assert "RPE: 6" in prompt

    async def test_missing_workout_is_named(self, store, health_agent):
        ctx = make_context(store, task=WorkoutAnalysisTask(workout_id="ghost"))
        assert "Workout ghost (not in context)" in health_agent.build_user_prompt(ctx)

    async def test_weekly_prompt_lists_next_week(self, store, coach):
        ctx = make_context(store, task=WeeklyReviewTask(
            week_start="2026-10-19", week_end="2026-10-25", week_number=8,
            readiness_recommendation="recover", readiness_notes=("HRV trend: declining",),
            next_week=(TEMPO,),
        ))
        prompt = coach.build_user_prompt(ctx)

        assert "week 8 (2026-10-19 to 2026-10-25)" in prompt
        assert "Readiness: recover" in prompt
        assert format_workout(TEMPO) in prompt
        assert "JSON array" in prompt

    async def test_week_summary_prompts(self, store, health_agent, coach):
        done = Workout(id="w-2", title="Easy 5", scheduled_date="2026-10-13", status="completed",
                       actual_distance_miles=5.0, coach_notes="Even pacing.")
        stats = WeekStats(total_miles=5.0, total_duration_minutes=48, workouts_completed=1, workouts_skipped=1)
        ctx = make_context(store, task=WeeklySummaryTask(
            week_start="2026-10-12", week_end="2026-10-18", week_number=3,
            stats=stats, workouts=(done, TEMPO), planned_miles=11.0,
        ))

        prompt = coach.build_user_prompt(ctx)
        assert "week 3 (2026-10-12 to 2026-10-18)" in prompt
        assert "Volume: 5 mi completed (planned: 11 mi)" in prompt
        assert "Workouts: 1 completed, 1 skipped" in prompt
        assert "- [done]" in prompt and "- [open]" in prompt
        assert "Workout analysis: Even pacing." in prompt
        assert "- no health data" in prompt

        recovery = health_agent.build_user_prompt(ctx)
        assert recovery.startswith("Summarize recovery over week 3")
        assert "Total duration: 48 min" in recovery

    async def test_render_context_empty(self, store):
        text = render_context(make_context(store))
        assert "No health data recorded today." in text
        assert "Rest day / nothing planned." in text


def test_format_workout_planned():
    assert format_workout(TEMPO) == "[w-1] 2026-10-16 Tempo 6 (run, planned) planned 6.0 mi @ 7:45/mi"
