"""
runcoach.workflows - Named pipelines composed from skills and agents.

    run_morning_flow        - metrics + activity sync, health and training briefing
    run_chat_flow           - route a message and answer it with one agent
    run_post_run_flow       - sync the latest run and have the coach analyze it
    run_weekly_review_flow  - readiness check and next-week adjustments
    run_weekly_summary_flow - aggregate and summarize the week that is ending
"""

from runcoach.workflows.chat import ChatFlowOptions, ChatFlowResult, run_chat_flow
from runcoach.workflows.morning import MorningFlowOptions, MorningFlowResult, run_morning_flow
from runcoach.workflows.post_run import PostRunFlowOptions, PostRunFlowResult, run_post_run_flow
from runcoach.workflows.weekly_review import (
    WeeklyReviewOptions,
    WeeklyReviewResult,
    run_weekly_review_flow,
)
from runcoach.workflows.weekly_summary import (
    WeeklySummaryOptions,
    WeeklySummaryResult,
    run_weekly_summary_flow,
)

__all__ = [
    "ChatFlowOptions", "ChatFlowResult", "run_chat_flow",
    "MorningFlowOptions", "MorningFlowResult", "run_morning_flow",
    "PostRunFlowOptions", "PostRunFlowResult", "run_post_run_flow",
    "WeeklyReviewOptions", "WeeklyReviewResult", "run_weekly_review_flow",
    "WeeklySummaryOptions", "WeeklySummaryResult", "run_weekly_summary_flow",
]
