"""
Run the running coach CLI without installing the package.

Usage:
    python run_cli.py [COMMAND] [OPTIONS]

Commands:
    init-db         Create tables, optionally register the athlete
    morning         Morning briefing (sync, health check, today's workout)
    chat            Ask the coaches (one message, or interactive without one)
    post-run        Sync and analyze the latest run
    weekly          Review readiness and adjust next week
    weekly-summary  Summarize the week that is ending
    board           Show recent whiteboard entries

Examples:
    python run_cli.py init-db --name "Sam" --timezone America/Denver
    python run_cli.py morning --user athlete-1
    python run_cli.py chat "should I run today?"

Environment variables (all optional):
    LLM_PROVIDER        "openai", "groq", "ollama" or "anthropic"
    LLM_MODEL           Main model (default depends on the provider)
    LLM_FAST_MODEL      Router / quick completion model
    OPENAI_API_KEY      Required when LLM_PROVIDER=openai
    GROQ_API_KEY        Required when LLM_PROVIDER=groq
    ANTHROPIC_API_KEY   Required when LLM_PROVIDER=anthropic
    RUNCOACH_DB_PATH    SQLite database file path (default: runcoach.db)
    RUNCOACH_USER       Default athlete id for every command
    GARMIN_BRIDGE_URL   Garmin tool bridge (default: http://localhost:8090)
"""

import sys
from pathlib import Path

# Ensure src/ is importable
sys.path.insert(0, str(Path(__file__).parent / "src"))

from runcoach.adapters.cli.main import app

if __name__ == "__main__":
    app()
