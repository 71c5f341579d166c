"""
infrastructure.config - Typed, injectable configuration.

A frozen dataclass that can be constructed from the environment (with a
.env file picked up by python-dotenv) or passed explicitly in tests.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from runcoach.domain.exceptions import ConfigError

_PROVIDERS = ("openai", "groq", "ollama", "anthropic")

_DEFAULT_MODELS = {
    "openai": ("gpt-4.1-mini", "gpt-4.1-nano"),
    "groq": ("llama-3.3-70b-versatile", "llama-3.1-8b-instant"),
    "ollama": ("llama3.2", "llama3.2"),
    "anthropic": ("claude-sonnet-4-5", "claude-haiku-4-5"),
}


@dataclass(frozen=True)
class Settings:
    """Centralized configuration for the coaching core."""

    db_path: str = "runcoach.db"

    # ── LLM provider ────────────────────────────────────────────
    # One provider for agents, router and single-shot completions.
    llm_provider: str = "openai"
    llm_model: str = "gpt-4.1-mini"
    llm_fast_model: str = "gpt-4.1-nano"
    llm_temperature: float = 0.3

    ollama_base_url: str = "http://localhost:11434/"
    openai_api_key: str = ""
    groq_api_key: str = ""
    anthropic_api_key: str = ""

    # Agents
    agent_max_turns: int = 10
    agent_max_budget_usd: Optional[float] = None
    default_route_agent: str = "training-coach"
    default_timezone: str = "America/Chicago"

    # Fitness tracker bridge
    garmin_bridge_url: str = "http://localhost:8090"
    garmin_email: str = ""
    garmin_password: str = ""
    garmin_timeout: float = 30.0

    # Client-side chat session
    session_ttl_minutes: int = 60
    session_dir: Path = Path.home() / ".runcoach"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls) -> Settings:
        """Build Settings from the environment (and .env if present)."""
        from dotenv import load_dotenv
        load_dotenv()

        provider = os.getenv("LLM_PROVIDER", "openai").lower().strip()
        if provider not in _PROVIDERS:
            raise ConfigError(
                f"Unsupported LLM_PROVIDER: '{provider}'",
                context={"allowed": list(_PROVIDERS)},
            )
        model, fast_model = _DEFAULT_MODELS[provider]
        budget = os.getenv("AGENT_MAX_BUDGET_USD", "")

        return cls(
            db_path=os.getenv("RUNCOACH_DB_PATH", "runcoach.db"),
            llm_provider=provider,
            llm_model=os.getenv("LLM_MODEL", model),
            llm_fast_model=os.getenv("LLM_FAST_MODEL", fast_model),
            llm_temperature=_number("LLM_TEMPERATURE", "0.3", float),
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/"),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            groq_api_key=os.getenv("GROQ_API_KEY", ""),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
            agent_max_turns=_number("AGENT_MAX_TURNS", "10", int),
            agent_max_budget_usd=_number("AGENT_MAX_BUDGET_USD", budget, float) if budget else None,
            default_route_agent=os.getenv("DEFAULT_ROUTE_AGENT", "training-coach"),
            default_timezone=os.getenv("DEFAULT_TIMEZONE", "America/Chicago"),
            garmin_bridge_url=os.getenv("GARMIN_BRIDGE_URL", "http://localhost:8090"),
            garmin_email=os.getenv("GARMIN_EMAIL", ""),
            garmin_password=os.getenv("GARMIN_PASSWORD", ""),
            garmin_timeout=_number("GARMIN_TIMEOUT", "30", float),
            session_ttl_minutes=_number("SESSION_TTL_MINUTES", "60", int),
            session_dir=Path(os.getenv("RUNCOACH_SESSION_DIR", str(Path.home() / ".runcoach"))),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_json=os.getenv("LOG_JSON", "").lower() in ("1", "true", "yes"),
        )


def _number(key: str, default: str, cast):
    raw = os.getenv(key, default)
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be numeric, got '{raw}'", context={"key": key}) from exc
