"""
Settings, composition root and CLI session tests
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from runcoach.adapters.cli.session import ChatSession, clear_session, load_session, save_session
from runcoach.domain.entities import User
from runcoach.domain.exceptions import ConfigError
from runcoach.factory import ServiceFactory
from runcoach.infrastructure.config import Settings
from runcoach.infrastructure.garmin.client import GarminBridgeClient


class TestSettings:

    def test_provider_defaults(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "Groq")
        monkeypatch.delenv("LLM_MODEL", raising=False)
        monkeypatch.delenv("LLM_FAST_MODEL", raising=False)
        settings = Settings.from_env()

        assert settings.llm_provider == "groq"
        assert settings.llm_model == "llama-3.3-70b-versatile"
        assert settings.llm_fast_model == "llama-3.1-8b-instant"

    def test_unsupported_provider(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "mystery")
        with pytest.raises(ConfigError) as exc:
            Settings.from_env()
        assert "openai" in exc.value.context["allowed"]

    def test_non_numeric_value(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "openai")
        monkeypatch.setenv("AGENT_MAX_TURNS", "lots")
        with pytest.raises(ConfigError, match="AGENT_MAX_TURNS must be numeric"):
            Settings.from_env()

    def test_budget_is_optional(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "openai")
        monkeypatch.setenv("AGENT_MAX_TURNS", "4")
        monkeypatch.setenv("AGENT_MAX_BUDGET_USD", "0.25")
        settings = Settings.from_env()
        assert (settings.agent_max_turns, settings.agent_max_budget_usd) == (4, 0.25)


class TestServiceFactory:

    def test_store_requires_initialize(self, tmp_path):
        factory = ServiceFactory(Settings(db_path=str(tmp_path / "f.db")))
        with pytest.raises(RuntimeError):
            factory.store

    async def test_initialize_creates_schema(self, tmp_path):
        factory = ServiceFactory(Settings(db_path=str(tmp_path / "f.db")))
        await factory.initialize()

        user = await factory.store.users.save(User(name="Sam"))
        assert (await factory.store.users.get_by_id(user.id)).name == "Sam"
        assert factory.store is factory.store

    def test_tracker_factory_builds_fresh_clients(self, tmp_path):
        factory = ServiceFactory(Settings(db_path=str(tmp_path / "f.db")))
        first, second = factory.tracker_factory(), factory.tracker_factory()
        assert isinstance(first, GarminBridgeClient)
        assert first is not second


class TestChatSession:
    """Local resume state for the chat command"""

    def test_round_trip(self, tmp_path):
        save_session(tmp_path, ChatSession(session_id="s-1", user_id="athlete-1", agent_id="health-agent"))
        session = load_session(tmp_path, "athlete-1", ttl_minutes=60)

        assert session.session_id == "s-1"
        assert session.agent_id == "health-agent"

    def test_other_user(self, tmp_path):
        save_session(tmp_path, ChatSession(session_id="s-1", user_id="athlete-1"))
        assert load_session(tmp_path, "athlete-2", ttl_minutes=60) is None
        assert (tmp_path / "session.json").exists()

    def test_expired_session_is_cleared(self, tmp_path):
        stale = datetime.now(timezone.utc) - timedelta(minutes=90)
        (tmp_path / "session.json").write_text(json.dumps({
            "session_id": "s-1", "user_id": "athlete-1", "saved_at": stale.isoformat(),
        }))
        assert load_session(tmp_path, "athlete-1", ttl_minutes=60) is None
        assert not (tmp_path / "session.json").exists()

    def test_corrupt_file_is_cleared(self, tmp_path):
        (tmp_path / "session.json").write_text("{not json")
        assert load_session(tmp_path, "athlete-1", ttl_minutes=60) is None
        assert not (tmp_path / "session.json").exists()

    def test_clear_without_file(self, tmp_path):
        clear_session(tmp_path)
        assert load_session(tmp_path, "athlete-1", ttl_minutes=60) is None
