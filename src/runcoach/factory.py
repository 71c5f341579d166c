"""
runcoach.factory - Composition root for the coaching core.

ALL dependency wiring happens here. Workflows, agents and skills take
their collaborators as arguments; adapters (the CLI, a scheduler, an
HTTP layer) call this factory to get them fully configured.

Usage:
    from runcoach.factory import ServiceFactory
    from runcoach.infrastructure.config import Settings

    factory = ServiceFactory(Settings.from_env())
    await factory.initialize()  # one-time startup

    result = await run_morning_flow(
        factory.store, factory.llm, user_id, tz,
        tracker_factory=factory.tracker_factory, agents=factory.agents,
    )
"""

from __future__ import annotations

from typing import Optional

from langchain_core.language_models import BaseChatModel

from runcoach.agent.harness import AgentHarness, ExecuteOptions
from runcoach.application.context_loader import ContextLoader
from runcoach.application.services.activity_sync import ActivitySyncService
from runcoach.application.services.bulletin_board import BulletinBoard
from runcoach.application.services.chat_history import ChatHistoryService
from runcoach.application.services.metrics_sync import MetricsSyncService
from runcoach.application.store import Store
from runcoach.domain.models import AgentId
from runcoach.domain.ports import ActivityTrackerPort
from runcoach.infrastructure.config import Settings
from runcoach.infrastructure.garmin.client import GarminBridgeClient
from runcoach.infrastructure.llm.client import LLMClient
from runcoach.infrastructure.llm.conversation_service import LangChainConversationService, ModelPricing
from runcoach.infrastructure.llm.llm_builder import build_llm
from runcoach.infrastructure.llm.router import MessageRouter
from runcoach.infrastructure.log import CoachLogger, get_logger
from runcoach.infrastructure.persistence.chat_message_repo import SQLiteChatMessageRepository
from runcoach.infrastructure.persistence.connection import AsyncSQLiteConnection
from runcoach.infrastructure.persistence.conversation_repo import SQLiteConversationRepository
from runcoach.infrastructure.persistence.health_repo import SQLiteHealthRepository
from runcoach.infrastructure.persistence.injury_repo import SQLiteInjuryRepository
from runcoach.infrastructure.persistence.migrations import run_migrations
from runcoach.infrastructure.persistence.plan_repo import SQLiteTrainingPlanRepository
from runcoach.infrastructure.persistence.user_repo import SQLiteUserRepository
from runcoach.infrastructure.persistence.whiteboard_repo import SQLiteWhiteboardRepository
from runcoach.infrastructure.persistence.workout_repo import SQLiteWorkoutRepository
from runcoach.workflows.base import build_agents

# USD per million (input, output) tokens. Unlisted models are priced at zero.
MODEL_PRICING: ModelPricing = {
    "gpt-4.1": (2.00, 8.00),
    "gpt-4.1-mini": (0.40, 1.60),
    "gpt-4.1-nano": (0.10, 0.40),
    "claude-sonnet-4-5": (3.00, 15.00),
    "claude-haiku-4-5": (1.00, 5.00),
    "llama-3.3-70b-versatile": (0.59, 0.79),
    "llama-3.1-8b-instant": (0.05, 0.08),
}

ROUTER_TEMPERATURE = 0.1
ROUTER_MAX_TOKENS = 150


class ServiceFactory:
    """Composition root. Call initialize() once, then read the properties."""

    def __init__(self, settings: Settings, logger: Optional[CoachLogger] = None):
        self._settings = settings
        self._logger = logger or get_logger(__name__)
        self._connection = AsyncSQLiteConnection(settings.db_path, self._logger)
        self._models: dict[str, BaseChatModel] = {}
        self._store: Optional[Store] = None
        self._chat_history: Optional[ChatHistoryService] = None
        self._llm: Optional[LLMClient] = None
        self._agents: Optional[dict[str, AgentHarness]] = None
        self._initialized = False

    async def initialize(self) -> None:
        """One-time startup: create tables."""
        self._logger.info("Initializing ServiceFactory (db=%s)", self._settings.db_path)
        await run_migrations(self._connection)
        self._initialized = True
        self._logger.info("ServiceFactory ready")

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("ServiceFactory.initialize() must be awaited first")

    @property
    def settings(self) -> Settings:
        return self._settings

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @property
    def store(self) -> Store:
        self._ensure_initialized()
        if self._store is None:
            conn = self._connection
            self._store = Store(
                users=SQLiteUserRepository(conn),
                health=SQLiteHealthRepository(conn),
                workouts=SQLiteWorkoutRepository(conn),
                plans=SQLiteTrainingPlanRepository(conn),
                injuries=SQLiteInjuryRepository(conn),
                board=BulletinBoard(SQLiteWhiteboardRepository(conn), self._logger),
            )
        return self._store

    @property
    def chat_history(self) -> ChatHistoryService:
        if self._chat_history is None:
            self._chat_history = ChatHistoryService(
                SQLiteConversationRepository(self._connection),
                SQLiteChatMessageRepository(self._connection),
                self._logger,
            )
        return self._chat_history

    # ------------------------------------------------------------------
    # LLM
    # ------------------------------------------------------------------

    def chat_model(self, model: Optional[str] = None) -> BaseChatModel:
        """Chat model for *model* (default: the configured one), built once per name."""
        name = model or self._settings.llm_model
        if name not in self._models:
            self._models[name] = self._build_model(name, self._settings.llm_temperature)
        return self._models[name]

    @property
    def llm(self) -> LLMClient:
        if self._llm is None:
            s = self._settings
            conversation = LangChainConversationService(
                self.chat_model,
                default_model=s.llm_model,
                history=self.chat_history,
                pricing=MODEL_PRICING,
                logger=self._logger,
            )
            fast = self._build_model(s.llm_fast_model, ROUTER_TEMPERATURE, max_tokens=ROUTER_MAX_TOKENS)
            self._llm = LLMClient(
                conversation, self.chat_model(), fast, provider=s.llm_provider, logger=self._logger,
            )
        return self._llm

    def _build_model(self, model: str, temperature: float, max_tokens: Optional[int] = None) -> BaseChatModel:
        s = self._settings
        return build_llm(
            provider=s.llm_provider,
            model=model,
            temperature=temperature,
            ollama_base_url=s.ollama_base_url,
            openai_api_key=s.openai_api_key,
            groq_api_key=s.groq_api_key,
            anthropic_api_key=s.anthropic_api_key,
            max_tokens=max_tokens,
            logger=self._logger,
        )

    # ------------------------------------------------------------------
    # Agents, routing, skills
    # ------------------------------------------------------------------

    @property
    def agent_options(self) -> ExecuteOptions:
        return ExecuteOptions(
            max_turns=self._settings.agent_max_turns,
            max_budget_usd=self._settings.agent_max_budget_usd,
        )

    @property
    def agents(self) -> dict[str, AgentHarness]:
        if self._agents is None:
            self._agents = build_agents(self.llm, default_options=self.agent_options, logger=self._logger)
        return self._agents

    def create_router(self) -> MessageRouter:
        return MessageRouter(
            self.llm, default_agent=AgentId(self._settings.default_route_agent), logger=self._logger,
        )

    def create_context_loader(self) -> ContextLoader:
        return ContextLoader(self.store, self._logger)

    def tracker_factory(self) -> ActivityTrackerPort:
        """A fresh tracker client; sync services connect and disconnect it per run."""
        s = self._settings
        return GarminBridgeClient(
            s.garmin_bridge_url,
            email=s.garmin_email,
            password=s.garmin_password,
            timeout=s.garmin_timeout,
            logger=self._logger,
        )

    def create_activity_sync(self) -> ActivitySyncService:
        return ActivitySyncService(
            self.store, self.tracker_factory,
            default_timezone=self._settings.default_timezone, logger=self._logger,
        )

    def create_metrics_sync(self) -> MetricsSyncService:
        return MetricsSyncService(
            self.store, self.tracker_factory,
            default_timezone=self._settings.default_timezone, logger=self._logger,
        )
