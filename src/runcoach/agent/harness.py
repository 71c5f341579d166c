"""
agent.harness - Agent execution engine.

Drives one bounded conversation with the LLM conversation service. The
service decides which tools run and when to stop; the harness builds the
prompts, binds the agent's tools, consumes the message stream, enforces
the turn cap and shapes the AgentResult.

Failures are never swallowed: anything that goes wrong becomes an
AgentError tagged with the agent id and the phase, and is re-raised.
Observers registered for one call get start/message/complete/error
notifications; they cannot influence the run.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol, Sequence

from runcoach.agent.tools.registry import ToolRegistry, ToolResultCollector, server_name_for
from runcoach.application.context import AgentContext
from runcoach.domain.exceptions import AgentError, NoResultError
from runcoach.domain.models import (
    AgentResult,
    AssistantMessage,
    ConversationMessage,
    ConversationRequest,
    ResultMessage,
    StreamDelta,
)
from runcoach.domain.ports import ConversationServicePort
from runcoach.domain.tasks import ChatResponseTask
from runcoach.infrastructure.log import CoachLogger, get_logger

DEFAULT_MAX_TURNS = 10


@dataclass(frozen=True)
class ExecuteOptions:
    max_turns: int = DEFAULT_MAX_TURNS
    model: Optional[str] = None
    max_budget_usd: Optional[float] = None
    resume_session: Optional[str] = None


class AgentObserver(Protocol):
    """Advisory lifecycle hooks. Implement any subset."""

    def on_start(self, agent_id: str, ctx: AgentContext) -> None: ...

    def on_message(self, agent_id: str, message: ConversationMessage) -> None: ...

    def on_complete(self, agent_id: str, result: AgentResult) -> None: ...

    def on_error(self, agent_id: str, error: AgentError) -> None: ...


class AgentHarness(ABC):
    """Base class for agents. Subclasses supply id, prompts and tools."""

    agent_id: str

    def __init__(
        self,
        conversation: ConversationServicePort,
        registry: ToolRegistry,
        *,
        default_options: ExecuteOptions = ExecuteOptions(),
        logger: Optional[CoachLogger] = None,
    ):
        self._conversation = conversation
        self._registry = registry
        self._default_options = default_options
        self._logger = (logger or get_logger(__name__)).child(agent_id=self.agent_id)

    @property
    def server_name(self) -> str:
        return server_name_for(self.agent_id)

    @property
    def allowed_tools(self) -> list[str]:
        return [f"{self.server_name}__{name}" for name in self._registry.names()]

    @abstractmethod
    def build_system_prompt(self, ctx: AgentContext) -> str: ...

    @abstractmethod
    def build_user_prompt(self, ctx: AgentContext) -> str: ...

    async def execute(
        self,
        ctx: AgentContext,
        options: Optional[ExecuteOptions] = None,
        observers: Sequence[AgentObserver] = (),
    ) -> AgentResult:
        """Run to the terminal result and return it."""
        return await self._run(ctx, options, observers, on_chunk=None, phase="execution")

    async def execute_streaming(
        self,
        ctx: AgentContext,
        on_chunk: Callable[[str], Any],
        options: Optional[ExecuteOptions] = None,
        observers: Sequence[AgentObserver] = (),
    ) -> AgentResult:
        """Same as ``execute`` but calls *on_chunk* with each text fragment."""
        return await self._run(ctx, options, observers, on_chunk=on_chunk, phase="streaming_execution")

    # ---------------------------------------------------------------------------
    # Core loop
    # ---------------------------------------------------------------------------

    async def _run(
        self,
        ctx: AgentContext,
        options: Optional[ExecuteOptions],
        observers: Sequence[AgentObserver],
        on_chunk: Optional[Callable[[str], Any]],
        phase: str,
    ) -> AgentResult:
        opts = options or self._default_options
        log = self._logger.child(user_id=ctx.user_id, request_id=ctx.request_id)
        started = time.monotonic()
        collector = ToolResultCollector()
        self._notify(observers, "on_start", ctx, log=log)
        log.info("Agent run started (%s)", type(ctx.task).__name__)

        stream = None
        try:
            server = self._registry.create_server(self.server_name, ctx, collector)
            request = ConversationRequest(
                system_prompt=self.build_system_prompt(ctx),
                prompt=self.build_user_prompt(ctx),
                tool_server=server,
                model=opts.model,
                max_turns=opts.max_turns,
                max_budget_usd=opts.max_budget_usd,
                resume_session=opts.resume_session,
                include_partial_messages=on_chunk is not None,
                user_id=ctx.user_id,
                agent_id=self.agent_id,
                persist=isinstance(ctx.task, ChatResponseTask),
                transcript_prompt=ctx.task.message if isinstance(ctx.task, ChatResponseTask) else None,
            )

            text = ""
            turns = 0
            session_id: Optional[str] = None
            result: Optional[ResultMessage] = None
            stream = self._conversation.query(request)

            async for message in stream:
                session_id = session_id or message.session_id
                self._notify(observers, "on_message", message, log=log)
                if isinstance(message, AssistantMessage):
                    turns += 1
                    if turns > opts.max_turns:
                        raise NoResultError(
                            f"Conversation exceeded {opts.max_turns} turns without a result",
                            agent_id=self.agent_id, phase="max_turns",
                        )
                    if on_chunk is None:
                        text += message.text
                elif isinstance(message, StreamDelta):
                    text += message.text
                    on_chunk(message.text)
                elif isinstance(message, ResultMessage):
                    result = message
                    break

            if result is None:
                raise NoResultError(
                    "No result message received from conversation", agent_id=self.agent_id, phase=phase,
                )

            agent_result = self._to_result(result, text, collector, started, session_id)
        except AgentError as e:
            log.error("Agent run failed in phase %s: %s", e.phase, e)
            self._notify(observers, "on_error", e, log=log)
            raise
        except Exception as e:
            error = AgentError(str(e) or type(e).__name__, agent_id=self.agent_id, phase=phase)
            log.error("Agent run failed in phase %s: %s", phase, e)
            self._notify(observers, "on_error", error, log=log)
            raise error from e
        finally:
            if stream is not None and hasattr(stream, "aclose"):
                await stream.aclose()

        log.info(
            "Agent run finished: %s, %d turn(s), %d tool call(s), %.0fms",
            agent_result.subtype, agent_result.num_turns, len(agent_result.tool_calls),
            agent_result.duration_ms,
        )
        self._notify(observers, "on_complete", agent_result, log=log)
        return agent_result

    def _to_result(
        self,
        result: ResultMessage,
        text: str,
        collector: ToolResultCollector,
        started: float,
        session_id: Optional[str],
    ) -> AgentResult:
        if result.subtype == "success":
            content = result.result or text
        else:
            content = f"Agent completed with status: {result.subtype}. {'; '.join(result.errors)}".strip()
        return AgentResult(
            agent_id=self.agent_id,
            timestamp=datetime.now(timezone.utc),
            content=content,
            whiteboard_entries=collector.whiteboard_entries,
            tool_calls=collector.tool_calls,
            duration_ms=(time.monotonic() - started) * 1000,
            token_usage=result.usage,
            session_id=result.session_id or session_id,
            total_cost_usd=result.total_cost_usd,
            num_turns=result.num_turns,
            subtype=result.subtype,
            model_usage=dict(result.model_usage),
        )

    def _notify(self, observers: Sequence[AgentObserver], hook: str, payload: Any, *, log: CoachLogger) -> None:
        for observer in observers:
            callback = getattr(observer, hook, None)
            if callback is None:
                continue
            try:
                callback(self.agent_id, payload)
            except Exception as e:
                log.warning("Observer %s.%s failed: %s", type(observer).__name__, hook, e)
