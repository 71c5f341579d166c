"""
workflows.chat - Answer one chat message.

Route the message, load context, and let the routed agent answer with
its full tool set. Passing ``session_id`` resumes a stored transcript;
the new session id comes back on the result for the caller to keep.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from runcoach.agent.harness import AgentHarness, ExecuteOptions
from runcoach.application.context import AgentContext
from runcoach.application.context_loader import ContextLoader
from runcoach.application.store import Store
from runcoach.domain.models import AgentResult, RouteResult, TokenUsage
from runcoach.domain.ports import LLMClientPort
from runcoach.domain.tasks import ChatResponseTask
from runcoach.infrastructure.llm.router import MessageRouter
from runcoach.infrastructure.log import CoachLogger, get_logger
from runcoach.workflows.base import PipelineRun, StageOutcome, pick_agent

FALLBACK_RESPONSE = "Sorry, I ran into a problem answering that. Please try again in a moment."


@dataclass(frozen=True)
class ChatFlowOptions:
    session_id: Optional[str] = None
    history: tuple[tuple[str, str], ...] = ()
    on_chunk: Optional[Callable[[str], Any]] = None
    agent_options: ExecuteOptions = ExecuteOptions()


@dataclass
class ChatFlowResult:
    success: bool
    response: str
    agent_id: str
    routing: RouteResult
    session_id: Optional[str] = None
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    cost_usd: float = 0.0
    num_turns: int = 0
    stages: tuple[StageOutcome, ...] = ()
    errors: list[str] = field(default_factory=list)
    duration_ms: float = 0.0


async def run_chat_flow(
    store: Store,
    llm: LLMClientPort,
    user_id: str,
    text: str,
    timezone: str = "America/Chicago",
    options: ChatFlowOptions = ChatFlowOptions(),
    *,
    router: Optional[MessageRouter] = None,
    agents: Optional[Mapping[str, AgentHarness]] = None,
    logger: Optional[CoachLogger] = None,
) -> ChatFlowResult:
    log = (logger or get_logger(__name__)).child(workflow="chat", user_id=user_id)
    run = PipelineRun("chat", log)
    router = router or MessageRouter(llm, logger=log)

    # Never raises: every failure path inside the router resolves to a route.
    route = await router.route(text, options.history)
    log.info(
        "Message routed to %s (confidence=%.2f, %.0fms): %s",
        route.agent_id.value, route.confidence, route.routing_time_ms, route.reasoning,
    )

    # A resumed session already carries the transcript.
    task = ChatResponseTask(message=text, history=() if options.session_id else options.history)
    loader = ContextLoader(store, log)
    ctx: Optional[AgentContext] = await run.stage("load_context", lambda: loader.load(user_id, timezone, task))

    agent = pick_agent(agents, llm, route.agent_id.value, log)
    agent_options = ExecuteOptions(
        max_turns=options.agent_options.max_turns,
        model=options.agent_options.model,
        max_budget_usd=options.agent_options.max_budget_usd,
        resume_session=options.session_id,
    )

    async def respond() -> AgentResult:
        if options.on_chunk is not None:
            return await agent.execute_streaming(ctx, options.on_chunk, agent_options)
        return await agent.execute(ctx, agent_options)

    agent_result = await run.stage("respond", respond, requires=("load_context",))
    run.finish()

    result = ChatFlowResult(
        success=not run.errors,
        response=FALLBACK_RESPONSE,
        agent_id=route.agent_id.value,
        routing=route,
        session_id=options.session_id,
        stages=run.stages,
        errors=run.errors,
        duration_ms=run.duration_ms,
    )
    if agent_result is not None:
        result.response = agent_result.content
        result.session_id = agent_result.session_id or options.session_id
        result.token_usage = agent_result.token_usage
        result.cost_usd = agent_result.total_cost_usd
        result.num_turns = agent_result.num_turns
        result.success = result.success and agent_result.subtype == "success"
    return result

