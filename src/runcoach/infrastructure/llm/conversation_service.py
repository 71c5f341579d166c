"""
infrastructure.llm.conversation_service - Tool-calling conversation loop.

Implements ConversationServicePort on top of a LangChain chat model. The
model decides which tools run and when to stop; this service executes the
requested tools through the tool server, enforces the turn and spend
bounds, and reports everything as an ordered stream of messages ending in
one ResultMessage.

Transcripts of persisted sessions are stored through ChatHistoryService
so a later request can resume them by session id.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
    message_chunk_to_message,
)

from runcoach.domain.models import (
    AssistantMessage,
    ConversationMessage,
    ConversationRequest,
    ResultMessage,
    StreamDelta,
    TokenUsage,
    ToolCallMessage,
)
from runcoach.infrastructure.log import CoachLogger, get_logger

if TYPE_CHECKING:
    from runcoach.application.services.chat_history import ChatHistoryService

# USD per million (input, output) tokens
ModelPricing = dict[str, tuple[float, float]]


class LangChainConversationService:
    """Runs one bounded tool-calling conversation per ``query`` call."""

    def __init__(
        self,
        model_factory: Callable[[Optional[str]], BaseChatModel],
        *,
        default_model: str = "",
        history: Optional[ChatHistoryService] = None,
        pricing: Optional[ModelPricing] = None,
        logger: Optional[CoachLogger] = None,
    ):
        self._model_factory = model_factory
        self._default_model = default_model
        self._history = history
        self._pricing = pricing or {}
        self._logger = logger or get_logger(__name__)

    async def query(self, request: ConversationRequest) -> AsyncIterator[ConversationMessage]:
        session_id = request.resume_session or uuid.uuid4().hex
        model_name = request.model or self._default_model
        log = self._logger.child(session_id=session_id, agent_id=request.agent_id)

        messages: list[BaseMessage] = [SystemMessage(content=request.system_prompt)]
        if request.resume_session:
            messages.extend(await self._load_transcript(request.resume_session))
        messages.append(HumanMessage(content=request.prompt))

        llm: Any = self._model_factory(request.model)
        server = request.tool_server
        if server is not None and server.tool_names:
            llm = llm.bind_tools(server.to_langchain_tools())

        usage = TokenUsage()
        turns = 0
        while True:
            if turns >= request.max_turns:
                log.warning("Conversation hit max turns (%d)", request.max_turns)
                yield self._result("error_max_turns", "", session_id, usage, model_name, turns,
                                   errors=(f"Reached maximum number of turns ({request.max_turns})",))
                return
            turns += 1

            if request.include_partial_messages:
                chunk_sum = None
                async for chunk in llm.astream(messages):
                    text = content_text(chunk.content)
                    if text:
                        yield StreamDelta(text=text, session_id=session_id)
                    chunk_sum = chunk if chunk_sum is None else chunk_sum + chunk
                reply = message_chunk_to_message(chunk_sum) if chunk_sum is not None else AIMessage(content="")
            else:
                reply = await llm.ainvoke(messages)

            usage = usage + _usage_of(reply)
            messages.append(reply)
            text = content_text(reply.content)
            tool_calls = list(getattr(reply, "tool_calls", None) or [])
            yield AssistantMessage(
                text=text,
                session_id=session_id,
                tool_calls=tuple(c["name"] for c in tool_calls),
            )

            cost = self._cost(model_name, usage)
            if request.max_budget_usd is not None and cost > request.max_budget_usd:
                log.warning("Conversation exceeded budget: $%.4f > $%.4f", cost, request.max_budget_usd)
                yield self._result("error_max_budget_usd", text, session_id, usage, model_name, turns,
                                   errors=(f"Exceeded budget of ${request.max_budget_usd:.2f}",))
                return

            if not tool_calls:
                if request.persist and request.user_id:
                    await self._save_turn(request, session_id, text)
                yield self._result("success", text, session_id, usage, model_name, turns)
                return

            for call in tool_calls:
                outcome = await server.call(call["name"], call.get("args") or {})
                yield ToolCallMessage(
                    name=call["name"],
                    arguments=call.get("args") or {},
                    output=outcome.text,
                    is_error=outcome.is_error,
                    session_id=session_id,
                )
                messages.append(ToolMessage(
                    content=outcome.text,
                    tool_call_id=call.get("id") or call["name"],
                    status="error" if outcome.is_error else "success",
                ))

    # ---------------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------------

    def _result(self, subtype, text, session_id, usage, model_name, turns, errors=()) -> ResultMessage:
        return ResultMessage(
            subtype=subtype,
            result=text,
            session_id=session_id,
            usage=usage,
            total_cost_usd=self._cost(model_name, usage),
            num_turns=turns,
            errors=tuple(errors),
            model_usage={model_name: usage} if model_name else {},
        )

    def _cost(self, model_name: str, usage: TokenUsage) -> float:
        input_rate, output_rate = self._pricing.get(model_name, (0.0, 0.0))
        return (usage.input_tokens * input_rate + usage.output_tokens * output_rate) / 1_000_000

    async def _load_transcript(self, session_id: str) -> list[BaseMessage]:
        if self._history is None:
            return []
        history = await self._history.load_history(session_id)
        return [
            HumanMessage(content=m.content) if m.role == "user" else AIMessage(content=m.content)
            for m in history
        ]

    async def _save_turn(self, request: ConversationRequest, session_id: str, reply: str) -> None:
        if self._history is None:
            return
        try:
            await self._history.ensure_conversation(request.user_id, session_id, request.agent_id or "")
            await self._history.save_user_message(session_id, request.transcript_prompt or request.prompt)
            await self._history.save_assistant_message(session_id, reply)
        except Exception:
            self._logger.exception("Failed to persist chat messages, continuing without save")


def content_text(content: Any) -> str:
    """Plain text of a message content (str or list of content blocks)."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def _usage_of(message: Any) -> TokenUsage:
    meta = getattr(message, "usage_metadata", None) or {}
    details = meta.get("input_token_details") or {}
    return TokenUsage(
        input_tokens=meta.get("input_tokens", 0) or 0,
        output_tokens=meta.get("output_tokens", 0) or 0,
        cache_read_input_tokens=details.get("cache_read", 0) or 0,
        cache_creation_input_tokens=details.get("cache_creation", 0) or 0,
    )
