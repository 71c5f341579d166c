"""
Tool-calling conversation service tests

Runs the LangChain loop against GenericFakeChatModel, so message order,
tool execution, bounds and transcript persistence are checked without a
provider.
"""

from __future__ import annotations

from langchain_core.messages import AIMessage, HumanMessage

from conftest import USER_ID, ToolCallingFakeModel, make_context
from runcoach.agent.tools.registry import ToolRegistry, ToolResultCollector
from runcoach.agent.tools.whiteboard import ReadWhiteboardTool
from runcoach.domain.models import (
    AssistantMessage,
    ConversationRequest,
    ResultMessage,
    StreamDelta,
    ToolCallMessage,
)
from runcoach.infrastructure.llm.conversation_service import (
    LangChainConversationService,
    content_text,
)


def tool_call(name="coach__read_whiteboard", args=None, call_id="call_1") -> AIMessage:
    return AIMessage(content="", tool_calls=[{"name": name, "args": args or {}, "id": call_id}])


def service_for(model, **kwargs) -> LangChainConversationService:
    return LangChainConversationService(lambda _name: model, default_model="fake-model", **kwargs)


async def collect(service, request) -> list:
    return [m async for m in service.query(request)]


def tool_server(store):
    registry = ToolRegistry()
    registry.register(ReadWhiteboardTool())
    collector = ToolResultCollector()
    return registry.create_server("coach", make_context(store), collector), collector


class TestQuery:
    """Message stream shape"""

    async def test_plain_answer(self):
        model = ToolCallingFakeModel(messages=iter(["Rest today."]))
        messages = await collect(service_for(model), ConversationRequest(system_prompt="s", prompt="p"))

        assert [type(m) for m in messages] == [AssistantMessage, ResultMessage]
        result = messages[-1]
        assert result.subtype == "success"
        assert result.result == "Rest today."
        assert result.num_turns == 1
        assert result.session_id == messages[0].session_id

    async def test_tool_round_trip(self, store):
        model = ToolCallingFakeModel(messages=iter([tool_call(args={"limit": 2}), "Nothing new on the board."]))
        server, collector = tool_server(store)
        messages = await collect(service_for(model), ConversationRequest(
            system_prompt="s", prompt="p", tool_server=server,
        ))

        assert model.bound_tools == ["coach__read_whiteboard"]
        assert [type(m) for m in messages] == [
            AssistantMessage, ToolCallMessage, AssistantMessage, ResultMessage,
        ]
        assert messages[0].tool_calls == ("coach__read_whiteboard",)
        assert messages[1].output == "No whiteboard entries match."
        assert messages[1].is_error is False
        assert messages[-1].result == "Nothing new on the board."
        assert messages[-1].num_turns == 2
        assert collector.tool_calls[0].arguments == {"limit": 2}

    async def test_tool_error_is_returned_to_model(self, store):
        model = ToolCallingFakeModel(messages=iter([tool_call(name="coach__nope"), "ok"]))
        server, _ = tool_server(store)
        messages = await collect(service_for(model), ConversationRequest(
            system_prompt="s", prompt="p", tool_server=server,
        ))

        assert messages[1].is_error is True
        assert messages[-1].subtype == "success"

    async def test_turn_limit(self, store):
        model = ToolCallingFakeModel(messages=iter([tool_call(call_id=f"c{i}") for i in range(5)]))
        server, _ = tool_server(store)
        messages = await collect(service_for(model), ConversationRequest(
            system_prompt="s", prompt="p", tool_server=server, max_turns=2,
        ))

        result = messages[-1]
        assert result.subtype == "error_max_turns"
        assert result.num_turns == 2
        assert sum(isinstance(m, AssistantMessage) for m in messages) == 2

    async def test_budget_limit(self):
        reply = AIMessage(
            content="expensive",
            usage_metadata={"input_tokens": 1000, "output_tokens": 1000, "total_tokens": 2000},
        )
        model = ToolCallingFakeModel(messages=iter([reply]))
        service = service_for(model, pricing={"fake-model": (1.0, 1.0)})
        messages = await collect(service, ConversationRequest(
            system_prompt="s", prompt="p", max_budget_usd=0.001,
        ))

        result = messages[-1]
        assert result.subtype == "error_max_budget_usd"
        assert result.total_cost_usd == 0.002
        assert result.usage.input_tokens == 1000
        assert result.model_usage["fake-model"].output_tokens == 1000

    async def test_streaming_deltas(self):
        model = ToolCallingFakeModel(messages=iter(["Easy miles today"]))
        messages = await collect(service_for(model), ConversationRequest(
            system_prompt="s", prompt="p", include_partial_messages=True,
        ))

        deltas = "".join(m.text for m in messages if isinstance(m, StreamDelta))
        assert deltas == "Easy miles today"
        assert messages[-1].result == "Easy miles today"


class TestTranscripts:
    """Persisted sessions can be resumed"""

    async def test_persist_and_resume(self, chat_history):
        model = ToolCallingFakeModel(messages=iter(["Go easy.", "Yes, 8 miles."]))
        service = service_for(model, history=chat_history)

        first = await collect(service, ConversationRequest(
            system_prompt="s", prompt="context...\n\nShould I run?", user_id=USER_ID,
            agent_id="training-coach", persist=True, transcript_prompt="Should I run?",
        ))
        session_id = first[-1].session_id
        stored = await chat_history.load_history(session_id)
        assert [(m.role, m.content) for m in stored] == [
            ("user", "Should I run?"), ("assistant", "Go easy."),
        ]

        await collect(service, ConversationRequest(
            system_prompt="s", prompt="How far?", resume_session=session_id,
            user_id=USER_ID, persist=True,
        ))
        sent = model.seen[-1]
        assert [type(m) for m in sent[1:3]] == [HumanMessage, AIMessage]
        assert sent[1].content == "Should I run?"
        assert sent[-1].content == "How far?"
        assert len(await chat_history.load_history(session_id)) == 4

    async def test_not_persisted_by_default(self, chat_history):
        model = ToolCallingFakeModel(messages=iter(["fine"]))
        messages = await collect(service_for(model, history=chat_history), ConversationRequest(
            system_prompt="s", prompt="p", user_id=USER_ID,
        ))
        assert await chat_history.load_history(messages[-1].session_id) == []


def test_content_text():
    assert content_text("plain") == "plain"
    assert content_text([{"type": "text", "text": "a"}, {"type": "tool_use"}, "b"]) == "ab"
    assert content_text(None) == ""
