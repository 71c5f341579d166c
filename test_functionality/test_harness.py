"""
Agent execution harness tests

Covered:
1. Result shaping from the terminal message
2. Turn cap and missing-result failures
3. Streaming, observers and tool-call collection
"""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from conftest import ScriptedConversation, make_context
from runcoach.agent.harness import AgentHarness, ExecuteOptions
from runcoach.agent.tools.registry import ToolRegistry
from runcoach.agent.tools.whiteboard import PostToWhiteboardTool
from runcoach.domain.exceptions import AgentError, NoResultError
from runcoach.domain.models import AssistantMessage, ResultMessage, StreamDelta, TokenUsage
from runcoach.domain.tasks import ChatResponseTask


class EchoAgent(AgentHarness):
    agent_id = "echo-agent"

    def build_system_prompt(self, ctx):
        return f"system for {ctx.user_name}"

    def build_user_prompt(self, ctx):
        return "say something"


class ToolCallingConversation:
    """Calls post_to_whiteboard through the bound tool server, then finishes."""

    async def query(self, request):
        output = await request.tool_server.call(
            "post_to_whiteboard", {"entry_type": "insight", "content": "HRV is trending up"},
        )
        yield AssistantMessage(text="", session_id="s-1", tool_calls=("post_to_whiteboard",))
        yield ResultMessage(subtype="success", result=output.text, session_id="s-1", num_turns=2)


def agent_with(conversation, registry=None) -> EchoAgent:
    return EchoAgent(conversation, registry or ToolRegistry())


class TestExecute:
    """execute() result shaping"""

    async def test_content_comes_from_result(self, store):
        """The terminal result text is the agent's content"""
        conversation = ScriptedConversation(default="All good today.")
        result = await agent_with(conversation).execute(make_context(store))

        assert result.agent_id == "echo-agent"
        assert result.content == "All good today."
        assert result.subtype == "success"
        assert result.session_id == "session-1"
        assert result.token_usage == TokenUsage(input_tokens=100, output_tokens=20)
        assert result.num_turns == 1

    async def test_empty_result_falls_back_to_assistant_text(self, store):
        """Assistant text is used when the result message carries none"""
        conversation = ScriptedConversation(default=[
            AssistantMessage(text="Part one. "),
            AssistantMessage(text="Part two."),
            ResultMessage(subtype="success", result="", num_turns=2),
        ])
        result = await agent_with(conversation).execute(make_context(store))
        assert result.content == "Part one. Part two."

    async def test_non_success_subtype_is_described(self, store):
        """A non-success terminal message is reported, not raised"""
        conversation = ScriptedConversation(default=[
            AssistantMessage(text="..."),
            ResultMessage(subtype="error_max_budget_usd", errors=("Exceeded budget of $0.10",)),
        ])
        result = await agent_with(conversation).execute(make_context(store))

        assert result.subtype == "error_max_budget_usd"
        assert result.content.startswith("Agent completed with status: error_max_budget_usd.")
        assert "Exceeded budget" in result.content

    async def test_request_carries_prompts_and_options(self, store):
        """Prompts, limits and the namespaced tool server reach the service"""
        conversation = ScriptedConversation()
        agent = agent_with(conversation)
        await agent.execute(make_context(store), ExecuteOptions(max_turns=3, model="m-1"))

        request = conversation.requests[0]
        assert request.system_prompt == "system for Sam"
        assert request.prompt == "say something"
        assert request.max_turns == 3
        assert request.model == "m-1"
        assert request.tool_server.name == "echo_agent"
        assert request.persist is False

    async def test_chat_task_is_persisted_with_raw_message(self, store):
        """Only chat runs ask the service to keep a transcript"""
        conversation = ScriptedConversation()
        ctx = make_context(store, task=ChatResponseTask(message="How was my week?"))
        await agent_with(conversation).execute(ctx)

        request = conversation.requests[0]
        assert request.persist is True
        assert request.transcript_prompt == "How was my week?"
        assert request.user_id == ctx.user_id


class TestFailures:
    """Failures surface as AgentError"""

    async def test_missing_result_raises(self, store):
        conversation = ScriptedConversation(default=[AssistantMessage(text="thinking")])
        with pytest.raises(NoResultError) as exc:
            await agent_with(conversation).execute(make_context(store))
        assert exc.value.phase == "execution"
        assert exc.value.agent_id == "echo-agent"

    async def test_turn_cap_raises(self, store):
        """More assistant turns than max_turns without a result is an error"""
        conversation = ScriptedConversation(default=[AssistantMessage(text="again")] * 5)
        with pytest.raises(NoResultError) as exc:
            await agent_with(conversation).execute(make_context(store), ExecuteOptions(max_turns=2))
        assert exc.value.phase == "max_turns"

    async def test_service_error_is_wrapped(self, store):
        conversation = ScriptedConversation(default=ConnectionError("provider down"))
        with pytest.raises(AgentError) as exc:
            await agent_with(conversation).execute(make_context(store))

        assert exc.value.phase == "execution"
        assert "provider down" in str(exc.value)
        assert isinstance(exc.value.__cause__, ConnectionError)

    async def test_streaming_phase_is_tagged(self, store):
        conversation = ScriptedConversation(default=RuntimeError("boom"))
        with pytest.raises(AgentError) as exc:
            await agent_with(conversation).execute_streaming(make_context(store), lambda _: None)
        assert exc.value.phase == "streaming_execution"


class TestStreamingAndObservers:
    """Streaming chunks, observer notifications and tool collection"""

    async def test_chunks_are_forwarded(self, store):
        conversation = ScriptedConversation(default=[
            StreamDelta(text="Easy "),
            StreamDelta(text="day."),
            AssistantMessage(text="Easy day."),
            ResultMessage(subtype="success", result="", num_turns=1),
        ])
        chunks: list[str] = []
        result = await agent_with(conversation).execute_streaming(make_context(store), chunks.append)

        assert chunks == ["Easy ", "day."]
        assert result.content == "Easy day."
        assert conversation.requests[0].include_partial_messages is True

    async def test_observers_are_notified(self, store):
        observer = Mock()
        await agent_with(ScriptedConversation()).execute(make_context(store), observers=[observer])

        observer.on_start.assert_called_once()
        observer.on_complete.assert_called_once()
        assert observer.on_message.call_count == 2
        observer.on_error.assert_not_called()

    async def test_failing_observer_does_not_break_run(self, store):
        observer = Mock()
        observer.on_start.side_effect = RuntimeError("observer bug")
        result = await agent_with(ScriptedConversation()).execute(make_context(store), observers=[observer])
        assert result.subtype == "success"

    async def test_observer_sees_errors(self, store):
        observer = Mock()
        with pytest.raises(AgentError):
            await agent_with(ScriptedConversation(default=RuntimeError("x"))).execute(
                make_context(store), observers=[observer],
            )
        observer.on_error.assert_called_once()

    async def test_tool_calls_and_entries_are_collected(self, store):
        """Tool calls made during the run land on the result"""
        registry = ToolRegistry()
        registry.register(PostToWhiteboardTool("echo-agent"))
        result = await agent_with(ToolCallingConversation(), registry).execute(make_context(store))

        assert [c.name for c in result.tool_calls] == ["post_to_whiteboard"]
        assert len(result.whiteboard_entries) == 1
        assert result.whiteboard_entries[0].content == "HRV is trending up"
        assert result.content.startswith("Posted insight to whiteboard")
