"""
Message router tests

Covered:
1. Tier-1 literal patterns and greetings
2. Model verdict parsing
3. Keyword fallback when the model fails or answers garbage
"""

from __future__ import annotations

import pytest

from conftest import FakeLLM
from runcoach.domain.exceptions import LLMError
from runcoach.domain.models import AgentId
from runcoach.infrastructure.llm.router import (
    MessageRouter,
    keyword_route,
    parse_route_response,
    quick_route,
)


class TestQuickRoute:
    """Deterministic first tier"""

    @pytest.mark.parametrize("message, agent", [
        ("My ferritin came back low", AgentId.HEALTH),
        ("What's my workout for Thursday?", AgentId.TRAINING_COACH),
        ("Can we review the TRAINING PLAN?", AgentId.TRAINING_COACH),
        ("hello", AgentId.TRAINING_COACH),
        ("Good morning coach", AgentId.TRAINING_COACH),
    ])
    def test_matches(self, message, agent):
        assert quick_route(message).agent_id is agent

    def test_no_match(self):
        assert quick_route("I slept badly and feel tired") is None

    def test_greeting_prefix_must_be_a_word(self):
        """'history' starts with 'hi' but is not a greeting"""
        assert quick_route("history of my long runs") is None


class TestKeywordRoute:

    def test_health_wins(self):
        result = keyword_route("I slept badly, HRV is down and I'm tired")
        assert result.agent_id is AgentId.HEALTH
        assert result.confidence == 0.6

    def test_training_wins(self):
        assert keyword_route("should I move the tempo run to Friday").agent_id is AgentId.TRAINING_COACH

    def test_tie_goes_to_default(self):
        result = keyword_route("what do you think?", default_agent=AgentId.HEALTH)
        assert result.agent_id is AgentId.HEALTH
        assert "health=0, training=0" in result.reasoning


class TestParseRouteResponse:

    def test_json_with_prose(self):
        raw = 'Sure: {"agentId": "health-agent", "confidence": 0.82, "reasoning": "sleep question"}'
        assert parse_route_response(raw) == (AgentId.HEALTH, 0.82, "sleep question")

    def test_confidence_is_clamped(self):
        agent, confidence, _ = parse_route_response('{"agentId": "training-coach", "confidence": 7}')
        assert agent is AgentId.TRAINING_COACH
        assert confidence == 1.0

    @pytest.mark.parametrize("raw", [
        "", "training-coach", '{"agentId": "nutritionist"}', "{not json}",
    ])
    def test_unparsable(self, raw):
        assert parse_route_response(raw) is None


class TestMessageRouter:
    """Two tiers plus fallback; route() never raises"""

    async def test_quick_route_skips_model(self):
        llm = FakeLLM()
        result = await MessageRouter(llm).route("hey")
        assert result.agent_id is AgentId.TRAINING_COACH
        assert llm.calls == []

    async def test_model_verdict(self):
        llm = FakeLLM(completions=['{"agentId": "health-agent", "confidence": 0.9, "reasoning": "rest"}'])
        result = await MessageRouter(llm).route("Should I take a rest day?")

        assert result.agent_id is AgentId.HEALTH
        assert result.confidence == 0.9
        assert llm.calls[0][2] is True  # fast model

    async def test_history_is_included(self):
        llm = FakeLLM(completions=['{"agentId": "training-coach", "confidence": 0.7}'])
        history = (("user", "old"), ("assistant", "older"), ("user", "How far on Sunday?"),
                   ("assistant", "14 miles"), ("user", "and the pace?"))
        await MessageRouter(llm, history_window=2).route("what about after that", history)

        prompt = llm.calls[0][1]
        assert "Recent conversation:" in prompt
        assert "assistant: 14 miles" in prompt
        assert "user: old" not in prompt

    async def test_model_failure_falls_back_to_keywords(self):
        llm = FakeLLM(completions=[LLMError("rate limited", provider="fake", retryable=True)])
        result = await MessageRouter(llm).route("knee pain and soreness, should I rest?")

        assert result.agent_id is AgentId.HEALTH
        assert result.reasoning.startswith("Keyword fallback")

    async def test_garbage_falls_back_to_default(self):
        llm = FakeLLM(completions=["I think the coach"])
        result = await MessageRouter(llm, default_agent=AgentId.HEALTH).route("thoughts?")
        assert result.agent_id is AgentId.HEALTH
