"""
infrastructure.llm.router - Decide which agent handles a free-text message.

Tier 1 is ``quick_route``: literal patterns and greetings, no LLM call.
Tier 2 asks a fast, low-temperature model for a small JSON verdict. When
that call fails or its answer can't be parsed, ``keyword_route`` scores
the message against one keyword list per agent. ``MessageRouter.route``
never raises.
"""

from __future__ import annotations

import json
import re
import time
from typing import Optional, Sequence

from runcoach.domain.models import AgentId, RouteResult
from runcoach.domain.ports import LLMClientPort
from runcoach.infrastructure.log import CoachLogger, get_logger

ROUTER_SYSTEM_PROMPT = """You are a message router for a running and health coaching system. Classify the user's message and pick the agent that should answer it.

Available agents:
1. health-agent: recovery, sleep, HRV, body battery, stress, injuries, pain, biomarkers, blood work, fatigue, rest days
2. training-coach: runs, workouts, training plan, paces, distances, race preparation, intervals, tempo, long runs, weekly mileage

General greetings or unclear messages go to training-coach.

Respond with ONLY a JSON object:
{"agentId": "health-agent" | "training-coach", "confidence": 0.0-1.0, "reasoning": "brief explanation"}"""

# ---------------------------------------------------------------------------
# Tier 1: literal patterns
# ---------------------------------------------------------------------------

_QUICK_PATTERNS: tuple[tuple[AgentId, str, tuple[str, ...]], ...] = (
    (AgentId.HEALTH, "Health/biomarker keyword detected",
     ("biomarker", "blood work", "lab result", "ferritin", "vitamin d", "inflammation")),
    (AgentId.TRAINING_COACH, "Training keyword detected",
     ("today's run", "tomorrow's run", "my workout", "training plan", "marathon pace")),
)

_GREETINGS = ("hi", "hello", "hey", "good morning", "good evening")

HEALTH_KEYWORDS = (
    "sleep", "hrv", "heart rate", "resting", "recovery", "fatigue", "tired",
    "energy", "stress", "body battery", "injury", "injured", "sore", "pain",
    "sick", "biomarker", "blood", "lab", "test", "vitamin", "iron", "ferritin",
    "inflammation",
)

TRAINING_KEYWORDS = (
    "workout", "run", "running", "pace", "mile", "marathon", "tempo", "interval",
    "long run", "easy", "training", "plan", "tomorrow", "today", "week",
    "mileage", "race",
)

_KEYWORD_CONFIDENCE = 0.6


def quick_route(message: str) -> Optional[RouteResult]:
    """Deterministic match on unambiguous literals. None when nothing matches."""
    lower = message.lower().strip()

    for agent_id, reasoning, patterns in _QUICK_PATTERNS:
        if any(p in lower for p in patterns):
            return RouteResult(agent_id=agent_id, confidence=0.95, reasoning=reasoning)

    if any(lower == g or lower.startswith(g + " ") for g in _GREETINGS):
        return RouteResult(
            agent_id=AgentId.TRAINING_COACH, confidence=0.9, reasoning="Greeting",
        )
    return None


def keyword_route(
    message: str,
    default_agent: AgentId = AgentId.TRAINING_COACH,
    routing_time_ms: float = 0.0,
) -> RouteResult:
    """Keyword-overlap fallback. The higher score wins; ties go to *default_agent*."""
    lower = message.lower()
    health = sum(1 for k in HEALTH_KEYWORDS if k in lower)
    training = sum(1 for k in TRAINING_KEYWORDS if k in lower)

    if health > training:
        agent_id = AgentId.HEALTH
    elif training > health:
        agent_id = AgentId.TRAINING_COACH
    else:
        agent_id = default_agent
    return RouteResult(
        agent_id=agent_id,
        confidence=_KEYWORD_CONFIDENCE,
        reasoning=f"Keyword fallback (health={health}, training={training})",
        routing_time_ms=routing_time_ms,
    )


def parse_route_response(raw: str) -> Optional[tuple[AgentId, float, str]]:
    """Extract (agent, confidence, reasoning) from a model reply, or None."""
    match = re.search(r"\{[\s\S]*\}", raw or "")
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
        agent_id = AgentId(data.get("agentId") or data.get("agent_id"))
    except (ValueError, TypeError, AttributeError):
        return None
    try:
        confidence = float(data.get("confidence", 0.5))
    except (TypeError, ValueError):
        confidence = 0.5
    confidence = min(1.0, max(0.0, confidence))
    return agent_id, confidence, str(data.get("reasoning") or "")


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

class MessageRouter:
    """Two-tier router with a keyword fallback."""

    def __init__(
        self,
        llm: LLMClientPort,
        *,
        default_agent: AgentId = AgentId.TRAINING_COACH,
        history_window: int = 4,
        logger: Optional[CoachLogger] = None,
    ):
        self._llm = llm
        self._default_agent = default_agent
        self._history_window = history_window
        self._logger = logger or get_logger(__name__)

    async def route(
        self,
        message: str,
        history: Sequence[tuple[str, str]] = (),
    ) -> RouteResult:
        """Route *message*. *history* is a sequence of (role, content) turns."""
        quick = quick_route(message)
        if quick is not None:
            self._logger.debug("Quick route -> %s", quick.agent_id.value)
            return quick

        started = time.perf_counter()
        try:
            raw = await self._llm.complete(
                ROUTER_SYSTEM_PROMPT, self._build_prompt(message, history), fast=True,
            )
        except Exception as e:
            elapsed = (time.perf_counter() - started) * 1000
            self._logger.warning("Routing call failed, using keyword fallback: %s", e)
            return keyword_route(message, self._default_agent, elapsed)

        elapsed = (time.perf_counter() - started) * 1000
        parsed = parse_route_response(raw)
        if parsed is None:
            self._logger.warning("Unparsable routing response, using keyword fallback: %s", raw[:120])
            return keyword_route(message, self._default_agent, elapsed)

        agent_id, confidence, reasoning = parsed
        self._logger.info(
            "Routed to %s (confidence=%.2f) in %.0fms", agent_id.value, confidence, elapsed,
        )
        return RouteResult(
            agent_id=agent_id, confidence=confidence, reasoning=reasoning,
            routing_time_ms=elapsed,
        )

    def _build_prompt(self, message: str, history: Sequence[tuple[str, str]]) -> str:
        recent = "\n".join(
            f"{role}: {content[:100]}"
            for role, content in list(history)[-self._history_window:]
        ) if self._history_window > 0 else ""
        if recent:
            return f'Recent conversation:\n{recent}\n\nNew message to route: "{message}"'
        return f'Message to route: "{message}"'
