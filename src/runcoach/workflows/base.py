"""
workflows.base - Stage bookkeeping shared by every pipeline.

A pipeline is a fixed sequence of awaited stages. ``PipelineRun.stage``
runs one, catches whatever it raises and records a StageOutcome, so a
failing stage never aborts the stages after it. A stage that names
prerequisites in ``requires`` is skipped when any of them did not
succeed. Only failed stages show up in ``errors``.
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Literal, Mapping, Optional, Sequence, TypeVar
from zoneinfo import ZoneInfo

from runcoach.agent.harness import AgentHarness, ExecuteOptions
from runcoach.agent.health_agent import HealthAgent, build_health_registry
from runcoach.agent.training_coach import TrainingCoachAgent, build_training_registry
from runcoach.domain.models import AgentId
from runcoach.domain.ports import LLMClientPort
from runcoach.infrastructure.log import CoachLogger, get_logger

T = TypeVar("T")

StageStatus = Literal["ok", "failed", "skipped"]

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


@dataclass(frozen=True)
class StageOutcome:
    name: str
    status: StageStatus
    duration_ms: float = 0.0
    error: Optional[str] = None


class PipelineRun:
    """Runs and records the stages of one workflow invocation."""

    def __init__(self, workflow: str, logger: CoachLogger):
        self.workflow = workflow
        self._logger = logger
        self._outcomes: dict[str, StageOutcome] = {}
        self._started = time.monotonic()

    async def stage(
        self,
        name: str,
        fn: Callable[[], Awaitable[T]],
        *,
        requires: Sequence[str] = (),
    ) -> Optional[T]:
        """Await *fn* as stage *name*. Returns its value, or None if it failed or was skipped."""
        blocked = [r for r in requires if not self.succeeded(r)]
        if blocked:
            self._logger.info("Stage %s skipped: %s did not succeed", name, ", ".join(blocked))
            self._outcomes[name] = StageOutcome(name, "skipped")
            return None

        started = time.monotonic()
        self._logger.info("Stage %s started", name)
        try:
            value = await fn()
        except Exception as e:
            elapsed = (time.monotonic() - started) * 1000
            self._logger.error("Stage %s failed after %.0fms: %s", name, elapsed, e, exc_info=True)
            self._outcomes[name] = StageOutcome(name, "failed", elapsed, str(e) or type(e).__name__)
            return None

        self._outcomes[name] = StageOutcome(name, "ok", (time.monotonic() - started) * 1000)
        return value

    def skip(self, name: str, reason: str) -> None:
        self._logger.info("Stage %s skipped: %s", name, reason)
        self._outcomes[name] = StageOutcome(name, "skipped")

    def error_of(self, name: str) -> Optional[str]:
        outcome = self._outcomes.get(name)
        return outcome.error if outcome is not None else None

    def succeeded(self, name: str) -> bool:
        outcome = self._outcomes.get(name)
        return outcome is not None and outcome.status == "ok"

    @property
    def stages(self) -> tuple[StageOutcome, ...]:
        return tuple(self._outcomes.values())

    @property
    def errors(self) -> list[str]:
        return [f"{o.name}: {o.error}" for o in self._outcomes.values() if o.status == "failed"]

    @property
    def duration_ms(self) -> float:
        return (time.monotonic() - self._started) * 1000

    def finish(self) -> None:
        self._logger.info(
            "Workflow %s finished in %.0fms (%d stage(s), %d failed)",
            self.workflow, self.duration_ms, len(self._outcomes), len(self.errors),
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def extract_json(text: str, kind: Literal["object", "array"] = "object") -> Any:
    """First JSON object (or array) embedded in *text*, or None."""
    match = (_JSON_OBJECT if kind == "object" else _JSON_ARRAY).search(text or "")
    if match is None:
        return None
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError:
        return None


def end_of_day(timezone: str, now: Optional[datetime] = None) -> datetime:
    """Last second of today in *timezone*, as an aware datetime."""
    tz = ZoneInfo(timezone)
    local = (now or datetime.now(tz)).astimezone(tz)
    return local.replace(hour=23, minute=59, second=59, microsecond=0)


def expires_in(days: int, now: Optional[datetime] = None) -> datetime:
    return (now or datetime.now().astimezone()) + timedelta(days=days)


def build_agents(
    llm: LLMClientPort,
    *,
    default_options: ExecuteOptions = ExecuteOptions(),
    logger: Optional[CoachLogger] = None,
) -> dict[str, AgentHarness]:
    """Both agents, keyed by agent id, sharing *llm*'s conversation service."""
    logger = logger or get_logger(__name__)
    return {
        AgentId.HEALTH.value: HealthAgent(
            llm.conversation, build_health_registry(logger),
            default_options=default_options, logger=logger,
        ),
        AgentId.TRAINING_COACH.value: TrainingCoachAgent(
            llm.conversation, build_training_registry(logger),
            default_options=default_options, logger=logger,
        ),
    }


def pick_agent(
    agents: Optional[Mapping[str, AgentHarness]],
    llm: LLMClientPort,
    agent_id: str,
    logger: CoachLogger,
) -> AgentHarness:
    return (agents or build_agents(llm, logger=logger))[agent_id]
