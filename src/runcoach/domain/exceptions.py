"""
domain.exceptions - Error taxonomy for the coaching core.

Every error inherits from CoachError and carries a machine-readable code
plus a free-form context dict, so pipeline results and logs can report
failures uniformly.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional


class CoachError(Exception):
    """Base exception for all coaching-core errors."""

    code = "COACH_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.context: dict[str, Any] = dict(context or {})
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class DatabaseError(CoachError):
    """Raised when the relational store fails."""

    code = "DATABASE_ERROR"


class ConfigError(CoachError):
    """Raised for missing or malformed configuration."""

    code = "CONFIG_ERROR"


class LLMError(CoachError):
    """Raised when an LLM provider call fails outside an agent conversation."""

    code = "LLM_ERROR"

    def __init__(self, message: str, *, provider: str, retryable: bool = False,
                 context: Optional[dict[str, Any]] = None):
        super().__init__(message, context={"provider": provider, **(context or {})})
        self.provider = provider
        self.retryable = retryable


class AgentError(CoachError):
    """Raised by the agent harness. Tagged with the agent and the phase."""

    code = "AGENT_ERROR"

    def __init__(self, message: str, *, agent_id: str, phase: str,
                 context: Optional[dict[str, Any]] = None):
        super().__init__(
            message,
            context={"agent_id": agent_id, "phase": phase, **(context or {})},
        )
        self.agent_id = agent_id
        self.phase = phase


class NoResultError(AgentError):
    """Raised when a conversation ends without a terminal result message."""

    code = "AGENT_NO_RESULT"


class IntegrationError(CoachError):
    """Raised when an external API (fitness tracker, bridge) fails."""

    code = "INTEGRATION_ERROR"

    def __init__(self, message: str, *, integration: str, operation: str,
                 retryable: bool = False, status_code: Optional[int] = None,
                 context: Optional[dict[str, Any]] = None):
        super().__init__(
            message,
            context={
                "integration": integration,
                "operation": operation,
                "status_code": status_code,
                **(context or {}),
            },
        )
        self.integration = integration
        self.operation = operation
        self.retryable = retryable
        self.status_code = status_code


class NotFoundError(CoachError):
    """Raised when a referenced record does not exist for the user."""

    code = "NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: str,
                 context: Optional[dict[str, Any]] = None):
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            context={"resource_type": resource_type, "resource_id": resource_id,
                     **(context or {})},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ValidationError(CoachError):
    """Raised when caller-supplied data fails validation."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, field: Optional[str] = None,
                 value: Any = None, context: Optional[dict[str, Any]] = None):
        super().__init__(message, context={"field": field, **(context or {})})
        self.field = field
        self.value = value


def wrap_error(exc: BaseException, message: Optional[str] = None) -> CoachError:
    """Return *exc* as a CoachError, leaving existing CoachErrors untouched."""
    if isinstance(exc, CoachError):
        return exc
    wrapped = CoachError(
        message or str(exc) or type(exc).__name__,
        context={"original_error": type(exc).__name__},
    )
    wrapped.__cause__ = exc
    return wrapped
