"""
infrastructure.log - Context-carrying loggers.

CoachLogger is a LoggerAdapter with a context dict. ``child()`` derives a
logger whose context extends the parent's, so a workflow can hand its
stages a logger already tagged with the user and pipeline. Components
receive their logger through the constructor.
"""

from __future__ import annotations

import json
import logging
from typing import Any, MutableMapping, Optional


class CoachLogger(logging.LoggerAdapter):
    """Logger carrying structured context into every record."""

    def __init__(self, logger: logging.Logger, context: Optional[dict[str, Any]] = None):
        super().__init__(logger, dict(context or {}))

    @property
    def context(self) -> dict[str, Any]:
        return dict(self.extra)

    def child(self, **context: Any) -> CoachLogger:
        return CoachLogger(self.logger, {**self.extra, **context})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]):
        extra = dict(kwargs.get("extra") or {})
        extra["context"] = {**self.extra, **extra.get("context", {})}
        kwargs["extra"] = extra
        if self.extra:
            tags = " ".join(f"{k}={v}" for k, v in self.extra.items())
            msg = f"{msg} [{tags}]"
        return msg, kwargs


def get_logger(name: str, **context: Any) -> CoachLogger:
    return CoachLogger(logging.getLogger(name), context)


class JsonFormatter(logging.Formatter):
    """One JSON object per line: level, logger, message, context."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Install a single root handler: rich console output or JSON lines."""
    if json_format:
        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
    else:
        from rich.logging import RichHandler
        handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())
    # httpx/openai are chatty at INFO
    for noisy in ("httpx", "httpcore", "openai", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
