"""Contract for runtime telemetry and structured logging sinks."""

from __future__ import annotations

import logging
from typing import Protocol

from rich.logging import RichHandler


class Telemetry(Protocol):
    """Reports operational events and speech outcomes."""

    def emit(self, event_name: str, payload: dict) -> None:
        """Publish telemetry event to the configured sink."""


class LoggingTelemetry:
    """Telemetry sink that forwards events to a standard logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("chat_voice.telemetry")

    def emit(self, event_name: str, payload: dict) -> None:
        self._logger.info(event_name, extra={"telemetry": payload})


def configure_logging(level: str = "INFO") -> None:
    """Route ``chat_voice`` loggers through a rich console handler."""
    root = logging.getLogger("chat_voice")
    root.setLevel(level.upper())
    if not any(isinstance(handler, RichHandler) for handler in root.handlers):
        root.addHandler(RichHandler(rich_tracebacks=True, show_path=False))
