"""Structured logging utilities."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
from typing import Any

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class JsonFormatter(logging.Formatter):
    """Render log records as structured JSON."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(record.extra)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable single-line output for local development."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-7s %(name)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        line = super().format(record)
        if hasattr(record, "extra") and isinstance(record.extra, dict) and record.extra:
            fields = " ".join(f"{key}={value}" for key, value in record.extra.items())
            line = f"{line} {fields}"
        return line


def parse_level(name: str | None) -> int:
    """Map a level name to a logging level; unknown names mean info."""
    return LEVELS.get((name or "").strip().lower(), logging.INFO)


def configure_logging(level: int = logging.INFO, development: bool = False) -> None:
    """Configure JSON logging for the service."""
    handler = logging.StreamHandler()
    handler.setFormatter(ConsoleFormatter() if development else JsonFormatter())
    logging.basicConfig(level=level, handlers=[handler], force=True)
