"""Logging setup and per-invocation progress snapshots."""

from __future__ import annotations

import logging
from typing import Any

import structlog

from fbl.keycloak_admin.config import settings


def _resolve_level(log_level: str | int | None) -> int:
    # Accept both standard level names (e.g. "INFO") and numeric values.
    raw = settings.log_level if log_level is None else log_level
    if isinstance(raw, int):
        return raw

    level = getattr(logging, str(raw).upper(), None)
    if isinstance(level, int):
        return level
    try:
        return int(raw)
    except ValueError:
        return logging.INFO


def configure_logging(
    log_level: str | int | None = None,
    json_format: bool | None = None,
) -> None:
    """Configure stdlib logging and structlog for operator output."""
    level = _resolve_level(log_level)
    if json_format is None:
        json_format = settings.log_json

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    # Quiet down httpx
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    processors: list[Any] = [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    return structlog.get_logger(name)


class ActionSnapshot:
    """Progress record of a single action invocation.

    Every line is kept in memory (the CLI prints them after the run) and
    emitted at DEBUG through structlog bound with the action id, so it only
    shows up twice with ``--verbose``. The lines are purely informational;
    nothing resumes from them.
    """

    def __init__(self, action_id: str, logger: Any = None):
        self.action_id = action_id
        self.messages: list[str] = []
        self._logger = (logger or get_logger("fbl.keycloak_admin.actions")).bind(
            action=action_id
        )

    def log(self, message: str) -> None:
        self.messages.append(message)
        self._logger.debug(message)

    def __repr__(self) -> str:
        return f"ActionSnapshot(action_id={self.action_id!r}, lines={len(self.messages)})"
