# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Thesis Contributors

"""Structured logging for the Thesis engine.

Modules log through ``logging.getLogger(__name__)`` and attach identifiers
with ``extra=``::

    logger.info("Spike recorded", extra={"debate_id": debate_id, "argument_id": argument_id})

Only the identifiers in :data:`CONTEXT_FIELDS` are rendered. Voter ids and
stance values are not among them, so a log line can never pair a voter with
how they voted even if a caller passes both.

Every line also carries the correlation id of the surrounding
:func:`correlation_context`, if any.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

CONTEXT_FIELDS = ("debate_id", "argument_id", "stance_id", "user_id")

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Set (or clear, with None) the correlation id for the current context."""
    _correlation_id.set(correlation_id)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


@contextmanager
def correlation_context(correlation_id: str | None = None) -> Generator[str, None, None]:
    """Scope a correlation id; a fresh one is generated if none is given.

    Example:
        with correlation_context() as cid:
            engine.ledger.record_pre_stance(debate_id, voter_id, 40)  # logs carry cid
    """
    token = _correlation_id.set(correlation_id or generate_correlation_id())
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Whitelisted identifiers attached to a record via ``extra=``."""
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if getattr(record, name, None) is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            entry["correlation_id"] = correlation_id

        context = record_context(record)
        if context:
            entry["context"] = context

        if record.levelno >= logging.WARNING:
            entry["source"] = {"file": record.pathname, "line": record.lineno, "function": record.funcName}

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class StandardFormatter(logging.Formatter):
    """Human-readable lines for a terminal, coloured when stderr is a tty.

    Layout: ``time - logger - LEVEL - [cid] message (key=value ...)``
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    DIM = "\033[90m"
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def _dim(self, text: str) -> str:
        return f"{self.DIM}{text}{self.RESET}" if self.use_colors else text

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy; other handlers share the record
        copy = logging.makeLogRecord(record.__dict__)
        message = record.getMessage()

        correlation_id = get_correlation_id()
        if correlation_id:
            message = f"{self._dim(f'[{correlation_id[:8]}]')} {message}"

        context = record_context(record)
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            message = f"{message} {self._dim(f'({pairs})')}"

        copy.msg, copy.args = message, None
        if self.use_colors:
            copy.levelname = f"{self.LEVEL_COLORS.get(copy.levelname, '')}{copy.levelname}{self.RESET}"

        return super().format(copy)


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper(), logging.INFO)


def _wants_json(log_format: str) -> bool:
    """``json`` / ``text`` force a format; anything else means JSON unless on a tty."""
    choice = log_format.lower()
    if choice in ("json", "text"):
        return choice == "json"
    return not sys.stderr.isatty()


def configure_logging(
    level: str | int | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Install Thesis handlers on the root logger, replacing existing ones.

    Args:
        level: Log level; None defers to ``THESIS_LOG_LEVEL``
        json_format: Force JSON (True) or text (False); None uses ``THESIS_LOG_FORMAT``
        log_file: Extra file to log to (always JSON); None uses ``THESIS_LOG_FILE``
    """
    from .config import get_config

    config = get_config()
    if level is None:
        level = config.log_level
    if json_format is None:
        json_format = _wants_json(config.log_format)
    if log_file is None:
        log_file = config.log_file

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.setLevel(_resolve_level(level))

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(JSONFormatter() if json_format else StandardFormatter())
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)

    # Pool chatter
    logging.getLogger("psycopg2").setLevel(logging.WARNING)
