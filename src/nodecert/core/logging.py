# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Logging for challenge cycles.

Every record logged inside :func:`log_context` carries the fields bound
there (``node_id``, a per-cycle ``correlation_id``). Modules add per-record
details through ``extra``, e.g. the verifier's ``attempt`` and
``consecutive_matches``. Both formatters render the same field set:
``JSONFormatter`` as keys, ``StandardFormatter`` as a ``[cid/node]`` scope
plus trailing ``key=value`` pairs.

Usage:
    with log_context(node_id=key.get_node_id()):
        logger.info("Submitting TXT update", extra={"record_type": "TXT"})
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

# Fields bound by log_context
SCOPE_FIELDS = ("correlation_id", "node_id")
# Fields passed per record through ``extra``
DETAIL_FIELDS = ("record_type", "fqdn", "attempt", "consecutive_matches", "status_code")

_log_context: ContextVar[Mapping[str, Any] | None] = ContextVar("nodecert_log_context", default=None)


def current_log_context() -> dict[str, Any]:
    """Fields bound in the current task."""
    return dict(_log_context.get() or {})


def get_correlation_id() -> str | None:
    return current_log_context().get("correlation_id")


@contextmanager
def log_context(**fields: Any) -> Generator[str, None, None]:
    """Bind ``fields`` to every record logged inside the block.

    Nested blocks inherit the outer fields. A correlation ID is generated
    unless one is passed or already bound.

    Yields:
        The correlation ID in effect.
    """
    bound = current_log_context()
    bound.update({name: value for name, value in fields.items() if value is not None})
    bound.setdefault("correlation_id", str(uuid.uuid4()))

    token = _log_context.set(bound)
    try:
        yield bound["correlation_id"]
    finally:
        _log_context.reset(token)


def record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Scope and detail fields of ``record``; ``extra`` wins over the context."""
    fields = {name: value for name, value in current_log_context().items() if name in SCOPE_FIELDS}
    for name in SCOPE_FIELDS + DETAIL_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            fields[name] = value
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per record, challenge fields as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_fields(record),
        }
        if record.levelno >= logging.WARNING:
            entry["source"] = f"{record.module}:{record.lineno}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class StandardFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger [cid/node] message key=value ...``"""

    def __init__(self) -> None:
        super().__init__(datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        fields = record_fields(record)
        parts = [self.formatTime(record, self.datefmt), f"{record.levelname:<7}", record.name]

        scope = "/".join(str(fields[name])[:8] for name in SCOPE_FIELDS if name in fields)
        if scope:
            parts.append(f"[{scope}]")
        parts.append(record.getMessage())
        parts.extend(f"{name}={fields[name]}" for name in DETAIL_FIELDS if name in fields)

        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _use_json(json_format: bool | None, configured: str) -> bool:
    if json_format is not None:
        return json_format
    if configured.lower() in ("json", "text"):
        return configured.lower() == "json"
    return not sys.stderr.isatty()


def configure_logging(
    level: str | int | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Install nodecert's handlers on the root logger.

    Unset arguments fall back to ``NODECERT_LOG_LEVEL``, ``NODECERT_LOG_FORMAT``
    (``json``, ``text``, or empty to pick JSON when stderr is not a terminal)
    and ``NODECERT_LOG_FILE``. The log file is always JSON.
    """
    from .config import get_settings

    settings = get_settings()

    level = settings.log_level if level is None else level
    if isinstance(level, str):
        level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(JSONFormatter() if _use_json(json_format, settings.log_format) else StandardFormatter())
    handlers: list[logging.Handler] = [console]

    log_file = settings.log_file if log_file is None else log_file
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in ("aiohttp", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)
