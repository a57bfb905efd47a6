"""
Structured logging for incidentlog.

Store writes are logged as one JSON line per operation, carrying the
fields that identify what was touched:

    {"operation": "delete_oldest", "keep_count": 500, "removed": 12,
     "duration_ms": 0.84, "session_id": "...", ...}

A host application can bind a session id with `log_context`; it is attached
to every line logged inside that block, including the store's own lines.
"""

import json
import logging
import re
import sys
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any

_session_id: ContextVar[str | None] = ContextVar("incidentlog_session_id", default=None)
_operation: ContextVar[str | None] = ContextVar("incidentlog_operation", default=None)

# CR, LF, NUL and the other control chars except tab
_CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

operations_logger = logging.getLogger("incidentlog.operations")


def _sanitize_log_message(message: str) -> str:
    """
    Neutralize line breaks and control characters.

    Incident messages and error codes come from host applications; an
    embedded newline would otherwise forge a second log entry.
    """
    if not isinstance(message, str):
        message = str(message)

    message = message.replace("\r\n", "\\r\\n")
    message = message.replace("\n", "\\n")
    message = message.replace("\r", "\\r")

    return _CONTROL_CHAR_PATTERN.sub("", message)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, with the bound session and operation."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": _sanitize_log_message(record.getMessage()),
        }

        session_id = _session_id.get()
        if session_id is not None:
            entry["session_id"] = _sanitize_log_message(session_id)
        operation = _operation.get()
        if operation is not None:
            entry["operation"] = operation

        for key, value in getattr(record, "extra_fields", {}).items():
            entry[key] = _sanitize_log_message(value) if isinstance(value, str) else value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def configure_logging(
    level: str | None = None,
    json_output: bool | None = None,
    log_file: str | None = None,
) -> None:
    """
    Install incidentlog's handlers on the root logger.

    Args:
        level: Log level; defaults to INCIDENTLOG_LOG_LEVEL
        json_output: JSON lines on stderr; defaults to INCIDENTLOG_LOG_JSON
        log_file: Optional file that always receives JSON lines
    """
    if level is None or json_output is None:
        from incidentlog.core.config import get_settings

        settings = get_settings()
        level = settings.log_level if level is None else level
        json_output = settings.log_json if json_output is None else json_output

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    if json_output:
        console_handler.setFormatter(StructuredFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    logging.getLogger("incidentlog").setLevel(numeric_level)


@contextmanager
def log_context(
    session_id: str | None = None,
    operation: str | None = None,
) -> Iterator[None]:
    """
    Bind session and/or operation for lines logged inside the block.

    Only the values given are rebound; on exit each is restored to what it
    was before, so nested blocks and caller-bound sessions survive.
    """
    tokens = []
    if session_id is not None:
        tokens.append((_session_id, _session_id.set(session_id)))
    if operation is not None:
        tokens.append((_operation, _operation.set(operation)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def log_operation(
    operation: str,
    fields: Callable[..., dict[str, Any]] | None = None,
    result_field: str | None = None,
    level: int = logging.INFO,
) -> Callable:
    """
    Decorator that logs an async store operation with its outcome and timing.

    Args:
        operation: Name recorded as the `operation` field
        fields: Called with the wrapped call's arguments; returns identifying
            fields (incident_id, keep_count, ...)
        result_field: Record the return value under this name
        level: Level for successful completion; failures are always ERROR
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            entry = fields(*args, **kwargs) if fields is not None else {}
            entry["operation"] = operation
            start = time.perf_counter()
            with log_context(operation=operation):
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    entry["duration_ms"] = round((time.perf_counter() - start) * 1000, 2)
                    entry["error_type"] = type(e).__name__
                    operations_logger.error(
                        f"Failed {operation}: {e}",
                        extra={"extra_fields": entry},
                    )
                    raise
                entry["duration_ms"] = round((time.perf_counter() - start) * 1000, 2)
                if result_field is not None:
                    entry[result_field] = result
                operations_logger.log(
                    level,
                    f"Completed {operation}",
                    extra={"extra_fields": entry},
                )
                return result
        return wrapper
    return decorator
