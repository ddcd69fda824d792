"""
Structured logging for the session store.

This module provides structured JSON logging with session correlation:
every log entry written while a store operation is running carries the
ID of the session being operated on, including entries written later by
the best-effort tasks that operation started.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

# Context variable holding the session currently being loaded or saved.
# asyncio tasks copy the context at creation, so background work inherits it.
session_id_var: ContextVar[str] = ContextVar("session_id", default="")


class JSONFormatter(logging.Formatter):
    """
    Log formatter that outputs each record as one JSON object.

    Each log entry contains:
    - timestamp: ISO 8601 formatted UTC timestamp
    - level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - message: The log message
    - logger: Name of the logger that produced the entry
    - session_id: Session the entry relates to, if any

    Additional fields can be included via the 'extra_data' attribute
    on the log record.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "session_id": session_id_var.get(""),
        }

        if record.module:
            log_data["module"] = record.module
        if record.funcName and record.funcName != "<module>":
            log_data["function"] = record.funcName
        if record.lineno:
            log_data["line"] = record.lineno

        if hasattr(record, "extra_data") and record.extra_data:
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_data["stack_trace"] = record.stack_info

        return json.dumps(log_data, default=str)


def configure_logging(settings: Optional[Any] = None) -> logging.Logger:
    """
    Configure structured JSON logging on the root logger.

    Replaces any existing root handlers with a single stdout handler using
    JSONFormatter, at the level named by ``settings.log_level`` (INFO when
    no settings are given).

    Args:
        settings: Application settings providing ``log_level``.

    Returns:
        The "telemetry" logger.
    """
    log_level_str = "INFO"
    if settings is not None and hasattr(settings, "log_level"):
        log_level_str = settings.log_level

    log_level = getattr(logging, log_level_str.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(log_level)
    stdout_handler.setFormatter(JSONFormatter())
    root_logger.addHandler(stdout_handler)

    logger = logging.getLogger("telemetry")
    logger.info("Logging configured", extra={
        "extra_data": {"log_level": log_level_str}
    })
    return logger


@contextmanager
def bind_session_id(session_id: str) -> Iterator[None]:
    """
    Attach a session ID to every log entry written inside the block.

    Args:
        session_id: The session being operated on
    """
    token = session_id_var.set(session_id)
    try:
        yield
    finally:
        session_id_var.reset(token)


def get_session_id() -> str:
    """
    Get the session ID bound to the current context.

    Returns:
        The current session ID, or empty string if none is bound
    """
    return session_id_var.get("")
