"""
Telemetry module for structured logging.

This module provides:
- JSONFormatter for structured JSON log output
- configure_logging() to install it on the root logger
- Session ID correlation through a context variable
"""

from telemetry.service import (
    JSONFormatter,
    bind_session_id,
    configure_logging,
    get_session_id,
    session_id_var,
)

__all__ = [
    "JSONFormatter",
    "bind_session_id",
    "configure_logging",
    "get_session_id",
    "session_id_var",
]
