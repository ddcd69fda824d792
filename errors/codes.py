"""
Error code catalog for the session store.

This module defines all error codes raised by the session store, covering
malformed stored data, invalid in-memory session data, and backing store
failures.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used by the session store.

    Each error code is classified as either permanent (retrying the same
    call cannot succeed) or transient (the backing store may recover):
    - Data errors: Stored or in-memory session data is unusable
    - Store errors: The Redis connection or command failed
    """

    # Data errors (permanent)
    SESSION_DECODE_ERROR = "SESSION_DECODE_ERROR"
    """A stored field or legacy blob is not valid JSON"""

    SESSION_ENCODE_ERROR = "SESSION_ENCODE_ERROR"
    """A session value cannot be represented as JSON"""

    INVALID_SESSION_DATA = "INVALID_SESSION_DATA"
    """Session metadata (e.g. cookie.maxAge) is malformed"""

    # Store errors (transient)
    SESSION_STORE_UNAVAILABLE = "SESSION_STORE_UNAVAILABLE"
    """Redis command failed or connection was lost"""

    SESSION_STORE_NOT_CONNECTED = "SESSION_STORE_NOT_CONNECTED"
    """Store used before connect() was called"""

    # Internal errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """Unexpected failure inside the store"""


# Mapping of error codes to whether a retry of the same call may succeed
ERROR_CODE_TRANSIENT_MAP: dict[ErrorCode, bool] = {
    ErrorCode.SESSION_DECODE_ERROR: False,
    ErrorCode.SESSION_ENCODE_ERROR: False,
    ErrorCode.INVALID_SESSION_DATA: False,
    ErrorCode.SESSION_STORE_UNAVAILABLE: True,
    ErrorCode.SESSION_STORE_NOT_CONNECTED: False,
    ErrorCode.INTERNAL_ERROR: False,
}


def is_transient(error_code: ErrorCode) -> bool:
    """
    Check whether an error code describes a transient failure.

    Args:
        error_code: The error code to look up

    Returns:
        True if retrying the failed call may succeed, False otherwise
    """
    return ERROR_CODE_TRANSIENT_MAP.get(error_code, False)
