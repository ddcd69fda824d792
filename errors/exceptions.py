"""
Exception classes for the session store.

This module provides the SessionError base class and one subclass per
failure kind, so callers can catch either the whole family or a single
kind. An absent session is not an error: load() returns None for it.
"""

from typing import Any, Optional

from errors.codes import ErrorCode, is_transient


class SessionError(Exception):
    """
    Base exception class for all session store errors.

    This exception provides structured error information including:
    - error_code: A standardized error code from the ErrorCode enum
    - message: A human-readable error message
    - transient: Whether retrying the same call may succeed
    - details: Optional additional context (e.g., key and field names)

    Example:
        raise SessionError(
            error_code=ErrorCode.SESSION_DECODE_ERROR,
            message="Stored field is not valid JSON",
            details={"key": "sess:abc", "field": "cart"}
        )
    """

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        details: Optional[dict[str, Any]] = None,
        transient: Optional[bool] = None
    ):
        """
        Initialize a SessionError.

        Args:
            error_code: The error code from the ErrorCode enum
            message: A human-readable error message
            details: Optional dictionary with additional error context
            transient: Override for the error code's default transient flag
        """
        self.error_code = error_code
        self.message = message
        self.details = details
        self.transient = is_transient(error_code) if transient is None else transient
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for JSON serialization.

        Returns:
            Dictionary containing error_code, message, transient and details
        """
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
            "transient": self.transient,
        }
        if self.details is not None:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, details={self.details!r})"
        )


class SessionDecodeError(SessionError):
    """Raised when a stored value cannot be decoded."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(ErrorCode.SESSION_DECODE_ERROR, message, details)


class SessionEncodeError(SessionError):
    """Raised when a session value cannot be encoded."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(ErrorCode.SESSION_ENCODE_ERROR, message, details)


class InvalidSessionDataError(SessionError):
    """Raised when session metadata needed for a write is malformed."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(ErrorCode.INVALID_SESSION_DATA, message, details)


class StoreOperationError(SessionError):
    """
    Raised when a backing store command fails.

    The original Redis exception is always chained as __cause__.

    Attributes:
        operation: The Redis command that failed (e.g. "HSET")
        key: The Redis key the command targeted
    """

    def __init__(
        self,
        operation: str,
        key: Optional[str],
        message: str,
        error_code: ErrorCode = ErrorCode.SESSION_STORE_UNAVAILABLE,
        details: Optional[dict[str, Any]] = None
    ):
        self.operation = operation
        self.key = key
        merged = {"operation": operation, "key": key}
        if details:
            merged.update(details)
        super().__init__(error_code, message, merged)


class StoreNotConnectedError(StoreOperationError):
    """Raised when the store is used before connect() was called."""

    def __init__(self, operation: str, key: Optional[str] = None):
        super().__init__(
            operation,
            key,
            "Redis client not connected. Call connect() first.",
            error_code=ErrorCode.SESSION_STORE_NOT_CONNECTED,
        )


def store_operation_failed(operation: str, key: Optional[str], cause: Exception) -> StoreOperationError:
    """Create a StoreOperationError describing a failed Redis command."""
    return StoreOperationError(
        operation,
        key,
        f"{operation} failed for {key}: {cause}",
        details={"cause": type(cause).__name__},
    )
