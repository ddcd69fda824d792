"""
Error handling module for the session store.

This module provides structured error handling with:
- ErrorCode enum for standardized error codes
- SessionError base class and one subclass per failure kind
"""

from errors.codes import ErrorCode, is_transient
from errors.exceptions import (
    InvalidSessionDataError,
    SessionDecodeError,
    SessionEncodeError,
    SessionError,
    StoreNotConnectedError,
    StoreOperationError,
    store_operation_failed,
)

__all__ = [
    "ErrorCode",
    "is_transient",
    "SessionError",
    "SessionDecodeError",
    "SessionEncodeError",
    "InvalidSessionDataError",
    "StoreOperationError",
    "StoreNotConnectedError",
    "store_operation_failed",
]
