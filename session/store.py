"""
Session store abstraction.

This module defines the abstract interface every session store implements:
three async operations (load, save, destroy), a health check, and two
lifecycle signals (connect, disconnect) that are forwarded to registered
listeners whenever the underlying connection changes state.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Dict, List, Optional

from session.record import SessionRecord

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class StoreEvent(str, Enum):
    """Lifecycle signals emitted by a session store."""
    CONNECT = "connect"
    DISCONNECT = "disconnect"


class SessionStore(ABC):
    """
    Abstract base class for session storage implementations.

    All operations are async; each suspends only on round-trips to the
    backing store. Implementations perform no locking: concurrent calls for
    the same session ID may interleave.
    """

    def __init__(self) -> None:
        self._listeners: Dict[StoreEvent, List[Listener]] = {
            event: [] for event in StoreEvent
        }

    def on(self, event: StoreEvent, listener: Listener) -> None:
        """
        Register a listener for a lifecycle signal.

        Args:
            event: The signal to listen for.
            listener: Zero-argument callable invoked on each emission.
        """
        self._listeners[StoreEvent(event)].append(listener)

    def off(self, event: StoreEvent, listener: Listener) -> None:
        """Unregister a listener. Unknown listeners are ignored."""
        listeners = self._listeners[StoreEvent(event)]
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, event: StoreEvent) -> None:
        """
        Forward a lifecycle signal to every registered listener.

        A failing listener is logged and does not stop the others.
        """
        for listener in list(self._listeners[event]):
            try:
                listener()
            except Exception:
                logger.exception(
                    "Session store listener failed",
                    extra={"extra_data": {"event": event.value}}
                )

    @abstractmethod
    async def load(self, session_id: str) -> Optional[SessionRecord]:
        """
        Retrieve a session by ID.

        Args:
            session_id: Unique identifier for the session.

        Returns:
            The session record with its load-time snapshot attached, or
            None if the session does not exist or has expired.

        Raises:
            SessionDecodeError: If any stored value is malformed.
            StoreOperationError: If the backing store call fails.
        """
        pass

    @abstractmethod
    async def save(self, session_id: str, record: SessionRecord) -> None:
        """
        Persist a session.

        Args:
            session_id: Unique identifier for the session.
            record: The session to store. Its snapshot, if any, is consumed.

        Raises:
            SessionEncodeError: If a value cannot be encoded.
            InvalidSessionDataError: If cookie metadata is malformed.
            StoreOperationError: If the primary write fails.
        """
        pass

    @abstractmethod
    async def destroy(self, session_id: str) -> None:
        """
        Delete a session outright.

        Deleting a non-existent session is not an error.

        Raises:
            StoreOperationError: If the backing store call fails.
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check connectivity of the backing store.

        Returns:
            True if the store is reachable, False otherwise. Never raises.
        """
        pass
