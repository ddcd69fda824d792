"""
Session persistence module.

This module stores web-session state in Redis hashes, one hash field per
session field, writing only the fields that changed since the session was
loaded and deleting the ones that were removed.
"""

from session.codec import decode, encode
from session.record import SessionRecord
from session.redis_store import DEFAULT_KEY_PREFIX, RedisSessionStore
from session.snapshot import SNAPSHOT_FIELD, FieldDiff, Snapshot, compute_diff
from session.store import SessionStore, StoreEvent
from session.ttl import DEFAULT_SESSION_TTL, resolve_ttl

__all__ = [
    "SessionStore",
    "StoreEvent",
    "RedisSessionStore",
    "SessionRecord",
    "Snapshot",
    "FieldDiff",
    "compute_diff",
    "encode",
    "decode",
    "resolve_ttl",
    "DEFAULT_KEY_PREFIX",
    "DEFAULT_SESSION_TTL",
    "SNAPSHOT_FIELD",
]
