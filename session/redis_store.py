"""
Redis-based session store implementation.

Sessions are stored as Redis hashes, one hash field per session field, each
value JSON-encoded on its own. A save rewrites only the fields whose
encoding changed since the session was loaded and removes the fields that
were dropped, then refreshes the key's expiration.

Sessions written by older deployments as a single JSON string (SETEX) can
be read when legacy compatibility is enabled; the next save converts them
to the hash shape.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Any, Awaitable, Coroutine, Dict, List, Mapping, Optional, Set, TypeVar

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from errors.exceptions import (
    SessionDecodeError,
    StoreNotConnectedError,
    StoreOperationError,
    store_operation_failed,
)
from session.codec import decode
from session.record import SessionRecord
from session.snapshot import SNAPSHOT_FIELD, Snapshot, compute_diff
from session.store import SessionStore, StoreEvent
from session.ttl import resolve_ttl
from telemetry.service import bind_session_id

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_KEY_PREFIX = "sess:"


def _is_wrong_type(error: ResponseError) -> bool:
    """True when Redis rejected a command because the key holds another type."""
    return str(error).startswith("WRONGTYPE")


class RedisSessionStore(SessionStore):
    """
    Redis-backed session store using one hash per session.

    Keys are formed as ``prefix + session_id``. All commands go through a
    single shared client; the store does no locking of its own, so
    concurrent saves of the same session race per field.

    Attributes:
        redis_url: Redis connection URL, used when no client is injected
        prefix: Key prefix for namespace isolation (default "sess:")
        ttl: Fixed ttl overriding the cookie-derived one, or None
        legacy_compat: Whether load() falls back to the single-blob shape
        client: Redis async client (injected, or created by connect())
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        *,
        client: Optional[Any] = None,
        prefix: Optional[str] = DEFAULT_KEY_PREFIX,
        ttl: Optional[timedelta] = None,
        legacy_compat: bool = False,
        password: Optional[str] = None,
        db: Optional[int] = None,
        socket_path: Optional[str] = None,
        socket_timeout: Optional[float] = None
    ):
        """
        Initialize the Redis session store.

        Args:
            redis_url: Redis connection URL (e.g., "redis://localhost:6379/0")
            client: An already-configured ``redis.asyncio`` client. It must
                be created with ``decode_responses=True``. The store never
                closes an injected client.
            prefix: Key prefix. None selects the default "sess:".
            ttl: Fixed ttl for every session. When None, the ttl comes from
                the session cookie's maxAge, or one day. Must be positive.
            legacy_compat: Read sessions stored as a single JSON string.
            password: AUTH password when the URL carries none
            db: Database to SELECT when the URL names none
            socket_path: Unix socket path; takes precedence over redis_url
            socket_timeout: Seconds before a command fails with a timeout
        """
        if ttl is not None and ttl <= timedelta(0):
            raise ValueError(f"ttl must be positive, got {ttl!r}")

        super().__init__()
        self.redis_url = redis_url
        self.prefix = DEFAULT_KEY_PREFIX if prefix is None else prefix
        self.ttl = ttl
        self.legacy_compat = legacy_compat
        self.password = password
        self.db = db
        self.socket_path = socket_path
        self.socket_timeout = socket_timeout
        self.client = client
        self._owns_client = client is None
        self._connected = False
        self._pending: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Any, client: Optional[Any] = None) -> "RedisSessionStore":
        """
        Build a store from application settings.

        Args:
            settings: A ``config.Settings`` instance
            client: Optional pre-built client, bypassing the connection settings
        """
        return cls(
            settings.redis_url,
            client=client,
            prefix=settings.session_key_prefix,
            ttl=settings.session_ttl,
            legacy_compat=settings.session_legacy_compat,
            password=settings.redis_password,
            db=settings.redis_db,
            socket_path=settings.redis_socket_path,
            socket_timeout=settings.redis_socket_timeout,
        )

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def _create_client(self) -> Any:
        import redis.asyncio as redis

        options: Dict[str, Any] = {
            "decode_responses": True,
            "socket_timeout": self.socket_timeout,
        }
        if self.password:
            options["password"] = self.password
        if self.db is not None:
            options["db"] = self.db

        if self.socket_path:
            return redis.Redis(unix_socket_path=self.socket_path, **options)
        return redis.from_url(self.redis_url, **options)

    async def connect(self) -> None:
        """
        Establish the Redis connection and emit ``connect``.

        Creates the client unless one was injected, then verifies it with
        PING. Authentication and database selection happen inside the
        client on every new connection.

        Raises:
            StoreOperationError: If Redis cannot be reached.
        """
        if self.client is None:
            self.client = self._create_client()

        try:
            await self._call("PING", None, self.client.ping())
        except RedisError as e:
            raise self._failed("PING", None, e) from e

        logger.info("Session store connected", extra={
            "extra_data": {"prefix": self.prefix, "legacy_compat": self.legacy_compat}
        })

    async def disconnect(self) -> None:
        """
        Close the Redis connection and emit ``disconnect``.

        Pending best-effort operations are awaited first. An injected
        client is left open for its owner to close.
        """
        await self.drain()
        if self.client is not None and self._owns_client:
            await self.client.aclose()
            self.client = None
        self._mark_disconnected()

    @property
    def connected(self) -> bool:
        return self._connected

    def _mark_connected(self) -> None:
        if not self._connected:
            self._connected = True
            self.emit(StoreEvent.CONNECT)

    def _mark_disconnected(self) -> None:
        if self._connected:
            self._connected = False
            self.emit(StoreEvent.DISCONNECT)

    def _require_client(self, operation: str, key: Optional[str] = None) -> Any:
        if self.client is None:
            raise StoreNotConnectedError(operation, key)
        return self.client

    async def _call(self, operation: str, key: Optional[str], command: Awaitable[T]) -> T:
        """Await one Redis round-trip, tracking connection state."""
        logger.debug("%s %s", operation, key or "")
        try:
            result = await command
        except (RedisConnectionError, RedisTimeoutError):
            self._mark_disconnected()
            raise
        self._mark_connected()
        return result

    def _failed(self, operation: str, key: Optional[str], error: Exception) -> StoreOperationError:
        logger.error(f"{operation} failed", extra={
            "extra_data": {"operation": operation, "key": key, "error": str(error)}
        })
        return store_operation_failed(operation, key, error)

    def _get_key(self, session_id: str) -> str:
        return f"{self.prefix}{session_id}"

    # ------------------------------------------------------------------
    # Best-effort background operations
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Background session operation crashed", exc_info=error)

    async def drain(self) -> None:
        """Wait until every pending best-effort operation has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending_operations(self) -> int:
        return len(self._pending)

    async def _delete_fields(self, client: Any, key: str, fields: List[str]) -> None:
        try:
            await self._call("HDEL", key, client.hdel(key, *fields))
        except RedisError as e:
            logger.warning("HDEL failed, stale fields remain until the next full rewrite", extra={
                "extra_data": {"key": key, "fields": fields, "error": str(e)}
            })
            return
        logger.debug("HDEL complete", extra={"extra_data": {"key": key, "fields": fields}})

    async def _expire(self, client: Any, key: str, ttl: int) -> None:
        try:
            await self._call("EXPIRE", key, client.expire(key, ttl))
        except RedisError as e:
            logger.warning("EXPIRE failed, session keeps its previous deadline", extra={
                "extra_data": {"key": key, "ttl": ttl, "error": str(e)}
            })
            return
        logger.debug("EXPIRE complete", extra={"extra_data": {"key": key, "ttl": ttl}})

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def load(self, session_id: str) -> Optional[SessionRecord]:
        """
        Retrieve a session by ID.

        Reads the session hash. When the hash is empty, or the key holds a
        string (WRONGTYPE), and legacy compatibility is enabled, falls back
        to reading the key as a single JSON document. Connection errors and
        timeouts never trigger the fallback.

        Returns:
            The session with a snapshot attached, or None if absent.

        Raises:
            SessionDecodeError: If any field (or the legacy blob) is
                malformed. No partially decoded session is returned.
            StoreOperationError: If a Redis command fails.
        """
        client = self._require_client("HGETALL")
        key = self._get_key(session_id)

        with bind_session_id(session_id):
            try:
                fields = await self._call("HGETALL", key, client.hgetall(key))
            except ResponseError as e:
                if not (self.legacy_compat and _is_wrong_type(e)):
                    raise self._failed("HGETALL", key, e) from e
                fields = {}
            except RedisError as e:
                raise self._failed("HGETALL", key, e) from e

            if not fields:
                if self.legacy_compat:
                    return await self._load_legacy(client, key)
                return None

            return self._decode_fields(key, fields)

    def _decode_fields(self, key: str, fields: Mapping[str, str]) -> SessionRecord:
        data: Dict[str, Any] = {}
        stale = []
        for name, raw in fields.items():
            if name == SNAPSHOT_FIELD:
                stale.append(name)
                continue
            try:
                data[name] = decode(raw)
            except SessionDecodeError as e:
                logger.error("Malformed session field", extra={
                    "extra_data": {"key": key, "field": name}
                })
                raise SessionDecodeError(
                    f"Malformed value in field {name!r} of {key}",
                    details={"key": key, "field": name},
                ) from e

        logger.debug("GOT %s", key, extra={"extra_data": {"fields": sorted(data)}})
        return SessionRecord(data=data, snapshot=Snapshot.capture(data, stale=stale))

    async def _load_legacy(self, client: Any, key: str) -> Optional[SessionRecord]:
        try:
            raw = await self._call("GET", key, client.get(key))
        except RedisError as e:
            raise self._failed("GET", key, e) from e

        if raw is None:
            return None

        try:
            data = decode(raw)
        except SessionDecodeError as e:
            raise SessionDecodeError(
                f"Malformed legacy session at {key}",
                details={"key": key},
            ) from e
        if not isinstance(data, dict):
            raise SessionDecodeError(
                f"Legacy session at {key} is not a JSON object",
                details={"key": key, "type": type(data).__name__},
            )

        data.pop(SNAPSHOT_FIELD, None)
        logger.debug("GOT legacy %s", key)
        return SessionRecord(data=data, snapshot=Snapshot.legacy_marker())

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def save(self, session_id: str, record: SessionRecord) -> None:
        """
        Persist a session with the fewest hash writes possible.

        With a snapshot, only changed fields are written (HSET) and removed
        fields are deleted (HDEL). Without one, every field is written. A
        session loaded from the legacy shape is replaced in one DEL+HSET
        transaction. EXPIRE is issued after the write either way.

        Only the field write decides the outcome. HDEL and EXPIRE run in the
        background and their failures are logged, never raised.

        Args:
            session_id: Unique identifier for the session.
            record: The session to store. Its snapshot is detached.

        Raises:
            SessionEncodeError: If a value cannot be encoded.
            InvalidSessionDataError: If the cookie metadata is malformed.
            StoreOperationError: If the field write fails.
        """
        client = self._require_client("HSET")
        key = self._get_key(session_id)

        with bind_session_id(session_id):
            # Nothing is sent to Redis if either of these raises
            ttl = resolve_ttl(record, self.ttl)
            snapshot = record.snapshot
            diff = compute_diff(snapshot, record)
            record.detach_snapshot()

            logger.debug("Saving session", extra={"extra_data": {
                "key": key,
                "ttl": ttl,
                "updates": sorted(diff.updates),
                "deletions": diff.deletions,
            }})

            try:
                if snapshot is not None and snapshot.legacy:
                    await self._replace_legacy(client, key, diff.updates)
                else:
                    if diff.deletions:
                        self._spawn(self._delete_fields(client, key, diff.deletions))
                    await self._write_fields(client, key, diff.updates)
            finally:
                self._spawn(self._expire(client, key, ttl))

    async def _write_fields(self, client: Any, key: str, updates: Dict[str, str]) -> None:
        if not updates:
            return
        try:
            await self._call("HSET", key, client.hset(key, mapping=updates))
        except RedisError as e:
            raise self._failed("HSET", key, e) from e
        logger.debug("HSET complete", extra={"extra_data": {"key": key, "fields": len(updates)}})

    async def _replace_legacy(self, client: Any, key: str, updates: Dict[str, str]) -> None:
        # The key still holds a string; HSET alone would fail with WRONGTYPE
        try:
            async with client.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                if updates:
                    pipe.hset(key, mapping=updates)
                await self._call("DEL+HSET", key, pipe.execute())
        except RedisError as e:
            raise self._failed("DEL+HSET", key, e) from e
        logger.info("Converted legacy session to hash", extra={"extra_data": {"key": key}})

    async def touch(self, session_id: str, record: SessionRecord) -> bool:
        """
        Refresh a session's expiration without rewriting any field.

        Args:
            session_id: Unique identifier for the session.
            record: The session, used to resolve the ttl.

        Returns:
            True if the session exists and its deadline was refreshed,
            False if the session does not exist.

        Raises:
            InvalidSessionDataError: If the cookie metadata is malformed.
            StoreOperationError: If the EXPIRE command fails.
        """
        client = self._require_client("EXPIRE")
        key = self._get_key(session_id)

        with bind_session_id(session_id):
            ttl = resolve_ttl(record, self.ttl)
            try:
                result = await self._call("EXPIRE", key, client.expire(key, ttl))
            except RedisError as e:
                raise self._failed("EXPIRE", key, e) from e
            return bool(result)

    # ------------------------------------------------------------------
    # Destroy
    # ------------------------------------------------------------------

    async def destroy(self, session_id: str) -> None:
        """
        Delete a session outright.

        This operation is idempotent. Deleting a non-existent session does
        not raise an error.

        Raises:
            StoreOperationError: If the DEL command fails.
        """
        client = self._require_client("DEL")
        key = self._get_key(session_id)

        with bind_session_id(session_id):
            try:
                await self._call("DEL", key, client.delete(key))
            except RedisError as e:
                raise self._failed("DEL", key, e) from e

    async def health_check(self) -> bool:
        """
        Check connectivity of the Redis store.

        Returns:
            True if Redis answers PING, False otherwise.

        Note:
            This method does not raise exceptions. Connectivity issues
            are caught and result in a False return value.
        """
        if not self.client:
            return False

        try:
            result = await self._call("PING", None, self.client.ping())
            return result is True
        except Exception as e:
            logger.warning("Session store health check failed", extra={
                "extra_data": {"error": str(e)}
            })
            return False
