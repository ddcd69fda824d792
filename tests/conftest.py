"""
Shared pytest fixtures and configuration for all tests.
"""
import os
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from hypothesis import Phase, Verbosity, settings
from redis.exceptions import DataError, ResponseError

from session.redis_store import RedisSessionStore

# Hypothesis profiles for different environments
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,  # event loop startup makes timings noisy
    print_blob=True,
)

settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],  # Skip shrinking for speed
)

settings.register_profile(
    "fast",
    max_examples=20,
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


WRONGTYPE = "WRONGTYPE Operation against a key holding the wrong kind of value"


class FakePipeline:
    """MULTI/EXEC pipeline over a FakeRedis; queued commands run on execute()."""

    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._queued: List[Tuple[str, tuple, dict]] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self._queued.clear()

    def delete(self, *keys: str) -> "FakePipeline":
        self._queued.append(("delete", keys, {}))
        return self

    def hset(self, key: str, mapping: Optional[Dict[str, str]] = None) -> "FakePipeline":
        self._queued.append(("hset", (key,), {"mapping": mapping}))
        return self

    async def execute(self) -> list:
        self._redis._record("EXEC", len(self._queued))
        results = []
        for name, args, kwargs in self._queued:
            results.append(await getattr(self._redis, name)(*args, **kwargs))
        self._queued.clear()
        return results


class FakeRedis:
    """
    In-memory stand-in for a ``redis.asyncio`` client with decode_responses.

    Implements the commands the session store sends, keeps hashes as dicts
    and strings as str, and records every command in ``commands``.
    Failures are injected per command name with ``fail()``.
    """

    def __init__(self):
        self.data: Dict[str, Any] = {}
        self.ttls: Dict[str, int] = {}
        self.commands: List[tuple] = []
        self.failures: Dict[str, Exception] = {}
        self.closed = False

    # -- test helpers -------------------------------------------------

    def fail(self, command: str, error: Exception) -> None:
        self.failures[command.upper()] = error

    def recover(self, command: str) -> None:
        self.failures.pop(command.upper(), None)

    def sent(self, command: str) -> List[tuple]:
        return [c for c in self.commands if c[0] == command.upper()]

    def seed_hash(self, key: str, fields: Dict[str, str]) -> None:
        self.data[key] = dict(fields)

    def seed_string(self, key: str, value: str) -> None:
        self.data[key] = value

    def _record(self, name: str, *args: Any) -> None:
        self.commands.append((name, *args))
        error = self.failures.get(name)
        if error is not None:
            raise error

    def _hash(self, key: str) -> Optional[Dict[str, str]]:
        value = self.data.get(key)
        if value is not None and not isinstance(value, dict):
            raise ResponseError(WRONGTYPE)
        return value

    def _drop(self, key: str) -> None:
        self.data.pop(key, None)
        self.ttls.pop(key, None)

    # -- commands -----------------------------------------------------

    async def ping(self) -> bool:
        self._record("PING")
        return True

    async def hgetall(self, key: str) -> Dict[str, str]:
        self._record("HGETALL", key)
        return dict(self._hash(key) or {})

    async def hset(self, key: str, mapping: Optional[Dict[str, str]] = None) -> int:
        self._record("HSET", key, dict(mapping or {}))
        if not mapping:
            raise DataError("'hset' with no key value pairs")
        current = self._hash(key)
        if current is None:
            current = self.data[key] = {}
        added = sum(1 for name in mapping if name not in current)
        current.update(mapping)
        return added

    async def hdel(self, key: str, *fields: str) -> int:
        self._record("HDEL", key, *fields)
        current = self._hash(key)
        if not current:
            return 0
        removed = 0
        for name in fields:
            if name in current:
                del current[name]
                removed += 1
        if not current:
            self._drop(key)
        return removed

    async def expire(self, key: str, seconds: int) -> bool:
        self._record("EXPIRE", key, seconds)
        if key not in self.data:
            return False
        if seconds <= 0:
            self._drop(key)
        else:
            self.ttls[key] = seconds
        return True

    async def get(self, key: str) -> Optional[str]:
        self._record("GET", key)
        value = self.data.get(key)
        if isinstance(value, dict):
            raise ResponseError(WRONGTYPE)
        return value

    async def delete(self, *keys: str) -> int:
        self._record("DEL", *keys)
        removed = 0
        for key in keys:
            if key in self.data:
                self._drop(key)
                removed += 1
        return removed

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_redis() -> FakeRedis:
    """Fresh in-memory Redis double."""
    return FakeRedis()


@pytest.fixture
def store(fake_redis) -> RedisSessionStore:
    """Session store with default settings over the fake client."""
    return RedisSessionStore(client=fake_redis)


@pytest.fixture
def legacy_store(fake_redis) -> RedisSessionStore:
    """Session store with legacy single-blob compatibility enabled."""
    return RedisSessionStore(client=fake_redis, legacy_compat=True)


@pytest.fixture
def make_store() -> Callable[..., Tuple[RedisSessionStore, FakeRedis]]:
    """Factory building an independent store and fake per call."""
    def _make(**kwargs) -> Tuple[RedisSessionStore, FakeRedis]:
        fake = FakeRedis()
        return RedisSessionStore(client=fake, **kwargs), fake
    return _make
