"""
Integration test configuration and fixtures.

These tests run against a real Redis instance and are skipped unless
TEST_REDIS_URL is set. Every test uses a unique key prefix and removes
its keys afterwards.
"""
import os
import uuid
from dataclasses import dataclass, field

import pytest
import pytest_asyncio

pytestmark = pytest.mark.integration


@dataclass
class RedisTestConfig:
    """
    Configuration for the test Redis instance.

    Environment Variables:
    - TEST_REDIS_URL: Redis URL for testing (tests are skipped when unset)
    - TEST_REDIS_TIMEOUT: Socket timeout in seconds (default: 5)
    """
    url: str = field(default_factory=lambda: os.getenv("TEST_REDIS_URL", ""))
    timeout: float = field(default_factory=lambda: float(os.getenv("TEST_REDIS_TIMEOUT", "5")))

    @property
    def is_configured(self) -> bool:
        return bool(self.url)


@pytest.fixture(scope="session")
def test_redis_config() -> RedisTestConfig:
    """Provide test Redis configuration."""
    return RedisTestConfig()


@pytest_asyncio.fixture
async def redis_client(test_redis_config, key_prefix):
    """
    A decode_responses client for the test Redis instance.

    Keys under the test's prefix are removed and the client is closed
    after the test, whether it passed or not.
    """
    if not test_redis_config.is_configured:
        pytest.skip("Real Redis not configured. Set TEST_REDIS_URL to run integration tests.")
    import redis.asyncio as redis

    client = redis.from_url(
        test_redis_config.url,
        decode_responses=True,
        socket_timeout=test_redis_config.timeout,
    )
    try:
        yield client
    finally:
        keys = [key async for key in client.scan_iter(match=f"{key_prefix}*")]
        if keys:
            await client.delete(*keys)
        await client.aclose()


@pytest.fixture
def key_prefix() -> str:
    """Unique key prefix isolating one test's sessions."""
    return f"test:{uuid.uuid4().hex[:8]}:"
