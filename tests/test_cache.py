"""
Tests for the response cache
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from content_api.cache import NullCache, RedisCache, create_cache


class MockRedis:
    """Mock Redis client."""

    def __init__(self, fail_ping=False):
        self.data = {}
        self.ttls = {}
        self.fail_ping = fail_ping
        self.closed = False

    async def ping(self):
        if self.fail_ping:
            raise RedisConnectionError("Connection refused")
        return True

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl

    async def delete(self, *keys):
        return sum(1 for k in keys if self.data.pop(k, None) is not None)

    async def scan_iter(self, match=None):
        prefix = match.rstrip("*")
        for key in list(self.data):
            if key.startswith(prefix):
                yield key

    async def flushdb(self):
        self.data.clear()

    async def aclose(self):
        self.closed = True


@pytest.fixture
def mock_redis_module():
    """Mock redis.asyncio module."""
    mock = MagicMock()
    mock.from_url = MagicMock(return_value=MockRedis())
    return mock


class TestRedisCache:
    """RedisCache over a mocked client."""

    @pytest.mark.asyncio
    async def test_set_get_round_trip(self, mock_redis_module):
        with patch("content_api.cache.aioredis", mock_redis_module):
            cache = RedisCache("redis://localhost:6379/0", ttl=60)
            await cache.connect()

            assert cache.available is True
            assert await cache.set("block:schema:core/heading", {"name": "core/heading"}) is True
            assert await cache.get("block:schema:core/heading") == {"name": "core/heading"}
            assert cache.client.ttls["block:schema:core/heading"] == 60
            assert json.loads(cache.client.data["block:schema:core/heading"]) == {"name": "core/heading"}

    @pytest.mark.asyncio
    async def test_delete_pattern_and_flush(self, mock_redis_module):
        with patch("content_api.cache.aioredis", mock_redis_module):
            cache = RedisCache("redis://localhost")
            await cache.connect()
            await cache.set("block:schema:a", 1)
            await cache.set("block:schema:b", 2)
            await cache.set("patterns:all", [])

            assert await cache.delete_pattern("block:schema:*") == 2
            assert await cache.get("patterns:all") == []
            assert await cache.flush() is True
            assert await cache.get("patterns:all") is None

    @pytest.mark.asyncio
    async def test_connect_failure_degrades(self, mock_redis_module):
        mock_redis_module.from_url = MagicMock(return_value=MockRedis(fail_ping=True))
        with patch("content_api.cache.aioredis", mock_redis_module):
            cache = RedisCache("redis://localhost")
            await cache.connect()

            assert cache.available is False
            assert await cache.set("k", 1) is False
            assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_close(self, mock_redis_module):
        with patch("content_api.cache.aioredis", mock_redis_module):
            cache = RedisCache("redis://localhost")
            await cache.connect()
            client = cache.client
            await cache.close()

            assert client.closed is True
            assert cache.available is False

    @pytest.mark.asyncio
    async def test_disabled_never_connects(self, mock_redis_module):
        with patch("content_api.cache.aioredis", mock_redis_module):
            cache = RedisCache("redis://localhost", enabled=False)
            await cache.connect()

            mock_redis_module.from_url.assert_not_called()
            assert await cache.delete("k") is False


class TestCreateCache:
    """Factory."""

    def test_null_when_disabled(self):
        assert type(create_cache("redis://localhost", enabled=False)) is NullCache
        assert type(create_cache(None, enabled=True)) is NullCache

    def test_redis_when_enabled(self):
        cache = create_cache("redis://localhost", ttl=10, enabled=True)
        assert isinstance(cache, RedisCache)
        assert cache.default_ttl == 10
