"""Response cache for the WordPress client.

Values are stored as JSON with a TTL. The cache never fails a request: when
Redis is disabled, unreachable, or errors mid-flight, reads miss and writes
are dropped.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger("gutenberg_agent")


class NullCache:
    """Cache that stores nothing. Used when Redis is not configured."""

    available = False

    async def connect(self) -> None:
        pass

    async def get(self, key: str) -> Any:
        return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        return False

    async def delete(self, key: str) -> bool:
        return False

    async def delete_pattern(self, pattern: str) -> int:
        return 0

    async def flush(self) -> bool:
        return False

    async def close(self) -> None:
        pass


class RedisCache(NullCache):
    """JSON cache over ``redis.asyncio`` with graceful degradation.

    Args:
        url: Redis connection URL.
        ttl: Default time-to-live in seconds.
        enabled: When False every operation is a no-op.
    """

    def __init__(self, url: str, ttl: int = 3600, enabled: bool = True):
        self.url = url
        self.default_ttl = ttl
        self.enabled = enabled
        self.client: Optional[aioredis.Redis] = None

    @property
    def available(self) -> bool:
        return self.enabled and self.client is not None

    async def connect(self) -> None:
        if not self.enabled:
            logger.info("Redis cache is disabled")
            return
        try:
            client = aioredis.from_url(self.url, decode_responses=True)
            await client.ping()
        except (RedisError, OSError) as e:
            logger.error(f"Failed to initialize Redis cache: {e}")
            self.enabled = False
            return
        self.client = client
        logger.info(f"Redis cache connected ({self.url})")

    async def get(self, key: str) -> Any:
        if not self.available:
            return None
        try:
            raw = await self.client.get(key)
        except RedisError as e:
            logger.warning(f"Cache get error for {key}: {e}")
            return None
        if raw is None:
            logger.debug(f"Cache miss: {key}")
            return None
        logger.debug(f"Cache hit: {key}")
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        if not self.available:
            return False
        ttl = ttl or self.default_ttl
        try:
            await self.client.setex(key, ttl, json.dumps(value, default=str))
        except RedisError as e:
            logger.warning(f"Cache set error for {key}: {e}")
            return False
        logger.debug(f"Cache set: {key} (ttl {ttl}s)")
        return True

    async def delete(self, key: str) -> bool:
        if not self.available:
            return False
        try:
            return bool(await self.client.delete(key))
        except RedisError as e:
            logger.warning(f"Cache delete error for {key}: {e}")
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern. Returns the count."""
        if not self.available:
            return 0
        try:
            keys = [k async for k in self.client.scan_iter(match=pattern)]
            if not keys:
                return 0
            await self.client.delete(*keys)
        except RedisError as e:
            logger.warning(f"Cache pattern delete error for {pattern}: {e}")
            return 0
        logger.info(f"Cache pattern delete: {pattern} ({len(keys)} key(s))")
        return len(keys)

    async def flush(self) -> bool:
        if not self.available:
            return False
        try:
            await self.client.flushdb()
        except RedisError as e:
            logger.warning(f"Cache flush error: {e}")
            return False
        logger.info("Cache flushed")
        return True

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None
            logger.info("Redis cache connection closed")


# ---- Keys ----

def block_schema_key(block_name: str) -> str:
    return f"block:schema:{block_name}"


def block_attributes_key(block_name: str, group: str) -> str:
    return f"block:attributes:{block_name}:{group}"


GLOBAL_STYLES_KEY = "theme:global-styles"
PATTERNS_KEY = "patterns:all"


def create_cache(url: str | None, ttl: int = 3600, enabled: bool = False) -> NullCache:
    """RedisCache when enabled with a URL, else NullCache."""
    if enabled and url:
        return RedisCache(url, ttl=ttl)
    return NullCache()
