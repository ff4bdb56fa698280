"""Redis shared tier for dm-cache.

Provides async Redis operations for the optional shared store tier.
Uses redis-py async client for connection pooling. Every failure is
logged and reported as a miss so that the local tier keeps serving.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import orjson
import redis.asyncio as redis
from redis.exceptions import RedisError

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

KEY_PREFIX = "dmcache"


def create_redis(url: str) -> Redis:
    """Create a Redis client for the shared tier.

    Uses connection pooling for efficient connection management.
    """
    return redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=False,  # We're storing bytes
    )


class RedisTier:
    """Shared cache tier stored in Redis.

    Values are stored as orjson bytes with an optional TTL.
    """

    def __init__(
        self,
        client: Redis,
        ttl: int | None = None,
        prefix: str = KEY_PREFIX,
        owns_client: bool = False,
    ):
        self.client = client
        self.ttl = ttl
        self.prefix = prefix
        self._owns_client = owns_client
        self._closed = False

    def _key(self, region: str, key: str) -> str:
        return f"{self.prefix}:{region}:{key}"

    async def get(self, region: str, key: str) -> Any | None:
        """Get a cached value, or None on miss or failure."""
        try:
            raw = await self.client.get(self._key(region, key))
        except RedisError as e:
            logger.warning(f"Shared tier read failed for {region}/{key}: {e}")
            return None

        if raw is None:
            return None

        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            logger.warning(f"Discarding undecodable shared tier value {region}/{key}: {e}")
            return None

    async def set(self, region: str, key: str, value: Any) -> bool:
        """Cache a value. Returns False if it could not be written."""
        try:
            payload = orjson.dumps(value)
        except TypeError as e:
            logger.debug(f"Value for {region}/{key} is not shareable: {e}")
            return False

        try:
            if self.ttl:
                await self.client.setex(self._key(region, key), self.ttl, payload)
            else:
                await self.client.set(self._key(region, key), payload)
        except RedisError as e:
            logger.warning(f"Shared tier write failed for {region}/{key}: {e}")
            return False
        return True

    async def delete(self, region: str, keys: Iterable[str]) -> None:
        """Delete cached values."""
        redis_keys = [self._key(region, key) for key in keys]
        if not redis_keys:
            return
        try:
            await self.client.delete(*redis_keys)
        except RedisError as e:
            logger.warning(f"Shared tier delete failed for {len(redis_keys)} keys: {e}")

    async def close(self) -> None:
        """Close the Redis connection if this tier created it."""
        if self._closed:
            return
        self._closed = True
        if self._owns_client:
            await self.client.aclose()
