"""Two-level store tier for dm-cache.

The local tier keeps one bounded region per value kind (entries, entry
lists, backend configuration). When a shared Redis tier is configured,
writes and deletes fan out to both tiers and local misses fall through to
the shared tier, repopulating the local region on a hit.

Values handed out by ``get`` are always deep copies.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable
from enum import Enum
from typing import Any

from cachetools import Cache, LRUCache, TTLCache

from dmcache.cache.redis import RedisTier
from dmcache.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 1000
# Seconds; 0 keeps values until they are evicted by size or invalidation
DEFAULT_TTL = 300


class Region(str, Enum):
    """Logical region of the store."""

    ENTRY = "entry"
    LIST = "list"
    CONFIG = "config"


def _make_region(max_size: int, ttl: int) -> Cache:
    if ttl:
        return TTLCache(maxsize=max_size, ttl=ttl)
    return LRUCache(maxsize=max_size)


class CacheStore:
    """Region-partitioned cache with an optional shared tier."""

    def __init__(
        self,
        max_size: int = DEFAULT_CACHE_SIZE,
        ttl: int | None = None,
        shared: RedisTier | None = None,
    ):
        if ttl is None:
            ttl = DEFAULT_TTL
        if max_size < 1:
            raise ConfigurationError(f"cacheSize must be a positive integer, got {max_size}")
        if ttl < 0:
            raise ConfigurationError(f"timeToLive must not be negative, got {ttl}")
        if ttl == 0 and shared is not None:
            raise ConfigurationError(
                "timeToLive 0 (cache forever) cannot be combined with a shared store tier"
            )

        self.max_size = max_size
        self.ttl = ttl
        self.shared = shared
        self._regions: dict[Region, Cache] = {
            region: _make_region(max_size, ttl) for region in Region
        }
        self._closed = False

    async def get(self, region: Region, key: str) -> Any | None:
        """Get a private copy of a cached value, or None on miss."""
        value, _shared_hit = await self.lookup(region, key)
        return value

    async def lookup(self, region: Region, key: str) -> tuple[Any | None, bool]:
        """Like ``get``, also telling whether the value came from the shared tier.

        Shared hits are copied into the local region; callers must index
        them like a fresh backend read.
        """
        local = self._regions[region]
        value = local.get(key)
        if value is not None:
            return copy.deepcopy(value), False

        if self.shared is None:
            return None, False

        value = await self.shared.get(region.value, key)
        if value is None:
            return None, False

        logger.debug(f"Shared tier hit for {region.value}/{key}")
        local[key] = value
        return copy.deepcopy(value), True

    async def put(self, region: Region, key: str, value: Any) -> None:
        """Cache a private copy of a value."""
        self._regions[region][key] = copy.deepcopy(value)
        if self.shared is not None:
            await self.shared.set(region.value, key, value)

    async def delete(self, region: Region, key: str) -> None:
        """Delete a cached value. Missing keys are ignored."""
        await self.delete_many(region, [key])

    async def delete_many(self, region: Region, keys: Iterable[str]) -> int:
        """Delete cached values and return how many were held locally."""
        local = self._regions[region]
        keys = list(keys)
        removed = 0
        for key in keys:
            if local.pop(key, None) is not None:
                removed += 1
        if self.shared is not None:
            await self.shared.delete(region.value, keys)
        return removed

    def contains(self, region: Region, key: str) -> bool:
        """Whether the local tier currently holds a key."""
        return key in self._regions[region]

    def keys(self, region: Region | None = None) -> list[str]:
        """Keys currently held by the local tier."""
        if region is not None:
            return list(self._regions[region].keys())
        return [key for cache in self._regions.values() for key in list(cache.keys())]

    def stats(self) -> dict[str, int]:
        """Capacity, TTL, and item counts per region."""
        for cache in self._regions.values():
            expire = getattr(cache, "expire", None)
            if expire is not None:
                expire()

        return {
            "maxCacheSize": self.max_size,
            "timeToLive": self.ttl,
            "itemsInEntryCache": len(self._regions[Region.ENTRY]),
            "itemsInModelCache": len(self._regions[Region.LIST]),
            "itemsInConfigCache": len(self._regions[Region.CONFIG]),
        }

    async def clear(self) -> None:
        """Drop every locally cached value."""
        for region, cache in self._regions.items():
            keys = list(cache.keys())
            cache.clear()
            if self.shared is not None:
                await self.shared.delete(region.value, keys)

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Release the shared tier. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        for cache in self._regions.values():
            cache.clear()
        if self.shared is not None:
            await self.shared.close()
