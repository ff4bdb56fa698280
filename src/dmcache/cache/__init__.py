"""Cache layer for dm-cache.

- Key schema for entry and list reads
- Region-partitioned local store with an optional shared Redis tier
- Identity index mapping content identities to dependent keys
"""

from dmcache.cache.index import IdentityIndex
from dmcache.cache.keys import CacheKeys
from dmcache.cache.redis import RedisTier, create_redis
from dmcache.cache.store import DEFAULT_CACHE_SIZE, DEFAULT_TTL, CacheStore, Region

__all__ = [
    "CacheKeys",
    "CacheStore",
    "Region",
    "DEFAULT_CACHE_SIZE",
    "DEFAULT_TTL",
    "IdentityIndex",
    "RedisTier",
    "create_redis",
]
