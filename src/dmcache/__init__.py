"""dm-cache: read-through cache for data manager entries and entry lists.

Cached values are evicted by change events delivered over a topic
exchange, with TTL expiry as the fallback when no channel is configured.
"""

from dmcache.backends import ContentBackend, DataManagerBackend, SDKBackend
from dmcache.client import DMCache
from dmcache.config import CacheSettings, ExternalStoreConfig
from dmcache.errors import (
    BackendError,
    ConfigurationError,
    DMCacheError,
    InvalidArgument,
    NotImplementedCapability,
    TransportDegraded,
)
from dmcache.transport import IncomingMessage, InMemoryChannel, MessageChannel

__all__ = [
    "DMCache",
    "CacheSettings",
    "ExternalStoreConfig",
    # Backends
    "ContentBackend",
    "DataManagerBackend",
    "SDKBackend",
    # Transport
    "MessageChannel",
    "IncomingMessage",
    "InMemoryChannel",
    # Errors
    "DMCacheError",
    "InvalidArgument",
    "BackendError",
    "ConfigurationError",
    "TransportDegraded",
    "NotImplementedCapability",
]
