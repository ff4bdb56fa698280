"""Change event handling for dm-cache.

- InvalidationListener turns channel messages into ChangeEvents
- ChangeEventBus delivers them in-process
- CacheInvalidator evicts the affected cache keys
- SubscriptionManager binds routing keys for what the cache holds
"""

from dmcache.events.bus import ChangeEventBus, EventHandler
from dmcache.events.invalidation import CacheInvalidator
from dmcache.events.listener import InvalidationListener, generate_queue_name
from dmcache.events.schemas import ChangeEvent, ChangeType, MalformedEvent
from dmcache.events.subscriptions import SubscriptionManager, SubscriptionState

__all__ = [
    "ChangeEvent",
    "ChangeType",
    "MalformedEvent",
    "ChangeEventBus",
    "EventHandler",
    "CacheInvalidator",
    "InvalidationListener",
    "generate_queue_name",
    "SubscriptionManager",
    "SubscriptionState",
]
