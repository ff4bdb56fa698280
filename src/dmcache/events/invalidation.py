"""Event-driven cache invalidation.

Translates change events into identity index evictions:

- deleted: the entry's keys and every list of its model
- updated: the entry's keys and every list of its model
- created: only the lists of its model; a new entry cannot be a
  dependency of anything cached before it existed

Evicting keys that are already gone is a no-op, so duplicate and
reordered deliveries are harmless.
"""

from __future__ import annotations

import logging

from dmcache.cache.index import IdentityIndex
from dmcache.events.schemas import ChangeEvent, ChangeType

logger = logging.getLogger(__name__)


class CacheInvalidator:
    """Evicts cached values affected by a change event."""

    def __init__(self, index: IdentityIndex):
        self.index = index

    async def handle_event(self, event: ChangeEvent) -> int:
        """Handle a change event. Returns the number of evicted values."""
        if event.entry_id is None:
            removed = await self.index.evict_by_identity(event.model)
            logger.debug(f"Invalidated all of {event.model}: {removed} values")
            return removed

        if event.type == ChangeType.DELETED:
            removed = await self.index.evict_by_identity(event.model, event.entry_id)
            logger.debug(f"deleted {event.model}/{event.entry_id} from cache")
            return removed

        removed = await self.index.evict_model_lists(event.model)
        if event.type != ChangeType.CREATED:
            removed += await self.index.evict_entry(event.model, event.entry_id)
        logger.debug(
            f"{event.type.value} {event.model}/{event.entry_id}: invalidated {removed} values"
        )
        return removed
