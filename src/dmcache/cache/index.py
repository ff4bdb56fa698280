"""Identity index for dm-cache.

Maps content identities to the cache keys whose values depend on them:

- entry index: (model, entry_id) -> keys in the entry region, filled by
  single entry reads and by linked entries found in multi-level reads
- model index: model -> keys in the list region, filled by list reads

Eviction snapshots and detaches a key set before awaiting the store, so a
key registered while an eviction is in flight survives it and is removed by
the next event for its identity, or by TTL expiry.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from dmcache.cache.store import CacheStore, Region

logger = logging.getLogger(__name__)

Identity = tuple[str, str]


class IdentityIndex:
    """Reverse index from identities to dependent cache keys."""

    def __init__(self, store: CacheStore, prune_interval: int | None = None):
        self.store = store
        self._entries: dict[Identity, set[str]] = {}
        self._models: dict[str, set[str]] = {}
        # entry key -> every identity it is registered under
        self._dependencies: dict[str, set[Identity]] = {}
        self._prune_interval = prune_interval or store.max_size
        self._registrations = 0

    def register_entry(
        self,
        key: str,
        model: str,
        entry_id: str,
        linked: Iterable[Identity] = (),
    ) -> None:
        """Index an entry key under its own identity and every linked one."""
        identities = {(model, entry_id), *linked}
        for identity in identities:
            self._entries.setdefault(identity, set()).add(key)
        self._dependencies.setdefault(key, set()).update(identities)
        self._registered()

    def register_list(self, key: str, model: str) -> None:
        """Index a list key under its model."""
        self._models.setdefault(model, set()).add(key)
        self._registered()

    async def evict_entry(self, model: str, entry_id: str) -> int:
        """Evict every entry key depending on one identity."""
        keys = self._entries.pop((model, entry_id), set())
        for key in keys:
            self._forget_entry_key(key)
        if not keys:
            return 0
        removed = await self.store.delete_many(Region.ENTRY, keys)
        logger.debug(f"Evicted {removed} entry keys for {model}/{entry_id}")
        return removed

    async def evict_model_lists(self, model: str) -> int:
        """Evict every list key cached for a model."""
        keys = self._models.pop(model, set())
        if not keys:
            return 0
        removed = await self.store.delete_many(Region.LIST, keys)
        logger.debug(f"Evicted {removed} list keys for {model}")
        return removed

    async def evict_by_identity(self, model: str, entry_id: str | None = None) -> int:
        """Evict keys for an identity.

        With an entry ID, only that entry's keys go, plus every list of the
        model. Without one, every entry key of the model goes as well.
        """
        removed = await self.evict_model_lists(model)
        if entry_id is not None:
            return removed + await self.evict_entry(model, entry_id)

        for identity in [identity for identity in self._entries if identity[0] == model]:
            removed += await self.evict_entry(*identity)
        return removed

    def keys_for_model(self, model: str) -> list[str]:
        """All entry and list keys indexed under a model."""
        keys = set(self._models.get(model, ()))
        for (indexed_model, _entry_id), entry_keys in self._entries.items():
            if indexed_model == model:
                keys.update(entry_keys)
        return sorted(keys)

    def keys_for_identity(self, model: str, entry_id: str) -> set[str]:
        """Snapshot of the entry keys indexed under one identity."""
        return set(self._entries.get((model, entry_id), ()))

    def _forget_entry_key(self, key: str) -> None:
        for identity in self._dependencies.pop(key, ()):
            keys = self._entries.get(identity)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._entries[identity]

    def _registered(self) -> None:
        self._registrations += 1
        if self._registrations >= self._prune_interval:
            self._registrations = 0
            self.prune()

    def prune(self) -> int:
        """Drop index entries for keys the local store no longer holds."""
        dropped = 0
        for key in [k for k in self._dependencies if not self.store.contains(Region.ENTRY, k)]:
            self._forget_entry_key(key)
            dropped += 1

        for model in list(self._models):
            keys = self._models[model]
            stale = {key for key in keys if not self.store.contains(Region.LIST, key)}
            keys -= stale
            dropped += len(stale)
            if not keys:
                del self._models[model]

        if dropped:
            logger.debug(f"Pruned {dropped} expired keys from identity index")
        return dropped

    def __len__(self) -> int:
        return len(self._dependencies) + sum(len(keys) for keys in self._models.values())
