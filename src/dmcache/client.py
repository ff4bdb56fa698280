"""Read-through cache for data manager content.

Reads go key -> store -> backend on miss -> store -> identity index ->
subscription. Change events arriving on the message channel evict the
cached values that depend on the changed entry.

Example:
    cache = DMCache(data_manager=dm, channel=channel)
    entry = await cache.get_entry("blog", "p1", fields=["title"], levels=2)
    posts = await cache.get_entries("blog", {"size": 10})
    await cache.destroy()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, MutableMapping, Sequence
from typing import Any

from pydantic import ValidationError
from redis.asyncio import Redis

from dmcache.backends.base import ContentBackend, LinkedIdentity, resolve
from dmcache.backends.datamanager import DataManagerBackend
from dmcache.backends.sdk import SDKBackend
from dmcache.cache.index import IdentityIndex
from dmcache.cache.keys import (
    CacheKeys,
    require_callable,
    require_entry_id,
    require_fields,
    require_levels,
    require_model,
)
from dmcache.cache.redis import RedisTier, create_redis
from dmcache.cache.store import DEFAULT_TTL, CacheStore, Region
from dmcache.config import CacheSettings, ExternalStoreConfig
from dmcache.errors import (
    BackendError,
    ConfigurationError,
    DMCacheError,
    InvalidArgument,
    NotImplementedCapability,
    TransportDegraded,
)
from dmcache.events.bus import ChangeEventBus
from dmcache.events.invalidation import CacheInvalidator
from dmcache.events.listener import InvalidationListener, generate_queue_name
from dmcache.events.subscriptions import SubscriptionManager
from dmcache.transport.base import MessageChannel

logger = logging.getLogger(__name__)

HIT_FROM_FIELD = "dmCacheHitFrom"

Transform = Callable[[Any], Any]


def _require_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"`{name}` must be an integer, got {value!r}")
    return value


def _select_backend(
    backend: ContentBackend | None,
    data_manager: Any,
    sdk: Any,
    short_id: str | None,
) -> ContentBackend:
    given = [candidate for candidate in (backend, data_manager, sdk) if candidate is not None]
    if not given:
        raise ConfigurationError("missing either `dataManagerInstance` or `sdkInstance`")
    if len(given) > 1:
        raise ConfigurationError("give only one of `dataManagerInstance` or `sdkInstance`")

    if backend is not None:
        return backend
    if data_manager is not None:
        return DataManagerBackend(data_manager, short_id)
    return SDKBackend(sdk, short_id)


def _build_shared_tier(
    external_store: ExternalStoreConfig | Mapping[str, Any] | Redis | None,
    ttl: int,
) -> RedisTier | None:
    if external_store is None:
        return None
    if ttl == 0:
        raise ConfigurationError(
            "timeToLive 0 (cache forever) cannot be combined with `externalStoreConfig`"
        )

    if isinstance(external_store, Redis):
        return RedisTier(external_store, ttl=ttl)

    if not isinstance(external_store, ExternalStoreConfig):
        try:
            external_store = ExternalStoreConfig.model_validate(dict(external_store))
        except (TypeError, ValueError, ValidationError) as e:
            raise ConfigurationError(f"invalid `externalStoreConfig`: {e}") from e

    return RedisTier(
        create_redis(external_store.url),
        ttl=ttl,
        prefix=external_store.prefix,
        owns_client=True,
    )


class DMCache:
    """Read-through cache kept coherent by change events."""

    def __init__(
        self,
        *,
        data_manager: Any = None,
        sdk: Any = None,
        backend: ContentBackend | None = None,
        channel: MessageChannel | None = None,
        data_manager_short_id: str | None = None,
        append_source: bool | None = None,
        cache_size: int | None = None,
        time_to_live: int | None = None,
        external_store: ExternalStoreConfig | Mapping[str, Any] | Redis | None = None,
        namespace: str | None = None,
        settings: CacheSettings | None = None,
    ):
        settings = settings or CacheSettings()
        short_id = data_manager_short_id or settings.data_manager_short_id

        self._backend = _select_backend(backend, data_manager, sdk, short_id)

        if cache_size is None:
            cache_size = settings.cache_size
        cache_size = _require_int("cacheSize", cache_size)
        if time_to_live is None:
            time_to_live = settings.time_to_live
        if time_to_live is None:
            time_to_live = DEFAULT_TTL
        time_to_live = _require_int("timeToLive", time_to_live)

        shared = _build_shared_tier(
            external_store if external_store is not None else settings.external_store(),
            time_to_live,
        )
        self._store = CacheStore(max_size=cache_size, ttl=time_to_live, shared=shared)
        self._index = IdentityIndex(self._store)
        try:
            self._keys = CacheKeys(namespace if namespace is not None else settings.namespace)
        except InvalidArgument as e:
            raise ConfigurationError(str(e)) from e

        short_id = short_id or self._backend.short_id
        if channel is not None and not short_id:
            raise ConfigurationError(
                "missing data manager short ID required to subscribe to change events"
            )

        queue_name = generate_queue_name()
        self._bus = ChangeEventBus()
        self._invalidator = CacheInvalidator(self._index)
        self._bus.subscribe(self._invalidator.handle_event)
        self._listener = (
            InvalidationListener(channel, self._bus, queue_name, settings.exchange)
            if channel is not None
            else None
        )
        self._subscriptions = SubscriptionManager(channel, queue_name, short_id, settings.exchange)

        self.append_source = (
            append_source if append_source is not None else settings.append_source
        )
        self._start_lock = asyncio.Lock()
        self._started = False
        self._destroyed = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def live_invalidation(self) -> bool:
        """Whether change events keep the cache fresh, as opposed to TTL only."""
        return self._subscriptions.enabled

    async def start(self) -> None:
        """Start consuming change events. Called lazily by every read."""
        if self._destroyed:
            raise DMCacheError("dm-cache instance has been destroyed")
        if self._started:
            return

        async with self._start_lock:
            if self._started:
                return
            await self._bus.start()
            if self._listener is not None:
                try:
                    await self._listener.start()
                except TransportDegraded as e:
                    logger.error(f"{e}. Cached values expire by TTL only")
                    self._subscriptions.disable()
            self._started = True

    async def destroy(self) -> None:
        """Stop consuming change events and release the store."""
        if self._destroyed:
            return
        self._destroyed = True

        if self._listener is not None:
            await self._listener.stop()
        await self._bus.stop()
        await self._store.close()
        logger.info("dm-cache destroyed")

    async def __aenter__(self) -> DMCache:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.destroy()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_entry(
        self,
        model: Any = None,
        entry_id: Any = None,
        fields: Sequence[str] | None = None,
        levels: int | None = 1,
        transform: Transform | None = None,
    ) -> Any:
        """Load an entry, from cache if possible.

        Args:
            model: Title of the model to get the entry from
            entry_id: ID of the entry, or an object carrying an ``id``
            fields: Fields to request; order is part of the cache key
            levels: Depth of linked entry resolution
            transform: Applied to the entry before it is returned

        Raises:
            InvalidArgument: Before any I/O, for malformed arguments
            BackendError: The backend failed on a cache miss
        """
        caller = "dmCache.getEntry"
        model = require_model(model, caller)
        entry_id = require_entry_id(entry_id, caller)
        selected = require_fields(fields, caller)
        depth = require_levels(levels, caller)
        require_callable(transform, caller)

        key = self._keys.entry(model, entry_id, selected, depth, caller=caller)
        await self.start()

        cached, shared_hit = await self._store.lookup(Region.ENTRY, key)
        if cached is not None:
            if shared_hit:
                await self._track_entry(key, model, entry_id, cached, depth)
            logger.debug(f"loaded {model}/{entry_id} from cache")
            return await self._finish(cached, "cache", transform)

        try:
            entry = await self._backend.get_entry(model, entry_id, selected, depth)
        except Exception as e:
            raise BackendError("getEntry", model, e) from e

        await self._store.put(Region.ENTRY, key, entry)
        await self._track_entry(key, model, entry_id, entry, depth)
        logger.debug(f"loaded {model}/{entry_id} from source and cached as {key}")
        return await self._finish(entry, "source", transform)

    async def get_entries(
        self,
        model: Any = None,
        options: Mapping[str, Any] | None = None,
        transform: Transform | None = None,
    ) -> Any:
        """Load a filtered entry list, from cache if possible.

        Raises:
            InvalidArgument: Before any I/O, for malformed arguments
            BackendError: The backend failed on a cache miss
        """
        caller = "dmCache.getEntries"
        model = require_model(model, caller)
        require_callable(transform, caller)

        key = self._keys.entry_list(model, options, caller=caller)
        await self.start()

        cached, shared_hit = await self._store.lookup(Region.LIST, key)
        if cached is not None:
            if shared_hit:
                await self._track_list(key, model)
            logger.debug(f"loaded {model} list from cache")
            return await self._finish(cached, "cache", transform)

        try:
            entries = await self._backend.get_entries(model, options)
        except Exception as e:
            raise BackendError("getEntries", model, e) from e

        await self._store.put(Region.LIST, key, entries)
        await self._track_list(key, model)
        logger.debug(f"loaded {model} list from source and cached as {key}")
        return await self._finish(entries, "source", transform)

    async def _track_entry(
        self, key: str, model: str, entry_id: str, entry: Any, levels: int
    ) -> None:
        """Index a locally held entry key and subscribe to everything it depends on."""
        linked = self._linked_identities(entry, levels)
        self._index.register_entry(key, model, entry_id, linked)
        await asyncio.gather(
            self._subscriptions.ensure_entry_subscribed(model, entry_id),
            *(
                self._subscriptions.ensure_entry_subscribed(linked_model, linked_id)
                for linked_model, linked_id in linked
            ),
        )

    async def _track_list(self, key: str, model: str) -> None:
        self._index.register_list(key, model)
        await self._subscriptions.ensure_model_subscribed(model)

    async def get_config(self) -> Any:
        """Load the backend configuration, cached until TTL expiry."""
        key = self._keys.config()
        await self.start()

        cached = await self._store.get(Region.CONFIG, key)
        if cached is not None:
            return await self._finish(cached, "cache", None)

        try:
            config = await self._backend.get_config()
        except NotImplementedCapability:
            raise
        except Exception as e:
            raise BackendError("getConfig", "_config", e) from e

        await self._store.put(Region.CONFIG, key, config)
        return await self._finish(config, "source", None)

    async def asset_helper(self, *args: Any, **kwargs: Any) -> Any:
        """Asset helpers are not provided by dm-cache."""
        raise NotImplementedCapability("not implemented")

    def _linked_identities(self, entry: Any, levels: int) -> list[LinkedIdentity]:
        if levels <= 1:
            return []
        linked: list[LinkedIdentity] = []
        for identity in self._backend.find_linked_entries(entry, levels) or ():
            try:
                linked_model, linked_id = identity
            except (TypeError, ValueError):
                logger.debug(f"Ignoring malformed linked entry {identity!r}")
                continue
            if all(isinstance(part, str) and part for part in (linked_model, linked_id)):
                linked.append((linked_model, linked_id))
        return linked

    async def _finish(self, value: Any, source: str, transform: Transform | None) -> Any:
        if self.append_source and isinstance(value, MutableMapping):
            value[HIT_FROM_FIELD] = source
        if transform is not None:
            return await resolve(transform(value))
        return value

    # -------------------------------------------------------------------------
    # Subscriptions and administration
    # -------------------------------------------------------------------------

    async def watch_entry(self, model: Any, entry_id: Any) -> bool:
        """Subscribe to changes of one entry ahead of reading it."""
        caller = "dmCache.watchEntry"
        model = require_model(model, caller)
        entry_id = require_entry_id(entry_id, caller)
        await self.start()
        return await self._subscriptions.ensure_entry_subscribed(model, entry_id)

    async def watch_model(self, model: Any) -> bool:
        """Subscribe to changes of every entry of a model."""
        model = require_model(model, "dmCache.watchModel")
        await self.start()
        return await self._subscriptions.ensure_model_subscribed(model)

    async def clear_model(self, model: Any) -> int:
        """Evict every cached entry and list of a model."""
        model = require_model(model, "dmCache.clearModel")
        keys = self._index.keys_for_model(model)
        removed = await self._index.evict_by_identity(model)
        logger.info(f"Cleared {removed} of {len(keys)} cached values for {model}")
        return removed

    async def get_stats(self) -> dict[str, int]:
        """Cache size, TTL, and item counts per region."""
        return self._store.stats()
