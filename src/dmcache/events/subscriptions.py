"""Change notification subscriptions for dm-cache.

Each identity moves through Unsubscribed -> EntrySubscribed ->
ModelSubscribed. Entry bindings for different entries of one model
coexist until the model itself is subscribed; the model binding then
replaces all of them. A model binding is never downgraded.

Routing keys:
- entry: {short_id}.{model}.{entry_id}.#
- model: {short_id}.{model}.#

Binding failures are logged and never raised: invalidation freshness
degrades to TTL expiry but reads keep working. Without a channel, or
after ``disable()``, every ensure call is a no-op, which ``enabled``
reports.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from dmcache.transport.base import DEFAULT_EXCHANGE, MessageChannel

logger = logging.getLogger(__name__)


class SubscriptionState(str, Enum):
    """Subscription state of an identity."""

    UNSUBSCRIBED = "unsubscribed"
    ENTRY = "entry"
    MODEL = "model"


class SubscriptionManager:
    """Lazily binds routing keys for the identities the cache holds."""

    def __init__(
        self,
        channel: MessageChannel | None,
        queue_name: str,
        short_id: str | None = None,
        exchange: str = DEFAULT_EXCHANGE,
    ):
        self.channel = channel
        self.queue_name = queue_name
        self.short_id = short_id
        self.exchange = exchange
        self._models: set[str] = set()
        self._entries: dict[str, set[str]] = {}
        self._warned = False
        self._degraded = False

    @property
    def enabled(self) -> bool:
        """Whether change notifications can be subscribed at all."""
        return self.channel is not None and not self._degraded

    def disable(self) -> None:
        """Stop binding routing keys, e.g. when nothing consumes the queue."""
        self._degraded = True

    def entry_routing_key(self, model: str, entry_id: str) -> str:
        return f"{self.short_id}.{model}.{entry_id}.#"

    def model_routing_key(self, model: str) -> str:
        return f"{self.short_id}.{model}.#"

    def state(self, model: str, entry_id: str | None = None) -> SubscriptionState:
        """Current subscription state of an identity."""
        if model in self._models:
            return SubscriptionState.MODEL
        if entry_id is not None and entry_id in self._entries.get(model, ()):
            return SubscriptionState.ENTRY
        return SubscriptionState.UNSUBSCRIBED

    def watched_entries(self, model: str) -> set[str]:
        return set(self._entries.get(model, ()))

    def watched_models(self) -> set[str]:
        return set(self._models)

    def _disabled(self) -> bool:
        if self.enabled:
            return False
        if self.channel is None and not self._warned:
            self._warned = True
            logger.warning(
                "No message channel given to dm-cache! Cached values expire by TTL only"
            )
        return True

    async def ensure_entry_subscribed(self, model: str, entry_id: str) -> bool:
        """Bind an entry unless it or its model is already covered.

        Returns True if a new binding was established.
        """
        if self._disabled() or self.state(model, entry_id) != SubscriptionState.UNSUBSCRIBED:
            return False
        assert self.channel is not None

        # record first so concurrent callers see the binding as in flight
        entries = self._entries.setdefault(model, set())
        entries.add(entry_id)
        routing_key = self.entry_routing_key(model, entry_id)
        try:
            await self.channel.bind_queue(self.queue_name, self.exchange, routing_key)
        except Exception as e:
            logger.error(f"Error binding queue for entry {routing_key}: {e}")
            entries.discard(entry_id)
            if not entries and self._entries.get(model) is entries:
                del self._entries[model]
            return False

        logger.debug(f"Watching entry {model}/{entry_id}")
        return True

    async def ensure_model_subscribed(self, model: str) -> bool:
        """Bind a model and tear down its entry bindings.

        Returns True if a new binding was established.
        """
        if self._disabled() or model in self._models:
            return False
        assert self.channel is not None

        self._models.add(model)
        routing_key = self.model_routing_key(model)
        try:
            await self.channel.bind_queue(self.queue_name, self.exchange, routing_key)
        except Exception as e:
            logger.error(f"Error binding queue for model {routing_key}: {e}")
            self._models.discard(model)
            return False

        logger.debug(f"Watching model {model}")
        superseded = self._entries.pop(model, set())
        if superseded:
            await asyncio.gather(*(self._unbind_entry(model, entry_id) for entry_id in superseded))
        return True

    async def _unbind_entry(self, model: str, entry_id: str) -> None:
        assert self.channel is not None
        routing_key = self.entry_routing_key(model, entry_id)
        try:
            await self.channel.unbind_queue(self.queue_name, self.exchange, routing_key)
        except Exception as e:
            logger.warning(f"Could not unbind queue for superseded entry {routing_key}: {e}")
