"""SDK client backend.

Wraps a client exposing ``entry(model, entry_id, options)`` and
``entry_list(model, options)``. Entries returned by the SDK expose their
HAL links through ``all_links()`` and ``get_links(relation)``; plain dict
payloads are read from ``_links`` directly.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from dmcache.backends.base import ContentBackend, LinkedIdentity, resolve
from dmcache.backends.links import find_linked_in_payload, links_to_identities


class SDKBackend(ContentBackend):
    """Backend for SDK shaped clients."""

    def __init__(self, sdk: Any, short_id: str | None = None):
        self.sdk = sdk
        self._short_id = short_id

    @property
    def short_id(self) -> str | None:
        if self._short_id is not None:
            return self._short_id
        return getattr(self.sdk, "short_id", None)

    async def get_entry(
        self,
        model: str,
        entry_id: str,
        fields: Sequence[str] | None = None,
        levels: int = 1,
    ) -> Any:
        options: dict[str, Any] = {}
        if fields:
            options["_fields"] = list(fields)
        if levels and levels > 1:
            options["_levels"] = levels
        if options:
            return await resolve(self.sdk.entry(model, entry_id, options))
        return await resolve(self.sdk.entry(model, entry_id))

    async def get_entries(self, model: str, options: Mapping[str, Any] | None = None) -> Any:
        return await resolve(self.sdk.entry_list(model, dict(options or {})))

    def find_linked_entries(self, entry: Any, levels: int = 2) -> list[LinkedIdentity]:
        all_links = getattr(entry, "all_links", None)
        if callable(all_links):
            return links_to_identities(all_links(), getattr(entry, "get_links", None))
        return find_linked_in_payload(entry, levels)

    @property
    def supports_config(self) -> bool:
        return callable(getattr(self.sdk, "get_config", None))

    async def get_config(self) -> Any:
        if not self.supports_config:
            return await super().get_config()
        return await resolve(self.sdk.get_config())
