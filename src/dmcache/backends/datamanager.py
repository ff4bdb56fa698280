"""Data manager client backend.

Wraps a client exposing ``model(title).entry(entry_id, levels, fields)``
and ``model(title).entries(options)``. The client's ``id`` is the data
manager short ID.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from dmcache.backends.base import ContentBackend, LinkedIdentity, resolve
from dmcache.backends.links import find_linked_in_payload


class DataManagerBackend(ContentBackend):
    """Backend for data manager shaped clients."""

    def __init__(self, client: Any, short_id: str | None = None):
        self.client = client
        self._short_id = short_id

    @property
    def short_id(self) -> str | None:
        if self._short_id is not None:
            return self._short_id
        return getattr(self.client, "id", None)

    async def get_entry(
        self,
        model: str,
        entry_id: str,
        fields: Sequence[str] | None = None,
        levels: int = 1,
    ) -> Any:
        return await resolve(
            self.client.model(model).entry(entry_id, levels, list(fields) if fields else None)
        )

    async def get_entries(self, model: str, options: Mapping[str, Any] | None = None) -> Any:
        return await resolve(self.client.model(model).entries(dict(options or {})))

    def find_linked_entries(self, entry: Any, levels: int = 2) -> list[LinkedIdentity]:
        return find_linked_in_payload(entry, levels)

    @property
    def supports_config(self) -> bool:
        return callable(getattr(self.client, "get_config", None))

    async def get_config(self) -> Any:
        if not self.supports_config:
            return await super().get_config()
        return await resolve(self.client.get_config())
