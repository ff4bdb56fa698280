"""Content backend interface for dm-cache.

The cache reads through to a ContentBackend on every miss. Two variants
wrap the differently shaped clients that can serve content: a data manager
client and an SDK client.
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from dmcache.errors import NotImplementedCapability

LinkedIdentity = tuple[str, str]


async def resolve(result: Any) -> Any:
    """Await client results that are awaitable, pass others through."""
    if inspect.isawaitable(result):
        return await result
    return result


class ContentBackend(ABC):
    """Abstract content backend."""

    @property
    @abstractmethod
    def short_id(self) -> str | None:
        """Short ID of the data manager, used as routing key prefix."""
        pass

    @abstractmethod
    async def get_entry(
        self,
        model: str,
        entry_id: str,
        fields: Sequence[str] | None = None,
        levels: int = 1,
    ) -> Any:
        """Fetch a single entry."""
        pass

    @abstractmethod
    async def get_entries(self, model: str, options: Mapping[str, Any] | None = None) -> Any:
        """Fetch a filtered entry list."""
        pass

    @abstractmethod
    def find_linked_entries(self, entry: Any, levels: int = 2) -> list[LinkedIdentity]:
        """Identities of entries embedded in or linked from an entry."""
        pass

    @property
    def supports_config(self) -> bool:
        return False

    async def get_config(self) -> Any:
        """Fetch the backend configuration."""
        raise NotImplementedCapability(f"{type(self).__name__} does not provide a configuration")
