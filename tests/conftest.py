"""Global pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import pytest

from dmcache.backends.base import ContentBackend, LinkedIdentity
from dmcache.cache.index import IdentityIndex
from dmcache.cache.store import CacheStore


class FakeBackend(ContentBackend):
    """Content backend serving canned payloads and recording calls."""

    def __init__(
        self,
        entries: dict[tuple[str, str], Any] | None = None,
        lists: dict[str, Any] | None = None,
        links: dict[str, list[LinkedIdentity]] | None = None,
        short_id: str = "abcdef01",
    ) -> None:
        self.entries = entries or {}
        self.lists = lists or {}
        self.links = links or {}
        self._short_id = short_id
        self.entry_calls: list[tuple[str, str, list[str] | None, int]] = []
        self.list_calls: list[tuple[str, dict[str, Any] | None]] = []

    @property
    def short_id(self) -> str | None:
        return self._short_id

    async def get_entry(
        self,
        model: str,
        entry_id: str,
        fields: Sequence[str] | None = None,
        levels: int = 1,
    ) -> Any:
        self.entry_calls.append((model, entry_id, list(fields) if fields else None, levels))
        try:
            return dict(self.entries[(model, entry_id)])
        except KeyError:
            raise LookupError("not found") from None

    async def get_entries(self, model: str, options: Mapping[str, Any] | None = None) -> Any:
        self.list_calls.append((model, dict(options) if options else None))
        try:
            return dict(self.lists[model])
        except KeyError:
            raise LookupError("not found") from None

    def find_linked_entries(self, entry: Any, levels: int = 2) -> list[LinkedIdentity]:
        return list(self.links.get(entry.get("id", ""), []))


@pytest.fixture
def backend() -> FakeBackend:
    """Backend with a few blog posts and authors."""
    return FakeBackend(
        entries={
            ("blog", "p1"): {"id": "p1", "title": "Hello"},
            ("blog", "p2"): {"id": "p2", "title": "World"},
            ("author", "a1"): {"id": "a1", "name": "Ada"},
        },
        lists={"blog": {"count": 2, "items": ["p1", "p2"]}},
        links={"p1": [("author", "a1")]},
    )


@pytest.fixture
def store() -> CacheStore:
    """Local-only store."""
    return CacheStore(max_size=100, ttl=60)


@pytest.fixture
def index(store: CacheStore) -> IdentityIndex:
    """Identity index over the local store."""
    return IdentityIndex(store)


@pytest.fixture
def backend_factory() -> type[FakeBackend]:
    """The fake backend class, for tests needing custom payloads."""
    return FakeBackend
