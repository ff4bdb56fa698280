"""Change event schemas for dm-cache.

Change messages arrive with a JSON body carrying ``modelTitle`` and
``entryID``; the event type travels in the ``type`` message property
(``entryCreated``, ``entryUpdated``, ``entryDeleted``) and is also accepted
inside the body.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

import orjson


class ChangeType(str, Enum):
    """Type of content change."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"

    @classmethod
    def parse(cls, value: Any) -> ChangeType:
        """Parse ``entryUpdated`` style names as well as plain values."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"invalid change type {value!r}")
        name = value.lower()
        if name.startswith("entry"):
            name = name[len("entry") :]
        return cls(name)


class MalformedEvent(ValueError):
    """A change message could not be interpreted."""


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A content change for one entry of a model."""

    type: ChangeType
    model: str
    entry_id: str | None = None
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_message(cls, body: bytes, properties: Mapping[str, Any] | None = None) -> ChangeEvent:
        """Deserialize from a change message body and its properties."""
        try:
            parsed = orjson.loads(body)
        except orjson.JSONDecodeError as e:
            raise MalformedEvent(f"unparseable event body: {e}") from e

        if not isinstance(parsed, dict):
            raise MalformedEvent("event body is not an object")

        raw_type = (properties or {}).get("type") or parsed.get("type")
        try:
            change_type = ChangeType.parse(raw_type)
        except ValueError as e:
            raise MalformedEvent(str(e)) from e

        model = parsed.get("modelTitle", parsed.get("model"))
        if not isinstance(model, str) or not model:
            raise MalformedEvent(f"invalid modelTitle {model!r}")

        entry_id = parsed.get("entryID", parsed.get("entry_id"))
        if entry_id is not None and not isinstance(entry_id, str):
            raise MalformedEvent(f"invalid entryID {entry_id!r}")

        return cls(type=change_type, model=model, entry_id=entry_id or None)
