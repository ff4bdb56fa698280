"""Cache key schema for dm-cache.

Entry key format: [{namespace}|]{model}|{entry_id}[|{fields_json}][|{levels}]
List key format:  [{namespace}|]{model}|{filter_json}

Where:
- namespace: optional prefix for cache instances sharing one Redis
- fields_json: JSON array of requested fields, order preserved
- levels: only present when greater than 1
- filter_json: JSON object of list filter options with sorted keys,
  empty when no options are given

The separator never occurs inside a segment: model and entry IDs containing
it are rejected, and JSON segments have it escaped.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import orjson

from dmcache.errors import InvalidArgument

SEPARATOR = "|"
_ESCAPED_SEPARATOR = "\\u007c"


def _describe(value: Any) -> str:
    return f"'{value}'"


def require_model(model: Any, caller: str) -> str:
    """Validate a model title."""
    if not isinstance(model, str) or not model or SEPARATOR in model:
        raise InvalidArgument(f"modelTitle {_describe(model)} given to {caller} is invalid!")
    return model


def require_entry_id(entry_id: Any, caller: str) -> str:
    """Validate an entry ID, unwrapping objects that carry an ``id``."""
    if isinstance(entry_id, Mapping):
        candidate = entry_id.get("id")
    elif entry_id is not None and not isinstance(entry_id, str):
        candidate = getattr(entry_id, "id", None)
    else:
        candidate = entry_id

    if not isinstance(candidate, str) or not candidate or SEPARATOR in candidate:
        raise InvalidArgument(f"entryID {_describe(candidate)} given to {caller} is invalid!")
    return candidate


def require_fields(fields: Any, caller: str) -> list[str] | None:
    """Validate an ordered field selection. Empty selections count as absent."""
    if fields is None:
        return None
    if isinstance(fields, (str, bytes)) or not isinstance(fields, Sequence):
        raise InvalidArgument(f"fields {_describe(fields)} given to {caller} is invalid!")
    if not all(isinstance(field, str) and field for field in fields):
        raise InvalidArgument(f"fields {_describe(fields)} given to {caller} is invalid!")
    return list(fields) or None


def require_levels(levels: Any, caller: str) -> int:
    """Validate a link-resolution depth."""
    if levels is None:
        return 1
    if isinstance(levels, bool) or not isinstance(levels, int) or levels < 1:
        raise InvalidArgument(f"levels {_describe(levels)} given to {caller} is invalid!")
    return levels


def require_callable(transform: Any, caller: str) -> None:
    """Validate an optional transform callback."""
    if transform is not None and not callable(transform):
        raise InvalidArgument(f"transformFunction given to {caller} is invalid!")


def _json_segment(value: Any, name: str, caller: str) -> str:
    try:
        encoded = orjson.dumps(value, option=orjson.OPT_SORT_KEYS).decode()
    except TypeError as e:
        raise InvalidArgument(f"{name} {_describe(value)} given to {caller} is invalid!") from e
    return encoded.replace(SEPARATOR, _ESCAPED_SEPARATOR)


class CacheKeys:
    """Cache key generator following a consistent naming convention."""

    def __init__(self, namespace: str | None = None):
        if namespace is not None and SEPARATOR in namespace:
            raise InvalidArgument(f"namespace '{namespace}' must not contain '{SEPARATOR}'")
        self.namespace = namespace or None

    def _join(self, *segments: str) -> str:
        if self.namespace:
            segments = (self.namespace, *segments)
        return SEPARATOR.join(segments)

    def entry(
        self,
        model: Any,
        entry_id: Any,
        fields: Sequence[str] | None = None,
        levels: int | None = None,
        caller: str = "CacheKeys.entry",
    ) -> str:
        """Key for a single entry read."""
        segments = [require_model(model, caller), require_entry_id(entry_id, caller)]

        selected = require_fields(fields, caller)
        if selected:
            segments.append(_json_segment(selected, "fields", caller))

        depth = require_levels(levels, caller)
        if depth > 1:
            segments.append(str(depth))

        return self._join(*segments)

    def entry_list(
        self,
        model: Any,
        options: Mapping[str, Any] | None = None,
        caller: str = "CacheKeys.entry_list",
    ) -> str:
        """Key for a filtered entry list read.

        Options must be JSON serializable with string keys.
        """
        model = require_model(model, caller)
        if options is not None and not isinstance(options, Mapping):
            raise InvalidArgument(f"options {_describe(options)} given to {caller} is invalid!")

        filter_segment = _json_segment(dict(options), "options", caller) if options else ""
        return self._join(model, filter_segment)

    def config(self) -> str:
        """Key for the backend configuration blob."""
        return self._join("_config")
