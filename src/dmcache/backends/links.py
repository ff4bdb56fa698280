"""Linked entry discovery from HAL ``_links``.

A link relation such as ``76de6263:user_card/pages`` points from a field
of one model to entries of another. Creator relations point at accounts
and are skipped. The linked model is the link's ``name``, the entry ID is
the query value of its ``href``.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any
from urllib.parse import parse_qsl, urlsplit

LINK_RELATION = re.compile(
    r"[A-Fa-f0-9]{8}:[a-zA-Z0-9_\-]{1,256}/(?!_?creator)[a-zA-Z0-9_\-]{1,256}"
)


def _entry_id_from_href(href: str) -> str | None:
    query = parse_qsl(urlsplit(href).query)
    if not query:
        return None
    return query[0][1] or None


def links_to_identities(
    links: Mapping[str, Any],
    get_links: Callable[[str], Any] | None = None,
) -> list[tuple[str, str]]:
    """Extract (model, entry_id) pairs from a HAL links mapping."""
    identities: list[tuple[str, str]] = []
    for relation in links:
        if not LINK_RELATION.search(relation):
            continue
        link_objects = get_links(relation) if get_links else links[relation]
        if isinstance(link_objects, Mapping):
            link_objects = [link_objects]
        for link in link_objects or ():
            if not isinstance(link, Mapping) or not link.get("name"):
                continue
            entry_id = _entry_id_from_href(link.get("href", ""))
            if entry_id is None:
                continue
            identity = (link["name"], entry_id)
            if identity not in identities:
                identities.append(identity)
    return identities


def _embedded_entries(entry: Mapping[str, Any]) -> Iterable[Mapping[str, Any]]:
    embedded = entry.get("_embedded")
    if not isinstance(embedded, Mapping):
        return
    for value in embedded.values():
        if isinstance(value, Mapping):
            yield value
        elif isinstance(value, list):
            yield from (item for item in value if isinstance(item, Mapping))


def find_linked_in_payload(entry: Any, levels: int = 2) -> list[tuple[str, str]]:
    """Linked identities of a plain dict payload, following ``_embedded``."""
    if not isinstance(entry, Mapping) or levels < 2:
        return []

    identities = links_to_identities(entry.get("_links") or {})
    for child in _embedded_entries(entry):
        for identity in find_linked_in_payload(child, levels - 1):
            if identity not in identities:
                identities.append(identity)
    return identities
