"""Content backends for dm-cache."""

from dmcache.backends.base import ContentBackend, LinkedIdentity
from dmcache.backends.datamanager import DataManagerBackend
from dmcache.backends.links import find_linked_in_payload, links_to_identities
from dmcache.backends.sdk import SDKBackend

__all__ = [
    "ContentBackend",
    "LinkedIdentity",
    "DataManagerBackend",
    "SDKBackend",
    "find_linked_in_payload",
    "links_to_identities",
]
