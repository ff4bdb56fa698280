"""Error taxonomy for dm-cache.

- InvalidArgument: bad caller input, raised before any I/O
- BackendError: the content backend failed on a cache miss
- ConfigurationError: invalid construction options
- TransportDegraded: message-bus failure; logged, never raised out of reads
- NotImplementedCapability: explicitly stubbed capability
"""

from __future__ import annotations


class DMCacheError(Exception):
    """Base class for all dm-cache errors."""


class InvalidArgument(DMCacheError, ValueError):
    """Caller supplied a malformed model, entry, or transform argument."""


class ConfigurationError(DMCacheError):
    """Cache was constructed with invalid or conflicting options."""


class BackendError(DMCacheError):
    """The backend fetch failed on a cache miss.

    The collaborator's exception is chained as ``__cause__``.
    """

    def __init__(self, operation: str, model: str, cause: BaseException):
        self.operation = operation
        self.model = model
        self.cause = cause
        super().__init__(f"{operation} for model '{model}' failed: {cause}")


class TransportDegraded(DMCacheError):
    """Subscription binding or message acknowledgement failed.

    Only used to describe logged conditions; read paths never see it.
    """


class NotImplementedCapability(DMCacheError, NotImplementedError):
    """Capability is intentionally not implemented."""
