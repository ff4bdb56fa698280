"""Message channel interface consumed by dm-cache.

The cache needs a topic-exchange style channel: it declares one exclusive
queue, binds and unbinds routing keys on it as subscriptions change, and
consumes and acknowledges change messages from it. Any AMQP client can be
wrapped to satisfy this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

DEFAULT_EXCHANGE = "publicAPI"


@dataclass(frozen=True, slots=True)
class IncomingMessage:
    """A message delivered to a consumer."""

    body: bytes
    routing_key: str = ""
    properties: Mapping[str, Any] = field(default_factory=dict)
    delivery_tag: int | None = None


MessageConsumer = Callable[[IncomingMessage], Awaitable[None]]


class ChannelClosedError(ConnectionError):
    """The channel can no longer deliver or acknowledge messages."""


class MessageChannel(ABC):
    """Abstract topic-exchange channel."""

    @abstractmethod
    async def declare_exchange(self, exchange: str) -> None:
        """Declare a durable topic exchange."""
        pass

    @abstractmethod
    async def declare_queue(self, queue: str, exclusive: bool = True) -> str:
        """Declare a queue and return its name."""
        pass

    @abstractmethod
    async def bind_queue(self, queue: str, exchange: str, routing_key: str) -> None:
        """Route messages matching a routing key pattern to a queue."""
        pass

    @abstractmethod
    async def unbind_queue(self, queue: str, exchange: str, routing_key: str) -> None:
        """Remove a routing key binding from a queue."""
        pass

    @abstractmethod
    async def consume(self, queue: str, consumer: MessageConsumer) -> str:
        """Start delivering queue messages to a consumer. Returns a consumer tag."""
        pass

    @abstractmethod
    async def cancel(self, consumer_tag: str) -> None:
        """Stop a consumer."""
        pass

    @abstractmethod
    async def ack(self, message: IncomingMessage) -> None:
        """Acknowledge a message."""
        pass

    @abstractmethod
    async def nack(self, message: IncomingMessage, requeue: bool = False) -> None:
        """Negatively acknowledge a message."""
        pass
