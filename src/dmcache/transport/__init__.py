"""Message channel interface and the in-process topic channel."""

from dmcache.transport.base import (
    DEFAULT_EXCHANGE,
    ChannelClosedError,
    IncomingMessage,
    MessageChannel,
    MessageConsumer,
)
from dmcache.transport.memory import InMemoryChannel, topic_matches

__all__ = [
    "DEFAULT_EXCHANGE",
    "ChannelClosedError",
    "IncomingMessage",
    "MessageChannel",
    "MessageConsumer",
    "InMemoryChannel",
    "topic_matches",
]
