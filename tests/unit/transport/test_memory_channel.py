"""Tests for the in-process topic channel."""

import pytest

from dmcache.transport.base import ChannelClosedError, IncomingMessage
from dmcache.transport.memory import InMemoryChannel, topic_matches


class TestTopicMatching:
    """Test topic exchange wildcard semantics."""

    @pytest.mark.parametrize(
        ("pattern", "routing_key", "expected"),
        [
            ("dm.blog.#", "dm.blog.p1.entryUpdated", True),
            ("dm.blog.#", "dm.blog", True),
            ("dm.blog.p1.#", "dm.blog.p1.entryUpdated", True),
            ("dm.blog.p1.#", "dm.blog.p2.entryUpdated", False),
            ("dm.blog.*", "dm.blog.p1", True),
            ("dm.blog.*", "dm.blog.p1.x", False),
            ("dm.blog.#", "dm.news.p1", False),
            ("#", "anything.at.all", True),
        ],
    )
    def test_matches(self, pattern: str, routing_key: str, expected: bool) -> None:
        """Wildcards behave like a topic exchange."""
        assert topic_matches(pattern, routing_key) is expected


class TestInMemoryChannel:
    """Test InMemoryChannel."""

    async def test_routes_once_per_queue(self) -> None:
        """Overlapping bindings deliver one copy."""
        channel = InMemoryChannel()
        await channel.declare_queue("q")
        await channel.bind_queue("q", "ex", "dm.blog.#")
        await channel.bind_queue("q", "ex", "dm.blog.p1.#")

        assert await channel.publish("ex", "dm.blog.p1.entryUpdated", b"{}") == 1

    async def test_unbound_messages_are_dropped(self) -> None:
        """Nothing is routed after unbinding."""
        channel = InMemoryChannel()
        await channel.declare_queue("q")
        await channel.bind_queue("q", "ex", "dm.blog.#")
        await channel.unbind_queue("q", "ex", "dm.blog.#")

        assert await channel.publish("ex", "dm.blog.p1", b"{}") == 0

    async def test_bind_unknown_queue(self) -> None:
        """Binding requires a declared queue."""
        with pytest.raises(LookupError):
            await InMemoryChannel().bind_queue("missing", "ex", "#")

    async def test_consume_and_ack(self) -> None:
        """Consumers receive routed messages."""
        channel = InMemoryChannel()
        await channel.declare_queue("q")
        await channel.bind_queue("q", "ex", "#")
        received: list[IncomingMessage] = []

        async def consumer(message: IncomingMessage) -> None:
            received.append(message)
            await channel.ack(message)

        tag = await channel.consume("q", consumer)
        await channel.publish("ex", "dm.blog.p1", {"a": 1}, {"type": "entryUpdated"})
        await channel.drain()
        await channel.cancel(tag)

        assert received[0].body == b'{"a":1}'
        assert received[0].properties == {"type": "entryUpdated"}
        assert channel.acked == [received[0].delivery_tag]

    async def test_closed_channel_refuses_acks(self) -> None:
        """Acks after close raise ChannelClosedError."""
        channel = InMemoryChannel()
        await channel.close()

        with pytest.raises(ChannelClosedError):
            await channel.ack(IncomingMessage(body=b"{}"))
