"""In-process topic channel.

Implements topic exchange routing (``*`` matches one word, ``#`` matches
zero or more words) on top of asyncio queues. Suitable for single-process
deployments where content changes are published from the same process,
and for tests.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Mapping
from typing import Any

import orjson

from dmcache.transport.base import (
    ChannelClosedError,
    IncomingMessage,
    MessageChannel,
    MessageConsumer,
)

logger = logging.getLogger(__name__)


def topic_matches(pattern: str, routing_key: str) -> bool:
    """Match a routing key against a topic binding pattern."""
    return _match(pattern.split("."), routing_key.split("."))


def _match(pattern: list[str], words: list[str]) -> bool:
    if not pattern:
        return not words
    head, rest = pattern[0], pattern[1:]
    if head == "#":
        return any(_match(rest, words[i:]) for i in range(len(words) + 1))
    if not words:
        return False
    if head == "*" or head == words[0]:
        return _match(rest, words[1:])
    return False


class InMemoryChannel(MessageChannel):
    """Topic exchange channel backed by asyncio queues."""

    def __init__(self) -> None:
        self._exchanges: dict[str, list[tuple[str, str]]] = {}
        self._queues: dict[str, asyncio.Queue[IncomingMessage]] = {}
        self._consumers: dict[str, asyncio.Task[None]] = {}
        self._tags = itertools.count(1)
        self._closed = False
        self.acked: list[int | None] = []
        self.nacked: list[int | None] = []

    def _check_open(self) -> None:
        if self._closed:
            raise ChannelClosedError("Channel ended")

    async def declare_exchange(self, exchange: str) -> None:
        self._check_open()
        self._exchanges.setdefault(exchange, [])

    async def declare_queue(self, queue: str, exclusive: bool = True) -> str:
        self._check_open()
        self._queues.setdefault(queue, asyncio.Queue())
        return queue

    async def bind_queue(self, queue: str, exchange: str, routing_key: str) -> None:
        self._check_open()
        if queue not in self._queues:
            raise LookupError(f"no queue '{queue}'")
        bindings = self._exchanges.setdefault(exchange, [])
        if (queue, routing_key) not in bindings:
            bindings.append((queue, routing_key))

    async def unbind_queue(self, queue: str, exchange: str, routing_key: str) -> None:
        self._check_open()
        bindings = self._exchanges.get(exchange, [])
        if (queue, routing_key) in bindings:
            bindings.remove((queue, routing_key))

    def bindings(self, exchange: str) -> list[tuple[str, str]]:
        """Current (queue, routing key) bindings of an exchange."""
        return list(self._exchanges.get(exchange, []))

    async def consume(self, queue: str, consumer: MessageConsumer) -> str:
        self._check_open()
        messages = self._queues[queue]
        tag = f"ctag-{next(self._tags)}"
        self._consumers[tag] = asyncio.create_task(self._deliver(messages, consumer))
        return tag

    async def _deliver(
        self, messages: asyncio.Queue[IncomingMessage], consumer: MessageConsumer
    ) -> None:
        while True:
            message = await messages.get()
            try:
                await consumer(message)
            except Exception:
                logger.exception("Error in message consumer")
            finally:
                messages.task_done()

    async def cancel(self, consumer_tag: str) -> None:
        task = self._consumers.pop(consumer_tag, None)
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def ack(self, message: IncomingMessage) -> None:
        self._check_open()
        self.acked.append(message.delivery_tag)

    async def nack(self, message: IncomingMessage, requeue: bool = False) -> None:
        self._check_open()
        self.nacked.append(message.delivery_tag)
        if requeue:
            await self._route(message)

    async def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes | Mapping[str, Any],
        properties: Mapping[str, Any] | None = None,
    ) -> int:
        """Route a message to every queue with a matching binding.

        Returns the number of queues the message was delivered to.
        """
        self._check_open()
        if not isinstance(body, bytes):
            body = orjson.dumps(dict(body))
        message = IncomingMessage(
            body=body,
            routing_key=routing_key,
            properties=dict(properties or {}),
            delivery_tag=next(self._tags),
        )
        return await self._route(message, exchange)

    async def _route(self, message: IncomingMessage, exchange: str | None = None) -> int:
        exchanges = [exchange] if exchange is not None else list(self._exchanges)
        targets: list[str] = []
        for name in exchanges:
            for queue, pattern in self._exchanges.get(name, []):
                if queue not in targets and topic_matches(pattern, message.routing_key):
                    targets.append(queue)
        for queue in targets:
            await self._queues[queue].put(message)
        return len(targets)

    async def drain(self) -> None:
        """Wait until every queued message has been consumed."""
        await asyncio.gather(*(queue.join() for queue in self._queues.values()))

    async def close(self) -> None:
        """Stop all consumers and refuse further operations."""
        for tag in list(self._consumers):
            await self.cancel(tag)
        self._closed = True
