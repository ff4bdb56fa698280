"""Invalidation listener for dm-cache.

Consumes change messages from the process's exclusive queue, parses them
into ChangeEvents and publishes them on the in-process event bus.

Each message goes Idle -> received -> parsed -> dispatched -> acked.
Unparseable messages are logged and negatively acknowledged without
requeue. Transport failures are logged and never stop the listener.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from dmcache.errors import TransportDegraded
from dmcache.events.bus import ChangeEventBus
from dmcache.events.schemas import ChangeEvent, MalformedEvent
from dmcache.observability.logging import LogContext
from dmcache.transport.base import (
    DEFAULT_EXCHANGE,
    ChannelClosedError,
    IncomingMessage,
    MessageChannel,
)

logger = logging.getLogger(__name__)


def generate_queue_name() -> str:
    """Generate the exclusive queue name for this cache instance."""
    return f"cache-{uuid4()}"


class InvalidationListener:
    """Feeds change messages from a message channel into the event bus."""

    def __init__(
        self,
        channel: MessageChannel,
        bus: ChangeEventBus,
        queue_name: str | None = None,
        exchange: str = DEFAULT_EXCHANGE,
    ):
        self.channel = channel
        self.bus = bus
        self.queue_name = queue_name or generate_queue_name()
        self.exchange = exchange
        self._consumer_tag: str | None = None
        self._running = False
        self.processed = 0
        self.failed = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Declare the queue and start consuming.

        Raises:
            TransportDegraded: The channel could not be set up
        """
        if self._running:
            return

        try:
            await self.channel.declare_exchange(self.exchange)
            self.queue_name = await self.channel.declare_queue(self.queue_name, exclusive=True)
            self._consumer_tag = await self.channel.consume(self.queue_name, self.handle_message)
        except Exception as e:
            raise TransportDegraded(
                f"Could not set up change event queue {self.queue_name}: {e}"
            ) from e

        self._running = True
        logger.info(f"Started invalidation listener on queue {self.queue_name}")

    async def stop(self) -> None:
        """Stop consuming new messages."""
        if not self._running:
            return
        self._running = False

        if self._consumer_tag is not None:
            try:
                await self.channel.cancel(self._consumer_tag)
            except Exception as e:
                logger.warning(f"Could not cancel consumer {self._consumer_tag}: {e}")
            self._consumer_tag = None

        logger.info(f"Stopped invalidation listener on queue {self.queue_name}")

    async def handle_message(self, message: IncomingMessage) -> None:
        """Parse, dispatch and acknowledge one change message."""
        try:
            event = ChangeEvent.from_message(message.body, message.properties)
        except MalformedEvent as e:
            self.failed += 1
            logger.error(
                f"Could not parse event: {e}",
                extra={"routing_key": message.routing_key},
            )
            await self._settle(message, success=False)
            return

        with LogContext(event_id=event.event_id, model=event.model):
            logger.debug(f"Received {event.type.value} for {event.model}/{event.entry_id}")
            await self.bus.publish(event)
            self.processed += 1
            await self._settle(message, success=True)

    async def _settle(self, message: IncomingMessage, success: bool) -> None:
        try:
            if success:
                await self.channel.ack(message)
            else:
                await self.channel.nack(message, requeue=False)
        except ChannelClosedError:
            logger.warning("Could not ack message - channel ended. Discard Message")
        except Exception as e:
            logger.error(f"Could not ack message: {e}")
