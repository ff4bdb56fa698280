"""In-process event bus for change events.

Decouples the invalidation listener, which parses transport messages,
from the handlers that evict cache entries. Events are processed in FIFO
order by a single task.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from dmcache.events.schemas import ChangeEvent

logger = logging.getLogger(__name__)


EventHandler = Callable[[ChangeEvent], Awaitable[None]]


class ChangeEventBus:
    """In-memory event bus using asyncio.Queue."""

    def __init__(self, max_size: int = 10000):
        self._queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=max_size)
        self._handlers: list[EventHandler] = []
        self._running = False
        self._task: asyncio.Task[None] | None = None

    async def publish(self, event: ChangeEvent) -> None:
        """Publish an event to the queue.

        Non-blocking if queue has space, blocks if queue is full.
        """
        await self._queue.put(event)

    def subscribe(self, handler: EventHandler) -> None:
        """Subscribe a handler to receive events."""
        self._handlers.append(handler)
        handler_name = getattr(handler, "__name__", handler.__class__.__name__)
        logger.debug(f"Registered change event handler: {handler_name}")

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start processing events."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._process_loop())

    async def stop(self) -> None:
        """Stop processing events."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _process_loop(self) -> None:
        """Main event processing loop."""
        while self._running:
            try:
                event = await self._queue.get()
            except asyncio.CancelledError:
                break

            try:
                for handler in self._handlers:
                    try:
                        await handler(event)
                    except Exception:
                        # Log error but continue processing
                        logger.exception("Error in change event handler")
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait for all pending events to be processed."""
        await self._queue.join()
