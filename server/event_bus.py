"""
SSE-backed event bus.

Broadcasts runtime events (approval requests, their resolutions) to every
client connected to the global event stream.
"""

import asyncio
import logging
from typing import Any

from core import Event

logger = logging.getLogger(__name__)

# Events buffered per subscriber before the oldest are dropped
SUBSCRIBER_QUEUE_SIZE = 1000


class SSEEventBus:
    """
    EventBus implementation that fans events out to subscriber queues.

    Publishing never blocks on a slow subscriber: when a queue is full its
    oldest event is dropped to make room.
    """

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self.subscribers: list[asyncio.Queue[dict[str, Any]]] = []

    async def publish(self, event: Event) -> None:
        """Publish an event to all subscribers."""
        data = event.model_dump(mode="json")
        for queue in list(self.subscribers):
            if queue.full():
                queue.get_nowait()
                logger.debug("Dropped oldest event for a slow subscriber")
            queue.put_nowait(data)

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        """
        Create a new subscription queue.

        Returns:
            A queue that will receive all published events
        """
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self.queue_size)
        self.subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        if queue in self.subscribers:
            self.subscribers.remove(queue)


_event_bus: SSEEventBus | None = None


def get_event_bus() -> SSEEventBus:
    """Get the global event bus instance, creating it if necessary."""
    global _event_bus
    if _event_bus is None:
        _event_bus = SSEEventBus()
    return _event_bus
