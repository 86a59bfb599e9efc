"""
Event Bus — lightweight async pub/sub between the host and the observer.

The host's timeline callback publishes raw events; the timeline observer
consumes them from its own queue and publishes enrichment records for
anyone listening (logging, the debug API, tests).

Design:
- Topic-based: each subscriber gets its own asyncio.Queue (no cross-talk)
- Non-blocking: publish() never blocks the publisher, a full queue drops
  (maxsize=0 subscribers never drop)
- Cleanup: publish_end() stops a listen() loop, unsubscribe() detaches

Topics:
- timeline    — raw TimelineEvent objects from the host
- enrichment  — TimelineEnrichment records from the observer

Usage:
    bus = EventBus()
    queue = bus.subscribe(TOPIC_ENRICHMENT)
    async for record in bus.listen(queue):
        print(record.to_dict())
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, AsyncGenerator

logger = logging.getLogger(__name__)

TOPIC_TIMELINE = "timeline"
TOPIC_ENRICHMENT = "enrichment"

# Sentinel to signal end of stream
_STREAM_END = object()


class EventBus:
    """
    Async pub/sub bus. Single event loop, one queue per subscriber so a
    slow enrichment consumer never stalls the host's sync loop.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[asyncio.Queue]] = defaultdict(list)

    def publish_nowait(self, topic: str, event: Any) -> int:
        """
        Deliver an event to every subscriber of a topic.

        Safe to call from synchronous host callbacks. Returns the number of
        subscribers that received the event.
        """
        queues = self._subscribers.get(topic, [])
        delivered = 0
        for queue in queues:
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(
                    "Event bus: subscriber queue full for topic %s, dropping event",
                    topic,
                )
        return delivered

    async def publish(self, topic: str, event: Any) -> int:
        return self.publish_nowait(topic, event)

    def subscribe(self, topic: str, maxsize: int = 1000) -> asyncio.Queue:
        """
        Subscribe to a topic. Returns the Queue that receives events;
        iterate it with listen().
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._subscribers[topic].append(queue)
        logger.debug(
            "Subscribed to topic: %s (total: %d)", topic, len(self._subscribers[topic])
        )
        return queue

    def unsubscribe(self, topic: str, queue: asyncio.Queue) -> None:
        """Remove a subscriber. Safe to call twice."""
        queues = self._subscribers.get(topic, [])
        try:
            queues.remove(queue)
            if not queues:
                del self._subscribers[topic]
            logger.debug("Unsubscribed from topic: %s", topic)
        except ValueError:
            pass

    async def publish_end(self, topic: str, queue: asyncio.Queue | None = None) -> None:
        """
        Signal end-of-stream; listen() stops after the events already queued.

        With `queue`, only that queue is ended, subscribed or not.
        """
        queues = [queue] if queue is not None else self._subscribers.get(topic, [])
        for q in queues:
            try:
                q.put_nowait(_STREAM_END)
            except asyncio.QueueFull:
                logger.warning("Event bus: could not end full queue for topic %s", topic)

    async def listen(self, queue: asyncio.Queue) -> AsyncGenerator[Any, None]:
        """Yield events from a subscriber queue until end-of-stream."""
        while True:
            item = await queue.get()
            if item is _STREAM_END:
                break
            yield item
