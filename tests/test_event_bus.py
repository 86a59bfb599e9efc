"""Tests for EventBus — timeline/enrichment pub/sub."""

import asyncio

import pytest

from mates_prefs.kernel.event_bus import TOPIC_ENRICHMENT, TOPIC_TIMELINE, EventBus


@pytest.mark.asyncio
async def test_publish_and_listen():
    bus = EventBus()
    queue = bus.subscribe(TOPIC_TIMELINE)

    await bus.publish(TOPIC_TIMELINE, {"type": "m.room.message"})
    await bus.publish_end(TOPIC_TIMELINE)

    events = [e async for e in bus.listen(queue)]
    assert events == [{"type": "m.room.message"}]


def test_publish_nowait_without_loop_activity():
    bus = EventBus()
    assert bus.publish_nowait(TOPIC_TIMELINE, "event") == 0


@pytest.mark.asyncio
async def test_multiple_subscribers():
    bus = EventBus()
    q1 = bus.subscribe(TOPIC_ENRICHMENT)
    q2 = bus.subscribe(TOPIC_ENRICHMENT)

    assert bus.publish_nowait(TOPIC_ENRICHMENT, "record") == 2
    await bus.publish_end(TOPIC_ENRICHMENT)

    assert [e async for e in bus.listen(q1)] == ["record"]
    assert [e async for e in bus.listen(q2)] == ["record"]


@pytest.mark.asyncio
async def test_topic_isolation():
    bus = EventBus()
    q_t = bus.subscribe(TOPIC_TIMELINE)
    q_e = bus.subscribe(TOPIC_ENRICHMENT)

    await bus.publish(TOPIC_TIMELINE, "raw")
    await bus.publish(TOPIC_ENRICHMENT, "enriched")

    assert q_t.get_nowait() == "raw"
    assert q_e.get_nowait() == "enriched"
    assert q_t.empty() and q_e.empty()


@pytest.mark.asyncio
async def test_unsubscribe_is_idempotent():
    bus = EventBus()
    queue = bus.subscribe(TOPIC_TIMELINE)
    assert bus.publish_nowait(TOPIC_TIMELINE, "before") == 1

    bus.unsubscribe(TOPIC_TIMELINE, queue)
    bus.unsubscribe(TOPIC_TIMELINE, queue)
    assert bus.publish_nowait(TOPIC_TIMELINE, "after") == 0
    assert queue.get_nowait() == "before"
    assert queue.empty()


@pytest.mark.asyncio
async def test_full_queue_drops_without_blocking():
    bus = EventBus()
    queue = bus.subscribe(TOPIC_TIMELINE, maxsize=1)

    assert bus.publish_nowait(TOPIC_TIMELINE, "first") == 1
    assert bus.publish_nowait(TOPIC_TIMELINE, "second") == 0
    assert queue.get_nowait() == "first"


@pytest.mark.asyncio
async def test_listen_waits_for_events():
    bus = EventBus()
    queue = bus.subscribe(TOPIC_TIMELINE)

    async def consume():
        return [e async for e in bus.listen(queue)]

    task = asyncio.create_task(consume())
    await asyncio.sleep(0)
    await bus.publish(TOPIC_TIMELINE, 1)
    await bus.publish(TOPIC_TIMELINE, 2)
    await bus.publish_end(TOPIC_TIMELINE)

    assert await task == [1, 2]


@pytest.mark.asyncio
async def test_unbounded_queue_keeps_every_event():
    bus = EventBus()
    queue = bus.subscribe(TOPIC_TIMELINE, maxsize=0)

    delivered = sum(bus.publish_nowait(TOPIC_TIMELINE, i) for i in range(1500))

    assert delivered == 1500
    assert queue.qsize() == 1500


@pytest.mark.asyncio
async def test_publish_end_to_one_queue():
    bus = EventBus()
    ended = bus.subscribe(TOPIC_TIMELINE)
    other = bus.subscribe(TOPIC_TIMELINE)
    await bus.publish(TOPIC_TIMELINE, "x")

    bus.unsubscribe(TOPIC_TIMELINE, ended)
    await bus.publish_end(TOPIC_TIMELINE, ended)

    assert [e async for e in bus.listen(ended)] == ["x"]
    assert other.get_nowait() == "x"
    assert other.empty()
