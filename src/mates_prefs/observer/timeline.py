"""
TimelineObserver — enrich every live message with sender info and prefs.

Flow:
    host "timeline" callback → bus topic "timeline" → consumer loop
        → one task per event → process() → bus topic "enrichment"

Each event is handled in its own task. A failing task is reported to the
error sink and forgotten; the subscription and later events carry on.
Backfilled history (backward pagination) is ignored, only live appends
are enriched.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

from mates_prefs.client_handle import ClientHandleResolver
from mates_prefs.host.interface import HostClient
from mates_prefs.host.models import MESSAGE_EVENT_TYPE, Room, RoomMember, TimelineEvent
from mates_prefs.kernel.event_bus import TOPIC_ENRICHMENT, TOPIC_TIMELINE, EventBus
from mates_prefs.observer.enrichment import TimelineEnrichment
from mates_prefs.preferences.store import PreferenceStore
from mates_prefs.scope import Scope

logger = logging.getLogger(__name__)

EnrichmentSink = Callable[[TimelineEnrichment], Any]
ErrorSink = Callable[[TimelineEvent, BaseException], Any]


def _log_error(event: TimelineEvent, error: BaseException) -> None:
    logger.error(
        "Message enrichment failed: %s",
        error,
        exc_info=error,
        extra={"room_id": event.room_id, "event_id": event.event_id},
    )


class TimelineObserver:
    """Subscribes to the host timeline once and stays attached."""

    def __init__(
        self,
        resolver: ClientHandleResolver,
        store: PreferenceStore,
        bus: EventBus,
        avatar_size: int = 48,
        on_enrichment: EnrichmentSink | None = None,
        on_error: ErrorSink | None = None,
    ) -> None:
        self._resolver = resolver
        self._store = store
        self._bus = bus
        self._avatar_size = avatar_size
        self._on_enrichment = on_enrichment
        self._on_error = on_error or _log_error
        self._queue: asyncio.Queue | None = None
        self._consumer: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def attached(self) -> bool:
        return self._consumer is not None

    async def attach(self) -> None:
        """Resolve the client and start observing. Idempotent."""
        if self.attached:
            return
        client = await self._resolver.resolve()
        # Unbounded: one /sync batch is published before the consumer runs
        self._queue = self._bus.subscribe(TOPIC_TIMELINE, maxsize=0)
        client.on("timeline", self._on_timeline)
        self._consumer = asyncio.create_task(self._consume(self._queue))
        logger.info("Timeline observer attached")

    async def aclose(self) -> None:
        """End the timeline stream, then cancel handlers still running."""
        if self._queue is not None:
            queue, self._queue = self._queue, None
            self._bus.unsubscribe(TOPIC_TIMELINE, queue)
            await self._bus.publish_end(TOPIC_TIMELINE, queue)
        if self._consumer is not None:
            await self._consumer
            self._consumer = None
        for task in list(self._tasks):
            task.cancel()

    async def drain(self) -> None:
        """Wait until every delivered event has been fully handled."""
        while self._tasks or (self._queue is not None and not self._queue.empty()):
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                await asyncio.sleep(0)

    # ── Channel ──

    def _on_timeline(self, event: TimelineEvent) -> None:
        self._bus.publish_nowait(TOPIC_TIMELINE, event)

    async def _consume(self, queue: asyncio.Queue) -> None:
        async for event in self._bus.listen(queue):
            task = asyncio.create_task(self._handle(event))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _handle(self, event: TimelineEvent) -> None:
        try:
            await self.process(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            try:
                result = self._on_error(event, e)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Error sink failed")

    # ── Per-event protocol ──

    async def process(self, event: TimelineEvent) -> TimelineEnrichment | None:
        """Enrich one event. Returns None when the event is filtered out."""
        if event.type != MESSAGE_EVENT_TYPE or event.backwards:
            return None

        client = await self._resolver.resolve()
        room = client.get_room(event.room_id)
        if room is None:
            return None

        sender = event.sender
        if not sender:
            return None

        member = self._member(room, sender)
        display_name = (member.name if member else None) or sender
        content = event.content or {}

        room_prefs = await self._store.read(Scope.room(event.room_id), sender)
        account_color = None
        if sender == client.user_id:
            account_color = await self._store.read_account_color()

        enrichment = TimelineEnrichment(
            room_id=event.room_id,
            room_name=room.name,
            event_id=event.event_id,
            sender=sender,
            display_name=display_name,
            membership=member.membership if member else None,
            avatar_url=self._avatar_url(client, member),
            msgtype=content.get("msgtype"),
            body=content.get("body"),
            room_prefs=room_prefs,
            account_color=account_color,
        )
        await self._emit(enrichment)
        return enrichment

    async def _emit(self, enrichment: TimelineEnrichment) -> None:
        logger.info(
            "[message] %s in %s",
            enrichment.sender,
            enrichment.room_name or enrichment.room_id,
            extra={
                "room_id": enrichment.room_id,
                "event_id": enrichment.event_id,
                "sender": enrichment.sender,
                "enrichment": enrichment.to_dict(),
            },
        )
        await self._bus.publish(TOPIC_ENRICHMENT, enrichment)
        if self._on_enrichment is not None:
            result = self._on_enrichment(enrichment)
            if inspect.isawaitable(result):
                await result

    @staticmethod
    def _member(room: Room, sender: str) -> RoomMember | None:
        try:
            return room.get_member(sender)
        except Exception as e:
            logger.debug("Member lookup failed for %s: %s", sender, e)
            return None

    def _avatar_url(self, client: HostClient, member: RoomMember | None) -> str | None:
        if member is None or not member.avatar_mxc:
            return None
        try:
            size = self._avatar_size
            return client.mxc_to_http(member.avatar_mxc, size, size, "crop")
        except Exception as e:
            logger.debug("Avatar URL resolution failed: %s", e)
            return None
