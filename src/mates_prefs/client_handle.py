"""
ClientHandleResolver — wait for the chat client to exist, exactly once.

The host comes up on its own schedule. Every component that needs the
client awaits resolve(); the first call starts one poll loop, the result
lands in a shared Future, and every later caller gets the same handle.

There is no timeout: a resolver waiting on a host that never starts
stays pending. close() is the only way to fail waiters (NotReady).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from mates_prefs.core.errors import NotReady
from mates_prefs.host.interface import HostClient

logger = logging.getLogger(__name__)

ClientAccessor = Callable[[], "HostClient | None"]


class ClientHandleResolver:
    """Polls an accessor until it yields a client, then caches it forever."""

    def __init__(self, accessor: ClientAccessor | None = None, poll_interval: float = 0.4):
        self._accessor = accessor
        self._poll_interval = poll_interval
        self._future: asyncio.Future | None = None
        self._poller: asyncio.Task | None = None
        self._closed = False

    def _get_future(self) -> asyncio.Future:
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
        return self._future

    async def resolve(self) -> HostClient:
        """Return the client, suspending until the accessor yields one."""
        if self._closed and not (self._future and self._future.done()):
            raise NotReady("Client handle resolver is closed")
        future = self._get_future()
        if not future.done() and self._poller is None and self._accessor is not None:
            self._poller = asyncio.create_task(self._poll())
        # shield: one cancelled waiter must not cancel the shared result
        return await asyncio.shield(future)

    def set(self, client: HostClient) -> None:
        """Resolve explicitly (no polling needed). Later calls are ignored."""
        future = self._get_future()
        if not future.done():
            future.set_result(client)
            logger.info("Client handle resolved")

    def current(self) -> HostClient | None:
        """The resolved client, or None while still pending."""
        future = self._future
        if future is not None and future.done() and not future.cancelled():
            if future.exception() is None:
                return future.result()
        return None

    def close(self) -> None:
        """Fail every pending and future resolve() with NotReady."""
        self._closed = True
        if self._poller is not None:
            self._poller.cancel()
            self._poller = None
        future = self._future
        if future is not None and not future.done():
            future.set_exception(NotReady("Client handle resolver closed before the client appeared"))
            # mark retrieved so an unawaited failure is not reported at GC
            future.exception()

    async def _poll(self) -> None:
        future = self._get_future()
        attempts = 0
        while not future.done():
            try:
                client = self._accessor() if self._accessor else None
            except Exception as e:
                logger.debug("Client accessor raised, polling again: %s", e)
                client = None
            if client is not None:
                self.set(client)
                break
            attempts += 1
            if attempts == 25:
                logger.info("Still waiting for the chat client...")
            await asyncio.sleep(self._poll_interval)
        self._poller = None
