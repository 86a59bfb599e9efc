"""
Mates user prefs — process bootstrap.

Wires the Matrix host, the client handle resolver, the preference store,
the timeline observer and the public API, then keeps running until
interrupted. With MATES_DEBUG_API=true the API is also served over HTTP.

Run: python -m mates_prefs
"""

from __future__ import annotations

import asyncio
import logging

import uvicorn
from fastapi import FastAPI

from mates_prefs.client_handle import ClientHandleResolver
from mates_prefs.core.config import MatesConfig, config
from mates_prefs.core.logging import setup_logging
from mates_prefs.facade import ApiRegistry, PreferencesAPI, expose, registry
from mates_prefs.host.matrix import MatrixHost
from mates_prefs.http.prefs import create_prefs_router
from mates_prefs.kernel.event_bus import EventBus
from mates_prefs.observer.timeline import TimelineObserver
from mates_prefs.preferences.store import PreferenceStore
from mates_prefs.scope import LabelScopeResolver

logger = logging.getLogger("mates_prefs")


def create_app(api: PreferencesAPI) -> FastAPI:
    app = FastAPI(title="Mates user prefs", version="0.1.0")
    app.include_router(create_prefs_router(api))

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app


class Runtime:
    """Everything one running process holds on to."""

    def __init__(self, cfg: MatesConfig, target: ApiRegistry = registry):
        self.config = cfg
        self.bus = EventBus()
        self.host = MatrixHost(cfg.matrix)
        self.resolver = ClientHandleResolver(
            accessor=lambda: self.host if self.host.ready else None,
            poll_interval=cfg.prefs.poll_interval,
        )
        self.scope_resolver = LabelScopeResolver(
            label_source=lambda: cfg.prefs.active_space,
            home_label=cfg.prefs.home_label,
        )
        self.store = PreferenceStore(
            self.resolver, self.scope_resolver, event_type=cfg.prefs.event_type
        )
        self.api = PreferencesAPI(self.store)
        self.observer = TimelineObserver(
            self.resolver,
            self.store,
            self.bus,
            avatar_size=cfg.prefs.avatar_size,
        )
        self.registry = target
        self._host_task: asyncio.Task | None = None

    async def start(self) -> None:
        # The host comes up in the background; everything else waits on the resolver
        self._host_task = asyncio.create_task(self.host.start())
        self._host_task.add_done_callback(self._host_started)
        await expose(self.resolver, self.api, self.registry, self.config.prefs.api_name)
        await self.observer.attach()

    def _host_started(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Matrix host failed to start: %s", error)
            self.resolver.close()

    async def stop(self) -> None:
        self.registry.unregister(self.config.prefs.api_name)
        await self.observer.aclose()
        self.resolver.close()
        if self._host_task is not None and not self._host_task.done():
            self._host_task.cancel()
        await self.host.stop()


async def main(cfg: MatesConfig = config) -> None:
    setup_logging()
    runtime = Runtime(cfg)
    try:
        await runtime.start()
        if cfg.server.debug_api:
            server = uvicorn.Server(
                uvicorn.Config(
                    create_app(runtime.api),
                    host=cfg.server.host,
                    port=cfg.server.port,
                    log_config=None,
                )
            )
            await server.serve()
        else:
            await asyncio.Event().wait()
    finally:
        await runtime.stop()
