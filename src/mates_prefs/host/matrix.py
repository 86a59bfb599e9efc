"""
MatrixHost — HostClient over the Matrix Client-Server API (httpx).

Keeps a small room cache (name, m.room.create content, member directory)
current from /sync and dispatches timeline events to registered handlers.
State and account-data reads always go to the homeserver, so callers see
the latest stored value rather than the cache.

Usage:
    host = MatrixHost(config.matrix)
    await host.start()          # whoami + initial sync + background loop
    host.on("timeline", handler)
    await host.paginate_backwards("!room:example.org")
    await host.stop()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any
from urllib.parse import quote

import httpx

from mates_prefs.core.config import MatrixConfig
from mates_prefs.core.errors import BackendRejected, NotReady
from mates_prefs.host.interface import HostClient, TimelineHandler
from mates_prefs.host.models import (
    CREATE_EVENT_TYPE,
    Room,
    RoomMember,
    TimelineEvent,
)

logger = logging.getLogger(__name__)

CLIENT_API = "/_matrix/client/v3"
MEDIA_API = "/_matrix/media/v3"


def _q(value: str) -> str:
    return quote(value, safe="")


class MatrixHost(HostClient):
    """Matrix client session backed by one shared httpx.AsyncClient."""

    def __init__(
        self,
        config: MatrixConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._user_id: str | None = config.user_id or None
        self._rooms: dict[str, Room] = {}
        # room_id -> {"name": ..., "alias": ...} for display name computation
        self._name_sources: dict[str, dict[str, str]] = {}
        self._prev_batch: dict[str, str] = {}
        self._next_batch: str | None = None
        self._handlers: dict[str, list[TimelineHandler]] = {}
        self._pending: set[asyncio.Task] = set()
        self._sync_task: asyncio.Task | None = None
        self._ready = False

    # ── Lifecycle ──

    @property
    def ready(self) -> bool:
        """True once the initial sync has populated the room cache."""
        return self._ready

    async def start(self, background_sync: bool = True) -> None:
        """Connect and build the room cache. With background_sync the
        /sync loop keeps running until stop(); otherwise call sync_once()."""
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self._config.homeserver,
                headers={"Authorization": f"Bearer {self._config.access_token}"},
                timeout=self._config.request_timeout,
                transport=self._transport,
            )
        if not self._user_id:
            resp = await self._request("GET", f"{CLIENT_API}/account/whoami")
            self._raise_for_status(resp, "whoami")
            self._user_id = resp.json().get("user_id")

        # Initial sync only builds the cache; its timeline is history, not live
        await self.sync_once(timeout_ms=0, dispatch=False)
        self._ready = True
        if background_sync:
            self._sync_task = asyncio.create_task(self._sync_loop())
        logger.info(
            "Matrix host ready: %s (%d rooms)",
            self._user_id,
            len(self._rooms),
            extra={"user_id": self._user_id},
        )

    async def stop(self) -> None:
        self._ready = False
        if self._sync_task is not None:
            self._sync_task.cancel()
            try:
                await self._sync_task
            except asyncio.CancelledError:
                pass
            self._sync_task = None
        for task in list(self._pending):
            task.cancel()
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    # ── HostClient ──

    @property
    def user_id(self) -> str | None:
        return self._user_id

    def get_room(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def get_rooms(self) -> list[Room]:
        return list(self._rooms.values())

    async def get_state_event(
        self, room_id: str, event_type: str, state_key: str = ""
    ) -> dict | None:
        path = f"{CLIENT_API}/rooms/{_q(room_id)}/state/{_q(event_type)}/{_q(state_key)}"
        resp = await self._request("GET", path)
        # 403: not joined / history not visible, same as "nothing stored" for us
        if resp.status_code in (403, 404):
            return None
        self._raise_for_status(resp, f"get state {event_type} in {room_id}")
        return resp.json()

    async def send_state_event(
        self, room_id: str, event_type: str, content: dict, state_key: str = ""
    ) -> str | None:
        path = f"{CLIENT_API}/rooms/{_q(room_id)}/state/{_q(event_type)}/{_q(state_key)}"
        resp = await self._request("PUT", path, json=content)
        self._raise_for_status(resp, f"send state {event_type} in {room_id}")
        return resp.json().get("event_id")

    async def get_account_data(self, event_type: str) -> dict | None:
        path = f"{CLIENT_API}/user/{_q(self._require_user())}/account_data/{_q(event_type)}"
        resp = await self._request("GET", path)
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp, f"get account data {event_type}")
        return resp.json()

    async def set_account_data(self, event_type: str, content: dict) -> None:
        path = f"{CLIENT_API}/user/{_q(self._require_user())}/account_data/{_q(event_type)}"
        resp = await self._request("PUT", path, json=content)
        self._raise_for_status(resp, f"set account data {event_type}")

    def on(self, name: str, handler: TimelineHandler) -> None:
        if name != "timeline":
            raise ValueError(f"Unknown host event: {name}")
        self._handlers.setdefault(name, []).append(handler)

    def mxc_to_http(
        self, mxc: str, width: int, height: int, method: str = "crop"
    ) -> str | None:
        if not mxc or not mxc.startswith("mxc://"):
            return None
        server, _, media_id = mxc[len("mxc://"):].partition("/")
        if not server or not media_id:
            return None
        base = self._config.homeserver.rstrip("/")
        return (
            f"{base}{MEDIA_API}/thumbnail/{_q(server)}/{_q(media_id)}"
            f"?width={int(width)}&height={int(height)}&method={method}"
        )

    # ── Sync ──

    async def sync_once(self, timeout_ms: int | None = None, dispatch: bool = True) -> None:
        """Run one /sync round and apply it to the cache."""
        params: dict[str, Any] = {
            "timeout": self._config.sync_timeout_ms if timeout_ms is None else timeout_ms,
        }
        if self._next_batch:
            params["since"] = self._next_batch
        resp = await self._request("GET", f"{CLIENT_API}/sync", params=params)
        self._raise_for_status(resp, "sync")
        self._apply_sync(resp.json(), dispatch=dispatch)

    async def _sync_loop(self) -> None:
        while True:
            try:
                await self.sync_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(
                    "Sync failed, retrying in %.1fs: %s",
                    self._config.sync_retry_delay,
                    e,
                )
                await asyncio.sleep(self._config.sync_retry_delay)

    def _apply_sync(self, data: dict, dispatch: bool) -> None:
        rooms = data.get("rooms") or {}
        for room_id, joined in (rooms.get("join") or {}).items():
            room = self._rooms.get(room_id)
            if room is None:
                room = self._rooms[room_id] = Room(room_id=room_id, name=room_id)
            for raw in (joined.get("state") or {}).get("events", []):
                self._apply_state(room, raw)

            timeline = joined.get("timeline") or {}
            if timeline.get("prev_batch") and room_id not in self._prev_batch:
                self._prev_batch[room_id] = timeline["prev_batch"]
            for raw in timeline.get("events", []):
                if "state_key" in raw:
                    self._apply_state(room, raw)
                if dispatch:
                    self._dispatch(TimelineEvent.from_dict(room_id, raw))

        for room_id in rooms.get("leave") or {}:
            self._rooms.pop(room_id, None)
            self._name_sources.pop(room_id, None)
            self._prev_batch.pop(room_id, None)

        self._next_batch = data.get("next_batch", self._next_batch)

    def _apply_state(self, room: Room, raw: dict) -> None:
        event_type = raw.get("type")
        content = raw.get("content")
        if not isinstance(content, dict):
            content = {}
        state_key = raw.get("state_key", "")

        if event_type == CREATE_EVENT_TYPE and state_key == "":
            room.create_content = content
        elif event_type == "m.room.member" and state_key:
            room.members[state_key] = RoomMember(
                user_id=state_key,
                membership=content.get("membership"),
                display_name=content.get("displayname"),
                avatar_mxc=content.get("avatar_url"),
            )
        elif event_type in ("m.room.name", "m.room.canonical_alias") and state_key == "":
            sources = self._name_sources.setdefault(room.room_id, {})
            if event_type == "m.room.name":
                sources["name"] = content.get("name") or ""
            else:
                sources["alias"] = content.get("alias") or ""
            room.name = sources.get("name") or sources.get("alias") or room.room_id

    # ── Backfill ──

    async def paginate_backwards(self, room_id: str, limit: int = 20) -> int:
        """
        Fetch older history for a room and dispatch it with backwards=True.
        Returns the number of events dispatched.
        """
        params: dict[str, Any] = {"dir": "b", "limit": limit}
        if room_id in self._prev_batch:
            params["from"] = self._prev_batch[room_id]
        resp = await self._request(
            "GET", f"{CLIENT_API}/rooms/{_q(room_id)}/messages", params=params
        )
        self._raise_for_status(resp, f"messages in {room_id}")
        data = resp.json()
        if data.get("end"):
            self._prev_batch[room_id] = data["end"]
        chunk = data.get("chunk", [])
        for raw in chunk:
            self._dispatch(TimelineEvent.from_dict(room_id, raw, backwards=True))
        return len(chunk)

    # ── Internals ──

    def _dispatch(self, event: TimelineEvent) -> None:
        for handler in self._handlers.get("timeline", []):
            try:
                result = handler(event)
            except Exception:
                logger.exception(
                    "Timeline handler failed",
                    extra={"room_id": event.room_id, "event_id": event.event_id},
                )
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

    def _require_user(self) -> str:
        if not self._user_id:
            raise NotReady("Local user id not known yet")
        return self._user_id

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if self._http is None:
            raise NotReady("Matrix host not started")
        try:
            return await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise BackendRejected(f"{method} {path} failed: {e}") from e

    @staticmethod
    def _raise_for_status(resp: httpx.Response, what: str) -> None:
        if resp.is_success:
            return
        errcode = None
        message = resp.text
        try:
            body = resp.json()
            if isinstance(body, dict):
                errcode = body.get("errcode")
                message = body.get("error") or message
        except ValueError:
            pass
        raise BackendRejected(
            f"{what} rejected ({resp.status_code}): {message}",
            status=resp.status_code,
            errcode=errcode,
        )
