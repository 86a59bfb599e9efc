"""Shared fixtures: an in-memory HostClient and the core wired around it."""

from __future__ import annotations

import copy

import pytest
import pytest_asyncio

from mates_prefs.client_handle import ClientHandleResolver
from mates_prefs.core.errors import BackendRejected
from mates_prefs.host.interface import HostClient
from mates_prefs.host.models import Room, RoomMember, TimelineEvent
from mates_prefs.kernel.event_bus import EventBus
from mates_prefs.preferences.store import PreferenceStore
from mates_prefs.scope import FixedScopeResolver

ME = "@me:x"


class FakeHost(HostClient):
    """HostClient backed by dicts. Writes can be made to fail via `reject`."""

    def __init__(self, user_id: str | None = ME):
        self._user_id = user_id
        self.rooms: dict[str, Room] = {}
        self.state: dict[tuple[str, str, str], object] = {}
        self.account_data: dict[str, object] = {}
        self.handlers: list = []
        self.reject: BackendRejected | None = None
        self.writes: list[tuple] = []

    # ── Test helpers ──

    def add_room(
        self,
        room_id: str,
        name: str = "",
        space: bool = False,
        members: list[RoomMember] | None = None,
    ) -> Room:
        room = Room(
            room_id=room_id,
            name=name,
            create_content={"type": "m.space"} if space else {},
            members={m.user_id: m for m in members or []},
        )
        self.rooms[room_id] = room
        return room

    def emit(self, event: TimelineEvent) -> None:
        for handler in self.handlers:
            handler(event)

    # ── HostClient ──

    @property
    def user_id(self) -> str | None:
        return self._user_id

    def get_room(self, room_id: str) -> Room | None:
        return self.rooms.get(room_id)

    def get_rooms(self) -> list[Room]:
        return list(self.rooms.values())

    async def get_state_event(self, room_id, event_type, state_key=""):
        if room_id not in self.rooms:
            return None
        return copy.deepcopy(self.state.get((room_id, event_type, state_key)))

    async def send_state_event(self, room_id, event_type, content, state_key=""):
        if self.reject is not None:
            raise self.reject
        self.state[(room_id, event_type, state_key)] = copy.deepcopy(content)
        self.writes.append(("state", room_id, event_type, state_key, content))
        return f"$evt{len(self.writes)}"

    async def get_account_data(self, event_type):
        return copy.deepcopy(self.account_data.get(event_type))

    async def set_account_data(self, event_type, content):
        if self.reject is not None:
            raise self.reject
        self.account_data[event_type] = copy.deepcopy(content)
        self.writes.append(("account", event_type, content))

    def on(self, name, handler):
        assert name == "timeline"
        self.handlers.append(handler)

    def mxc_to_http(self, mxc, width, height, method="crop"):
        if not mxc.startswith("mxc://"):
            return None
        return f"https://hs.example/thumb/{mxc[6:]}?w={width}&h={height}&m={method}"


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def scope_resolver() -> FixedScopeResolver:
    return FixedScopeResolver()


@pytest_asyncio.fixture
async def resolver(host):
    r = ClientHandleResolver()
    r.set(host)
    yield r
    r.close()


@pytest_asyncio.fixture
async def store(resolver, scope_resolver) -> PreferenceStore:
    return PreferenceStore(resolver, scope_resolver)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()
