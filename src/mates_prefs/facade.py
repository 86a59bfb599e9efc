"""
Public API — stable entry point for other plugins and the debug console.

PreferencesAPI only delegates to the PreferenceStore. expose() waits for
the client handle and then registers it under a name in the process-wide
ApiRegistry, so consumers can look it up without importing our wiring:

    api = registry.get("matesUserData")
    await api.set_color("@alice:example.org", "#ff0000", "!space:example.org")
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from mates_prefs.client_handle import ClientHandleResolver
from mates_prefs.preferences.store import PreferenceStore
from mates_prefs.scope import Scope

log = logging.getLogger("mates_prefs.facade")

DEFAULT_API_NAME = "matesUserData"


class PreferencesAPI:
    """Room/space preference operations under their public names."""

    def __init__(self, store: PreferenceStore):
        self._store = store

    async def set_in_room(
        self, room_id: str, user_id: str, partial: Mapping[str, Any]
    ) -> None:
        """Merge `partial` into a user's blob in a room. Missing ids: no-op."""
        if not room_id or not user_id:
            return
        await self._store.write(Scope.room(room_id), user_id, partial)

    async def get_from_room(self, room_id: str, user_id: str) -> dict[str, Any]:
        if not room_id or not user_id:
            return {}
        return await self._store.read(Scope.room(room_id), user_id)

    async def set_color(self, user_id: str, color: str, room_id: str | None = None) -> None:
        await self._store.set_color(user_id, color, room_id)

    async def share_to_room(self, room_id: str, user_id: str) -> None:
        """Does nothing: room state already is the shared copy. Kept for old callers."""
        return None

    async def get_shared_from_room(self, room_id: str, user_id: str) -> dict[str, Any]:
        """Same as get_from_room. Kept for old callers."""
        return await self.get_from_room(room_id, user_id)

    # ── Account color (settings panel operations) ──

    async def get_account_color(self) -> str | None:
        return await self._store.read_account_color()

    async def set_account_color(self, color: str) -> None:
        await self._store.write_account_color(color)

    async def publish_color(self, color: str) -> bool:
        return await self._store.publish_color(color)


class ApiRegistry:
    """In-memory store: entry point name → API object."""

    def __init__(self):
        self._apis: dict[str, PreferencesAPI] = {}

    def register(self, name: str, api: PreferencesAPI) -> None:
        self._apis[name] = api
        log.info("User-data API ready: %s", name)

    def unregister(self, name: str) -> None:
        self._apis.pop(name, None)

    def get(self, name: str = DEFAULT_API_NAME) -> PreferencesAPI | None:
        return self._apis.get(name)

    def names(self) -> list[str]:
        return list(self._apis.keys())

    def __repr__(self) -> str:
        return f"<ApiRegistry apis={self.names()}>"


# Process-wide registry
registry = ApiRegistry()


async def expose(
    resolver: ClientHandleResolver,
    api: PreferencesAPI,
    target: ApiRegistry | None = None,
    name: str = DEFAULT_API_NAME,
) -> PreferencesAPI:
    """Register `api` once the client handle is available."""
    await resolver.resolve()
    (target if target is not None else registry).register(name, api)
    return api
