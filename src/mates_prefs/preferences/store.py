"""
PreferenceStore — merge-safe read/write of small preference blobs.

Blobs are keyed by (scope, subject user):
- Scope.room(r): state event `event_type` in room r, state key = subject
- Scope.global_(): the local user's account data `event_type`

Writes read the current blob, shallow-merge the partial over it and send
the result in one request. Keys the caller did not mention survive.

Nothing is cached: every call goes to the host. Two concurrent writes for
the same (scope, subject) can interleave read → merge → send and lose one
update. That is a known limitation of room state / account data (no
conditional writes), not something this store tries to paper over.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from mates_prefs.client_handle import ClientHandleResolver
from mates_prefs.core.errors import MalformedContent, ScopeUnavailable
from mates_prefs.host.interface import HostClient
from mates_prefs.scope import Scope, ScopeResolver

logger = logging.getLogger(__name__)

DEFAULT_EVENT_TYPE = "dev.mates.user_prefs"


def coerce_blob(content: Any) -> dict[str, Any]:
    """Copy stored content into a fresh dict. None means nothing stored."""
    if content is None:
        return {}
    if not isinstance(content, Mapping):
        raise MalformedContent(f"Expected a mapping, got {type(content).__name__}")
    return dict(content)


class PreferenceStore:
    """Reads and writes PreferenceBlobs through the resolved host client."""

    def __init__(
        self,
        resolver: ClientHandleResolver,
        scope_resolver: ScopeResolver,
        event_type: str = DEFAULT_EVENT_TYPE,
    ) -> None:
        self._resolver = resolver
        self._scope_resolver = scope_resolver
        self._event_type = event_type

    @property
    def event_type(self) -> str:
        return self._event_type

    # ── Core operations ──

    async def read(self, scope: Scope, subject_user_id: str | None = None) -> dict[str, Any]:
        """
        Current blob for (scope, subject). Empty dict when nothing is stored,
        the room is unknown or unreadable, or the content is malformed.
        For the global scope the subject is always the local user.

        Raises BackendRejected if the homeserver refuses for another reason.
        """
        client = await self._resolver.resolve()
        return await self._read(client, scope, subject_user_id)

    async def write(
        self,
        scope: Scope | None,
        subject_user_id: str | None,
        partial: Mapping[str, Any],
    ) -> None:
        """
        Merge `partial` onto the stored blob and persist it in one write.

        scope=None targets the current space (ScopeUnavailable if none).
        Raises NotReady / BackendRejected; on any failure nothing is written.
        """
        if not isinstance(partial, Mapping):
            raise TypeError("partial must be a mapping")

        client = await self._resolver.resolve()
        if scope is None:
            scope = self._scope_resolver.current_room_scope(client)
            if scope is None:
                raise ScopeUnavailable("No current space to write to")
        if not scope.is_global and not subject_user_id:
            raise ValueError("Room-scoped preferences need a subject user id")

        current = await self._read(client, scope, subject_user_id)
        merged = {**current, **partial}

        if scope.is_global:
            await client.set_account_data(self._event_type, merged)
        else:
            await client.send_state_event(
                scope.room_id, self._event_type, merged, subject_user_id
            )
        logger.debug(
            "Preferences written (%d keys)",
            len(merged),
            extra={"scope": str(scope), "user_id": subject_user_id},
        )

    # ── Convenience ──

    async def set_color(
        self, subject_user_id: str, color: str, room_id: str | None = None
    ) -> None:
        """Set `color` in a space. No room and no current space: silent no-op."""
        client = await self._resolver.resolve()
        if room_id:
            scope = Scope.room(room_id)
        else:
            scope = self._scope_resolver.current_room_scope(client)
            if scope is None:
                logger.debug("set_color: no current space, nothing to do")
                return
        await self.write(scope, subject_user_id, {"color": color})

    async def read_account_color(self) -> str | None:
        """The local user's global color, or None if unset or unreadable."""
        try:
            blob = await self.read(Scope.global_())
        except Exception as e:
            logger.debug("Account color unavailable: %s", e)
            return None
        color = blob.get("color")
        return color if isinstance(color, str) else None

    async def write_account_color(self, color: str) -> None:
        client = await self._resolver.resolve()
        await self.write(Scope.global_(), client.user_id, {"color": color})

    async def publish_color(self, color: str) -> bool:
        """Write my color into the current space. False when there is none."""
        client = await self._resolver.resolve()
        me = client.user_id
        scope = self._scope_resolver.current_room_scope(client)
        if not me or scope is None:
            return False
        await self.write(scope, me, {"color": color})
        return True

    # ── Internals ──

    async def _read(
        self, client: HostClient, scope: Scope, subject_user_id: str | None
    ) -> dict[str, Any]:
        if scope.is_global:
            content = await client.get_account_data(self._event_type)
        else:
            if not subject_user_id or client.get_room(scope.room_id) is None:
                return {}
            content = await client.get_state_event(
                scope.room_id, self._event_type, subject_user_id
            )
        try:
            return coerce_blob(content)
        except MalformedContent as e:
            logger.warning(
                "Ignoring malformed preferences: %s",
                e,
                extra={"scope": str(scope), "user_id": subject_user_id},
            )
            return {}
