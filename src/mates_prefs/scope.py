"""
Scopes and the "current space" heuristic.

A preference lives either in the local user's global account data
(Scope.global_()) or in a space's room state (Scope.room(room_id)).

When a caller gives no explicit room, the store asks a ScopeResolver for
the current space. LabelScopeResolver does what a plugin embedded in a
chat UI can do: read the visible title of the active container and look
for a space with that exact name. It is best-effort: two spaces with the
same name resolve to whichever the client lists first.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from mates_prefs.host.interface import HostClient

logger = logging.getLogger(__name__)


class ScopeKind(str, Enum):
    GLOBAL = "global"
    ROOM = "room"


@dataclass(frozen=True)
class Scope:
    """Persistence domain for a preference blob."""

    kind: ScopeKind
    room_id: str | None = None

    @classmethod
    def global_(cls) -> Scope:
        return cls(kind=ScopeKind.GLOBAL)

    @classmethod
    def room(cls, room_id: str) -> Scope:
        if not room_id:
            raise ValueError("Room scope needs a room id")
        return cls(kind=ScopeKind.ROOM, room_id=room_id)

    @property
    def is_global(self) -> bool:
        return self.kind is ScopeKind.GLOBAL

    def __str__(self) -> str:
        return "global" if self.is_global else f"room:{self.room_id}"


class ScopeResolver(ABC):
    """Answers "which space is current?" for implicit-target operations."""

    @abstractmethod
    def current_room_scope(self, client: HostClient) -> Scope | None:
        ...


class LabelScopeResolver(ScopeResolver):
    """
    Match the ambient container label against the client's spaces.

    label_source returns whatever the UI currently shows as the active
    container's title (None or "" when nothing is shown).
    """

    def __init__(self, label_source: Callable[[], str | None], home_label: str = "home"):
        self._label_source = label_source
        self._home_label = home_label.lower()

    def current_room_scope(self, client: HostClient) -> Scope | None:
        try:
            label = (self._label_source() or "").strip()
            if not label or label.lower() == self._home_label:
                return None
            for room in client.get_rooms():
                if room is not None and (room.name or "").strip() == label and room.is_space:
                    return Scope.room(room.room_id)
        except Exception as e:
            logger.debug("Current space lookup failed: %s", e)
        return None


class FixedScopeResolver(ScopeResolver):
    """Explicit active space, set by the caller instead of guessed from the UI."""

    def __init__(self, room_id: str | None = None):
        self._room_id = room_id

    def set_active(self, room_id: str | None) -> None:
        self._room_id = room_id

    def current_room_scope(self, client: HostClient) -> Scope | None:
        if not self._room_id:
            return None
        room = client.get_room(self._room_id)
        if room is None or not room.is_space:
            return None
        return Scope.room(room.room_id)
