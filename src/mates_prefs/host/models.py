"""
Host data model — what the core sees of rooms, members and timeline events.

These mirror the subset of Matrix room state the preference layer needs.
The host keeps them current from /sync; the core only reads them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

MESSAGE_EVENT_TYPE = "m.room.message"
CREATE_EVENT_TYPE = "m.room.create"
SPACE_ROOM_TYPE = "m.space"


@dataclass
class RoomMember:
    """One entry of a room's member directory (from m.room.member state)."""

    user_id: str
    membership: str | None = None  # "join", "invite", "leave", "ban"
    display_name: str | None = None
    avatar_mxc: str | None = None

    @property
    def name(self) -> str:
        return self.display_name or self.user_id


@dataclass
class Room:
    """Locally known room. `create_content` is the m.room.create content."""

    room_id: str
    name: str = ""
    create_content: dict[str, Any] = field(default_factory=dict)
    members: dict[str, RoomMember] = field(default_factory=dict)

    @property
    def is_space(self) -> bool:
        content = self.create_content
        return isinstance(content, dict) and content.get("type") == SPACE_ROOM_TYPE

    def get_member(self, user_id: str) -> RoomMember | None:
        return self.members.get(user_id)


@dataclass(frozen=True)
class TimelineEvent:
    """A timeline event as delivered by the host.

    `backwards` is True for events arriving through backward pagination
    (history backfill) rather than a live append.
    """

    room_id: str
    type: str
    event_id: str | None = None
    sender: str | None = None
    content: dict[str, Any] = field(default_factory=dict)
    origin_server_ts: int | None = None
    backwards: bool = False

    @classmethod
    def from_dict(cls, room_id: str, data: dict, backwards: bool = False) -> TimelineEvent:
        content = data.get("content")
        return cls(
            room_id=room_id,
            type=data.get("type", ""),
            event_id=data.get("event_id"),
            sender=data.get("sender"),
            content=content if isinstance(content, dict) else {},
            origin_server_ts=data.get("origin_server_ts"),
            backwards=backwards,
        )
