"""
TimelineEnrichment — one observed message plus what we know about its sender.

Built per event by the TimelineObserver, published on the bus, then dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TimelineEnrichment:
    """Sender metadata and resolved preferences for a live message."""

    # Identity
    room_id: str
    event_id: str | None
    sender: str

    room_name: str | None = None

    # Member directory (None when it could not be resolved)
    display_name: str | None = None
    membership: str | None = None
    avatar_url: str | None = None

    # Message
    msgtype: str | None = None
    body: str | None = None

    # Preferences
    room_prefs: dict[str, Any] = field(default_factory=dict)  # Scope.room(room_id) for sender
    account_color: str | None = None  # only set when sender is the local user

    def to_dict(self) -> dict:
        return {
            "room": {"id": self.room_id, "name": self.room_name},
            "event_id": self.event_id,
            "sender": self.sender,
            "display_name": self.display_name,
            "membership": self.membership,
            "avatar_url": self.avatar_url,
            "msgtype": self.msgtype,
            "body": self.body,
            "room_prefs": dict(self.room_prefs),
            "account_color": self.account_color,
        }
