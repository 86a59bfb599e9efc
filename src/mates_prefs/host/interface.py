"""
Host Interface — what the preference layer needs from a chat client.

The core never owns the client. It holds one read reference (obtained
through ClientHandleResolver) and goes through these methods for every
read, write and subscription.

Implementations:
- MatrixHost: Matrix Client-Server API over httpx
- tests: FakeHost, an in-memory double
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable

from mates_prefs.host.models import Room, TimelineEvent

TimelineHandler = Callable[[TimelineEvent], Any]


class HostClient(ABC):
    """Abstract chat client. Read methods return None for absence."""

    @property
    @abstractmethod
    def user_id(self) -> str | None:
        """The local authenticated user, once known."""
        ...

    @abstractmethod
    def get_room(self, room_id: str) -> Room | None:
        ...

    @abstractmethod
    def get_rooms(self) -> list[Room]:
        ...

    @abstractmethod
    async def get_state_event(
        self, room_id: str, event_type: str, state_key: str = ""
    ) -> dict | None:
        """
        Current content of a room state event.

        Returns None if the event does not exist or the room is not
        readable. Raises BackendRejected for any other refusal.
        """
        ...

    @abstractmethod
    async def send_state_event(
        self, room_id: str, event_type: str, content: dict, state_key: str = ""
    ) -> str | None:
        """Replace a state event. Returns the new event id."""
        ...

    @abstractmethod
    async def get_account_data(self, event_type: str) -> dict | None:
        """Content of the local user's global account data, or None."""
        ...

    @abstractmethod
    async def set_account_data(self, event_type: str, content: dict) -> None:
        ...

    @abstractmethod
    def on(self, name: str, handler: TimelineHandler) -> None:
        """
        Register a callback. Only "timeline" is defined: the handler is
        called with each TimelineEvent, live or backfilled.
        """
        ...

    @abstractmethod
    def mxc_to_http(
        self, mxc: str, width: int, height: int, method: str = "crop"
    ) -> str | None:
        """Displayable thumbnail URL for a content-addressed mxc:// reference."""
        ...
