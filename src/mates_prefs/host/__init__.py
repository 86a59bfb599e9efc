"""
Host Package — the chat client the preference layer runs against.
"""

from mates_prefs.host.interface import HostClient, TimelineHandler
from mates_prefs.host.models import Room, RoomMember, TimelineEvent

__all__ = [
    "HostClient",
    "TimelineHandler",
    "Room",
    "RoomMember",
    "TimelineEvent",
]
