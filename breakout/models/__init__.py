"""Data models for breakout rooms."""

from .entries import (
    ADD_WRITER,
    LEFT_CHAT,
    EntryKind,
    entry_kind,
    is_leave,
    leave_entry,
    message_entry,
    writer_grant,
)
from .room import (
    LAST_ROOM_CLOSED,
    MESSAGE,
    PEER_ENTERED,
    PEER_LEFT,
    ROOM_CLOSED,
    HostInfo,
    RegistryState,
    RoomInfo,
    RoomState,
)

__all__ = [
    "ADD_WRITER",
    "LEFT_CHAT",
    "EntryKind",
    "entry_kind",
    "is_leave",
    "leave_entry",
    "message_entry",
    "writer_grant",
    "HostInfo",
    "RegistryState",
    "MESSAGE",
    "PEER_ENTERED",
    "PEER_LEFT",
    "ROOM_CLOSED",
    "LAST_ROOM_CLOSED",
    "RoomInfo",
    "RoomState",
]
