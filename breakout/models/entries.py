"""Log entry shapes.

Entries are JSON-compatible dicts so every replica serializes them the same
way. Keys are carried as z-base-32 strings.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from breakout.utils.codec import as_key_string
from breakout.utils.ids import now_ms

ADD_WRITER = "addWriter"
LEFT_CHAT = "leftChat"


class EntryKind(Enum):
    """Kinds of entries found in a room log."""

    MESSAGE = "message"
    LEAVE = "leave"
    WRITER_GRANT = "writer_grant"


def message_entry(who: bytes | str, data: Any, when: int | None = None) -> dict:
    """Build a chat message entry."""
    return {"when": now_ms() if when is None else when, "who": as_key_string(who), "data": data}


def leave_entry(who: bytes | str, when: int | None = None) -> dict:
    """Build a leave tombstone."""
    return {"when": now_ms() if when is None else when, "who": as_key_string(who), "event": LEFT_CHAT}


def writer_grant(key: bytes | str) -> dict:
    """Build a control entry that authorizes ``key`` as a writer."""
    return {ADD_WRITER: as_key_string(key)}


def entry_kind(entry: Mapping[str, Any]) -> EntryKind:
    """Classify an entry. Anything that is not a grant or leave is a message."""
    if entry.get(ADD_WRITER):
        return EntryKind.WRITER_GRANT
    if entry.get("event") == LEFT_CHAT:
        return EntryKind.LEAVE
    return EntryKind.MESSAGE


def is_leave(entry: Mapping[str, Any]) -> bool:
    return entry_kind(entry) is EntryKind.LEAVE
