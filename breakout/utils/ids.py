"""Helpers for generating room identifiers."""

from __future__ import annotations

import secrets
import time

ROOM_PREFIX = "room-"
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


def to_base36(value: int) -> str:
    """Render a non-negative integer in base 36."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_room_id(now_ms: int | None = None) -> str:
    """Generate a unique, time-ordered room identifier.

    Format: ``room-<base36 millisecond timestamp>-<5 random base36 chars>``.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"{ROOM_PREFIX}{to_base36(now_ms)}-{suffix}"


