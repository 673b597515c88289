"""Utility functions for breakout."""

from breakout.utils.codec import as_key_bytes, as_key_string, z32_decode, z32_encode
from breakout.utils.ids import generate_room_id, now_ms

__all__ = [
    "z32_encode",
    "z32_decode",
    "as_key_string",
    "as_key_bytes",
    "generate_room_id",
    "now_ms",
]
