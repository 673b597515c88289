"""z-base-32 encoding for keys and invites.

z-base-32 uses the same 5-bit grouping as RFC 4648 base32 with an alphabet
chosen to be easy to read aloud and type, and no padding.
"""

from __future__ import annotations

import base64
import binascii

RFC4648_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
Z32_ALPHABET = "ybndrfg8ejkmcpqxot1uwisza345h769"

_ENCODE = str.maketrans(RFC4648_ALPHABET, Z32_ALPHABET)
_DECODE = str.maketrans(Z32_ALPHABET, RFC4648_ALPHABET)


def z32_encode(data: bytes) -> str:
    """Encode bytes as an unpadded z-base-32 string."""
    return base64.b32encode(bytes(data)).decode("ascii").rstrip("=").translate(_ENCODE)


def z32_decode(text: str) -> bytes:
    """Decode a z-base-32 string.

    Raises:
        ValueError: If the text contains characters outside the alphabet.
    """
    text = text.strip()
    if any(ch not in Z32_ALPHABET for ch in text):
        raise ValueError("not a z-base-32 string")
    padded = text.translate(_DECODE)
    padded += "=" * (-len(padded) % 8)
    try:
        return base64.b32decode(padded)
    except binascii.Error as e:
        raise ValueError(f"not a z-base-32 string: {e}") from e


def as_key_string(key: bytes | str) -> str:
    """Return the z32 form of a key given as raw bytes or already encoded."""
    if isinstance(key, str):
        return key
    return z32_encode(key)


def as_key_bytes(key: bytes | str) -> bytes:
    """Return raw key bytes from raw bytes or a z32 string."""
    if isinstance(key, str):
        return z32_decode(key)
    return bytes(key)
