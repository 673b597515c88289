"""Key material helpers shared by the in-process collaborators."""

from __future__ import annotations

import hashlib
import secrets

KEY_SIZE = 32


def random_key() -> bytes:
    return secrets.token_bytes(KEY_SIZE)


def derive_key(seed: bytes, name: str) -> bytes:
    """Derive a stable key for ``name`` under ``seed``."""
    return hashlib.blake2b(name.encode("utf-8"), digest_size=KEY_SIZE, key=seed).digest()


def discovery_key(key: bytes) -> bytes:
    """Public topic for a key. Reveals nothing about the key itself."""
    return hashlib.blake2b(key, digest_size=KEY_SIZE, person=b"breakout-disc").digest()
