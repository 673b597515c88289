"""breakout - ephemeral peer-to-peer rooms over a multi-writer log."""

__version__ = "0.1.0"
__logo__ = "⛺"

from breakout.errors import (
    BreakoutError,
    LogAppendError,
    PairingError,
    ResourceOwnershipError,
    StorageError,
    TeardownError,
    WriterAuthorizationError,
)
from breakout.manager import RoomManager
from breakout.room import BreakoutRoom

__all__ = [
    "BreakoutRoom",
    "RoomManager",
    "BreakoutError",
    "PairingError",
    "WriterAuthorizationError",
    "StorageError",
    "LogAppendError",
    "ResourceOwnershipError",
    "TeardownError",
]
