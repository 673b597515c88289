"""Room lifecycle and descriptor models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class RoomState(Enum):
    """Lifecycle of a breakout room."""

    CREATED = "created"
    READYING = "readying"
    HOSTING = "hosting"  # minting invite, registering member
    JOINING = "joining"  # redeeming invite as candidate
    ACTIVE = "active"
    EXITING = "exiting"
    CLOSED = "closed"


class RegistryState(Enum):
    """Lifecycle of a room manager."""

    ACTIVE = "active"
    DRAINING = "draining"  # cleanup in progress, lastRoomClosed suppressed
    CLOSED = "closed"


# Event names emitted by rooms and the manager
MESSAGE = "message"
PEER_ENTERED = "peerEntered"
PEER_LEFT = "peerLeft"
ROOM_CLOSED = "roomClosed"
LAST_ROOM_CLOSED = "lastRoomClosed"


@dataclass
class HostInfo:
    """Host identity recorded into room metadata."""
    public_key: str
    discovery_key: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"publicKey": self.public_key}
        if self.discovery_key is not None:
            data["discoveryKey"] = self.discovery_key
        return data


@dataclass
class RoomInfo:
    """Public descriptor of a room."""
    room_id: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def host(self) -> Optional[Dict[str, str]]:
        return self.metadata.get("host")

    def to_dict(self) -> dict:
        return {"roomId": self.room_id, "metadata": self.metadata}
