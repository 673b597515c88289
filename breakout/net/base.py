"""Interfaces of the discovery/transport and pairing collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

from breakout.errors import PairingError


@dataclass(frozen=True)
class Invite:
    """Output of minting an invite for a host writer key."""

    invite: bytes
    public_key: bytes
    discovery_key: bytes


@dataclass(frozen=True)
class PairingResult:
    """What a candidate receives once the host confirms it."""

    key: bytes
    discovery_key: Optional[bytes] = None


@dataclass
class CandidateRequest:
    """A candidate's join request as seen by the hosting member."""

    user_data: bytes
    invite_public_key: bytes
    result: Optional[PairingResult] = field(default=None)
    opened: bool = field(default=False)

    def open(self, public_key: bytes) -> bytes:
        """Check the request against the invite the member issued."""
        if bytes(public_key) != self.invite_public_key:
            raise PairingError("Candidate request does not match this invite")
        self.opened = True
        return self.user_data

    def confirm(self, key: bytes, discovery_key: Optional[bytes] = None) -> None:
        if not self.opened:
            raise PairingError("Cannot confirm a request that was not opened")
        self.result = PairingResult(key=bytes(key), discovery_key=discovery_key)

    @property
    def confirmed(self) -> bool:
        return self.result is not None


MaybeAwaitable = Union[None, Awaitable[None]]
ConnectionCallback = Callable[[Any], Any]
MemberCallback = Callable[[CandidateRequest], MaybeAwaitable]
CandidateCallback = Callable[[PairingResult], MaybeAwaitable]


@runtime_checkable
class Swarm(Protocol):
    """Topic-based peer discovery that surfaces transport connections."""

    def join(self, topic: bytes) -> None: ...

    def leave(self, topic: bytes) -> None: ...

    def on_connection(self, callback: ConnectionCallback) -> Callable[[], None]: ...

    async def destroy(self) -> None: ...


@runtime_checkable
class Pairing(Protocol):
    """Invite-based pairing between a hosting member and candidates."""

    def create_invite(self, key: bytes) -> Invite: ...

    def add_member(self, discovery_key: bytes, on_add: MemberCallback) -> Any: ...

    def add_candidate(self, invite: bytes, user_data: bytes, on_add: CandidateCallback) -> Any: ...

    async def close(self) -> None: ...
