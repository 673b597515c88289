"""In-process invite pairing.

An invite is a random 32-byte seed. The pairing public key and discovery key
are derived from it, so holding the invite is enough to find the hosting
member. Members are registered on the swarm's network by discovery key.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, List, Optional

from loguru import logger

from breakout.errors import PairingError
from breakout.net.base import (
    CandidateCallback,
    CandidateRequest,
    Invite,
    MemberCallback,
    PairingResult,
)
from breakout.net.memory import MemorySwarm
from breakout.utils.codec import z32_encode
from breakout.utils.keys import KEY_SIZE, derive_key, discovery_key, random_key


def invite_keys(invite: bytes) -> tuple[bytes, bytes]:
    """Derive ``(public_key, discovery_key)`` from an invite."""
    if len(invite) != KEY_SIZE:
        raise PairingError(f"Invite must be {KEY_SIZE} bytes, got {len(invite)}")
    public_key = derive_key(bytes(invite), "pairing")
    return public_key, discovery_key(public_key)


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class PairingMember:
    """A host accepting candidates for one invite."""

    def __init__(self, pairing: "MemoryPairing", discovery_key: bytes, on_add: MemberCallback):
        self.pairing = pairing
        self.discovery_key = discovery_key
        self.on_add = on_add
        self.accepted = 0
        self.closed = False

    async def flushed(self) -> bool:
        """Resolves once the member is announced on the network."""
        return self.discovery_key in self.pairing.swarm.topics

    async def handle(self, request: CandidateRequest) -> None:
        if self.closed:
            raise PairingError("Pairing member is closed")
        await _maybe_await(self.on_add(request))
        if request.confirmed:
            self.accepted += 1

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        network = self.pairing.swarm.network
        if network.members.get(self.discovery_key) is self:
            del network.members[self.discovery_key]
        self.pairing.swarm.leave(self.discovery_key)


class PairingCandidate:
    """A joiner redeeming an invite. ``pairing`` completes with the result."""

    def __init__(self, pairing: "MemoryPairing", invite: bytes, user_data: bytes, on_add: CandidateCallback):
        self.pairing_session = pairing
        self.invite = bytes(invite)
        self.user_data = bytes(user_data)
        self.on_add = on_add
        self.result: Optional[PairingResult] = None
        self.pairing: asyncio.Task = asyncio.ensure_future(self._run())

    async def _run(self) -> PairingResult:
        public_key, topic = invite_keys(self.invite)
        swarm = self.pairing_session.swarm
        member = swarm.network.members.get(topic)
        if member is None or member.closed:
            raise PairingError("No host is accepting this invite")

        joined_here = topic not in swarm.topics
        swarm.join(topic)
        try:
            request = CandidateRequest(user_data=self.user_data, invite_public_key=public_key)
            await member.handle(request)
            if request.result is None:
                raise PairingError("Host did not confirm the candidate")
            self.result = request.result
            logger.debug(f"Paired with host {z32_encode(request.result.key)[:8]}")
            await _maybe_await(self.on_add(request.result))
            return request.result
        finally:
            if joined_here:
                swarm.leave(topic)


class MemoryPairing:
    """Pairing session bound to a swarm."""

    def __init__(self, swarm: MemorySwarm):
        self.swarm = swarm
        self._members: List[PairingMember] = []
        self._candidates: List[PairingCandidate] = []
        self.closed = False

    @staticmethod
    def create_invite(key: bytes) -> Invite:
        """Mint an invite for the writer ``key``."""
        if not key:
            raise PairingError("Cannot create an invite without a key")
        invite = random_key()
        public_key, topic = invite_keys(invite)
        return Invite(invite=invite, public_key=public_key, discovery_key=topic)

    def add_member(self, discovery_key: bytes, on_add: MemberCallback) -> PairingMember:
        if self.closed:
            raise PairingError("Pairing session is closed")
        member = PairingMember(self, discovery_key, on_add)
        self.swarm.network.members[discovery_key] = member
        self.swarm.join(discovery_key)
        self._members.append(member)
        return member

    def add_candidate(self, invite: bytes, user_data: bytes, on_add: CandidateCallback) -> PairingCandidate:
        if self.closed:
            raise PairingError("Pairing session is closed")
        candidate = PairingCandidate(self, invite, user_data, on_add)
        self._candidates.append(candidate)
        return candidate

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for member in self._members:
            member.close()
        for candidate in self._candidates:
            if not candidate.pairing.done():
                candidate.pairing.cancel()
        logger.debug("Pairing session closed")
