"""Discovery, transport and pairing collaborators."""

from breakout.net.base import CandidateRequest, Invite, Pairing, PairingResult, Swarm
from breakout.net.memory import MemoryConnection, MemoryNetwork, MemorySwarm, get_default_network
from breakout.net.pairing import MemoryPairing, invite_keys

__all__ = [
    "Swarm",
    "Pairing",
    "Invite",
    "PairingResult",
    "CandidateRequest",
    "MemoryNetwork",
    "MemorySwarm",
    "MemoryConnection",
    "get_default_network",
    "MemoryPairing",
    "invite_keys",
]
