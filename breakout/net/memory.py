"""In-process discovery and transport.

Swarms announce topics on a shared ``MemoryNetwork``. Two swarms that share
a topic get one ``MemoryConnection`` pair; stores replicated over both ends
are linked so each can read the other's cores.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Dict, List, Optional, Set

from loguru import logger

from breakout.net.base import ConnectionCallback
from breakout.utils.codec import z32_encode


class MemoryConnection:
    """One end of a connection between two swarms."""

    def __init__(self, local: "MemorySwarm", remote_swarm: "MemorySwarm"):
        self.local = local
        self.remote_swarm = remote_swarm
        self.remote: Optional[MemoryConnection] = None
        self._stores: List[Any] = []
        self.closed = False

    @classmethod
    def pair(cls, a: "MemorySwarm", b: "MemorySwarm") -> tuple["MemoryConnection", "MemoryConnection"]:
        a_end = cls(a, b)
        b_end = cls(b, a)
        a_end.remote = b_end
        b_end.remote = a_end
        return a_end, b_end

    def attach(self, store: Any) -> None:
        """Replicate ``store`` over this connection."""
        if self.closed or store in self._stores:
            return
        self._stores.append(store)
        if self.remote is None:
            return
        for remote_store in self.remote._stores:
            store.link(remote_store)

    def close(self) -> None:
        self.closed = True
        if self.remote is not None:
            self.remote.closed = True


class MemoryNetwork:
    """Topic rendezvous shared by every swarm in the process."""

    def __init__(self):
        self._topics: Dict[bytes, Set[MemorySwarm]] = {}
        self.members: Dict[bytes, Any] = {}

    def announce(self, swarm: "MemorySwarm", topic: bytes) -> None:
        peers = self._topics.setdefault(topic, set())
        for other in list(peers):
            if other is not swarm and not other.destroyed:
                swarm._connect(other)
        peers.add(swarm)

    def unannounce(self, swarm: "MemorySwarm", topic: bytes) -> None:
        peers = self._topics.get(topic)
        if peers is None:
            return
        peers.discard(swarm)
        if not peers:
            del self._topics[topic]

    def peers_on(self, topic: bytes) -> Set["MemorySwarm"]:
        return set(self._topics.get(topic, set()))


_default_network: MemoryNetwork | None = None


def get_default_network() -> MemoryNetwork:
    """Get the process-wide network used when none is given."""
    global _default_network
    if _default_network is None:
        _default_network = MemoryNetwork()
    return _default_network


class MemorySwarm:
    """Swarm that discovers peers on a ``MemoryNetwork``."""

    def __init__(self, network: Optional[MemoryNetwork] = None):
        self.network = network or get_default_network()
        self.topics: Set[bytes] = set()
        self._connections: Dict[int, MemoryConnection] = {}
        self._listeners: List[ConnectionCallback] = []
        self._tasks: Set[asyncio.Task] = set()
        self.destroyed = False

    def join(self, topic: bytes) -> None:
        if self.destroyed:
            raise RuntimeError("Swarm is destroyed")
        if topic in self.topics:
            return
        self.topics.add(topic)
        logger.debug(f"Joining topic {z32_encode(topic)[:8]}")
        self.network.announce(self, topic)

    def leave(self, topic: bytes) -> None:
        if topic not in self.topics:
            return
        self.topics.discard(topic)
        logger.debug(f"Leaving topic {z32_encode(topic)[:8]}")
        self.network.unannounce(self, topic)

    def on_connection(self, callback: ConnectionCallback) -> Callable[[], None]:
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    @property
    def connections(self) -> List[MemoryConnection]:
        return [c for c in self._connections.values() if not c.closed]

    def _connect(self, other: "MemorySwarm") -> None:
        existing = self._connections.get(id(other))
        if existing is not None and not existing.closed:
            return
        mine, theirs = MemoryConnection.pair(self, other)
        self._connections[id(other)] = mine
        other._connections[id(self)] = theirs
        self._emit_connection(mine)
        other._emit_connection(theirs)

    def _emit_connection(self, connection: MemoryConnection) -> None:
        for callback in list(self._listeners):
            try:
                result = callback(connection)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)
            except Exception as e:
                logger.opt(exception=e).error(f"Connection handler failed: {e}")

    async def destroy(self) -> None:
        if self.destroyed:
            return
        self.destroyed = True
        for topic in list(self.topics):
            self.leave(topic)
        for connection in self._connections.values():
            connection.close()
        self._connections.clear()
        self._listeners.clear()
        logger.debug("Swarm destroyed")
