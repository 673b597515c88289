"""Room manager multiplexing many rooms over shared resources.

All rooms created here share one store (namespaced per room), one swarm and
one pairing session. Resources passed in by the caller are borrowed and left
open on cleanup; anything the manager built itself is closed.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from breakout.config.schema import Config
from breakout.errors import ResourceOwnershipError, TeardownError
from breakout.events import Callback, EventChannel, Subscription
from breakout.log.store import LocalStore
from breakout.models.room import LAST_ROOM_CLOSED, ROOM_CLOSED, RegistryState
from breakout.net.memory import MemoryNetwork, MemorySwarm
from breakout.net.pairing import MemoryPairing
from breakout.resources import own_or_borrow, release_owned
from breakout.room import BreakoutRoom
from breakout.signals import SignalDrain
from breakout.utils.ids import generate_room_id


class RoomManager:
    """Creates rooms, tracks them and shuts them down as a group.

    Emits ``lastRoomClosed`` once the last open room closes on its own. The
    event is suppressed while ``cleanup()`` drains the manager.
    """

    def __init__(
        self,
        store: Optional[LocalStore] = None,
        swarm: Optional[MemorySwarm] = None,
        pairing: Optional[MemoryPairing] = None,
        storage_dir: Optional[Path | str] = None,
        network: Optional[MemoryNetwork] = None,
        default_metadata: Optional[Dict[str, Any]] = None,
    ):
        self._store = own_or_borrow(store, lambda: LocalStore(storage_dir), "store")
        self._swarm = own_or_borrow(swarm, lambda: MemorySwarm(network), "swarm")
        self._pairing = own_or_borrow(pairing, lambda: MemoryPairing(self._swarm.value), "pairing")

        self.default_metadata: Dict[str, Any] = dict(default_metadata or {})
        self.rooms: Dict[str, BreakoutRoom] = {}
        self.events = EventChannel(name="manager")
        self.state = RegistryState.ACTIVE
        self._last_room_announced = False
        self._cleanup_task: Optional[asyncio.Task] = None
        self._signals: Optional[SignalDrain] = None

    @classmethod
    def from_config(cls, config: Config, **kwargs: Any) -> "RoomManager":
        """Build a manager from loaded configuration."""
        kwargs.setdefault("default_metadata", config.rooms.default_metadata)
        return cls(storage_dir=config.storage_dir, **kwargs)

    @property
    def store(self) -> LocalStore:
        return self._store.value

    @property
    def swarm(self) -> MemorySwarm:
        return self._swarm.value

    @property
    def pairing(self) -> MemoryPairing:
        return self._pairing.value

    @property
    def internally_managed(self) -> Dict[str, bool]:
        return {
            "store": self._store.owned,
            "swarm": self._swarm.owned,
            "pairing": self._pairing.owned,
        }

    @property
    def is_closing_down(self) -> bool:
        return self.state is not RegistryState.ACTIVE

    def subscribe(self, event: str, callback: Callback) -> Subscription:
        """Subscribe to ``lastRoomClosed``."""
        return self.events.subscribe(event, callback)

    def get_room_options(self, room_id: Optional[str] = None) -> Dict[str, Any]:
        """Collaborators for a room: a store namespace plus the shared swarm and pairing."""
        store = self.store.namespace(room_id) if room_id else self.store
        return {"store": store, "swarm": self.swarm, "pairing": self.pairing}

    def create_room(
        self,
        invite: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> BreakoutRoom:
        """Create and register a room. Call ``ready()`` on it to host or join.

        Args:
            invite: z32 invite to join an existing room; host a new one if omitted
            metadata: Initial room metadata, layered over ``default_metadata``
        """
        if self.state is not RegistryState.ACTIVE:
            raise ResourceOwnershipError(f"Cannot create rooms while manager is {self.state.value}")

        room_id = generate_room_id()
        while room_id in self.rooms:
            room_id = generate_room_id()

        room = BreakoutRoom(
            room_id=room_id,
            invite=invite,
            metadata={**self.default_metadata, **(metadata or {})},
            **self.get_room_options(room_id),
        )
        self.rooms[room_id] = room
        self._last_room_announced = False
        room.subscribe(ROOM_CLOSED, lambda: self._on_room_closed(room_id))
        logger.info(f"Created room {room_id} ({'joining' if invite else 'hosting'})")
        return room

    def get_room(self, room_id: str) -> Optional[BreakoutRoom]:
        return self.rooms.get(room_id)

    def _on_room_closed(self, room_id: str) -> None:
        self.rooms.pop(room_id, None)
        if self.state is not RegistryState.ACTIVE:
            return
        if self.rooms or self._last_room_announced:
            return
        self._last_room_announced = True
        logger.info("Last room closed")
        self.events.emit_soon(LAST_ROOM_CLOSED)

    async def cleanup(self) -> None:
        """Exit every room, then release owned resources.

        Idempotent: later calls wait for the first drain.
        """
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.ensure_future(self._drain())
        await self._cleanup_task

    async def _drain(self) -> None:
        self.state = RegistryState.DRAINING
        rooms = list(self.rooms.values())
        logger.info(f"Draining {len(rooms)} room(s)")

        results = await asyncio.gather(*(room.exit() for room in rooms), return_exceptions=True)
        errors: List[BaseException] = [r for r in results if isinstance(r, BaseException)]
        for room, result in zip(rooms, results):
            if isinstance(result, BaseException):
                logger.warning(f"Room {room.room_id} did not exit cleanly: {result}")
        self.rooms.clear()

        await release_owned(
            [(self._pairing, "close"), (self._swarm, "destroy"), (self._store, "close")],
            errors,
        )
        self.state = RegistryState.CLOSED
        self.events.close()
        if self._signals is not None and not self._signals.triggered:
            self._signals.uninstall()
        logger.info("Room manager closed")

        if errors:
            raise TeardownError("Room manager cleanup incomplete", errors)

    def install_signal_handlers(self, exit_fn: Optional[Callable[[int], object]] = None) -> SignalDrain:
        """Drain once on SIGINT/SIGTERM, then end the process."""
        if self._signals is None:
            kwargs = {"exit_fn": exit_fn} if exit_fn is not None else {}
            self._signals = SignalDrain(self.cleanup, name="manager", **kwargs)
            self._signals.install()
        return self._signals
