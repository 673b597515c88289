"""A single breakout room.

The room drives the replicated log, the swarm and the pairing session:

- the host mints an invite and authorizes every candidate that redeems it
- a joiner redeems an invite and authorizes the host once confirmed
- view appends from other writers become ``message``/``peerLeft`` events
- ``exit()`` writes a leave tombstone and releases owned resources
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set

from loguru import logger

from breakout.errors import (
    BreakoutError,
    LogAppendError,
    PairingError,
    ResourceOwnershipError,
    StorageError,
    TeardownError,
    WriterAuthorizationError,
)
from breakout.events import Callback, EventChannel, Subscription
from breakout.log.multiwriter import MultiWriterLog
from breakout.log.reducer import apply, open_view
from breakout.log.store import LocalStore
from breakout.models.entries import is_leave, leave_entry, message_entry, writer_grant
from breakout.models.room import (
    MESSAGE,
    PEER_ENTERED,
    PEER_LEFT,
    ROOM_CLOSED,
    HostInfo,
    RoomInfo,
    RoomState,
)
from breakout.net.base import CandidateRequest, PairingResult
from breakout.net.memory import MemoryNetwork, MemorySwarm
from breakout.net.pairing import MemoryPairing
from breakout.resources import own_or_borrow, release_owned
from breakout.signals import SignalDrain
from breakout.utils.codec import as_key_string, z32_decode, z32_encode
from breakout.utils.ids import generate_room_id
from breakout.utils.keys import KEY_SIZE

OPEN_STATES = (RoomState.HOSTING, RoomState.JOINING, RoomState.ACTIVE)


def decode_invite(invite: str | bytes) -> bytes:
    """Decode a z32 invite (raw bytes pass through)."""
    if isinstance(invite, (bytes, bytearray)):
        raw = bytes(invite)
    else:
        try:
            raw = z32_decode(invite)
        except ValueError as e:
            raise PairingError(f"Invalid invite: {e}") from e
    if len(raw) != KEY_SIZE:
        raise PairingError(f"Invalid invite: expected {KEY_SIZE} bytes, got {len(raw)}")
    return raw


class BreakoutRoom:
    """One peer-to-peer room over a multi-writer log.

    Store, swarm and pairing may be supplied by the caller (borrowed, never
    closed here) or are constructed on demand (owned, closed on ``exit``).
    """

    def __init__(
        self,
        room_id: Optional[str] = None,
        store: Optional[LocalStore] = None,
        swarm: Optional[MemorySwarm] = None,
        pairing: Optional[MemoryPairing] = None,
        storage_dir: Optional[Path | str] = None,
        invite: Optional[str | bytes] = None,
        metadata: Optional[Dict[str, Any]] = None,
        network: Optional[MemoryNetwork] = None,
    ):
        self.room_id = room_id or generate_room_id()
        self.invite: Optional[bytes] = decode_invite(invite) if invite else None
        self.metadata: Dict[str, Any] = metadata if metadata is not None else {}

        self._store = own_or_borrow(store, lambda: LocalStore(storage_dir), "store")
        self._swarm = own_or_borrow(swarm, lambda: MemorySwarm(network), "swarm")
        self._pairing = own_or_borrow(pairing, lambda: MemoryPairing(self._swarm.value), "pairing")

        self.log = MultiWriterLog(self.store, open_view, apply)
        self.events = EventChannel(name=f"room:{self.room_id}")
        self.state = RoomState.CREATED

        # Highest view length already delivered as a message; leaves bypass it
        self._message_cursor = 0
        # Log node ids already surfaced as events; a reorder re-appends them
        self._delivered: Set[tuple[str, int]] = set()
        self.pending_writers: Set[str] = set()
        self._hooks: List[Callable[[], None]] = []
        self._member: Any = None
        self._candidate: Any = None
        self._exit_task: Optional[asyncio.Task] = None
        self._signals: Optional[SignalDrain] = None

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
        """Which collaborators this room owns."""
        return {
            "store": self._store.owned,
            "swarm": self._swarm.owned,
            "pairing": self._pairing.owned,
        }

    @property
    def local_key(self) -> str:
        return z32_encode(self.log.local.key)

    @property
    def message_cursor(self) -> int:
        return self._message_cursor

    @property
    def is_closing_down(self) -> bool:
        return self.state in (RoomState.EXITING, RoomState.CLOSED)

    def subscribe(self, event: str, callback: Callback) -> Subscription:
        """Subscribe to ``message``, ``peerEntered``, ``peerLeft`` or ``roomClosed``."""
        return self.events.subscribe(event, callback)

    def once(self, event: str, callback: Callback) -> Subscription:
        return self.events.once(event, callback)

    async def ready(self) -> Optional[str]:
        """Open the log, join discovery and pair.

        Returns:
            The z32 invite when hosting, None when joining
        """
        if self.state is not RoomState.CREATED:
            raise ResourceOwnershipError(f"Room {self.room_id} is already {self.state.value}")
        self.state = RoomState.READYING

        try:
            await self.log.ready()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Room {self.room_id}: failed to open log: {e}") from e

        self._hooks.append(self.log.view.on_append(self._on_view_append))
        self._hooks.append(self.swarm.on_connection(self._on_connection))
        self.swarm.join(self.log.local.discovery_key)

        if self.invite is not None:
            self.state = RoomState.JOINING
            await self._join()
            self.state = RoomState.ACTIVE
            logger.info(f"Room {self.room_id} joined as {self.local_key[:8]}")
            return None

        self.state = RoomState.HOSTING
        invite = await self._host()
        self.state = RoomState.ACTIVE
        logger.info(f"Room {self.room_id} hosting as {self.local_key[:8]}")
        return invite

    async def _host(self) -> str:
        local = self.log.local
        try:
            invite = self.pairing.create_invite(local.key)
        except PairingError:
            raise
        except Exception as e:
            raise PairingError(f"Room {self.room_id}: failed to create invite: {e}") from e

        self.metadata["host"] = HostInfo(
            public_key=z32_encode(local.key),
            discovery_key=z32_encode(local.discovery_key),
        ).to_dict()
        self._member = self.pairing.add_member(
            discovery_key=invite.discovery_key,
            on_add=lambda request: self._on_add_member(invite.public_key, request),
        )
        await self._member.flushed()
        return z32_encode(invite.invite)

    async def _join(self) -> None:
        try:
            self._candidate = self.pairing.add_candidate(
                invite=self.invite,
                user_data=self.log.local.key,
                on_add=self._on_host_invite,
            )
            await self._candidate.pairing
        except BreakoutError as e:
            logger.warning(f"Room {self.room_id}: join failed: {e}")
            raise
        except Exception as e:
            raise PairingError(f"Room {self.room_id}: join failed: {e}") from e

    async def _on_add_member(self, public_key: bytes, request: CandidateRequest) -> None:
        candidate_key = request.open(public_key)
        try:
            await self.admit_peer(candidate_key)
        except WriterAuthorizationError as e:
            # Unconfirmed candidates fail their join and can retry with the invite
            logger.warning(f"Room {self.room_id}: candidate {e.key} not confirmed, grant failed: {e}")
            return
        local = self.log.local
        request.confirm(local.key, local.discovery_key)

    async def _on_host_invite(self, result: PairingResult) -> None:
        if not result.key:
            return
        self.metadata["host"] = HostInfo(
            public_key=z32_encode(result.key),
            discovery_key=z32_encode(result.discovery_key) if result.discovery_key else None,
        ).to_dict()
        await self.admit_peer(result.key)

    async def admit_peer(self, key: bytes | str) -> None:
        """Authorize ``key`` as a writer and announce it as a peer.

        On failure the key stays in ``pending_writers`` and the call can be
        retried.
        """
        key_str = as_key_string(key)
        self.pending_writers.add(key_str)
        await self.authorize_writer(key)
        self.pending_writers.discard(key_str)
        self.events.emit(PEER_ENTERED, key_str)

    async def authorize_writer(self, key: bytes | str) -> None:
        """Append a writer grant for ``key``."""
        key_str = as_key_string(key)
        try:
            await self.log.append(writer_grant(key))
        except Exception as e:
            raise WriterAuthorizationError(key_str, f"Failed to authorize writer {key_str}: {e}") from e
        logger.info(f"Room {self.room_id}: authorized writer {key_str[:8]}")

    def _on_connection(self, connection: Any) -> None:
        self.store.replicate(connection)

    def _on_view_append(self, _view: Any, index: int, entry: Any) -> None:
        if not isinstance(entry, dict):
            return
        if entry.get("who") == self.local_key:
            return

        node_id = self.log.node_at(index)
        if node_id is None:
            logger.warning(f"Room {self.room_id}: view entry {index} has no log node")
            return
        if node_id in self._delivered:
            # Re-applied after the log reordered its view
            return
        self._delivered.add(node_id)

        if is_leave(entry):
            self.events.emit_soon(PEER_LEFT, entry.get("who"))
            return

        if index + 1 <= self._message_cursor:
            logger.debug(f"Room {self.room_id}: late entry at {index}, cursor {self._message_cursor}")
        self._message_cursor = max(self._message_cursor, index + 1)
        self.events.emit_soon(MESSAGE, entry)

    async def message(self, data: Any) -> None:
        """Append a chat message from the local writer."""
        self._require_open()
        try:
            await self.log.append(message_entry(self.log.local.key, data))
        except Exception as e:
            error = LogAppendError(f"Room {self.room_id}: failed to append message: {e}")
            logger.error(str(error))
            await self._fail()
            raise error from e

    async def get_transcript(self) -> List[dict]:
        """Every materialized entry in log order, including leaves."""
        if self.state is RoomState.CREATED:
            raise StorageError(f"Room {self.room_id} is not ready")
        await self.log.update()
        view = self.log.view
        return [await view.get(i) for i in range(view.length)]

    def get_room_info(self) -> RoomInfo:
        return RoomInfo(room_id=self.room_id, metadata=self.metadata)

    async def exit(self) -> None:
        """Leave the room and release owned resources.

        Safe to call repeatedly or concurrently; teardown runs once and every
        caller waits for it.
        """
        if self._exit_task is None:
            self._exit_task = asyncio.ensure_future(self._teardown())
        await self._exit_task

    async def _teardown(self) -> None:
        previous = self.state
        self.state = RoomState.EXITING
        errors: List[BaseException] = []
        opened = previous is not RoomState.CREATED and previous is not RoomState.READYING

        if opened:
            local = self.log.local
            try:
                await self.log.append(leave_entry(local.key))
                await self.log.update()
            except Exception as e:
                logger.warning(f"Room {self.room_id}: could not write leave entry: {e}")
                errors.append(LogAppendError(f"leave entry: {e}"))
            try:
                self.swarm.leave(local.discovery_key)
            except Exception as e:
                logger.warning(f"Room {self.room_id}: could not leave topic: {e}")
                errors.append(e)

        if self._member is not None:
            try:
                self._member.close()
            except Exception as e:
                logger.warning(f"Room {self.room_id}: could not close pairing member: {e}")
                errors.append(e)
        if self._candidate is not None and not self._candidate.pairing.done():
            self._candidate.pairing.cancel()

        try:
            await self.log.close()
        except Exception as e:
            logger.warning(f"Room {self.room_id}: could not close log: {e}")
            errors.append(StorageError(f"log close: {e}"))

        for unhook in self._hooks:
            unhook()
        self._hooks.clear()

        await release_owned(
            [(self._pairing, "close"), (self._swarm, "destroy"), (self._store, "close")],
            errors,
        )

        self.state = RoomState.CLOSED
        logger.info(f"Room {self.room_id} closed")
        self.events.emit(ROOM_CLOSED)
        self.events.close()
        if self._signals is not None and not self._signals.triggered:
            # A signal-driven drain keeps its handlers until the process exits
            self._signals.uninstall()

        if errors:
            raise TeardownError(f"Room {self.room_id} teardown incomplete", errors)

    async def _fail(self) -> None:
        """Tear the room down after a fatal storage error."""
        try:
            await self.exit()
        except TeardownError as e:
            logger.warning(f"Room {self.room_id}: teardown after failure reported {len(e.errors)} error(s)")

    def _require_open(self) -> None:
        if self.state not in OPEN_STATES:
            raise StorageError(f"Room {self.room_id} is {self.state.value}")

    def install_signal_handlers(self, exit_fn: Optional[Callable[[int], object]] = None) -> SignalDrain:
        """Exit the room once on SIGINT/SIGTERM, then end the process."""
        if self._signals is None:
            kwargs = {"exit_fn": exit_fn} if exit_fn is not None else {}
            self._signals = SignalDrain(self.exit, name=f"room:{self.room_id}", **kwargs)
            self._signals.install()
        return self._signals

    def __repr__(self) -> str:
        return f"BreakoutRoom({self.room_id}, {self.state.value})"
