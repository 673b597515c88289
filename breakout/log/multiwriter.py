"""Multi-writer log linearized over per-writer cores.

Every writer appends to its own core. Nodes are stamped with a Lamport clock
and totally ordered by ``(clock, writer key, seq)``, so any two replicas that
hold the same nodes compute the same sequence. The view is rebuilt from the
first position where the new order diverges from what was already applied,
and application repeats until the writer set stops growing.
"""

from __future__ import annotations

import asyncio
import bisect
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from loguru import logger

from breakout.errors import StorageError
from breakout.log.base import ApplyFn, OpenFn
from breakout.log.store import LocalCore, LocalStore, describe_core
from breakout.utils.codec import as_key_bytes, as_key_string


@dataclass(frozen=True)
class LogNode:
    """One linearized entry."""

    writer: str
    seq: int
    clock: int
    value: Any

    @property
    def id(self) -> tuple[str, int]:
        return (self.writer, self.seq)


class MultiWriterLog:
    """Replicated multi-writer log materialized through ``open_fn``/``apply_fn``."""

    def __init__(self, store: LocalStore, open_fn: OpenFn, apply_fn: ApplyFn):
        self.store = store
        self._open_fn = open_fn
        self._apply_fn = apply_fn
        self._local: Optional[LocalCore] = None
        self._view: Optional[LocalCore] = None
        self._writers: Set[bytes] = set()
        self._indexers: Set[bytes] = set()
        self._cores: Dict[bytes, LocalCore] = {}
        self._unsubscribers: List[Callable[[], None]] = []
        self._applied: List[tuple[str, int]] = []
        self._marks: List[int] = []
        self._clock = 0
        self._lock = asyncio.Lock()
        self._pending_update: Optional[asyncio.Task] = None
        self._dirty = False
        self._opened = False
        self.closed = False

    @property
    def local(self) -> LocalCore:
        if self._local is None:
            raise StorageError("Log is not ready")
        return self._local

    @property
    def view(self) -> LocalCore:
        if self._view is None:
            raise StorageError("Log is not ready")
        return self._view

    @property
    def writers(self) -> Set[str]:
        """Currently authorized writer keys (z32)."""
        return {as_key_string(key) for key in self._writers}

    def node_at(self, index: int) -> Optional[tuple[str, int]]:
        """Return the ``(writer, seq)`` id of the node materialized at view ``index``.

        Each applied node appends at most one view entry, so the owner is the
        last applied node whose starting view length is not past ``index``.
        Valid from inside view append callbacks as well.
        """
        pos = bisect.bisect_right(self._marks, index) - 1
        if pos < 0 or index >= self.view.length:
            return None
        return self._applied[pos]

    async def ready(self) -> None:
        if self._opened:
            return
        self._local = self.store.get("local")
        self._view = self._open_fn(self.store)
        # Views are derived state; rebuild from the writer cores on start.
        await self._view.truncate(0)
        self._opened = True
        self._track(self._local)
        self._writers.add(self._local.key)
        self._indexers.add(self._local.key)
        self._unsubscribers.append(self.store.on_peer(lambda _peer: self._schedule_update()))
        await self.update()
        logger.debug(f"Log ready, local writer {describe_core(self._local)}")

    async def append(self, value: Any) -> None:
        """Append ``value`` as the local writer and apply it."""
        if self.closed:
            raise StorageError("Log is closed")
        node = {"clock": self._clock + 1, "value": value}
        await self.local.append(node)
        await self.update()

    async def add_writer(self, key: bytes | str, indexer: bool = True) -> None:
        """Authorize ``key`` to write. Writers are never removed."""
        raw = as_key_bytes(key)
        if raw not in self._writers:
            logger.debug(f"Adding writer {as_key_string(raw)}")
        self._writers.add(raw)
        if indexer:
            self._indexers.add(raw)
        self._resolve_writers()

    async def update(self) -> None:
        """Bring the view up to date with every known writer core."""
        if self.closed or not self._opened:
            return
        async with self._lock:
            while True:
                self._resolve_writers()
                nodes = self._linearize()
                prefix = self._common_prefix(nodes)
                if prefix < len(self._applied):
                    logger.debug(f"Reordering view from position {prefix}")
                    await self.view.truncate(self._marks[prefix])
                    del self._applied[prefix:]
                    del self._marks[prefix:]
                grew = False
                for node in nodes[prefix:]:
                    writers_before = len(self._writers)
                    self._marks.append(self.view.length)
                    self._applied.append(node.id)
                    await self._apply_fn([node], self.view, self)
                    if len(self._writers) != writers_before:
                        grew = True
                        break
                if not grew:
                    return

    async def close(self) -> None:
        if self.closed:
            return
        if self._pending_update is not None and not self._pending_update.done():
            self._pending_update.cancel()
        self.closed = True
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        logger.debug("Log closed")

    def _linearize(self) -> List[LogNode]:
        nodes: List[LogNode] = []
        for key, core in self._cores.items():
            if key not in self._writers:
                continue
            writer = as_key_string(key)
            for seq in range(core.length):
                raw = core.get_nowait(seq)
                nodes.append(LogNode(writer=writer, seq=seq, clock=int(raw["clock"]), value=raw["value"]))
                self._clock = max(self._clock, int(raw["clock"]))
        nodes.sort(key=lambda n: (n.clock, n.writer, n.seq))
        return nodes

    def _common_prefix(self, nodes: List[LogNode]) -> int:
        limit = min(len(nodes), len(self._applied))
        for i in range(limit):
            if nodes[i].id != self._applied[i]:
                return i
        return limit

    def _resolve_writers(self) -> None:
        for key in self._writers:
            if key in self._cores:
                continue
            core = self.store.get_by_key(key)
            if core is not None:
                self._track(core)

    def _track(self, core: LocalCore) -> None:
        self._cores[core.key] = core
        if core is not self._local:
            self._unsubscribers.append(core.on_append(lambda *_: self._schedule_update()))

    def _schedule_update(self) -> None:
        if self.closed:
            return
        self._dirty = True
        if self._pending_update is not None and not self._pending_update.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._pending_update = loop.create_task(self._background_update())

    async def _background_update(self) -> None:
        try:
            while self._dirty and not self.closed:
                self._dirty = False
                await self.update()
        except StorageError as e:
            logger.warning(f"Background log update failed: {e}")
