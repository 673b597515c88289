"""In-process core store with optional on-disk persistence.

Cores are append-only lists of JSON values. When a ``storage_dir`` is given,
each core is mirrored to a JSONL file and replayed on the next start, and the
primary seed that derives core keys is persisted so names map to the same
keys across restarts.

Replication is modelled by linking stores: once two stores are connected
over a transport connection, each can resolve the other's cores by key.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set

from loguru import logger

from breakout.errors import StorageError
from breakout.utils.codec import as_key_string
from breakout.utils.keys import KEY_SIZE, derive_key, discovery_key, random_key

PeerCallback = Callable[["LocalStore"], Any]
AppendCallback = Callable[["LocalCore", int, Any], Any]


class LocalCore:
    """A single-writer append-only sequence of JSON values."""

    def __init__(self, key: bytes, name: str = "", path: Optional[Path] = None):
        self.key = key
        self.discovery_key = discovery_key(key)
        self.name = name
        self._path = path
        self._entries: List[str] = []
        self._listeners: List[AppendCallback] = []
        self.closed = False
        if path is not None and path.exists():
            self._load()

    def _load(self) -> None:
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        self._entries.append(line)
            logger.debug(f"Loaded {len(self._entries)} entries for core {self.name}")
        except OSError as e:
            raise StorageError(f"Failed to load core {self.name}: {e}") from e

    @property
    def length(self) -> int:
        return len(self._entries)

    def get_nowait(self, index: int) -> Any:
        if index < 0 or index >= len(self._entries):
            raise IndexError(f"Core {self.name} has no entry {index}")
        return json.loads(self._entries[index])

    async def get(self, index: int) -> Any:
        return self.get_nowait(index)

    async def append(self, value: Any) -> int:
        """Append ``value`` and notify listeners.

        Returns:
            Index of the new entry
        """
        if self.closed:
            raise StorageError(f"Core {self.name} is closed")
        try:
            line = json.dumps(value, sort_keys=True, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise StorageError(f"Entry is not JSON serializable: {e}") from e
        if self._path is not None:
            try:
                with open(self._path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
            except OSError as e:
                raise StorageError(f"Failed to persist core {self.name}: {e}") from e
        self._entries.append(line)
        index = len(self._entries) - 1
        for callback in list(self._listeners):
            callback(self, index, json.loads(line))
        return index

    async def truncate(self, length: int) -> None:
        """Drop every entry at or after ``length``."""
        if length >= len(self._entries):
            return
        del self._entries[length:]
        if self._path is not None:
            try:
                with open(self._path, "w", encoding="utf-8") as f:
                    for line in self._entries:
                        f.write(line + "\n")
            except OSError as e:
                raise StorageError(f"Failed to rewrite core {self.name}: {e}") from e

    def on_append(self, callback: AppendCallback) -> Callable[[], None]:
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def close(self) -> None:
        self.closed = True
        self._listeners.clear()


class LocalStore:
    """Namespaced collection of cores.

    ``namespace()`` returns a view sharing the same root: cores, seed,
    peers and lifecycle all live on the root store.
    """

    SEED_FILE = "primary-key"

    def __init__(self, storage_dir: Optional[Path | str] = None):
        self.storage_dir = Path(storage_dir) if storage_dir else None
        self._root = self
        self._prefix: tuple[str, ...] = ()
        self._cores: Dict[bytes, LocalCore] = {}
        self._peers: Set[LocalStore] = set()
        self._peer_listeners: List[PeerCallback] = []
        self.closed = False
        self.seed = self._load_seed()

    def _load_seed(self) -> bytes:
        if self.storage_dir is None:
            return random_key()
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        seed_path = self.storage_dir / self.SEED_FILE
        if seed_path.exists():
            seed = seed_path.read_bytes()
            if len(seed) != KEY_SIZE:
                raise StorageError(f"Corrupt seed file {seed_path}")
            return seed
        seed = random_key()
        seed_path.write_bytes(seed)
        logger.info(f"Created store seed in {self.storage_dir}")
        return seed

    def namespace(self, name: str) -> "LocalStore":
        """Return a store whose core names are scoped under ``name``."""
        child = object.__new__(LocalStore)
        child.storage_dir = self.storage_dir
        child._root = self._root
        child._prefix = self._prefix + (name,)
        return child

    @property
    def root(self) -> "LocalStore":
        return self._root

    @property
    def is_closed(self) -> bool:
        return self._root.closed

    def get(self, name: str) -> LocalCore:
        """Open (or create) the named core in this namespace."""
        root = self._root
        if root.closed:
            raise StorageError("Store is closed")
        full_name = "/".join(self._prefix + (name,))
        key = derive_key(root.seed, full_name)
        core = root._cores.get(key)
        if core is None:
            path = None
            if root.storage_dir is not None:
                core_dir = root.storage_dir.joinpath(*self._prefix)
                core_dir.mkdir(parents=True, exist_ok=True)
                path = core_dir / f"{name}.jsonl"
            core = LocalCore(key, name=full_name, path=path)
            root._cores[key] = core
        return core

    def get_by_key(self, key: bytes) -> Optional[LocalCore]:
        """Resolve a core by key locally or through linked peers."""
        seen: Set[int] = set()
        pending = [self._root]
        while pending:
            store = pending.pop()
            if id(store) in seen or store.closed:
                continue
            seen.add(id(store))
            core = store._cores.get(key)
            if core is not None:
                return core
            pending.extend(store._peers)
        return None

    def replicate(self, connection: Any) -> None:
        """Replicate this store over ``connection``."""
        connection.attach(self._root)

    def link(self, other: "LocalStore") -> None:
        """Connect two root stores so each sees the other's cores."""
        a, b = self._root, other._root
        if a is b or b in a._peers or a.closed or b.closed:
            return
        a._peers.add(b)
        b._peers.add(a)
        logger.debug(f"Linked stores {id(a):x} <-> {id(b):x}")
        a._notify_peer(b)
        b._notify_peer(a)

    def on_peer(self, callback: PeerCallback) -> Callable[[], None]:
        """Call ``callback(peer)`` whenever a new peer store is linked."""
        root = self._root
        root._peer_listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in root._peer_listeners:
                root._peer_listeners.remove(callback)

        return _unsubscribe

    def _notify_peer(self, peer: "LocalStore") -> None:
        for callback in list(self._peer_listeners):
            callback(peer)

    async def close(self) -> None:
        """Close the root store and every core in it."""
        root = self._root
        if root.closed:
            return
        root.closed = True
        for peer in list(root._peers):
            peer._peers.discard(root)
        root._peers.clear()
        root._peer_listeners.clear()
        for core in root._cores.values():
            core.close()
        logger.debug(f"Closed store with {len(root._cores)} cores")

    def __repr__(self) -> str:
        ns = "/".join(self._prefix) or "<root>"
        return f"LocalStore({ns}, cores={len(self._root._cores)})"


def describe_core(core: LocalCore) -> str:
    return f"{core.name}@{as_key_string(core.key)[:8]}"
