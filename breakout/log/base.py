"""Interfaces of the replicated-log collaborator.

The room layer only talks to these protocols. ``breakout.log.store`` and
``breakout.log.multiwriter`` provide an in-process implementation.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Iterable, Protocol, runtime_checkable


@runtime_checkable
class Core(Protocol):
    """A single-writer append-only sequence of JSON values."""

    key: bytes
    discovery_key: bytes

    @property
    def length(self) -> int: ...

    async def get(self, index: int) -> Any: ...

    async def append(self, value: Any) -> int: ...

    def on_append(self, callback: Callable[["Core", int, Any], Any]) -> Callable[[], None]: ...


@runtime_checkable
class Store(Protocol):
    """A keyed, namespaced collection of cores that can be replicated."""

    def namespace(self, name: str) -> "Store": ...

    def get(self, name: str) -> Core: ...

    def replicate(self, connection: Any) -> None: ...

    async def close(self) -> None: ...


class Node(Protocol):
    """A linearized log entry handed to the reducer."""

    value: Any


OpenFn = Callable[[Store], Core]
ApplyFn = Callable[[Iterable[Node], Core, "Log"], Awaitable[None]]


@runtime_checkable
class Log(Protocol):
    """A multi-writer log materialized through an open/apply reducer."""

    @property
    def local(self) -> Core: ...

    @property
    def view(self) -> Core: ...

    async def ready(self) -> None: ...

    async def append(self, value: Any) -> None: ...

    async def update(self) -> None: ...

    async def add_writer(self, key: bytes | str, indexer: bool = True) -> None: ...

    async def close(self) -> None: ...
