"""Materialization contract run identically by every replica.

``open_view`` creates the view core; ``apply`` folds linearized nodes into it.
Writer grants are consumed here and never reach the view.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from loguru import logger

from breakout.log.base import Core, Log, Node, Store
from breakout.models.entries import ADD_WRITER


def open_view(store: Store) -> Core:
    """Open the view core of a room."""
    return store.get("view")


def is_malformed_grant(value: Mapping[str, Any]) -> bool:
    """A grant whose key is a type-tagged mapping instead of a key.

    Replication occasionally yields ``{"addWriter": {"type": ..., "data": ...}}``.
    Why these are produced is not known yet; they are skipped.
    """
    grant = value.get(ADD_WRITER)
    return isinstance(grant, Mapping) and "type" in grant


async def apply(nodes: Iterable[Node], view: Core, base: Log) -> None:
    """Fold ``nodes`` into ``view``, authorizing writers named by grants."""
    for node in nodes:
        value = node.value
        if isinstance(value, Mapping) and value.get(ADD_WRITER):
            if is_malformed_grant(value):
                logger.debug("Skipping type-tagged writer grant")
                continue
            await base.add_writer(value[ADD_WRITER], indexer=True)
            continue
        await view.append(value)
