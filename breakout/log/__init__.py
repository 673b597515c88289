"""Replicated log collaborator and the room reducer."""

from breakout.log.base import Core, Log, Store
from breakout.log.multiwriter import LogNode, MultiWriterLog
from breakout.log.reducer import apply, is_malformed_grant, open_view
from breakout.log.store import LocalCore, LocalStore

__all__ = [
    "Core",
    "Log",
    "Store",
    "LocalCore",
    "LocalStore",
    "LogNode",
    "MultiWriterLog",
    "apply",
    "open_view",
    "is_malformed_grant",
]
