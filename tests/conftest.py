"""Shared fixtures for breakout tests."""

import asyncio

import pytest

from breakout.net.memory import MemoryNetwork
from breakout.room import BreakoutRoom


@pytest.fixture
def network():
    """Isolated in-process network per test."""
    return MemoryNetwork()


@pytest.fixture
def settle():
    """Let background log updates and deferred events run."""
    async def _settle(rounds: int = 10) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)
    return _settle


@pytest.fixture
def hosted(network):
    """Factory: a readied host room plus an un-readied guest holding its invite."""
    async def _hosted(**host_kwargs):
        host = BreakoutRoom(network=network, **host_kwargs)
        invite = await host.ready()
        guest = BreakoutRoom(network=network, invite=invite)
        return host, guest, invite
    return _hosted
