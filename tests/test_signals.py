"""Tests for the signal-triggered drain."""

import signal

import pytest

from breakout.errors import TeardownError
from breakout.signals import SignalDrain


def make_drain(drain, exits, installed_at_exit=None):
    def exit_fn(code):
        exits.append(code)
        if installed_at_exit is not None:
            installed_at_exit.append(list(sd._installed))

    sd = SignalDrain(drain, name="test", exit_fn=exit_fn)
    return sd


class TestSignalDrain:
    """Test drain-then-exit behavior."""

    @pytest.mark.asyncio
    async def test_successful_drain_exits_zero(self):
        calls, exits = [], []

        async def drain():
            calls.append(True)

        sd = make_drain(drain, exits)
        sd.install()
        sd.trigger(signal.SIGTERM)
        sd.trigger(signal.SIGINT)
        await sd.task

        assert calls == [True]
        assert exits == [0]
        assert sd.triggered

    @pytest.mark.asyncio
    async def test_drain_errors_exit_one(self):
        exits = []

        async def drain():
            raise TeardownError("incomplete", [OSError("close failed")])

        sd = make_drain(drain, exits)
        sd.install()
        sd.trigger(signal.SIGTERM)
        await sd.task

        assert exits == [1]

    @pytest.mark.asyncio
    async def test_unexpected_drain_failure_still_exits(self):
        exits = []

        async def drain():
            raise RuntimeError("swarm went away")

        sd = make_drain(drain, exits)
        sd.install()
        sd.trigger(signal.SIGTERM)
        await sd.task

        assert exits == [1]

    @pytest.mark.asyncio
    async def test_handlers_stay_installed_until_exit(self):
        exits, installed = [], []

        async def drain():
            pass

        sd = make_drain(drain, exits, installed_at_exit=installed)
        sd.install()
        sd.trigger(signal.SIGINT)
        await sd.task

        assert installed == [[signal.SIGINT, signal.SIGTERM]]
        assert sd._installed == []
