"""Tests for the room event channel."""

import asyncio

import pytest

from breakout.events import EventChannel


class TestEventChannel:
    """Test subscription, deferred delivery and teardown."""

    def test_emit_reaches_subscribers(self):
        channel = EventChannel()
        got = []
        channel.subscribe("message", got.append)

        assert channel.emit("message", "hi") == 1
        assert got == ["hi"]

    def test_unsubscribe(self):
        channel = EventChannel()
        got = []
        sub = channel.subscribe("message", got.append)
        sub.unsubscribe()
        sub.unsubscribe()

        channel.emit("message", "hi")
        assert got == []
        assert channel.listener_count("message") == 0

    def test_once(self):
        channel = EventChannel()
        got = []
        channel.once("peerLeft", got.append)

        channel.emit("peerLeft", "a")
        channel.emit("peerLeft", "b")
        assert got == ["a"]

    def test_failing_subscriber_does_not_block_others(self):
        channel = EventChannel()
        got = []

        def boom(_value):
            raise RuntimeError("subscriber bug")

        channel.subscribe("message", boom)
        channel.subscribe("message", got.append)

        channel.emit("message", "still delivered")
        assert got == ["still delivered"]

    def test_close_cancels_everything(self):
        channel = EventChannel()
        got = []
        sub = channel.subscribe("message", got.append)

        channel.close()
        channel.emit("message", "late")

        assert got == []
        assert not sub.active
        with pytest.raises(RuntimeError):
            channel.subscribe("message", got.append)

    @pytest.mark.asyncio
    async def test_emit_soon_reaches_late_subscribers(self):
        """Subscribers added right after the triggering call still get the event."""
        channel = EventChannel()
        got = []

        channel.emit_soon("message", {"data": "hi"})
        channel.subscribe("message", got.append)
        assert got == []

        await asyncio.sleep(0)
        assert got == [{"data": "hi"}]

    @pytest.mark.asyncio
    async def test_emit_soon_preserves_order(self):
        channel = EventChannel()
        got = []
        channel.subscribe("message", got.append)

        for i in range(5):
            channel.emit_soon("message", i)
        await asyncio.sleep(0)

        assert got == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_emit_soon_dropped_after_close(self):
        channel = EventChannel()
        got = []
        channel.subscribe("message", got.append)

        channel.emit_soon("message", "late")
        channel.close()
        await asyncio.sleep(0)

        assert got == []

    @pytest.mark.asyncio
    async def test_async_subscriber(self):
        channel = EventChannel()
        got = []

        async def handler(value):
            got.append(value)

        channel.subscribe("peerEntered", handler)
        channel.emit("peerEntered", "key")
        await asyncio.sleep(0)

        assert got == ["key"]

    @pytest.mark.asyncio
    async def test_wait_for(self):
        channel = EventChannel()
        asyncio.get_running_loop().call_soon(channel.emit, "roomClosed")

        assert await channel.wait_for("roomClosed", timeout=1) == ()
