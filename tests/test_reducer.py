"""Tests for the log reducer."""

import pytest

from breakout.log.multiwriter import LogNode
from breakout.log.reducer import apply, is_malformed_grant
from breakout.models.entries import leave_entry, message_entry, writer_grant
from breakout.utils.codec import z32_encode
from breakout.utils.keys import random_key


class FakeView:
    def __init__(self):
        self.entries = []

    async def append(self, value):
        self.entries.append(value)
        return len(self.entries) - 1


class FakeBase:
    def __init__(self):
        self.added = []

    async def add_writer(self, key, indexer=True):
        self.added.append((key, indexer))


def nodes(*values):
    return [LogNode(writer="w", seq=i, clock=i + 1, value=v) for i, v in enumerate(values)]


class TestApply:
    """Test how linearized nodes are folded into the view."""

    @pytest.mark.asyncio
    async def test_grants_authorize_and_stay_out_of_view(self):
        key = random_key()
        msg = message_entry(key, "hi", when=1)
        view, base = FakeView(), FakeBase()

        await apply(nodes(writer_grant(key), msg), view, base)

        assert base.added == [(z32_encode(key), True)]
        assert view.entries == [msg]

    @pytest.mark.asyncio
    async def test_leaves_and_unknown_entries_are_kept_verbatim(self):
        key = random_key()
        leave = leave_entry(key, when=5)
        custom = {"kind": "reaction", "emoji": ":)"}
        view, base = FakeView(), FakeBase()

        await apply(nodes(leave, custom), view, base)

        assert view.entries == [leave, custom]
        assert base.added == []

    @pytest.mark.asyncio
    async def test_type_tagged_grant_is_skipped(self):
        malformed = {"addWriter": {"type": "Buffer", "data": [1, 2, 3]}}
        view, base = FakeView(), FakeBase()

        await apply(nodes(malformed), view, base)

        assert base.added == []
        assert view.entries == []

    @pytest.mark.asyncio
    async def test_deterministic(self):
        key = random_key()
        values = [writer_grant(key), message_entry(key, "a", when=1), leave_entry(key, when=2)]
        first, second = FakeView(), FakeView()

        await apply(nodes(*values), first, FakeBase())
        await apply(nodes(*values), second, FakeBase())

        assert first.entries == second.entries


class TestMalformedGrant:
    def test_detection(self):
        assert is_malformed_grant({"addWriter": {"type": "Buffer"}})
        assert not is_malformed_grant(writer_grant(random_key()))
        assert not is_malformed_grant({"data": "hi"})
