"""Tests for the multi-writer log and its convergence."""

import pytest

from breakout.errors import StorageError
from breakout.log.multiwriter import MultiWriterLog
from breakout.log.reducer import apply, open_view
from breakout.log.store import LocalStore
from breakout.models.entries import writer_grant


def view_entries(log):
    return [log.view.get_nowait(i) for i in range(log.view.length)]


async def open_log():
    log = MultiWriterLog(LocalStore(), open_view, apply)
    await log.ready()
    return log


async def authorize_each_other(a, b):
    await a.append(writer_grant(b.local.key))
    await b.append(writer_grant(a.local.key))


class TestMultiWriterLog:
    """Test ordering, writer grants and convergence between replicas."""

    @pytest.mark.asyncio
    async def test_single_writer_appends_in_order(self):
        log = await open_log()
        for i in range(3):
            await log.append({"n": i})

        assert view_entries(log) == [{"n": 0}, {"n": 1}, {"n": 2}]
        await log.close()

    @pytest.mark.asyncio
    async def test_grants_never_reach_view(self):
        a, b = await open_log(), await open_log()
        a.store.link(b.store)
        await authorize_each_other(a, b)

        assert view_entries(a) == []
        assert a.writers == b.writers
        assert len(a.writers) == 2

    @pytest.mark.asyncio
    async def test_linked_replicas_converge(self, settle):
        a, b = await open_log(), await open_log()
        a.store.link(b.store)
        await authorize_each_other(a, b)

        await a.append({"from": "a"})
        await b.append({"from": "b"})
        await a.append({"from": "a", "n": 2})
        await settle()

        assert view_entries(a) == view_entries(b)
        assert len(view_entries(a)) == 3

    @pytest.mark.asyncio
    async def test_concurrent_writes_reorder_to_same_sequence(self, settle):
        """Replicas that wrote while disconnected agree once linked."""
        a, b = await open_log(), await open_log()
        await authorize_each_other(a, b)

        await a.append({"from": "a"})
        await b.append({"from": "b"})
        assert view_entries(a) == [{"from": "a"}]
        assert view_entries(b) == [{"from": "b"}]

        a.store.link(b.store)
        await settle()

        assert view_entries(a) == view_entries(b)
        assert sorted(e["from"] for e in view_entries(a)) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_unauthorized_writer_is_ignored(self, settle):
        a, b = await open_log(), await open_log()
        a.store.link(b.store)

        await b.append({"from": "b"})
        await settle()

        assert view_entries(a) == []

    @pytest.mark.asyncio
    async def test_append_after_close_raises(self):
        log = await open_log()
        await log.close()

        with pytest.raises(StorageError):
            await log.append({"n": 1})

    @pytest.mark.asyncio
    async def test_type_tagged_grant_does_not_stall_the_log(self):
        log = await open_log()

        await log.append({"addWriter": {"type": "Buffer", "data": [1, 2, 3]}})
        await log.append({"n": 1})
        await log.append({"n": 2})

        assert view_entries(log) == [{"n": 1}, {"n": 2}]
        assert len(log.writers) == 1

    @pytest.mark.asyncio
    async def test_node_at_maps_view_positions_to_nodes(self):
        log = await open_log()
        await log.append(writer_grant(LocalStore().get("local").key))
        await log.append({"n": 1})
        await log.append({"n": 1})

        first, second = log.node_at(0), log.node_at(1)
        assert first[1] == 1
        assert second[1] == 2
        assert first[0] == second[0]
        assert log.node_at(2) is None
