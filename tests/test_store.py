"""Tests for the in-process core store."""

import pytest

from breakout.errors import StorageError
from breakout.log.store import LocalStore


class TestLocalCore:
    """Test appending, reading and truncating cores."""

    @pytest.mark.asyncio
    async def test_append_notifies_listeners(self):
        core = LocalStore().get("log")
        seen = []
        unsubscribe = core.on_append(lambda c, i, v: seen.append((i, v)))

        assert await core.append({"a": 1}) == 0
        unsubscribe()
        await core.append({"a": 2})

        assert seen == [(0, {"a": 1})]
        assert core.length == 2
        assert await core.get(1) == {"a": 2}

    @pytest.mark.asyncio
    async def test_truncate(self):
        core = LocalStore().get("view")
        for i in range(4):
            await core.append(i)

        await core.truncate(1)

        assert core.length == 1
        with pytest.raises(IndexError):
            core.get_nowait(1)

    @pytest.mark.asyncio
    async def test_non_json_value_is_rejected(self):
        core = LocalStore().get("log")
        with pytest.raises(StorageError):
            await core.append({"x": object()})
        assert core.length == 0


class TestLocalStore:
    """Test namespaces, persistence and linking."""

    def test_same_name_same_core(self):
        store = LocalStore()
        assert store.get("local") is store.get("local")

    def test_namespaces_are_isolated(self):
        store = LocalStore()
        room = store.namespace("room-1")

        assert room.get("local").key != store.get("local").key
        assert room.root is store
        assert store.get_by_key(room.get("local").key) is room.get("local")

    @pytest.mark.asyncio
    async def test_persists_across_restarts(self, tmp_path):
        store = LocalStore(tmp_path)
        core = store.namespace("room-1").get("local")
        await core.append({"data": "kept"})
        await store.close()

        reopened = LocalStore(tmp_path)
        again = reopened.namespace("room-1").get("local")

        assert reopened.seed == store.seed
        assert again.key == core.key
        assert again.get_nowait(0) == {"data": "kept"}

    def test_corrupt_seed(self, tmp_path):
        (tmp_path / LocalStore.SEED_FILE).write_bytes(b"short")
        with pytest.raises(StorageError):
            LocalStore(tmp_path)

    def test_link_resolves_remote_cores(self):
        a, b = LocalStore(), LocalStore()
        remote = b.get("local")
        peers = []
        a.on_peer(peers.append)

        assert a.get_by_key(remote.key) is None
        a.link(b)

        assert a.get_by_key(remote.key) is remote
        assert peers == [b]

    @pytest.mark.asyncio
    async def test_closed_store(self):
        a, b = LocalStore(), LocalStore()
        a.link(b)
        remote = b.get("local")

        await b.close()

        assert b.is_closed
        assert a.get_by_key(remote.key) is None
        with pytest.raises(StorageError):
            b.get("local")
