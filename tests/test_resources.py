"""Tests for owned/borrowed resource handling."""

import pytest

from breakout.errors import ResourceOwnershipError
from breakout.resources import Borrowed, Owned, own_or_borrow, release, release_owned


class Closable:
    def __init__(self, fail: bool = False):
        self.closed = 0
        self.fail = fail

    async def close(self):
        if self.fail:
            raise OSError("close failed")
        self.closed += 1

    def destroy(self):
        self.closed += 1


class TestOwnership:
    """Test Owned vs Borrowed wrapping and release."""

    def test_supplied_value_is_borrowed(self):
        thing = Closable()
        resource = own_or_borrow(thing, Closable, "store")

        assert isinstance(resource, Borrowed)
        assert resource.value is thing
        assert not resource.owned

    def test_missing_value_is_built_and_owned(self):
        resource = own_or_borrow(None, Closable, "store")

        assert isinstance(resource, Owned)
        assert isinstance(resource.value, Closable)
        assert resource.owned

    @pytest.mark.asyncio
    async def test_release_borrowed_is_rejected(self):
        thing = Closable()
        with pytest.raises(ResourceOwnershipError):
            await release(Borrowed(thing, "swarm"))
        assert thing.closed == 0

    @pytest.mark.asyncio
    async def test_double_release_is_rejected(self):
        resource = Owned(Closable(), "store")
        await release(resource)

        with pytest.raises(ResourceOwnershipError):
            await release(resource)
        assert resource.value.closed == 1

    @pytest.mark.asyncio
    async def test_sync_closer(self):
        resource = Owned(Closable(), "swarm")
        await release(resource, "destroy")
        assert resource.value.closed == 1

    @pytest.mark.asyncio
    async def test_release_owned_is_best_effort(self):
        failing = Owned(Closable(fail=True), "pairing")
        borrowed = Borrowed(Closable(), "swarm")
        owned = Owned(Closable(), "store")
        errors = []

        await release_owned([(failing, "close"), (borrowed, "close"), (owned, "close")], errors)

        assert len(errors) == 1
        assert isinstance(errors[0], OSError)
        assert borrowed.value.closed == 0
        assert owned.value.closed == 1

    @pytest.mark.asyncio
    async def test_release_owned_skips_released(self):
        owned = Owned(Closable(), "store")
        errors = []
        await release_owned([(owned, "close")], errors)
        await release_owned([(owned, "close")], errors)

        assert errors == []
        assert owned.value.closed == 1
