"""Tests for the in-memory remote store and identity."""

import pytest

from pocket_ledger.services.storage import (
    InMemoryRemoteStore,
    NotFoundError,
    StaticIdentity,
    StorageError,
)
from pocket_ledger.sync import KeyedLock


class TestInMemoryRemoteStore:
    """Tests for the dict-backed store."""

    @pytest.mark.asyncio
    async def test_insert_assigns_id(self):
        """Test that the store numbers rows itself."""
        store = InMemoryRemoteStore()
        record_id = await store.insert("people", {"display_name": "Asha"})
        rows = await store.query("people")
        assert rows == [{"display_name": "Asha", "id": record_id}]

    @pytest.mark.asyncio
    async def test_update_and_filter(self):
        """Test partial updates and equality filters."""
        store = InMemoryRemoteStore()
        first = await store.insert("people", {"display_name": "Asha", "owner_id": "u1"})
        await store.insert("people", {"display_name": "Ben", "owner_id": "u2"})
        await store.update("people", first, {"cached_balance": "60"})
        rows = await store.query("people", {"owner_id": "u1"})
        assert len(rows) == 1
        assert rows[0]["cached_balance"] == "60"

    @pytest.mark.asyncio
    async def test_missing_rows_raise(self):
        """Test that writes to unknown rows fail as storage errors."""
        store = InMemoryRemoteStore()
        with pytest.raises(NotFoundError):
            await store.update("people", "nope", {})
        with pytest.raises(StorageError):
            await store.delete("people", "nope")

    @pytest.mark.asyncio
    async def test_returned_rows_are_copies(self):
        """Test that callers cannot mutate stored rows."""
        store = InMemoryRemoteStore()
        await store.insert("people", {"display_name": "Asha"})
        (row,) = await store.query("people")
        row["display_name"] = "Changed"
        assert store.rows("people")[0]["display_name"] == "Asha"


class TestIdentity:
    """Tests for the static identity provider."""

    def test_user_id(self):
        assert StaticIdentity("u1").user_id == "u1"

    def test_empty_user_id_rejected(self):
        with pytest.raises(ValueError):
            StaticIdentity("")


class TestKeyedLock:
    """Tests for the per-key lock."""

    @pytest.mark.asyncio
    async def test_lock_released_and_dropped(self):
        """Test that a key is free again after use."""
        locks = KeyedLock()
        async with locks.hold("a"):
            assert locks.is_locked("a")
            assert not locks.is_locked("b")
        assert not locks.is_locked("a")
