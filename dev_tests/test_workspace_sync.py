"""
Tests for workspace_sync.py - all-or-nothing initial load and background writes.
"""

import logging

import pytest

from workspace_sync import COLLECTION_KINDS, drain_pending_writes, load_workspace, persist_in_background


class TestLoadWorkspace:
    @pytest.mark.asyncio
    async def test_loads_every_collection(self, make_store):
        """
        Given: A store holding projects and assets
        When: load_workspace() is called
        Then: Every collection is returned and the state is not degraded
        """
        store = make_store({"project": [{"id": "p1"}], "asset": [{"id": "a1"}, {"id": "a2"}]})

        state = await load_workspace(store)

        assert state.degraded is False
        assert set(state.collections) == set(COLLECTION_KINDS)
        assert state.collections["project"] == [{"id": "p1"}]
        assert len(state.collections["asset"]) == 2
        assert state.collections["bible"] == []

    @pytest.mark.asyncio
    async def test_one_failure_falls_back_to_cache(self, make_store):
        """
        Given: The bible collection fails to load
        When: load_workspace() is called with a local cache
        Then: The whole batch comes from the cache and the state is degraded
        """
        store = make_store({"project": [{"id": "remote"}]}, failing=("bible",))
        cache = {"project": [{"id": "cached"}]}

        state = await load_workspace(store, cache)

        assert state.degraded is True
        assert state.collections["project"] == [{"id": "cached"}]
        assert state.collections["asset"] == []
        assert "bible" in state.error


class TestPersistInBackground:
    @pytest.mark.asyncio
    async def test_write_lands_in_store(self, store):
        persist_in_background(store, "asset", {"id": "a1"})
        await drain_pending_writes()

        assert store.saved == [("asset", {"id": "a1"})]

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, make_store, caplog):
        """
        Given: A store that rejects asset writes
        When: A background write runs
        Then: The failure is logged and the task completes without an exception
        """
        store = make_store(failing=("asset",))

        with caplog.at_level(logging.ERROR, logger="workspace_sync"):
            task = persist_in_background(store, "asset", {"id": "a1"})
            await task

        assert task.exception() is None
        assert "Background save of asset a1 failed" in caplog.text
