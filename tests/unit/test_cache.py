"""Tests for RequestCache and CacheStore."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from crmdeck.core.cache import CacheStore, RequestCache
from crmdeck.core.errors import NetworkError

KEY_A = ("leads", "", 1, 10)
KEY_B = ("leads", "", 2, 10)
KEY_C = ("leads", "acme", 1, 10)


# ---------------------------------------------------------------------------
# Deduplication and invalidation
# ---------------------------------------------------------------------------


class TestLoading:
    @pytest.mark.asyncio
    async def test_load_returns_data(self) -> None:
        cache = RequestCache()
        entry = await cache.load(KEY_A, AsyncMock(return_value=["a"]))
        assert entry.data == ["a"]
        assert not entry.is_loading
        assert entry.error is None

    @pytest.mark.asyncio
    async def test_concurrent_loads_share_one_fetch(self) -> None:
        cache = RequestCache()
        calls = 0

        async def fetch() -> list[str]:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0)
            return ["a"]

        first, second = await asyncio.gather(cache.load(KEY_A, fetch), cache.load(KEY_A, fetch))

        assert calls == 1
        assert first.data == second.data == ["a"]

    @pytest.mark.asyncio
    async def test_cached_key_is_not_refetched(self) -> None:
        cache = RequestCache()
        fetcher = AsyncMock(return_value=["a"])
        await cache.load(KEY_A, fetcher)
        await cache.load(KEY_A, fetcher)
        assert fetcher.await_count == 1

    @pytest.mark.asyncio
    async def test_invalidate_refetches_exactly_once(self) -> None:
        cache = RequestCache()
        fetcher = AsyncMock(side_effect=[["a"], ["a", "b"]])
        await cache.load(KEY_A, fetcher)

        entry = await cache.invalidate()

        assert fetcher.await_count == 2
        assert entry is not None
        assert entry.data == ["a", "b"]

    @pytest.mark.asyncio
    async def test_invalidate_without_active_key(self) -> None:
        assert await RequestCache().invalidate() is None

    @pytest.mark.asyncio
    async def test_invalidate_inactive_key_forgets_it(self) -> None:
        cache = RequestCache()
        fetcher = AsyncMock(return_value=["a"])
        await cache.load(KEY_A, fetcher)
        await cache.load(KEY_B, AsyncMock(return_value=["b"]))

        assert await cache.invalidate(KEY_A) is None
        await cache.load(KEY_A, fetcher)
        assert fetcher.await_count == 2

    def test_clear(self) -> None:
        cache = RequestCache()
        cache.clear()
        assert cache.active_key is None
        assert cache.read(KEY_A).data is None


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


class TestOrdering:
    @pytest.mark.asyncio
    async def test_previous_data_shown_while_new_key_loads(self) -> None:
        cache = RequestCache()
        await cache.load(KEY_A, AsyncMock(return_value=["page 1"]))
        gate = asyncio.Event()

        async def slow() -> list[str]:
            await gate.wait()
            return ["page 2"]

        task = cache.request(KEY_B, slow)
        pending = cache.read(KEY_B)
        assert pending.is_loading
        assert pending.is_stale
        assert pending.data == ["page 1"]

        gate.set()
        assert task is not None
        await task
        settled = cache.read(KEY_B)
        assert settled.data == ["page 2"]
        assert not settled.is_stale
        assert not settled.is_loading

    @pytest.mark.asyncio
    async def test_slow_response_for_old_key_never_replaces_active_data(self) -> None:
        cache = RequestCache()
        gate = asyncio.Event()

        async def slow() -> list[str]:
            await gate.wait()
            return ["old"]

        slow_task = cache.request(KEY_A, slow)
        entry = await cache.load(KEY_B, AsyncMock(return_value=["new"]))
        assert entry.data == ["new"]

        gate.set()
        assert slow_task is not None
        await slow_task

        assert cache.active_key == KEY_B
        assert cache.read(KEY_B).data == ["new"]
        # The late response lands in its own slot only
        assert cache.read(KEY_A).data == ["old"]

        gate = asyncio.Event()

        async def next_page() -> list[str]:
            await gate.wait()
            return ["next"]

        next_task = cache.request(KEY_C, next_page)
        pending = cache.read(KEY_C)
        assert pending.is_stale
        assert pending.data == ["new"]

        gate.set()
        assert next_task is not None
        await next_task

    @pytest.mark.asyncio
    async def test_response_superseded_by_invalidate_is_discarded(self) -> None:
        cache = RequestCache()
        gate = asyncio.Event()
        calls = 0

        async def fetch() -> str:
            nonlocal calls
            calls += 1
            if calls == 1:
                await gate.wait()
                return "old"
            return "new"

        first = cache.request(KEY_A, fetch)
        await asyncio.sleep(0)
        entry = await cache.invalidate()
        assert entry is not None
        assert entry.data == "new"

        gate.set()
        assert first is not None
        await first
        assert cache.read(KEY_A).data == "new"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    @pytest.mark.asyncio
    async def test_error_recorded_without_data(self) -> None:
        cache = RequestCache()
        entry = await cache.load(KEY_A, AsyncMock(side_effect=NetworkError("down")))
        assert isinstance(entry.error, NetworkError)
        assert entry.data is None
        assert not entry.is_loading

    @pytest.mark.asyncio
    async def test_error_keeps_previous_data(self) -> None:
        cache = RequestCache()
        await cache.load(KEY_A, AsyncMock(side_effect=[["a"], NetworkError("down")]))

        entry = await cache.invalidate()

        assert entry is not None
        assert entry.data == ["a"]
        assert isinstance(entry.error, NetworkError)

    @pytest.mark.asyncio
    async def test_successful_refetch_clears_error(self) -> None:
        cache = RequestCache()
        fetcher = AsyncMock(side_effect=[NetworkError("down"), ["a"]])
        await cache.load(KEY_A, fetcher)

        entry = await cache.invalidate()

        assert entry is not None
        assert entry.error is None
        assert entry.data == ["a"]


# ---------------------------------------------------------------------------
# Shared store
# ---------------------------------------------------------------------------


class TestCacheStore:
    @pytest.mark.asyncio
    async def test_viewers_of_one_store_share_one_fetch(self) -> None:
        store = CacheStore()
        calls = 0

        async def fetch() -> list[str]:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0)
            return ["a"]

        first, second = await asyncio.gather(
            RequestCache(store).load(KEY_A, fetch), RequestCache(store).load(KEY_A, fetch)
        )

        assert calls == 1
        assert first.data == second.data == ["a"]

    @pytest.mark.asyncio
    async def test_later_viewer_reads_settled_data(self) -> None:
        store = CacheStore()
        fetcher = AsyncMock(return_value=["a"])
        await RequestCache(store).load(KEY_A, fetcher)

        entry = await RequestCache(store).load(KEY_A, fetcher)

        assert fetcher.await_count == 1
        assert entry.data == ["a"]

    @pytest.mark.asyncio
    async def test_last_good_data_is_per_viewer(self) -> None:
        store = CacheStore()
        await RequestCache(store).load(KEY_A, AsyncMock(return_value=["a"]))
        gate = asyncio.Event()

        async def slow() -> list[str]:
            await gate.wait()
            return ["b"]

        viewer = RequestCache(store)
        task = viewer.request(KEY_B, slow)
        pending = viewer.read(KEY_B)
        assert pending.is_loading
        assert not pending.is_stale
        assert pending.data is None

        gate.set()
        assert task is not None
        await task

    @pytest.mark.asyncio
    async def test_failed_refetch_keeps_data_for_later_viewers(self) -> None:
        store = CacheStore()
        fetcher = AsyncMock(side_effect=[["a"], NetworkError("down")])
        first = RequestCache(store)
        await first.load(KEY_A, fetcher)
        await first.invalidate()

        entry = await RequestCache(store).load(KEY_A, fetcher)

        assert entry.data == ["a"]
        assert isinstance(entry.error, NetworkError)

    @pytest.mark.asyncio
    async def test_expired_data_is_refetched(self) -> None:
        store = CacheStore(ttl=30.0)
        fetcher = AsyncMock(side_effect=[["a"], ["a", "b"]])
        await RequestCache(store).load(KEY_A, fetcher)
        await RequestCache(store).load(KEY_A, fetcher)
        assert fetcher.await_count == 1

        slot = store.get(KEY_A)
        assert slot is not None
        slot.fetched_at -= 60.0
        entry = await RequestCache(store).load(KEY_A, fetcher)

        assert fetcher.await_count == 2
        assert entry.data == ["a", "b"]

    @pytest.mark.asyncio
    async def test_settled_entries_are_evicted_oldest_first(self) -> None:
        store = CacheStore(max_entries=2)
        cache = RequestCache(store)
        for key in (KEY_A, KEY_B, KEY_C):
            await cache.load(key, AsyncMock(return_value=[key]))

        assert len(store) == 2
        assert KEY_A not in store
        assert KEY_B in store
        assert KEY_C in store

    @pytest.mark.asyncio
    async def test_reused_entry_is_kept_over_older_ones(self) -> None:
        store = CacheStore(max_entries=2)
        cache = RequestCache(store)
        await cache.load(KEY_A, AsyncMock(return_value=["a"]))
        await cache.load(KEY_B, AsyncMock(return_value=["b"]))
        await cache.load(KEY_A, AsyncMock(return_value=["unused"]))
        await cache.load(KEY_C, AsyncMock(return_value=["c"]))

        assert KEY_A in store
        assert KEY_B not in store

    @pytest.mark.asyncio
    async def test_in_flight_entries_are_not_evicted(self) -> None:
        store = CacheStore(max_entries=1)
        gate = asyncio.Event()

        async def slow() -> list[str]:
            await gate.wait()
            return ["a"]

        slow_task = RequestCache(store).request(KEY_A, slow)
        await RequestCache(store).load(KEY_B, AsyncMock(return_value=["b"]))

        assert KEY_A in store
        assert KEY_B in store

        gate.set()
        assert slow_task is not None
        await slow_task

    @pytest.mark.asyncio
    async def test_invalidate_drops_other_settled_keys(self) -> None:
        store = CacheStore()
        cache = RequestCache(store)
        await cache.load(KEY_A, AsyncMock(return_value=["a"]))
        fetcher = AsyncMock(side_effect=[["b"], ["b2"]])
        await cache.load(KEY_B, fetcher)

        entry = await cache.invalidate()

        assert entry is not None
        assert entry.data == ["b2"]
        assert KEY_A not in store
        assert KEY_B in store
