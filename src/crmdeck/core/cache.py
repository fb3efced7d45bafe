"""
Request-keyed data cache for resource views.

Deduplicates identical lookups, keeps the last good value visible while a new
key loads, and supports explicit invalidation.

Two layers:

- ``CacheStore`` holds the slots. It is keyed only by the fetch key, so it
  can be shared by every viewer of one resource (for example all requests
  served by one router). Identical concurrent loads share one in-flight task.
- ``RequestCache`` is one viewer's window onto a store. It owns the viewer's
  active key and the last good value that viewer has shown.

Key structure::

    (endpoint, search_text, page, per_page, *server_side_params)

Ordering rules:

- Concurrent loads of the same key share one in-flight task.
- Every fetch of a key gets a new generation. A response whose generation
  has been superseded (invalidated while in flight) is dropped.
- A response only ever lands in its own key's slot. A viewer renders the
  slot of its active key, so a slow response for a key it has moved away
  from can never replace what it shows.
- On failure the error is recorded and the previous data is kept.

Usage::

    store = CacheStore(ttl=30.0)
    cache = RequestCache(store)
    entry = await cache.load(key, lambda: execute_plan(plan, adapter))
    ...
    await cache.invalidate()   # re-fetch the active key once
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

CacheKey = tuple[Hashable, ...]
Fetcher = Callable[[], Awaitable[Any]]

DEFAULT_MAX_ENTRIES = 64


@dataclass(frozen=True)
class CacheEntry:
    """Read-only view of one cache slot.

    Attributes:
        data: Latest good value for the key, or the previous key's value
            while the first fetch of this key is pending (``is_stale``).
        is_loading: A fetch is pending and the key has no data of its own.
        is_validating: A fetch is pending (with or without own data).
        error: Error of the latest fetch, if it failed.
        is_stale: ``data`` belongs to a previously active key.
    """

    data: Any = None
    is_loading: bool = False
    is_validating: bool = False
    error: BaseException | None = None
    is_stale: bool = False


@dataclass
class _Slot:
    fetcher: Fetcher
    data: Any = None
    has_data: bool = False
    error: BaseException | None = None
    generation: int = 0
    fetched_at: float = 0.0
    task: asyncio.Task[None] | None = None

    @property
    def in_flight(self) -> bool:
        return self.task is not None and not self.task.done()


class CacheStore:
    """Keyed slots shared by every viewer of one resource.

    Args:
        ttl: Seconds after which settled data is re-fetched on the next
            request. ``None`` keeps data until invalidated.
        max_entries: Settled slots beyond this are evicted oldest first.
            Slots with a fetch in flight are never evicted.
    """

    def __init__(self, ttl: float | None = None, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self.ttl = ttl
        self.max_entries = max_entries
        self._slots: OrderedDict[CacheKey, _Slot] = OrderedDict()

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, key: object) -> bool:
        return key in self._slots

    def get(self, key: CacheKey) -> _Slot | None:
        return self._slots.get(key)

    def ensure(self, key: CacheKey, fetcher: Fetcher) -> _Slot:
        """Return the slot for *key*, fetching it if it has no fresh data."""
        slot = self._slots.get(key)
        if slot is None:
            slot = self._slots[key] = _Slot(fetcher=fetcher)
        else:
            slot.fetcher = fetcher
            self._slots.move_to_end(key)
        if slot.task is None and (not slot.has_data or self._expired(slot)):
            self.start(key, slot)
        self._evict(keep=key)
        return slot

    def start(self, key: CacheKey, slot: _Slot) -> None:
        slot.generation += 1
        slot.task = asyncio.create_task(self._run(key, slot, slot.generation))

    def forget(self, key: CacheKey) -> None:
        if self._slots.pop(key, None) is not None:
            logger.debug("Dropped cache key %s", key)

    def forget_settled(self, keep: CacheKey) -> None:
        """Drop every settled slot except *keep* (after a mutation)."""
        for key in [k for k, s in self._slots.items() if k != keep and not s.in_flight]:
            del self._slots[key]

    def clear(self) -> None:
        self._slots.clear()

    async def wait(self, key: CacheKey) -> None:
        # Loop because an invalidate may replace the task while we wait.
        while True:
            slot = self._slots.get(key)
            task = slot.task if slot is not None else None
            if task is None:
                return
            await asyncio.shield(task)
            slot = self._slots.get(key)
            if slot is None or slot.task is None or slot.task is task:
                return

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _expired(self, slot: _Slot) -> bool:
        return (
            self.ttl is not None
            and slot.has_data
            and time.monotonic() - slot.fetched_at >= self.ttl
        )

    def _evict(self, keep: CacheKey) -> None:
        excess = len(self._slots) - self.max_entries
        if excess <= 0:
            return
        settled = [k for k, s in self._slots.items() if k != keep and not s.in_flight]
        for key in settled[:excess]:
            del self._slots[key]
            logger.debug("Evicted cache key %s", key)

    async def _run(self, key: CacheKey, slot: _Slot, generation: int) -> None:
        try:
            result = await slot.fetcher()
        except Exception as exc:
            self._settle(key, slot, generation, error=exc)
        else:
            self._settle(key, slot, generation, data=result)

    def _settle(
        self,
        key: CacheKey,
        slot: _Slot,
        generation: int,
        *,
        data: Any = None,
        error: BaseException | None = None,
    ) -> None:
        if self._slots.get(key) is not slot or generation != slot.generation:
            logger.debug("Discarding superseded response for %s (gen %d)", key, generation)
            return
        slot.task = None
        if error is not None:
            logger.warning("Fetch failed for %s: %s", key, error)
            slot.error = error
            return
        slot.data = data
        slot.has_data = True
        slot.error = None
        slot.fetched_at = time.monotonic()


class RequestCache:
    """One viewer's window onto a ``CacheStore``.

    Args:
        store: Shared slots; a private store is created when omitted.
    """

    def __init__(self, store: CacheStore | None = None) -> None:
        self.store = store if store is not None else CacheStore()
        self._active_key: CacheKey | None = None
        self._last_good: Any = None
        self._has_last_good = False

    @property
    def active_key(self) -> CacheKey | None:
        return self._active_key

    def read(self, key: CacheKey) -> CacheEntry:
        """Snapshot of *key* without triggering a fetch."""
        slot = self.store.get(key)
        pending = slot is not None and slot.in_flight
        if slot is not None and slot.has_data:
            return CacheEntry(
                data=slot.data,
                is_loading=False,
                is_validating=pending,
                error=slot.error,
            )
        fallback = key == self._active_key and self._has_last_good
        return CacheEntry(
            data=self._last_good if fallback else None,
            is_loading=pending,
            is_validating=pending,
            error=slot.error if slot is not None else None,
            is_stale=fallback,
        )

    def request(self, key: CacheKey, fetcher: Fetcher) -> asyncio.Task[None] | None:
        """Make *key* active and start a fetch unless one is in flight or fresh data exists.

        Returns the in-flight task (if any) without awaiting it.
        """
        self._active_key = key
        slot = self.store.ensure(key, fetcher)
        if slot.task is None:
            self._remember(key)
        else:
            slot.task.add_done_callback(lambda _: self._remember(key))
        return slot.task

    async def load(self, key: CacheKey, fetcher: Fetcher) -> CacheEntry:
        """Activate *key*, fetch it if needed and wait for the result."""
        self.request(key, fetcher)
        await self.store.wait(key)
        self._remember(key)
        return self.read(key)

    async def invalidate(self, key: CacheKey | None = None) -> CacheEntry | None:
        """Re-fetch the active key exactly once.

        Other settled keys are dropped so the next activation fetches fresh.
        Invalidating a key that is not active just forgets its data.
        """
        key = self._active_key if key is None else key
        if key is None:
            return None
        if key != self._active_key:
            self.store.forget(key)
            return None
        slot = self.store.get(key)
        if slot is None:
            return self.read(key)
        self.store.forget_settled(keep=key)
        self.store.start(key, slot)
        await self.store.wait(key)
        self._remember(key)
        return self.read(key)

    def clear(self) -> None:
        self.store.clear()
        self._active_key = None
        self._last_good = None
        self._has_last_good = False

    def _remember(self, key: CacheKey) -> None:
        slot = self.store.get(key)
        if key == self._active_key and slot is not None and slot.has_data:
            self._last_good = slot.data
            self._has_last_good = True
