"""Process-wide TTL cache and in-flight request deduplication.

Both stores are shared across concurrent queries. Entries are only ever
inserted, read, or removed whole, so no locking is needed beyond the event
loop's single-threaded scheduling.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from cachetools import TLRUCache

from ..settings import (
    CACHE_MAX_ENTRIES,
    IN_FLIGHT_MAX_AGE_SECONDS,
    SEARCH_RESULTS_TTL_SECONDS,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value and its lifetime (monotonic clock seconds)."""

    data: T
    stored_at: float
    expires_at: float


def _entry_expiry(_key: str, entry: CacheEntry, _now: float) -> float:
    return entry.expires_at


class TTLCache:
    """
    In-memory key-value cache with per-entry TTL.

    Expiry is lazy: a ``get`` on an expired entry removes it and returns
    None. Every miss runs ``clean_expired``, which sweeps everything past its
    TTL to bound memory; ``max_entries`` caps the store, evicting
    the least recently used entry first.

    Usage:
        cache = TTLCache()
        cache.set("search:keyword:ml", result, ttl=1800)
        cached = cache.get("search:keyword:ml")
    """

    def __init__(
        self,
        default_ttl: float = SEARCH_RESULTS_TTL_SECONDS,
        max_entries: int = CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            default_ttl: TTL in seconds used when ``set`` gets none
            max_entries: Upper bound on stored entries
            clock: Monotonic time source (injectable for tests)
        """
        self.default_ttl = default_ttl
        self._clock = clock
        self._store: TLRUCache = TLRUCache(
            maxsize=max_entries,
            ttu=_entry_expiry,
            timer=clock,
        )

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or expired."""
        entry = self._store.get(key)
        if entry is None:
            # Sweep on miss, which also drops this key if it had expired
            self.clean_expired()
            return None
        return entry.data

    def get_entry(self, key: str) -> CacheEntry | None:
        """Return the full entry (with timestamps), or None."""
        return self._store.get(key)

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value for ``ttl`` seconds (default TTL if omitted)."""
        now = self._clock()
        ttl = self.default_ttl if ttl is None else ttl
        self._store[key] = CacheEntry(data=value, stored_at=now, expires_at=now + ttl)

    def delete(self, key: str) -> None:
        """Remove a key if present."""
        self._store.pop(key, None)

    def clear(self) -> None:
        """Remove every entry."""
        self._store.clear()

    def clean_expired(self) -> int:
        """Remove every expired entry. Returns how many were removed."""
        removed = len(self._store.expire())
        if removed:
            logger.debug(f"Cleaned {removed} expired cache entries")
        return removed

    def __len__(self) -> int:
        return len(self._store)


@dataclass
class InFlightRequest:
    """A pending producer shared by identical concurrent calls."""

    key: str
    task: asyncio.Task
    started_at: float


class InFlightDeduplicator:
    """
    Collapses concurrent identical requests into one underlying call.

    While a producer for a key is running, later callers with the same key
    await the same task instead of invoking their own producer. The entry is
    removed as soon as the task settles (success or failure), and entries
    older than ``max_age`` are swept in case a task never reported back.

    Usage:
        in_flight = InFlightDeduplicator()
        result = await in_flight.deduplicate(key, lambda: fetch(query))
    """

    def __init__(
        self,
        max_age: float = IN_FLIGHT_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_age = max_age
        self._clock = clock
        self._pending: dict[str, InFlightRequest] = {}

    async def deduplicate(self, key: str, producer: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``producer`` unless an identical call is already in flight.

        Args:
            key: Request identity
            producer: Zero-argument callable returning an awaitable

        Returns:
            The producer's result (shared with every concurrent caller)
        """
        self.sweep()

        request = self._pending.get(key)
        if request is not None:
            logger.debug(f"Joining in-flight request: {key}")
        else:
            task = asyncio.ensure_future(producer())
            request = InFlightRequest(key=key, task=task, started_at=self._clock())
            self._pending[key] = request
            task.add_done_callback(lambda _t, r=request: self._release(r))

        # One caller going away must not cancel the shared task
        return await asyncio.shield(request.task)

    def _release(self, request: InFlightRequest) -> None:
        if self._pending.get(request.key) is request:
            del self._pending[request.key]

    def sweep(self) -> int:
        """Forget requests older than ``max_age``. Returns how many."""
        cutoff = self._clock() - self.max_age
        stale = [key for key, req in self._pending.items() if req.started_at < cutoff]
        for key in stale:
            logger.warning(f"Dropping stale in-flight request: {key}")
            del self._pending[key]
        return len(stale)

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    def clear(self) -> None:
        """Forget all pending requests (tasks keep running)."""
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._pending)
