"""
TTL-based cache store with bounded size and optional persistence.

This module provides the store every data-access path goes through before
reaching the remote document database: fixed time-to-live expiry, a
frequency/recency eviction score when the store is full, regex pattern
invalidation, hit/miss statistics, a periodic expiry sweep and best-effort
mirroring to a durable medium.
"""

import asyncio
import re
import threading
import time
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar, Union

from lotto_cache.core.exceptions import InvalidPatternError, ValidationError
from lotto_cache.types.models import CacheEntry, CacheOperation, CacheStats
from lotto_cache.utils.cache.persistence import PersistenceAdapter
from lotto_cache.utils.logging import StructuredLogger, timed

T = TypeVar('T')

# Sentinel for "not in cache"; None is a cacheable payload
_MISSING = object()

# Resolves an async in-flight fetch whose leader was cancelled; waiters look up again
_RETRY = object()

DEFAULT_CLEANUP_INTERVAL = 300  # 5 minutes


class _Flight:
    """An in-progress fetch that concurrent misses for the same key wait on."""

    __slots__ = ('event', 'value', 'error')

    def __init__(self) -> None:
        self.event = threading.Event()
        self.value: Any = None
        self.error: Optional[BaseException] = None

    def resolve(self, value: Any) -> None:
        self.value = value
        self.event.set()

    def fail(self, error: BaseException) -> None:
        self.error = error
        self.event.set()

    def wait(self) -> Any:
        self.event.wait()
        if self.error is not None:
            raise self.error
        return self.value


class CacheStore(Generic[T]):
    """
    Thread-safe TTL cache store for one namespace.

    Attributes:
        name (str): Namespace name, used in logs and debug output
        max_size (int): Maximum number of entries the store can hold
        default_ttl_minutes (float): TTL used when ``set`` gets none
        persistent (bool): Whether entries are mirrored to ``adapter``
        cleanup_interval (float): Seconds between expiry sweeps, 0 disables
        _entries (Dict[str, CacheEntry]): Insertion-ordered entries
        _lock (threading.RLock): Serializes every store operation
        _stats (CacheStats): Hit/miss counters
    """

    def __init__(
        self,
        name: str,
        max_size: int = 100,
        default_ttl_minutes: float = 5,
        persistent: bool = False,
        adapter: Optional[PersistenceAdapter] = None,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        clock: Callable[[], float] = time.time,
        logger: Optional[StructuredLogger] = None
    ):
        """
        Initialize a new cache store.

        Args:
            name: Namespace name
            max_size: Maximum number of entries
            default_ttl_minutes: Default time-to-live in minutes
            persistent: Mirror entries through ``adapter``
            adapter: Persistence adapter for this namespace
            cleanup_interval: Seconds between background expiry sweeps (0 disables)
            clock: Source of the current time in epoch seconds
            logger: Logger instance (optional)

        Raises:
            ValueError: If max_size or default_ttl_minutes is not positive
        """
        if max_size <= 0:
            raise ValueError("Max size must be positive")
        if default_ttl_minutes <= 0:
            raise ValueError("Default TTL must be positive")

        self.name = name
        self.max_size = max_size
        self.default_ttl_minutes = default_ttl_minutes
        self.persistent = persistent
        self.adapter = adapter if persistent else None
        self.cleanup_interval = cleanup_interval
        self.logger = logger or StructuredLogger(f"cache_store.{name}")

        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._lock = threading.RLock()
        self._stats = CacheStats()
        self._in_flight: Dict[str, _Flight] = {}
        self._async_in_flight: Dict[str, 'asyncio.Future[Any]'] = {}

        self._stop_event = threading.Event()
        self._cleanup_thread: Optional[threading.Thread] = None

        if self.adapter is not None:
            self._entries.update(self.adapter.load(self._clock(), limit=self.max_size))
            self.logger.debug(
                "Reloaded persisted cache entries",
                namespace=self.name,
                loaded=len(self._entries),
                operation=CacheOperation.LOAD.name
            )
        self._stats.recompute(len(self._entries))

        if self.cleanup_interval > 0:
            self._start_cleanup_thread()

    # Background sweep

    def _start_cleanup_thread(self) -> None:
        self._cleanup_thread = threading.Thread(
            target=self._cleanup_loop,
            daemon=True,
            name=f"CacheCleanup-{self.name}"
        )
        self._cleanup_thread.start()

    def _cleanup_loop(self) -> None:
        while not self._stop_event.wait(self.cleanup_interval):
            try:
                self.cleanup()
            except Exception as e:
                # Keep the sweeper alive
                self.logger.error("Error in cache cleanup", error=e, namespace=self.name)

    @property
    def cleanup_running(self) -> bool:
        return self._cleanup_thread is not None and self._cleanup_thread.is_alive()

    # Internals, called with the lock held

    def _now(self) -> float:
        return self._clock()

    def _remove(self, keys: List[str]) -> None:
        for key in keys:
            del self._entries[key]
        if self.adapter is not None and keys:
            self.adapter.remove_many(keys)

    def _lookup(self, key: str, count: bool = True) -> Any:
        """``count=False`` repeats a lookup already counted for this call."""
        if count:
            self._stats.total_requests += 1
        entry = self._entries.get(key)
        now = self._now()

        if entry is None or entry.is_expired(now):
            if entry is not None:
                self._remove([key])
            if count:
                self._stats.misses += 1
            self._stats.recompute(len(self._entries))
            return _MISSING

        entry.touch(now)
        if count:
            self._stats.hits += 1
            self._stats.saved_requests += 1
        self._stats.recompute(len(self._entries))
        return entry.data

    def _evict_one(self) -> Optional[str]:
        """Drop the entry with the lowest frequency/recency score."""
        if not self._entries:
            return None

        now = self._now()
        victim = None
        lowest = float('inf')
        for key, entry in self._entries.items():
            score = entry.eviction_score(now)
            # Strict comparison keeps the first-inserted entry on ties
            if score < lowest:
                lowest = score
                victim = key

        self._remove([victim])
        self.logger.debug(
            "Evicted cache entry",
            namespace=self.name,
            cache_key=victim,
            score=round(lowest, 3),
            operation=CacheOperation.EVICT.name
        )
        return victim

    # Public API

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a value from the store.

        Every call counts as one request. An expired entry is removed and
        reported as a miss.

        Args:
            key: Cache key to retrieve
            default: Returned on a miss

        Returns:
            Cached payload, or ``default`` if missing or expired
        """
        with self._lock:
            value = self._lookup(key)
        return default if value is _MISSING else value

    def set(self, key: str, data: T, ttl_minutes: Optional[float] = None) -> None:
        """
        Store a value.

        When the store is full and ``key`` is new, one entry is evicted
        first, so the size never exceeds ``max_size``.

        Args:
            key: Cache key
            data: Payload to cache
            ttl_minutes: Time-to-live in minutes (uses default_ttl_minutes if None)

        Raises:
            ValidationError: If ttl_minutes is not positive
        """
        ttl = self.default_ttl_minutes if ttl_minutes is None else ttl_minutes
        if ttl <= 0:
            raise ValidationError(
                "TTL must be positive",
                field_name="ttl_minutes",
                actual_value=ttl_minutes
            )

        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict_one()

            entry = CacheEntry.create(data, self._now(), ttl)
            self._entries[key] = entry
            self._stats.recompute(len(self._entries))

            if self.adapter is not None:
                self.adapter.persist(key, entry)

    def has(self, key: str) -> bool:
        """Check that an unexpired entry exists, without touching stats or access data."""
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._now())

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries.keys())

    def delete(self, key: str) -> bool:
        """
        Remove a single entry and its persisted mirror.

        Returns:
            True if the key was present
        """
        with self._lock:
            if key not in self._entries:
                return False
            self._remove([key])
            self._stats.recompute(len(self._entries))
        self.logger.debug(
            "Deleted cache entry",
            namespace=self.name,
            cache_key=key,
            operation=CacheOperation.DELETE.name
        )
        return True

    def clear(self) -> None:
        """Remove every entry, reset statistics and clear this store's persisted mirror."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._stats = CacheStats()
            if self.adapter is not None:
                self.adapter.clear()
        self.logger.debug(
            "Cleared cache store",
            namespace=self.name,
            removed=count,
            operation=CacheOperation.CLEAR.name
        )

    @timed("cache.invalidate_pattern")
    def invalidate_pattern(self, pattern: Union[str, re.Pattern]) -> int:
        """
        Remove every key matching a regular expression.

        Keys match when the pattern is found anywhere in them
        (``re.search``); anchor with ``^``/``$`` for prefix or suffix matches.

        Args:
            pattern: Regex source or compiled pattern

        Returns:
            Number of entries removed

        Raises:
            InvalidPatternError: If a string pattern does not compile
        """
        if isinstance(pattern, str):
            try:
                regex = re.compile(pattern)
            except re.error as e:
                raise InvalidPatternError(
                    f"Invalid invalidation pattern {pattern!r}: {e}",
                    pattern=pattern,
                    namespace=self.name
                ) from e
        else:
            regex = pattern

        with self._lock:
            matched = [key for key in self._entries if regex.search(key)]
            self._remove(matched)
            self._stats.recompute(len(self._entries))

        if matched:
            self.logger.debug(
                "Invalidated cache entries",
                namespace=self.name,
                pattern=regex.pattern,
                removed=len(matched),
                operation=CacheOperation.INVALIDATE.name
            )
        return len(matched)

    @timed("cache.cleanup")
    def cleanup(self) -> int:
        """
        Remove expired entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._now()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            self._remove(expired)
            self._stats.recompute(len(self._entries))

        if expired:
            self.logger.debug(
                "Swept expired cache entries",
                namespace=self.name,
                removed=len(expired),
                operation=CacheOperation.CLEANUP.name
            )
        return len(expired)

    def destroy(self) -> None:
        """
        Stop the cleanup thread and drop in-memory state.

        The persisted mirror is kept so a restarted process can reload it.
        """
        self._stop_event.set()
        thread = self._cleanup_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)
        self._cleanup_thread = None

        with self._lock:
            self._entries.clear()
            self._stats = CacheStats()

    def get_stats(self) -> CacheStats:
        """Snapshot of the current statistics."""
        with self._lock:
            return self._stats.copy()

    def get_debug_info(self) -> Dict[str, Any]:
        """
        Raw view of the store for operational tooling.

        Returns:
            Dict with every entry (including expired ones not yet swept),
            the statistics and the store options
        """
        with self._lock:
            now = self._now()
            entries = [
                {
                    'key': key,
                    'item': entry.to_debug_dict(now),
                    'is_expired': entry.is_expired(now),
                    'score': round(entry.eviction_score(now), 3)
                }
                for key, entry in self._entries.items()
            ]
            return {
                'name': self.name,
                'entries': entries,
                'stats': self._stats.to_dict(),
                'options': {
                    'max_size': self.max_size,
                    'default_ttl_minutes': self.default_ttl_minutes,
                    'persistent': self.persistent,
                    'cleanup_interval': self.cleanup_interval,
                    'storage_prefix': self.adapter.prefix if self.adapter is not None else None
                }
            }

    # Cache-aside helpers

    def get_or_compute(
        self,
        key: str,
        fetcher: Callable[[], T],
        ttl_minutes: Optional[float] = None
    ) -> T:
        """
        Return the cached value or fetch, store and return it.

        Concurrent misses for the same key share a single ``fetcher`` call:
        the first caller fetches, the others block until it finishes and
        receive its result or its exception. Each call counts one request.

        Args:
            key: Cache key
            fetcher: Zero-argument callable performing the expensive fetch
            ttl_minutes: TTL for the stored result
        """
        with self._lock:
            value = self._lookup(key)
            if value is not _MISSING:
                return value
            flight = self._in_flight.get(key)
            leader = flight is None
            if leader:
                flight = _Flight()
                self._in_flight[key] = flight

        if not leader:
            return flight.wait()

        try:
            value = fetcher()
            with self._lock:
                self.set(key, value, ttl_minutes)
                self._in_flight.pop(key, None)
        except BaseException as e:
            with self._lock:
                self._in_flight.pop(key, None)
            flight.fail(e)
            raise

        flight.resolve(value)
        return value

    async def aget_or_compute(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl_minutes: Optional[float] = None
    ) -> T:
        """
        Coroutine version of ``get_or_compute`` for async fetchers.

        Tasks missing the same key while a fetch is pending await that
        fetch instead of starting another one. If the fetching task is
        cancelled, the waiting tasks look the key up again and one of them
        fetches with its own ``fetcher``.
        """
        first_pass = True
        while True:
            with self._lock:
                value = self._lookup(key, count=first_pass)
            first_pass = False
            if value is not _MISSING:
                return value

            pending = self._async_in_flight.get(key)
            if pending is not None:
                result = await asyncio.shield(pending)
                if result is _RETRY:
                    continue
                return result

            pending = asyncio.get_running_loop().create_future()
            self._async_in_flight[key] = pending
            try:
                value = await fetcher()
                self.set(key, value, ttl_minutes)
            except asyncio.CancelledError:
                self._async_in_flight.pop(key, None)
                pending.set_result(_RETRY)
                raise
            except Exception as e:
                self._async_in_flight.pop(key, None)
                pending.set_exception(e)
                # Mark retrieved so an unawaited future does not log a warning
                pending.exception()
                raise

            self._async_in_flight.pop(key, None)
            pending.set_result(value)
            return value

    def __repr__(self) -> str:
        return f"CacheStore(name={self.name!r}, size={len(self)}, max_size={self.max_size})"
