"""
Tests for the TTL cache store.

This module covers statistics, fixed-TTL expiry, eviction, pattern
invalidation and the background sweep of ``CacheStore``.
"""

import re
import time
import unittest

from lotto_cache.core.exceptions import CacheError, InvalidPatternError, ValidationError
from lotto_cache.utils.cache.store import CacheStore

from tests.mocks import FakeClock


def make_store(clock, **kwargs):
    options = {'max_size': 10, 'default_ttl_minutes': 5, 'cleanup_interval': 0}
    options.update(kwargs)
    return CacheStore("test", clock=clock, **options)


class TestCacheStoreBasics(unittest.TestCase):
    """Get, set, has and delete."""

    def setUp(self):
        self.clock = FakeClock()
        self.store = make_store(self.clock)

    def tearDown(self):
        self.store.destroy()

    def test_initialization(self):
        self.assertEqual(self.store.max_size, 10)
        self.assertEqual(self.store.default_ttl_minutes, 5)
        self.assertEqual(len(self.store), 0)
        self.assertFalse(self.store.cleanup_running)

    def test_invalid_options(self):
        with self.assertRaises(ValueError):
            CacheStore("bad", max_size=0, cleanup_interval=0)
        with self.assertRaises(ValueError):
            CacheStore("bad", default_ttl_minutes=0, cleanup_interval=0)

    def test_set_get(self):
        self.store.set("key1", {"total": 1500})

        self.assertEqual(self.store.get("key1"), {"total": 1500})
        self.assertIsNone(self.store.get("nonexistent"))
        self.assertEqual(self.store.get("nonexistent", "fallback"), "fallback")

    def test_none_is_a_cacheable_value(self):
        missing = object()
        self.store.set("empty", None)

        self.assertIsNone(self.store.get("empty", missing))
        self.assertIs(self.store.get("other", missing), missing)

    def test_overwrite_resets_entry(self):
        self.store.set("key1", "old")
        self.store.get("key1")
        self.clock.advance(minutes=3)
        self.store.set("key1", "new")

        item = self.store.get_debug_info()['entries'][0]['item']
        self.assertEqual(item['data'], "new")
        self.assertEqual(item['access_count'], 1)

    def test_non_positive_ttl_rejected(self):
        with self.assertRaises(ValidationError):
            self.store.set("key1", "value", ttl_minutes=0)
        with self.assertRaises(ValidationError):
            self.store.set("key1", "value", ttl_minutes=-1)
        self.assertEqual(len(self.store), 0)

    def test_has_does_not_touch_stats_or_access(self):
        self.store.set("key1", "value")

        self.assertTrue(self.store.has("key1"))
        self.assertTrue("key1" in self.store)
        self.assertFalse(self.store.has("missing"))

        stats = self.store.get_stats()
        self.assertEqual(stats.total_requests, 0)
        self.assertEqual(self.store.get_debug_info()['entries'][0]['item']['access_count'], 1)

    def test_delete(self):
        self.store.set("key1", "value")

        self.assertTrue(self.store.delete("key1"))
        self.assertFalse(self.store.delete("key1"))
        self.assertEqual(len(self.store), 0)

    def test_keys_in_insertion_order(self):
        for key in ("c", "a", "b"):
            self.store.set(key, key)
        self.assertEqual(self.store.keys(), ["c", "a", "b"])


class TestCacheStoreStats(unittest.TestCase):
    """Hit/miss accounting."""

    def setUp(self):
        self.clock = FakeClock()
        self.store = make_store(self.clock)

    def tearDown(self):
        self.store.destroy()

    def test_efficiency(self):
        self.store.set("k", "v")
        for _ in range(3):
            self.store.get("k")
        self.store.get("missing")

        stats = self.store.get_stats()
        self.assertEqual(stats.hits, 3)
        self.assertEqual(stats.misses, 1)
        self.assertEqual(stats.total_requests, 4)
        self.assertEqual(stats.saved_requests, 3)
        self.assertEqual(stats.efficiency, 75)
        self.assertEqual(stats.size, 1)

    def test_each_get_counts_once(self):
        self.store.set("k", "v")
        self.store.get("k")
        self.store.get("missing")

        stats = self.store.get_stats()
        self.assertEqual(stats.total_requests, stats.hits + stats.misses)
        self.assertEqual(stats.total_requests, 2)

    def test_efficiency_rounds_half_up(self):
        self.store.set("k", "v")
        self.store.get("k")
        for _ in range(7):
            self.store.get("missing")

        # 1 of 8 is 12.5%
        self.assertEqual(self.store.get_stats().efficiency, 13)

    def test_empty_store_efficiency(self):
        self.assertEqual(self.store.get_stats().efficiency, 0)

    def test_clear_resets_stats(self):
        self.store.set("a", 1)
        self.store.set("b", 2)
        self.store.get("a")
        self.store.get("missing")

        self.store.clear()

        stats = self.store.get_stats()
        self.assertEqual(len(self.store), 0)
        self.assertEqual(stats.to_dict(), {
            'hits': 0, 'misses': 0, 'total_requests': 0,
            'saved_requests': 0, 'size': 0, 'efficiency': 0
        })

    def test_get_stats_returns_copy(self):
        stats = self.store.get_stats()
        stats.hits = 99
        self.assertEqual(self.store.get_stats().hits, 0)


class TestCacheStoreExpiry(unittest.TestCase):
    """Fixed-TTL expiry."""

    def setUp(self):
        self.clock = FakeClock()
        self.store = make_store(self.clock)

    def tearDown(self):
        self.store.destroy()

    def test_ttl_boundary(self):
        self.store.set("k", "v", ttl_minutes=1)

        self.clock.advance(seconds=59.5)
        self.assertEqual(self.store.get("k"), "v")

        self.clock.advance(seconds=0.5)
        self.assertIsNone(self.store.get("k"))

    def test_expired_get_removes_entry_and_counts_miss(self):
        self.store.set("k", "v", ttl_minutes=1)
        self.clock.advance(minutes=2)

        self.assertIsNone(self.store.get("k"))
        self.assertEqual(len(self.store), 0)
        stats = self.store.get_stats()
        self.assertEqual(stats.misses, 1)
        self.assertEqual(stats.hits, 0)

    def test_reads_do_not_extend_lifetime(self):
        self.store.set("k", "v", ttl_minutes=2)
        self.clock.advance(minutes=1)
        self.assertEqual(self.store.get("k"), "v")

        self.clock.advance(minutes=1)
        self.assertIsNone(self.store.get("k"))

    def test_has_is_expiry_aware(self):
        self.store.set("k", "v", ttl_minutes=1)
        self.clock.advance(minutes=1)
        self.assertFalse(self.store.has("k"))

    def test_cleanup_removes_only_expired(self):
        self.store.set("short", 1, ttl_minutes=1)
        self.store.set("long", 2, ttl_minutes=10)
        self.clock.advance(minutes=5)

        self.assertEqual(self.store.cleanup(), 1)
        self.assertEqual(self.store.keys(), ["long"])
        self.assertEqual(self.store.get_stats().size, 1)

    def test_debug_info_flags_expired_entries(self):
        self.store.set("short", 1, ttl_minutes=1)
        self.store.set("long", 2, ttl_minutes=10)
        self.clock.advance(minutes=5)

        info = self.store.get_debug_info()
        flags = {entry['key']: entry['is_expired'] for entry in info['entries']}
        self.assertEqual(flags, {"short": True, "long": False})
        self.assertEqual(info['options']['max_size'], 10)
        self.assertIn('stats', info)


class TestCacheStoreEviction(unittest.TestCase):
    """Size bound and eviction choice."""

    def setUp(self):
        self.clock = FakeClock()

    def test_frequently_used_entry_survives(self):
        store = make_store(self.clock, max_size=3)
        store.set("A", 1)
        store.set("B", 2)
        store.set("C", 3)
        for _ in range(5):
            store.get("A")

        store.set("D", 4)

        self.assertEqual(len(store), 3)
        self.assertIn("A", store)
        self.assertIn("D", store)
        self.assertFalse(store.has("B") and store.has("C"))

    def test_tie_evicts_first_inserted(self):
        store = make_store(self.clock, max_size=2)
        store.set("first", 1)
        store.set("second", 2)
        store.set("third", 3)

        self.assertEqual(store.keys(), ["second", "third"])

    def test_idle_entry_evicted_before_recent_one(self):
        store = make_store(self.clock, max_size=2, default_ttl_minutes=120)
        store.set("old", 1)
        store.get("old")
        self.clock.advance(minutes=30)
        store.set("fresh", 2)

        # old: 2 - 3.0 = -1.0, fresh: 1
        store.set("new", 3)
        self.assertEqual(store.keys(), ["fresh", "new"])

    def test_overwrite_when_full_does_not_evict(self):
        store = make_store(self.clock, max_size=2)
        store.set("a", 1)
        store.set("b", 2)
        store.set("a", 10)

        self.assertEqual(sorted(store.keys()), ["a", "b"])
        self.assertEqual(store.get("a"), 10)

    def test_size_never_exceeds_max(self):
        store = make_store(self.clock, max_size=5)
        for i in range(50):
            store.set(f"key{i}", i)
            self.assertLessEqual(len(store), 5)


class TestCacheStoreInvalidation(unittest.TestCase):
    """Regex pattern invalidation."""

    def setUp(self):
        self.clock = FakeClock()
        self.store = make_store(self.clock)
        for key in (
            "sales:daily:total:2025-08-14",
            "sales:daily:total:2025-08-15",
            "sales:monthly:total:2025-08",
            "comparison:daily:2025-08-01:2025-08-14",
        ):
            self.store.set(key, 1)

    def tearDown(self):
        self.store.destroy()

    def test_removes_exactly_matching_keys(self):
        removed = self.store.invalidate_pattern(r"^sales:daily:")

        self.assertEqual(removed, 2)
        self.assertEqual(sorted(self.store.keys()), [
            "comparison:daily:2025-08-01:2025-08-14",
            "sales:monthly:total:2025-08",
        ])

    def test_search_semantics(self):
        # Unanchored patterns match anywhere in the key
        self.assertEqual(self.store.invalidate_pattern("2025-08-14"), 2)

    def test_compiled_pattern(self):
        self.assertEqual(self.store.invalidate_pattern(re.compile(r"^comparison:")), 1)

    def test_no_match(self):
        self.assertEqual(self.store.invalidate_pattern(r"^tickets:"), 0)
        self.assertEqual(len(self.store), 4)

    def test_invalid_pattern_raises(self):
        with self.assertRaises(InvalidPatternError) as ctx:
            self.store.invalidate_pattern("sales:[")

        self.assertIsInstance(ctx.exception, CacheError)
        self.assertEqual(ctx.exception.pattern, "sales:[")
        self.assertIsInstance(ctx.exception.__cause__, re.error)
        self.assertEqual(len(self.store), 4)


class TestCacheStoreLifecycle(unittest.TestCase):
    """Background sweep and destroy."""

    def test_cleanup_thread_sweeps_expired_entries(self):
        clock = FakeClock()
        store = CacheStore("sweep", max_size=5, default_ttl_minutes=1, cleanup_interval=0.01, clock=clock)
        try:
            self.assertTrue(store.cleanup_running)
            store.set("k", "v")
            clock.advance(minutes=2)

            deadline = time.monotonic() + 2.0
            while len(store) and time.monotonic() < deadline:
                time.sleep(0.01)

            self.assertEqual(len(store), 0)
        finally:
            store.destroy()

        self.assertFalse(store.cleanup_running)

    def test_destroy_drops_entries_and_stats(self):
        store = make_store(FakeClock())
        store.set("k", "v")
        store.get("k")

        store.destroy()

        self.assertEqual(len(store), 0)
        self.assertEqual(store.get_stats().total_requests, 0)


if __name__ == '__main__':
    unittest.main()
