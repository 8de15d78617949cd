"""Tests for CacheStatsCollector — hit/miss tracking."""

from __future__ import annotations

import threading

import pytest

from taskview.cache.stats import CacheStats, CacheStatsCollector, MemoryUsage


class TestCacheStats:
    def test_empty(self):
        s = CacheStats()
        assert s.total == 0
        assert s.hit_rate == 0.0

    def test_all_hits(self):
        s = CacheStats(hits=10, misses=0)
        assert s.hit_rate == pytest.approx(1.0)

    def test_mixed(self):
        s = CacheStats(hits=7, misses=3)
        assert s.hit_rate == pytest.approx(0.7)

    def test_rounded(self):
        s = CacheStats(hits=2, misses=1)
        assert s.hit_rate == 0.667


class TestMemoryUsage:
    def test_total_mb(self):
        usage = MemoryUsage(total_bytes=1536 * 1024, entry_count=3)
        assert usage.total_mb == 1.5

    def test_empty(self):
        assert MemoryUsage().total_mb == 0.0


class TestCacheStatsCollector:
    def test_record_hit_and_miss(self):
        c = CacheStatsCollector()
        c.record_hit("L1")
        c.record_miss()
        snap = c.snapshot()
        assert (snap.hits, snap.misses) == (1, 1)

    def test_hits_by_level(self):
        c = CacheStatsCollector()
        c.record_hit("L2")
        c.record_hit("L1")
        c.record_hit("L1")
        assert c.hits_by_level() == {"L1": 2, "L2": 1}
        assert c.snapshot().hits == 3

    def test_evictions_ignore_non_positive(self):
        c = CacheStatsCollector()
        c.record_evictions(0)
        c.record_evictions(-3)
        c.record_evictions(2)
        assert c.snapshot().evictions == 2

    def test_reset(self):
        c = CacheStatsCollector()
        c.record_hit("L1")
        c.record_miss()
        c.record_evictions(1)
        c.reset()
        assert c.snapshot() == CacheStats()

    def test_concurrent_updates_are_atomic(self):
        c = CacheStatsCollector()

        def worker():
            for _ in range(1000):
                c.record_hit("L1")
                c.record_miss()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        snap = c.snapshot()
        assert snap.hits == 8000
        assert snap.misses == 8000
