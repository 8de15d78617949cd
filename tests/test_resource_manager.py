"""Tests for MemoryPool and ResourceManager."""

import logging
from unittest.mock import Mock

import pytest

from conftest import collect
from taskview.errors import PoolExhaustedError, ResourceError, ResourceNotFoundError
from taskview.events.performance_events import ResourcesCleanedUpEvent
from taskview.services.resource_manager import MemoryPool, ResourceManager


@pytest.fixture
def manager(event_bus, clock):
    mgr = ResourceManager(event_bus=event_bus, clock=clock)
    yield mgr
    mgr.shutdown()


class TestMemoryPool:
    def test_preallocates(self):
        pool = MemoryPool("rows", item_size=64, initial_size=3, max_size=5)
        stats = pool.stats()
        assert (stats.allocated, stats.available, stats.in_use) == (3, 3, 0)

    def test_buffers_have_item_size(self):
        pool = MemoryPool("rows", item_size=16)
        assert len(pool.checkout()) == 16

    def test_exhaustion(self):
        pool = MemoryPool("rows", item_size=8, max_size=2)
        pool.checkout()
        pool.checkout()
        with pytest.raises(PoolExhaustedError):
            pool.checkout()

    def test_released_buffers_are_reused_and_zeroed(self):
        pool = MemoryPool("rows", item_size=4, max_size=1)
        buf = pool.checkout()
        buf[:] = b"abcd"
        pool.release(buf)
        again = pool.checkout()
        assert again is buf
        assert bytes(again) == b"\x00" * 4

    def test_double_release_is_rejected(self):
        pool = MemoryPool("rows", item_size=4)
        buf = pool.checkout()
        pool.release(buf)
        with pytest.raises(ResourceError):
            pool.release(buf)

    def test_foreign_buffer_is_rejected(self):
        pool = MemoryPool("rows", item_size=4)
        with pytest.raises(ResourceError):
            pool.release(bytearray(4))

    def test_borrow_returns_on_error(self):
        pool = MemoryPool("rows", item_size=4, max_size=1)
        with pytest.raises(KeyError):
            with pool.borrow():
                raise KeyError("x")
        assert pool.stats().in_use == 0
        with pool.borrow() as buf:
            assert len(buf) == 4

    def test_clear_keeps_checked_out_buffers(self):
        pool = MemoryPool("rows", item_size=4, initial_size=3, max_size=3)
        held = pool.checkout()
        assert pool.clear() == 2
        stats = pool.stats()
        assert (stats.allocated, stats.available, stats.in_use) == (1, 0, 1)
        pool.release(held)

    def test_checkout_count(self):
        pool = MemoryPool("rows", item_size=4)
        with pool.borrow():
            pass
        with pool.borrow():
            pass
        assert pool.stats().checkouts == 2

    @pytest.mark.parametrize(
        "kwargs", [dict(item_size=0), dict(item_size=4, max_size=0), dict(item_size=4, initial_size=21)]
    )
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            MemoryPool("bad", **kwargs)


class TestPools:
    def test_create_and_lookup(self, manager):
        pool = manager.create_pool("lines", 32, initial_size=2)
        assert manager.get_pool("lines") is pool
        assert manager.get_pool("missing") is None

    def test_duplicate_pool(self, manager):
        manager.create_pool("lines", 32)
        with pytest.raises(ResourceError):
            manager.create_pool("lines", 64)

    def test_checkout_through_manager(self, manager):
        manager.create_pool("lines", 32, max_size=1)
        buf = manager.checkout("lines")
        with pytest.raises(PoolExhaustedError):
            manager.checkout("lines")
        manager.release("lines", buf)
        assert manager.pool_stats()["lines"].available == 1

    def test_unknown_pool(self, manager):
        with pytest.raises(ResourceNotFoundError):
            manager.checkout("nope")

    def test_clear_pools(self, manager):
        manager.create_pool("a", 8, initial_size=2)
        manager.create_pool("b", 8, initial_size=3)
        assert manager.clear_pools() == 5


class TestTrackedResources:
    def test_cleanup_only_after_idle_period(self, manager, event_bus, clock):
        cleaned = collect(event_bus, ResourcesCleanedUpEvent)
        disposer = Mock()
        rid = manager.create_resource(lambda: "handle", disposer=disposer, name="h")
        assert manager.get_resource(rid) == "handle"

        assert manager.cleanup_unused(30) == 0
        manager.mark_unused(rid)
        clock.advance(10)
        assert manager.cleanup_unused(30) == 0
        clock.advance(20)
        assert manager.cleanup_unused(30) == 1

        disposer.assert_called_once_with("handle")
        assert manager.get_resource(rid) is None
        assert [e.count for e in cleaned] == [1]

    def test_mark_used_protects(self, manager, clock):
        rid = manager.create_resource(object, disposer=Mock())
        manager.mark_unused(rid)
        manager.mark_used(rid)
        clock.advance(100)
        assert manager.cleanup_unused() == 0
        assert manager.resource_count() == 1

    def test_no_event_when_nothing_cleaned(self, manager, event_bus):
        cleaned = collect(event_bus, ResourcesCleanedUpEvent)
        manager.cleanup_unused()
        assert cleaned == []

    def test_default_disposer_closes(self, manager):
        handle = Mock()
        rid = manager.create_resource(lambda: handle)
        assert manager.dispose(rid) is True
        handle.close.assert_called_once_with()
        assert manager.dispose(rid) is False

    def test_disposer_failure_is_logged(self, manager, caplog):
        rid = manager.create_resource(object, disposer=Mock(side_effect=OSError("busy")), name="sock")
        manager.create_resource(object, disposer=Mock())
        with caplog.at_level(logging.ERROR):
            assert manager.dispose_all() == 2
        assert manager.resource_count() == 0
        assert any(rid in r.getMessage() for r in caplog.records)

    def test_unknown_resource(self, manager):
        with pytest.raises(ResourceNotFoundError):
            manager.mark_unused("missing")

    def test_shutdown_disposes_everything(self, event_bus, clock):
        manager = ResourceManager(event_bus, clock=clock)
        disposer = Mock()
        manager.create_resource(object, disposer=disposer)
        manager.start_cleanup_timer(interval=60)
        manager.shutdown()
        disposer.assert_called_once()
        assert manager.resource_count() == 0
