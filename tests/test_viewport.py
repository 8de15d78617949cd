"""Tests for VirtualScrollingViewport — clamping, visibility diffs, rendering."""

import pytest

from conftest import collect
from taskview.core.data_source import VirtualDataSource
from taskview.core.viewport import VirtualScrollingViewport
from taskview.domain.record import TaskRecord
from taskview.events.viewport_events import ItemVisibilityChangedEvent, ViewportScrolledEvent


def make_records(count):
    return [TaskRecord(id=i, description=f"task {i}") for i in range(count)]


@pytest.fixture
def hundred():
    return VirtualDataSource(make_records(100))


@pytest.fixture
def viewport(hundred, event_bus):
    return VirtualScrollingViewport(80, 24, data_source=hundred, event_bus=event_bus)


class TestScrolling:
    def test_scroll_to_clamps_to_last_page(self, viewport):
        assert viewport.scroll_to(90) is True
        assert viewport.scroll_position == 76
        assert [r.id for r in viewport.visible_items] == list(range(76, 100))

    @pytest.mark.parametrize("target, expected", [(-5, 0), (0, 0), (10, 10), (76, 76), (1000, 76)])
    def test_clamp(self, viewport, target, expected):
        viewport.scroll_to(target)
        assert viewport.scroll_position == expected

    def test_short_data_source_never_scrolls(self):
        vp = VirtualScrollingViewport(80, 24, data_source=VirtualDataSource(make_records(10)))
        assert vp.max_scroll_position == 0
        assert vp.scroll_to(5) is False
        assert vp.scroll_position == 0
        assert len(vp.visible_items) == 10

    def test_scroll_by_and_pages(self, viewport):
        viewport.scroll_by(5)
        assert viewport.scroll_position == 5
        viewport.page_down()
        assert viewport.scroll_position == 29
        viewport.page_up()
        viewport.page_up()
        assert viewport.scroll_position == 0
        viewport.scroll_to_bottom()
        assert viewport.scroll_position == 76
        viewport.scroll_to_top()
        assert viewport.scroll_position == 0

    def test_ensure_visible(self, viewport):
        assert viewport.ensure_visible(10) is False
        assert viewport.ensure_visible(30) is True
        assert viewport.scroll_position == 7
        assert viewport.ensure_visible(3) is True
        assert viewport.scroll_position == 3
        assert viewport.ensure_visible(500) is False


class TestEvents:
    def test_scrolled_event_payload(self, viewport, event_bus):
        scrolled = collect(event_bus, ViewportScrolledEvent)
        viewport.scroll_to(90)
        assert len(scrolled) == 1
        e = scrolled[0]
        assert (e.old_position, e.new_position, e.max_position, e.total_items) == (0, 76, 76, 100)

    def test_no_event_when_position_unchanged(self, viewport, event_bus):
        scrolled = collect(event_bus, ViewportScrolledEvent)
        viewport.scroll_to(0)
        viewport.scroll_to(-10)
        assert scrolled == []

    def test_visibility_diff(self, viewport, event_bus):
        changes = collect(event_bus, ItemVisibilityChangedEvent)
        viewport.scroll_by(2)
        assert len(changes) == 1
        assert sorted(changes[0].newly_visible) == ["24", "25"]
        assert sorted(changes[0].newly_invisible) == ["0", "1"]
        assert changes[0].total_visible == 24

    def test_records_without_identity_are_diffed_separately(self, event_bus):
        first = TaskRecord(description="same")
        second = TaskRecord(description="same")
        other = TaskRecord(id=9, description="other")
        vp = VirtualScrollingViewport(
            80, 2, data_source=VirtualDataSource([first, second, other]), event_bus=event_bus
        )
        changes = collect(event_bus, ItemVisibilityChangedEvent)
        vp.scroll_by(1)
        assert len(changes) == 1
        assert changes[0].newly_visible == ["9"]
        assert changes[0].newly_invisible == [id(first)]

    def test_shared_keys_are_counted(self, event_bus):
        records = [
            TaskRecord(id=1, description="a", project="work"),
            TaskRecord(id=2, description="b", project="work"),
            TaskRecord(id=3, description="c", project="home"),
        ]
        vp = VirtualScrollingViewport(
            80, 2, data_source=VirtualDataSource(records), event_bus=event_bus, key_fn=lambda r: r.project
        )
        changes = collect(event_bus, ItemVisibilityChangedEvent)
        vp.scroll_by(1)
        assert changes[0].newly_visible == ["home"]
        assert changes[0].newly_invisible == ["work"]
        assert vp.state.visible_keys == frozenset({"work", "home"})

    def test_refresh_without_change_publishes_nothing(self, viewport, event_bus):
        changes = collect(event_bus, ItemVisibilityChangedEvent)
        viewport.refresh()
        assert changes == []

    def test_swapping_data_source_recomputes_visibility(self, viewport, event_bus):
        viewport.scroll_to(50)
        scrolled = collect(event_bus, ViewportScrolledEvent)
        changes = collect(event_bus, ItemVisibilityChangedEvent)

        viewport.set_data_source(VirtualDataSource(make_records(30)))

        assert viewport.scroll_position == 6
        assert scrolled[0].new_position == 6
        assert len(changes) == 1
        assert changes[0].total_visible == 24

    def test_filter_shrinking_source_reclamps_on_refresh(self, hundred, viewport):
        viewport.scroll_to_bottom()
        hundred.set_filter(lambda r: r.id < 5)
        viewport.refresh()
        assert viewport.scroll_position == 0
        assert [r.id for r in viewport.visible_items] == [0, 1, 2, 3, 4]


class TestRendering:
    def test_render_is_exactly_height_by_width(self):
        vp = VirtualScrollingViewport(60, 10, data_source=VirtualDataSource(make_records(3)))
        lines = vp.render()
        assert len(lines) == 10
        assert all(len(line) == 60 for line in lines)
        assert "task 0" in lines[0]
        assert lines[3:] == [" " * 60] * 7

    def test_multi_line_formatter_is_cut_to_height(self):
        class TwoLines:
            def format_record(self, record, width):
                return [f"{record.id} a", f"{record.id} b"]

        vp = VirtualScrollingViewport(
            10, 5, data_source=VirtualDataSource(make_records(10)), formatter=TwoLines()
        )
        lines = vp.render()
        assert [line.rstrip() for line in lines] == ["0 a", "0 b", "1 a", "1 b", "2 a"]

    def test_long_lines_are_truncated(self):
        class Long:
            def format_record(self, record, width):
                return ["x" * 100]

        vp = VirtualScrollingViewport(8, 1, data_source=VirtualDataSource(make_records(1)), formatter=Long())
        assert vp.render() == ["xxxxxxx…"]

    def test_resize_changes_window(self, viewport):
        viewport.scroll_to_bottom()
        viewport.resize(80, 50)
        assert viewport.scroll_position == 50
        assert len(viewport.render()) == 50

    @pytest.mark.parametrize("width, height", [(0, 10), (10, 0), (-1, 5)])
    def test_invalid_dimensions(self, width, height):
        with pytest.raises(ValueError):
            VirtualScrollingViewport(width, height)

    def test_state_snapshot(self, viewport):
        viewport.scroll_to(10)
        state = viewport.state
        assert state.scroll_position == 10
        assert state.max_scroll_position == 76
        assert state.total_items == 100
        assert len(state.visible_keys) == 24
