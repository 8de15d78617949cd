"""Tests for VirtualDataSource index mapping."""

from taskview.core.data_source import VirtualDataSource


def test_identity_mapping_without_filter():
    source = VirtualDataSource(list(range(10)))
    assert source.get_total_count() == 10
    assert source.get_item(3) == 3
    assert source.get_range(2, 3) == [2, 3, 4]


def test_filter_builds_index_map():
    source = VirtualDataSource(list(range(10)))
    source.set_filter(lambda n: n % 2 == 0)
    assert len(source) == 5
    assert source.get_item(1) == 2
    assert source.get_range(1, 3) == [2, 4, 6]
    assert source.get_all() == [0, 2, 4, 6, 8]


def test_clearing_filter_restores_identity():
    source = VirtualDataSource(list(range(5)))
    source.set_filter(lambda n: n > 2)
    source.set_filter(None)
    assert source.get_all() == [0, 1, 2, 3, 4]
    assert source.predicate is None


def test_out_of_range_reads_return_sentinels():
    source = VirtualDataSource(["a", "b"])
    assert source.get_item(-1) is None
    assert source.get_item(2) is None
    assert source.get_range(5, 3) == []
    assert source.get_range(-1, 3) == []
    assert source.get_range(0, 0) == []
    assert source.get_range(1, 10) == ["b"]


def test_empty_source():
    source = VirtualDataSource()
    assert source.get_total_count() == 0
    assert source.get_item(0) is None
    assert source.get_range(0, 5) == []


def test_set_items_reapplies_predicate():
    source = VirtualDataSource([1, 2, 3])
    source.set_filter(lambda n: n > 1)
    source.set_items([0, 5, 6, 1])
    assert source.get_all() == [5, 6]
    assert source.backing_count == 4


def test_version_changes_on_every_change():
    source = VirtualDataSource([1])
    seen = [source.version]
    source.set_items([1, 2])
    seen.append(source.version)
    source.set_filter(lambda n: True)
    seen.append(source.version)
    source.set_filter(None)
    seen.append(source.version)
    assert seen == sorted(set(seen))


def test_versions_are_unique_across_sources():
    first = VirtualDataSource([1])
    second = VirtualDataSource([2])
    first.set_items([3])
    second.set_items([4])
    assert first.version != second.version
