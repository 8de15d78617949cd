"""Tests for record sorters."""

from datetime import date

import pytest

from taskview.core.sorters import DueDateSorter, ProjectSorter, UrgencySorter, create_sorter
from taskview.domain.record import TaskRecord
from taskview.errors import InvalidSorterError


def rec(id, **fields):
    return TaskRecord(id=id, description=f"task {id}", **fields)


def ids(records):
    return [r.id for r in records]


class TestUrgencySorter:
    def test_ascending_and_descending(self):
        records = [rec(1, urgency=3.0), rec(2, urgency=9.0), rec(3, urgency=1.0)]
        assert ids(UrgencySorter().sort(records)) == [3, 1, 2]
        assert ids(UrgencySorter(descending=True).sort(records)) == [2, 1, 3]

    def test_ties_keep_source_order(self):
        records = [rec(1, urgency=2.0), rec(2, urgency=2.0), rec(3, urgency=1.0)]
        assert ids(UrgencySorter().sort(records)) == [3, 1, 2]
        assert ids(UrgencySorter(descending=True).sort(records)) == [1, 2, 3]

    def test_default_urgency_is_zero(self):
        records = [rec(1, urgency=-1.0), rec(2), rec(3, urgency=0.5)]
        assert ids(UrgencySorter().sort(records)) == [1, 2, 3]


class TestDueDateSorter:
    def setup_method(self):
        self.records = [
            rec(1),
            rec(2, due=date(2026, 10, 20)),
            rec(3, due=date(2026, 10, 18)),
            rec(4),
        ]

    def test_ascending_missing_last(self):
        assert ids(DueDateSorter().sort(self.records)) == [3, 2, 1, 4]

    def test_descending_missing_still_last(self):
        assert ids(DueDateSorter(descending=True).sort(self.records)) == [2, 3, 1, 4]


class TestProjectSorter:
    def test_case_sensitive_lexicographic(self):
        records = [rec(1, project="beta"), rec(2, project="Alpha"), rec(3), rec(4, project="alpha")]
        assert ids(ProjectSorter().sort(records)) == [3, 2, 4, 1]


class TestFactory:
    def test_create_known_sorters(self):
        assert isinstance(create_sorter("urgency"), UrgencySorter)
        assert create_sorter(" Due ", descending=True) == DueDateSorter(descending=True)

    def test_unknown_field(self):
        with pytest.raises(InvalidSorterError):
            create_sorter("priority")

    def test_cache_key(self):
        assert create_sorter("project").cache_key == "project:asc"
        assert create_sorter("project", True).cache_key == "project:desc"

    def test_sort_returns_new_list(self):
        records = [rec(2, urgency=2.0), rec(1, urgency=1.0)]
        result = UrgencySorter().sort(records)
        assert result is not records
        assert ids(records) == [2, 1]
