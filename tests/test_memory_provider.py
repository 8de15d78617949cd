"""Tests for the in-memory record provider."""

import json
import logging

import pytest

from taskview.domain.record import TaskRecord
from taskview.errors import InvalidRecordError
from taskview.infrastructure.memory_provider import InMemoryRecordProvider


@pytest.fixture
def provider(sample_records):
    return InMemoryRecordProvider(sample_records)


def test_get_records_without_expression(provider, sample_records):
    assert provider.get_records() == sample_records


def test_get_records_pushes_query_down(provider):
    assert [r.id for r in provider.get_records("status:pending +urgent")] == [1, 5]


def test_save_replaces_by_id(provider):
    updated = provider.get_records()[1].replace(description="Buy oat milk")
    result = provider.save_record(updated)
    assert result.success
    assert result.record is updated
    assert provider.get_records()[1].description == "Buy oat milk"
    assert len(provider.get_records()) == 5


def test_save_appends_new_record(provider):
    provider.save_record(TaskRecord(description="New", id=99))
    assert provider.get_records()[-1].id == 99


def test_save_reports_validation_failures(provider):
    result = provider.save_record(TaskRecord(description="Wait", status="waiting"))
    assert not result.success
    assert "wait" in result.error
    assert len(provider.get_records()) == 5


def test_validate_record(provider):
    assert provider.validate_record(TaskRecord(description="ok")).valid
    bad = provider.validate_record(TaskRecord(description="x", tags=["two words"]))
    assert not bad.valid
    assert bad.errors == ["tags must be non-empty and contain no spaces"]


def test_from_export_file_skips_bad_rows(tmp_path, caplog):
    path = tmp_path / "export.json"
    path.write_text(
        json.dumps([{"id": 1, "description": "ok"}, {"id": 2, "description": ""}]), encoding="utf-8"
    )
    with caplog.at_level(logging.WARNING):
        provider = InMemoryRecordProvider.from_export_file(path)
    assert [r.id for r in provider.get_records()] == [1]
    assert any("Skipping task #1" in r.getMessage() for r in caplog.records)


def test_from_export_file_requires_array(tmp_path):
    path = tmp_path / "export.json"
    path.write_text(json.dumps({"description": "x"}), encoding="utf-8")
    with pytest.raises(InvalidRecordError):
        InMemoryRecordProvider.from_export_file(path)
