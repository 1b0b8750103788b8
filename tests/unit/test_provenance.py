"""
test_provenance.py - Unit tests for the append-only provenance ledger

Tests:
- TransferRecord validation and serialization
- Append order, sequence numbers, and segment boundaries
- Snapshot history views and pagination
- Memory and JSON Lines file storage
"""

import json
import pytest
from datetime import datetime, timedelta

from goldledger import (
    TransferRecord, ProvenanceLedger, ProvenanceRegistry,
    MemorySegmentStorage, FileSegmentStorage,
    DataIntegrityViolation, StorageFailure, provenance_address,
)
from tests.fakes import FailingSegmentStorage, break_next_append


T0 = datetime(2025, 1, 1)


def fill(ledger, count, start=0):
    for i in range(start, start + count):
        ledger.append(f"h{i}", f"h{i + 1}", i + 1, T0 + timedelta(seconds=i))


class TestTransferRecord:
    """Tests for TransferRecord."""

    def test_valid_record(self):
        record = TransferRecord("a", "b", 10, T0)
        assert record.amount == 10
        assert record.sequence == 0

    @pytest.mark.parametrize("amount", [0, -1, 1.5, True])
    def test_bad_amount_rejected(self, amount):
        with pytest.raises(ValueError):
            TransferRecord("a", "b", amount, T0)

    def test_empty_holding_rejected(self):
        with pytest.raises(ValueError):
            TransferRecord("", "b", 1, T0)

    def test_timestamp_must_be_datetime(self):
        with pytest.raises(ValueError):
            TransferRecord("a", "b", 1, "2025-01-01")

    def test_record_round_trip(self):
        record = TransferRecord("a", "b", 10, T0, sequence=3)
        assert TransferRecord.from_record(record.to_record()) == record

    def test_malformed_record(self):
        with pytest.raises(DataIntegrityViolation):
            TransferRecord.from_record({'source': "a"})


class TestProvenanceLedger:
    """Tests for appends and reads."""

    def test_append_assigns_sequence(self):
        ledger = ProvenanceLedger("gold")
        first = ledger.append("a", "b", 5, T0)
        second = ledger.append("b", "c", 3, T0)
        assert (first.sequence, second.sequence) == (0, 1)
        assert len(ledger) == 2

    def test_history_in_append_order(self):
        ledger = ProvenanceLedger("gold")
        fill(ledger, 5)
        assert [r.sequence for r in ledger.history()] == [0, 1, 2, 3, 4]

    def test_out_of_order_timestamps_kept_in_append_order(self):
        """Insertion order is authoritative; timestamps are not used to sort."""
        ledger = ProvenanceLedger("gold")
        ledger.append("a", "b", 1, T0 + timedelta(hours=2))
        ledger.append("b", "c", 1, T0)
        history = list(ledger.history())
        assert [r.timestamp for r in history] == [T0 + timedelta(hours=2), T0]

    def test_identical_records_not_deduplicated(self):
        ledger = ProvenanceLedger("gold")
        ledger.append("a", "b", 1, T0)
        ledger.append("a", "b", 1, T0)
        assert len(list(ledger.history())) == 2

    def test_history_spans_segments(self):
        ledger = ProvenanceLedger("gold", segment_size=3)
        fill(ledger, 8)
        assert [r.sequence for r in ledger.history()] == list(range(8))
        assert ledger.storage.segment_count(ledger.address) == 3

    def test_history_is_snapshot(self):
        """Appends after the view was created are not visible through it."""
        ledger = ProvenanceLedger("gold")
        fill(ledger, 2)
        view = ledger.history()
        fill(ledger, 2, start=2)
        assert len(view) == 2
        assert len(list(view)) == 2
        assert len(ledger.history()) == 4

    def test_history_is_restartable(self):
        ledger = ProvenanceLedger("gold", segment_size=2)
        fill(ledger, 5)
        view = ledger.history()
        assert list(view) == list(view)

    def test_page(self):
        ledger = ProvenanceLedger("gold", segment_size=4)
        fill(ledger, 10)
        assert [r.sequence for r in ledger.page(3, 4)] == [3, 4, 5, 6]
        assert [r.sequence for r in ledger.page(8, 10)] == [8, 9]
        assert ledger.page(10, 5) == []

    def test_negative_page_rejected(self):
        with pytest.raises(ValueError):
            ProvenanceLedger("gold").page(-1, 5)

    def test_records_for_holding(self):
        ledger = ProvenanceLedger("gold")
        ledger.append("a", "b", 1, T0)
        ledger.append("c", "d", 1, T0)
        ledger.append("b", "a", 1, T0)
        assert [r.sequence for r in ledger.records_for("a")] == [0, 2]

    def test_failed_append_leaves_length(self):
        storage = FailingSegmentStorage()
        ledger = ProvenanceLedger("gold", storage)
        ledger.append("a", "b", 1, T0)
        storage.fail_appends = True
        with pytest.raises(StorageFailure):
            ledger.append("a", "b", 1, T0)
        assert len(ledger) == 1
        storage.fail_appends = False
        assert ledger.append("a", "b", 1, T0).sequence == 1

    def test_invalid_append_leaves_length(self):
        ledger = ProvenanceLedger("gold")
        with pytest.raises(ValueError):
            ledger.append("a", "b", 0, T0)
        assert len(ledger) == 0

    def test_missing_records_detected(self):
        """A ledger whose storage lost records fails closed on read."""
        storage = MemorySegmentStorage()
        ledger = ProvenanceLedger("gold", storage)
        fill(ledger, 3)
        storage._segments[ledger.address][0].pop()
        with pytest.raises(DataIntegrityViolation):
            list(ledger.history())

    def test_bad_segment_size(self):
        with pytest.raises(ValueError):
            ProvenanceLedger("gold", segment_size=0)


class TestFileSegmentStorage:
    """Tests for JSON Lines storage on disk."""

    def test_writes_jsonl(self, tmp_path):
        ledger = ProvenanceLedger("gold", FileSegmentStorage(tmp_path), segment_size=2)
        fill(ledger, 3)
        directory = tmp_path / provenance_address("gold")
        assert sorted(p.name for p in directory.iterdir()) == ["00000000.jsonl", "00000001.jsonl"]
        lines = (directory / "00000000.jsonl").read_text().splitlines()
        assert json.loads(lines[1])['sequence'] == 1

    def test_resumes_from_disk(self, tmp_path):
        ledger = ProvenanceLedger("gold", FileSegmentStorage(tmp_path), segment_size=2)
        fill(ledger, 5)
        reopened = ProvenanceLedger("gold", FileSegmentStorage(tmp_path), segment_size=2)
        assert len(reopened) == 5
        assert reopened.append("x", "y", 1, T0).sequence == 5
        assert [r.sequence for r in reopened.history()] == list(range(6))

    def test_corrupt_line_detected(self, tmp_path):
        storage = FileSegmentStorage(tmp_path)
        ledger = ProvenanceLedger("gold", storage)
        fill(ledger, 1)
        path = tmp_path / ledger.address / "00000000.jsonl"
        with path.open("a") as fh:
            fh.write("{not json\n")
        with pytest.raises(DataIntegrityViolation):
            storage.read(ledger.address, 0)

    def test_unwritable_root_is_storage_failure(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        ledger = ProvenanceLedger("gold", FileSegmentStorage(blocker))
        with pytest.raises(StorageFailure):
            ledger.append("a", "b", 1, T0)
        assert len(ledger) == 0

    def test_failed_append_leaves_no_partial_line(self, tmp_path, monkeypatch):
        ledger = ProvenanceLedger("gold", FileSegmentStorage(tmp_path), segment_size=4)
        fill(ledger, 2)
        path = tmp_path / ledger.address / "00000000.jsonl"
        size_before = path.stat().st_size

        break_next_append(monkeypatch)
        with pytest.raises(StorageFailure):
            ledger.append("h2", "h3", 3, T0)
        assert len(ledger) == 2
        assert path.stat().st_size == size_before

        assert ledger.append("h2", "h3", 3, T0).sequence == 2
        reopened = ProvenanceLedger("gold", FileSegmentStorage(tmp_path), segment_size=4)
        assert [r.sequence for r in reopened.history()] == [0, 1, 2]


class TestProvenanceRegistry:
    """Tests for the per-asset-class registry."""

    def test_get_or_init_returns_same_ledger(self):
        registry = ProvenanceRegistry()
        assert registry.get_or_init("gold") is registry.get_or_init("gold")
        assert len(registry) == 1

    def test_get_missing(self):
        assert ProvenanceRegistry().get("gold") is None

    def test_ledgers_are_separate(self):
        registry = ProvenanceRegistry()
        registry.get_or_init("gold").append("a", "b", 1, T0)
        assert len(registry.get_or_init("silver")) == 0
