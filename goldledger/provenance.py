"""
provenance.py - Append-Only Provenance Ledger

One provenance ledger per asset class, addressed by Record Addressing under
PROVENANCE_NAMESPACE. Every accepted transfer appends exactly one
TransferRecord. Records are never reordered, deduplicated, or removed:
insertion order IS chronological order, regardless of the timestamps the
records carry.

=== STORAGE ===

History grows without bound, so it is kept as a segmented log rather than a
single in-memory list:

    <address>/00000000.jsonl    records 0 .. segment_size-1
    <address>/00000001.jsonl    records segment_size .. 2*segment_size-1
    ...

Only the last segment is ever written to. Reads stream one segment at a
time, so reading a long history never materializes it all at once.

SegmentStorage is the storage protocol; MemorySegmentStorage and
FileSegmentStorage (JSON Lines on disk) implement it.

=== READS ===

history() returns a ProvenanceHistory: a lazy, finite, restartable view
bounded by the ledger length at the moment the view was created. Iterating
it twice yields the same records; appends made after it was created are
not shown; no record is shown twice or skipped.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Protocol, runtime_checkable
import json
import os

from .addressing import provenance_address
from .core import (
    DEFAULT_SEGMENT_SIZE,
    DataIntegrityViolation, StorageFailure,
    require_amount, require_identifier,
)


# ============================================================================
# TRANSFER RECORD
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransferRecord:
    """
    One entry of a provenance ledger.

    Attributes:
        source: Holding the quantity left
        dest: Holding the quantity arrived at
        amount: Quantity moved in smallest units (always positive)
        timestamp: Clock reading when the transfer was recorded
        sequence: 0-based position in the ledger (append order)

    source == dest is not rejected here; the orchestrator decides that policy.
    """
    source: str
    dest: str
    amount: int
    timestamp: datetime
    sequence: int = 0

    def __post_init__(self):
        require_identifier(self.source, "source")
        require_identifier(self.dest, "dest")
        require_amount(self.amount)
        if not isinstance(self.timestamp, datetime):
            raise ValueError(f"timestamp must be a datetime, got {type(self.timestamp).__name__}")
        if isinstance(self.sequence, bool) or not isinstance(self.sequence, int) or self.sequence < 0:
            raise ValueError(f"sequence must be a non-negative integer, got {self.sequence!r}")

    def to_record(self) -> Dict[str, Any]:
        return {
            'sequence': self.sequence,
            'source': self.source,
            'dest': self.dest,
            'amount': self.amount,
            'timestamp': self.timestamp.isoformat(),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'TransferRecord':
        try:
            return cls(
                source=record['source'],
                dest=record['dest'],
                amount=record['amount'],
                timestamp=datetime.fromisoformat(record['timestamp']),
                sequence=record['sequence'],
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise DataIntegrityViolation(f"malformed transfer record {record!r}: {exc}") from exc

    def __repr__(self) -> str:
        return f"TransferRecord(#{self.sequence} {self.amount}: {self.source[:12]}→{self.dest[:12]} @ {self.timestamp})"


# ============================================================================
# SEGMENT STORAGE
# ============================================================================

@runtime_checkable
class SegmentStorage(Protocol):
    """Append-only storage of record segments, keyed by ledger address."""

    def append(self, address: str, segment: int, record: Dict[str, Any]) -> None:
        """Append record to the given segment. Raises StorageFailure if the write fails."""
        ...

    def read(self, address: str, segment: int) -> List[Dict[str, Any]]:
        """Return the records of a segment in append order (empty if absent)."""
        ...

    def segment_count(self, address: str) -> int:
        """Number of segments that exist for address."""
        ...


class MemorySegmentStorage:
    """Segments held in process memory."""

    def __init__(self):
        self._segments: Dict[str, List[List[Dict[str, Any]]]] = {}

    def append(self, address: str, segment: int, record: Dict[str, Any]) -> None:
        segments = self._segments.setdefault(address, [])
        if segment == len(segments):
            segments.append([])
        elif segment != len(segments) - 1:
            raise StorageFailure(
                f"append to segment {segment} of {address[:12]} but the open segment is {len(segments) - 1}"
            )
        segments[segment].append(dict(record))

    def read(self, address: str, segment: int) -> List[Dict[str, Any]]:
        segments = self._segments.get(address, [])
        if segment >= len(segments):
            return []
        return [dict(r) for r in segments[segment]]

    def segment_count(self, address: str) -> int:
        return len(self._segments.get(address, []))


class FileSegmentStorage:
    """
    Segments as JSON Lines files under a root directory.

    Layout: <root>/<address>/<segment:08d>.jsonl. Files are only ever opened
    for append, one JSON object per line. A failed append truncates the
    segment back to its previous end, so no partial line is ever left behind.
    """

    SUFFIX = ".jsonl"

    def __init__(self, root):
        self.root = Path(root)

    def _segment_path(self, address: str, segment: int) -> Path:
        return self.root / address / f"{segment:08d}{self.SUFFIX}"

    def append(self, address: str, segment: int, record: Dict[str, Any]) -> None:
        path = self._segment_path(address, segment)
        data = (json.dumps(record, sort_keys=True, separators=(",", ":")) + "\n").encode("utf-8")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("ab", buffering=0) as fh:
                offset = fh.seek(0, os.SEEK_END)
                try:
                    pending = memoryview(data)
                    while pending:
                        written = fh.write(pending)
                        if not written:
                            raise OSError(f"short write to {path}")
                        pending = pending[written:]
                except OSError:
                    # drop the partial line so the next append starts on a clean boundary
                    fh.truncate(offset)
                    raise
        except OSError as exc:
            raise StorageFailure(f"failed to append to {path}: {exc}") from exc

    def read(self, address: str, segment: int) -> List[Dict[str, Any]]:
        path = self._segment_path(address, segment)
        if not path.exists():
            return []
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageFailure(f"failed to read {path}: {exc}") from exc
        records = []
        for line_no, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise DataIntegrityViolation(f"{path}:{line_no}: {exc}") from exc
        return records

    def segment_count(self, address: str) -> int:
        directory = self.root / address
        if not directory.is_dir():
            return 0
        count = 0
        while self._segment_path(address, count).exists():
            count += 1
        return count


# ============================================================================
# PROVENANCE LEDGER
# ============================================================================

class ProvenanceHistory:
    """
    Read-only, restartable view of a provenance ledger.

    Bounded by the ledger length when the view was created. Each iteration
    streams from the first record, one segment at a time.
    """

    def __init__(self, ledger: 'ProvenanceLedger', length: int):
        self._ledger = ledger
        self._length = length

    def __iter__(self) -> Iterator[TransferRecord]:
        return self._ledger._iter_range(0, self._length)

    def __len__(self) -> int:
        return self._length

    def page(self, offset: int, limit: int) -> List[TransferRecord]:
        """Records [offset, offset+limit) of this view."""
        if offset < 0 or limit < 0:
            raise ValueError("offset and limit must be non-negative")
        stop = min(offset + limit, self._length)
        if offset >= stop:
            return []
        return list(self._ledger._iter_range(offset, stop))

    def __repr__(self) -> str:
        return f"ProvenanceHistory({self._ledger.asset_class_id[:12]}, {self._length} records)"


class ProvenanceLedger:
    """
    Append-only transfer history of one asset class.

    The length is recovered from storage on construction, so a ledger over
    existing file storage resumes where it left off.
    """

    def __init__(
        self,
        asset_class_id: str,
        storage: Optional[SegmentStorage] = None,
        segment_size: int = DEFAULT_SEGMENT_SIZE,
    ):
        if segment_size <= 0:
            raise ValueError(f"segment_size must be positive, got {segment_size}")
        self.asset_class_id = require_identifier(asset_class_id, "asset_class_id")
        self.address = provenance_address(asset_class_id)
        self.storage = storage if storage is not None else MemorySegmentStorage()
        self.segment_size = segment_size
        self._length = self._recover_length()

    def _recover_length(self) -> int:
        count = self.storage.segment_count(self.address)
        if count == 0:
            return 0
        last = len(self.storage.read(self.address, count - 1))
        if last > self.segment_size:
            raise DataIntegrityViolation(
                f"provenance segment {count - 1} of {self.address[:12]} holds {last} records, "
                f"more than segment_size={self.segment_size}"
            )
        return (count - 1) * self.segment_size + last

    def __len__(self) -> int:
        return self._length

    def append(self, source: str, dest: str, amount: int, timestamp: datetime) -> TransferRecord:
        """
        Append one transfer record.

        The ledger grows by exactly one record on success and is unchanged if
        the storage write fails.

        Raises:
            ValueError: If the record is malformed (non-positive amount, empty holding)
            StorageFailure: If the storage write fails
        """
        record = TransferRecord(source, dest, amount, timestamp, sequence=self._length)
        segment = self._length // self.segment_size
        self.storage.append(self.address, segment, record.to_record())
        self._length += 1
        return record

    def history(self) -> ProvenanceHistory:
        return ProvenanceHistory(self, self._length)

    def page(self, offset: int, limit: int) -> List[TransferRecord]:
        return self.history().page(offset, limit)

    def records_for(self, holding_id: str) -> List[TransferRecord]:
        """All records with holding_id as source or dest, in append order."""
        return [r for r in self.history() if holding_id in (r.source, r.dest)]

    def _iter_range(self, start: int, stop: int) -> Iterator[TransferRecord]:
        if start >= stop:
            return
        first_segment = start // self.segment_size
        last_segment = (stop - 1) // self.segment_size
        expected = start
        for segment in range(first_segment, last_segment + 1):
            base = segment * self.segment_size
            rows = self.storage.read(self.address, segment)
            lo = max(start - base, 0)
            hi = min(stop - base, len(rows))
            for row in rows[lo:hi]:
                record = TransferRecord.from_record(row)
                if record.sequence != expected:
                    raise DataIntegrityViolation(
                        f"provenance {self.address[:12]}: expected sequence {expected}, "
                        f"found {record.sequence}"
                    )
                yield record
                expected += 1
        if expected != stop:
            raise DataIntegrityViolation(
                f"provenance {self.address[:12]}: {stop - expected} records missing from storage"
            )

    def __repr__(self) -> str:
        return f"ProvenanceLedger({self.asset_class_id[:12]}, {self._length} records)"


class ProvenanceRegistry:
    """Provenance ledgers of all asset classes, keyed by derived address."""

    def __init__(
        self,
        storage: Optional[SegmentStorage] = None,
        segment_size: int = DEFAULT_SEGMENT_SIZE,
    ):
        self.storage = storage if storage is not None else MemorySegmentStorage()
        self.segment_size = segment_size
        self._ledgers: Dict[str, ProvenanceLedger] = {}

    def get_or_init(self, asset_class_id: str) -> ProvenanceLedger:
        address = provenance_address(asset_class_id)
        ledger = self._ledgers.get(address)
        if ledger is None:
            ledger = ProvenanceLedger(asset_class_id, self.storage, self.segment_size)
            self._ledgers[address] = ledger
        return ledger

    def get(self, asset_class_id: str) -> Optional[ProvenanceLedger]:
        return self._ledgers.get(provenance_address(asset_class_id))

    def __len__(self) -> int:
        return len(self._ledgers)
