"""
store.py - Keyed Record Store

A flat map from derived addresses to plain dict records. The store knows
nothing about what a record means; the holding metadata store and the
orchestrator give records their shape.

Lookup is "derive, then get-or-init": the caller derives the address with
addressing.derive_address() and asks the store for the record at that
address, initializing it from a default factory if none exists yet. There is
no separate allocation step.

KeyedLocks provides per-address mutual exclusion for hosts that do not
serialize operations on the same records themselves.
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional
import copy
import threading

Record = Dict[str, Any]


class RecordStore:
    """
    In-memory keyed store of side-records.

    Records are deep-copied on the way in and on the way out, so a caller
    holding a returned record can never mutate stored state behind the
    store's back.
    """

    def __init__(self):
        self._records: Dict[str, Record] = {}

    def get(self, record_id: str) -> Optional[Record]:
        """Return a copy of the record at record_id, or None if absent."""
        record = self._records.get(record_id)
        if record is None:
            return None
        return copy.deepcopy(record)

    def put(self, record_id: str, record: Record) -> None:
        """Store record at record_id, replacing any previous record."""
        if not isinstance(record, dict):
            raise TypeError(f"record must be a dict, got {type(record).__name__}")
        self._records[record_id] = copy.deepcopy(record)

    def get_or_init(self, record_id: str, default_factory: Callable[[], Record]) -> Record:
        """
        Return the record at record_id, creating it from default_factory first if absent.

        default_factory is called at most once per address over the lifetime
        of the store.
        """
        if record_id not in self._records:
            self.put(record_id, default_factory())
        return self.get(record_id)

    def ids(self) -> List[str]:
        """List all stored record ids, sorted."""
        return sorted(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"RecordStore({len(self._records)} records)"


class KeyedLocks:
    """
    Per-address re-entrant locks.

    Two operations touching different addresses never contend. Locks for
    several addresses are always acquired in sorted order, so concurrent
    holders of overlapping address sets cannot deadlock. A lock exists only
    while some thread holds or waits for it; idle addresses leave nothing
    behind.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # record_id -> [lock, number of threads holding or waiting]
        self._locks: Dict[str, List[Any]] = {}

    def _claim(self, record_id: str) -> threading.RLock:
        with self._guard:
            entry = self._locks.get(record_id)
            if entry is None:
                entry = self._locks[record_id] = [threading.RLock(), 0]
            entry[1] += 1
            return entry[0]

    def _release(self, record_id: str) -> None:
        with self._guard:
            entry = self._locks[record_id]
            entry[0].release()
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[record_id]

    @contextmanager
    def hold(self, *record_ids: str) -> Iterator[None]:
        """Hold the locks of all given addresses for the duration of the block."""
        acquired: List[str] = []
        try:
            for record_id in sorted(set(record_ids)):
                self._claim(record_id).acquire()
                acquired.append(record_id)
            yield
        finally:
            for record_id in reversed(acquired):
                self._release(record_id)

    def __len__(self) -> int:
        """Number of addresses currently held or waited on."""
        with self._guard:
            return len(self._locks)
