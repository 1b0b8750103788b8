"""
holding_metadata.py - Holding-Period State Machine

One side-record per (asset class, holding), addressed by Record Addressing
under HOLDING_METADATA_NAMESPACE. The record owns the holding-period state
machine that gates transformation of a fungible holding into a unique asset.

=== STATES ===

    UNLOCKED     no holding period tracked (holding_start and period both absent)
    LOCKED       holding_start and period set at issuance, period not yet elapsed
    ELIGIBLE     elapsed time >= period; computed on demand, never stored
    TRANSFORMED  terminal; the fungible balance has been converted

=== TRANSITIONS ===

    UNLOCKED  --issue with lock-->  LOCKED(now, period)
    LOCKED    --clock-->            ELIGIBLE
    ELIGIBLE  --transform-->        TRANSFORMED

    LOCKED/ELIGIBLE --issue with lock--> rejected (HoldingAlreadyLocked)
    TRANSFORMED     --lock or transform--> rejected (HoldingAlreadyTransformed)

=== INVARIANT ===

holding_start is set if and only if transformation_period is set. A record
that breaks this is corrupted: from_record() raises DataIntegrityViolation,
and lock_state() never reports such a record as ELIGIBLE.

The state functions are pure: they take a HoldingMetadata and a timestamp and
either return a new HoldingMetadata or raise. HoldingMetadataStore is the
only piece that reads or writes the RecordStore.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
import math

from .addressing import holding_metadata_address
from .core import (
    DataIntegrityViolation, InsufficientHoldingPeriod, HoldingNotLocked,
    HoldingAlreadyLocked, HoldingAlreadyTransformed,
    require_amount, require_period,
)
from .store import RecordStore


class LockState(Enum):
    """Position of a holding in the holding-period state machine."""
    UNLOCKED = "unlocked"
    LOCKED = "locked"
    ELIGIBLE = "eligible"
    TRANSFORMED = "transformed"


_RECORD_FIELDS = (
    'asset_class_id', 'holding_id', 'holding_start', 'transformation_period',
    'locked_amount', 'transformed_at', 'unique_asset_id',
)


@dataclass(frozen=True, slots=True)
class HoldingMetadata:
    """
    Custody metadata for one holding of one asset class.

    Attributes:
        asset_class_id: Asset class the holding belongs to
        holding_id: The holding this record describes
        holding_start: When the holding period started (set by a locking issuance)
        transformation_period: Required holding period in seconds
        locked_amount: Quantity credited by the issuance that started the lock
        transformed_at: When the holding was transformed (terminal state marker)
        unique_asset_id: Id of the unique asset produced by the transformation
    """
    asset_class_id: str
    holding_id: str
    holding_start: Optional[datetime] = None
    transformation_period: Optional[int] = None
    locked_amount: int = 0
    transformed_at: Optional[datetime] = None
    unique_asset_id: Optional[str] = None

    @property
    def address(self) -> str:
        return holding_metadata_address(self.asset_class_id, self.holding_id)

    def integrity_problem(self) -> Optional[str]:
        """Describe the first broken invariant, or return None if the record is sound."""
        if (self.holding_start is None) != (self.transformation_period is None):
            if self.transformation_period is None:
                return "holding_start is set but transformation_period is missing"
            return "transformation_period is set but holding_start is missing"
        if self.transformation_period is not None:
            period = self.transformation_period
            if isinstance(period, bool) or not isinstance(period, int) or period < 0:
                return f"transformation_period must be a non-negative integer, got {period!r}"
        if self.transformed_at is not None and not self.unique_asset_id:
            return "transformed record has no unique_asset_id"
        if isinstance(self.locked_amount, bool) or not isinstance(self.locked_amount, int) \
                or self.locked_amount < 0:
            return f"locked_amount must be a non-negative integer, got {self.locked_amount!r}"
        return None

    def to_record(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in _RECORD_FIELDS}

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'HoldingMetadata':
        """
        Rebuild a HoldingMetadata from a stored record.

        Raises:
            DataIntegrityViolation: If fields are missing or the record breaks an invariant
        """
        missing = [name for name in ('asset_class_id', 'holding_id') if not record.get(name)]
        if missing:
            raise DataIntegrityViolation(f"holding metadata record missing {', '.join(missing)}")
        unknown = set(record) - set(_RECORD_FIELDS)
        if unknown:
            raise DataIntegrityViolation(f"holding metadata record has unknown fields {sorted(unknown)}")
        metadata = cls(**{name: record[name] for name in _RECORD_FIELDS if name in record})
        problem = metadata.integrity_problem()
        if problem:
            raise DataIntegrityViolation(
                f"holding {metadata.holding_id} of {metadata.asset_class_id}: {problem}"
            )
        return metadata

    def __repr__(self) -> str:
        if self.transformed_at is not None:
            return f"HoldingMetadata({self.holding_id[:12]}: transformed at {self.transformed_at})"
        if self.holding_start is None and self.transformation_period is None:
            return f"HoldingMetadata({self.holding_id[:12]}: unlocked)"
        return (f"HoldingMetadata({self.holding_id[:12]}: locked since {self.holding_start}, "
                f"period={self.transformation_period}s)")


# =============================================================================
# PURE STATE FUNCTIONS
# =============================================================================

def _elapsed_seconds(metadata: HoldingMetadata, now: datetime) -> float:
    return (now - metadata.holding_start).total_seconds()


def lock_state(metadata: HoldingMetadata, now: datetime) -> LockState:
    """
    Compute the current state of a holding.

    ELIGIBLE is derived from the clock; it is never stored. A record with
    only one of holding_start/period set fails closed: it reports LOCKED,
    never ELIGIBLE.
    """
    if metadata.transformed_at is not None:
        return LockState.TRANSFORMED
    if metadata.holding_start is None and metadata.transformation_period is None:
        return LockState.UNLOCKED
    if metadata.integrity_problem():
        return LockState.LOCKED
    if _elapsed_seconds(metadata, now) >= metadata.transformation_period:
        return LockState.ELIGIBLE
    return LockState.LOCKED


def seconds_remaining(metadata: HoldingMetadata, now: datetime) -> Optional[int]:
    """
    Whole seconds until the holding becomes eligible.

    Returns 0 once eligible, None for holdings without a (sound) lock or
    already transformed.
    """
    state = lock_state(metadata, now)
    if state in (LockState.UNLOCKED, LockState.TRANSFORMED) or metadata.integrity_problem():
        return None
    remaining = metadata.transformation_period - _elapsed_seconds(metadata, now)
    return max(0, math.ceil(remaining))


def check_can_lock(metadata: HoldingMetadata) -> None:
    """
    Raise unless a new lock may be started on this holding.

    Raises:
        HoldingAlreadyTransformed: The record is terminal
        HoldingAlreadyLocked: A lock is already running (re-locking would reset the clock)
        DataIntegrityViolation: The record is corrupted
    """
    if metadata.transformed_at is not None:
        raise HoldingAlreadyTransformed(
            f"holding {metadata.holding_id} was transformed at {metadata.transformed_at}"
        )
    problem = metadata.integrity_problem()
    if problem:
        raise DataIntegrityViolation(f"holding {metadata.holding_id}: {problem}")
    if metadata.holding_start is not None:
        raise HoldingAlreadyLocked(
            f"holding {metadata.holding_id} is already locked since {metadata.holding_start}"
        )


def check_can_transform(metadata: HoldingMetadata, now: datetime) -> None:
    """
    Raise unless the holding may be transformed at time now.

    Raises:
        HoldingAlreadyTransformed: The record is terminal
        DataIntegrityViolation: Locked record missing its period (or other corruption)
        HoldingNotLocked: No holding period was ever started
        InsufficientHoldingPeriod: elapsed time < period (including a clock behind holding_start)
    """
    if metadata.transformed_at is not None:
        raise HoldingAlreadyTransformed(
            f"holding {metadata.holding_id} was transformed at {metadata.transformed_at}"
        )
    if metadata.holding_start is None and metadata.transformation_period is None:
        raise HoldingNotLocked(f"holding {metadata.holding_id} has no holding period")
    problem = metadata.integrity_problem()
    if problem:
        raise DataIntegrityViolation(f"holding {metadata.holding_id}: {problem}")
    elapsed = _elapsed_seconds(metadata, now)
    if elapsed < metadata.transformation_period:
        raise InsufficientHoldingPeriod(
            f"holding {metadata.holding_id}: held {max(elapsed, 0):.0f}s "
            f"of {metadata.transformation_period}s"
        )


def compute_lock(
    metadata: HoldingMetadata,
    now: datetime,
    period: int,
    amount: int,
) -> HoldingMetadata:
    """Return the LOCKED(now, period) successor of an UNLOCKED record."""
    check_can_lock(metadata)
    return replace(
        metadata,
        holding_start=now,
        transformation_period=require_period(period),
        locked_amount=require_amount(amount),
    )


def compute_transformed(
    metadata: HoldingMetadata,
    now: datetime,
    unique_asset_id: str,
) -> HoldingMetadata:
    """Return the TRANSFORMED successor of an ELIGIBLE record."""
    check_can_transform(metadata, now)
    if not unique_asset_id:
        raise ValueError("unique_asset_id cannot be empty")
    return replace(metadata, transformed_at=now, unique_asset_id=unique_asset_id)


# =============================================================================
# STORE
# =============================================================================

class HoldingMetadataStore:
    """
    Holding metadata records over a RecordStore.

    get() never creates a record: a holding with nothing stored reads as an
    UNLOCKED default. Records are created by get_or_init() or save() and are
    never deleted, including after transformation.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    @staticmethod
    def address(asset_class_id: str, holding_id: str) -> str:
        return holding_metadata_address(asset_class_id, holding_id)

    def get(self, asset_class_id: str, holding_id: str) -> HoldingMetadata:
        record = self.store.get(self.address(asset_class_id, holding_id))
        if record is None:
            return HoldingMetadata(asset_class_id=asset_class_id, holding_id=holding_id)
        return self._decode(record, asset_class_id, holding_id)

    def get_or_init(self, asset_class_id: str, holding_id: str) -> HoldingMetadata:
        record = self.store.get_or_init(
            self.address(asset_class_id, holding_id),
            lambda: HoldingMetadata(asset_class_id=asset_class_id, holding_id=holding_id).to_record(),
        )
        return self._decode(record, asset_class_id, holding_id)

    def exists(self, asset_class_id: str, holding_id: str) -> bool:
        return self.address(asset_class_id, holding_id) in self.store

    def save(self, metadata: HoldingMetadata) -> None:
        problem = metadata.integrity_problem()
        if problem:
            raise DataIntegrityViolation(f"refusing to store holding {metadata.holding_id}: {problem}")
        self.store.put(metadata.address, metadata.to_record())

    @staticmethod
    def _decode(record: Dict[str, Any], asset_class_id: str, holding_id: str) -> HoldingMetadata:
        metadata = HoldingMetadata.from_record(record)
        if metadata.asset_class_id != asset_class_id or metadata.holding_id != holding_id:
            raise DataIntegrityViolation(
                f"record at address of ({asset_class_id}, {holding_id}) belongs to "
                f"({metadata.asset_class_id}, {metadata.holding_id})"
            )
        return metadata
