"""
test_holding_metadata.py - Unit tests for the holding-period state machine

Tests:
- State computation (UNLOCKED, LOCKED, ELIGIBLE, TRANSFORMED)
- Lock and transform transitions and their rejections
- Record integrity checks
- HoldingMetadataStore read/write behavior
"""

import pytest
from datetime import datetime, timedelta

from goldledger import (
    HoldingMetadata, HoldingMetadataStore, LockState, RecordStore,
    lock_state, seconds_remaining, check_can_lock, check_can_transform,
    compute_lock, compute_transformed, holding_metadata_address,
    DataIntegrityViolation, InsufficientHoldingPeriod, HoldingNotLocked,
    HoldingAlreadyLocked, HoldingAlreadyTransformed,
)


T0 = datetime(2025, 1, 1)
DAY = 86_400


def unlocked():
    return HoldingMetadata(asset_class_id="gold", holding_id="h1")


def locked(period=DAY):
    return compute_lock(unlocked(), T0, period, 1_000)


class TestLockState:
    """Tests for lock_state() and seconds_remaining()."""

    def test_default_is_unlocked(self):
        assert lock_state(unlocked(), T0) == LockState.UNLOCKED
        assert seconds_remaining(unlocked(), T0) is None

    def test_locked_before_period(self):
        md = locked()
        assert lock_state(md, T0 + timedelta(seconds=DAY - 1)) == LockState.LOCKED
        assert seconds_remaining(md, T0 + timedelta(seconds=DAY - 1)) == 1

    def test_eligible_at_exact_boundary(self):
        """elapsed == period is eligible."""
        md = locked()
        assert lock_state(md, T0 + timedelta(seconds=DAY)) == LockState.ELIGIBLE
        assert seconds_remaining(md, T0 + timedelta(seconds=DAY)) == 0

    def test_zero_period_immediately_eligible(self):
        assert lock_state(locked(period=0), T0) == LockState.ELIGIBLE

    def test_clock_behind_start_is_locked(self):
        md = locked()
        assert lock_state(md, T0 - timedelta(hours=1)) == LockState.LOCKED

    def test_corrupted_record_never_eligible(self):
        """A start without a period fails closed."""
        md = HoldingMetadata(asset_class_id="gold", holding_id="h1", holding_start=T0)
        assert lock_state(md, T0 + timedelta(days=365)) == LockState.LOCKED
        assert seconds_remaining(md, T0) is None

    def test_transformed_is_terminal(self):
        md = compute_transformed(locked(), T0 + timedelta(seconds=DAY), "ua-1")
        assert lock_state(md, T0 + timedelta(days=30)) == LockState.TRANSFORMED
        assert seconds_remaining(md, T0) is None


class TestTransitions:
    """Tests for compute_lock() and compute_transformed()."""

    def test_lock_sets_start_and_period(self):
        md = locked()
        assert md.holding_start == T0
        assert md.transformation_period == DAY
        assert md.locked_amount == 1_000

    def test_lock_is_pure(self):
        original = unlocked()
        compute_lock(original, T0, DAY, 10)
        assert original.holding_start is None

    def test_relock_rejected(self):
        """A running holding period is never reset."""
        with pytest.raises(HoldingAlreadyLocked):
            compute_lock(locked(), T0 + timedelta(hours=1), DAY, 10)

    def test_lock_after_transform_rejected(self):
        md = compute_transformed(locked(), T0 + timedelta(seconds=DAY), "ua-1")
        with pytest.raises(HoldingAlreadyTransformed):
            check_can_lock(md)

    def test_negative_period_rejected(self):
        with pytest.raises(ValueError):
            compute_lock(unlocked(), T0, -1, 10)

    def test_transform_before_period_rejected(self):
        with pytest.raises(InsufficientHoldingPeriod):
            check_can_transform(locked(), T0 + timedelta(seconds=DAY - 1))

    def test_transform_unlocked_rejected(self):
        with pytest.raises(HoldingNotLocked):
            check_can_transform(unlocked(), T0)

    def test_not_locked_is_insufficient_period(self):
        """Callers catching InsufficientHoldingPeriod also see never-locked holdings."""
        assert issubclass(HoldingNotLocked, InsufficientHoldingPeriod)

    def test_transform_twice_rejected(self):
        md = compute_transformed(locked(), T0 + timedelta(seconds=DAY), "ua-1")
        with pytest.raises(HoldingAlreadyTransformed):
            compute_transformed(md, T0 + timedelta(days=2), "ua-2")

    def test_transform_records_time_and_asset(self):
        md = compute_transformed(locked(), T0 + timedelta(seconds=DAY), "ua-1")
        assert md.transformed_at == T0 + timedelta(seconds=DAY)
        assert md.unique_asset_id == "ua-1"
        assert md.holding_start == T0

    def test_transform_missing_period_is_integrity_violation(self):
        md = HoldingMetadata(asset_class_id="gold", holding_id="h1", holding_start=T0)
        with pytest.raises(DataIntegrityViolation):
            check_can_transform(md, T0 + timedelta(days=10))

    def test_lock_on_corrupted_record_is_integrity_violation(self):
        md = HoldingMetadata(asset_class_id="gold", holding_id="h1", transformation_period=DAY)
        with pytest.raises(DataIntegrityViolation):
            check_can_lock(md)


class TestRecords:
    """Tests for to_record()/from_record()."""

    def test_from_record_rejects_half_lock(self):
        record = unlocked().to_record()
        record['holding_start'] = T0
        with pytest.raises(DataIntegrityViolation):
            HoldingMetadata.from_record(record)

    def test_from_record_rejects_missing_key_fields(self):
        with pytest.raises(DataIntegrityViolation):
            HoldingMetadata.from_record({'holding_id': "h1"})

    def test_from_record_rejects_unknown_fields(self):
        record = unlocked().to_record()
        record['owner'] = "alice"
        with pytest.raises(DataIntegrityViolation):
            HoldingMetadata.from_record(record)

    def test_address_is_derived(self):
        assert locked().address == holding_metadata_address("gold", "h1")


class TestHoldingMetadataStore:
    """Tests for the store wrapper."""

    def test_get_does_not_create(self):
        store = RecordStore()
        records = HoldingMetadataStore(store)
        md = records.get("gold", "h1")
        assert lock_state(md, T0) == LockState.UNLOCKED
        assert not records.exists("gold", "h1")
        assert len(store) == 0

    def test_get_or_init_creates(self):
        records = HoldingMetadataStore(RecordStore())
        records.get_or_init("gold", "h1")
        assert records.exists("gold", "h1")

    def test_save_and_reload(self):
        records = HoldingMetadataStore(RecordStore())
        records.save(locked())
        assert records.get("gold", "h1") == locked()

    def test_save_refuses_corrupted(self):
        records = HoldingMetadataStore(RecordStore())
        md = HoldingMetadata(asset_class_id="gold", holding_id="h1", holding_start=T0)
        with pytest.raises(DataIntegrityViolation):
            records.save(md)

    def test_corrupted_stored_record_detected(self):
        store = RecordStore()
        record = unlocked().to_record()
        record['transformation_period'] = DAY
        store.put(holding_metadata_address("gold", "h1"), record)
        with pytest.raises(DataIntegrityViolation):
            HoldingMetadataStore(store).get("gold", "h1")

    def test_record_under_wrong_address_detected(self):
        store = RecordStore()
        store.put(holding_metadata_address("gold", "h2"), unlocked().to_record())
        with pytest.raises(DataIntegrityViolation):
            HoldingMetadataStore(store).get("gold", "h2")
