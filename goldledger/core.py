"""
Core types and constants for the gold asset lifecycle ledger.

This module provides the foundational pieces shared by every other module:
1. Constants: reserved wallet, default precision, namespace tags, segment size
2. Exceptions: LedgerError and the domain-specific error taxonomy
3. Immutable data structures: AssetClass
4. Quantity helpers: conversion between smallest units and Decimal grams

Quantities are always non-negative integers expressed in the smallest unit of
an asset class. Conversion to grams happens only at the edges (display,
metadata), never inside balance arithmetic.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN
from typing import Any, Dict


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for issuance and redemption.
# The system wallet is exempt from balance validation and can hold any balance.
SYSTEM_WALLET = "system"

# 9 decimal places: one smallest unit is a nanogram of gold.
GOLD_DECIMALS = 9

# Default location of the descriptive metadata document for an asset class.
METADATA_URI_TEMPLATE = "https://goldtrack.io/metadata/{}"

# Record Addressing namespace tags.
# Each tag partitions the address space so that records of different kinds
# can never resolve to the same identifier.
HOLDING_METADATA_NAMESPACE = "token_info"
PROVENANCE_NAMESPACE = "provenance"
ASSET_CLASS_NAMESPACE = "asset_class"
HOLDING_NAMESPACE = "holding"
UNIQUE_ASSET_NAMESPACE = "unique_asset"

# Transfer records per provenance log segment.
DEFAULT_SEGMENT_SIZE = 1024


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class InvalidAuthority(LedgerError):
    """Raised when the actor lacks the permission required for a mutation."""
    pass


class Unauthorized(InvalidAuthority):
    """Raised when the actor does not control the holding it is operating on."""
    pass


class InsufficientBalance(LedgerError):
    """Raised when a debit would exceed the quantity held."""
    pass


class InsufficientHoldingPeriod(LedgerError):
    """Raised when a transformation is requested before the holding period has elapsed."""
    pass


class HoldingNotLocked(InsufficientHoldingPeriod):
    """Raised when a transformation is requested on a holding whose holding period never started."""
    pass


class LifecycleStateError(LedgerError):
    """Raised when a lifecycle transition is not permitted from the record's current state."""
    pass


class HoldingAlreadyLocked(LifecycleStateError):
    """Raised when a lock is requested on a holding that is already time-locked."""
    pass


class HoldingAlreadyTransformed(LifecycleStateError):
    """Raised when a lock or transformation is requested on a transformed holding."""
    pass


class InvalidTransfer(LedgerError):
    """Raised when a transfer is malformed (self-transfer, mismatched asset classes)."""
    pass


class DataIntegrityViolation(LedgerError):
    """
    Raised when stored state breaks a data-model invariant.

    Distinct from ordinary precondition failures: this signals corrupted state
    rather than a user error. The operation fails closed; the process keeps running.
    """
    pass


class StorageFailure(LedgerError):
    """Raised when the underlying persistence or append operation fails."""
    pass


class AssetClassNotRegistered(LedgerError):
    """Raised when operating on an asset class that has not been initialized."""
    pass


class HoldingNotRegistered(LedgerError):
    """Raised when operating on a holding that has not been opened."""
    pass


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def require_identifier(value: Any, label: str) -> str:
    """Return value if it is a non-blank string, else raise ValueError."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{label} cannot be empty")
    return value


def require_amount(amount: Any, label: str = "amount") -> int:
    """
    Validate a quantity in smallest units.

    Quantities are plain integers; bool is rejected even though it is an int
    subclass, as are zero and negative values.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"{label} must be an integer number of smallest units, got {type(amount).__name__}")
    if amount <= 0:
        raise ValueError(f"{label} must be positive, got {amount}")
    return amount


def require_period(period: Any) -> int:
    """Validate a holding period in whole seconds (zero allowed)."""
    if isinstance(period, bool) or not isinstance(period, int):
        raise ValueError(f"lock_period must be an integer number of seconds, got {type(period).__name__}")
    if period < 0:
        raise ValueError(f"lock_period cannot be negative, got {period}")
    return period


# ============================================================================
# ASSET CLASS
# ============================================================================

@dataclass(frozen=True, slots=True)
class AssetClass:
    """
    One issuable gold-backed asset type.

    Attributes:
        asset_class_id: Unique identifier (derived by Record Addressing unless supplied).
        symbol: Short ticker (e.g., "GOLD").
        decimals: Decimal precision, fixed at creation.
        authority: The sole actor permitted to issue new supply. Held by value
                   and compared on every issuance; it is not a live handle.

    This class is immutable (frozen=True) and memory-optimized (slots=True).
    """
    asset_class_id: str
    symbol: str
    decimals: int
    authority: str

    def __post_init__(self):
        require_identifier(self.asset_class_id, "asset_class_id")
        require_identifier(self.symbol, "symbol")
        require_identifier(self.authority, "authority")
        if isinstance(self.decimals, bool) or not isinstance(self.decimals, int):
            raise ValueError(f"decimals must be an integer, got {type(self.decimals).__name__}")
        if not 0 <= self.decimals <= 18:
            raise ValueError(f"decimals must be between 0 and 18, got {self.decimals}")

    @property
    def unit_size(self) -> Decimal:
        """Grams represented by one smallest unit."""
        return Decimal(1).scaleb(-self.decimals)

    def to_grams(self, amount: int) -> Decimal:
        """Convert smallest units to grams."""
        return Decimal(amount).scaleb(-self.decimals)

    def from_grams(self, grams: Decimal) -> int:
        """
        Convert grams to smallest units.

        Fractions of a smallest unit are truncated (ROUND_DOWN), never rounded up,
        so a conversion can not create gold that was not there.
        """
        if not isinstance(grams, Decimal):
            grams = Decimal(str(grams))
        if grams.is_nan() or grams.is_infinite():
            raise ValueError(f"grams must be finite, got {grams}")
        return int(grams.scaleb(self.decimals).quantize(Decimal(1), rounding=ROUND_DOWN))

    def to_record(self) -> Dict[str, Any]:
        return {
            'asset_class_id': self.asset_class_id,
            'symbol': self.symbol,
            'decimals': self.decimals,
            'authority': self.authority,
        }

    def __repr__(self) -> str:
        return f"AssetClass({self.symbol}, id={self.asset_class_id[:12]}, decimals={self.decimals})"
