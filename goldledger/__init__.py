"""
goldledger - Gold Token Lifecycle and Provenance Ledger

Fungible gold-backed holdings with a holding period, an append-only
transfer history per asset class, and one-way transformation of an eligible
holding into a unique asset.

Usage:
    from goldledger import BalanceLedger, LifecycleOrchestrator, ManualClock

    clock = ManualClock(datetime(2025, 1, 1))
    program = LifecycleOrchestrator(BalanceLedger("vault"), clock)

    gold = program.initialize_asset_class(
        "mint_authority", "Swiss Refined Gold", "GOLD",
        origin="Valcambi", purity=Decimal("0.9999"),
        ethical_certification="LBMA Responsible Gold",
    )
    alice = program.open_holding(gold.asset_class_id, "alice")
    bob = program.open_holding(gold.asset_class_id, "bob")

    # Issue 1000 units into alice, starting a one-day holding period
    program.issue(gold.asset_class_id, "mint_authority", alice.holding_id, 1_000, lock_period=86_400)

    # Transfer, recorded in the provenance history
    program.transfer(gold.asset_class_id, "alice", alice.holding_id, bob.holding_id, 500)

    # After the holding period, convert the holding into a unique asset
    clock.advance(86_400)
    asset = program.transform(gold.asset_class_id, "alice", alice.holding_id)
"""

__version__ = "1.0.0"

# Core types
from .core import (
    AssetClass,
    SYSTEM_WALLET,
    GOLD_DECIMALS,
    METADATA_URI_TEMPLATE,
    HOLDING_METADATA_NAMESPACE,
    PROVENANCE_NAMESPACE,
    ASSET_CLASS_NAMESPACE,
    HOLDING_NAMESPACE,
    UNIQUE_ASSET_NAMESPACE,
    DEFAULT_SEGMENT_SIZE,
    LedgerError,
    InvalidAuthority,
    Unauthorized,
    InsufficientBalance,
    InsufficientHoldingPeriod,
    HoldingNotLocked,
    LifecycleStateError,
    HoldingAlreadyLocked,
    HoldingAlreadyTransformed,
    InvalidTransfer,
    DataIntegrityViolation,
    StorageFailure,
    AssetClassNotRegistered,
    HoldingNotRegistered,
)

# Record addressing and storage
from .addressing import (
    derive_address,
    holding_metadata_address,
    provenance_address,
    holding_address,
    asset_class_address,
    unique_asset_address,
)
from .store import RecordStore, KeyedLocks

# Holding-period state machine
from .holding_metadata import (
    LockState,
    HoldingMetadata,
    HoldingMetadataStore,
    lock_state,
    seconds_remaining,
    check_can_lock,
    check_can_transform,
    compute_lock,
    compute_transformed,
)

# Provenance
from .provenance import (
    TransferRecord,
    SegmentStorage,
    MemorySegmentStorage,
    FileSegmentStorage,
    ProvenanceHistory,
    ProvenanceLedger,
    ProvenanceRegistry,
)

# Balance ledger and collaborators
from .ledger import BalanceLedger, Holding, Move, MoveBatch
from .authority import AuthorityVerifier, OwnershipAuthority
from .clock import Clock, SystemClock, ManualClock
from .metadata import AssetMetadata, Creator, MetadataRegistry, UPDATABLE_FIELDS
from .unique_assets import UniqueAsset, UniqueAssetRegistry

# Orchestrator
from .lifecycle import LifecycleOrchestrator

__all__ = [
    # Core
    'AssetClass', 'SYSTEM_WALLET', 'GOLD_DECIMALS', 'METADATA_URI_TEMPLATE',
    'HOLDING_METADATA_NAMESPACE', 'PROVENANCE_NAMESPACE', 'ASSET_CLASS_NAMESPACE',
    'HOLDING_NAMESPACE', 'UNIQUE_ASSET_NAMESPACE', 'DEFAULT_SEGMENT_SIZE',
    # Exceptions
    'LedgerError', 'InvalidAuthority', 'Unauthorized', 'InsufficientBalance',
    'InsufficientHoldingPeriod', 'HoldingNotLocked', 'LifecycleStateError',
    'HoldingAlreadyLocked', 'HoldingAlreadyTransformed', 'InvalidTransfer',
    'DataIntegrityViolation', 'StorageFailure', 'AssetClassNotRegistered',
    'HoldingNotRegistered',
    # Addressing and storage
    'derive_address', 'holding_metadata_address', 'provenance_address',
    'holding_address', 'asset_class_address', 'unique_asset_address',
    'RecordStore', 'KeyedLocks',
    # Holding metadata
    'LockState', 'HoldingMetadata', 'HoldingMetadataStore', 'lock_state',
    'seconds_remaining', 'check_can_lock', 'check_can_transform',
    'compute_lock', 'compute_transformed',
    # Provenance
    'TransferRecord', 'SegmentStorage', 'MemorySegmentStorage', 'FileSegmentStorage',
    'ProvenanceHistory', 'ProvenanceLedger', 'ProvenanceRegistry',
    # Ledger and collaborators
    'BalanceLedger', 'Holding', 'Move', 'MoveBatch',
    'AuthorityVerifier', 'OwnershipAuthority',
    'Clock', 'SystemClock', 'ManualClock',
    'AssetMetadata', 'Creator', 'MetadataRegistry', 'UPDATABLE_FIELDS',
    'UniqueAsset', 'UniqueAssetRegistry',
    # Orchestrator
    'LifecycleOrchestrator',
]
