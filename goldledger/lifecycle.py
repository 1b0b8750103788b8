"""
lifecycle.py - Lifecycle Orchestrator

The entry points of the system: initialize an asset class, issue, transfer,
transform, and the read-only audit queries. Each mutating operation

    1. validates authority and every precondition,
    2. delegates the balance mutation to the BalanceLedger,
    3. updates holding metadata and/or appends provenance,

with all checks done before the first mutation. A failed operation raises
and leaves balances, metadata, and provenance exactly as they were.

Each mutating operation holds the lock of its asset class, plus that of the
holding record it touches, until it returns, so operations on one asset class
run one at a time. Work on different asset classes shares only the
BalanceLedger, which locks its own mutations. Read-only queries take no locks.

Example:
    ledger = BalanceLedger("vault")
    program = LifecycleOrchestrator(ledger, ManualClock(datetime(2025, 1, 1)))
    gold = program.initialize_asset_class(
        "mint_authority", "Swiss Gold", "GOLD",
        origin="Valcambi", purity=Decimal("0.9999"),
        ethical_certification="LBMA Responsible Gold",
    )
    alice = program.open_holding(gold.asset_class_id, "alice")
    program.issue(gold.asset_class_id, "mint_authority", alice.holding_id, 1_000, lock_period=86_400)
"""

from __future__ import annotations
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, List, Optional

from .addressing import (
    asset_class_address, provenance_address, holding_metadata_address, unique_asset_address,
)
from .authority import AuthorityVerifier, OwnershipAuthority
from .clock import Clock
from .core import (
    AssetClass, GOLD_DECIMALS, METADATA_URI_TEMPLATE, SYSTEM_WALLET,
    LedgerError, InvalidAuthority, Unauthorized, InsufficientBalance, InvalidTransfer,
    require_amount, require_identifier, require_period,
)
from .holding_metadata import (
    HoldingMetadata, HoldingMetadataStore, LockState,
    lock_state, seconds_remaining, check_can_transform, compute_lock, compute_transformed,
)
from .ledger import BalanceLedger, Holding, Move
from .metadata import AssetMetadata, Creator, MetadataRegistry
from .provenance import ProvenanceHistory, ProvenanceRegistry, TransferRecord
from .store import KeyedLocks, RecordStore
from .unique_assets import UniqueAsset, UniqueAssetRegistry


class LifecycleOrchestrator:
    """
    Issue, transfer, and transform gold holdings with provenance tracking.

    Collaborators default to the in-process reference implementations; any
    of them can be replaced by an object honoring the same interface.
    """

    def __init__(
        self,
        ledger: BalanceLedger,
        clock: Clock,
        authority: Optional[AuthorityVerifier] = None,
        metadata: Optional[MetadataRegistry] = None,
        unique_assets: Optional[UniqueAssetRegistry] = None,
        provenance: Optional[ProvenanceRegistry] = None,
        store: Optional[RecordStore] = None,
        verbose: bool = False,
    ):
        self.ledger = ledger
        self.clock = clock
        self.authority = authority if authority is not None else OwnershipAuthority(ledger)
        self.metadata = metadata if metadata is not None else MetadataRegistry()
        self.unique_assets = unique_assets if unique_assets is not None else UniqueAssetRegistry()
        self.provenance = provenance if provenance is not None else ProvenanceRegistry()
        self.store = store if store is not None else RecordStore()
        self.holding_records = HoldingMetadataStore(self.store)
        self.locks = KeyedLocks()
        self.verbose = verbose

    # ========================================================================
    # ASSET CLASSES
    # ========================================================================

    def initialize_asset_class(
        self,
        authority: str,
        name: str,
        symbol: str,
        origin: str,
        purity: Decimal,
        ethical_certification: str,
        decimals: int = GOLD_DECIMALS,
        asset_class_id: Optional[str] = None,
        uri: Optional[str] = None,
        is_mutable: bool = True,
    ) -> AssetClass:
        """
        Create an asset class, publish its metadata, and open its provenance ledger.

        The id is derived from (authority, symbol) unless given explicitly.
        The authority is credited as sole verified creator.

        Raises:
            ValueError: Invalid arguments or an asset class with this id already exists
        """
        require_identifier(authority, "authority")
        require_identifier(symbol, "symbol")
        if asset_class_id is None:
            asset_class_id = asset_class_address(authority, symbol)
        asset_class = AssetClass(
            asset_class_id=asset_class_id,
            symbol=symbol,
            decimals=decimals,
            authority=authority,
        )
        published = AssetMetadata(
            name=name,
            symbol=symbol,
            uri=uri or METADATA_URI_TEMPLATE.format(asset_class_id),
            origin=origin,
            purity=purity,
            ethical_certification=ethical_certification,
            creators=(Creator(address=authority, verified=True, share=100),),
            is_mutable=is_mutable,
        )
        with self._guard(asset_class_id):
            if asset_class_id in self.ledger.asset_classes or self.metadata.get(asset_class_id):
                raise ValueError(f"Asset class {asset_class_id} already initialized")
            self.ledger.register_asset_class(asset_class)
            self.metadata.publish(asset_class_id, published)
            self.provenance.get_or_init(asset_class_id)
        self._report(f"INITIALIZED {symbol} ({name}) id={asset_class_id[:12]} decimals={decimals}")
        return asset_class

    def update_metadata(self, asset_class_id: str, authority: str, **changes) -> AssetMetadata:
        """
        Update published metadata. Only the asset class authority may do this,
        and only while the metadata is mutable.

        Raises:
            InvalidAuthority: Not the authority, or the metadata is immutable
        """
        with self._guard(asset_class_id):
            try:
                asset_class = self.ledger.get_asset_class(asset_class_id)
                if authority != asset_class.authority:
                    raise InvalidAuthority(f"{authority} is not the authority of {asset_class.symbol}")
                updated = self.metadata.update(asset_class_id, **changes)
            except LedgerError as exc:
                self._reject("update_metadata", exc)
                raise
        self._report(f"METADATA {asset_class.symbol}: {', '.join(sorted(changes))}")
        return updated

    def get_asset_class(self, asset_class_id: str) -> AssetClass:
        return self.ledger.get_asset_class(asset_class_id)

    def get_metadata(self, asset_class_id: str) -> Optional[AssetMetadata]:
        return self.metadata.get(asset_class_id)

    def open_holding(self, asset_class_id: str, owner: str) -> Holding:
        """Open (or return) the associated holding of owner for an asset class."""
        return self.ledger.open_holding(asset_class_id, owner)

    # ========================================================================
    # ISSUE
    # ========================================================================

    def issue(
        self,
        asset_class_id: str,
        authority: str,
        holding_id: str,
        amount: int,
        lock_period: Optional[int] = None,
    ) -> HoldingMetadata:
        """
        Issue new supply into a holding, optionally starting its holding period.

        Issuing without a lock never touches the holding's metadata record,
        whatever state it is in. Issuing with a lock requires the record to
        be UNLOCKED; the clock of a running lock is never reset.

        Returns:
            The holding's metadata after the operation

        Raises:
            InvalidAuthority: authority is not the asset class authority
            HoldingAlreadyLocked / HoldingAlreadyTransformed: lock requested in a non-UNLOCKED state
            DataIntegrityViolation: the stored record is corrupted
            ValueError: non-positive amount or negative lock_period
        """
        with self._guard(asset_class_id, holding_metadata_address(asset_class_id, holding_id)):
            try:
                asset_class = self.ledger.get_asset_class(asset_class_id)
                if authority != asset_class.authority:
                    raise InvalidAuthority(f"{authority} is not the issuing authority of {asset_class.symbol}")
                require_amount(amount)
                if lock_period is not None:
                    require_period(lock_period)
                holding = self._holding_of(asset_class_id, holding_id)

                metadata = self.holding_records.get(asset_class_id, holding_id)
                now = self.clock.now()
                locked = compute_lock(metadata, now, lock_period, amount) if lock_period is not None else None
                issuance = [Move(amount, asset_class_id, SYSTEM_WALLET, holding.holding_id, "issue")]
                self.ledger.check(issuance)

                self.ledger.execute(issuance)
                if locked is not None:
                    self.holding_records.save(locked)
                    metadata = locked
            except LedgerError as exc:
                self._reject("issue", exc)
                raise
        lock_text = f", locked {lock_period}s" if lock_period is not None else ""
        self._report(f"ISSUED {amount} {asset_class.symbol} → {holding_id[:12]}{lock_text}")
        return metadata

    # ========================================================================
    # TRANSFER
    # ========================================================================

    def transfer(
        self,
        asset_class_id: str,
        owner: str,
        source: str,
        dest: str,
        amount: int,
    ) -> TransferRecord:
        """
        Move quantity between holdings and record it in the provenance ledger.

        The provenance append happens after every check and before the balance
        commit; if the append fails, balances are untouched. Transfers out of
        a locked holding are permitted.

        Returns:
            The appended TransferRecord

        Raises:
            Unauthorized: owner does not control source
            InvalidTransfer: source == dest, or a holding of another asset class
            InsufficientBalance: source holds less than amount
            StorageFailure: the provenance append failed
            ValueError: non-positive amount
        """
        with self._guard(asset_class_id):
            try:
                asset_class = self.ledger.get_asset_class(asset_class_id)
                require_amount(amount)
                source_holding = self._holding_of(asset_class_id, source)
                if not self.authority.is_authorized(owner, source_holding):
                    raise Unauthorized(f"{owner} does not control holding {source}")
                if source == dest:
                    raise InvalidTransfer(f"holding {source} cannot transfer to itself")
                self._holding_of(asset_class_id, dest)

                moves = [Move(amount, asset_class_id, source, dest, "transfer")]
                self.ledger.check(moves)
                now = self.clock.now()
                record = self.provenance.get_or_init(asset_class_id).append(source, dest, amount, now)
                # checked above under the same lock
                self.ledger.execute(moves)
            except LedgerError as exc:
                self._reject("transfer", exc)
                raise
        self._report(f"TRANSFER #{record.sequence} {amount} {asset_class.symbol}: "
                     f"{source[:12]} → {dest[:12]}")
        return record

    # ========================================================================
    # TRANSFORM
    # ========================================================================

    def transform(self, asset_class_id: str, owner: str, holding_id: str) -> UniqueAsset:
        """
        Convert an eligible holding into a unique asset.

        The full current balance of the holding is burned, exactly one unique
        asset carrying the gold attributes is minted, and the metadata record
        moves to TRANSFORMED, where it stays.

        Raises:
            Unauthorized: owner does not control the holding
            HoldingNotLocked: the holding never started a holding period
            InsufficientHoldingPeriod: the period has not elapsed
            HoldingAlreadyTransformed: the holding was already transformed
            DataIntegrityViolation: the stored record is corrupted
            InsufficientBalance: the holding is empty
        """
        with self._guard(asset_class_id, holding_metadata_address(asset_class_id, holding_id)):
            try:
                asset_class = self.ledger.get_asset_class(asset_class_id)
                holding = self._holding_of(asset_class_id, holding_id)
                if not self.authority.is_authorized(owner, holding):
                    raise Unauthorized(f"{owner} does not control holding {holding_id}")

                metadata = self.holding_records.get(asset_class_id, holding_id)
                now = self.clock.now()
                check_can_transform(metadata, now)
                amount = self.ledger.balance_of(holding_id)
                if amount <= 0:
                    raise InsufficientBalance(f"holding {holding_id} is empty")
                burn = [Move(amount, asset_class_id, holding_id, SYSTEM_WALLET, "transform")]
                self.ledger.check(burn)
                transformed = compute_transformed(
                    metadata, now, unique_asset_address(asset_class_id, holding_id)
                )

                attributes = dict(self._published_attributes(asset_class_id))
                attributes.update({
                    'symbol': asset_class.symbol,
                    'grams': str(asset_class.to_grams(amount)),
                    'holding_start': metadata.holding_start.isoformat(),
                    'transformation_period': str(metadata.transformation_period),
                })
                asset = self.unique_assets.mint_unique(asset_class, holding, amount, attributes, now)
                self.ledger.execute(burn)
                self.holding_records.save(transformed)
            except LedgerError as exc:
                self._reject("transform", exc)
                raise
        self._report(f"TRANSFORMED {holding_id[:12]}: {asset.grams}g {asset_class.symbol} "
                     f"→ unique asset {asset.unique_asset_id[:12]}")
        return asset

    # ========================================================================
    # QUERIES (read-only)
    # ========================================================================

    def query_history(self, asset_class_id: str) -> ProvenanceHistory:
        """Transfer history of an asset class in append order (snapshot view)."""
        self.ledger.get_asset_class(asset_class_id)
        return self.provenance.get_or_init(asset_class_id).history()

    def history_page(self, asset_class_id: str, offset: int, limit: int) -> List[TransferRecord]:
        return self.query_history(asset_class_id).page(offset, limit)

    def holding_history(self, asset_class_id: str, holding_id: str) -> List[TransferRecord]:
        """Transfers into or out of one holding, in append order."""
        self.ledger.get_asset_class(asset_class_id)
        return self.provenance.get_or_init(asset_class_id).records_for(holding_id)

    def holding_metadata(self, asset_class_id: str, holding_id: str) -> HoldingMetadata:
        return self.holding_records.get(asset_class_id, holding_id)

    def lock_status(self, asset_class_id: str, holding_id: str) -> LockState:
        return lock_state(self.holding_records.get(asset_class_id, holding_id), self.clock.now())

    def time_until_eligible(self, asset_class_id: str, holding_id: str) -> Optional[int]:
        return seconds_remaining(self.holding_records.get(asset_class_id, holding_id), self.clock.now())

    # ========================================================================
    # HELPERS
    # ========================================================================

    @contextmanager
    def _guard(self, asset_class_id: str, *record_ids: str) -> Iterator[None]:
        with self.locks.hold(provenance_address(asset_class_id), *record_ids):
            yield

    def _holding_of(self, asset_class_id: str, holding_id: str) -> Holding:
        holding = self.ledger.get_holding(holding_id)
        if holding.asset_class_id != asset_class_id:
            raise InvalidTransfer(f"holding {holding_id} does not hold {asset_class_id}")
        return holding

    def _published_attributes(self, asset_class_id: str):
        published = self.metadata.get(asset_class_id)
        return published.attributes() if published is not None else {}

    def _report(self, text: str) -> None:
        if self.verbose:
            print(f"✓ {text}")

    def _reject(self, operation: str, exc: LedgerError) -> None:
        if self.verbose:
            print(f"✗ REJECTED {operation}: {type(exc).__name__}: {exc}")
