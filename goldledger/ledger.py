"""
ledger.py - Fungible Balance Ledger

Double-entry balance accounting for gold asset classes. This is the balance
ledger the lifecycle orchestrator delegates to: it owns holdings and their
quantities and nothing else. Lifecycle metadata and provenance live in
side-stores the ledger never sees.

Key responsibilities:
    - Registers asset classes and opens holdings (one owner, one asset class each)
    - Executes batches of moves atomically (all moves succeed or all fail)
    - Issues through SYSTEM_WALLET (credit) and redeems into it (debit)
    - Keeps a move log with a monotonic sequence number per executed batch

SYSTEM_WALLET is the issuance reserve: it is exempt from balance validation
and its balance is the negative of the outstanding supply, so the sum over
all holdings of an asset class, reserve included, is always zero.
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
import threading

from .addressing import holding_address
from .core import (
    AssetClass, SYSTEM_WALLET,
    LedgerError, InsufficientBalance, InvalidTransfer,
    AssetClassNotRegistered, HoldingNotRegistered,
    require_amount, require_identifier,
)


@dataclass(frozen=True, slots=True)
class Holding:
    """
    One owner's balance account for one asset class.

    The quantity is not stored here; it lives in the ledger's balance map.
    """
    holding_id: str
    asset_class_id: str
    owner: str

    def __post_init__(self):
        require_identifier(self.holding_id, "holding_id")
        require_identifier(self.asset_class_id, "asset_class_id")
        require_identifier(self.owner, "owner")


@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of quantity between two holdings of one asset class.

    Attributes:
        quantity: Smallest units moved (positive integer)
        asset_class_id: Asset class being moved
        source: Holding debited (SYSTEM_WALLET for issuance)
        dest: Holding credited (SYSTEM_WALLET for redemption)
        reason: Short label for the move log (e.g., "issue", "transfer", "burn")
    """
    quantity: int
    asset_class_id: str
    source: str
    dest: str
    reason: str

    def __post_init__(self):
        require_amount(self.quantity, "Move quantity")
        require_identifier(self.asset_class_id, "Move asset_class_id")
        require_identifier(self.source, "Move source")
        require_identifier(self.dest, "Move dest")
        require_identifier(self.reason, "Move reason")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.asset_class_id[:12]}: {self.source[:12]}→{self.dest[:12]}, {self.reason})"


@dataclass(frozen=True, slots=True)
class MoveBatch:
    """An executed, immutable batch of moves."""
    sequence_number: int
    moves: Tuple[Move, ...]


class BalanceLedger:
    """
    Balance ledger with atomic batch execution.

    Thread Safety:
        Every mutation runs under one reentrant lock: concurrent callers
        never open a holding twice or share a sequence number. A check()
        followed by a separate execute() is not atomic; execute() re-checks
        under the lock.

    Example:
        ledger = BalanceLedger("vault")
        ledger.register_asset_class(gold)
        alice = ledger.open_holding(gold.asset_class_id, "alice")
        ledger.credit(alice.holding_id, 1_000)
    """

    def __init__(self, name: str, verbose: bool = False):
        self.name = name
        self.verbose = verbose
        self.asset_classes: Dict[str, AssetClass] = {}
        self.holdings: Dict[str, Holding] = {}
        # asset_class_id -> {holding_id -> quantity}; SYSTEM_WALLET included
        self.balances: Dict[str, Dict[str, int]] = {}
        self.move_log: List[MoveBatch] = []
        self._next_sequence: int = 0
        self._lock = threading.RLock()

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    def register_asset_class(self, asset_class: AssetClass) -> None:
        """
        Register an asset class.

        Raises:
            ValueError: If the asset class id is already registered
        """
        with self._lock:
            if asset_class.asset_class_id in self.asset_classes:
                raise ValueError(f"Asset class {asset_class.asset_class_id} already registered")
            self.asset_classes[asset_class.asset_class_id] = asset_class
            self.balances[asset_class.asset_class_id] = defaultdict(int)
        if self.verbose:
            print(f"📝 Registered: {asset_class.symbol} [{asset_class.asset_class_id[:12]}] "
                  f"decimals={asset_class.decimals}")

    def open_holding(
        self,
        asset_class_id: str,
        owner: str,
        holding_id: Optional[str] = None,
    ) -> Holding:
        """
        Open (or return) a holding of owner for an asset class.

        Without an explicit holding_id the associated holding id is derived
        from (asset_class_id, owner), so opening twice for the same owner
        returns the same holding.

        Raises:
            AssetClassNotRegistered: If the asset class is unknown
            ValueError: If holding_id is already taken by another owner or asset class
        """
        self._require_asset_class(asset_class_id)
        require_identifier(owner, "owner")
        if holding_id is None:
            holding_id = holding_address(asset_class_id, owner)
        if holding_id == SYSTEM_WALLET:
            raise ValueError(f"{SYSTEM_WALLET!r} is reserved")
        with self._lock:
            existing = self.holdings.get(holding_id)
            if existing is not None:
                if existing.owner != owner or existing.asset_class_id != asset_class_id:
                    raise ValueError(f"Holding {holding_id} already registered to another owner or asset class")
                return existing
            holding = Holding(holding_id=holding_id, asset_class_id=asset_class_id, owner=owner)
            self.holdings[holding_id] = holding
            return holding

    # ========================================================================
    # READ-ONLY ACCESS
    # ========================================================================

    def get_asset_class(self, asset_class_id: str) -> AssetClass:
        return self._require_asset_class(asset_class_id)

    def get_holding(self, holding_id: str) -> Holding:
        holding = self.holdings.get(holding_id)
        if holding is None:
            raise HoldingNotRegistered(f"Holding {holding_id} not registered")
        return holding

    def balance_of(self, holding_id: str) -> int:
        """Quantity held, in smallest units."""
        holding = self.get_holding(holding_id)
        return self.balances[holding.asset_class_id].get(holding_id, 0)

    def holdings_of(self, owner: str) -> List[Holding]:
        return sorted(
            (h for h in self.holdings.values() if h.owner == owner),
            key=lambda h: (h.asset_class_id, h.holding_id),
        )

    def total_supply(self, asset_class_id: str) -> int:
        """Outstanding supply: the sum of all holdings, reserve excluded."""
        self._require_asset_class(asset_class_id)
        return sum(q for h, q in self.balances[asset_class_id].items() if h != SYSTEM_WALLET)

    def verify_conservation(self) -> Dict[str, Any]:
        """
        Verify that every asset class nets to zero across all holdings and the reserve.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every asset class balances
            - 'supplies': Dict[str, int] - outstanding supply per asset class
            - 'discrepancies': List[Dict] - asset classes whose balances do not net to zero
        """
        supplies = {}
        discrepancies = []
        for asset_class_id, positions in self.balances.items():
            supplies[asset_class_id] = self.total_supply(asset_class_id)
            net = sum(positions.values())
            if net != 0:
                discrepancies.append({'asset_class_id': asset_class_id, 'net': net})
            negative = sorted(h for h, q in positions.items() if h != SYSTEM_WALLET and q < 0)
            if negative:
                discrepancies.append({'asset_class_id': asset_class_id, 'negative_holdings': negative})
        return {
            'valid': not discrepancies,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # EXECUTION (Mutating)
    # ========================================================================

    def validate(self, moves: Sequence[Move]) -> Tuple[bool, str]:
        """
        Validate a batch of moves without applying it.

        Checks performed:
        1. Asset class and holding registration
        2. Each holding belongs to the move's asset class
        3. Net balance of every holding stays non-negative (reserve exempt)

        Returns:
            Tuple of (success: bool, reason: str)
        """
        for move in moves:
            if move.asset_class_id not in self.asset_classes:
                return False, f"asset class not registered: {move.asset_class_id}"
            for holding_id in (move.source, move.dest):
                if holding_id == SYSTEM_WALLET:
                    continue
                holding = self.holdings.get(holding_id)
                if holding is None:
                    return False, f"holding not registered: {holding_id}"
                if holding.asset_class_id != move.asset_class_id:
                    return False, f"holding {holding_id} does not hold {move.asset_class_id}"

        net: Dict[Tuple[str, str], int] = defaultdict(int)
        for move in moves:
            net[(move.asset_class_id, move.source)] -= move.quantity
            net[(move.asset_class_id, move.dest)] += move.quantity

        for (asset_class_id, holding_id), delta in net.items():
            if holding_id == SYSTEM_WALLET:
                continue
            current = self.balances[asset_class_id].get(holding_id, 0)
            if current + delta < 0:
                return False, f"{holding_id} holds {current}, needs {-delta}"
        return True, ""

    def check(self, moves: Sequence[Move]) -> None:
        """
        Raise unless the batch would be accepted by execute().

        Raises:
            AssetClassNotRegistered / HoldingNotRegistered: Unknown ids
            InvalidTransfer: A holding does not belong to the move's asset class
            InsufficientBalance: A holding would go negative
            ValueError: If the batch is empty
        """
        if not moves:
            raise ValueError("Cannot execute an empty batch of moves")
        valid, reason = self.validate(moves)
        if not valid:
            if self.verbose:
                print(f"✗ REJECTED: {reason}")
            raise self._rejection(reason)

    def execute(self, moves: Sequence[Move]) -> MoveBatch:
        """
        Execute a batch of moves atomically.

        All moves are validated before any is applied; on failure nothing
        changes and the exceptions of check() are raised.
        """
        with self._lock:
            self.check(moves)

            for move in moves:
                positions = self.balances[move.asset_class_id]
                positions[move.source] -= move.quantity
                positions[move.dest] += move.quantity
                for holding_id in (move.source, move.dest):
                    if positions[holding_id] == 0:
                        del positions[holding_id]

            batch = MoveBatch(sequence_number=self._next_sequence, moves=tuple(moves))
            self._next_sequence += 1
            self.move_log.append(batch)
        if self.verbose:
            for move in batch.moves:
                print(f"✓ #{batch.sequence_number} {move!r}")
        return batch

    def credit(self, holding_id: str, amount: int, reason: str = "issue") -> MoveBatch:
        """Issue amount from the reserve into holding_id."""
        holding = self.get_holding(holding_id)
        return self.execute([Move(amount, holding.asset_class_id, SYSTEM_WALLET, holding_id, reason)])

    def debit(self, holding_id: str, amount: int, reason: str = "burn") -> MoveBatch:
        """Redeem amount from holding_id back into the reserve."""
        holding = self.get_holding(holding_id)
        return self.execute([Move(amount, holding.asset_class_id, holding_id, SYSTEM_WALLET, reason)])

    def transfer(self, source: str, dest: str, amount: int, reason: str = "transfer") -> MoveBatch:
        """Move amount between two holdings of the same asset class."""
        holding = self.get_holding(source)
        return self.execute([Move(amount, holding.asset_class_id, source, dest, reason)])

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _require_asset_class(self, asset_class_id: str) -> AssetClass:
        asset_class = self.asset_classes.get(asset_class_id)
        if asset_class is None:
            raise AssetClassNotRegistered(f"Asset class {asset_class_id} not registered")
        return asset_class

    @staticmethod
    def _rejection(reason: str) -> LedgerError:
        if reason.startswith("asset class not registered"):
            return AssetClassNotRegistered(reason)
        if reason.startswith("holding not registered"):
            return HoldingNotRegistered(reason)
        if "does not hold" in reason:
            return InvalidTransfer(reason)
        return InsufficientBalance(reason)

    def __repr__(self) -> str:
        return (f"BalanceLedger({self.name}: {len(self.asset_classes)} asset classes, "
                f"{len(self.holdings)} holdings, {len(self.move_log)} batches)")
