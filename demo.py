#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: The Life of a Gold Holding

A step-by-step walk through the gold ledger. Each step builds on the
previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-2: Foundation   - Asset classes, metadata, holdings
  3-4: Issuance     - Issuing supply, starting a holding period
  5-6: Custody      - Transfers, rejections, provenance history
  7-8: Redemption   - Holding periods, transformation into a unique asset
  9:   Proof        - Conservation across every holding and the reserve

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
import sys

from goldledger import (
    BalanceLedger, LifecycleOrchestrator, ManualClock, AssetClass, Holding,
    SYSTEM_WALLET, LedgerError,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)
    authority: str = "swiss_mint"

    # Gold attributes
    name: str = "Swiss Refined Gold"
    symbol: str = "GOLD"
    origin: str = "Valcambi, Balerna"
    purity: Decimal = Decimal("0.9999")
    certification: str = "LBMA Responsible Gold"

    # 1 gram = 10^9 smallest units
    issue_amount: int = 1_000_000_000_000     # 1 kg
    transfer_amount: int = 250_000_000_000    # 250 g
    lock_period: int = 30 * 86_400            # 30 days


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def grams(gold: AssetClass, amount: int) -> str:
    return f"{gold.to_grams(amount).normalize():f} g"


# ============================================================================
# PHASE 1: FOUNDATION
# ============================================================================

def step_01_asset_class(program: LifecycleOrchestrator) -> AssetClass:
    step_header(1, "Creating an Asset Class",
        "An asset class is one kind of gold, issued by exactly one authority.")

    print(f">>> program.initialize_asset_class({CONFIG.authority!r}, {CONFIG.name!r}, {CONFIG.symbol!r}, ...)")
    gold = program.initialize_asset_class(
        CONFIG.authority, CONFIG.name, CONFIG.symbol,
        origin=CONFIG.origin,
        purity=CONFIG.purity,
        ethical_certification=CONFIG.certification,
    )
    metadata = program.get_metadata(gold.asset_class_id)

    section_header("Published Metadata")
    print(f"Asset class id: {gold.asset_class_id}")
    print(f"Decimals:       {gold.decimals}  (1 unit = {gold.unit_size} g)")
    print(f"URI:            {metadata.uri}")
    for key, value in metadata.attributes().items():
        print(f"{key + ':':<16}{value}")

    section_header("Key Insight")
    print("""
    The id is DERIVED from (authority, symbol). Anyone holding those two
    values can locate the asset class, its metadata, and its provenance
    ledger without a directory lookup.
    """)
    return gold


def step_02_holdings(program: LifecycleOrchestrator, gold: AssetClass):
    step_header(2, "Opening Holdings",
        "A holding is one owner's balance of one asset class.")

    alice = program.open_holding(gold.asset_class_id, "alice")
    bob = program.open_holding(gold.asset_class_id, "bob")
    print(f"alice -> {alice.holding_id[:16]}...")
    print(f"bob   -> {bob.holding_id[:16]}...")
    return alice, bob


# ============================================================================
# PHASE 2: ISSUANCE
# ============================================================================

def step_03_issue(program: LifecycleOrchestrator, gold: AssetClass, alice: Holding):
    step_header(3, "Issuing Gold with a Holding Period",
        "Only the authority issues; a lock starts the clock toward redemption.")

    program.issue(gold.asset_class_id, CONFIG.authority, alice.holding_id,
                  CONFIG.issue_amount, lock_period=CONFIG.lock_period)

    metadata = program.holding_metadata(gold.asset_class_id, alice.holding_id)
    print(f"alice balance:    {grams(gold, program.ledger.balance_of(alice.holding_id))}")
    print(f"holding start:    {metadata.holding_start}")
    print(f"period:           {metadata.transformation_period}s")
    print(f"state:            {program.lock_status(gold.asset_class_id, alice.holding_id).value}")
    print(f"reserve balance:  {program.ledger.balances[gold.asset_class_id][SYSTEM_WALLET]}")


def step_04_rejected_issue(program: LifecycleOrchestrator, gold: AssetClass, alice: Holding):
    step_header(4, "A Rejected Issuance",
        "Issuance by anyone but the authority fails and changes nothing.")

    try:
        program.issue(gold.asset_class_id, "alice", alice.holding_id, CONFIG.issue_amount)
    except LedgerError as exc:
        print(f"Rejected: {type(exc).__name__}: {exc}")
    print(f"alice balance is still {grams(gold, program.ledger.balance_of(alice.holding_id))}")


# ============================================================================
# PHASE 3: CUSTODY
# ============================================================================

def step_05_transfer(program: LifecycleOrchestrator, gold: AssetClass, alice: Holding, bob: Holding):
    step_header(5, "Transferring Custody",
        "Every accepted transfer appends one record to the provenance ledger.")

    program.clock.advance(86_400)
    record = program.transfer(gold.asset_class_id, "alice", alice.holding_id, bob.holding_id,
                              CONFIG.transfer_amount)
    print(f"Recorded: {record!r}")
    print(f"alice: {grams(gold, program.ledger.balance_of(alice.holding_id))}")
    print(f"bob:   {grams(gold, program.ledger.balance_of(bob.holding_id))}")

    section_header("Bob tries to spend alice's gold")
    try:
        program.transfer(gold.asset_class_id, "bob", alice.holding_id, bob.holding_id, 1)
    except LedgerError as exc:
        print(f"Rejected: {type(exc).__name__}")


def step_06_history(program: LifecycleOrchestrator, gold: AssetClass):
    step_header(6, "Reading Provenance",
        "History is returned in append order and never changes after the fact.")

    for record in program.query_history(gold.asset_class_id):
        print(f"  #{record.sequence} {record.timestamp:%Y-%m-%d %H:%M} "
              f"{record.source[:10]} -> {record.dest[:10]}  {grams(gold, record.amount)}")


# ============================================================================
# PHASE 4: REDEMPTION
# ============================================================================

def step_07_too_early(program: LifecycleOrchestrator, gold: AssetClass, alice: Holding):
    step_header(7, "Transforming Too Early",
        "A holding can only be transformed once its holding period has elapsed.")

    remaining = program.time_until_eligible(gold.asset_class_id, alice.holding_id)
    print(f"Seconds until eligible: {remaining}")
    try:
        program.transform(gold.asset_class_id, "alice", alice.holding_id)
    except LedgerError as exc:
        print(f"Rejected: {type(exc).__name__}: {exc}")


def step_08_transform(program: LifecycleOrchestrator, gold: AssetClass, alice: Holding):
    step_header(8, "Transforming into a Unique Asset",
        "The full balance is burned and exactly one unique asset is minted.")

    program.clock.advance(program.time_until_eligible(gold.asset_class_id, alice.holding_id))
    asset = program.transform(gold.asset_class_id, "alice", alice.holding_id)
    print(f"Minted: {asset!r}")
    for key, value in asset.attributes:
        print(f"  {key}: {value}")
    print(f"state: {program.lock_status(gold.asset_class_id, alice.holding_id).value}")


# ============================================================================
# PHASE 5: PROOF
# ============================================================================

def step_09_conservation(program: LifecycleOrchestrator, gold: AssetClass):
    step_header(9, "Conservation Proof",
        "Every asset class nets to zero across all holdings and the reserve.")

    result = program.ledger.verify_conservation()
    print(f"valid:    {result['valid']}")
    print(f"supply:   {grams(gold, result['supplies'][gold.asset_class_id])}")
    print(f"batches:  {len(program.ledger.move_log)}")


def main():
    print("=" * 70)
    print("       THE LIFE OF A GOLD HOLDING")
    print("=" * 70)

    clock = ManualClock(CONFIG.start_time)
    program = LifecycleOrchestrator(BalanceLedger("vault"), clock, verbose=True)

    gold = step_01_asset_class(program)
    wait_for_enter()
    alice, bob = step_02_holdings(program, gold)
    wait_for_enter()

    step_03_issue(program, gold, alice)
    wait_for_enter()
    step_04_rejected_issue(program, gold, alice)
    wait_for_enter()

    step_05_transfer(program, gold, alice, bob)
    wait_for_enter()
    step_06_history(program, gold)
    wait_for_enter()

    step_07_too_early(program, gold, alice)
    wait_for_enter()
    step_08_transform(program, gold, alice)
    wait_for_enter()

    step_09_conservation(program, gold)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See goldledger/lifecycle.py for the operation reference
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
