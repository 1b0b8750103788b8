"""
test_gold_lifecycle.py - End-to-end gold lifecycle scenario tests

Tests complete lifecycles:
- Issue with a one-day holding period, early and on-time transformation
- Transfer and provenance history
- Issuance by a non-authority
- Custody chains across several holders
- Provenance persisted to disk and reopened, including after a failed write
"""

import pytest
from datetime import timedelta
from decimal import Decimal

from goldledger import (
    LockState, FileSegmentStorage, ProvenanceRegistry,
    InsufficientHoldingPeriod, HoldingAlreadyTransformed, InvalidAuthority, StorageFailure,
)
from tests.fakes import AUTHORITY, ONE_DAY, START, break_next_append, init_gold, make_orchestrator


class TestHoldingPeriodScenario:
    """Issue with a lock, then transform at and around the boundary."""

    def test_one_day_lock(self, program, clock, gold, alice):
        """Issue 1000 locked for 86400s; transform fails at +86399, succeeds at +86400, then fails again."""
        program.issue(gold.asset_class_id, AUTHORITY, alice.holding_id, 1_000, lock_period=ONE_DAY)

        clock.advance_to(START + timedelta(seconds=ONE_DAY - 1))
        with pytest.raises(InsufficientHoldingPeriod):
            program.transform(gold.asset_class_id, "alice", alice.holding_id)
        assert program.ledger.balance_of(alice.holding_id) == 1_000

        clock.advance(1)
        assert program.lock_status(gold.asset_class_id, alice.holding_id) == LockState.ELIGIBLE
        asset = program.transform(gold.asset_class_id, "alice", alice.holding_id)
        assert asset.amount == 1_000
        assert program.ledger.balance_of(alice.holding_id) == 0

        with pytest.raises(HoldingAlreadyTransformed):
            program.transform(gold.asset_class_id, "alice", alice.holding_id)
        assert len(program.unique_assets) == 1


class TestTransferScenario:
    """Transfer half of a holding and check the provenance history."""

    def test_transfer_half(self, program, gold, alice, bob):
        program.issue(gold.asset_class_id, AUTHORITY, alice.holding_id, 1_000)
        length_before = len(program.query_history(gold.asset_class_id))

        program.transfer(gold.asset_class_id, "alice", alice.holding_id, bob.holding_id, 500)

        assert program.ledger.balance_of(alice.holding_id) == 500
        assert program.ledger.balance_of(bob.holding_id) == 500
        history = list(program.query_history(gold.asset_class_id))
        assert len(history) == length_before + 1
        assert (history[-1].source, history[-1].dest, history[-1].amount) == \
            (alice.holding_id, bob.holding_id, 500)


class TestAuthorityScenario:
    """Issuance by anyone but the asset class authority is rejected."""

    def test_non_authority_issue(self, program, gold, alice):
        with pytest.raises(InvalidAuthority):
            program.issue(gold.asset_class_id, "alice", alice.holding_id, 1_000)
        assert program.ledger.balance_of(alice.holding_id) == 0
        assert program.ledger.total_supply(gold.asset_class_id) == 0
        assert program.lock_status(gold.asset_class_id, alice.holding_id) == LockState.UNLOCKED


class TestCustodyChain:
    """Gold moving through several holders before redemption as a unique asset."""

    def test_refinery_to_vault_to_investor(self, program, clock, gold):
        ac = gold.asset_class_id
        refinery = program.open_holding(ac, "refinery")
        vault = program.open_holding(ac, "vault")
        investor = program.open_holding(ac, "investor")

        program.issue(ac, AUTHORITY, refinery.holding_id, 10_000_000_000)
        clock.advance(3_600)
        program.transfer(ac, "refinery", refinery.holding_id, vault.holding_id, 10_000_000_000)
        clock.advance(3_600)
        program.transfer(ac, "vault", vault.holding_id, investor.holding_id, 4_000_000_000)

        program.issue(ac, AUTHORITY, investor.holding_id, 1_000_000_000, lock_period=7 * ONE_DAY)
        clock.advance(7 * ONE_DAY)
        asset = program.transform(ac, "investor", investor.holding_id)

        assert asset.grams == Decimal("5")
        assert asset.attributes_dict['origin'] == "Valcambi, Switzerland"
        assert program.ledger.total_supply(ac) == 6_000_000_000
        assert program.ledger.verify_conservation()['valid']

        chain = program.holding_history(ac, vault.holding_id)
        assert [(r.source, r.dest) for r in chain] == [
            (refinery.holding_id, vault.holding_id),
            (vault.holding_id, investor.holding_id),
        ]
        assert chain[1].timestamp - chain[0].timestamp == timedelta(hours=1)

    def test_two_asset_classes_keep_separate_histories(self, program, gold, alice, bob):
        bars = init_gold(program, symbol="BAR", origin="PAMP Ticino")
        bar_alice = program.open_holding(bars.asset_class_id, "alice")
        bar_bob = program.open_holding(bars.asset_class_id, "bob")

        program.issue(gold.asset_class_id, AUTHORITY, alice.holding_id, 100)
        program.issue(bars.asset_class_id, AUTHORITY, bar_alice.holding_id, 100)
        program.transfer(gold.asset_class_id, "alice", alice.holding_id, bob.holding_id, 10)
        program.transfer(bars.asset_class_id, "alice", bar_alice.holding_id, bar_bob.holding_id, 20)
        program.transfer(bars.asset_class_id, "alice", bar_alice.holding_id, bar_bob.holding_id, 30)

        assert [r.amount for r in program.query_history(gold.asset_class_id)] == [10]
        assert [r.amount for r in program.query_history(bars.asset_class_id)] == [20, 30]


class TestPersistentProvenance:
    """Provenance on disk survives a restart of the orchestrator."""

    def test_reopen(self, tmp_path):
        first = make_orchestrator(provenance=ProvenanceRegistry(FileSegmentStorage(tmp_path), segment_size=2))
        gold = init_gold(first)
        alice = first.open_holding(gold.asset_class_id, "alice")
        bob = first.open_holding(gold.asset_class_id, "bob")
        first.issue(gold.asset_class_id, AUTHORITY, alice.holding_id, 100)
        for amount in (1, 2, 3):
            first.transfer(gold.asset_class_id, "alice", alice.holding_id, bob.holding_id, amount)

        reopened = ProvenanceRegistry(FileSegmentStorage(tmp_path), segment_size=2)
        history = reopened.get_or_init(gold.asset_class_id).history()
        assert [r.amount for r in history] == [1, 2, 3]
        assert list(history) == list(first.query_history(gold.asset_class_id))

    def test_disk_full_mid_transfer(self, tmp_path, monkeypatch):
        """A transfer whose append dies half-written changes nothing, and the next one lands cleanly."""
        program = make_orchestrator(provenance=ProvenanceRegistry(FileSegmentStorage(tmp_path)))
        gold = init_gold(program)
        alice = program.open_holding(gold.asset_class_id, "alice")
        bob = program.open_holding(gold.asset_class_id, "bob")
        program.issue(gold.asset_class_id, AUTHORITY, alice.holding_id, 1_000)
        program.transfer(gold.asset_class_id, "alice", alice.holding_id, bob.holding_id, 100)

        break_next_append(monkeypatch)
        with pytest.raises(StorageFailure):
            program.transfer(gold.asset_class_id, "alice", alice.holding_id, bob.holding_id, 200)
        assert program.ledger.balance_of(alice.holding_id) == 900
        assert program.ledger.balance_of(bob.holding_id) == 100

        program.transfer(gold.asset_class_id, "alice", alice.holding_id, bob.holding_id, 300)
        history = program.query_history(gold.asset_class_id)
        assert [(r.sequence, r.amount) for r in history] == [(0, 100), (1, 300)]

        reopened = ProvenanceRegistry(FileSegmentStorage(tmp_path))
        assert list(reopened.get_or_init(gold.asset_class_id).history()) == list(history)
