"""
conftest.py - Shared pytest fixtures for goldledger tests

Provides common fixtures used across unit, conformance, and functional tests:
- Clocks and balance ledgers
- An orchestrator with one initialized gold asset class
- Holdings for alice and bob
"""

import pytest

from goldledger import BalanceLedger, LifecycleOrchestrator, ManualClock, AssetClass

from tests.fakes import START, AUTHORITY, init_gold


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    """Manual clock at 2025-01-01."""
    return ManualClock(START)


@pytest.fixture
def ledger():
    """Fresh balance ledger with no registrations."""
    return BalanceLedger("test")


@pytest.fixture
def gold_class():
    """Stand-alone gold asset class, not registered anywhere."""
    return AssetClass(asset_class_id="gold-1", symbol="GOLD", decimals=9, authority=AUTHORITY)


@pytest.fixture
def funded_ledger(ledger, gold_class):
    """Ledger with gold registered and alice holding 1000 units."""
    ledger.register_asset_class(gold_class)
    alice = ledger.open_holding(gold_class.asset_class_id, "alice")
    ledger.open_holding(gold_class.asset_class_id, "bob")
    ledger.credit(alice.holding_id, 1_000)
    return ledger


# =============================================================================
# ORCHESTRATOR FIXTURES
# =============================================================================

@pytest.fixture
def program(clock):
    """Orchestrator over a fresh ledger, driven by the clock fixture."""
    return LifecycleOrchestrator(BalanceLedger("test"), clock)


@pytest.fixture
def gold(program):
    """Initialized gold asset class."""
    return init_gold(program)


@pytest.fixture
def alice(program, gold):
    return program.open_holding(gold.asset_class_id, "alice")


@pytest.fixture
def bob(program, gold):
    return program.open_holding(gold.asset_class_id, "bob")
