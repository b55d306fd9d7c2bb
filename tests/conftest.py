"""
conftest.py - Shared pytest fixtures for market ledger tests

Provides common fixtures used across unit and functional tests:
- Basic token ledgers (empty, funded)
- Deployed market engines (empty, with funded bettors, with an open market)
"""

import pytest

from market_ledger import (
    Ledger, MarketLedger, MarketConfig,
    Move, build_transaction, token,
    SYSTEM_WALLET,
)
from tests.helpers import OWNER, TOKEN, ctx


# =============================================================================
# LEDGER FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Ledger with the settlement token and nothing else."""
    ledger = Ledger("test", verbose=False)
    ledger.register_unit(token(TOKEN, "Settlement Token"))
    return ledger


@pytest.fixture
def funded_ledger(empty_ledger):
    """Token ledger with alice holding 1000 and bob registered empty."""
    ledger = empty_ledger
    ledger.register_wallet("alice")
    ledger.register_wallet("bob")
    ledger.execute(build_transaction(ledger, [
        Move(1000, TOKEN, SYSTEM_WALLET, "alice", "initial_alice"),
    ]))
    return ledger


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def config():
    return MarketConfig(owner=OWNER, token_symbol=TOKEN)


@pytest.fixture
def engine(config):
    """Deployed engine at block height 0 with no accounts besides the owner."""
    return MarketLedger(config, verbose=False)


@pytest.fixture
def funded_engine(engine):
    """Engine with alice, bob and carol holding 10,000 each."""
    for user in ("alice", "bob", "carol"):
        engine.open_account(user, 10_000)
    return engine


@pytest.fixture
def open_market(funded_engine):
    """
    Engine with market 1 ("yes" / "no") created at height 1, betting until height 100.

    Returns:
        (engine, market_id)
    """
    market_id = funded_engine.create_market(
        ctx(OWNER, 1), "crypto", "Will it close above 100?", "yes", "no", 100
    )
    return funded_engine, market_id
