"""
Operation Atomicity Conformance Tests

INVARIANT: Every market operation is all-or-nothing.

    ∀ operation op:
        op raises MarketError ⟹ balances, markets, bets, stats,
                                 registry and transaction log are unchanged

Failed operations are built by pure functions that raise before anything
is submitted, or rejected whole by the ledger.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from market_ledger import (
    MarketLedger, MarketConfig, MarketError,
    NotAuthorized, MarketNotFound, MarketClosed, InsufficientFunds,
    InvalidOutcome, AlreadyClaimed, MarketAlreadyResolved,
)
from tests.helpers import OWNER, ctx, engine_state


def _engine_with_market() -> MarketLedger:
    engine = MarketLedger(MarketConfig(owner=OWNER), verbose=False)
    engine.open_account("alice", 1_000)
    engine.open_account("bob", 1_000)
    engine.create_market(ctx(OWNER, 1), "c", "q", "yes", "no", 50)
    engine.place_bet(ctx("alice", 2), 1, "yes", 400)
    return engine


class TestAtomicityProperties:
    """Property-based atomicity tests."""

    @given(
        caller=st.sampled_from(["alice", "bob", "ghost"]),
        market_id=st.integers(min_value=0, max_value=3),
        outcome=st.sampled_from(["yes", "no", "maybe", ""]),
        amount=st.integers(min_value=-10, max_value=5_000),
        height=st.integers(min_value=2, max_value=80),
    )
    @settings(max_examples=100, deadline=None)
    def test_failed_bet_changes_nothing(self, caller, market_id, outcome, amount, height):
        """
        PROPERTY: place_bet either succeeds with exactly its effect, or raises
        a MarketError and leaves the engine untouched.
        """
        engine = _engine_with_market()
        before = engine_state(engine)
        try:
            engine.place_bet(ctx(caller, height), market_id, outcome, amount)
        except MarketError:
            assert engine_state(engine) == before
        else:
            market = engine.get_market(market_id)
            assert market.total_pool == 400 + amount
            assert engine.get_balance(caller) == before['balances'][caller]['STX'] - amount

    @given(
        caller=st.sampled_from([OWNER, "alice"]),
        market_id=st.integers(min_value=0, max_value=2),
        outcome=st.sampled_from(["yes", "no", "maybe"]),
    )
    @settings(max_examples=50, deadline=None)
    def test_failed_resolution_changes_nothing(self, caller, market_id, outcome):
        engine = _engine_with_market()
        before = engine_state(engine)
        try:
            engine.resolve_market(ctx(caller, 60), market_id, outcome)
        except MarketError:
            assert engine_state(engine) == before
        else:
            assert engine.get_market(market_id).winning_outcome == outcome

    @given(
        amount=st.integers(min_value=-5, max_value=2_000),
        caller=st.sampled_from(["alice", "bob", "ghost"]),
    )
    @settings(max_examples=50, deadline=None)
    def test_failed_funding_changes_nothing(self, amount, caller):
        engine = _engine_with_market()
        before = engine_state(engine)
        try:
            engine.fund_treasury(ctx(caller, 3), amount)
        except InsufficientFunds:
            assert engine_state(engine) == before
        else:
            assert engine.get_treasury_balance() == amount


class TestAtomicityExamples:
    """Explicit atomicity examples, one per failure code."""

    @pytest.mark.parametrize("operation, error", [
        (lambda e: e.create_market(ctx("alice", 3), "c", "q", "y", "n", 9), NotAuthorized),
        (lambda e: e.place_bet(ctx("bob", 3), 9, "yes", 10), MarketNotFound),
        (lambda e: e.place_bet(ctx("bob", 50), 1, "yes", 10), MarketClosed),
        (lambda e: e.place_bet(ctx("bob", 3), 1, "maybe", 10), InvalidOutcome),
        (lambda e: e.place_bet(ctx("bob", 3), 1, "no", 1_001), InsufficientFunds),
        (lambda e: e.claim_winnings(ctx("alice", 3), 1), MarketNotFound),
        (lambda e: e.claim_winnings(ctx("bob", 3), 1), NotAuthorized),
        (lambda e: e.fund_treasury(ctx("bob", 3), 0), InsufficientFunds),
    ])
    def test_failure_leaves_state(self, operation, error):
        engine = _engine_with_market()
        before = engine_state(engine)
        with pytest.raises(error):
            operation(engine)
        assert engine_state(engine) == before

    def test_failures_after_resolution(self):
        engine = _engine_with_market()
        engine.resolve_market(ctx(OWNER, 60), 1, "yes")
        engine.claim_winnings(ctx("alice", 61), 1)
        before = engine_state(engine)
        with pytest.raises(MarketAlreadyResolved):
            engine.resolve_market(ctx(OWNER, 62), 1, "no")
        with pytest.raises(AlreadyClaimed):
            engine.claim_winnings(ctx("alice", 62), 1)
        assert engine_state(engine) == before
