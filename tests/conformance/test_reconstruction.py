"""
State Reconstruction Conformance Tests

INVARIANT: The transaction log fully determines engine state.

    replay(log)            ≡ current state
    clone_at(t)            ≡ state after every transaction with height ≤ t
    clone_at(t).replay()   ≡ clone_at(t)

Markets, bets, statistics, registry and balances are all rebuilt.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from market_ledger import Ledger, MarketLedger, MarketConfig
from tests.helpers import OWNER, ctx


USERS = ["alice", "bob", "carol"]


def _ledger_view(ledger: Ledger):
    return (
        {u: ledger.get_unit_state(u) for u in ledger.list_units()},
        {w: ledger.get_balance(w, "STX") for w in sorted(ledger.list_wallets())},
    )


@st.composite
def market_history(draw):
    """A bet schedule with strictly increasing heights, then a resolution."""
    bets = draw(st.lists(
        st.tuples(
            st.sampled_from(USERS),
            st.sampled_from(["yes", "no"]),
            st.integers(min_value=1, max_value=500),
        ),
        min_size=1,
        max_size=8,
    ))
    winner = draw(st.sampled_from(["yes", "no"]))
    return bets, winner


def _run(bets, winner) -> MarketLedger:
    engine = MarketLedger(MarketConfig(owner=OWNER), verbose=False)
    for user in USERS:
        engine.open_account(user, 5_000)
    engine.fund_treasury(ctx("carol", 0), 1_000)
    engine.create_market(ctx(OWNER, 1), "c", "q", "yes", "no", 100)
    for height, (user, outcome, amount) in enumerate(bets, start=2):
        engine.place_bet(ctx(user, height), 1, outcome, amount)
    engine.resolve_market(ctx(OWNER, 200), 1, winner)
    for offset, user in enumerate(USERS, start=1):
        if engine.get_bet(1, user) is not None:
            engine.claim_winnings(ctx(user, 200 + offset), 1)
    return engine


class TestReconstructionProperties:

    @given(market_history())
    @settings(max_examples=30, deadline=None)
    def test_replay_matches_current_state(self, history):
        engine = _run(*history)
        assert _ledger_view(engine.ledger.replay()) == _ledger_view(engine.ledger)

    @given(market_history(), st.integers(min_value=0, max_value=210))
    @settings(max_examples=30, deadline=None)
    def test_clone_at_matches_replayed_prefix(self, history, height):
        engine = _run(*history)
        past = engine.ledger.clone_at(height)
        assert all(tx.execution_time <= height for tx in past.transaction_log)
        assert _ledger_view(past.replay()) == _ledger_view(past)

    @given(market_history())
    @settings(max_examples=20, deadline=None)
    def test_snapshot_before_resolution(self, history):
        bets, winner = history
        engine = _run(bets, winner)
        snap = engine.snapshot(block_height=199)
        market = snap.get_market(1)
        assert market.resolved is False
        assert market.total_pool == engine.get_market(1).total_pool
        assert all(not snap.get_bet(1, u).claimed for u in USERS if snap.get_bet(1, u))
