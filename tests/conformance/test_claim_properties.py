"""
Claim Conformance Tests

INVARIANT: Each bet is claimed at most once.

    claim(m, u) succeeds ⟹ every later claim(m, u) raises AlreadyClaimed
                            and changes nothing

INVARIANT: Streaks follow claimed outcomes.

    claimed win  ⟹ current_streak' = current_streak + 1
    claimed loss ⟹ current_streak' = 0
    always       ⟹ highest_streak' ≥ highest_streak ≥ current_streak
                    total_wins ≤ total_bets, total_earnings never decreases
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from market_ledger import MarketLedger, MarketConfig, AlreadyClaimed, streak_multiplier
from tests.helpers import OWNER, ctx, engine_state


def _engine() -> MarketLedger:
    engine = MarketLedger(MarketConfig(owner=OWNER), verbose=False)
    for user in ("alice", "bob", "sponsor"):
        engine.open_account(user, 1_000_000)
    engine.fund_treasury(ctx("sponsor", 0), 500_000)
    return engine


class TestExactlyOnce:
    """Property-based exactly-once claim tests."""

    @given(
        alice_side=st.sampled_from(["yes", "no"]),
        winner=st.sampled_from(["yes", "no"]),
        stake=st.integers(min_value=1, max_value=10_000),
        retries=st.integers(min_value=1, max_value=3),
    )
    @settings(max_examples=50, deadline=None)
    def test_second_claim_always_fails(self, alice_side, winner, stake, retries):
        engine = _engine()
        market_id = engine.create_market(ctx(OWNER, 1), "c", "q", "yes", "no", 10)
        engine.place_bet(ctx("alice", 2), market_id, alice_side, stake)
        engine.place_bet(ctx("bob", 2), market_id, "no" if alice_side == "yes" else "yes", stake)
        engine.resolve_market(ctx(OWNER, 11), market_id, winner)

        engine.claim_winnings(ctx("alice", 12), market_id)
        after_first = engine_state(engine)
        for attempt in range(retries):
            with pytest.raises(AlreadyClaimed):
                engine.claim_winnings(ctx("alice", 13 + attempt), market_id)
        assert engine_state(engine) == after_first


class TestStreakProperties:
    """Property-based streak and statistics tests."""

    @given(st.lists(st.booleans(), min_size=1, max_size=15))
    @settings(max_examples=40, deadline=None)
    def test_streak_follows_outcomes(self, results):
        """
        PROPERTY: for any sequence of claimed wins and losses, the stats move
        exactly as the streak rules describe, and the bonus paid matches
        the multiplier for the new streak.
        """
        engine = _engine()
        height = 1
        expected_streak = 0
        for won in results:
            before = engine.get_user_stats("alice")
            market_id = engine.create_market(ctx(OWNER, height), "c", "q", "yes", "no", height + 2)
            engine.place_bet(ctx("alice", height), market_id, "yes", 100)
            engine.place_bet(ctx("bob", height), market_id, "no", 100)
            engine.resolve_market(ctx(OWNER, height + 3), market_id, "yes" if won else "no")

            balance = engine.get_balance("alice")
            engine.claim_winnings(ctx("alice", height + 3), market_id)
            paid = engine.get_balance("alice") - balance
            after = engine.get_user_stats("alice")

            expected_streak = expected_streak + 1 if won else 0
            assert after.current_streak == expected_streak
            assert after.highest_streak >= before.highest_streak
            assert after.highest_streak >= after.current_streak
            assert after.total_wins <= after.total_bets
            assert after.total_earnings >= before.total_earnings
            if won:
                assert paid == 200 + 200 * streak_multiplier(expected_streak) // 100
                assert after.total_earnings == before.total_earnings + paid
            else:
                assert paid == 0
            height += 4

        assert engine.get_user_stats("alice").highest_streak == _longest_run(results)
        assert engine.get_user_stats("alice").total_wins == sum(results)


def _longest_run(results) -> int:
    longest = run = 0
    for won in results:
        run = run + 1 if won else 0
        longest = max(longest, run)
    return longest
