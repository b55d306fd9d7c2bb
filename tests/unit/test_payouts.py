"""
test_payouts.py - Unit tests for payout arithmetic

Tests:
- Streak multiplier schedule and cap
- Proportional share with floor division
- Bonus and treasury affordability
- Invalid inputs
"""

import pytest

from market_ledger import (
    PayoutBreakdown,
    streak_multiplier,
    calculate_share,
    calculate_bonus,
    calculate_payout,
)


class TestStreakMultiplier:
    """Tests for streak_multiplier()."""

    @pytest.mark.parametrize("streak, expected", [
        (0, 0),
        (1, 0),
        (2, 0),
        (3, 10),
        (5, 10),
        (6, 20),
        (29, 90),
        (30, 100),
        (31, 100),
        (1000, 100),
    ])
    def test_schedule(self, streak, expected):
        assert streak_multiplier(streak) == expected

    def test_negative_streak_raises(self):
        with pytest.raises(ValueError):
            streak_multiplier(-1)


class TestCalculateShare:
    """Tests for calculate_share()."""

    def test_even_pools(self):
        assert calculate_share(1000, 2000, 1000) == 2000

    def test_floor_division(self):
        # 100 * 1000 / 300 = 333.33...
        assert calculate_share(100, 1000, 300) == 333

    def test_sole_winner_gets_everything(self):
        assert calculate_share(500, 1500, 500) == 1500

    def test_zero_winning_pool_raises(self):
        with pytest.raises(ValueError):
            calculate_share(0, 1000, 0)

    def test_stake_above_winning_pool_raises(self):
        with pytest.raises(ValueError):
            calculate_share(600, 1000, 500)


class TestCalculateBonus:

    def test_bonus(self):
        assert calculate_bonus(2000, 10) == 200
        assert calculate_bonus(2000, 0) == 0
        assert calculate_bonus(999, 10) == 99


class TestCalculatePayout:
    """Tests for calculate_payout()."""

    def test_first_win_no_bonus(self):
        payout = calculate_payout(1000, 1000, 1000, 1000, current_streak=0, treasury_balance=10_000)
        assert payout == PayoutBreakdown(
            share=2000, new_streak=1, multiplier=0, bonus=0, actual_bonus=0, total_payout=2000,
        )

    def test_bonus_paid_when_treasury_covers_it(self):
        payout = calculate_payout(1000, 1000, 1000, 1000, current_streak=3, treasury_balance=200)
        assert payout.new_streak == 4
        assert payout.multiplier == 10
        assert payout.bonus == 200
        assert payout.actual_bonus == 200
        assert payout.total_payout == 2200

    def test_bonus_skipped_when_treasury_short(self):
        payout = calculate_payout(1000, 1000, 1000, 1000, current_streak=3, treasury_balance=50)
        assert payout.bonus == 200
        assert payout.actual_bonus == 0
        assert payout.total_payout == payout.share == 2000

    def test_third_win_uses_new_streak(self):
        payout = calculate_payout(1000, 1000, 0, 1000, current_streak=2, treasury_balance=10_000)
        assert payout.share == 1000
        assert payout.new_streak == 3
        assert payout.actual_bonus == 100

    def test_capped_bonus(self):
        payout = calculate_payout(100, 100, 100, 100, current_streak=999, treasury_balance=10_000)
        assert payout.multiplier == 100
        assert payout.bonus == payout.share == 200
        assert payout.total_payout == 400

    def test_winning_pool_of_outcome_b(self):
        payout = calculate_payout(300, 900, 300, 300, current_streak=0, treasury_balance=0)
        assert payout.share == 1200
