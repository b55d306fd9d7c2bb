"""
payouts.py - Pure payout arithmetic for winning claims

All functions take explicit integer inputs and never touch a LedgerView.
Division truncates toward zero (all operands are non-negative).

Key Formulas:
    share        = stake * (pool_a + pool_b) // winning_pool
    multiplier   = min(streak // 3, 10) * 10        (percent)
    bonus        = share * multiplier // 100
    actual_bonus = bonus if treasury >= bonus else 0
    total_payout = share + actual_bonus
"""

from __future__ import annotations
from dataclasses import dataclass

from .core import STREAK_STEP, BONUS_PERCENT_PER_STEP, MAX_BONUS_STEPS


@dataclass(frozen=True, slots=True)
class PayoutBreakdown:
    """
    Immutable result of a winning claim calculation.

    Attributes:
        share: Proportional share of the combined pool.
        new_streak: Winning streak after this claim.
        multiplier: Bonus percentage earned by new_streak.
        bonus: Bonus owed at that percentage.
        actual_bonus: Bonus actually paid (0 when the treasury cannot cover it).
        total_payout: share + actual_bonus.
    """
    share: int
    new_streak: int
    multiplier: int
    bonus: int
    actual_bonus: int
    total_payout: int


def streak_multiplier(streak: int) -> int:
    """
    Bonus percentage for a winning streak: +10 per 3 consecutive wins, capped at 100.

    Example:
        streak_multiplier(1)    # 0
        streak_multiplier(3)    # 10
        streak_multiplier(30)   # 100
        streak_multiplier(1000) # 100
    """
    if streak < 0:
        raise ValueError(f"streak must be non-negative, got {streak}")
    steps = min(streak // STREAK_STEP, MAX_BONUS_STEPS)
    return steps * BONUS_PERCENT_PER_STEP


def calculate_share(stake: int, total_pool: int, winning_pool: int) -> int:
    """
    Winner's proportional share of the whole pool, floored.

    Raises:
        ValueError: If winning_pool is not positive or smaller than the stake.
    """
    if winning_pool <= 0:
        raise ValueError(f"winning_pool must be positive, got {winning_pool}")
    if stake > winning_pool:
        raise ValueError(f"stake {stake} exceeds winning pool {winning_pool}")
    return stake * total_pool // winning_pool


def calculate_bonus(share: int, multiplier: int) -> int:
    """Bonus owed on a share at a percentage multiplier, floored."""
    return share * multiplier // 100


def calculate_payout(
    stake: int,
    pool_a: int,
    pool_b: int,
    winning_pool: int,
    current_streak: int,
    treasury_balance: int,
) -> PayoutBreakdown:
    """
    Full payout for a winning claim.

    The bonus is paid only when the treasury can cover all of it; otherwise
    the winner receives the share alone and no error is raised.

    Args:
        stake: The claimer's bet amount.
        pool_a: Total staked on outcome A.
        pool_b: Total staked on outcome B.
        winning_pool: The pool of the winning outcome (pool_a or pool_b).
        current_streak: The claimer's streak before this win.
        treasury_balance: Treasury balance available for bonuses.

    Returns:
        PayoutBreakdown with every intermediate value.

    Example:
        calculate_payout(1000, 1000, 1000, 1000, current_streak=3, treasury_balance=0)
        # share=2000, new_streak=4, multiplier=10, bonus=200, actual_bonus=0
    """
    share = calculate_share(stake, pool_a + pool_b, winning_pool)
    new_streak = current_streak + 1
    multiplier = streak_multiplier(new_streak)
    bonus = calculate_bonus(share, multiplier)
    actual_bonus = bonus if treasury_balance >= bonus else 0
    return PayoutBreakdown(
        share=share,
        new_streak=new_streak,
        multiplier=multiplier,
        bonus=bonus,
        actual_bonus=actual_bonus,
        total_payout=share + actual_bonus,
    )
