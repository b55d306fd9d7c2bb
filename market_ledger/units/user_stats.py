"""
user_stats.py - Per-User Gamification Statistics

Each user's statistics live in their own state-only unit ("STATS-<user>"),
created by the user's first bet. Users with no unit read as the zero record.
A write touches only the one user's unit, so its cost does not depend on
how many users exist.

Invariants:
    highest_streak >= current_streak
    total_wins <= total_bets
    total_earnings never decreases
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Tuple

from ..core import (
    LedgerView, Unit, UnitStateChange,
    USER_STATS_SYMBOL_PREFIX, UNIT_TYPE_USER_STATS,
    _freeze_state,
)


@dataclass(frozen=True, slots=True)
class UserStats:
    """Immutable snapshot of one user's statistics."""
    total_bets: int = 0
    total_wins: int = 0
    current_streak: int = 0
    highest_streak: int = 0
    total_earnings: int = 0

    def record_bet(self) -> UserStats:
        return replace(self, total_bets=self.total_bets + 1)

    def record_win(self, new_streak: int, payout: int) -> UserStats:
        """Count a claimed win at the given streak and add its payout to earnings."""
        return replace(
            self,
            total_wins=self.total_wins + 1,
            current_streak=new_streak,
            highest_streak=max(self.highest_streak, new_streak),
            total_earnings=self.total_earnings + payout,
        )

    def record_loss(self) -> UserStats:
        return replace(self, current_streak=0)


def stats_symbol(user: str) -> str:
    """Unit symbol holding a user's statistics (e.g., "alice" -> "STATS-alice")."""
    return f"{USER_STATS_SYMBOL_PREFIX}{user}"


def to_stats_dict(stats: UserStats) -> Dict[str, Any]:
    return {
        'total_bets': stats.total_bets,
        'total_wins': stats.total_wins,
        'current_streak': stats.current_streak,
        'highest_streak': stats.highest_streak,
        'total_earnings': stats.total_earnings,
    }


def create_user_stats_unit(user: str, stats: UserStats) -> Unit:
    """Create a user's statistics unit holding its first record."""
    return Unit(
        symbol=stats_symbol(user),
        name=f"User Statistics ({user})",
        unit_type=UNIT_TYPE_USER_STATS,
        _frozen_state=_freeze_state(to_stats_dict(stats)),
    )


def get_user_stats(view: LedgerView, user: str) -> UserStats:
    """
    Get-or-default accessor: the user's statistics, or the zero record.
    """
    symbol = stats_symbol(user)
    if not view.has_unit(symbol):
        return UserStats()
    return UserStats(**view.get_unit_state(symbol))


def stats_change(view: LedgerView, user: str, new_stats: UserStats) -> UnitStateChange:
    """Build the state change rewriting an existing user's statistics."""
    symbol = stats_symbol(user)
    return UnitStateChange(
        unit=symbol,
        old_state=view.get_unit_state(symbol),
        new_state=to_stats_dict(new_stats),
    )


def write_user_stats(
    view: LedgerView,
    user: str,
    new_stats: UserStats,
) -> Tuple[List[UnitStateChange], List[Unit]]:
    """
    Persist new_stats for user.

    The ledger rejects a state change on a unit created in the same
    transaction, so a first write creates the unit with its record instead.

    Returns:
        (state_changes, units_to_create); exactly one of them is non-empty.
    """
    if view.has_unit(stats_symbol(user)):
        return [stats_change(view, user, new_stats)], []
    return [], [create_user_stats_unit(user, new_stats)]
