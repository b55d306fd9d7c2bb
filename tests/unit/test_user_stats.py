"""
test_user_stats.py - Unit tests for per-user statistics

Tests:
- UserStats transitions (bet, win, loss)
- Get-or-default accessor
- Per-user unit creation and state changes
"""

from market_ledger import UNIT_TYPE_USER_STATS
from market_ledger.units import (
    UserStats, stats_symbol, create_user_stats_unit, get_user_stats, to_stats_dict,
    stats_change, write_user_stats,
)
from tests.fake_view import FakeView


class TestUserStats:
    """Tests for UserStats transitions."""

    def test_zero_record(self):
        stats = UserStats()
        assert to_stats_dict(stats) == {
            'total_bets': 0,
            'total_wins': 0,
            'current_streak': 0,
            'highest_streak': 0,
            'total_earnings': 0,
        }

    def test_record_bet(self):
        assert UserStats().record_bet().record_bet().total_bets == 2

    def test_record_win(self):
        stats = UserStats(total_bets=2, current_streak=1, highest_streak=1, total_earnings=100)
        won = stats.record_win(new_streak=2, payout=500)
        assert won.total_wins == 1
        assert won.current_streak == 2
        assert won.highest_streak == 2
        assert won.total_earnings == 600
        assert won.total_bets == 2

    def test_record_win_keeps_higher_highest_streak(self):
        stats = UserStats(current_streak=0, highest_streak=5)
        assert stats.record_win(new_streak=1, payout=10).highest_streak == 5

    def test_record_loss_only_resets_streak(self):
        stats = UserStats(total_bets=4, total_wins=3, current_streak=3, highest_streak=3, total_earnings=900)
        lost = stats.record_loss()
        assert lost == UserStats(
            total_bets=4, total_wins=3, current_streak=0, highest_streak=3, total_earnings=900,
        )


class TestGetUserStats:
    """Tests for the get-or-default accessor."""

    def test_missing_unit_reads_zero(self):
        assert get_user_stats(FakeView(balances={}), "alice") == UserStats()

    def test_existing_user(self):
        record = to_stats_dict(UserStats(total_bets=3, total_wins=1))
        view = FakeView(balances={}, states={"STATS-alice": record})
        assert get_user_stats(view, "alice").total_bets == 3
        assert get_user_stats(view, "bob") == UserStats()


class TestWriteUserStats:

    def test_symbol(self):
        assert stats_symbol("alice") == "STATS-alice"

    def test_first_write_creates_unit(self):
        changes, units = write_user_stats(FakeView(balances={}), "alice", UserStats(total_bets=1))
        assert changes == []
        (unit,) = units
        assert unit.symbol == "STATS-alice"
        assert unit.unit_type == UNIT_TYPE_USER_STATS
        assert unit.state == to_stats_dict(UserStats(total_bets=1))

    def test_later_write_changes_only_that_user(self):
        alice = to_stats_dict(UserStats(total_bets=2))
        bob = to_stats_dict(UserStats(total_bets=7))
        view = FakeView(balances={}, states={"STATS-alice": alice, "STATS-bob": bob})
        changes, units = write_user_stats(view, "alice", UserStats(total_bets=3))
        assert units == []
        (change,) = changes
        assert change.unit == "STATS-alice"
        assert change.old_state == alice
        assert change.new_state == to_stats_dict(UserStats(total_bets=3))

    def test_stats_change_matches_create(self):
        unit = create_user_stats_unit("carol", UserStats(total_wins=1, total_bets=1))
        view = FakeView(balances={}, states={unit.symbol: unit.state})
        change = stats_change(view, "carol", UserStats(total_wins=1, total_bets=2))
        assert change.old_state == unit.state
        assert change.new_state['total_bets'] == 2
