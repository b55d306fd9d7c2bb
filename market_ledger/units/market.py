"""
market.py - Two-Outcome Prediction Market Units

This module provides market creation, betting, resolution and claims using
a pure function architecture:

1. FROZEN DATACLASSES: Market and Bet snapshots loaded from unit state
2. ADAPTER FUNCTIONS: load_market(), load_bet(), to_market_dict(), to_bet_dict()
3. COMPUTE FUNCTIONS (compute_*): validate against a LedgerView and return
   a PendingTransaction; they never mutate. A violated precondition raises
   a MarketError before anything is built, so a failed operation has no
   effect on the ledger.

State layout:
    "MKT-<id>"          market_id, category, question, outcome_a, outcome_b,
                        pool_a, pool_b, start_time, end_time,
                        resolved, winning_outcome, status
    "BET-<id>-<user>"   outcome, amount, claimed
    "STATS-<user>"      see user_stats.py

A bet or claim rewrites only the market, the one bet and the one user's
statistics, never a table of every bettor.

Lifecycle:
    OPEN --resolve_market--> RESOLVED
    CLOSED is reserved and never produced.

Pattern (claim, winning bet):
    Move(share, token, custody, winner)
    Move(actual_bonus, token, treasury, winner)    # only when > 0
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..core import (
    LedgerView, Move, PendingTransaction, Unit, UnitStateChange,
    TransactionOrigin, OriginType,
    UNIT_TYPE_PREDICTION_MARKET, UNIT_TYPE_BET,
    MARKET_SYMBOL_PREFIX, BET_SYMBOL_PREFIX,
    MAX_CATEGORY_LENGTH, MAX_QUESTION_LENGTH, MAX_OUTCOME_LENGTH,
    NotAuthorized, MarketNotFound, MarketClosed, MarketAlreadyResolved,
    InsufficientFunds, InvalidOutcome, AlreadyClaimed,
    build_transaction, _freeze_state,
)
from ..payouts import PayoutBreakdown, calculate_payout
from .registry import load_registry, registry_change, require_owner, is_reserved_wallet
from .user_stats import get_user_stats, write_user_stats


class MarketStatus(str, Enum):
    """Status of a market."""
    OPEN = "OPEN"
    CLOSED = "CLOSED"       # Reserved; no operation produces it
    RESOLVED = "RESOLVED"


@dataclass(frozen=True, slots=True)
class Market:
    """Immutable snapshot of a market, as returned by queries."""
    market_id: int
    category: str
    question: str
    outcome_a: str
    outcome_b: str
    pool_a: int
    pool_b: int
    start_time: int
    end_time: int
    resolved: bool
    winning_outcome: Optional[str]
    status: MarketStatus

    @property
    def total_pool(self) -> int:
        return self.pool_a + self.pool_b

    def has_outcome(self, outcome: str) -> bool:
        return outcome == self.outcome_a or outcome == self.outcome_b

    def pool_for(self, outcome: str) -> int:
        """Pool of an outcome label: outcome-a's pool if it matches, else outcome-b's."""
        return self.pool_a if outcome == self.outcome_a else self.pool_b

    def accepts_bets_at(self, block_height: int) -> bool:
        """Open for betting only while OPEN and strictly before end_time."""
        return self.status is MarketStatus.OPEN and block_height < self.end_time


@dataclass(frozen=True, slots=True)
class Bet:
    """Immutable snapshot of a user's bet on one market."""
    outcome: str
    amount: int
    claimed: bool = False


# ============================================================================
# ADAPTER FUNCTIONS
# ============================================================================

def market_symbol(market_id: int) -> str:
    """Unit symbol for a market id (e.g., 1 -> "MKT-1")."""
    return f"{MARKET_SYMBOL_PREFIX}{market_id}"


def bet_symbol(market_id: int, user: str) -> str:
    """Unit symbol for a user's bet on a market (e.g., 1, "alice" -> "BET-1-alice")."""
    return f"{BET_SYMBOL_PREFIX}{market_id}-{user}"


def _market_from_state(raw: Dict[str, Any]) -> Market:
    return Market(
        market_id=raw['market_id'],
        category=raw['category'],
        question=raw['question'],
        outcome_a=raw['outcome_a'],
        outcome_b=raw['outcome_b'],
        pool_a=raw['pool_a'],
        pool_b=raw['pool_b'],
        start_time=raw['start_time'],
        end_time=raw['end_time'],
        resolved=raw['resolved'],
        winning_outcome=raw['winning_outcome'],
        status=MarketStatus(raw['status']),
    )


def load_market(view: LedgerView, market_id: int) -> Optional[Market]:
    """Load a market snapshot, or None if no market has this id."""
    symbol = market_symbol(market_id)
    if not view.has_unit(symbol):
        return None
    return _market_from_state(view.get_unit_state(symbol))


def load_bet(view: LedgerView, market_id: int, user: str) -> Optional[Bet]:
    """Load a user's bet on a market, or None if there is none."""
    symbol = bet_symbol(market_id, user)
    if not view.has_unit(symbol):
        return None
    return Bet(**view.get_unit_state(symbol))


def list_markets(view: LedgerView) -> List[Market]:
    """All markets in id order."""
    registry = load_registry(view)
    return [load_market(view, market_id) for market_id in range(1, registry.nonce + 1)]


def to_market_dict(market: Market) -> Dict[str, Any]:
    """Convert a Market snapshot to a state dict for ledger storage."""
    return {
        'market_id': market.market_id,
        'category': market.category,
        'question': market.question,
        'outcome_a': market.outcome_a,
        'outcome_b': market.outcome_b,
        'pool_a': market.pool_a,
        'pool_b': market.pool_b,
        'start_time': market.start_time,
        'end_time': market.end_time,
        'resolved': market.resolved,
        'winning_outcome': market.winning_outcome,
        'status': market.status.value,
    }


def to_bet_dict(bet: Bet) -> Dict[str, Any]:
    return {'outcome': bet.outcome, 'amount': bet.amount, 'claimed': bet.claimed}


def _check_text(field_name: str, value: str, max_length: int) -> None:
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string, got {type(value)}")
    if not value.isascii():
        raise ValueError(f"{field_name} must be ASCII")
    if len(value) > max_length:
        raise ValueError(f"{field_name} exceeds {max_length} characters")


def create_market_unit(
    market_id: int,
    category: str,
    question: str,
    outcome_a: str,
    outcome_b: str,
    start_time: int,
    end_time: int,
) -> Unit:
    """
    Create the unit for a new market: both pools at zero, OPEN, unresolved.

    Text fields are accepted as-is up to their bounded lengths. Distinct
    outcome labels are expected but not enforced.

    Raises:
        ValueError: If a text field is not ASCII or is too long, or end_time is negative
    """
    _check_text("category", category, MAX_CATEGORY_LENGTH)
    _check_text("question", question, MAX_QUESTION_LENGTH)
    _check_text("outcome_a", outcome_a, MAX_OUTCOME_LENGTH)
    _check_text("outcome_b", outcome_b, MAX_OUTCOME_LENGTH)
    if end_time < 0:
        raise ValueError(f"end_time must be non-negative, got {end_time}")

    market = Market(
        market_id=market_id,
        category=category,
        question=question,
        outcome_a=outcome_a,
        outcome_b=outcome_b,
        pool_a=0,
        pool_b=0,
        start_time=start_time,
        end_time=end_time,
        resolved=False,
        winning_outcome=None,
        status=MarketStatus.OPEN,
    )
    return Unit(
        symbol=market_symbol(market_id),
        name=question,
        unit_type=UNIT_TYPE_PREDICTION_MARKET,
        _frozen_state=_freeze_state(to_market_dict(market)),
    )


def create_bet_unit(market_id: int, user: str, bet: Bet) -> Unit:
    """Create the unit recording a user's first bet on a market."""
    return Unit(
        symbol=bet_symbol(market_id, user),
        name=f"Bet ({user} on market {market_id})",
        unit_type=UNIT_TYPE_BET,
        _frozen_state=_freeze_state(to_bet_dict(bet)),
    )


def _write_bet(
    view: LedgerView,
    market_id: int,
    user: str,
    bet: Bet,
) -> Tuple[List[UnitStateChange], List[Unit]]:
    """Overwrite an existing bet unit, or create it on the user's first bet."""
    symbol = bet_symbol(market_id, user)
    if view.has_unit(symbol):
        change = UnitStateChange(
            unit=symbol, old_state=view.get_unit_state(symbol), new_state=to_bet_dict(bet)
        )
        return [change], []
    return [], [create_bet_unit(market_id, user, bet)]


def _market_change(view: LedgerView, market: Market) -> UnitStateChange:
    symbol = market_symbol(market.market_id)
    return UnitStateChange(
        unit=symbol, old_state=view.get_unit_state(symbol), new_state=to_market_dict(market)
    )


def _origin(caller: str, market_id: int, event_type: str) -> TransactionOrigin:
    return TransactionOrigin(
        origin_type=OriginType.USER_ACTION,
        source_id=caller,
        unit_symbol=market_symbol(market_id),
        event_type=event_type,
    )


# ============================================================================
# COMPUTE FUNCTIONS
# ============================================================================

def compute_market_creation(
    view: LedgerView,
    caller: str,
    category: str,
    question: str,
    outcome_a: str,
    outcome_b: str,
    end_time: int,
) -> PendingTransaction:
    """
    Build the creation of the next market.

    Args:
        view: Read-only ledger access (current_time becomes the start time)
        caller: Must be the owner fixed at deployment
        category, question, outcome_a, outcome_b: Bounded-length ASCII text
        end_time: Betting deadline (block height), accepted as-is

    Returns:
        PendingTransaction bumping the registry nonce and creating the
        market unit. The new id is registry.nonce + 1.

    Raises:
        NotAuthorized: If caller is not the owner
    """
    registry = load_registry(view)
    require_owner(registry, caller)

    market_id = registry.nonce + 1
    unit = create_market_unit(
        market_id, category, question, outcome_a, outcome_b,
        start_time=view.current_time,
        end_time=end_time,
    )
    changes = [registry_change(view, replace(registry, nonce=market_id))]
    return build_transaction(
        view,
        moves=[],
        state_changes=changes,
        origin=_origin(caller, market_id, "CREATE_MARKET"),
        units_to_create=(unit,),
    )


def compute_bet(
    view: LedgerView,
    caller: str,
    market_id: int,
    outcome: str,
    amount: int,
) -> PendingTransaction:
    """
    Build a bet of amount on outcome.

    Checks, in order:
        MarketNotFound  - no market with this id
        MarketClosed    - not OPEN, or current block height >= end_time
        InvalidOutcome  - outcome matches neither label
        InsufficientFunds - amount is not positive, or caller is a reserved wallet

    A second bet by the same caller overwrites the stored bet while the
    pools keep both stakes and total_bets still increments.

    Returns:
        PendingTransaction with the caller -> custody move, the pool update,
        the caller's bet and the caller's total_bets increment.
    """
    market = load_market(view, market_id)
    if market is None:
        raise MarketNotFound(f"market {market_id} not found")
    if not market.accepts_bets_at(view.current_time):
        raise MarketClosed(
            f"market {market_id} is {market.status.value}, "
            f"height {view.current_time} vs end {market.end_time}"
        )
    if not market.has_outcome(outcome):
        raise InvalidOutcome(f"{outcome!r} is not an outcome of market {market_id}")
    if amount <= 0:
        raise InsufficientFunds(f"bet amount must be positive, got {amount}")

    registry = load_registry(view)
    if is_reserved_wallet(registry, caller):
        raise InsufficientFunds(f"reserved wallet {caller} cannot place bets")

    if outcome == market.outcome_a:
        updated = replace(market, pool_a=market.pool_a + amount)
    else:
        updated = replace(market, pool_b=market.pool_b + amount)

    moves = [
        Move(
            quantity=amount,
            unit_symbol=registry.token_symbol,
            source=caller,
            dest=registry.custody_wallet,
            contract_id=f"bet_{market_symbol(market_id)}",
        ),
    ]
    bet_changes, bet_units = _write_bet(view, market_id, caller, Bet(outcome, amount))
    stats_changes, stats_units = write_user_stats(
        view, caller, get_user_stats(view, caller).record_bet()
    )
    return build_transaction(
        view,
        moves,
        [_market_change(view, updated), *bet_changes, *stats_changes],
        origin=_origin(caller, market_id, "PLACE_BET"),
        units_to_create=tuple(bet_units + stats_units),
    )


def compute_resolution(
    view: LedgerView,
    caller: str,
    market_id: int,
    winning_outcome: str,
) -> PendingTransaction:
    """
    Build the resolution of a market. Irreversible.

    Checks, in order: NotAuthorized, MarketNotFound, MarketAlreadyResolved,
    InvalidOutcome.
    """
    require_owner(load_registry(view), caller)
    market = load_market(view, market_id)
    if market is None:
        raise MarketNotFound(f"market {market_id} not found")
    if market.resolved:
        raise MarketAlreadyResolved(f"market {market_id} already resolved")
    if not market.has_outcome(winning_outcome):
        raise InvalidOutcome(f"{winning_outcome!r} is not an outcome of market {market_id}")

    resolved = replace(
        market, resolved=True, winning_outcome=winning_outcome, status=MarketStatus.RESOLVED
    )
    changes = [_market_change(view, resolved)]
    return build_transaction(view, [], changes, origin=_origin(caller, market_id, "RESOLVE_MARKET"))


def compute_claim_payout(view: LedgerView, caller: str, market_id: int) -> Optional[PayoutBreakdown]:
    """
    Payout a claim would receive right now: a PayoutBreakdown for a winning
    bet, None for a losing one.

    Checks, in order:
        MarketNotFound  - no market with this id
        NotAuthorized   - caller has no bet on it, or is a reserved wallet
        MarketNotFound  - no winning outcome recorded yet
        MarketClosed    - market not resolved
        AlreadyClaimed  - bet already claimed
    """
    market = load_market(view, market_id)
    if market is None:
        raise MarketNotFound(f"market {market_id} not found")
    registry = load_registry(view)
    if is_reserved_wallet(registry, caller):
        raise NotAuthorized(f"reserved wallet {caller} cannot claim")
    bet = load_bet(view, market_id, caller)
    if bet is None:
        raise NotAuthorized(f"{caller} has no bet on market {market_id}")
    if market.winning_outcome is None:
        raise MarketNotFound(f"market {market_id} has no winning outcome")
    if not market.resolved:
        raise MarketClosed(f"market {market_id} is not resolved")
    if bet.claimed:
        raise AlreadyClaimed(f"{caller} already claimed market {market_id}")

    if bet.outcome != market.winning_outcome:
        return None

    return calculate_payout(
        stake=bet.amount,
        pool_a=market.pool_a,
        pool_b=market.pool_b,
        winning_pool=market.pool_for(market.winning_outcome),
        current_streak=get_user_stats(view, caller).current_streak,
        treasury_balance=view.get_balance(registry.treasury_wallet, registry.token_symbol),
    )


def compute_claim(view: LedgerView, caller: str, market_id: int) -> PendingTransaction:
    """
    Build a claim on a resolved market.

    Win: share from custody plus any affordable streak bonus from the
    treasury; total_wins, streaks and total_earnings updated.
    Loss: no transfer; current_streak reset to 0.
    Either way the bet is marked claimed.

    Raises:
        MarketError: see compute_claim_payout() for the checks
    """
    payout = compute_claim_payout(view, caller, market_id)

    registry = load_registry(view)
    symbol = market_symbol(market_id)
    stats = get_user_stats(view, caller)
    moves: List[Move] = []

    if payout is not None:
        moves.append(Move(
            quantity=payout.share,
            unit_symbol=registry.token_symbol,
            source=registry.custody_wallet,
            dest=caller,
            contract_id=f"claim_{symbol}_share",
        ))
        if payout.actual_bonus > 0:
            moves.append(Move(
                quantity=payout.actual_bonus,
                unit_symbol=registry.token_symbol,
                source=registry.treasury_wallet,
                dest=caller,
                contract_id=f"claim_{symbol}_bonus",
            ))
        new_stats = stats.record_win(payout.new_streak, payout.total_payout)
    else:
        new_stats = stats.record_loss()

    claimed = replace(load_bet(view, market_id, caller), claimed=True)
    bet_changes, bet_units = _write_bet(view, market_id, caller, claimed)
    stats_changes, stats_units = write_user_stats(view, caller, new_stats)
    return build_transaction(
        view,
        moves,
        [*bet_changes, *stats_changes],
        origin=_origin(caller, market_id, "CLAIM_WINNINGS"),
        units_to_create=tuple(bet_units + stats_units),
    )
