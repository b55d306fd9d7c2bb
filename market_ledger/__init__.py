"""
market_ledger - Prediction Market Settlement Ledger

Two-outcome prediction markets settled on a double-entry token ledger,
with pooled stakes, proportional payouts and a streak bonus treasury.

Usage:
    from market_ledger import MarketLedger, MarketConfig, ExecutionContext

    engine = MarketLedger(MarketConfig(owner="owner"))
    engine.open_account("alice", 5000)
    engine.open_account("bob", 5000)

    market_id = engine.create_market(
        ExecutionContext("owner", 1), "sports", "Who wins the final?", "home", "away", 100
    )
    engine.place_bet(ExecutionContext("alice", 2), market_id, "home", 1000)
    engine.place_bet(ExecutionContext("bob", 3), market_id, "away", 1000)

    engine.resolve_market(ExecutionContext("owner", 101), market_id, "home")
    engine.claim_winnings(ExecutionContext("alice", 102), market_id)
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    Unit,
    UnitStateChange,
    ExecuteResult,
    ExecutionContext,
    MarketConfig,
    token,
    SYSTEM_WALLET,
    CUSTODY_WALLET,
    TREASURY_WALLET,
    UNIT_TYPE_TOKEN,
    UNIT_TYPE_PREDICTION_MARKET,
    UNIT_TYPE_MARKET_REGISTRY,
    UNIT_TYPE_USER_STATS,
    UNIT_TYPE_BET,
    REGISTRY_SYMBOL,
    MARKET_SYMBOL_PREFIX,
    BET_SYMBOL_PREFIX,
    USER_STATS_SYMBOL_PREFIX,
    MAX_CATEGORY_LENGTH,
    MAX_QUESTION_LENGTH,
    MAX_OUTCOME_LENGTH,
)

# Errors
from .core import (
    ErrorCode,
    LedgerError,
    UnitNotRegistered,
    WalletNotRegistered,
    MarketError,
    NotAuthorized,
    MarketNotFound,
    MarketClosed,
    MarketAlreadyResolved,
    InsufficientFunds,
    InvalidOutcome,
    AlreadyClaimed,
    error_for_code,
)

# Ledger
from .ledger import Ledger

# Payout arithmetic
from .payouts import (
    PayoutBreakdown,
    streak_multiplier,
    calculate_share,
    calculate_bonus,
    calculate_payout,
)

# Units
from .units import (
    Market,
    Bet,
    MarketStatus,
    UserStats,
    MarketRegistry,
    market_symbol,
    bet_symbol,
    stats_symbol,
    load_market,
    load_bet,
    get_user_stats,
    get_treasury_balance,
)

# Engine
from .engine import MarketLedger

__all__ = [
    # Core
    'LedgerView', 'Move', 'Transaction', 'PendingTransaction',
    'TransactionOrigin', 'OriginType', 'build_transaction',
    'Unit', 'UnitStateChange', 'ExecuteResult', 'ExecutionContext', 'MarketConfig',
    'token', 'SYSTEM_WALLET', 'CUSTODY_WALLET', 'TREASURY_WALLET',
    'UNIT_TYPE_TOKEN', 'UNIT_TYPE_PREDICTION_MARKET', 'UNIT_TYPE_MARKET_REGISTRY',
    'UNIT_TYPE_USER_STATS', 'UNIT_TYPE_BET', 'REGISTRY_SYMBOL',
    'MARKET_SYMBOL_PREFIX', 'BET_SYMBOL_PREFIX', 'USER_STATS_SYMBOL_PREFIX',
    'MAX_CATEGORY_LENGTH', 'MAX_QUESTION_LENGTH', 'MAX_OUTCOME_LENGTH',
    # Errors
    'ErrorCode', 'LedgerError', 'UnitNotRegistered', 'WalletNotRegistered',
    'MarketError', 'NotAuthorized', 'MarketNotFound', 'MarketClosed',
    'MarketAlreadyResolved', 'InsufficientFunds', 'InvalidOutcome', 'AlreadyClaimed',
    'error_for_code',
    # Ledger
    'Ledger',
    # Payouts
    'PayoutBreakdown', 'streak_multiplier', 'calculate_share', 'calculate_bonus',
    'calculate_payout',
    # Units
    'Market', 'Bet', 'MarketStatus', 'UserStats', 'MarketRegistry', 'market_symbol',
    'bet_symbol', 'stats_symbol',
    'load_market', 'load_bet', 'get_user_stats', 'get_treasury_balance',
    # Engine
    'MarketLedger',
]

__version__ = '1.0.0'
