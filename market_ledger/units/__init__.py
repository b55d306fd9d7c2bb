"""
Units module - State-carrying units of the prediction market ledger.

This module provides the units that hold market state inside the ledger:
- Prediction markets and per-user bets (pools, resolution, claims)
- The market registry (owner, nonce, reserved wallets)
- Per-user statistics (bets, wins, streaks, earnings)
- The bonus treasury and token issuance

All unit factories and related functions are re-exported here for convenience.
"""

# Prediction markets
from .market import (
    Market,
    Bet,
    MarketStatus,
    market_symbol,
    bet_symbol,
    create_market_unit,
    create_bet_unit,
    load_market,
    load_bet,
    list_markets,
    to_market_dict,
    to_bet_dict,
    compute_market_creation,
    compute_bet,
    compute_resolution,
    compute_claim_payout,
    compute_claim,
)

# Market registry
from .registry import (
    MarketRegistry,
    create_registry_unit,
    load_registry,
    to_registry_dict,
    registry_change,
    require_owner,
    is_reserved_wallet,
    compute_deployment,
)

# User statistics
from .user_stats import (
    UserStats,
    stats_symbol,
    create_user_stats_unit,
    get_user_stats,
    to_stats_dict,
    stats_change,
    write_user_stats,
)

# Treasury and issuance
from .treasury import (
    get_treasury_balance,
    compute_treasury_funding,
    compute_issuance,
)

__all__ = [
    # Markets
    'Market', 'Bet', 'MarketStatus', 'market_symbol', 'bet_symbol',
    'create_market_unit', 'create_bet_unit', 'load_market', 'load_bet',
    'list_markets', 'to_market_dict', 'to_bet_dict',
    'compute_market_creation', 'compute_bet', 'compute_resolution',
    'compute_claim_payout', 'compute_claim',
    # Registry
    'MarketRegistry', 'create_registry_unit', 'load_registry', 'to_registry_dict',
    'registry_change', 'require_owner', 'is_reserved_wallet', 'compute_deployment',
    # User statistics
    'UserStats', 'stats_symbol', 'create_user_stats_unit', 'get_user_stats',
    'to_stats_dict', 'stats_change', 'write_user_stats',
    # Treasury
    'get_treasury_balance', 'compute_treasury_funding', 'compute_issuance',
]
