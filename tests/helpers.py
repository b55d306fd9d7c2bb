"""
helpers.py - Shared test helpers for market ledger tests
"""

from typing import Any, Dict

from market_ledger import ExecutionContext, MarketLedger


OWNER = "owner"
TOKEN = "STX"


def ctx(caller: str, height: int) -> ExecutionContext:
    """Shorthand for an ExecutionContext."""
    return ExecutionContext(caller=caller, block_height=height)


def engine_state(engine: MarketLedger) -> Dict[str, Any]:
    """
    Capture everything an operation may touch: balances, unit state and the
    block height.

    Two captures compare equal iff no balance, unit state or clock changed
    in between.
    """
    ledger = engine.ledger
    return {
        'balances': {
            w: dict(ledger.balances[w]) for w in sorted(ledger.registered_wallets)
        },
        'units': {
            symbol: ledger.get_unit_state(symbol) for symbol in ledger.list_units()
        },
        'tx_count': len(ledger.transaction_log),
        'block_height': ledger.current_time,
    }
