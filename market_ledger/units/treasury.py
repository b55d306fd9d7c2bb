"""
treasury.py - Treasury Funding and Token Issuance

The treasury is the token balance of the registry's treasury wallet. It is
funded by any caller and drawn down only to pay streak bonuses. Because
the token forbids negative balances, it can never go below zero.

Issuance moves tokens out of the system wallet; it stands in for the host
chain's native balances when accounts are opened.
"""

from __future__ import annotations
from dataclasses import replace

from ..core import (
    LedgerView, Move, PendingTransaction,
    TransactionOrigin, OriginType,
    SYSTEM_WALLET, REGISTRY_SYMBOL, InsufficientFunds,
    build_transaction,
)
from .registry import load_registry, registry_change, is_reserved_wallet


def get_treasury_balance(view: LedgerView) -> int:
    """Current treasury balance available for streak bonuses."""
    registry = load_registry(view)
    return view.get_balance(registry.treasury_wallet, registry.token_symbol)


def compute_treasury_funding(view: LedgerView, caller: str, amount: int) -> PendingTransaction:
    """
    Build the transfer of amount from caller to the treasury.

    Any user wallet may fund the treasury; there is no upper bound.

    Args:
        view: Read-only ledger access
        caller: Funding wallet
        amount: Tokens to add to the treasury

    Returns:
        PendingTransaction with the caller -> treasury move and the
        registry's cumulative funding counter bumped.

    Raises:
        InsufficientFunds: If amount is not positive, or caller is a reserved
            wallet (system, custody or treasury)
    """
    if amount <= 0:
        raise InsufficientFunds(f"funding amount must be positive, got {amount}")

    registry = load_registry(view)
    if is_reserved_wallet(registry, caller):
        raise InsufficientFunds(f"reserved wallet {caller} cannot fund the treasury")
    moves = [
        Move(
            quantity=amount,
            unit_symbol=registry.token_symbol,
            source=caller,
            dest=registry.treasury_wallet,
            contract_id="fund_treasury",
        ),
    ]
    changes = [
        registry_change(view, replace(registry, total_funded=registry.total_funded + amount)),
    ]
    origin = TransactionOrigin(
        origin_type=OriginType.USER_ACTION,
        source_id=caller,
        unit_symbol=REGISTRY_SYMBOL,
        event_type="FUND_TREASURY",
    )
    return build_transaction(view, moves, changes, origin=origin)


def compute_issuance(view: LedgerView, wallet_id: str, amount: int) -> PendingTransaction:
    """
    Build the issuance of amount tokens from the system wallet to wallet_id.

    Raises:
        ValueError: If amount is not positive
    """
    if amount <= 0:
        raise ValueError(f"issuance amount must be positive, got {amount}")

    registry = load_registry(view)
    moves = [
        Move(
            quantity=amount,
            unit_symbol=registry.token_symbol,
            source=SYSTEM_WALLET,
            dest=wallet_id,
            contract_id=f"issue_{wallet_id}",
        ),
    ]
    changes = [
        registry_change(view, replace(registry, total_issued=registry.total_issued + amount)),
    ]
    origin = TransactionOrigin(
        origin_type=OriginType.SYSTEM,
        source_id=SYSTEM_WALLET,
        unit_symbol=REGISTRY_SYMBOL,
        event_type="ISSUE",
    )
    return build_transaction(view, moves, changes, origin=origin)
