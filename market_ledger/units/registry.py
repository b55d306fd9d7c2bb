"""
registry.py - Market Registry Unit

The registry is a state-only unit holding the deployment configuration
(owner, settlement token, custody and treasury wallets) and the market
nonce. Market ids are allocated by incrementing the nonce; ids start at 1
and are never reused.

Deployment registers the registry through a single logged transaction, so
replay() rebuilds it like any other unit. The registry also names the
reserved wallets that may never act as callers.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict

from ..core import (
    LedgerView, PendingTransaction, Unit, UnitStateChange, MarketConfig,
    TransactionOrigin, OriginType,
    SYSTEM_WALLET, REGISTRY_SYMBOL, UNIT_TYPE_MARKET_REGISTRY,
    NotAuthorized, UnitNotRegistered,
    build_transaction, _freeze_state,
)


@dataclass(frozen=True, slots=True)
class MarketRegistry:
    """
    Immutable snapshot of the registry state.

    total_funded and total_issued are cumulative counters; every funding and
    issuance bumps one, so no two such transactions share an intent_id.
    """
    owner: str
    nonce: int
    token_symbol: str
    custody_wallet: str
    treasury_wallet: str
    total_funded: int = 0
    total_issued: int = 0


def create_registry_unit(config: MarketConfig) -> Unit:
    """
    Create the registry unit for a deployment.

    The nonce starts at 0, so the first market created gets id 1.
    """
    return Unit(
        symbol=REGISTRY_SYMBOL,
        name=f"Market Registry ({config.ledger_name})",
        unit_type=UNIT_TYPE_MARKET_REGISTRY,
        _frozen_state=_freeze_state(to_registry_dict(MarketRegistry(
            owner=config.owner,
            nonce=0,
            token_symbol=config.token_symbol,
            custody_wallet=config.custody_wallet,
            treasury_wallet=config.treasury_wallet,
        ))),
    )


def load_registry(view: LedgerView) -> MarketRegistry:
    """
    Load the registry from ledger state.

    Raises:
        UnitNotRegistered: If the market ledger has not been deployed
    """
    if not view.has_unit(REGISTRY_SYMBOL):
        raise UnitNotRegistered("Market registry not deployed")
    raw = view.get_unit_state(REGISTRY_SYMBOL)
    return MarketRegistry(
        owner=raw['owner'],
        nonce=raw['nonce'],
        token_symbol=raw['token_symbol'],
        custody_wallet=raw['custody_wallet'],
        treasury_wallet=raw['treasury_wallet'],
        total_funded=raw.get('total_funded', 0),
        total_issued=raw.get('total_issued', 0),
    )


def to_registry_dict(registry: MarketRegistry) -> Dict[str, Any]:
    """Convert a MarketRegistry back to a state dict for ledger storage."""
    return {
        'owner': registry.owner,
        'nonce': registry.nonce,
        'token_symbol': registry.token_symbol,
        'custody_wallet': registry.custody_wallet,
        'treasury_wallet': registry.treasury_wallet,
        'total_funded': registry.total_funded,
        'total_issued': registry.total_issued,
    }


def registry_change(view: LedgerView, registry: MarketRegistry) -> UnitStateChange:
    """Build the state change writing a new registry snapshot."""
    old_state = view.get_unit_state(REGISTRY_SYMBOL)
    return UnitStateChange(
        unit=REGISTRY_SYMBOL, old_state=old_state, new_state=to_registry_dict(registry)
    )


def require_owner(registry: MarketRegistry, caller: str) -> None:
    """
    Check the caller against the owner fixed at deployment.

    Raises:
        NotAuthorized: If caller is not exactly the owner
    """
    if caller != registry.owner:
        raise NotAuthorized(f"{caller} is not the market owner")


def is_reserved_wallet(registry: MarketRegistry, wallet: str) -> bool:
    """True for the system, custody and treasury wallets."""
    return wallet in (SYSTEM_WALLET, registry.custody_wallet, registry.treasury_wallet)


def compute_deployment(view: LedgerView, config: MarketConfig) -> PendingTransaction:
    """
    Build the transaction that deploys the registry unit.

    Returns:
        PendingTransaction creating the registry, with a SYSTEM origin.
    """
    origin = TransactionOrigin(
        origin_type=OriginType.SYSTEM,
        source_id=config.owner,
        unit_symbol=REGISTRY_SYMBOL,
        event_type="DEPLOY",
    )
    return build_transaction(
        view,
        moves=[],
        origin=origin,
        units_to_create=(create_registry_unit(config),),
    )
