"""
engine.py - Prediction Market Engine

MarketLedger owns a double-entry Ledger and exposes the market operations
and read-only queries. Every operation follows the same path:

1. Advance ledger block height to the host-supplied ExecutionContext
2. Build a PendingTransaction with a pure compute_* function (may raise)
3. Execute it atomically; a REJECTED transaction becomes InsufficientFunds

If step 2 or 3 raises, the block height is rewound, so a failed operation
leaves neither partial state nor a moved clock behind.
All operations and queries are serialized behind one re-entrant lock.
"""

from __future__ import annotations
import threading
from typing import Callable, List, Optional

from .core import (
    ExecutionContext, MarketConfig, PendingTransaction,
    ExecuteResult, LedgerError, InsufficientFunds,
    token,
)
from .ledger import Ledger
from .units.market import (
    Market, Bet,
    load_market, load_bet, list_markets,
    compute_market_creation, compute_bet, compute_resolution, compute_claim,
)
from .units.registry import load_registry, compute_deployment
from .units.treasury import (
    get_treasury_balance, compute_treasury_funding, compute_issuance,
)
from .units.user_stats import UserStats, get_user_stats


class MarketLedger:
    """
    Settlement engine for two-outcome prediction markets.

    Deployment registers the settlement token and the owner, custody and
    treasury wallets, then executes a DEPLOY transaction creating the market
    registry. Bets and user statistics get their own units as they appear.

    Example:
        engine = MarketLedger(MarketConfig(owner="owner"), verbose=False)
        engine.open_account("alice", 5000)
        market_id = engine.create_market(
            ExecutionContext("owner", 1), "sports", "Who wins?", "home", "away", 100)
        engine.place_bet(ExecutionContext("alice", 2), market_id, "home", 1000)
    """

    def __init__(self, config: MarketConfig, initial_height: int = 0, verbose: bool = True):
        """
        Deploy a market ledger.

        Args:
            config: Owner identity, token and reserved wallet names
            initial_height: Block height at deployment (default: 0)
            verbose: Print each operation and ledger transaction (default: True)
        """
        self.config = config
        self.verbose = verbose
        self.ledger = Ledger(config.ledger_name, initial_time=initial_height, verbose=verbose)
        self._lock = threading.RLock()
        self._read_only = False

        self.ledger.register_unit(token(config.token_symbol, config.token_name))
        for wallet in (config.custody_wallet, config.treasury_wallet, config.owner):
            self.ledger.register_wallet(wallet)
        self._apply(compute_deployment(self.ledger, config))

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _check_writable(self) -> None:
        if self._read_only:
            raise LedgerError("snapshot is read-only")

    def _submit(self, ctx: ExecutionContext, build: Callable[[], PendingTransaction]) -> None:
        """
        Run build() at ctx.block_height and apply its transaction.

        Raises:
            ValueError: If ctx.block_height is below the current block height
            MarketError: From build(), or InsufficientFunds on a REJECTED transaction
        """
        self._check_writable()
        previous = self.ledger.current_time
        self.ledger.advance_time(ctx.block_height)
        try:
            self._apply(build())
        except Exception:
            self.ledger.rewind_time(previous)
            raise

    def _apply(self, pending: PendingTransaction) -> None:
        result = self.ledger.execute(pending)
        if result == ExecuteResult.REJECTED:
            raise InsufficientFunds("value transfer rejected by ledger")
        if result == ExecuteResult.ALREADY_APPLIED:
            raise LedgerError(f"transaction {pending.intent_id} already applied")

    def _log(self, event: str, **fields) -> None:
        if self.verbose:
            details = " ".join(f"{k}={v}" for k, v in fields.items())
            print(f"[{event}] {details}")

    # ========================================================================
    # OPERATIONS
    # ========================================================================

    def create_market(
        self,
        ctx: ExecutionContext,
        category: str,
        question: str,
        outcome_a: str,
        outcome_b: str,
        end_time: int,
    ) -> int:
        """
        Create a market. Owner only.

        Returns:
            The new market id (sequential from 1)

        Raises:
            NotAuthorized: If ctx.caller is not the owner
            ValueError: If a text field is over-length or not ASCII
        """
        with self._lock:
            self._submit(ctx, lambda: compute_market_creation(
                self.ledger, ctx.caller, category, question, outcome_a, outcome_b, end_time
            ))
            market_id = load_registry(self.ledger).nonce
            self._log("CREATE_MARKET", market=market_id, caller=ctx.caller, end_time=end_time)
            return market_id

    def place_bet(self, ctx: ExecutionContext, market_id: int, outcome: str, amount: int) -> bool:
        """
        Stake amount on outcome, moving it from the caller into custody.

        Raises:
            MarketNotFound, MarketClosed, InvalidOutcome, InsufficientFunds
        """
        with self._lock:
            self._submit(ctx, lambda: compute_bet(
                self.ledger, ctx.caller, market_id, outcome, amount
            ))
            self._log("PLACE_BET", market=market_id, caller=ctx.caller,
                      outcome=outcome, amount=amount)
            return True

    def resolve_market(self, ctx: ExecutionContext, market_id: int, winning_outcome: str) -> bool:
        """
        Record the winning outcome. Owner only, irreversible.

        Raises:
            NotAuthorized, MarketNotFound, MarketAlreadyResolved, InvalidOutcome
        """
        with self._lock:
            self._submit(ctx, lambda: compute_resolution(
                self.ledger, ctx.caller, market_id, winning_outcome
            ))
            self._log("RESOLVE_MARKET", market=market_id, caller=ctx.caller,
                      winner=winning_outcome)
            return True

    def claim_winnings(self, ctx: ExecutionContext, market_id: int) -> bool:
        """
        Settle the caller's bet on a resolved market, exactly once.

        Raises:
            MarketNotFound, NotAuthorized, MarketClosed, AlreadyClaimed
        """
        with self._lock:
            before = self.get_balance(ctx.caller)
            self._submit(ctx, lambda: compute_claim(self.ledger, ctx.caller, market_id))
            paid = self.get_balance(ctx.caller) - before
            self._log("CLAIM_WINNINGS", market=market_id, caller=ctx.caller, paid=paid)
            return True

    def fund_treasury(self, ctx: ExecutionContext, amount: int) -> bool:
        """
        Move amount from the caller into the bonus treasury. Any user wallet.

        Raises:
            InsufficientFunds: If amount is not positive, the caller is a
                reserved wallet, or the caller cannot pay
        """
        with self._lock:
            self._submit(ctx, lambda: compute_treasury_funding(self.ledger, ctx.caller, amount))
            self._log("FUND_TREASURY", caller=ctx.caller, amount=amount)
            return True

    def open_account(self, wallet_id: str, initial_balance: int = 0) -> str:
        """
        Register a wallet and issue it initial_balance tokens.

        Raises:
            ValueError: If the wallet exists or initial_balance is negative
        """
        if initial_balance < 0:
            raise ValueError(f"initial_balance must be non-negative, got {initial_balance}")
        with self._lock:
            self._check_writable()
            self.ledger.register_wallet(wallet_id)
            if initial_balance > 0:
                self._apply(compute_issuance(self.ledger, wallet_id, initial_balance))
            self._log("OPEN_ACCOUNT", wallet=wallet_id, balance=initial_balance)
            return wallet_id

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_market(self, market_id: int) -> Optional[Market]:
        with self._lock:
            return load_market(self.ledger, market_id)

    def get_bet(self, market_id: int, user: str) -> Optional[Bet]:
        with self._lock:
            return load_bet(self.ledger, market_id, user)

    def get_user_stats(self, user: str) -> UserStats:
        """User statistics, or the zero record for a user never seen."""
        with self._lock:
            return get_user_stats(self.ledger, user)

    def get_treasury_balance(self) -> int:
        with self._lock:
            return get_treasury_balance(self.ledger)

    def get_market_count(self) -> int:
        """Number of markets created so far (the current nonce)."""
        with self._lock:
            return load_registry(self.ledger).nonce

    def get_balance(self, wallet_id: str) -> int:
        """Settlement token balance of a wallet; 0 for an unknown wallet."""
        with self._lock:
            if not self.ledger.is_registered(wallet_id):
                return 0
            return self.ledger.get_balance(wallet_id, self.config.token_symbol)

    def list_markets(self) -> List[Market]:
        with self._lock:
            return list_markets(self.ledger)

    def snapshot(self, block_height: Optional[int] = None) -> MarketLedger:
        """
        Read-only copy of the engine, now or as of a past block height.

        Operations on the snapshot raise LedgerError; queries work as usual.
        """
        with self._lock:
            if block_height is None:
                cloned = self.ledger.clone()
            else:
                cloned = self.ledger.clone_at(block_height)
        snap = MarketLedger.__new__(MarketLedger)
        snap.config = self.config
        snap.verbose = self.verbose
        snap.ledger = cloned
        snap._lock = threading.RLock()
        snap._read_only = True
        return snap
