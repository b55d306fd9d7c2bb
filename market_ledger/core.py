"""
Core types and pure functions for the prediction market ledger.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView for read-only ledger access
2. Immutable data structures: Move, PendingTransaction, Transaction, Unit
3. Exceptions: LedgerError, the market error taxonomy and its numeric codes
4. Execution context and configuration handed in by the host
5. Unit factories: the settlement token

All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, IntEnum
import copy
import hashlib
from typing import (
    Dict, List, Set, Optional, Any, Protocol,
    Tuple, FrozenSet, Type, runtime_checkable,
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for issuance. Exempt from balance validation.
SYSTEM_WALLET = "system"

# Default wallets holding pooled stakes and the bonus treasury.
CUSTODY_WALLET = "market_custody"
TREASURY_WALLET = "market_treasury"

# Unit type constants (strings, not enum).
UNIT_TYPE_TOKEN = "TOKEN"
UNIT_TYPE_PREDICTION_MARKET = "PREDICTION_MARKET"
UNIT_TYPE_MARKET_REGISTRY = "MARKET_REGISTRY"
UNIT_TYPE_USER_STATS = "USER_STATS"
UNIT_TYPE_BET = "BET"

# Fixed symbol for the registry; per-market, per-bet and per-user units are prefixed.
REGISTRY_SYMBOL = "MARKETS"
MARKET_SYMBOL_PREFIX = "MKT-"
BET_SYMBOL_PREFIX = "BET-"
USER_STATS_SYMBOL_PREFIX = "STATS-"

# Bounded text lengths for market fields.
MAX_CATEGORY_LENGTH = 32
MAX_QUESTION_LENGTH = 256
MAX_OUTCOME_LENGTH = 32

# Streak bonus schedule: +10% per 3 consecutive wins, at most 10 steps.
STREAK_STEP = 3
BONUS_PERCENT_PER_STEP = 10
MAX_BONUS_STEPS = 10


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from wallet ID to quantity held by that wallet for a specific unit.
Positions = Dict[str, int]

# Mapping from unit symbol to quantity held in a single wallet.
BalanceMap = Dict[str, int]

# Internal state for a unit (market terms, bets, counters, etc.).
UnitState = Dict[str, Any]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Market functions accept a LedgerView to declare their read-only intent.
    The Ledger class implements this protocol but also provides mutation
    methods. For testing, FakeView provides an immutable implementation.
    """

    @property
    def current_time(self) -> int:
        """Return the current logical time (block height) of the ledger."""
        ...

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Return the balance of a specific unit in a wallet.

        Returns 0 if the wallet holds nothing of the unit.
        """
        ...

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """Return a copy of the unit's internal state."""
        ...

    def has_unit(self, unit_symbol: str) -> bool:
        """Return True if a unit with this symbol is registered."""
        ...

    def get_positions(self, unit_symbol: str) -> Positions:
        """Return all non-zero positions for a unit across all wallets."""
        ...

    def list_wallets(self) -> Set[str]:
        """Return the set of all registered wallet IDs."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Transaction was successfully validated and applied to the ledger.
    ALREADY_APPLIED: Transaction ID was previously processed (idempotent behavior).
    REJECTED: Transaction failed validation (balance limits, stale state).
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where a transaction originated."""
    USER_ACTION = "user_action"           # Caller-submitted market operation
    SYSTEM = "system"                     # Deployment, issuance


class ErrorCode(IntEnum):
    """Numeric error codes surfaced to callers of market operations."""
    NOT_AUTHORIZED = 100
    MARKET_NOT_FOUND = 101
    MARKET_CLOSED = 102
    MARKET_ALREADY_RESOLVED = 103
    INSUFFICIENT_FUNDS = 104
    INVALID_OUTCOME = 105
    ALREADY_CLAIMED = 106


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when attempting to operate on a unit that has not been registered with the ledger."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when attempting to operate on a wallet that has not been registered with the ledger."""
    pass


class MarketError(LedgerError):
    """
    Base class for the closed set of market operation failures.

    Every subclass carries a fixed ErrorCode. A raised MarketError means the
    operation was a no-op with respect to ledger state.
    """
    code: ErrorCode

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={int(self.code)}, {self.args[0]!r})"


class NotAuthorized(MarketError):
    """Caller is not the owner, or has no bet on the market being claimed."""
    code = ErrorCode.NOT_AUTHORIZED


class MarketNotFound(MarketError):
    """No market with this id, or the market has no winning outcome yet."""
    code = ErrorCode.MARKET_NOT_FOUND


class MarketClosed(MarketError):
    """Market no longer accepts bets, or is not resolved when claiming."""
    code = ErrorCode.MARKET_CLOSED


class MarketAlreadyResolved(MarketError):
    """Market already has a recorded winning outcome."""
    code = ErrorCode.MARKET_ALREADY_RESOLVED


class InsufficientFunds(MarketError):
    """Non-positive amount, or the value transfer could not be made."""
    code = ErrorCode.INSUFFICIENT_FUNDS


class InvalidOutcome(MarketError):
    """Outcome label matches neither of the market's two outcomes."""
    code = ErrorCode.INVALID_OUTCOME


class AlreadyClaimed(MarketError):
    """Bet on this market was already settled."""
    code = ErrorCode.ALREADY_CLAIMED


_ERRORS_BY_CODE: Dict[ErrorCode, Type[MarketError]] = {
    cls.code: cls
    for cls in (
        NotAuthorized, MarketNotFound, MarketClosed, MarketAlreadyResolved,
        InsufficientFunds, InvalidOutcome, AlreadyClaimed,
    )
}


def error_for_code(code: int) -> Type[MarketError]:
    """
    Return the exception class for a numeric error code.

    Raises:
        ValueError: If the code is outside the closed error set.
    """
    return _ERRORS_BY_CODE[ErrorCode(code)]


# ============================================================================
# EXECUTION CONTEXT AND CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class ExecutionContext:
    """
    Host-supplied context for a single operation.

    Attributes:
        caller: Identity of the account invoking the operation.
        block_height: Current logical time, as delivered by the host.
    """
    caller: str
    block_height: int

    def __post_init__(self):
        if not self.caller or not self.caller.strip():
            raise ValueError("ExecutionContext caller cannot be empty")
        if self.block_height < 0:
            raise ValueError(f"block_height must be non-negative, got {self.block_height}")


@dataclass(frozen=True, slots=True)
class MarketConfig:
    """
    Deployment-time configuration of a market ledger.

    Attributes:
        owner: The only identity allowed to create and resolve markets.
        token_symbol: Symbol of the settlement token.
        token_name: Human-readable name of the settlement token.
        custody_wallet: Wallet holding pooled stakes.
        treasury_wallet: Wallet holding the streak bonus treasury.
        ledger_name: Name given to the underlying ledger.
    """
    owner: str
    token_symbol: str = "STX"
    token_name: str = "Settlement Token"
    custody_wallet: str = CUSTODY_WALLET
    treasury_wallet: str = TREASURY_WALLET
    ledger_name: str = "prediction-market"

    def __post_init__(self):
        if not self.owner or not self.owner.strip():
            raise ValueError("owner cannot be empty")
        if not self.token_symbol or not self.token_symbol.strip():
            raise ValueError("token_symbol cannot be empty")
        reserved = {SYSTEM_WALLET, self.custody_wallet, self.treasury_wallet}
        if len(reserved) != 3:
            raise ValueError("system, custody and treasury wallets must be distinct")
        if self.owner in reserved:
            raise ValueError(f"owner cannot be a reserved wallet: {self.owner}")


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of a transaction's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin source (USER_ACTION, SYSTEM)
        source_id: Identifier of the specific source (caller wallet, "deploy", ...)
        unit_symbol: Symbol of the unit that triggered this (if applicable)
        event_type: Specific event (e.g., "PLACE_BET", "CLAIM_WINNINGS")
    """
    origin_type: OriginType
    source_id: str
    unit_symbol: Optional[str] = None
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.unit_symbol:
            parts.append(f"unit={self.unit_symbol}")
        if self.event_type:
            parts.append(f"event={self.event_type}")
        return f"Origin({', '.join(parts)})"


# ============================================================================
# UNIT STATE CHANGE
# ============================================================================

@dataclass(frozen=True, slots=True)
class UnitStateChange:
    """
    Record of a unit state change for transaction logging and rollback.

    Stores complete before/after state snapshots:
    - Forward replay: apply new_state
    - Backward replay: restore old_state
    - Stale-state detection: old_state must match the ledger at execution

    Attributes:
        unit: Symbol of the unit whose state changed
        old_state: Complete state before the change
        new_state: Complete state after the change
    """
    unit: str
    old_state: Any
    new_state: Any

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """
        Compute fields that differ between old and new state.

        Returns:
            Dict mapping field name to (old_value, new_value) tuples.
        """
        old = self.old_state if isinstance(self.old_state, dict) else {}
        new = self.new_state if isinstance(self.new_state, dict) else {}
        changes = {}
        for key in set(old.keys()) | set(new.keys()):
            old_val = old.get(key)
            new_val = new.get(key)
            if old_val != new_val:
                changes[key] = (old_val, new_val)
        return changes


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of token value between two wallets.

    Attributes:
        quantity: The amount to transfer (positive integer).
        unit_symbol: The symbol of the unit being transferred.
        source: The wallet ID from which value is debited.
        dest: The wallet ID to which value is credited.
        contract_id: Identifier of the operation generating this move.
    """
    quantity: int
    unit_symbol: str
    source: str
    dest: str
    contract_id: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"Move quantity must be int, got {type(self.quantity)}")
        if self.quantity <= 0:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Deterministic regardless of dict insertion order and nesting depth.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    return f"R:{repr(value)}"


def _compute_intent_id(
    moves: Tuple[Move, ...],
    state_changes: Tuple[UnitStateChange, ...],
    origin: TransactionOrigin,
    units_to_create: Tuple['Unit', ...] = ()
) -> str:
    """
    Compute a deterministic content hash for a transaction's intent.

    Based solely on the semantic content of the transaction, never on
    execution metadata. Used for idempotency checking.
    """
    sorted_moves = tuple(sorted(
        moves,
        key=lambda m: (m.quantity, m.unit_symbol, m.source, m.dest, m.contract_id)
    ))

    content_parts = [f"origin:{origin.origin_type.value}:{origin.source_id}"]
    if origin.unit_symbol:
        content_parts.append(f"unit:{origin.unit_symbol}")
    if origin.event_type:
        content_parts.append(f"event:{origin.event_type}")

    for unit in sorted(units_to_create, key=lambda u: u.symbol):
        content_parts.append(
            f"unit_create:{unit.symbol}|{unit.unit_type}|{_canonicalize(unit.state)}"
        )

    for m in sorted_moves:
        content_parts.append(f"move:{m.quantity}|{m.unit_symbol}|{m.source}|{m.dest}|{m.contract_id}")

    for sc in sorted(state_changes, key=lambda s: s.unit):
        old_canonical = _canonicalize(sc.old_state)
        new_canonical = _canonicalize(sc.new_state)
        content_parts.append(f"state_change:{sc.unit}|{old_canonical}|{new_canonical}")

    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A transaction specification before execution - represents INTENT.

    Created by market functions and submitted to the ledger for execution.

    Lifecycle:
    1. A compute_* function builds moves, state_changes and units_to_create
    2. intent_id is auto-computed from content (deterministic hash)
    3. Ledger.execute() validates and executes, creating a Transaction record

    Attributes:
        moves: Tuple of value transfers between wallets
        state_changes: Tuple of unit state changes (with old_state and new_state)
        origin: Who/what created this transaction and why
        timestamp: Block height at which the pending transaction was built
        units_to_create: Tuple of Unit objects to register before executing moves
        intent_id: Content-addressable hash of the transaction intent
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: int
    units_to_create: Tuple['Unit', ...] = ()
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            computed_id = _compute_intent_id(
                self.moves, self.state_changes, self.origin, self.units_to_create
            )
            object.__setattr__(self, 'intent_id', computed_id)

    def is_empty(self) -> bool:
        """Return True if this pending transaction has no moves, no state deltas, and no units to create."""
        return not self.moves and not self.state_changes and not self.units_to_create

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {len(self.state_changes)} deltas, {self.origin})"


def build_transaction(
    view: LedgerView,
    moves: List[Move],
    state_changes: Optional[List[UnitStateChange]] = None,
    origin: Optional[TransactionOrigin] = None,
    units_to_create: Optional[Tuple['Unit', ...]] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction from moves and state deltas.

    This is the standard way to create transactions.

    Args:
        view: Read-only ledger view (provides current_time)
        moves: List of moves to include in the transaction
        state_changes: Optional list of UnitStateChange objects
        origin: Transaction origin (defaults to a SYSTEM origin)
        units_to_create: Optional tuple of Unit objects to register before executing moves

    Returns:
        A PendingTransaction ready for execution

    Example:
        def compute_funding(view, caller, amount):
            moves = [Move(amount, "STX", caller, TREASURY_WALLET, "fund_treasury")]
            return build_transaction(view, moves)
    """
    if origin is None:
        origin = TransactionOrigin(
            origin_type=OriginType.SYSTEM,
            source_id="system",
        )

    # Deep copy state changes to prevent mutation
    copied_changes: Tuple[UnitStateChange, ...] = ()
    if state_changes:
        copied_changes = tuple(
            UnitStateChange(
                unit=sc.unit,
                old_state=copy.deepcopy(sc.old_state),
                new_state=copy.deepcopy(sc.new_state),
            )
            for sc in state_changes
        )

    return PendingTransaction(
        moves=tuple(moves),
        state_changes=copied_changes,
        origin=origin,
        timestamp=view.current_time,
        units_to_create=units_to_create or (),
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Created by the ledger when executing a PendingTransaction.

    Attributes:
        moves: Tuple of value transfers between wallets
        state_changes: Tuple of unit state changes (with old_state and new_state)
        origin: Who/what created this transaction and why
        timestamp: Block height when the PendingTransaction was built
        intent_id: Content hash from PendingTransaction (for idempotency)
        exec_id: Unique execution identifier (ledger + sequence + height)
        ledger_name: Name of the ledger that executed this
        execution_time: Block height at which this was executed
        sequence_number: Monotonic sequence within the ledger (for ordering)
        contract_ids: Set of contract IDs from moves (auto-populated)
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: int
    intent_id: str
    exec_id: str
    ledger_name: str
    execution_time: int
    sequence_number: int
    units_to_create: Tuple['Unit', ...] = ()
    contract_ids: FrozenSet[str] = None

    def __post_init__(self):
        if not self.moves and not self.state_changes and not self.units_to_create:
            raise ValueError("Transaction must have moves, state_changes, or units_to_create")
        if self.contract_ids is None:
            object.__setattr__(
                self, 'contract_ids',
                frozenset(m.contract_id for m in self.moves)
            )

    def __repr__(self) -> str:
        w = 100  # Inner content width
        bar = "─" * w

        def pad(text: str) -> str:
            """Pad or truncate text to exactly w characters."""
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transaction: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   intent_id      : ' + self.intent_id)}│",
            f"│{pad('   block_height   : ' + str(self.execution_time))}│",
            f"│{pad('   ledger_name    : ' + self.ledger_name)}│",
            f"│{pad('   sequence       : ' + str(self.sequence_number))}│",
            f"│{pad('   origin         : ' + str(self.origin))}│",
        ]
        if self.units_to_create:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' Units Created (' + str(len(self.units_to_create)) + '):')}│")
            for unit in self.units_to_create:
                lines.append(f"│{pad('   ' + unit.symbol + ' (' + unit.name + ')')}│")
        lines.append(f"├{bar}┤")
        lines.append(f"│{pad(' Moves (' + str(len(self.moves)) + '):')}│")
        for i, move in enumerate(self.moves):
            move_str = f"   [{i}] {move.quantity} {move.unit_symbol}: {move.source} → {move.dest}"
            lines.append(f"│{pad(move_str)}│")
        if self.state_changes:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' State Changes (' + str(len(self.state_changes)) + '):')}│")
            for sc in self.state_changes:
                lines.append(f"│{pad('   [' + sc.unit + ']')}│")
                for field_name, (old_val, new_val) in sc.changed_fields().items():
                    lines.append(f"│{pad(f'      {field_name}: {old_val!r} → {new_val!r}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


def _freeze_state(state: Optional[UnitState]) -> Tuple[Tuple[str, Any], ...]:
    """
    Convert a mutable state dict to an immutable frozen representation.

    Returns:
        Tuple of (key, value) pairs, sorted by key for determinism
    """
    if not state:
        return ()
    return tuple(sorted(copy.deepcopy(state).items()))


def _thaw_state(frozen_state: Tuple[Tuple[str, Any], ...]) -> UnitState:
    """Convert a frozen state representation back to a mutable dict."""
    return copy.deepcopy(dict(frozen_state))


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a unit in the ledger.

    A unit is either a transferable token or a state-only record (a market,
    a bet, one user's statistics, the market registry).

    Attributes:
        symbol: Short identifier for the unit (e.g., "STX", "MKT-1").
        name: Human-readable name for the unit.
        unit_type: Category of the unit (TOKEN, PREDICTION_MARKET, ...).
        min_balance: Minimum allowed balance in any non-system wallet.
        max_balance: Maximum allowed balance in any wallet (None = unbounded).
        _frozen_state: Internal frozen state representation.
    """
    symbol: str
    name: str
    unit_type: str
    min_balance: int = 0
    max_balance: Optional[int] = None
    _frozen_state: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    @property
    def state(self) -> UnitState:
        """
        Get the unit's state as a mutable dictionary.

        Returns a new dict each time to prevent accidental mutation.
        """
        return _thaw_state(self._frozen_state)


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def token(symbol: str, name: str) -> Unit:
    """
    Create the fungible settlement token.

    Args:
        symbol: Token symbol (e.g., "STX").
        name: Full name of the token.

    Returns:
        A Unit with integer quantities and no overdraft: any move that would
        take a non-system wallet below zero is rejected.
    """
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_TOKEN,
        min_balance=0,
    )
