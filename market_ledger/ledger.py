"""
ledger.py - Stateful Double-Entry Token Ledger

The Ledger class is the central state manager for the prediction market.
It is the only module that mutates state, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by pure functions
    - Executes transactions atomically (all moves and state changes, or nothing)
    - Maintains wallet balances and unit definitions (token, markets, registry)
    - Tracks block height and provides temporal operations (clone_at, replay)
    - Always validates and always logs - no exceptions
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import replace
from typing import Dict, List, Set, Optional, Tuple, Any

from .core import (
    # Types
    Move, Transaction, Unit,
    PendingTransaction,
    ExecuteResult,
    Positions, UnitState, BalanceMap,
    # Constants
    SYSTEM_WALLET,
    # Exceptions
    LedgerError, UnitNotRegistered, WalletNotRegistered,
    # Helper functions
    _freeze_state,
)


class Ledger:
    """
    Double-entry token ledger with full validation and audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to pure
    functions that access only read-only methods.

    Design Principles:
        - Always validates: Every transaction is validated against balance
          constraints and the state it was built from. No shortcuts.
        - Always logs: Every transaction is recorded in the audit trail, enabling
          clone_at() and replay() for historical state reconstruction.

    Thread Safety:
        Not thread-safe. MarketLedger serializes access for concurrent callers.

    Example:
        ledger = Ledger("main")
        ledger.register_unit(token("STX", "Stacks"))
        ledger.register_wallet("alice")
        ledger.register_wallet("bob")

        tx = build_transaction(ledger, [
            Move(100, "STX", "alice", "bob", "payment_001")
        ])
        result = ledger.execute(tx)
    """

    def __init__(
        self,
        name: str,
        initial_time: int = 0,
        verbose: bool = True,
        test_mode: bool = False
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting block height (default: 0)
            verbose: Enable debug output (default: True)
            test_mode: Enable test mode to allow set_balance() calls (default: False)
        """
        self.name = name
        self.balances: Dict[str, Dict[str, int]] = {}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = set()
        self.seen_intent_ids: Set[str] = set()  # For idempotency (content-based)
        self.transaction_log: List[Transaction] = []
        self._current_time: int = initial_time
        self.verbose = verbose
        self._test_mode = test_mode
        self._next_sequence: int = 0
        # Inverted index mapping unit -> {wallet -> quantity}
        self._positions_by_unit: Dict[str, Dict[str, int]] = defaultdict(dict)

        # Auto-register the system wallet (used for token issuance)
        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(int)

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> int:
        """Current block height of the ledger."""
        return self._current_time

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Get the balance of a specific unit in a wallet.

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If unit is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, 0)

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """
        Get a deep copy of a unit's internal state.

        The returned dictionary can be safely mutated without affecting
        the ledger's internal state.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.units[unit_symbol].state

    def has_unit(self, unit_symbol: str) -> bool:
        """Check if a unit is registered."""
        return unit_symbol in self.units

    def get_positions(self, unit_symbol: str) -> Positions:
        """Get all non-zero positions for a specific unit across all wallets."""
        return dict(self._positions_by_unit.get(unit_symbol, {}))

    def list_wallets(self) -> Set[str]:
        """List all registered wallet IDs."""
        return self.registered_wallets.copy()

    def list_units(self) -> List[str]:
        """List all registered unit symbols."""
        return sorted(self.units.keys())

    def get_unit(self, symbol: str) -> Unit:
        """Return the Unit object for a given symbol."""
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def get_wallet_balances(self, wallet_id: str) -> BalanceMap:
        """Get all balances for a wallet."""
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        return dict(self.balances[wallet_id])

    def total_supply(self, unit_symbol: str) -> int:
        """
        Calculate total supply of a unit across all wallets.

        Issuance from the system wallet leaves it negative, so the total
        across every wallet (system included) is always zero.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(self.balances[w].get(unit_symbol, 0) for w in sorted(self.registered_wallets))

    def verify_double_entry(
        self,
        expected_supplies: Dict[str, int] = None,
    ) -> Dict[str, Any]:
        """
        Verify that conservation laws hold for all units.

        Args:
            expected_supplies: Optional dict mapping unit symbols to expected totals.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all conservation laws hold
            - 'supplies': Dict[str, int] - Current total supply for each unit
            - 'discrepancies': List[Dict] - unit, expected, actual, difference

        Example:
            result = ledger.verify_double_entry()
            assert result['valid'], f"Conservation violated: {result['discrepancies']}"
        """
        supplies = {}
        discrepancies = []
        expected_supplies = expected_supplies or {}

        for unit_symbol in self.units:
            current_supply = self.total_supply(unit_symbol)
            supplies[unit_symbol] = current_supply
            expected = expected_supplies.get(unit_symbol, 0)
            if current_supply != expected:
                discrepancies.append({
                    'unit': unit_symbol,
                    'expected': expected,
                    'actual': current_supply,
                    'difference': current_supply - expected,
                })

        for unit_symbol, expected in expected_supplies.items():
            if unit_symbol not in supplies:
                discrepancies.append({
                    'unit': unit_symbol,
                    'expected': expected,
                    'actual': 0,
                    'difference': -expected,
                    'error': 'unit not registered',
                })

        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    def is_registered(self, wallet_id: str) -> bool:
        """Check if a wallet is registered."""
        return wallet_id in self.registered_wallets

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: int) -> None:
        """
        Advance the ledger's block height.

        Block height can only move forward, never backward.

        Raises:
            ValueError: If new_time is below the current block height
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    def rewind_time(self, previous_time: int) -> None:
        """
        Undo an advance_time() that no transaction has used.

        Raises:
            ValueError: If a logged transaction executed after previous_time
        """
        if self.transaction_log and self.transaction_log[-1].execution_time > previous_time:
            raise ValueError(
                f"Cannot rewind to {previous_time}: a transaction executed at "
                f"{self.transaction_log[-1].execution_time}"
            )
        self._current_time = previous_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet in the ledger.

        Raises:
            ValueError: If wallet is already registered
        """
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(int)
        return wallet_id

    def register_unit(self, unit: Unit) -> None:
        """
        Register a new unit in the ledger.

        Raises:
            ValueError: If unit symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        if self.verbose:
            print(f"Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}]")

    def set_balance(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        """
        Set a wallet's balance for a unit directly.

        WARNING: This method bypasses double-entry accounting and is only
        available in test mode.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use build_transaction() and execute() to modify balances. "
                "Set test_mode=True when creating Ledger for testing."
            )
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        self.balances[wallet_id][unit_symbol] = quantity
        self._update_position_index(wallet_id, unit_symbol, quantity)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """
        Generate a unique execution ID.

        Format: exec:{ledger_name}:{sequence:012d}:{block_height}
        """
        return f"exec:{self.name}:{sequence:012d}:{self._current_time}"

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        All moves and state changes succeed together or all fail together.
        Execution is idempotent: a pending transaction with the same intent_id
        will not be applied twice.

        All transactions are fully validated against:
        - Unit and wallet registration
        - Balance constraints (min/max balance limits)
        - The unit state each change was computed from
        - Timestamp requirements

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.ALREADY_APPLIED if transaction was already executed
            ExecuteResult.REJECTED if validation failed
        """
        if pending.is_empty():
            return ExecuteResult.APPLIED

        if pending.intent_id in self.seen_intent_ids:
            if self.verbose:
                print(f"ALREADY_APPLIED: intent_id={pending.intent_id}")
            return ExecuteResult.ALREADY_APPLIED

        valid, reason = self._validate_pending(pending)
        if not valid:
            if self.verbose:
                print(f"✗ REJECTED: {reason}")
            return ExecuteResult.REJECTED

        sequence = self._next_sequence
        self._next_sequence += 1
        exec_id = self._generate_exec_id(sequence)

        tx = Transaction(
            moves=pending.moves,
            state_changes=pending.state_changes,
            origin=pending.origin,
            timestamp=pending.timestamp,
            intent_id=pending.intent_id,
            exec_id=exec_id,
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
            units_to_create=pending.units_to_create,
        )

        for unit in tx.units_to_create:
            self.units[unit.symbol] = unit
            if self.verbose:
                print(f"Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}]")

        self._execute_moves(tx.moves)

        # Since Unit is frozen, state updates create new Unit instances
        for sc in tx.state_changes:
            old_unit = self.units[sc.unit]
            new_state = sc.new_state if isinstance(sc.new_state, dict) else {}
            self.units[sc.unit] = replace(old_unit, _frozen_state=_freeze_state(new_state))

        # Audit trail is mandatory
        self.transaction_log.append(tx)
        self.seen_intent_ids.add(pending.intent_id)

        if self.verbose:
            self._print_tx_result(tx, "APPLIED", "✓")
        return ExecuteResult.APPLIED

    def _print_tx_result(self, tx: Transaction, result: str, icon: str) -> None:
        """Print transaction details with a result line in place of the closing border."""
        lines = repr(tx).split('\n')
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines[-1] = f"├{bar}┤"
        lines.append(f"│{pad(' ' + icon + ' ' + result)}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))

    def _validate_pending(self, pending: PendingTransaction) -> Tuple[bool, str]:
        """
        Validate pending transaction against all constraints.

        Checks performed:
        1. Timestamp validation (transaction must not be from the future)
        2. Units to create must not already exist
        3. Unit and wallet registration
        4. Balance constraint validation (min/max balance limits)
        5. Stale state: every state change's old_state must equal the
           unit's current state (optimistic concurrency)

        Returns:
            Tuple of (success: bool, reason: str)
        """
        if pending.timestamp > self._current_time:
            return False, "future timestamp"

        created = {u.symbol for u in pending.units_to_create}
        for symbol in created:
            if symbol in self.units:
                return False, f"unit already registered: {symbol}"

        for move in pending.moves:
            if move.unit_symbol not in self.units:
                return False, f"unit not registered: {move.unit_symbol}"
            if not self.is_registered(move.source):
                return False, f"wallet not registered: {move.source}"
            if not self.is_registered(move.dest):
                return False, f"wallet not registered: {move.dest}"

        net: Dict[Tuple[str, str], int] = {}
        for move in pending.moves:
            key_src = (move.source, move.unit_symbol)
            key_dst = (move.dest, move.unit_symbol)
            net[key_src] = net.get(key_src, 0) - move.quantity
            net[key_dst] = net.get(key_dst, 0) + move.quantity

        # SYSTEM_WALLET is exempt from balance validation (issuance)
        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            unit = self.units[unit_sym]
            proposed = self.balances[wallet].get(unit_sym, 0) + delta
            if proposed < unit.min_balance:
                return False, f"{wallet} {unit_sym}: {proposed} < min {unit.min_balance}"
            if unit.max_balance is not None and proposed > unit.max_balance:
                return False, f"{wallet} {unit_sym}: {proposed} > max {unit.max_balance}"

        for sc in pending.state_changes:
            if sc.unit in created:
                return False, f"state change targets unit created in the same transaction: {sc.unit}"
            if sc.unit not in self.units:
                return False, f"unit not registered: {sc.unit}"
            old_state = sc.old_state if isinstance(sc.old_state, dict) else {}
            if old_state != self.units[sc.unit].state:
                return False, f"stale state for {sc.unit}"

        return True, ""

    def _update_position_index(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        """
        Update the inverted position index after a balance change.

        Zero balances are removed from the index to keep it compact.
        """
        if quantity != 0:
            self._positions_by_unit[unit_symbol][wallet_id] = quantity
        else:
            self._positions_by_unit[unit_symbol].pop(wallet_id, None)

    def _execute_moves(self, moves) -> None:
        """Apply all moves to wallet balances and update the position index."""
        for move in moves:
            new_src_balance = self.balances[move.source][move.unit_symbol] - move.quantity
            self.balances[move.source][move.unit_symbol] = new_src_balance
            self._update_position_index(move.source, move.unit_symbol, new_src_balance)
            new_dst_balance = self.balances[move.dest][move.unit_symbol] + move.quantity
            self.balances[move.dest][move.unit_symbol] = new_dst_balance
            self._update_position_index(move.dest, move.unit_symbol, new_dst_balance)

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> Ledger:
        """
        Create a deep copy of this ledger.

        Modifications to the clone will not affect the original ledger, and
        vice versa. Units are immutable and their state is frozen, so unit
        objects are shared.

        Returns:
            A new Ledger instance with identical state
        """
        cloned = Ledger.__new__(Ledger)
        cloned.name = self.name
        cloned._current_time = self._current_time
        cloned.verbose = self.verbose
        cloned._test_mode = self._test_mode

        cloned.units = dict(self.units)
        cloned.registered_wallets = self.registered_wallets.copy()
        cloned.seen_intent_ids = self.seen_intent_ids.copy()
        cloned.transaction_log = list(self.transaction_log)
        cloned._next_sequence = self._next_sequence

        cloned.balances = {}
        for wallet, bals in self.balances.items():
            cloned.balances[wallet] = defaultdict(int, bals)

        cloned._positions_by_unit = defaultdict(dict)
        for unit_symbol, positions in self._positions_by_unit.items():
            cloned._positions_by_unit[unit_symbol] = dict(positions)

        return cloned

    def clone_at(self, target_time: int) -> Ledger:
        """
        Create a deep copy of this ledger as it existed at a past block height.

        Unwind algorithm:
        1. Clone the current ledger state
        2. Walk backward through all transactions executed after target_time
        3. Reverse each transaction's effects:
           - Restore balances (add to source, subtract from destination)
           - Restore unit state from state_changes (old_state)
           - Remove units the transaction created
        4. Filter transaction log to transactions up to target_time

        Raises:
            ValueError: If target_time is in the future
        """
        if target_time > self._current_time:
            raise ValueError(f"Target time {target_time} is in the future")

        cloned = self.clone()
        cloned._current_time = target_time

        cloned.transaction_log = [
            tx for tx in self.transaction_log
            if tx.execution_time <= target_time
        ]
        cloned.seen_intent_ids = {tx.intent_id for tx in cloned.transaction_log}
        cloned._next_sequence = len(cloned.transaction_log)

        for tx in reversed(self.transaction_log):
            if tx.execution_time <= target_time:
                break

            for move in tx.moves:
                if move.unit_symbol not in cloned.units:
                    raise LedgerError(f"Cannot unwind: unit {move.unit_symbol} not found in cloned ledger")
                new_src = cloned.balances[move.source][move.unit_symbol] + move.quantity
                new_dst = cloned.balances[move.dest][move.unit_symbol] - move.quantity
                cloned.balances[move.source][move.unit_symbol] = new_src
                cloned.balances[move.dest][move.unit_symbol] = new_dst
                cloned._update_position_index(move.source, move.unit_symbol, new_src)
                cloned._update_position_index(move.dest, move.unit_symbol, new_dst)

            for sc in tx.state_changes:
                if sc.unit in cloned.units:
                    restored_state = sc.old_state if isinstance(sc.old_state, dict) else {}
                    cloned.units[sc.unit] = replace(
                        cloned.units[sc.unit], _frozen_state=_freeze_state(restored_state)
                    )

            for unit in tx.units_to_create:
                cloned.units.pop(unit.symbol, None)
                for wallet in cloned.registered_wallets:
                    cloned.balances[wallet].pop(unit.symbol, None)
                cloned._positions_by_unit.pop(unit.symbol, None)

        return cloned

    def replay(self) -> Ledger:
        """
        Create a new ledger by replaying the transaction log.

        Note: Balances set via set_balance() are NOT replayed because they
        are not part of the transaction log. Token issuance through the
        system wallet is.

        The replay process:
        1. Create a new ledger with unit definitions and wallet registrations
        2. Re-execute each transaction from the log
        3. Advance block height as needed to match transaction timestamps

        Raises:
            LedgerError: If replay fails
        """
        new_ledger = Ledger(
            name=f"{self.name}_replayed",
            initial_time=0,
            verbose=self.verbose,
            test_mode=self._test_mode
        )

        units_created_in_log = set()
        for tx in self.transaction_log:
            for unit in tx.units_to_create:
                units_created_in_log.add(unit.symbol)

        # Units registered outside the log are re-registered without state;
        # their state is rebuilt from state_changes during replay.
        for symbol, unit in self.units.items():
            if symbol in units_created_in_log:
                continue
            new_ledger.units[symbol] = replace(unit, _frozen_state=())

        for wallet in self.registered_wallets:
            if wallet != SYSTEM_WALLET:
                new_ledger.register_wallet(wallet)

        for tx in self.transaction_log:
            if tx.execution_time > new_ledger._current_time:
                new_ledger.advance_time(tx.execution_time)

            pending = PendingTransaction(
                moves=tx.moves,
                state_changes=tx.state_changes,
                origin=tx.origin,
                timestamp=tx.timestamp,
                units_to_create=tx.units_to_create,
            )

            result = new_ledger.execute(pending)
            if result == ExecuteResult.REJECTED:
                raise LedgerError(f"Replay failed at tx {tx.exec_id}")

        return new_ledger
