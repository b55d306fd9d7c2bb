#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Prediction Markets Step by Step

A walk through one market's life on the settlement ledger. Each step builds
on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Setup        - Deployment, accounts, the bonus treasury
  4-6:  Betting      - Creating a market, staking, rejected bets
  7-8:  Settlement   - Resolution, claims, exactly-once payout
  9-10: Streaks      - Winning streaks, bonuses, an empty treasury
  11:   Time Travel  - Snapshots, replay, conservation

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import sys

from market_ledger import (
    MarketLedger, MarketConfig, ExecutionContext,
    MarketError, CUSTODY_WALLET,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    owner: str = "oracle"
    starting_balance: int = 10_000
    treasury_funding: int = 500
    stake: int = 1_000
    betting_window: int = 100


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def at(caller: str, height: int) -> ExecutionContext:
    return ExecutionContext(caller=caller, block_height=height)


def show_balances(engine: MarketLedger, *wallets: str):
    for wallet in wallets:
        print(f"  {wallet:<16} {engine.get_balance(wallet):>8}")


# ============================================================================
# PHASE 1: SETUP (Steps 1-3)
# ============================================================================

def step_01_deploy() -> MarketLedger:
    step_header(1, "Deployment",
        "See what a freshly deployed market ledger contains.")
    print(f">>> engine = MarketLedger(MarketConfig(owner={CONFIG.owner!r}))")
    engine = MarketLedger(MarketConfig(owner=CONFIG.owner), verbose=False)

    section_header("Initial State")
    print(f"Units:        {engine.ledger.list_units()}")
    print(f"Wallets:      {sorted(engine.ledger.list_wallets())}")
    print(f"Markets:      {engine.get_market_count()}")
    print(f"Treasury:     {engine.get_treasury_balance()}")
    return engine


def step_02_accounts(engine: MarketLedger):
    step_header(2, "Accounts",
        "Issue settlement tokens from the system wallet to each bettor.")
    for user in ("alice", "bob", "carol"):
        engine.open_account(user, CONFIG.starting_balance)
    show_balances(engine, "alice", "bob", "carol", "system")
    print("\n  The system wallet goes negative: every wallet still sums to zero.")


def step_03_treasury(engine: MarketLedger):
    step_header(3, "The Bonus Treasury",
        "Anyone may fund the treasury that pays streak bonuses.")
    engine.fund_treasury(at("carol", 0), CONFIG.treasury_funding)
    print(f"  Treasury balance: {engine.get_treasury_balance()}")


# ============================================================================
# PHASE 2: BETTING (Steps 4-6)
# ============================================================================

def step_04_create_market(engine: MarketLedger) -> int:
    step_header(4, "Creating a Market",
        "Only the owner may open a market; ids are sequential.")
    market_id = engine.create_market(
        at(CONFIG.owner, 1), "weather", "Will it rain tomorrow?", "rain", "dry",
        1 + CONFIG.betting_window,
    )
    market = engine.get_market(market_id)
    print(f"  Market {market.market_id}: {market.question}")
    print(f"  Outcomes: {market.outcome_a!r} / {market.outcome_b!r}, betting until {market.end_time}")

    section_header("A non-owner tries")
    try:
        engine.create_market(at("alice", 1), "weather", "Snow?", "yes", "no", 50)
    except MarketError as exc:
        print(f"  Rejected with code {int(exc.code)}: {exc!r}")
    return market_id


def step_05_place_bets(engine: MarketLedger, market_id: int):
    step_header(5, "Placing Bets",
        "Stakes move into custody and grow the outcome's pool.")
    engine.place_bet(at("alice", 2), market_id, "rain", CONFIG.stake)
    engine.place_bet(at("bob", 3), market_id, "dry", CONFIG.stake)
    market = engine.get_market(market_id)
    print(f"  Pools: rain={market.pool_a} dry={market.pool_b}")
    show_balances(engine, "alice", "bob", CUSTODY_WALLET)


def step_06_rejections(engine: MarketLedger, market_id: int):
    step_header(6, "Rejected Bets",
        "A failed bet raises a coded error and changes nothing.")
    attempts = [
        ("label that does not exist", lambda: engine.place_bet(at("carol", 4), market_id, "snow", 10)),
        ("more than the balance", lambda: engine.place_bet(at("carol", 4), market_id, "dry", 99_999)),
        ("after the window closes", lambda: engine.place_bet(
            at("carol", 1 + CONFIG.betting_window), market_id, "dry", 10)),
    ]
    for label, attempt in attempts:
        try:
            attempt()
        except MarketError as exc:
            print(f"  {label:<28} -> {type(exc).__name__} ({int(exc.code)})")
    print(f"\n  carol still holds {engine.get_balance('carol')}")


# ============================================================================
# PHASE 3: SETTLEMENT (Steps 7-8)
# ============================================================================

def step_07_resolve_and_claim(engine: MarketLedger, market_id: int) -> int:
    step_header(7, "Resolution and Claims",
        "Winners take a share of both pools; losers reset their streak.")
    height = 2 + CONFIG.betting_window
    engine.resolve_market(at(CONFIG.owner, height), market_id, "rain")
    engine.claim_winnings(at("alice", height + 1), market_id)
    engine.claim_winnings(at("bob", height + 1), market_id)
    show_balances(engine, "alice", "bob", CUSTODY_WALLET)
    print(f"\n  alice: {engine.get_user_stats('alice')}")
    print(f"  bob:   {engine.get_user_stats('bob')}")
    return height + 2


def step_08_exactly_once(engine: MarketLedger, market_id: int, height: int):
    step_header(8, "Exactly Once",
        "A second claim on the same bet always fails.")
    try:
        engine.claim_winnings(at("alice", height), market_id)
    except MarketError as exc:
        print(f"  Second claim -> {type(exc).__name__} ({int(exc.code)})")


# ============================================================================
# PHASE 4: STREAKS (Steps 9-10)
# ============================================================================

def play_round(engine: MarketLedger, height: int, winner: str) -> int:
    market_id = engine.create_market(at(CONFIG.owner, height), "streak", f"Round at {height}?",
                                     "yes", "no", height + 2)
    engine.place_bet(at("alice", height), market_id, "yes", CONFIG.stake)
    engine.place_bet(at("bob", height), market_id, "no", CONFIG.stake)
    engine.resolve_market(at(CONFIG.owner, height + 3), market_id, winner)
    before = engine.get_balance("alice")
    engine.claim_winnings(at("alice", height + 3), market_id)
    engine.claim_winnings(at("bob", height + 3), market_id)
    return engine.get_balance("alice") - before


def step_09_streak(engine: MarketLedger, height: int) -> int:
    step_header(9, "Winning Streaks",
        "Every third consecutive win adds 10% of the share, paid by the treasury.")
    for _ in range(3):
        paid = play_round(engine, height, "yes")
        stats = engine.get_user_stats("alice")
        print(f"  streak {stats.current_streak}: paid {paid}, treasury {engine.get_treasury_balance()}")
        height += 4
    return height


def step_10_empty_treasury(engine: MarketLedger, height: int) -> int:
    step_header(10, "An Empty Treasury",
        "When the treasury cannot cover the whole bonus, only the share is paid.")
    while engine.get_treasury_balance() >= 200:
        paid = play_round(engine, height, "yes")
        print(f"  paid {paid}, treasury {engine.get_treasury_balance()}")
        height += 4
    paid = play_round(engine, height, "yes")
    print(f"  paid {paid} with treasury {engine.get_treasury_balance()}: no bonus, no error")
    return height + 4


# ============================================================================
# PHASE 5: TIME TRAVEL (Step 11)
# ============================================================================

def step_11_time_travel(engine: MarketLedger, first_market: int):
    step_header(11, "Snapshots and Replay",
        "The transaction log rebuilds any past state.")
    past = engine.snapshot(block_height=3)
    market = past.get_market(first_market)
    print(f"  At height 3: pools rain={market.pool_a} dry={market.pool_b}, resolved={market.resolved}")

    replayed = engine.ledger.replay()
    same = all(
        replayed.get_unit_state(u) == engine.ledger.get_unit_state(u)
        for u in engine.ledger.list_units()
    )
    print(f"  Replayed {len(replayed.transaction_log)} transactions, identical state: {same}")
    print(f"  Double entry: {engine.ledger.verify_double_entry()['valid']}")


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       PREDICTION MARKET LEDGER - INTERACTIVE TUTORIAL")
    print("=" * 70)
    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")
    wait_for_enter()

    engine = step_01_deploy()
    wait_for_enter()
    step_02_accounts(engine)
    wait_for_enter()
    step_03_treasury(engine)
    wait_for_enter()

    market_id = step_04_create_market(engine)
    wait_for_enter()
    step_05_place_bets(engine, market_id)
    wait_for_enter()
    step_06_rejections(engine, market_id)
    wait_for_enter()

    height = step_07_resolve_and_claim(engine, market_id)
    wait_for_enter()
    step_08_exactly_once(engine, market_id, height)
    wait_for_enter()

    height = step_09_streak(engine, height + 1)
    wait_for_enter()
    step_10_empty_treasury(engine, height)
    wait_for_enter()

    step_11_time_travel(engine, market_id)
    print("\n  Next steps:\n    - Run tests: pytest tests/")


if __name__ == "__main__":
    main()
