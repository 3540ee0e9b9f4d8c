"""
Recall Run Engine v1.0: Headless Runner
Plays seeded games without a UI, for replay checks and balance tuning.

Usage:
    python main.py                      # Play 1 game (seed from RECALL_SEED or random)
    python main.py --seed 42            # Play a specific seed
    python main.py --games 50           # Balance check over 50 consecutive seeds
    python main.py --strategy greedy    # cautious (least doom) or greedy (cheapest)
    python main.py --status             # Show the local save
"""

import sys
import logging

from config import DATA_DIR, LOG_LEVEL, env_seed
from catalog import load_default_catalog
from dice import new_seed
from game_loop import GameEngine
from models import GamePhase, TERMINAL_PHASES
from persistence import SaveStore
from blame import generate_blame

STRATEGIES = ("cautious", "greedy")
MAX_COMMANDS = 1000


def _bar(value: float, maximum: float = 100, width: int = 20) -> str:
    filled = int(max(0, min(value, maximum)) / maximum * width) if maximum else 0
    return "█" * filled + "░" * (width - filled)


def show_status(snapshot):
    """Print a snapshot the way the autopsy screen summarises it."""
    device = snapshot.selected_device
    print(f"\n{'═'*60}")
    print(f"  RECALL RUN: {device.name if device else 'no device'}")
    print(f"{'═'*60}")
    print(f"  Phase: {snapshot.phase.value}")
    print(f"  Month: {snapshot.timeline_month:g}")
    print(f"  Budget: {snapshot.budget:,.0f}")
    print(f"  Funding: {snapshot.funding_level.value}")
    print(f"  Doom:       [{_bar(snapshot.doom_level)}] {snapshot.doom_level:.1f}")
    print(f"  Compliance: [{_bar(snapshot.compliance_level)}] {snapshot.compliance_level:.1f}")
    print(f"{'─'*60}")
    if snapshot.active_tags:
        print(f"  Tags: {', '.join(snapshot.active_tags)}")
    if snapshot.current_crisis:
        print(f"  🔥 Open crisis: {snapshot.current_crisis.title}")

    if snapshot.history:
        print(f"\n  CRISES ({len(snapshot.history)}):")
        for h in snapshot.history:
            print(f"  📊 m{h.month:g} {h.event_id} -> {h.choice_id} "
                  f"(cost {h.cost:,.0f}, doom {h.doom_increase:+g})")
    if snapshot.shield_deflections:
        print(f"\n  SHIELDS ({len(snapshot.shield_deflections)}):")
        for s in snapshot.shield_deflections:
            print(f"  🛡️  m{s.month:g} {s.event_id} blocked by {s.blocked_by_tag}")

    death = snapshot.death_analysis
    if death:
        print(f"\n  AUTOPSY: {death.cause}")
        if death.primary_tag:
            print(f"  Primary problem: {death.primary_tag}")
        if death.worst_choice:
            print(f"  Worst call: {death.worst_choice.event_id} -> {death.worst_choice.choice_id}")
    print(f"\n{'═'*60}")


def _pick_choice(crisis, strategy: str):
    if strategy == "greedy":
        return min(crisis.choices, key=lambda c: (c.cost, c.doom_impact))
    return min(crisis.choices, key=lambda c: (c.doom_impact, c.cost))


def play_game(seed: int, strategy: str = "cautious", catalog=None):
    """Autoplay one run to an ending. Returns (final snapshot, engine)."""
    engine = GameEngine(catalog or load_default_catalog(), seed=seed)
    engine.initialize()
    engine.select_device(engine.get_state().available_devices[0].id)
    engine.start_simulation()

    for _ in range(MAX_COMMANDS):
        state = engine.get_state()
        if state.phase in TERMINAL_PHASES:
            break
        if state.phase == GamePhase.CRISIS:
            engine.resolve_crisis(_pick_choice(state.current_crisis, strategy).id)
            continue
        if state.budget < 0 and engine.can_ship():
            engine.ship_product()
            continue
        if state.compliance_level < 40 and state.funding_level.value != "full":
            engine.set_funding_level("full")
        elif state.budget < 20_000 and state.funding_level.value == "full":
            engine.set_funding_level("partial")
        engine.advance_time(1)
    return engine.get_state(), engine


def run_balance(first_seed: int, games: int, strategy: str):
    wins = 0
    months = 0
    crises = 0
    for seed in range(first_seed, first_seed + games):
        snapshot, _ = play_game(seed, strategy)
        wins += snapshot.phase == GamePhase.VICTORY
        months += snapshot.timeline_month
        crises += len(snapshot.history)

    print(f"\n{'═'*60}")
    print(f"  BALANCE CHECK: {games} game(s), strategy {strategy}")
    print(f"  Seeds {first_seed}..{first_seed + games - 1}")
    print(f"{'═'*60}")
    print(f"  Win rate:      {wins / games:.0%}")
    print(f"  Avg months:    {months / games:.1f}")
    print(f"  Avg crises:    {crises / games:.1f}")
    print(f"{'═'*60}")


def _arg_value(args: list, flag: str, default=None):
    if flag in args:
        i = args.index(flag)
        if i + 1 < len(args):
            return args[i + 1]
    return default


def main():
    args = sys.argv[1:]
    logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")

    if "--status" in args:
        result = SaveStore(DATA_DIR).load()
        if not result.ok:
            print(f"No usable save: {result.error}")
            return
        engine = GameEngine(load_default_catalog(), seed=0)
        engine.restore_state(result.state)
        show_status(engine.get_state())
        return

    strategy = _arg_value(args, "--strategy", "cautious")
    if strategy not in STRATEGIES:
        print(f"Unknown strategy '{strategy}'. Use one of: {', '.join(STRATEGIES)}")
        return

    seed_arg = _arg_value(args, "--seed")
    seed = int(seed_arg) if seed_arg is not None else env_seed()
    if seed is None:
        seed = new_seed()

    games = int(_arg_value(args, "--games", "1"))
    if games > 1:
        run_balance(seed, games, strategy)
        return

    snapshot, engine = play_game(seed, strategy)
    print(f"  Seed: {seed}")
    show_status(snapshot)
    blame = generate_blame(snapshot.history, engine.catalog.get_events(), seed)
    if snapshot.phase == GamePhase.AUTOPSY:
        print(f"  {blame['emoji']} Blame {blame['department']}: {blame['statement']}")


if __name__ == "__main__":
    main()
