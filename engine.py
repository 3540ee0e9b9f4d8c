"""
Recall Run Engine v1.0: Month Procedure
Mechanical steps applied to the engine's private GameState.

Each month step:
1. Compliance drift under the current funding level
2. Maintenance debit (legacy multiplier after month 36)
3. Budget-stress doom (cumulative tiers)
4. Compliance / end-of-life tag maintenance
5. Advance the timeline (clamped to the configured total)

Terminal checks and the event roll are driven by game_loop.GameEngine so
that every roll goes through the engine's seeded source.
"""

import logging

from config import GameConfig, PROBLEM_TAGS, DEFAULT_EOL_MONTH, MIN_LEVEL, MAX_LEVEL
from models import (
    GameState, GamePhase, FundingLevel, Device, GameEvent,
    HistoryEntry, ShieldDeflection, DeathAnalysis,
)
from economy import (
    clamp, drift_compliance, monthly_maintenance_cost,
    budget_stress_doom, compliance_tag_updates,
)

logger = logging.getLogger("recall.engine")


# ─────────────────────────────────────────────────────
# MONTH STEP
# ─────────────────────────────────────────────────────

def run_month_step(state: GameState, months: float, config: GameConfig) -> dict:
    """
    Apply `months` (at most one) of economics and advance the timeline.
    Returns a step log.
    """
    device = state.selected_device
    eol_month = device.eol_month if device else DEFAULT_EOL_MONTH
    start_month = state.timeline_month
    target_month = min(config.total_months, start_month + months)

    # 1. Compliance drift
    state.compliance_level = drift_compliance(
        state.compliance_level, state.funding_level, months,
        past_eol=start_month >= eol_month,
    )

    # 2. Maintenance
    cost = monthly_maintenance_cost(device, start_month, state.funding_level, months)
    state.budget -= cost

    # 3. Financial stress
    stress = budget_stress_doom(state.budget, months)
    if stress:
        state.doom_level = clamp(state.doom_level + stress, MIN_LEVEL, MAX_LEVEL)

    # 4. System tags
    added, removed = compliance_tag_updates(
        state.compliance_level, state.active_tags, target_month, eol_month)
    for tag in added:
        state.add_tag(tag)
    state.remove_tags(removed)

    # 5. Time
    state.timeline_month = target_month

    return {
        "from_month": start_month,
        "to_month": target_month,
        "compliance": state.compliance_level,
        "maintenance_cost": cost,
        "stress_doom": stress,
        "tags_added": added,
        "tags_removed": removed,
    }


def terminal_phase(state: GameState, config: GameConfig):
    """autopsy when doom is maxed, victory when time ran out, else None. Doom wins ties."""
    if state.doom_level >= config.max_doom:
        return GamePhase.AUTOPSY
    if state.timeline_month >= config.total_months:
        return GamePhase.VICTORY
    return None


# ─────────────────────────────────────────────────────
# AUTOPSY
# ─────────────────────────────────────────────────────

def analyze_death_cause(state: GameState, config: GameConfig) -> DeathAnalysis:
    """Explain a finished run: worst choice, leading problem tag, totals."""
    cause = "doom_overflow"
    if state.doom_level < config.max_doom and state.timeline_month >= config.total_months:
        cause = "survived"

    worst = None
    for entry in state.history:
        if entry.doom_increase > (worst.doom_increase if worst else 0):
            worst = entry

    primary_tag = next((t for t in state.active_tags if t in PROBLEM_TAGS), None)

    return DeathAnalysis(
        cause=cause,
        primary_tag=primary_tag,
        worst_choice=worst,
        total_doom_from_choices=sum(h.doom_increase for h in state.history),
        total_spent=sum(h.cost for h in state.history),
        final_compliance_level=state.compliance_level,
    )


# ─────────────────────────────────────────────────────
# RESTORE
# ─────────────────────────────────────────────────────

def repair_orphaned_state(partial: dict) -> dict:
    """
    Fix phase/pause combinations left by partial or hand-made saves.
    Returns a repaired copy; the input is not touched.
      crisis without a crisis payload     -> simulation, unpaused
      simulation paused without a crisis  -> unpaused
    """
    repaired = dict(partial)
    phase = repaired.get("phase")
    has_crisis = bool(repaired.get("currentCrisis"))

    if phase == GamePhase.CRISIS.value and not has_crisis:
        logger.warning("Repairing orphaned crisis state: no currentCrisis, resuming simulation")
        repaired["phase"] = GamePhase.SIMULATION.value
        repaired["isPaused"] = False
        repaired["currentCrisis"] = None
    elif phase == GamePhase.SIMULATION.value and repaired.get("isPaused") and not has_crisis:
        logger.warning("Repairing paused simulation with no crisis: unpausing")
        repaired["isPaused"] = False
    return repaired


def _restore_device(saved, catalog):
    """Saved copy wins over the catalog entry, field by field."""
    if saved is None:
        return None
    known = catalog.get_device(saved.id) if catalog else None
    data = known.to_dict() if known else {"id": saved.id}
    data.update(saved.model_dump(by_alias=True, exclude_none=True, exclude_unset=True))
    return Device.from_dict(data)


def _restore_event(saved, catalog):
    if saved is None:
        return None
    known = catalog.get_event_by_id(saved.id) if catalog else None
    if known:
        return known
    return GameEvent.from_dict(saved.model_dump(by_alias=True, exclude_none=True))


def state_from_partial(model, catalog, config: GameConfig) -> GameState:
    """
    Build a brand-new GameState from a validated SavedStateModel.
    Fields the record does not carry take their defaults; nothing is merged
    with the previous live state.
    A crisis that cannot be resolved (unknown event without choices) resumes
    the simulation instead.
    """
    phase = GamePhase(model.phase)
    state = GameState(
        phase=phase,
        budget=model.budget,
        doom_level=clamp(model.doom_level),
        timeline_month=min(config.total_months, max(0, model.timeline_month)),
        compliance_level=clamp(model.compliance_level),
        funding_level=FundingLevel(model.funding_level),
        selected_device=_restore_device(model.selected_device, catalog),
        available_devices=[d for d in (_restore_device(m, catalog)
                                       for m in model.available_devices) if d],
        active_tags=list(dict.fromkeys(model.active_tags)),
        current_crisis=_restore_event(model.current_crisis, catalog),
        history=[HistoryEntry.from_dict(h.model_dump(by_alias=True))
                 for h in model.history],
        shield_deflections=[ShieldDeflection.from_dict(s.model_dump(by_alias=True))
                            for s in model.shield_deflections],
        last_event_month=model.last_event_month,
        is_paused=model.is_paused,
    )

    if phase == GamePhase.CRISIS and not (state.current_crisis and state.current_crisis.choices):
        logger.warning("Repairing crisis with no playable choices: resuming simulation")
        state.phase = GamePhase.SIMULATION
        state.current_crisis = None
        state.is_paused = False
    elif phase == GamePhase.CRISIS:
        state.is_paused = True
    else:
        state.current_crisis = None
        state.is_paused = False
    return state
