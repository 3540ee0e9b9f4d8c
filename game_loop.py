"""
Recall Run Engine v1.0: Game Engine
The outer loop. The engine owns the game state; drivers only send commands.

State machine:
  SPLASH        -> Title screen. Waiting for the player to start.
  SETUP         -> Device list drawn. Player selects a device, then starts.
  SIMULATION    -> Time advances. Economics apply every month; crises roll.
  CRISIS        -> Time frozen. Waiting for the player to pick a choice.
  AUTOPSY       -> Doom maxed out. Run over, death analysis attached.
  VICTORY       -> Survived the full timeline. Run over.
  SHARED_RESULT -> Viewing someone else's result from a share link.

Every successful command publishes exactly one frozen GameStateSnapshot
to subscribers, in registration order. Invalid commands are ignored.
The web server, MCP bridge and headless runner all drive this object.
"""

import math
import logging
from datetime import datetime

from pydantic import ValidationError

from config import (
    DEFAULT_CONFIG, GameConfig, NO_LAST_EVENT, RANDOM_DEVICE_COUNT,
    FALLBACK_DEVICE_ID, SHIP_REWARD, SHIP_DOOM_PENALTY,
    SHIP_DOOM_THRESHOLD, SHIP_TIME_ADVANCE, INITIAL_COMPLIANCE,
)
from models import (
    GameState, GameStateSnapshot, GamePhase, FundingLevel,
    HistoryEntry, FUNDING_LEVELS, can_transition,
)
from schemas import SavedStateModel, format_errors, is_finite_number
from catalog import load_default_catalog
from dice import SeededRandom, new_seed
from crisis import roll_for_event, select_crisis, spacing_allows
from economy import clamp
from engine import (
    run_month_step, terminal_phase, analyze_death_cause,
    repair_orphaned_state, state_from_partial,
)

logger = logging.getLogger("recall.engine")


class GameEngine:
    """
    Central game state machine. Sole writer of the game state.
    Construct one per session; the host decides how long it lives.
    """

    def __init__(self, catalog=None, config: GameConfig = DEFAULT_CONFIG, seed: int = None):
        self.catalog = catalog if catalog is not None else load_default_catalog()
        self.config = config
        self.seed = new_seed() if seed is None else int(seed)
        self.rng = SeededRandom(self.seed)

        self._state = GameState()
        self._snapshot = self._state.snapshot()
        self._subscribers: dict = {}            # token -> callback, insertion ordered
        self._next_token = 0
        self._notifying = False

        self.action_log: list[dict] = []        # Mechanical log entries
        self.roll_log: list[dict] = []          # Every event probability roll

    # ─────────────────────────────────────────────────
    # SUBSCRIPTION / PUBLISH
    # ─────────────────────────────────────────────────

    def subscribe(self, callback):
        """Register a listener. Returns a callable that removes it."""
        token = self._next_token
        self._next_token += 1
        self._subscribers[token] = callback

        def unsubscribe():
            self._subscribers.pop(token, None)

        return unsubscribe

    def get_state(self) -> GameStateSnapshot:
        """Latest published snapshot. Same object until the next successful command."""
        return self._snapshot

    def _publish(self):
        death = None
        if self._state.phase == GamePhase.AUTOPSY:
            death = analyze_death_cause(self._state, self.config)
        self._snapshot = self._state.snapshot(death)

        self._notifying = True
        try:
            for callback in list(self._subscribers.values()):
                try:
                    callback(self._snapshot)
                except Exception:
                    logger.exception("Subscriber raised during state notification")
        finally:
            self._notifying = False

    def _accepting(self, command: str) -> bool:
        if self._notifying:
            logger.warning(f"{command} ignored: called from inside a state notification")
            return False
        return True

    def _reject(self, command: str, reason: str):
        logger.warning(f"{command} ignored: {reason}")

    # ─────────────────────────────────────────────────
    # PHASE TRANSITIONS
    # ─────────────────────────────────────────────────

    def _set_phase(self, phase: GamePhase):
        old = self._state.phase
        if old != phase and not can_transition(old, phase):
            logger.warning(f"Unexpected phase transition {old.value} -> {phase.value}")
        self._state.phase = phase
        if old != phase:
            self._log_action("PHASE", f"{old.value} -> {phase.value}")

    def _finish(self, phase: GamePhase):
        self._state.current_crisis = None
        self._state.is_paused = False
        self._set_phase(phase)
        if phase == GamePhase.VICTORY:
            self._log_action("END", f"Survived {self._state.timeline_month:g} months")
        else:
            self._log_action("END", f"Recalled at month {self._state.timeline_month:g}")

    # ─────────────────────────────────────────────────
    # SETUP
    # ─────────────────────────────────────────────────

    def _draw_devices(self, preferred_device_id: str = None) -> list:
        """Preferred (or fallback) device first, then distinct random others."""
        devices = list(self.catalog.get_devices())
        target = preferred_device_id or FALLBACK_DEVICE_ID
        persistent = self.catalog.get_device(target)
        if persistent is None and target != FALLBACK_DEVICE_ID:
            persistent = self.catalog.get_device(FALLBACK_DEVICE_ID)

        pool = [d for d in devices if persistent is None or d.id != persistent.id]
        self.rng.shuffle(pool)
        picks = pool[:RANDOM_DEVICE_COUNT]
        return [persistent] + picks if persistent else picks

    def initialize(self, preferred_device_id: str = None):
        """
        Fresh session bookkeeping and a newly drawn device list in SETUP.
        Calling again before a device is picked leaves the setup as it is.
        """
        if not self._accepting("initialize"):
            return
        s = self._state
        if (s.phase == GamePhase.SETUP and s.selected_device is None and s.available_devices
                and (preferred_device_id is None
                     or s.available_devices[0].id == preferred_device_id)):
            logger.info("initialize: setup already prepared")
            return

        self._state = GameState()
        self.roll_log = []
        self._state.available_devices = self._draw_devices(preferred_device_id)
        self._set_phase(GamePhase.SETUP)
        self._log_action("SESSION", "Setup: " + ", ".join(
            d.id for d in self._state.available_devices))
        self._publish()

    def enter_setup(self, preferred_device_id: str = None):
        """splash / shared_result -> setup with a freshly drawn device list."""
        if not self._accepting("enter_setup"):
            return
        if not can_transition(self._state.phase, GamePhase.SETUP):
            self._reject("enter_setup", f"not allowed from {self._state.phase.value}")
            return
        self._state.available_devices = self._draw_devices(preferred_device_id)
        self._state.selected_device = None
        self._set_phase(GamePhase.SETUP)
        self._publish()

    def select_device(self, device_id: str):
        if not self._accepting("select_device"):
            return
        s = self._state
        if s.phase != GamePhase.SETUP:
            self._reject("select_device", f"phase is {s.phase.value}")
            return
        device = next((d for d in s.available_devices if d.id == device_id), None)
        if device is None:
            self._reject("select_device", f"'{device_id}' is not an available device")
            return

        s.selected_device = device
        s.budget = device.initial_budget
        s.active_tags = list(dict.fromkeys(device.initial_tags))
        s.compliance_level = INITIAL_COMPLIANCE
        s.funding_level = FundingLevel.FULL
        self._log_action("SETUP", f"Selected {device.name or device.id}")
        self._publish()

    def start_simulation(self):
        if not self._accepting("start_simulation"):
            return
        s = self._state
        if s.phase != GamePhase.SETUP or s.selected_device is None:
            self._reject("start_simulation", "no device selected in setup")
            return
        s.is_paused = False
        s.last_event_month = NO_LAST_EVENT
        self._set_phase(GamePhase.SIMULATION)
        self._publish()

    # ─────────────────────────────────────────────────
    # TIME
    # ─────────────────────────────────────────────────

    def _running(self) -> bool:
        return self._state.phase == GamePhase.SIMULATION and not self._state.is_paused

    def advance_time(self, months: float):
        """
        Move the timeline forward by `months`.
        May stop early in CRISIS, AUTOPSY or VICTORY; callers re-read get_state().
        """
        if not self._accepting("advance_time"):
            return
        if not is_finite_number(months) or months <= 0:
            self._reject("advance_time", f"invalid delta {months!r}")
            return
        if not self._running():
            self._reject("advance_time", f"not running (phase {self._state.phase.value})")
            return
        self._advance(months)
        self._publish()

    def _advance(self, months: float):
        """Process `months` in steps of at most one month. No publish."""
        s = self._state
        remaining = months
        while remaining > 0:
            step = min(1.0, remaining)
            remaining -= step
            before = s.timeline_month
            run_month_step(s, step, self.config)

            ending = terminal_phase(s, self.config)
            if ending:
                self._finish(ending)
                return

            month = s.timeline_month
            if math.floor(month) > math.floor(before) and spacing_allows(
                    month, s.last_event_month, self.config.event_interval_months):
                if self._roll_for_crisis(month):
                    return

    def _roll_for_crisis(self, month: float) -> bool:
        s = self._state
        roll = roll_for_event(self.rng, s.doom_level, s.active_tags,
                              label=f"month {math.floor(month)}")
        self.roll_log.append(roll)
        if not roll["passed"]:
            return False

        event, deflections = select_crisis(self.catalog, self.rng, {
            "tags": s.active_tags,
            "category": s.selected_device.archetype if s.selected_device else None,
            "month": math.floor(month),
            "budget": s.budget,
            "doom": s.doom_level,
            "history": s.history,
        })
        self._record_deflections(deflections)
        if event is None:
            self._log_action("EVENT", f"Roll fired at month {math.floor(month)} "
                                      f"but no event was eligible")
            return False
        self._open_crisis(event)
        return True

    def _record_deflections(self, deflections):
        s = self._state
        seen = {(d.month, d.event_id) for d in s.shield_deflections}
        for d in deflections:
            if (d.month, d.event_id) in seen:
                continue
            seen.add((d.month, d.event_id))
            s.shield_deflections.append(d)
            self._log_action("SHIELD", f"{d.event_id} blocked by {d.blocked_by_tag}")

    def _open_crisis(self, event):
        s = self._state
        s.current_crisis = event
        s.is_paused = True
        s.last_event_month = math.floor(s.timeline_month)
        self._set_phase(GamePhase.CRISIS)
        self._log_action("EVENT", f"{event.id}: {event.title}")

    # ─────────────────────────────────────────────────
    # CRISES
    # ─────────────────────────────────────────────────

    def trigger_crisis(self, event_id: str):
        """Open a crisis directly, bypassing the probability roll."""
        if not self._accepting("trigger_crisis"):
            return
        if not self._running():
            self._reject("trigger_crisis", f"not running (phase {self._state.phase.value})")
            return
        event = self.catalog.get_event_by_id(event_id)
        if event is None:
            self._reject("trigger_crisis", f"unknown event '{event_id}'")
            return
        self._open_crisis(event)
        self._publish()

    def resolve_crisis(self, choice_id: str):
        if not self._accepting("resolve_crisis"):
            return
        s = self._state
        crisis = s.current_crisis
        if s.phase != GamePhase.CRISIS or crisis is None:
            self._reject("resolve_crisis", "no open crisis")
            return
        choice = crisis.get_choice(choice_id)
        if choice is None:
            self._reject("resolve_crisis", f"choice '{choice_id}' not in {crisis.id}")
            return

        s.budget -= choice.cost
        s.doom_level = clamp(s.doom_level + choice.doom_impact)
        for tag in choice.add_tags:
            s.add_tag(tag)
        s.remove_tags(choice.remove_tags)
        s.history.append(HistoryEntry(
            month=s.timeline_month,
            event_id=crisis.id,
            choice_id=choice.id,
            doom_increase=choice.doom_impact,
            cost=choice.cost,
        ))
        self._log_action("CHOICE", f"{crisis.id} -> {choice.id} "
                                   f"(cost {choice.cost:g}, doom {choice.doom_impact:+g})")

        s.current_crisis = None
        s.is_paused = False
        ending = terminal_phase(s, self.config)
        if ending:
            self._finish(ending)
        else:
            self._set_phase(GamePhase.SIMULATION)
        self._publish()

    # ─────────────────────────────────────────────────
    # PLAYER LEVERS
    # ─────────────────────────────────────────────────

    def set_funding_level(self, level):
        """Takes effect on the next month step."""
        if not self._accepting("set_funding_level"):
            return
        value = getattr(level, "value", level)
        if value not in FUNDING_LEVELS:
            self._reject("set_funding_level", f"unknown level {level!r}")
            return
        self._state.funding_level = FundingLevel(value)
        self._log_action("FUNDING", value)
        self._publish()

    def can_ship(self) -> bool:
        return (self._running()
                and self._state.doom_level < self.config.max_doom * SHIP_DOOM_THRESHOLD)

    def ship_product(self):
        """OTA monetization: cash now, doom now, and a month passes."""
        if not self._accepting("ship_product"):
            return
        if not self.can_ship():
            self._reject("ship_product", "not running or doom too high to ship")
            return
        s = self._state
        s.budget += SHIP_REWARD
        s.doom_level = clamp(s.doom_level + SHIP_DOOM_PENALTY)
        self._log_action("SHIP", f"+{SHIP_REWARD} budget, +{SHIP_DOOM_PENALTY} doom")
        ending = terminal_phase(s, self.config)
        if ending:
            self._finish(ending)
        else:
            self._advance(SHIP_TIME_ADVANCE)
        self._publish()

    # ─────────────────────────────────────────────────
    # RESTORE / RESET
    # ─────────────────────────────────────────────────

    def restore_state(self, partial) -> bool:
        """
        Full-replace the live state from saved or shared data.
        Orphaned phase/pause combinations are repaired first; anything that
        still fails validation is refused and the live state is kept.
        """
        if not self._accepting("restore_state"):
            return False
        if isinstance(partial, GameStateSnapshot):
            partial = partial.to_dict()
        if not isinstance(partial, dict):
            self._reject("restore_state", "partial state must be a mapping")
            return False

        repaired = repair_orphaned_state(partial)
        try:
            model = SavedStateModel.model_validate(repaired)
        except ValidationError as e:
            self._reject("restore_state", format_errors(e))
            return False

        self._state = state_from_partial(model, self.catalog, self.config)
        self._log_action("SESSION", f"Restored {model.phase} at month "
                                    f"{self._state.timeline_month:g}")
        self._publish()
        return True

    def reset(self):
        """Back to SPLASH. Clears the run and session bookkeeping; always safe."""
        if not self._accepting("reset"):
            return
        self._state = GameState()
        self.action_log = []
        self.roll_log = []
        self._publish()

    # ─────────────────────────────────────────────────
    # QUERIES
    # ─────────────────────────────────────────────────

    def get_config(self) -> dict:
        return self.config.to_dict()

    def get_eligible_events(self) -> list:
        """Events that could fire right now, ignoring the probability roll."""
        s = self._state
        eligible, _ = self.catalog.get_eligible_events(
            s.active_tags,
            s.selected_device.archetype if s.selected_device else None,
            month=s.timeline_month, budget=s.budget,
            doom=s.doom_level, history=s.history,
        )
        return eligible

    def get_share_payload(self) -> dict:
        """What a share link needs: seed plus the persisted state subset."""
        from persistence import state_subset
        return {"seed": self.seed, "state": state_subset(self._snapshot)}

    def get_action_log(self) -> list:
        return list(self.action_log)

    def get_roll_log(self) -> list:
        return list(self.roll_log)

    # ─────────────────────────────────────────────────
    # INTERNAL HELPERS
    # ─────────────────────────────────────────────────

    def _log_action(self, action_type: str, detail: str):
        """Add an entry to the action log."""
        entry = {
            "type": action_type,
            "detail": detail,
            "timestamp": datetime.now().isoformat(),
            "month": self._state.timeline_month,
        }
        self.action_log.append(entry)
        logger.debug(f"[{action_type}] {detail}")
