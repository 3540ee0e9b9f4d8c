import os
import sys
import math
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from game_loop import GameEngine
from catalog import load_default_catalog
from models import GamePhase, FundingLevel, snapshot_to_json, TERMINAL_PHASES
from factories import (
    make_catalog, quiet_catalog, started_engine, running_state, event_data,
)


def _autoplay(engine, max_commands=500):
    """Cautious autoplay until the run ends; returns the JSON of every published state."""
    published = []
    engine.subscribe(lambda s: published.append(snapshot_to_json(s)))
    engine.initialize()
    engine.select_device(engine.get_state().available_devices[0].id)
    engine.start_simulation()
    for _ in range(max_commands):
        state = engine.get_state()
        if state.phase in TERMINAL_PHASES:
            break
        if state.phase == GamePhase.CRISIS:
            choice = min(state.current_crisis.choices, key=lambda c: (c.doom_impact, c.cost))
            engine.resolve_crisis(choice.id)
        else:
            engine.advance_time(1)
    return published


class TestSetup(unittest.TestCase):
    def setUp(self):
        self.engine = GameEngine(make_catalog(), seed=1)

    def test_starts_in_splash(self):
        state = self.engine.get_state()
        self.assertEqual(state.phase, GamePhase.SPLASH)
        self.assertEqual(state.budget, 100_000)
        self.assertEqual(state.last_event_month, -1)

    def test_initialize_draws_three_distinct_devices(self):
        self.engine.initialize()
        state = self.engine.get_state()
        self.assertEqual(state.phase, GamePhase.SETUP)
        ids = [d.id for d in state.available_devices]
        self.assertEqual(len(ids), 3)
        self.assertEqual(len(set(ids)), 3)
        self.assertEqual(ids[0], "omni-juice")

    def test_preferred_device_first(self):
        self.engine.initialize("plc-gateway")
        self.assertEqual(self.engine.get_state().available_devices[0].id, "plc-gateway")

    def test_unknown_preferred_falls_back(self):
        self.engine.initialize("does-not-exist")
        self.assertEqual(self.engine.get_state().available_devices[0].id, "omni-juice")

    def test_initialize_is_idempotent_in_setup(self):
        self.engine.initialize()
        first = self.engine.get_state()
        self.engine.initialize()
        self.assertIs(self.engine.get_state(), first)

    def test_select_device_copies_device_defaults(self):
        self.engine.initialize("smart-fridge")
        self.engine.select_device("smart-fridge")
        state = self.engine.get_state()
        self.assertEqual(state.selected_device.id, "smart-fridge")
        self.assertEqual(state.budget, 100_000)
        self.assertEqual(state.active_tags, ("cheap_wifi",))
        self.assertEqual(state.compliance_level, 100)
        self.assertEqual(state.funding_level, FundingLevel.FULL)

    def test_select_device_outside_the_drawn_list(self):
        self.engine.initialize()
        before = self.engine.get_state()
        drawn = {d.id for d in before.available_devices}
        missing = next(d.id for d in self.engine.catalog.get_devices() if d.id not in drawn)
        self.engine.select_device(missing)
        self.assertIs(self.engine.get_state(), before)

    def test_select_device_outside_setup(self):
        before = self.engine.get_state()
        self.engine.select_device("omni-juice")
        self.assertIs(self.engine.get_state(), before)

    def test_start_requires_device(self):
        self.engine.initialize()
        before = self.engine.get_state()
        self.engine.start_simulation()
        self.assertIs(self.engine.get_state(), before)

    def test_start_simulation(self):
        engine = started_engine(make_catalog())
        state = engine.get_state()
        self.assertEqual(state.phase, GamePhase.SIMULATION)
        self.assertFalse(state.is_paused)
        self.assertEqual(state.last_event_month, -1)

    def test_enter_setup_from_splash(self):
        self.engine.enter_setup("plc-gateway")
        state = self.engine.get_state()
        self.assertEqual(state.phase, GamePhase.SETUP)
        self.assertEqual(state.available_devices[0].id, "plc-gateway")

    def test_enter_setup_from_shared_result(self):
        self.engine.restore_state({"phase": "shared_result", "budget": 5000,
                                   "selectedDevice": {"id": "omni-juice"}})
        self.engine.enter_setup()
        state = self.engine.get_state()
        self.assertEqual(state.phase, GamePhase.SETUP)
        self.assertIsNone(state.selected_device)

    def test_enter_setup_not_allowed_mid_run(self):
        engine = started_engine(make_catalog())
        before = engine.get_state()
        engine.enter_setup()
        self.assertIs(engine.get_state(), before)

    def test_reinitialize_after_selection_redraws(self):
        self.engine.initialize()
        self.engine.select_device("omni-juice")
        self.engine.initialize()
        state = self.engine.get_state()
        self.assertEqual(state.phase, GamePhase.SETUP)
        self.assertIsNone(state.selected_device)


class TestTime(unittest.TestCase):
    def test_invalid_deltas_ignored(self):
        engine = started_engine(quiet_catalog())
        before = engine.get_state()
        for months in (0, -1, float("nan"), float("inf"), "1", True, None):
            engine.advance_time(months)
            self.assertIs(engine.get_state(), before)

    def test_advance_outside_simulation_ignored(self):
        engine = GameEngine(quiet_catalog(), seed=1)
        before = engine.get_state()
        engine.advance_time(1)
        self.assertIs(engine.get_state(), before)

    def test_one_month_of_economics(self):
        engine = started_engine(quiet_catalog())
        engine.advance_time(1)
        state = engine.get_state()
        self.assertEqual(state.timeline_month, 1)
        self.assertEqual(state.budget, 98_000)
        self.assertEqual(state.compliance_level, 100)
        self.assertEqual(state.doom_level, 0)

    def test_partial_funding(self):
        engine = started_engine(quiet_catalog())
        engine.set_funding_level("partial")
        engine.advance_time(1)
        state = engine.get_state()
        self.assertEqual(state.funding_level, FundingLevel.PARTIAL)
        self.assertEqual(state.compliance_level, 98)
        self.assertEqual(state.budget, 99_000)

    def test_unknown_funding_level_ignored(self):
        engine = started_engine(quiet_catalog())
        before = engine.get_state()
        engine.set_funding_level("lavish")
        self.assertIs(engine.get_state(), before)

    def test_budget_stress_doom(self):
        engine = GameEngine(quiet_catalog(), seed=1)
        self.assertTrue(engine.restore_state(running_state(
            budget=-200_000, selectedDevice={"id": "zero-cost"})))
        self.assertEqual(engine.get_state().selected_device.monthly_maintenance_cost, 0)
        engine.advance_time(1)
        self.assertAlmostEqual(engine.get_state().doom_level, 1 / 12 + 1 / 6)

    def test_low_compliance_adds_regulatory_risk(self):
        engine = GameEngine(quiet_catalog(), seed=1)
        engine.restore_state(running_state(complianceLevel=52, fundingLevel="none"))
        engine.advance_time(1)
        state = engine.get_state()
        self.assertEqual(state.compliance_level, 47)
        self.assertIn("regulatory_risk", state.active_tags)

    def test_end_of_life_tag(self):
        engine = GameEngine(quiet_catalog(), seed=1)
        engine.restore_state(running_state(timelineMonth=47))
        engine.advance_time(1)
        self.assertIn("eol_device", engine.get_state().active_tags)

    def test_rolls_only_on_whole_month_crossings(self):
        engine = started_engine(quiet_catalog())
        for _ in range(10):
            engine.advance_time(0.5)
        self.assertEqual(engine.get_state().timeline_month, 5)
        self.assertEqual(len(engine.get_roll_log()), 1)
        engine.advance_time(0.5)
        self.assertEqual(len(engine.get_roll_log()), 1)
        engine.advance_time(0.5)
        self.assertEqual(len(engine.get_roll_log()), 2)

    def test_victory_at_final_month(self):
        engine = started_engine(quiet_catalog(), device_id="plc-gateway")
        engine.advance_time(100)
        state = engine.get_state()
        self.assertEqual(state.phase, GamePhase.VICTORY)
        self.assertEqual(state.timeline_month, 60)
        self.assertIsNone(state.death_analysis)
        self.assertGreater(state.budget, 0)

    def test_no_advance_after_the_end(self):
        engine = started_engine(quiet_catalog(), device_id="plc-gateway")
        engine.advance_time(60)
        before = engine.get_state()
        engine.advance_time(1)
        self.assertIs(engine.get_state(), before)


class TestCrisis(unittest.TestCase):
    def setUp(self):
        self.engine = started_engine(make_catalog())

    def test_trigger_opens_and_pauses(self):
        self.engine.advance_time(2)
        self.engine.trigger_crisis("outage")
        state = self.engine.get_state()
        self.assertEqual(state.phase, GamePhase.CRISIS)
        self.assertTrue(state.is_paused)
        self.assertEqual(state.current_crisis.id, "outage")
        self.assertEqual(state.last_event_month, 2)

    def test_trigger_unknown_event_ignored(self):
        before = self.engine.get_state()
        self.engine.trigger_crisis("nope")
        self.assertIs(self.engine.get_state(), before)

    def test_trigger_outside_simulation_ignored(self):
        engine = GameEngine(make_catalog(), seed=1)
        engine.initialize()
        before = engine.get_state()
        engine.trigger_crisis("outage")
        self.assertIs(engine.get_state(), before)

    def test_time_frozen_during_crisis(self):
        self.engine.trigger_crisis("outage")
        before = self.engine.get_state()
        self.engine.advance_time(1)
        self.engine.ship_product()
        self.assertIs(self.engine.get_state(), before)

    def test_resolve_without_crisis_changes_nothing(self):
        before = self.engine.get_state()
        self.engine.resolve_crisis("nonexistent-choice")
        self.assertIs(self.engine.get_state(), before)

    def test_resolve_unknown_choice_keeps_crisis(self):
        self.engine.trigger_crisis("outage")
        before = self.engine.get_state()
        self.engine.resolve_crisis("nope")
        self.assertIs(self.engine.get_state(), before)

    def test_resolve_applies_choice(self):
        self.engine.trigger_crisis("outage")
        self.engine.resolve_crisis("risky")
        state = self.engine.get_state()
        self.assertEqual(state.phase, GamePhase.SIMULATION)
        self.assertFalse(state.is_paused)
        self.assertIsNone(state.current_crisis)
        self.assertEqual(state.doom_level, 30)
        self.assertIn("tech_debt", state.active_tags)
        self.assertEqual(len(state.history), 1)
        entry = state.history[0]
        self.assertEqual((entry.event_id, entry.choice_id), ("outage", "risky"))
        self.assertEqual(entry.doom_increase, 30)
        self.assertEqual(entry.cost, 0)

    def test_resolve_pays_cost(self):
        self.engine.trigger_crisis("outage")
        self.engine.resolve_crisis("safe")
        self.assertEqual(self.engine.get_state().budget, 99_000)

    def test_fatal_choice_ends_in_autopsy(self):
        self.engine.trigger_crisis("outage")
        self.engine.resolve_crisis("fatal")
        state = self.engine.get_state()
        self.assertEqual(state.phase, GamePhase.AUTOPSY)
        self.assertEqual(state.doom_level, 100)
        self.assertFalse(state.is_paused)
        self.assertEqual(state.death_analysis.cause, "doom_overflow")
        self.assertEqual(state.death_analysis.worst_choice.choice_id, "fatal")
        self.assertEqual(state.death_analysis.total_doom_from_choices, 100)

    def test_rolled_crisis_pauses_and_respects_spacing(self):
        for _ in range(60):
            if self.engine.get_state().phase != GamePhase.SIMULATION:
                break
            self.engine.advance_time(1)
        state = self.engine.get_state()
        self.assertEqual(state.phase, GamePhase.CRISIS)
        self.assertTrue(state.is_paused)
        self.assertGreaterEqual(state.timeline_month, 5)
        self.assertEqual(state.last_event_month, math.floor(state.timeline_month))
        crisis_month = state.last_event_month
        self.assertLessEqual(crisis_month, 50)

        self.engine.resolve_crisis("safe")
        rolls = len(self.engine.get_roll_log())
        for _ in range(5):
            self.engine.advance_time(1)
        self.assertEqual(len(self.engine.get_roll_log()), rolls)
        self.engine.advance_time(1)
        self.assertEqual(len(self.engine.get_roll_log()), rolls + 1)

    def test_shield_deflections_recorded_once_per_month(self):
        catalog = make_catalog(events=[event_data("shielded", blockedByTags=["secure_boot"])])
        engine = GameEngine(catalog, seed=3)
        engine.restore_state(running_state(activeTags=["secure_boot"]))
        engine.advance_time(60)
        state = engine.get_state()
        self.assertEqual(state.phase, GamePhase.VICTORY)
        self.assertTrue(state.shield_deflections)
        keys = [(d.month, d.event_id) for d in state.shield_deflections]
        self.assertEqual(len(keys), len(set(keys)))
        self.assertTrue(all(d.blocked_by_tag == "secure_boot" for d in state.shield_deflections))


class TestShip(unittest.TestCase):
    def test_ship_product(self):
        engine = started_engine(quiet_catalog())
        self.assertTrue(engine.can_ship())
        engine.ship_product()
        state = engine.get_state()
        self.assertEqual(state.budget, 133_000)
        self.assertEqual(state.doom_level, 10)
        self.assertEqual(state.timeline_month, 1)

    def test_ship_blocked_at_high_doom(self):
        engine = GameEngine(quiet_catalog(), seed=1)
        engine.restore_state(running_state(doomLevel=50))
        self.assertFalse(engine.can_ship())
        before = engine.get_state()
        engine.ship_product()
        self.assertIs(engine.get_state(), before)

    def test_ship_outside_simulation(self):
        engine = GameEngine(quiet_catalog(), seed=1)
        self.assertFalse(engine.can_ship())


class TestRestore(unittest.TestCase):
    def setUp(self):
        self.engine = GameEngine(make_catalog(), seed=1)

    def test_orphaned_crisis_repaired(self):
        ok = self.engine.restore_state(running_state(phase="crisis", currentCrisis=None,
                                                     isPaused=True))
        self.assertTrue(ok)
        state = self.engine.get_state()
        self.assertEqual(state.phase, GamePhase.SIMULATION)
        self.assertFalse(state.is_paused)

    def test_paused_simulation_unpaused(self):
        self.engine.restore_state(running_state(isPaused=True))
        self.assertFalse(self.engine.get_state().is_paused)

    def test_crisis_restored_from_catalog(self):
        self.engine.restore_state(running_state(phase="crisis", currentCrisis={"id": "outage"}))
        state = self.engine.get_state()
        self.assertEqual(state.phase, GamePhase.CRISIS)
        self.assertTrue(state.is_paused)
        self.assertEqual(len(state.current_crisis.choices), 3)

    def test_unknown_crisis_without_choices_resumes(self):
        ok = self.engine.restore_state(running_state(
            phase="crisis", isPaused=True, currentCrisis={"id": "not-in-catalog"}))
        self.assertTrue(ok)
        state = self.engine.get_state()
        self.assertEqual(state.phase, GamePhase.SIMULATION)
        self.assertFalse(state.is_paused)
        self.assertIsNone(state.current_crisis)

        self.engine.advance_time(1)
        self.assertEqual(self.engine.get_state().timeline_month, 1)

    def test_unknown_crisis_with_choices_kept(self):
        self.engine.restore_state(running_state(
            phase="crisis", currentCrisis=event_data("custom-recall")))
        state = self.engine.get_state()
        self.assertEqual(state.phase, GamePhase.CRISIS)
        self.assertEqual(state.current_crisis.id, "custom-recall")

        self.engine.resolve_crisis("safe")
        self.assertEqual(self.engine.get_state().phase, GamePhase.SIMULATION)

    def test_invalid_records_rejected(self):
        before = self.engine.get_state()
        missing_phase = running_state()
        del missing_phase["phase"]
        missing_budget = running_state()
        del missing_budget["budget"]
        for bad in (missing_phase, missing_budget,
                    running_state(doomLevel=150),
                    running_state(budget=float("nan")),
                    running_state(phase="nowhere"),
                    running_state(selectedDevice=None),
                    "not a dict"):
            self.assertFalse(self.engine.restore_state(bad))
            self.assertIs(self.engine.get_state(), before)

    def test_snapshot_round_trip(self):
        source = started_engine(make_catalog(), seed=5)
        source.advance_time(3)
        source.trigger_crisis("outage")
        target = GameEngine(make_catalog(), seed=99)
        self.assertTrue(target.restore_state(source.get_state()))
        self.assertEqual(target.get_state().to_dict(), source.get_state().to_dict())

    def test_restore_replaces_everything(self):
        engine = started_engine(make_catalog())
        engine.trigger_crisis("outage")
        engine.resolve_crisis("risky")
        engine.restore_state(running_state())
        state = engine.get_state()
        self.assertEqual(state.history, ())
        self.assertEqual(state.doom_level, 0)
        self.assertEqual(state.active_tags, ())

    def test_reset(self):
        engine = started_engine(make_catalog())
        engine.trigger_crisis("outage")
        engine.reset()
        state = engine.get_state()
        self.assertEqual(state.phase, GamePhase.SPLASH)
        self.assertIsNone(state.current_crisis)
        self.assertEqual(engine.get_action_log(), [])
        self.assertEqual(engine.get_roll_log(), [])


class TestSubscribers(unittest.TestCase):
    def setUp(self):
        self.engine = GameEngine(quiet_catalog(), seed=1)

    def test_one_publish_per_successful_command(self):
        seen = []
        self.engine.subscribe(seen.append)
        self.engine.initialize()
        self.engine.select_device("omni-juice")
        self.engine.start_simulation()
        self.engine.select_device("omni-juice")
        self.engine.advance_time(3)
        self.assertEqual(len(seen), 4)
        self.assertIs(seen[-1], self.engine.get_state())

    def test_registration_order(self):
        calls = []
        self.engine.subscribe(lambda s: calls.append("first"))
        self.engine.subscribe(lambda s: calls.append("second"))
        self.engine.initialize()
        self.assertEqual(calls, ["first", "second"])

    def test_unsubscribe(self):
        seen = []
        unsubscribe = self.engine.subscribe(seen.append)
        self.engine.initialize()
        unsubscribe()
        self.engine.reset()
        self.assertEqual(len(seen), 1)

    def test_failing_subscriber_isolated(self):
        seen = []

        def broken(snapshot):
            raise RuntimeError("listener bug")

        self.engine.subscribe(broken)
        self.engine.subscribe(seen.append)
        with self.assertLogs("recall.engine", level="ERROR"):
            self.engine.initialize()
        self.assertEqual(len(seen), 1)
        self.assertEqual(self.engine.get_state().phase, GamePhase.SETUP)

    def test_commands_from_inside_notification_ignored(self):
        engine = started_engine(quiet_catalog())

        def meddle(snapshot):
            engine.advance_time(1)

        engine.subscribe(meddle)
        with self.assertLogs("recall.engine", level="WARNING"):
            engine.set_funding_level("partial")
        self.assertEqual(engine.get_state().timeline_month, 0)


class TestDeterminism(unittest.TestCase):
    def test_same_seed_same_run(self):
        run_a = _autoplay(GameEngine(load_default_catalog(), seed=1234))
        run_b = _autoplay(GameEngine(load_default_catalog(), seed=1234))
        self.assertEqual(run_a, run_b)

    def test_run_invariants(self):
        for seed in (1, 2, 3):
            engine = GameEngine(load_default_catalog(), seed=seed)
            snapshots = []
            engine.subscribe(snapshots.append)
            _autoplay(engine)
            running = [s for s in snapshots if s.phase not in (GamePhase.SPLASH, GamePhase.SETUP)]
            for prev, cur in zip(running, running[1:]):
                self.assertGreaterEqual(cur.timeline_month, prev.timeline_month)
                self.assertGreaterEqual(len(cur.history), len(prev.history))
            for s in running:
                self.assertTrue(0 <= s.doom_level <= 100)
                self.assertTrue(0 <= s.compliance_level <= 100)
                self.assertTrue(0 <= s.timeline_month <= 60)
                self.assertEqual(s.phase == GamePhase.CRISIS, s.current_crisis is not None)
                self.assertEqual(s.phase == GamePhase.CRISIS, s.is_paused)
            self.assertIn(engine.get_state().phase, TERMINAL_PHASES)

    def test_share_payload(self):
        engine = started_engine(quiet_catalog(), seed=77)
        payload = engine.get_share_payload()
        self.assertEqual(payload["seed"], 77)
        self.assertEqual(payload["state"]["phase"], "simulation")


if __name__ == '__main__':
    unittest.main()
