import os
import sys
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from crisis import event_probability, roll_for_event, spacing_allows, select_crisis
from dice import SeededRandom
from factories import event_data, make_catalog


def _context(**overrides):
    ctx = {"tags": [], "category": "consumer", "month": 6, "budget": 50_000,
           "doom": 0, "history": []}
    ctx.update(overrides)
    return ctx


class TestEventProbability(unittest.TestCase):
    def test_base_probability(self):
        self.assertAlmostEqual(event_probability(0, []), 0.3)

    def test_doom_raises_probability(self):
        self.assertAlmostEqual(event_probability(100, []), 0.5)

    def test_risky_tags_counted_once(self):
        self.assertAlmostEqual(
            event_probability(0, ["bad_flash", "tech_debt", "secure_boot", "bad_flash"]), 0.4)

    def test_capped(self):
        tags = ["bad_flash", "default_password", "no_encryption", "cheap_wifi",
                "tech_debt", "cra_noncompliant"]
        self.assertAlmostEqual(event_probability(100, tags), 0.8)
        self.assertAlmostEqual(event_probability(100, tags + ["cloud_dependency",
                                                              "pr_disaster",
                                                              "regulatory_debt",
                                                              "supply_risk", "cloned",
                                                              "untested_hardware"]), 0.95)

    def test_roll_uses_current_probability(self):
        a = roll_for_event(SeededRandom(3), 50, ["tech_debt"], "month 5")
        b = roll_for_event(SeededRandom(3), 50, ["tech_debt"], "month 5")
        self.assertEqual(a, b)
        self.assertAlmostEqual(a["probability"], 0.45)


class TestSpacing(unittest.TestCase):
    def test_first_roll_at_month_five(self):
        self.assertFalse(spacing_allows(4, -1, 6))
        self.assertTrue(spacing_allows(5, -1, 6))

    def test_six_months_between_crises(self):
        self.assertFalse(spacing_allows(11, 6, 6))
        self.assertTrue(spacing_allows(12, 6, 6))


class TestSelectCrisis(unittest.TestCase):
    def test_no_eligible_events(self):
        catalog = make_catalog(events=[event_data("late", triggerCondition="month >= 40")])
        event, deflections = select_crisis(catalog, SeededRandom(1), _context())
        self.assertIsNone(event)
        self.assertEqual(deflections, [])

    def test_picks_an_eligible_event(self):
        catalog = make_catalog(events=[event_data("a"), event_data("b"),
                                       event_data("medical", archetypes=["medical"])])
        rng = SeededRandom(1)
        for _ in range(30):
            event, _ = select_crisis(catalog, rng, _context())
            self.assertIn(event.id, ("a", "b"))

    def test_same_seed_same_choice(self):
        catalog = make_catalog(events=[event_data(f"e{i}") for i in range(5)])
        picks_a = [select_crisis(catalog, SeededRandom(8), _context())[0].id for _ in range(3)]
        picks_b = [select_crisis(catalog, SeededRandom(8), _context())[0].id for _ in range(3)]
        self.assertEqual(picks_a, picks_b)

    def test_base_prob_weights_selection(self):
        """A zero weight is never chosen once any candidate carries baseProb."""
        catalog = make_catalog(events=[event_data("never", baseProb=0.0),
                                       event_data("default")])
        rng = SeededRandom(4)
        for _ in range(30):
            event, _ = select_crisis(catalog, rng, _context())
            self.assertEqual(event.id, "default")

    def test_deflections_returned_with_selection(self):
        catalog = make_catalog(events=[event_data("open"),
                                       event_data("shielded", blockedByTags=["secure_boot"])])
        event, deflections = select_crisis(catalog, SeededRandom(1),
                                           _context(tags=["secure_boot"]))
        self.assertEqual(event.id, "open")
        self.assertEqual([d.event_id for d in deflections], ["shielded"])


if __name__ == '__main__':
    unittest.main()
