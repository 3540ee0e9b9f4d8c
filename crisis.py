"""
Recall Run Engine v1.0: Event Probability & Crisis Selector
How likely is trouble this month, and which trouble is it.
"""

import logging

from config import (
    EVENT_BASE_PROBABILITY, EVENT_DOOM_DIVISOR, RISKY_TAG_BOOST,
    EVENT_MAX_PROBABILITY, RISKY_TAGS,
)
from dice import SeededRandom, roll_chance

logger = logging.getLogger("recall.engine")


def event_probability(doom: float, tags) -> float:
    """Chance that a crisis fires this month."""
    risky = len(set(tags) & set(RISKY_TAGS))
    p = EVENT_BASE_PROBABILITY + doom / EVENT_DOOM_DIVISOR + RISKY_TAG_BOOST * risky
    return min(EVENT_MAX_PROBABILITY, p)


def roll_for_event(rng: SeededRandom, doom: float, tags, label: str = "") -> dict:
    """One Bernoulli draw at the current event probability. Audit dict."""
    return roll_chance(rng, event_probability(doom, tags), label)


def spacing_allows(month: float, last_event_month: float, interval: int) -> bool:
    """
    True when enough months have passed since the last crisis.
    With no crisis yet (NO_LAST_EVENT = -1) the first roll comes at month interval - 1.
    """
    return month - last_event_month >= interval


def select_crisis(catalog, rng: SeededRandom, context: dict) -> tuple:
    """
    Pick one eligible event via the seeded source.

    Uniform unless a candidate carries baseProb, in which case every
    candidate is weighted by its baseProb (default 0.3).
    context keys: tags, category, month, budget, doom, history.
    Returns (event or None, deflections). No eligible event means no crisis.
    """
    eligible, deflections = catalog.get_eligible_events(
        context.get("tags", ()),
        context.get("category"),
        month=context.get("month", 0),
        budget=context.get("budget", 0),
        doom=context.get("doom", 0),
        history=context.get("history", ()),
    )
    if not eligible:
        logger.info(f"No eligible events at month {context.get('month', 0)}")
        return None, deflections
    if any(e.base_prob is not None for e in eligible):
        weights = [EVENT_BASE_PROBABILITY if e.base_prob is None else e.base_prob
                   for e in eligible]
        return rng.weighted_pick(eligible, weights), deflections
    return rng.pick(eligible), deflections
