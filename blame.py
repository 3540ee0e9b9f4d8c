"""
Recall Run Engine v1.0: Blame Generator
Post-mortem humour for the autopsy screen: which department sank the product.
Deterministic when given a seed.
"""

import math
import random

CATEGORY_MATCH_SCORE = 2
SECONDARY_SCORE = 1
DEFAULT_SCORE = 1
FINANCE_DOOM_THRESHOLD = 10      # free choice with doom above this -> Finance
MANAGEMENT_DOOM_THRESHOLD = 20   # doom increase at or above this -> Management
SEEDED_RANDOM_MULTIPLIER = 10_000

DEPARTMENTS = ("Engineering", "Marketing", "Legal", "Supply Chain", "Finance", "Management")

# Keyword -> department, matched against event ids and titles
DEPARTMENT_KEYWORDS = (
    ("Engineering", ("ransomware", "exploit", "botnet", "debug", "vuln"), ("security", "hack")),
    ("Marketing", ("marketing", "pivot", "feature"), ("deadline", "launch")),
    ("Legal", ("cra", "gdpr", "compliance", "psti", "red_"), ("regulation", "enforcement")),
    ("Supply Chain", ("supply", "shortage", "eol", "silicon"), ("chip", "component")),
)

STATEMENTS = {
    "Engineering": (
        ("\U0001F527", "Engineering shipped the debug build. Again."),
        ("\U0001F4BB", "The firmware was 'basically done' for fourteen months."),
        ("\U0001F6AA", "The backdoor was for support. Support never used it. Others did."),
        ("⏰", "Security patches were scheduled for the sprint after next, forever."),
        ("\U0001F50D", "Nobody reviewed the pull request titled 'quick fix'."),
    ),
    "Marketing": (
        ("\U0001F4E2", "Marketing promised features the hardware could not spell."),
        ("\U0001F4C5", "The launch date was chosen by horoscope."),
        ("\U0001F384", "It had to ship before Christmas. It shipped before testing."),
        ("\U0001F4E1", "'Cloud-connected' was added to the box before the cloud existed."),
        ("\U0001F680", "The AI pivot was announced on a podcast."),
    ),
    "Legal": (
        ("⚖️", "Legal read the regulation. Nobody read Legal's memo."),
        ("\U0001F1EA\U0001F1FA", "Brussels sent a letter. It was used as a coaster."),
        ("\U0001F4DC", "The terms of service claimed the device was a decorative object."),
        ("\U0001F4CB", "Compliance was a checkbox. Someone ticked it."),
    ),
    "Supply Chain": (
        ("\U0001F4E6", "The cheapest supplier was cheapest for a reason."),
        ("\U0001F50C", "The replacement part was 'pin compatible, mostly'."),
        ("⚠️", "Last-time-buy emails went to an intern who had left."),
        ("\U0001F6D2", "Half the chips came from an auction site."),
    ),
    "Finance": (
        ("\U0001F4B0", "Finance approved the free option every single time."),
        ("\U0001F4C9", "Security was classified as a cost centre."),
        ("☁️", "The cloud bill was paid by cancelling the security team."),
        ("\U0001F4B8", "Budget for the fix arrived one quarter after the recall."),
    ),
    "Management": (
        ("\U0001F517", "Management chained every bad decision into a strategy."),
        ("\U0001F4CA", "The dashboard was green. The dashboard was wrong."),
        ("\U0001F504", "The reorg happened during the incident."),
        ("\U0001F648", "Risks were acknowledged, minuted, and ignored."),
    ),
}


def seeded_random(seed: float) -> float:
    """Fraction of sin(seed) * 10000; stable float in [0, 1) for a given seed."""
    x = math.sin(seed) * SEEDED_RANDOM_MULTIPLIER
    return x - math.floor(x)


def score_departments(history, events) -> dict:
    """Department -> blame score for a run's history. Engineering by default."""
    scores = {d: 0 for d in DEPARTMENTS}
    by_id = {e.id: e for e in events}

    for entry in history:
        event = by_id.get(entry.event_id)
        if event is None:
            continue
        event_id = event.id.lower()
        title = (event.title or "").lower()

        for department, ids, titles in DEPARTMENT_KEYWORDS:
            if any(k in event_id for k in ids) or any(k in title for k in titles):
                scores[department] += CATEGORY_MATCH_SCORE

        if entry.cost == 0 and entry.doom_increase > FINANCE_DOOM_THRESHOLD:
            scores["Finance"] += SECONDARY_SCORE
        if entry.doom_increase >= MANAGEMENT_DOOM_THRESHOLD:
            scores["Management"] += SECONDARY_SCORE

    if max(scores.values()) == 0:
        scores["Engineering"] = DEFAULT_SCORE
    return scores


def generate_blame(history, events, seed=None) -> dict:
    """
    Pick the department to blame and one of its statements.
    Returns {department, statement, emoji}; department uses underscores.
    """
    scores = score_departments(history, events)
    top = max(scores.values())
    winners = [d for d in DEPARTMENTS if scores[d] == top]

    r1 = seeded_random(seed) if seed is not None else random.random()
    department = winners[int(r1 * len(winners))]

    templates = STATEMENTS[department]
    r2 = seeded_random(seed + 1) if seed is not None else random.random()
    emoji, statement = templates[int(r2 * len(templates))]

    return {
        "department": department.replace(" ", "_"),
        "statement": statement,
        "emoji": emoji,
    }


def format_blame_for_share(blame: dict) -> str:
    return f"{blame['emoji']} {blame['department']}: {blame['statement']}"
