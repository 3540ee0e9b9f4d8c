"""
Recall Run Engine v1.0: Configuration
Game balance constants and host settings in one place.
Change values here to tune balance without touching logic code.
"""

import os
from dataclasses import dataclass


# ─────────────────────────────────────────────────────
# CORE GAME CONFIG
# ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class GameConfig:
    """Per-engine configuration. Defaults describe a 5-year run."""
    total_months: int = 60
    events_per_game: int = 10
    event_interval_months: int = 6       # minimum spacing between events
    max_doom: float = 100.0
    game_duration_ms: int = 150_000      # real-time length of a UI run

    def months_per_ms(self) -> float:
        return self.total_months / self.game_duration_ms

    def to_dict(self) -> dict:
        return {
            "totalMonths": self.total_months,
            "eventsPerGame": self.events_per_game,
            "eventIntervalMonths": self.event_interval_months,
            "maxDoom": self.max_doom,
            "gameDurationMs": self.game_duration_ms,
        }


DEFAULT_CONFIG = GameConfig()


# ─────────────────────────────────────────────────────
# INITIAL STATE
# ─────────────────────────────────────────────────────

INITIAL_BUDGET = 100_000
INITIAL_DOOM = 0.0
INITIAL_MONTH = 0.0
INITIAL_COMPLIANCE = 100.0
NO_LAST_EVENT = -1

MIN_LEVEL = 0.0
MAX_LEVEL = 100.0


# ─────────────────────────────────────────────────────
# DEVICE SETUP
# ─────────────────────────────────────────────────────

RANDOM_DEVICE_COUNT = 2               # random devices shown alongside the preferred one
FALLBACK_DEVICE_ID = "omni-juice"


# ─────────────────────────────────────────────────────
# OTA MONETIZATION (ship product)
# ─────────────────────────────────────────────────────

SHIP_REWARD = 35_000
SHIP_DOOM_PENALTY = 10
SHIP_DOOM_THRESHOLD = 0.5             # fraction of max doom; can't ship above it
SHIP_TIME_ADVANCE = 1                 # months consumed per shipment


# ─────────────────────────────────────────────────────
# FINANCIAL STRESS
# Negative-budget thresholds; rates are cumulative.
# ─────────────────────────────────────────────────────

BUDGET_STRESS_TIERS = (
    {"threshold": -50_000, "doom_per_month": 1 / 12},
    {"threshold": -150_000, "doom_per_month": 1 / 6},
    {"threshold": -300_000, "doom_per_month": 1 / 3},
)


# ─────────────────────────────────────────────────────
# EVENT PROBABILITY
# ─────────────────────────────────────────────────────

EVENT_BASE_PROBABILITY = 0.3
EVENT_DOOM_DIVISOR = 500              # doom / divisor added to probability
RISKY_TAG_BOOST = 0.05                # per risky tag present
EVENT_MAX_PROBABILITY = 0.95

RISKY_TAGS = (
    "bad_flash",
    "default_password",
    "no_encryption",
    "cheap_wifi",
    "tech_debt",
    "cra_noncompliant",
    "cloud_dependency",
    "pr_disaster",
    "regulatory_debt",
    "supply_risk",
    "cloned",
    "untested_hardware",
)


# ─────────────────────────────────────────────────────
# COMPLIANCE / REGULATORY
# ─────────────────────────────────────────────────────

DEFAULT_MAINTENANCE_COST = 2000
DEFAULT_EOL_MONTH = 48
LEGACY_MONTH_THRESHOLD = 36           # costs increase after this month
LEGACY_COST_MULTIPLIER = 1.5

FUNDING_TIERS = {
    "full": {"cost_multiplier": 1.0, "change": 1, "post_eol_change": -2},
    "partial": {"cost_multiplier": 0.5, "change": -2},
    "none": {"cost_multiplier": 0.0, "change": -5},
}

REGULATORY_RISK_THRESHOLD = 50
CRITICAL_VULN_THRESHOLD = 20

TAG_EOL_DEVICE = "eol_device"
TAG_REGULATORY_RISK = "regulatory_risk"
TAG_CRITICAL_VULN = "critical_vuln"

# Tags that point at a negative outcome in the autopsy
PROBLEM_TAGS = (
    "bad_flash",
    "fake_ai",
    "data_loss",
    "cheap_wifi",
    "tech_debt",
    "no_encryption",
)


# ─────────────────────────────────────────────────────
# ACHIEVEMENTS / STATS
# ─────────────────────────────────────────────────────

ACHIEVEMENT_THRESHOLDS = {
    "first_blood_games": 1,
    "survivor_wins": 1,
    "budget_hawk_min_budget": 80_000,
    "doom_dancer_min_doom": 70,
    "clean_slate_max_doom": 10,
    "veteran_games": 10,
    "undefeated_wins": 5,
    "speedrun_max_events": 3,
    "crisis_veteran_min_events": 10,
    "all_devices_count": 7,
}

MAX_RUN_HISTORY = 10
STATS_FILENAME = "recall-run-stats_v1.json"
SAVE_FILENAME = "recall_run_save.json"


# ─────────────────────────────────────────────────────
# HOST SETTINGS (environment)
# ─────────────────────────────────────────────────────

ENGINE_DIR = os.path.dirname(os.path.abspath(__file__))

PORT = int(os.getenv("RECALL_PORT", "8000"))
DATA_DIR = os.getenv("RECALL_DATA_DIR", os.path.join(ENGINE_DIR, "data"))
LOG_LEVEL = os.getenv("RECALL_LOG_LEVEL", "INFO")
FALLBACK_ORIGIN = "https://www.deviceprophet.com/labs"


def env_seed():
    """Seed from RECALL_SEED, or None for a fresh random run."""
    raw = os.getenv("RECALL_SEED", "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None
