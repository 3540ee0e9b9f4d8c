"""
Recall Run Engine v1.0: Achievements
Predicates over a finished snapshot and cumulative stats.
A None snapshot means only stats-based achievements can fire.
"""

from config import ACHIEVEMENT_THRESHOLDS as T
from models import GamePhase


def _won(state) -> bool:
    return state is not None and state.phase == GamePhase.VICTORY


def _distinct_devices(stats) -> int:
    return len({r.device_id for r in stats.run_history or []})


ACHIEVEMENTS = [
    {"id": "first_blood", "icon": "1",
     "check": lambda state, stats: stats.games_played >= T["first_blood_games"]},
    {"id": "survivor", "icon": "S",
     "check": lambda state, stats: stats.games_won >= T["survivor_wins"]},
    {"id": "budget_hawk", "icon": "$",
     "check": lambda state, stats: _won(state) and state.budget >= T["budget_hawk_min_budget"]},
    {"id": "doom_dancer", "icon": "D",
     "check": lambda state, stats: _won(state) and state.doom_level >= T["doom_dancer_min_doom"]},
    {"id": "clean_slate", "icon": "0",
     "check": lambda state, stats: _won(state) and state.doom_level <= T["clean_slate_max_doom"]},
    {"id": "veteran", "icon": "V",
     "check": lambda state, stats: stats.games_played >= T["veteran_games"]},
    {"id": "undefeated", "icon": "U",
     "check": lambda state, stats: (stats.games_won >= T["undefeated_wins"]
                                    and stats.games_won == stats.games_played)},
    {"id": "speed_run", "icon": "R",
     "check": lambda state, stats: _won(state) and len(state.history) <= T["speedrun_max_events"]},
    {"id": "crisis_veteran", "icon": "C",
     "check": lambda state, stats: (state is not None
                                    and len(state.history) >= T["crisis_veteran_min_events"])},
    {"id": "all_devices", "icon": "A",
     "check": lambda state, stats: _distinct_devices(stats) >= T["all_devices_count"]},
]

ACHIEVEMENT_IDS = tuple(a["id"] for a in ACHIEVEMENTS)


def check_achievements(state, stats) -> list:
    """Ids whose predicate holds and that stats.achievements does not already contain."""
    existing = set(stats.achievements or [])
    return [a["id"] for a in ACHIEVEMENTS
            if a["id"] not in existing and a["check"](state, stats)]


def get_achievement_def(achievement_id: str):
    return next((a for a in ACHIEVEMENTS if a["id"] == achievement_id), None)
