"""
Recall Run Engine v1.0: Cumulative Stats
Cross-session counters, bests, achievements and a short run history.
Stored in its own JSON file, separate from the save.
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional

from config import MAX_RUN_HISTORY
from models import GamePhase, TERMINAL_PHASES, ACTIVE_PHASES
from achievements import check_achievements

logger = logging.getLogger("recall.stats")


@dataclass(frozen=True)
class RunResult:
    """One finished game, as shown in the run history."""
    date: str
    device_id: str
    device_name: str
    months: int
    outcome: str                          # Victory, Defeat
    budget: Optional[float] = None
    doom: Optional[float] = None
    compliance: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "deviceId": self.device_id,
            "deviceName": self.device_name,
            "months": self.months,
            "outcome": self.outcome,
            "budget": self.budget,
            "doom": self.doom,
            "compliance": self.compliance,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "RunResult":
        return cls(
            date=d.get("date", ""),
            device_id=d.get("deviceId", ""),
            device_name=d.get("deviceName", ""),
            months=d.get("months", 0),
            outcome=d.get("outcome", "Defeat"),
            budget=d.get("budget"),
            doom=d.get("doom"),
            compliance=d.get("compliance"),
        )


@dataclass
class GameStats:
    games_played: int = 0
    games_won: int = 0
    best_survival_months: int = 0
    total_months_survived: int = 0
    favorite_device: Optional[str] = None
    last_played: str = ""
    achievements: list = field(default_factory=list)
    run_history: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "gamesPlayed": self.games_played,
            "gamesWon": self.games_won,
            "bestSurvivalMonths": self.best_survival_months,
            "totalMonthsSurvived": self.total_months_survived,
            "favoriteDevice": self.favorite_device,
            "lastPlayed": self.last_played,
            "achievements": list(self.achievements),
            "runHistory": [r.to_dict() for r in self.run_history],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "GameStats":
        defaults = cls()
        return cls(
            games_played=d.get("gamesPlayed", defaults.games_played),
            games_won=d.get("gamesWon", defaults.games_won),
            best_survival_months=d.get("bestSurvivalMonths", defaults.best_survival_months),
            total_months_survived=d.get("totalMonthsSurvived", defaults.total_months_survived),
            favorite_device=d.get("favoriteDevice"),
            last_played=d.get("lastPlayed", ""),
            achievements=list(dict.fromkeys(d.get("achievements") or [])),
            run_history=[RunResult.from_dict(r) for r in d.get("runHistory") or []
                         if isinstance(r, dict)][:MAX_RUN_HISTORY],
        )


def record_game_result(stats: GameStats, snapshot, now: str = None):
    """
    Fold one finished game into the stats. Pure: returns
    (new_stats, newly_earned_achievement_ids); `stats` is not modified.
    Non-terminal snapshots leave the stats as they are.
    """
    if snapshot.phase not in TERMINAL_PHASES:
        logger.warning(f"record_game_result: phase {snapshot.phase.value} is not a finished game")
        return stats, []

    now = now or datetime.now(timezone.utc).isoformat()
    won = snapshot.phase == GamePhase.VICTORY
    months = int(snapshot.timeline_month)
    device = snapshot.selected_device
    device_id = device.id if device else ""
    device_name = (device.name or device.id) if device else ""

    run = RunResult(
        date=now,
        device_id=device_id,
        device_name=device_name,
        months=months,
        outcome="Victory" if won else "Defeat",
        budget=snapshot.budget,
        doom=snapshot.doom_level,
        compliance=snapshot.compliance_level,
    )

    updated = replace(
        stats,
        games_played=stats.games_played + 1,
        games_won=stats.games_won + (1 if won else 0),
        best_survival_months=max(stats.best_survival_months, months),
        total_months_survived=stats.total_months_survived + months,
        last_played=now,
        favorite_device=stats.favorite_device or device_name or None,
        achievements=list(dict.fromkeys(stats.achievements)),
        run_history=([run] + list(stats.run_history))[:MAX_RUN_HISTORY],
    )

    earned = check_achievements(snapshot, updated)
    updated.achievements = list(dict.fromkeys(updated.achievements + earned))
    return updated, earned


# ─────────────────────────────────────────────────────
# STORAGE
# ─────────────────────────────────────────────────────

class StatsStore:
    """JSON file holding one GameStats. A corrupted file reads as fresh stats."""

    def __init__(self, path: str):
        self.path = path

    def load(self) -> GameStats:
        if not os.path.exists(self.path):
            return GameStats()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load stats from {self.path}: {e}")
            return GameStats()
        if not isinstance(data, dict):
            logger.warning(f"Stats file {self.path} is not an object, using defaults")
            return GameStats()
        return GameStats.from_dict(data)

    def save(self, stats: GameStats) -> bool:
        directory = os.path.dirname(self.path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            tmp = self.path + ".tmp"
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(stats.to_dict(), f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
            return True
        except OSError as e:
            logger.warning(f"Failed to save stats to {self.path}: {e}")
            return False

    def record(self, snapshot, now: str = None):
        """Load, fold in one finished game, save. Returns (stats, newly_earned)."""
        stats, earned = record_game_result(self.load(), snapshot, now)
        self.save(stats)
        if earned:
            logger.info(f"Achievements unlocked: {', '.join(earned)}")
        return stats, earned


class SessionRecorder:
    """
    Subscriber that records each finished game exactly once.
    Only a run that ends while being played counts; a finished state
    arriving through restore (save file or share link) is not recorded.
    """

    def __init__(self, engine, store: StatsStore):
        self.store = store
        self.last_earned: list = []
        self._last_phase = engine.get_state().phase
        self._unsubscribe = engine.subscribe(self._on_state)

    def _on_state(self, snapshot):
        previous, self._last_phase = self._last_phase, snapshot.phase
        if snapshot.phase in TERMINAL_PHASES and previous in ACTIVE_PHASES:
            _, self.last_earned = self.store.record(snapshot)

    def close(self):
        self._unsubscribe()
