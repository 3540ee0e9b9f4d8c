"""
Recall Run Engine v1.0: Data Models
Core data structures for the game state.

Catalog entries (Device, Choice, GameEvent) and published snapshots are
frozen dataclasses; the engine mutates only its private GameState and hands
out a fresh GameStateSnapshot after every transition.
All state is JSON-serializable (camelCase keys) for save/load/share.
"""

import json
from dataclasses import dataclass, field
from typing import Optional
from enum import Enum

from config import (
    INITIAL_BUDGET, INITIAL_DOOM, INITIAL_MONTH, INITIAL_COMPLIANCE,
    NO_LAST_EVENT, DEFAULT_MAINTENANCE_COST, DEFAULT_EOL_MONTH,
)


# ─────────────────────────────────────────────────────
# ENUMS
# ─────────────────────────────────────────────────────

class GamePhase(str, Enum):
    SPLASH = "splash"                # initial screen
    SETUP = "setup"                  # device selection
    SIMULATION = "simulation"        # main loop
    CRISIS = "crisis"                # event decision
    AUTOPSY = "autopsy"              # game over, failed
    VICTORY = "victory"              # game over, survived
    SHARED_RESULT = "shared_result"  # viewing someone's result


class FundingLevel(str, Enum):
    FULL = "full"
    PARTIAL = "partial"
    NONE = "none"


PHASES = tuple(p.value for p in GamePhase)
FUNDING_LEVELS = tuple(f.value for f in FundingLevel)
TERMINAL_PHASES = (GamePhase.AUTOPSY, GamePhase.VICTORY)
ACTIVE_PHASES = (GamePhase.SIMULATION, GamePhase.CRISIS)

PHASE_TRANSITIONS = {
    GamePhase.SPLASH: (GamePhase.SETUP,),
    GamePhase.SETUP: (GamePhase.SIMULATION, GamePhase.SPLASH),
    GamePhase.SIMULATION: (GamePhase.CRISIS, GamePhase.AUTOPSY, GamePhase.VICTORY),
    GamePhase.CRISIS: (GamePhase.SIMULATION, GamePhase.AUTOPSY),
    GamePhase.AUTOPSY: (GamePhase.SPLASH,),
    GamePhase.VICTORY: (GamePhase.SPLASH,),
    GamePhase.SHARED_RESULT: (GamePhase.SETUP, GamePhase.SPLASH),
}


def can_transition(current: GamePhase, target: GamePhase) -> bool:
    return target in PHASE_TRANSITIONS.get(current, ())


def _tuple(value) -> tuple:
    if not value:
        return ()
    return tuple(value)


# ─────────────────────────────────────────────────────
# CATALOG ENTRIES
# ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class Device:
    """A product the player can steer. Copied into the state on selection."""
    id: str
    name: str = ""
    description: str = ""
    archetype: str = "consumer"          # corporate, consumer, medical, appliance, industrial
    difficulty: str = "medium"           # easy, medium, hard, extreme
    initial_tags: tuple = ()
    initial_budget: float = INITIAL_BUDGET
    monthly_maintenance_cost: float = DEFAULT_MAINTENANCE_COST
    eol_month: int = DEFAULT_EOL_MONTH   # month official support ends

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "archetype": self.archetype,
            "difficulty": self.difficulty,
            "initialTags": list(self.initial_tags),
            "initialBudget": self.initial_budget,
            "monthlyMaintenanceCost": self.monthly_maintenance_cost,
            "eolMonth": self.eol_month,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Device":
        return cls(
            id=d["id"],
            name=d.get("name") or "",
            description=d.get("description") or "",
            archetype=d.get("archetype") or "consumer",
            difficulty=d.get("difficulty") or "medium",
            initial_tags=_tuple(d.get("initialTags")),
            initial_budget=d.get("initialBudget", INITIAL_BUDGET),
            monthly_maintenance_cost=d.get("monthlyMaintenanceCost", DEFAULT_MAINTENANCE_COST),
            eol_month=d.get("eolMonth", DEFAULT_EOL_MONTH),
        )


@dataclass(frozen=True)
class Choice:
    """One consequence-bearing option of a crisis."""
    id: str
    text: str = ""
    cost: float = 0
    doom_impact: float = 0
    add_tags: tuple = ()
    remove_tags: tuple = ()
    risk_level: str = "medium"           # low, medium, high

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "cost": self.cost,
            "doomImpact": self.doom_impact,
            "addTags": list(self.add_tags),
            "removeTags": list(self.remove_tags),
            "riskLevel": self.risk_level,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Choice":
        return cls(
            id=d["id"],
            text=d.get("text") or "",
            cost=d.get("cost", 0) or 0,
            doom_impact=d.get("doomImpact", 0) or 0,
            add_tags=_tuple(d.get("addTags")),
            remove_tags=_tuple(d.get("removeTags")),
            risk_level=d.get("riskLevel") or "medium",
        )


@dataclass(frozen=True)
class GameEvent:
    """A crisis definition with its eligibility fields."""
    id: str
    title: str = ""
    description: str = ""
    category: Optional[str] = None       # regulatory, cyberattack, supply_chain, ...
    trigger_condition: Optional[str] = None
    required_tags: tuple = ()
    blocked_by_tags: tuple = ()
    archetypes: tuple = ()               # device categories; empty = any
    choices: tuple = ()
    visual_effect: Optional[str] = None
    target_module: Optional[str] = None
    base_prob: Optional[float] = None
    repeatable: bool = False

    def get_choice(self, choice_id: str) -> Optional[Choice]:
        for choice in self.choices:
            if choice.id == choice_id:
                return choice
        return None

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "choices": [c.to_dict() for c in self.choices],
            "requiredTags": list(self.required_tags),
            "blockedByTags": list(self.blocked_by_tags),
            "archetypes": list(self.archetypes),
            "repeatable": self.repeatable,
        }
        for key, value in (("category", self.category),
                           ("triggerCondition", self.trigger_condition),
                           ("visualEffect", self.visual_effect),
                           ("targetModule", self.target_module),
                           ("baseProb", self.base_prob)):
            if value is not None:
                d[key] = value
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "GameEvent":
        return cls(
            id=d["id"],
            title=d.get("title") or "",
            description=d.get("description") or "",
            category=d.get("category"),
            trigger_condition=d.get("triggerCondition"),
            required_tags=_tuple(d.get("requiredTags")),
            blocked_by_tags=_tuple(d.get("blockedByTags")),
            archetypes=_tuple(d.get("archetypes")),
            choices=tuple(Choice.from_dict(c) for c in d.get("choices") or []),
            visual_effect=d.get("visualEffect"),
            target_module=d.get("targetModule"),
            base_prob=d.get("baseProb"),
            repeatable=bool(d.get("repeatable", False)),
        )


# ─────────────────────────────────────────────────────
# RUN RECORDS
# ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class HistoryEntry:
    """A resolved crisis. Append-only."""
    month: float
    event_id: str
    choice_id: str
    doom_increase: float
    cost: float

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "eventId": self.event_id,
            "choiceId": self.choice_id,
            "doomIncrease": self.doom_increase,
            "cost": self.cost,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "HistoryEntry":
        return cls(
            month=d.get("month", 0),
            event_id=d.get("eventId", ""),
            choice_id=d.get("choiceId", ""),
            doom_increase=d.get("doomIncrease", 0),
            cost=d.get("cost", 0),
        )


@dataclass(frozen=True)
class ShieldDeflection:
    """An event that would have fired but a blocking tag suppressed it."""
    month: float
    event_id: str
    blocked_by_tag: str

    def to_dict(self) -> dict:
        return {"month": self.month, "eventId": self.event_id,
                "blockedByTag": self.blocked_by_tag}

    @classmethod
    def from_dict(cls, d: dict) -> "ShieldDeflection":
        return cls(
            month=d.get("month", 0),
            event_id=d.get("eventId", ""),
            blocked_by_tag=d.get("blockedByTag", ""),
        )


@dataclass(frozen=True)
class DeathAnalysis:
    """Derived explanation of a failed run, built on entry to autopsy."""
    cause: str                           # doom_overflow, bankruptcy, survived
    primary_tag: Optional[str]
    worst_choice: Optional[HistoryEntry]
    total_doom_from_choices: float
    total_spent: float
    final_compliance_level: float

    def to_dict(self) -> dict:
        return {
            "cause": self.cause,
            "primaryTag": self.primary_tag,
            "worstChoice": self.worst_choice.to_dict() if self.worst_choice else None,
            "totalDoomFromChoices": self.total_doom_from_choices,
            "totalSpent": self.total_spent,
            "finalComplianceLevel": self.final_compliance_level,
        }


# ─────────────────────────────────────────────────────
# GAME STATE
# ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class GameStateSnapshot:
    """Immutable capture of the game state handed to subscribers and callers."""
    phase: GamePhase
    budget: float
    doom_level: float
    timeline_month: float
    compliance_level: float
    funding_level: FundingLevel
    selected_device: Optional[Device]
    available_devices: tuple
    active_tags: tuple
    current_crisis: Optional[GameEvent]
    history: tuple
    shield_deflections: tuple
    last_event_month: float
    is_paused: bool
    death_analysis: Optional[DeathAnalysis] = None

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "budget": self.budget,
            "doomLevel": self.doom_level,
            "timelineMonth": self.timeline_month,
            "complianceLevel": self.compliance_level,
            "fundingLevel": self.funding_level.value,
            "selectedDevice": self.selected_device.to_dict() if self.selected_device else None,
            "availableDevices": [d.to_dict() for d in self.available_devices],
            "activeTags": list(self.active_tags),
            "currentCrisis": self.current_crisis.to_dict() if self.current_crisis else None,
            "history": [h.to_dict() for h in self.history],
            "shieldDeflections": [s.to_dict() for s in self.shield_deflections],
            "lastEventMonth": self.last_event_month,
            "isPaused": self.is_paused,
            "deathAnalysis": self.death_analysis.to_dict() if self.death_analysis else None,
        }


@dataclass
class GameState:
    """The engine's private, mutable working state."""
    phase: GamePhase = GamePhase.SPLASH
    budget: float = INITIAL_BUDGET
    doom_level: float = INITIAL_DOOM
    timeline_month: float = INITIAL_MONTH
    compliance_level: float = INITIAL_COMPLIANCE
    funding_level: FundingLevel = FundingLevel.FULL
    selected_device: Optional[Device] = None
    available_devices: list = field(default_factory=list)
    active_tags: list = field(default_factory=list)
    current_crisis: Optional[GameEvent] = None
    history: list = field(default_factory=list)
    shield_deflections: list = field(default_factory=list)
    last_event_month: float = NO_LAST_EVENT
    is_paused: bool = False

    def add_tag(self, tag: str):
        if tag not in self.active_tags:
            self.active_tags.append(tag)

    def remove_tags(self, tags):
        drop = set(tags)
        if drop:
            self.active_tags = [t for t in self.active_tags if t not in drop]

    def snapshot(self, death_analysis: Optional[DeathAnalysis] = None) -> GameStateSnapshot:
        return GameStateSnapshot(
            phase=self.phase,
            budget=self.budget,
            doom_level=self.doom_level,
            timeline_month=self.timeline_month,
            compliance_level=self.compliance_level,
            funding_level=self.funding_level,
            selected_device=self.selected_device,
            available_devices=tuple(self.available_devices),
            active_tags=tuple(self.active_tags),
            current_crisis=self.current_crisis,
            history=tuple(self.history),
            shield_deflections=tuple(self.shield_deflections),
            last_event_month=self.last_event_month,
            is_paused=self.is_paused,
            death_analysis=death_analysis,
        )


# ─────────────────────────────────────────────────────
# SERIALIZATION
# ─────────────────────────────────────────────────────

def snapshot_to_json(snapshot: GameStateSnapshot) -> str:
    """Stable JSON form; identical snapshots give identical text."""
    return json.dumps(snapshot.to_dict(), sort_keys=True, ensure_ascii=False)
