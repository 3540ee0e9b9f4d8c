"""
Recall Run Engine v1.0: Validation Schemas
pydantic models describing the catalog, persisted saves and share tokens.
Wire format keys are camelCase; attributes are snake_case.
"""

import math
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

Archetype = Literal["corporate", "consumer", "medical", "appliance", "industrial"]
Difficulty = Literal["easy", "medium", "hard", "extreme"]
RiskLevel = Literal["low", "medium", "high"]
EventCategory = Literal[
    "regulatory", "cyberattack", "supply_chain", "operational",
    "privacy", "ipr", "reputational",
]
Phase = Literal[
    "splash", "setup", "simulation", "crisis", "autopsy", "victory", "shared_result",
]
Funding = Literal["full", "partial", "none"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True,
                              extra="ignore")


# ─────────────────────────────────────────────────────
# CATALOG (strict)
# ─────────────────────────────────────────────────────

class DeviceModel(_CamelModel):
    id: str = Field(min_length=1)
    name: str
    description: str = ""
    archetype: Archetype
    difficulty: Difficulty
    initial_tags: list[str] = []
    initial_budget: float
    monthly_maintenance_cost: float = Field(ge=0)
    eol_month: int = Field(ge=0)


class ChoiceModel(_CamelModel):
    id: str = Field(min_length=1)
    text: str
    cost: float
    doom_impact: float
    add_tags: list[str] = []
    remove_tags: list[str] = []
    risk_level: RiskLevel


class EventModel(_CamelModel):
    id: str = Field(min_length=1)
    title: str
    description: str
    category: Optional[EventCategory] = None
    trigger_condition: Optional[str] = None
    required_tags: list[str] = []
    blocked_by_tags: list[str] = []
    archetypes: list[Archetype] = []
    choices: list[ChoiceModel] = Field(min_length=1)
    visual_effect: Optional[str] = None
    target_module: Optional[str] = None
    base_prob: Optional[float] = Field(default=None, ge=0, le=1)
    repeatable: bool = False


# ─────────────────────────────────────────────────────
# PERSISTED STATE (lenient on detail, strict on shape)
# ─────────────────────────────────────────────────────

class SavedDeviceModel(_CamelModel):
    id: str = Field(min_length=1)
    name: Optional[str] = None
    description: Optional[str] = None
    archetype: Optional[Archetype] = None
    difficulty: Optional[Difficulty] = None
    initial_tags: list[str] = []
    initial_budget: Optional[float] = None
    monthly_maintenance_cost: Optional[float] = None
    eol_month: Optional[int] = None


class SavedChoiceModel(_CamelModel):
    id: str = Field(min_length=1)
    text: Optional[str] = None
    cost: float = 0
    doom_impact: float = 0
    add_tags: list[str] = []
    remove_tags: list[str] = []
    risk_level: Optional[RiskLevel] = None


class SavedEventModel(_CamelModel):
    id: str = Field(min_length=1)
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    choices: list[SavedChoiceModel] = []


class HistoryEntryModel(_CamelModel):
    month: float = 0
    event_id: str = ""
    choice_id: str = ""
    doom_increase: float = 0
    cost: float = 0


class ShieldDeflectionModel(_CamelModel):
    month: float = 0
    event_id: str = ""
    blocked_by_tag: str = ""


class SavedStateModel(_CamelModel):
    """Shared validation contract for local saves and debug share links."""
    phase: Phase
    budget: float = Field(allow_inf_nan=False)
    doom_level: float = Field(default=0, ge=0, le=100)
    compliance_level: float = Field(default=100, ge=0, le=100)
    timeline_month: float = Field(default=0, ge=0)
    active_tags: list[str] = []
    funding_level: Funding = "full"
    is_paused: bool = False
    selected_device: Optional[SavedDeviceModel] = None
    available_devices: list[SavedDeviceModel] = []
    current_crisis: Optional[SavedEventModel] = None
    history: list[HistoryEntryModel] = []
    shield_deflections: list[ShieldDeflectionModel] = []
    last_event_month: float = -1

    @model_validator(mode="after")
    def _active_run_needs_device(self):
        if self.phase in ("simulation", "crisis") and self.selected_device is None:
            raise ValueError(f"phase '{self.phase}' requires a selected device")
        return self


class SaveRecordModel(BaseModel):
    """Versioned envelope. `state` is validated after migration."""
    model_config = ConfigDict(extra="ignore")

    version: int
    savedAt: str = ""
    state: dict


class GameResultModel(BaseModel):
    """Minimal fixed-shape result for social share links."""
    model_config = ConfigDict(extra="ignore")

    v: Literal[1] = 1
    o: Literal["v", "r"]          # victory or recall
    d: str = Field(min_length=1)  # device id
    m: int = Field(ge=0)          # final month
    b: int                        # final budget
    dm: int = Field(ge=0, le=100) # final doom
    c: int = Field(ge=0, le=100)  # final compliance
    l: str = "en"                 # language


def format_errors(exc: ValidationError) -> str:
    """One-line summary of a validation failure for logs and ParseResults."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


def is_finite_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
