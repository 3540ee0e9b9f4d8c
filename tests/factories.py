"""Small catalogs and engines for tests."""

import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from catalog import Catalog
from game_loop import GameEngine
from models import GameState, GamePhase, FundingLevel, Device, HistoryEntry


def device_data(device_id="omni-juice", **overrides):
    data = {
        "id": device_id,
        "name": device_id.replace("-", " ").title(),
        "description": "test device",
        "archetype": "consumer",
        "difficulty": "easy",
        "initialTags": [],
        "initialBudget": 100_000,
        "monthlyMaintenanceCost": 2000,
        "eolMonth": 48,
    }
    data.update(overrides)
    return data


def event_data(event_id="outage", **overrides):
    data = {
        "id": event_id,
        "title": "Cloud Outage",
        "description": "Everything is down.",
        "category": "operational",
        "choices": [
            {"id": "safe", "text": "Pay for it", "cost": 1000, "doomImpact": 0,
             "riskLevel": "low"},
            {"id": "risky", "text": "Wing it", "cost": 0, "doomImpact": 30,
             "addTags": ["tech_debt"], "riskLevel": "high"},
            {"id": "fatal", "text": "Blame the intern", "cost": 0, "doomImpact": 100,
             "riskLevel": "high"},
        ],
    }
    data.update(overrides)
    return data


DEFAULT_DEVICES = [
    device_data("omni-juice"),
    device_data("smart-fridge", archetype="appliance", initialTags=["cheap_wifi"]),
    device_data("plc-gateway", archetype="industrial", initialBudget=150_000),
    device_data("zero-cost", monthlyMaintenanceCost=0),
]


def make_catalog(devices=None, events=None) -> Catalog:
    return Catalog.from_raw(DEFAULT_DEVICES if devices is None else devices,
                            [event_data()] if events is None else events)


def quiet_catalog() -> Catalog:
    """Devices but no events: rolls can fire, crises never open."""
    return make_catalog(events=[])


def started_engine(catalog=None, seed=1, device_id="omni-juice") -> GameEngine:
    engine = GameEngine(catalog or make_catalog(), seed=seed)
    engine.initialize(device_id)
    engine.select_device(device_id)
    engine.start_simulation()
    return engine


def running_state(**fields) -> dict:
    """A minimal valid simulation record in wire format."""
    data = {
        "phase": "simulation",
        "budget": 100_000,
        "doomLevel": 0,
        "complianceLevel": 100,
        "timelineMonth": 0,
        "activeTags": [],
        "fundingLevel": "full",
        "isPaused": False,
        "selectedDevice": {"id": "omni-juice"},
        "history": [],
        "shieldDeflections": [],
    }
    data.update(fields)
    return data


def make_snapshot(phase=GamePhase.VICTORY, budget=50_000, doom=20.0, month=60,
                  compliance=80.0, history=(), device_id="omni-juice", tags=()):
    state = GameState(
        phase=phase,
        budget=budget,
        doom_level=doom,
        timeline_month=month,
        compliance_level=compliance,
        funding_level=FundingLevel.FULL,
        selected_device=Device(id=device_id, name=device_id.title()),
        active_tags=list(tags),
        history=list(history),
    )
    return state.snapshot()


def history(n, doom=5, cost=1000, event_id="outage"):
    return [HistoryEntry(month=i, event_id=event_id, choice_id="safe",
                         doom_increase=doom, cost=cost) for i in range(n)]
