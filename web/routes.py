"""
Recall Run Engine v1.0: FastAPI Routes
Player-facing endpoints over one long-lived GameEngine, plus save/share/stats.
"""

import json
import logging
import os
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.staticfiles import StaticFiles
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

from config import DATA_DIR, STATS_FILENAME
from catalog import load_default_catalog
from game_loop import GameEngine
from models import GamePhase, TERMINAL_PHASES
from persistence import SaveStore, SAVEABLE_PHASES
from stats import StatsStore, SessionRecorder
from share import (
    encode_state_token, create_game_result, encode_result_token,
    build_share_url, extract_share_link, strip_share_params,
    result_to_partial_state,
)
from blame import generate_blame
from web.websocket import ConnectionManager

logger = logging.getLogger("recall.web")


# ─────────────────────────────────────────────────────
# APP SETUP
# ─────────────────────────────────────────────────────

app = FastAPI(title="Recall Run", version="1.0")
manager = ConnectionManager()
game: GameEngine = None
saves: SaveStore = None
stats_store: StatsStore = None
recorder: SessionRecorder = None


def init_game(data_dir: str = None, seed: int = None) -> GameEngine:
    """Compose the engine and its stores. Called from recall_run.py and tests."""
    global game, saves, stats_store, recorder
    data_dir = data_dir or DATA_DIR

    game = GameEngine(load_default_catalog(), seed=seed)
    saves = SaveStore(data_dir)
    stats_store = StatsStore(os.path.join(data_dir, STATS_FILENAME))
    recorder = SessionRecorder(game, stats_store)

    # Push every published snapshot to browsers
    def on_state(snapshot):
        manager.broadcast_sync("state_update", _state_payload(snapshot))

    # Keep the save slot in step with the run; a restored ending leaves it alone
    last = {"phase": game.get_state().phase}

    def on_autosave(snapshot):
        previous, last["phase"] = last["phase"], snapshot.phase
        if snapshot.phase in SAVEABLE_PHASES:
            saves.save(snapshot)
        elif snapshot.phase in TERMINAL_PHASES and previous in SAVEABLE_PHASES:
            saves.delete()

    game.subscribe(on_state)
    game.subscribe(on_autosave)
    logger.info(f"Game initialized (seed={game.seed}, data={data_dir})")
    return game


def _state_payload(snapshot=None) -> dict:
    snapshot = snapshot or game.get_state()
    return {
        "state": snapshot.to_dict(),
        "seed": game.seed,
        "canShip": game.can_ship(),
        "hasSave": saves.has_save(),
    }


def _command(fn, *args) -> JSONResponse:
    """Run one engine command. success is whether it published a new snapshot."""
    before = game.get_state()
    fn(*args)
    after = game.get_state()
    result = {"success": after is not before, **_state_payload(after)}
    if after is before:
        result["error"] = "Command ignored in the current state"
    return JSONResponse(result)


# ─────────────────────────────────────────────────────
# STATIC FILES
# ─────────────────────────────────────────────────────

static_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "static")
if os.path.isdir(static_dir):
    app.mount("/static", StaticFiles(directory=static_dir), name="static")


@app.get("/")
async def index():
    index_path = os.path.join(static_dir, "index.html")
    if os.path.exists(index_path):
        with open(index_path, "r", encoding="utf-8") as f:
            return HTMLResponse(content=f.read(),
                                headers={"Cache-Control": "no-cache, no-store, must-revalidate"})
    return JSONResponse({"name": "Recall Run", "state": "/api/state", "ws": "/ws"})


# ─────────────────────────────────────────────────────
# WEBSOCKET
# ─────────────────────────────────────────────────────

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await manager.connect(ws)
    try:
        # Send initial state on connect
        await ws.send_text(json.dumps({"event": "state_update", "data": _state_payload()}))

        # Keep connection alive; clients only send keepalives
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(ws)


# ─────────────────────────────────────────────────────
# QUERIES
# ─────────────────────────────────────────────────────

@app.get("/api/state")
async def get_state():
    """Latest snapshot for UI rendering."""
    return JSONResponse(_state_payload())


@app.get("/api/config")
async def get_config():
    return JSONResponse(game.get_config())


@app.get("/api/devices")
async def get_devices():
    return JSONResponse({"devices": [d.to_dict() for d in game.catalog.get_devices()]})


@app.get("/api/events/eligible")
async def get_eligible_events():
    return JSONResponse({"events": [e.to_dict() for e in game.get_eligible_events()]})


@app.get("/api/log")
async def get_action_log():
    return JSONResponse({"log": game.get_action_log(), "rolls": game.get_roll_log()})


# ─────────────────────────────────────────────────────
# COMMANDS
# ─────────────────────────────────────────────────────

class SetupRequest(BaseModel):
    preferred_device_id: Optional[str] = None


@app.post("/api/initialize")
async def initialize(req: SetupRequest):
    """New game: fresh bookkeeping and a device list. Safe to repeat in setup."""
    game.initialize(req.preferred_device_id)
    return JSONResponse({"success": game.get_state().phase == GamePhase.SETUP,
                         **_state_payload()})


@app.post("/api/setup")
async def enter_setup(req: SetupRequest):
    return _command(game.enter_setup, req.preferred_device_id)


class DeviceRequest(BaseModel):
    device_id: str


@app.post("/api/device")
async def select_device(req: DeviceRequest):
    return _command(game.select_device, req.device_id)


@app.post("/api/start")
async def start_simulation():
    return _command(game.start_simulation)


class AdvanceRequest(BaseModel):
    months: float = 1


@app.post("/api/advance")
async def advance_time(req: AdvanceRequest):
    """UI tick or manual skip. May stop early in a crisis or an ending."""
    return _command(game.advance_time, req.months)


class TriggerRequest(BaseModel):
    event_id: str


@app.post("/api/crisis/trigger")
async def trigger_crisis(req: TriggerRequest):
    return _command(game.trigger_crisis, req.event_id)


class ResolveRequest(BaseModel):
    choice_id: str


@app.post("/api/crisis/resolve")
async def resolve_crisis(req: ResolveRequest):
    return _command(game.resolve_crisis, req.choice_id)


class FundingRequest(BaseModel):
    level: str


@app.post("/api/funding")
async def set_funding(req: FundingRequest):
    return _command(game.set_funding_level, req.level)


@app.post("/api/ship")
async def ship_product():
    return _command(game.ship_product)


@app.post("/api/reset")
async def reset():
    return _command(game.reset)


# ─────────────────────────────────────────────────────
# SAVE / LOAD
# ─────────────────────────────────────────────────────

@app.post("/api/save")
async def save_game():
    """Save the run in progress."""
    if not saves.save(game.get_state()):
        return JSONResponse({"success": False, "error": "Only a run in progress can be saved"})
    return JSONResponse({"success": True, "info": saves.info()})


@app.get("/api/save")
async def save_info():
    return JSONResponse({"hasSave": saves.has_save(), "info": saves.info()})


@app.post("/api/load")
async def load_game():
    """Restore the local save. A corrupted save is discarded."""
    result = saves.load()
    if not result.ok:
        return JSONResponse({"success": False, "error": result.error})
    if not game.restore_state(result.state):
        saves.delete()
        return JSONResponse({"success": False, "error": "Save rejected by the engine"})
    return JSONResponse({"success": True, **_state_payload()})


@app.delete("/api/save")
async def delete_save():
    return JSONResponse({"success": saves.delete()})


# ─────────────────────────────────────────────────────
# SHARING
# ─────────────────────────────────────────────────────

@app.get("/api/share")
async def share_state(base_url: Optional[str] = None):
    """Debug link carrying the full state subset."""
    token = encode_state_token(game.get_state())
    return JSONResponse({"success": True, "token": token,
                         "url": build_share_url(base_url, state_token=token)})


@app.get("/api/share/result")
async def share_result(base_url: Optional[str] = None, language: str = "en"):
    """Social link for a finished run."""
    snapshot = game.get_state()
    if snapshot.phase not in TERMINAL_PHASES:
        return JSONResponse({"success": False, "error": "No finished run to share"})
    result = create_game_result(snapshot, language=language)
    if result is None:
        return JSONResponse({"success": False, "error": "No device in this run"})
    token = encode_result_token(result)
    return JSONResponse({"success": True, "result": result, "token": token,
                         "url": build_share_url(base_url, result_token=token)})


class OpenLinkRequest(BaseModel):
    url: str


@app.post("/api/share/open")
async def open_share_link(req: OpenLinkRequest):
    """Restore from a save= or result= link. Invalid links mean nothing to load."""
    link = extract_share_link(req.url)
    clean_url = strip_share_params(req.url)
    if link["state"] is not None:
        ok = game.restore_state(link["state"])
    elif link["result"] is not None:
        ok = game.restore_state(result_to_partial_state(link["result"], game.catalog))
    else:
        return JSONResponse({"success": False, "error": "No shared data in link",
                             "cleanUrl": clean_url})
    return JSONResponse({"success": ok, "cleanUrl": clean_url, **_state_payload()})


# ─────────────────────────────────────────────────────
# STATS / AUTOPSY
# ─────────────────────────────────────────────────────

@app.get("/api/stats")
async def get_stats():
    return JSONResponse({"stats": stats_store.load().to_dict(),
                         "newAchievements": recorder.last_earned})


@app.get("/api/blame")
async def get_blame(seed: Optional[int] = None):
    """Which department to blame for this run."""
    snapshot = game.get_state()
    blame = generate_blame(snapshot.history, game.catalog.get_events(),
                           seed if seed is not None else game.seed)
    return JSONResponse({"success": True, **blame})
