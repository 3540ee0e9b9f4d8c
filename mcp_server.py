"""
Recall Run Engine v1.0: MCP Server (Thin Bridge)
An MCP client connects to this via stdio. It bridges to the game server HTTP API.

The engine owns the game; the client only sends the same commands a player
would and reads back the state.

Tools:
  State inspection (read-only):
    get_game_state        Compact state summary
    get_eligible_events   Crises that could fire right now
    get_stats             Cumulative stats and achievements
  Commands:
    new_game              Initialize and draw devices
    select_device         Pick a device in setup
    start_simulation      Leave setup
    advance_time          Move the timeline
    resolve_crisis        Answer the open crisis
    set_funding_level     full / partial / none
    ship_product          OTA monetization
    reset_game            Back to splash
  Sharing:
    get_share_link        save= or result= URL
"""

import sys
import os
import json
import urllib.request
import urllib.error

ENGINE_DIR = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, ENGINE_DIR)

from mcp.server.fastmcp import FastMCP

from config import PORT

server = FastMCP("recall-run-engine")

GAME_SERVER = os.getenv("RECALL_SERVER", f"http://localhost:{PORT}")


def _get(path: str) -> str:
    """HTTP GET to the game server. Returns response text."""
    try:
        req = urllib.request.Request(f"{GAME_SERVER}{path}")
        with urllib.request.urlopen(req, timeout=10) as resp:
            return resp.read().decode("utf-8")
    except (urllib.error.URLError, OSError) as e:
        return json.dumps({"error": f"Game server unavailable: {e}"})


def _post(path: str, data: dict = None) -> str:
    """HTTP POST to the game server. Returns response text."""
    try:
        body = json.dumps(data or {}).encode("utf-8")
        req = urllib.request.Request(f"{GAME_SERVER}{path}", data=body, method="POST")
        req.add_header("Content-Type", "application/json")
        with urllib.request.urlopen(req, timeout=30) as resp:
            return resp.read().decode("utf-8")
    except (urllib.error.URLError, OSError) as e:
        return json.dumps({"error": f"Game server unavailable: {e}"})


def format_state(data: dict) -> str:
    """Compact text rendering of a state payload."""
    if "error" in data and "state" not in data:
        return f"Error: {data['error']}"

    s = data.get("state", {})
    device = s.get("selectedDevice") or {}
    lines = [
        f"PHASE: {s.get('phase', '?')}",
        f"DEVICE: {device.get('name') or device.get('id') or '-'}",
        f"MONTH: {s.get('timelineMonth', 0)}",
        f"BUDGET: {s.get('budget', 0):,.0f}",
        f"DOOM: {s.get('doomLevel', 0):.1f}",
        f"COMPLIANCE: {s.get('complianceLevel', 0):.1f}",
        f"FUNDING: {s.get('fundingLevel', '?')}",
        f"TAGS: {', '.join(s.get('activeTags', [])) or '-'}",
    ]
    if data.get("canShip"):
        lines.append("SHIP: available")

    if s.get("phase") == "setup":
        lines.append("")
        lines.append("AVAILABLE DEVICES:")
        for d in s.get("availableDevices", []):
            lines.append(f"  [{d['id']}] {d.get('name', '')} ({d.get('difficulty', '?')})")

    crisis = s.get("currentCrisis")
    if crisis:
        lines.append("")
        lines.append(f"CRISIS: {crisis.get('title', crisis['id'])}")
        lines.append(f"  {crisis.get('description', '')}")
        for c in crisis.get("choices", []):
            lines.append(f"  [{c['id']}] {c.get('text', '')} "
                         f"(cost {c.get('cost', 0):,.0f}, doom {c.get('doomImpact', 0):+g})")

    death = s.get("deathAnalysis")
    if death:
        lines.append("")
        lines.append(f"AUTOPSY: {death.get('cause')} "
                     f"(primary tag: {death.get('primaryTag') or '-'})")

    if data.get("error"):
        lines.append("")
        lines.append(f"NOTE: {data['error']}")
    return "\n".join(lines)


# ─────────────────────────────────────────────────────
# STATE INSPECTION (read-only)
# ─────────────────────────────────────────────────────

@server.tool()
def get_game_state() -> str:
    """Get a summary of the current game: phase, device, meters, open crisis."""
    return format_state(json.loads(_get("/api/state")))


@server.tool()
def get_eligible_events() -> str:
    """List the crises whose eligibility rules match the current run."""
    data = json.loads(_get("/api/events/eligible"))
    if "error" in data:
        return f"Error: {data['error']}"
    events = data.get("events", [])
    if not events:
        return "No eligible events right now."
    return "\n".join(f"[{e['id']}] {e.get('title', '')}" for e in events)


@server.tool()
def get_stats() -> str:
    """Cumulative stats across games, with earned achievements."""
    data = json.loads(_get("/api/stats"))
    if "error" in data:
        return f"Error: {data['error']}"
    stats = data.get("stats", {})
    return "\n".join([
        f"GAMES: {stats.get('gamesPlayed', 0)} played, {stats.get('gamesWon', 0)} won",
        f"BEST SURVIVAL: {stats.get('bestSurvivalMonths', 0)} months",
        f"ACHIEVEMENTS: {', '.join(stats.get('achievements', [])) or '-'}",
    ])


# ─────────────────────────────────────────────────────
# COMMANDS
# ─────────────────────────────────────────────────────

@server.tool()
def new_game(preferred_device_id: str = "") -> str:
    """Start a new game: draws the device list and enters setup."""
    payload = {"preferred_device_id": preferred_device_id or None}
    return format_state(json.loads(_post("/api/initialize", payload)))


@server.tool()
def select_device(device_id: str) -> str:
    """Pick one of the available devices during setup."""
    return format_state(json.loads(_post("/api/device", {"device_id": device_id})))


@server.tool()
def start_simulation() -> str:
    """Leave setup and start the clock. Requires a selected device."""
    return format_state(json.loads(_post("/api/start")))


@server.tool()
def advance_time(months: float = 1) -> str:
    """Advance the timeline. Stops early if a crisis opens or the game ends."""
    return format_state(json.loads(_post("/api/advance", {"months": months})))


@server.tool()
def resolve_crisis(choice_id: str) -> str:
    """Answer the open crisis with one of its choice ids."""
    return format_state(json.loads(_post("/api/crisis/resolve", {"choice_id": choice_id})))


@server.tool()
def set_funding_level(level: str) -> str:
    """Set compliance funding: full, partial or none."""
    return format_state(json.loads(_post("/api/funding", {"level": level})))


@server.tool()
def ship_product() -> str:
    """Ship an OTA monetization update: cash and doom now, one month passes."""
    return format_state(json.loads(_post("/api/ship")))


@server.tool()
def reset_game() -> str:
    """Abandon the current run and return to the splash screen."""
    return format_state(json.loads(_post("/api/reset")))


# ─────────────────────────────────────────────────────
# SHARING
# ─────────────────────────────────────────────────────

@server.tool()
def get_share_link(kind: str = "result") -> str:
    """Share URL for the run: 'result' for a finished game, 'save' for the full state."""
    path = "/api/share/result" if kind == "result" else "/api/share"
    data = json.loads(_get(path))
    if not data.get("success"):
        return f"Error: {data.get('error', 'Unknown error')}"
    return data["url"]


if __name__ == "__main__":
    server.run(transport="stdio")
