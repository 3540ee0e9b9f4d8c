"""
Recall Run Engine v1.0: Share Links
URL-safe compressed tokens for two query parameters:
  save=<token>    full state subset (debug link, restorable)
  result=<token>  minimal fixed-shape result (social link)

Token = urlsafe base64 of zlib-compressed compact JSON, padding stripped.
Anything that fails to decode or validate reads as "no shared data".
"""

import base64
import binascii
import json
import logging
import math
import zlib
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from pydantic import ValidationError

from config import FALLBACK_ORIGIN
from models import GamePhase
from schemas import SavedStateModel, GameResultModel, format_errors
from engine import repair_orphaned_state
from persistence import state_subset

logger = logging.getLogger("recall.share")

SAVE_PARAM = "save"
RESULT_PARAM = "result"
MAX_TOKEN_LENGTH = 16_384


# ─────────────────────────────────────────────────────
# TOKEN CODEC
# ─────────────────────────────────────────────────────

def encode_token(obj) -> str:
    text = json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    packed = zlib.compress(text.encode("utf-8"), 9)
    return base64.urlsafe_b64encode(packed).decode("ascii").rstrip("=")


def decode_token(token):
    """Inverse of encode_token. None for anything that is not a valid token."""
    if not isinstance(token, str) or not token or len(token) > MAX_TOKEN_LENGTH:
        return None
    try:
        padded = token + "=" * (-len(token) % 4)
        packed = base64.urlsafe_b64decode(padded.encode("ascii"))
        text = zlib.decompress(packed).decode("utf-8")
        return json.loads(text)
    except (binascii.Error, zlib.error, UnicodeError, ValueError) as e:
        logger.info(f"Rejected share token: {e}")
        return None


# ─────────────────────────────────────────────────────
# DEBUG STATE LINK
# ─────────────────────────────────────────────────────

def encode_state_token(snapshot) -> str:
    return encode_token(state_subset(snapshot))


def decode_state_token(token):
    """Repaired, validated partial state ready for GameEngine.restore_state, or None."""
    data = decode_token(token)
    if not isinstance(data, dict):
        return None
    state = repair_orphaned_state(data)
    try:
        SavedStateModel.model_validate(state)
    except ValidationError as e:
        logger.info(f"Rejected shared state: {format_errors(e)}")
        return None
    return state


# ─────────────────────────────────────────────────────
# RESULT LINK
# ─────────────────────────────────────────────────────

def create_game_result(snapshot, outcome: str = None, language: str = "en"):
    """
    Minimal result record {v, o, d, m, b, dm, c, l} for a run.
    outcome defaults to 'v' for victory and 'r' (recalled) otherwise.
    None when the snapshot has no device.
    """
    device = snapshot.selected_device
    if device is None:
        return None
    if outcome is None:
        outcome = "v" if snapshot.phase == GamePhase.VICTORY else "r"
    return {
        "v": 1,
        "o": outcome,
        "d": device.id,
        "m": int(math.floor(snapshot.timeline_month)),
        "b": int(round(snapshot.budget)),
        "dm": int(round(snapshot.doom_level)),
        "c": int(round(snapshot.compliance_level)),
        "l": language or "en",
    }


def encode_result_token(result: dict) -> str:
    """Validate then encode. Raises ValueError for a malformed result."""
    try:
        model = GameResultModel.model_validate(result)
    except ValidationError as e:
        raise ValueError(format_errors(e)) from e
    return encode_token(model.model_dump())


def decode_result_token(token):
    data = decode_token(token)
    if not isinstance(data, dict):
        return None
    try:
        return GameResultModel.model_validate(data).model_dump()
    except ValidationError as e:
        logger.info(f"Rejected shared result: {format_errors(e)}")
        return None


def result_to_partial_state(result: dict, catalog=None) -> dict:
    """A shared_result state the engine can restore for display."""
    device = catalog.get_device(result["d"]) if catalog else None
    return {
        "phase": GamePhase.SHARED_RESULT.value,
        "budget": result["b"],
        "doomLevel": result["dm"],
        "complianceLevel": result["c"],
        "timelineMonth": result["m"],
        "selectedDevice": device.to_dict() if device else {"id": result["d"]},
        "isPaused": False,
    }


# ─────────────────────────────────────────────────────
# URLS
# ─────────────────────────────────────────────────────

def build_share_url(base_url: str = None, state_token: str = None,
                    result_token: str = None) -> str:
    """base_url with save= and/or result= set, other query params kept."""
    parts = urlsplit(base_url or FALLBACK_ORIGIN)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
             if k not in (SAVE_PARAM, RESULT_PARAM)]
    if state_token:
        query.append((SAVE_PARAM, state_token))
    if result_token:
        query.append((RESULT_PARAM, result_token))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def extract_share_link(url: str) -> dict:
    """{'state': partial|None, 'result': result|None} decoded from a URL."""
    query = dict(parse_qsl(urlsplit(url or "").query))
    state = decode_state_token(query[SAVE_PARAM]) if SAVE_PARAM in query else None
    result = decode_result_token(query[RESULT_PARAM]) if RESULT_PARAM in query else None
    return {"state": state, "result": result}


def strip_share_params(url: str) -> str:
    """The visible URL once the shared data has been consumed."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
             if k not in (SAVE_PARAM, RESULT_PARAM)]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))
