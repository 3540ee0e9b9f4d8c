"""
Recall Run Engine v1.0: Local Save
Versioned save record {version, savedAt, state} with a migration table.

Loading never raises: every failure comes back as a ParseResult with a
reason, and a record that cannot be trusted is discarded rather than
patched with guessed defaults.
"""

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from config import SAVE_FILENAME
from models import GamePhase
from schemas import SaveRecordModel, SavedStateModel, format_errors
from engine import repair_orphaned_state

logger = logging.getLogger("recall.persistence")

SAVE_VERSION = 1

# from_version -> function(record) -> record at from_version + 1
MIGRATIONS: dict = {}

SAVEABLE_PHASES = (GamePhase.SIMULATION, GamePhase.CRISIS)


@dataclass(frozen=True)
class ParseResult:
    """Typed outcome of decoding a persisted record."""
    ok: bool
    state: Optional[dict] = None
    error: str = ""
    version: Optional[int] = None
    saved_at: str = ""

    @classmethod
    def success(cls, state: dict, version: int = SAVE_VERSION, saved_at: str = "") -> "ParseResult":
        return cls(ok=True, state=state, version=version, saved_at=saved_at)

    @classmethod
    def failure(cls, error: str, version: Optional[int] = None) -> "ParseResult":
        return cls(ok=False, error=error, version=version)


# ─────────────────────────────────────────────────────
# ENCODE
# ─────────────────────────────────────────────────────

def state_subset(snapshot) -> dict:
    """The persisted fields of a snapshot, camelCase."""
    d = snapshot.to_dict()
    return {key: d[key] for key in (
        "phase", "budget", "doomLevel", "complianceLevel", "timelineMonth",
        "activeTags", "fundingLevel", "isPaused", "selectedDevice",
        "availableDevices", "currentCrisis", "history", "shieldDeflections",
        "lastEventMonth",
    )}


def build_save_record(snapshot, saved_at: str = None) -> dict:
    return {
        "version": SAVE_VERSION,
        "savedAt": saved_at or datetime.now(timezone.utc).isoformat(),
        "state": state_subset(snapshot),
    }


# ─────────────────────────────────────────────────────
# DECODE
# ─────────────────────────────────────────────────────

def migrate_save(record: dict, migrations: dict = None,
                 current_version: int = SAVE_VERSION) -> ParseResult:
    """
    Walk a record up to current_version one step at a time.
    A future version or a gap in the table is unrecoverable.
    """
    if migrations is None:
        migrations = MIGRATIONS
    version = record.get("version")
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        return ParseResult.failure(f"missing or invalid version {version!r}")
    if version > current_version:
        return ParseResult.failure(f"save version {version} is newer than {current_version}",
                                   version)

    start = version
    while version < current_version:
        step = migrations.get(version)
        if step is None:
            return ParseResult.failure(f"no migration from version {version}", start)
        try:
            record = step(dict(record))
        except (KeyError, TypeError, ValueError) as e:
            return ParseResult.failure(f"migration from version {version} failed: {e}", start)
        version += 1
        record["version"] = version

    if version != start:
        logger.info(f"Migrated save from version {start} to {version}")
    return ParseResult.success(record.get("state"), version, record.get("savedAt", ""))


def parse_save_record(raw, migrations: dict = None,
                      current_version: int = SAVE_VERSION) -> ParseResult:
    """Decode a save (JSON text or dict): envelope, migration, repair, validation."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            return ParseResult.failure(f"not valid JSON: {e}")
    if not isinstance(raw, dict):
        return ParseResult.failure("save record is not an object")

    try:
        envelope = SaveRecordModel.model_validate(raw)
    except ValidationError as e:
        return ParseResult.failure(format_errors(e), raw.get("version"))

    migrated = migrate_save(envelope.model_dump(), migrations, current_version)
    if not migrated.ok:
        return migrated
    if not isinstance(migrated.state, dict):
        return ParseResult.failure("migrated record has no state", migrated.version)

    state = repair_orphaned_state(migrated.state)
    try:
        SavedStateModel.model_validate(state)
    except ValidationError as e:
        return ParseResult.failure(format_errors(e), migrated.version)
    return ParseResult.success(state, migrated.version, migrated.saved_at)


# ─────────────────────────────────────────────────────
# STORE
# ─────────────────────────────────────────────────────

class SaveStore:
    """Single-slot save file in data_dir. Only runs in progress are saved."""

    def __init__(self, data_dir: str, filename: str = SAVE_FILENAME):
        self.data_dir = data_dir
        self.path = os.path.join(data_dir, filename)

    def save(self, snapshot, saved_at: str = None) -> bool:
        if snapshot.phase not in SAVEABLE_PHASES:
            logger.info(f"Not saving: phase {snapshot.phase.value} is not a run in progress")
            return False
        record = build_save_record(snapshot, saved_at)
        try:
            os.makedirs(self.data_dir, exist_ok=True)
            tmp = self.path + ".tmp"
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(record, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError as e:
            logger.warning(f"Failed to write save {self.path}: {e}")
            return False
        return True

    def load(self) -> ParseResult:
        """Parsed save, or a failure. A rejected save file is deleted."""
        if not os.path.exists(self.path):
            return ParseResult.failure("no save")
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            return ParseResult.failure(f"cannot read save: {e}")

        result = parse_save_record(text)
        if not result.ok:
            logger.warning(f"Discarding save {self.path}: {result.error}")
            self.delete()
        return result

    def has_save(self) -> bool:
        return os.path.exists(self.path)

    def info(self) -> Optional[dict]:
        """Summary for a 'continue' prompt, or None when there is no usable save."""
        result = self.load()
        if not result.ok:
            return None
        state = result.state
        device = state.get("selectedDevice") or {}
        return {
            "savedAt": result.saved_at,
            "phase": state.get("phase"),
            "month": state.get("timelineMonth", 0),
            "deviceId": device.get("id"),
            "deviceName": device.get("name") or device.get("id"),
        }

    def delete(self) -> bool:
        try:
            os.remove(self.path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to delete save {self.path}: {e}")
            return False
