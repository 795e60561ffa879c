from __future__ import annotations

import hashlib
import json
from typing import Any

from worldofbits.sim.core import GameSession, Snapshot


def snapshot_hash(snapshot: Snapshot) -> str:
    encoded = json.dumps(
        snapshot.to_dict(),
        sort_keys=True,
        separators=(",", ":"),
    ).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def save_hash(payload: dict[str, Any]) -> str:
    hash_payload = {
        "schema_version": payload["schema_version"],
        "player": payload["player"],
        "held_token": payload["held_token"],
        "overrides": payload["overrides"],
        "movement_mode": payload["movement_mode"],
    }
    encoded = json.dumps(hash_payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def session_hash(session: GameSession) -> str:
    payload = {
        "rules": session.rules.to_dict(),
        "state": session.state.to_snapshot().to_dict(),
        "active_cells": [coord.to_dict() for coord in sorted(session.viewport.active)],
        "outcome_log": session.outcome_log,
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()
