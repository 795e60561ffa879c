from __future__ import annotations

from typing import Any

SUPPORTED_SCHEMA_VERSIONS = {1}
REQUIRED_SNAPSHOT_FIELDS = {"schema_version", "player", "held_token", "overrides", "movement_mode", "save_hash"}
VALID_MOVEMENT_MODES = {"manual", "tracked"}


def _require_int(value: Any, *, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer")
    return value


def _validate_cell(cell: Any, *, field_name: str) -> None:
    if not isinstance(cell, dict):
        raise ValueError(f"{field_name} must be an object")
    if not {"i", "j"} <= cell.keys():
        raise ValueError(f"{field_name} requires i and j")
    _require_int(cell["i"], field_name=f"{field_name}.i")
    _require_int(cell["j"], field_name=f"{field_name}.j")


def validate_snapshot_payload(payload: Any) -> None:
    if not isinstance(payload, dict):
        raise ValueError("snapshot payload must be an object")

    schema_version = payload.get("schema_version")
    if schema_version is None:
        raise ValueError("snapshot payload missing schema_version")
    if isinstance(schema_version, bool) or not isinstance(schema_version, int):
        raise ValueError("schema_version must be an integer")
    if schema_version not in SUPPORTED_SCHEMA_VERSIONS:
        raise ValueError(f"unsupported schema_version: {schema_version}")

    missing = REQUIRED_SNAPSHOT_FIELDS - set(payload.keys())
    if missing:
        raise ValueError(f"snapshot payload missing fields: {sorted(missing)}")

    _validate_cell(payload["player"], field_name="player")

    held_token = payload["held_token"]
    if held_token is not None:
        if _require_int(held_token, field_name="held_token") <= 0:
            raise ValueError("held_token must be > 0 when present")

    overrides = payload["overrides"]
    if not isinstance(overrides, list):
        raise ValueError("overrides must be a list")
    for index, row in enumerate(overrides):
        if not isinstance(row, dict):
            raise ValueError(f"overrides[{index}] must be an object")
        if "cell" not in row or "value" not in row:
            raise ValueError(f"overrides[{index}] missing cell or value")
        _validate_cell(row["cell"], field_name=f"overrides[{index}].cell")
        if _require_int(row["value"], field_name=f"overrides[{index}].value") < 0:
            raise ValueError(f"overrides[{index}].value must be >= 0")

    movement_mode = payload["movement_mode"]
    if not isinstance(movement_mode, str) or movement_mode not in VALID_MOVEMENT_MODES:
        raise ValueError(f"invalid movement_mode: {movement_mode}")

    if not isinstance(payload["save_hash"], str) or not payload["save_hash"]:
        raise ValueError("save_hash must be a non-empty string")
