from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

from worldofbits.content.schema import validate_snapshot_payload
from worldofbits.sim.core import Snapshot, SnapshotStore
from worldofbits.sim.hash import save_hash

SCHEMA_VERSION = 1
CANONICAL_JSON_INDENT = 2
CANONICAL_JSON_SEPARATORS = (",", ": ")
DEFAULT_SAVE_PATH = "saves/world_of_bits.json"
LOG_PREFIX = "[worldofbits.persistence]"


class PersistenceError(Exception):
    """Durable storage could not be read or written."""


def _build_snapshot_payload(snapshot: Snapshot) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        **snapshot.to_dict(),
    }
    payload["save_hash"] = save_hash(payload)
    return payload


def _canonical_json(payload: dict[str, Any]) -> str:
    return json.dumps(
        payload,
        indent=CANONICAL_JSON_INDENT,
        separators=CANONICAL_JSON_SEPARATORS,
        sort_keys=True,
    )


def _write_atomic_json(path: str | Path, payload: dict[str, Any]) -> None:
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)
    serialized = _canonical_json(payload)

    temp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=destination.parent,
            delete=False,
            suffix=".tmp",
        ) as temp_file:
            temp_file.write(serialized)
            temp_file.flush()
            os.fsync(temp_file.fileno())
            temp_path = Path(temp_file.name)
        os.replace(temp_path, destination)
    except Exception:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise


def _load_snapshot_payload(payload: Any) -> Snapshot:
    validate_snapshot_payload(payload)
    expected_hash = payload["save_hash"]
    actual_hash = save_hash(payload)
    if expected_hash != actual_hash:
        raise ValueError(
            f"save_hash mismatch while loading snapshot (stored={expected_hash}, recomputed={actual_hash})"
        )
    return Snapshot.from_dict(payload)


def save_snapshot_json(path: str | Path, snapshot: Snapshot) -> None:
    payload = _build_snapshot_payload(snapshot)
    try:
        validate_snapshot_payload(payload)
        _write_atomic_json(path, payload)
    except (OSError, ValueError) as exc:
        raise PersistenceError(f"could not write snapshot {path}: {exc}") from exc


def load_snapshot_json(path: str | Path) -> Snapshot:
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        return _load_snapshot_payload(payload)
    except (OSError, ValueError, KeyError, TypeError, RecursionError) as exc:
        raise PersistenceError(f"could not read snapshot {path}: {exc}") from exc


class PersistenceGateway(SnapshotStore):
    """Best-effort snapshot file; failures are reported and never raised.

    The in-memory session stays authoritative for the current run, so a failed
    save is skipped and a failed load means "start from defaults".
    """

    def __init__(self, path: str | Path = DEFAULT_SAVE_PATH) -> None:
        self.path = Path(path)
        self.last_error: PersistenceError | None = None

    def save(self, snapshot: Snapshot) -> bool:
        try:
            save_snapshot_json(self.path, snapshot)
        except PersistenceError as exc:
            self._report("save failed", exc)
            return False
        self.last_error = None
        return True

    def load(self) -> Snapshot | None:
        if not self.path.exists():
            return None
        try:
            snapshot = load_snapshot_json(self.path)
        except PersistenceError as exc:
            self._report("load failed; starting fresh", exc)
            return None
        self.last_error = None
        return snapshot

    def clear(self) -> bool:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            self._report("clear failed", PersistenceError(str(exc)))
            return False
        return True

    def _report(self, action: str, exc: PersistenceError) -> None:
        self.last_error = exc
        print(f"{LOG_PREFIX} {action} path={self.path}: {exc}", file=sys.stderr)
