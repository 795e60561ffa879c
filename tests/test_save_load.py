import json
from pathlib import Path

import pytest

from worldofbits.content.io import (
    PersistenceError,
    PersistenceGateway,
    load_snapshot_json,
    save_snapshot_json,
)
from worldofbits.content.schema import validate_snapshot_payload
from worldofbits.sim.core import GameSession, Snapshot
from worldofbits.sim.grid import CellCoord
from worldofbits.sim.hash import save_hash, snapshot_hash
from worldofbits.sim.movement import MovementMode
from worldofbits.sim.rules import GameRules


def _snapshot() -> Snapshot:
    return Snapshot(
        player=CellCoord(147965, -488244),
        held_token=4,
        overrides=((CellCoord(147966, -488244), 0), (CellCoord(147964, -488243), 2)),
        movement_mode=MovementMode.TRACKED,
    )


def test_save_then_load_round_trip_matches_snapshot_hash(tmp_path: Path) -> None:
    snapshot = _snapshot()
    out_path = tmp_path / "save.json"

    save_snapshot_json(out_path, snapshot)
    loaded = load_snapshot_json(out_path)

    assert loaded == snapshot
    assert snapshot_hash(loaded) == snapshot_hash(snapshot)


def test_save_writes_schema_version_sorted_overrides_and_save_hash(tmp_path: Path) -> None:
    out_path = tmp_path / "save.json"

    save_snapshot_json(out_path, _snapshot())
    payload = json.loads(out_path.read_text(encoding="utf-8"))

    assert payload["schema_version"] == 1
    assert payload["player"] == {"i": 147965, "j": -488244}
    assert payload["held_token"] == 4
    assert payload["movement_mode"] == "tracked"
    assert [row["cell"] for row in payload["overrides"]] == [
        {"i": 147964, "j": -488243},
        {"i": 147966, "j": -488244},
    ]
    assert payload["save_hash"] == save_hash(payload)
    validate_snapshot_payload(payload)


def test_save_is_byte_identical_for_equal_snapshots(tmp_path: Path) -> None:
    first = tmp_path / "a.json"
    second = tmp_path / "b.json"

    save_snapshot_json(first, _snapshot())
    save_snapshot_json(second, _snapshot())

    assert first.read_bytes() == second.read_bytes()


def test_save_leaves_no_temp_files(tmp_path: Path) -> None:
    save_snapshot_json(tmp_path / "nested" / "save.json", _snapshot())

    assert sorted(p.name for p in (tmp_path / "nested").iterdir()) == ["save.json"]


def test_loader_fails_when_save_hash_does_not_match(tmp_path: Path) -> None:
    out_path = tmp_path / "save.json"
    save_snapshot_json(out_path, _snapshot())
    payload = json.loads(out_path.read_text(encoding="utf-8"))
    payload["held_token"] = 32
    out_path.write_text(json.dumps(payload), encoding="utf-8")

    with pytest.raises(PersistenceError, match="save_hash mismatch"):
        load_snapshot_json(out_path)


def test_loader_rejects_unsupported_schema_version(tmp_path: Path) -> None:
    out_path = tmp_path / "save.json"
    save_snapshot_json(out_path, _snapshot())
    payload = json.loads(out_path.read_text(encoding="utf-8"))
    payload["schema_version"] = 99
    out_path.write_text(json.dumps(payload), encoding="utf-8")

    with pytest.raises(PersistenceError, match="unsupported schema_version: 99"):
        load_snapshot_json(out_path)


@pytest.mark.parametrize(
    "mutate, message",
    [
        (lambda p: p.pop("schema_version"), "missing schema_version"),
        (lambda p: p.update(held_token=0), "held_token must be > 0"),
        (lambda p: p.update(movement_mode="teleport"), "invalid movement_mode"),
        (lambda p: p.update(overrides=[{"cell": {"i": 0, "j": 0}, "value": -1}]), "must be >= 0"),
        (lambda p: p.update(player={"i": 0}), "player requires i and j"),
    ],
)
def test_schema_validation_rejects_bad_payloads(mutate, message: str) -> None:
    payload = {"schema_version": 1, **_snapshot().to_dict()}
    payload["save_hash"] = save_hash(payload)
    mutate(payload)

    with pytest.raises(ValueError, match=message):
        validate_snapshot_payload(payload)


def test_snapshot_rejects_duplicate_override_cells() -> None:
    with pytest.raises(ValueError, match="duplicate override cell"):
        Snapshot(
            player=CellCoord(0, 0),
            held_token=None,
            overrides=((CellCoord(1, 1), 2), (CellCoord(1, 1), 4)),
            movement_mode=MovementMode.MANUAL,
        )


def test_gateway_missing_file_loads_none_without_error(tmp_path: Path, capsys) -> None:
    gateway = PersistenceGateway(tmp_path / "missing.json")

    assert gateway.load() is None
    assert gateway.last_error is None
    assert capsys.readouterr().err == ""


def test_gateway_corrupt_file_loads_none_and_reports(tmp_path: Path, capsys) -> None:
    path = tmp_path / "save.json"
    path.write_text("{not json", encoding="utf-8")
    gateway = PersistenceGateway(path)

    assert gateway.load() is None
    assert isinstance(gateway.last_error, PersistenceError)
    assert "[worldofbits.persistence] load failed" in capsys.readouterr().err


def test_gateway_deeply_nested_file_loads_none(tmp_path: Path, capsys) -> None:
    path = tmp_path / "save.json"
    path.write_text("[" * 100000, encoding="utf-8")
    gateway = PersistenceGateway(path)

    assert gateway.load() is None
    assert isinstance(gateway.last_error, PersistenceError)
    assert "[worldofbits.persistence] load failed" in capsys.readouterr().err


def test_session_starts_fresh_from_deeply_nested_save(tmp_path: Path) -> None:
    path = tmp_path / "save.json"
    path.write_text("{\"a\":" * 100000, encoding="utf-8")

    session = GameSession.start(GameRules(), gateway=PersistenceGateway(path))

    assert session.player == GameRules().start_cell()
    assert session.held_token is None


def test_gateway_save_failure_returns_false(tmp_path: Path, capsys) -> None:
    gateway = PersistenceGateway(tmp_path)

    assert gateway.save(_snapshot()) is False
    assert gateway.last_error is not None
    assert "[worldofbits.persistence] save failed" in capsys.readouterr().err
    assert not any(p.suffix == ".tmp" for p in tmp_path.parent.iterdir())


def test_gateway_round_trip_and_clear(tmp_path: Path) -> None:
    path = tmp_path / "save.json"
    gateway = PersistenceGateway(path)

    assert gateway.save(_snapshot()) is True
    assert gateway.load() == _snapshot()
    assert gateway.clear() is True
    assert not path.exists()
    assert gateway.load() is None
    assert gateway.clear() is True
