import pytest

from worldofbits.sim.grid import CellCoord
from worldofbits.sim.overrides import OverrideStore

TOKEN_CELL = CellCoord(1, 1)
EMPTY_CELL = CellCoord(2, 2)


def _base(coord: CellCoord) -> int:
    return 1 if coord == TOKEN_CELL else 0


def test_get_falls_back_to_base_value() -> None:
    store = OverrideStore(_base)

    assert store.get(TOKEN_CELL) == 1
    assert store.get(EMPTY_CELL) == 0
    assert len(store) == 0


def test_set_records_only_values_that_differ_from_base() -> None:
    store = OverrideStore(_base)

    store.set(TOKEN_CELL, 0)
    store.set(EMPTY_CELL, 0)

    assert store.get(TOKEN_CELL) == 0
    assert TOKEN_CELL in store
    assert EMPTY_CELL not in store
    assert len(store) == 1


def test_setting_back_to_base_removes_entry() -> None:
    store = OverrideStore(_base)
    store.set(EMPTY_CELL, 4)

    store.set(EMPTY_CELL, 0)

    assert EMPTY_CELL not in store
    assert store.serialize() == []


def test_set_rejects_negative_and_non_integer_values() -> None:
    store = OverrideStore(_base)

    with pytest.raises(ValueError):
        store.set(EMPTY_CELL, -1)
    with pytest.raises(ValueError):
        store.set(EMPTY_CELL, 1.5)  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        store.set(EMPTY_CELL, True)


def test_serialize_is_sorted_and_restore_replaces_contents() -> None:
    store = OverrideStore(_base)
    store.set(CellCoord(5, 0), 8)
    store.set(CellCoord(-1, 3), 2)

    entries = store.serialize()
    restored = OverrideStore(_base)
    restored.set(CellCoord(9, 9), 16)
    restored.restore(entries)

    assert entries == [(CellCoord(-1, 3), 2), (CellCoord(5, 0), 8)]
    assert restored.serialize() == entries
    assert CellCoord(9, 9) not in restored


def test_restore_drops_entries_equal_to_base() -> None:
    store = OverrideStore(_base)

    store.restore([(TOKEN_CELL, 1), (EMPTY_CELL, 2)])

    assert store.serialize() == [(EMPTY_CELL, 2)]


def test_clear_forgets_every_override() -> None:
    store = OverrideStore(_base)
    store.set(TOKEN_CELL, 0)

    store.clear()

    assert store.get(TOKEN_CELL) == 1
    assert len(store) == 0
