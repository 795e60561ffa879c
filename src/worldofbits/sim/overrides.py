from __future__ import annotations

from collections.abc import Callable, Iterable

from worldofbits.sim.grid import CellCoord


class OverrideStore:
    """Sparse record of every cell the player changed away from its base value.

    Only crafting mutations write here. Entries equal to the base value are
    removed instead of stored, so ``len(store)`` counts exactly the cells that
    currently differ from procedural generation.
    """

    def __init__(self, base_value: Callable[[CellCoord], int]) -> None:
        self._base_value = base_value
        self._values: dict[CellCoord, int] = {}

    def get(self, coord: CellCoord) -> int:
        if coord in self._values:
            return self._values[coord]
        return self._base_value(coord)

    def set(self, coord: CellCoord, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("token value must be an integer")
        if value < 0:
            raise ValueError("token value must be >= 0")
        if value == self._base_value(coord):
            self._values.pop(coord, None)
            return
        self._values[coord] = value

    def serialize(self) -> list[tuple[CellCoord, int]]:
        return sorted(self._values.items())

    def restore(self, entries: Iterable[tuple[CellCoord, int]]) -> None:
        self._values = {}
        for coord, value in entries:
            self.set(coord, value)

    def clear(self) -> None:
        self._values = {}

    def __contains__(self, coord: object) -> bool:
        return coord in self._values

    def __len__(self) -> int:
        return len(self._values)
