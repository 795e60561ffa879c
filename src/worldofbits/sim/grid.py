from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, order=True)
class CellCoord:
    """Grid cell (i, j): i counts rows of latitude, j columns of longitude."""

    i: int
    j: int

    def key(self) -> str:
        return f"{self.i},{self.j}"

    @classmethod
    def from_key(cls, key: str) -> "CellCoord":
        raw_i, raw_j = key.split(",", 1)
        return cls(i=int(raw_i), j=int(raw_j))

    def offset(self, di: int, dj: int) -> "CellCoord":
        return CellCoord(self.i + di, self.j + dj)

    def to_dict(self) -> dict[str, int]:
        return {"i": self.i, "j": self.j}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CellCoord":
        return cls(i=int(data["i"]), j=int(data["j"]))


@dataclass(frozen=True)
class CellBounds:
    south: float
    north: float
    west: float
    east: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat < self.north and self.west <= lng < self.east


def floor_index(value: float, cell_size: float) -> int:
    """Index of the cell edge at or below ``value``.

    The quotient is corrected against ``index * cell_size`` so that the result
    always agrees with :func:`cell_bounds`, even where float division rounds
    across an edge (for example ``0.00075 / 0.00025``).
    """
    index = math.floor(value / cell_size)
    if index * cell_size > value:
        index -= 1
    elif (index + 1) * cell_size <= value:
        index += 1
    return index


def latlng_to_cell(lat: float, lng: float, cell_size: float) -> CellCoord:
    return CellCoord(i=floor_index(lat, cell_size), j=floor_index(lng, cell_size))


def cell_bounds(coord: CellCoord, cell_size: float) -> CellBounds:
    return CellBounds(
        south=coord.i * cell_size,
        north=(coord.i + 1) * cell_size,
        west=coord.j * cell_size,
        east=(coord.j + 1) * cell_size,
    )


def cell_center(coord: CellCoord, cell_size: float) -> tuple[float, float]:
    bounds = cell_bounds(coord, cell_size)
    return ((bounds.south + bounds.north) / 2.0, (bounds.west + bounds.east) / 2.0)


def chebyshev_distance(a: CellCoord, b: CellCoord) -> int:
    return max(abs(a.i - b.i), abs(a.j - b.j))


def is_near(coord: CellCoord, origin: CellCoord, radius: int) -> bool:
    return chebyshev_distance(coord, origin) <= radius
