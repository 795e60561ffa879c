from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from worldofbits.sim.grid import CellCoord, floor_index


@dataclass(frozen=True)
class GeoWindow:
    """Visible geographic rectangle, in the same degree units as the cell size."""

    south: float
    north: float
    west: float
    east: float

    def __post_init__(self) -> None:
        if self.north < self.south:
            raise ValueError("window north must be >= south")
        if self.east < self.west:
            raise ValueError("window east must be >= west")

    def to_dict(self) -> dict[str, float]:
        return {"south": self.south, "north": self.north, "west": self.west, "east": self.east}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GeoWindow":
        return cls(
            south=float(data["south"]),
            north=float(data["north"]),
            west=float(data["west"]),
            east=float(data["east"]),
        )

    @classmethod
    def around(cls, lat: float, lng: float, half_height: float, half_width: float) -> "GeoWindow":
        return cls(south=lat - half_height, north=lat + half_height, west=lng - half_width, east=lng + half_width)


@dataclass(frozen=True)
class ViewportDiff:
    activated: tuple[CellCoord, ...] = ()
    deactivated: tuple[CellCoord, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.activated and not self.deactivated


@dataclass
class ViewportGridManager:
    """Tracks which cells are active for the current window.

    The manager only diffs coordinate sets. Callers create a visual for every
    activated cell (reading its value from the override store) and destroy the
    visual for every deactivated cell; game state is never touched here.
    """

    cell_size: float
    padding: int = 1
    active: set[CellCoord] = field(default_factory=set)

    def __post_init__(self) -> None:
        if self.cell_size <= 0:
            raise ValueError("cell_size must be > 0")
        if self.padding < 0:
            raise ValueError("padding must be >= 0")

    def cell_range(self, window: GeoWindow) -> tuple[int, int, int, int]:
        min_i = floor_index(window.south, self.cell_size) - self.padding
        max_i = floor_index(window.north, self.cell_size) + self.padding
        min_j = floor_index(window.west, self.cell_size) - self.padding
        max_j = floor_index(window.east, self.cell_size) + self.padding
        return (min_i, max_i, min_j, max_j)

    def cells_for(self, window: GeoWindow) -> set[CellCoord]:
        min_i, max_i, min_j, max_j = self.cell_range(window)
        return {CellCoord(i, j) for i in range(min_i, max_i + 1) for j in range(min_j, max_j + 1)}

    def recompute(self, window: GeoWindow) -> ViewportDiff:
        should_exist = self.cells_for(window)
        activated = tuple(sorted(should_exist - self.active))
        deactivated = tuple(sorted(self.active - should_exist))
        self.active = should_exist
        return ViewportDiff(activated=activated, deactivated=deactivated)

    def clear(self) -> ViewportDiff:
        deactivated = tuple(sorted(self.active))
        self.active = set()
        return ViewportDiff(deactivated=deactivated)

    def is_active(self, coord: CellCoord) -> bool:
        return coord in self.active
