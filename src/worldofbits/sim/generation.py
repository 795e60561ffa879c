from __future__ import annotations

from dataclasses import dataclass

from worldofbits.sim.grid import CellCoord
from worldofbits.sim.rng import roll

BASE_TOKEN_VALUE = 1


def cell_seed(coord: CellCoord) -> str:
    return f"cell:{coord.i},{coord.j}:token"


@dataclass(frozen=True)
class ProceduralValueGenerator:
    """Maps a cell to its base token value; a pure function of the coordinate."""

    token_probability: float

    def __post_init__(self) -> None:
        if self.token_probability < 0.0 or self.token_probability > 1.0:
            raise ValueError("token_probability must be within [0.0, 1.0]")

    def base_value(self, coord: CellCoord) -> int:
        return BASE_TOKEN_VALUE if roll(cell_seed(coord)) < self.token_probability else 0

    def __call__(self, coord: CellCoord) -> int:
        return self.base_value(coord)
