from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from worldofbits.sim.grid import CellCoord, is_near
from worldofbits.sim.rules import GameRules

if TYPE_CHECKING:
    from worldofbits.sim.core import GameState

PICKED_UP = "picked_up"
DROPPED = "dropped"
CRAFTED = "crafted"
OUT_OF_RANGE = "out_of_range"
NOTHING_TO_PICK_UP = "nothing_to_pick_up"
VALUE_MISMATCH = "value_mismatch"

MUTATING_OUTCOMES = frozenset({PICKED_UP, DROPPED, CRAFTED})
REJECTED_OUTCOMES = frozenset({OUT_OF_RANGE, NOTHING_TO_PICK_UP, VALUE_MISMATCH})


@dataclass(frozen=True)
class CraftResult:
    outcome: str
    coord: CellCoord
    cell_value: int
    held_token: int | None
    message: str
    target_reached: bool = False

    @property
    def mutated(self) -> bool:
        return self.outcome in MUTATING_OUTCOMES

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome,
            "coord": self.coord.to_dict(),
            "cell_value": self.cell_value,
            "held_token": self.held_token,
            "target_reached": self.target_reached,
        }


class InventoryCraftingEngine:
    """One-slot hand state machine: pick up, drop, or double equal tokens."""

    def __init__(self, rules: GameRules) -> None:
        self.rules = rules

    def target_reached(self, held_token: int | None) -> bool:
        return held_token is not None and held_token >= self.rules.target_value

    def activate_cell(self, state: GameState, coord: CellCoord) -> CraftResult:
        if not is_near(coord, state.player, self.rules.interaction_radius):
            return self._result(
                state,
                coord,
                OUT_OF_RANGE,
                "That cell is too far away. Only cells near your marker are usable.",
            )

        cell_value = state.overrides.get(coord)
        held = state.held_token

        if held is None:
            if cell_value > 0:
                state.held_token = cell_value
                state.overrides.set(coord, 0)
                return self._result(state, coord, PICKED_UP, f"Picked up token value {cell_value}.")
            return self._result(state, coord, NOTHING_TO_PICK_UP, "No token in this cell to pick up.")

        if cell_value == 0:
            state.overrides.set(coord, held)
            state.held_token = None
            return self._result(state, coord, DROPPED, f"Placed token value {held} into this cell.")

        if cell_value == held:
            crafted = held * 2
            state.overrides.set(coord, 0)
            state.held_token = crafted
            return self._result(state, coord, CRAFTED, f"Crafted token value {crafted}. It is now in your hand.")

        return self._result(
            state,
            coord,
            VALUE_MISMATCH,
            f"Cell has {cell_value}, your hand has {held}. Values must match to craft.",
        )

    def _result(self, state: GameState, coord: CellCoord, outcome: str, message: str) -> CraftResult:
        return CraftResult(
            outcome=outcome,
            coord=coord,
            cell_value=state.overrides.get(coord),
            held_token=state.held_token,
            message=message,
            target_reached=self.target_reached(state.held_token),
        )
