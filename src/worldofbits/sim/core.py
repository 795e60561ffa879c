from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from worldofbits.sim.crafting import CraftResult, InventoryCraftingEngine
from worldofbits.sim.generation import ProceduralValueGenerator
from worldofbits.sim.grid import CellCoord, cell_center, is_near
from worldofbits.sim.movement import (
    ManualMovementSource,
    MovementMode,
    MovementSource,
    PositionFeed,
    TrackedMovementSource,
    UnavailablePositionFeed,
)
from worldofbits.sim.overrides import OverrideStore
from worldofbits.sim.rules import GameRules
from worldofbits.sim.viewport import GeoWindow, ViewportDiff, ViewportGridManager

MAX_OUTCOME_LOG = 256
MOVED_OUTCOME = "moved"
MODE_CHANGED_OUTCOME = "movement_mode_changed"
LOCATION_UNAVAILABLE_OUTCOME = "location_unavailable"
RESET_OUTCOME = "reset"

FeedFactory = Callable[[], PositionFeed]


@dataclass(frozen=True)
class Snapshot:
    """Complete durable representation of a session."""

    player: CellCoord
    held_token: int | None
    overrides: tuple[tuple[CellCoord, int], ...]
    movement_mode: MovementMode

    def __post_init__(self) -> None:
        if self.held_token is not None:
            if isinstance(self.held_token, bool) or not isinstance(self.held_token, int):
                raise ValueError("held_token must be an integer or None")
            if self.held_token <= 0:
                raise ValueError("held_token must be > 0 when present")
        seen: set[CellCoord] = set()
        for coord, value in self.overrides:
            if coord in seen:
                raise ValueError(f"duplicate override cell: {coord.key()}")
            seen.add(coord)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"override value for {coord.key()} must be an integer >= 0")
        object.__setattr__(self, "overrides", tuple(sorted(self.overrides)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "player": self.player.to_dict(),
            "held_token": self.held_token,
            "overrides": [{"cell": coord.to_dict(), "value": value} for coord, value in self.overrides],
            "movement_mode": self.movement_mode.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snapshot":
        held_token = data.get("held_token")
        return cls(
            player=CellCoord.from_dict(data["player"]),
            held_token=int(held_token) if held_token is not None else None,
            overrides=tuple(
                (CellCoord.from_dict(row["cell"]), int(row["value"])) for row in data.get("overrides", [])
            ),
            movement_mode=MovementMode.from_value(str(data["movement_mode"])),
        )


@dataclass
class GameState:
    player: CellCoord
    overrides: OverrideStore
    held_token: int | None = None
    movement_mode: MovementMode = MovementMode.MANUAL

    @classmethod
    def initial(cls, rules: GameRules, generator: ProceduralValueGenerator) -> "GameState":
        return cls(player=rules.start_cell(), overrides=OverrideStore(generator.base_value))

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot, generator: ProceduralValueGenerator) -> "GameState":
        overrides = OverrideStore(generator.base_value)
        overrides.restore(snapshot.overrides)
        return cls(
            player=snapshot.player,
            overrides=overrides,
            held_token=snapshot.held_token,
            movement_mode=snapshot.movement_mode,
        )

    def to_snapshot(self) -> Snapshot:
        return Snapshot(
            player=self.player,
            held_token=self.held_token,
            overrides=tuple(self.overrides.serialize()),
            movement_mode=self.movement_mode,
        )


class CellRenderer:
    """Visual side of the active set; owns visuals only, never game state."""

    def activate(self, coord: CellCoord, value: int) -> None:
        """Create a visual for a cell entering the viewport."""

    def deactivate(self, coord: CellCoord) -> None:
        """Destroy the visual of a cell leaving the viewport."""

    def refresh(self, coord: CellCoord, value: int) -> None:
        """Redraw an active cell whose value changed."""


class SnapshotStore:
    """Durable storage used by :class:`GameSession`; see ``worldofbits.content.io``."""

    def save(self, snapshot: Snapshot) -> bool:
        raise NotImplementedError

    def load(self) -> Snapshot | None:
        raise NotImplementedError

    def clear(self) -> bool:
        raise NotImplementedError


class GameSession:
    """Single-threaded owner of game state.

    Every handler (movement callback, click, viewport change, reset) runs to
    completion before the next; persistence is attempted after each mutation
    and never raises into gameplay.
    """

    def __init__(
        self,
        rules: GameRules | None = None,
        *,
        state: GameState | None = None,
        gateway: SnapshotStore | None = None,
        renderer: CellRenderer | None = None,
        feed_factory: FeedFactory | None = None,
    ) -> None:
        self.rules = rules if rules is not None else GameRules()
        self.generator = ProceduralValueGenerator(self.rules.token_probability)
        self.state = state if state is not None else GameState.initial(self.rules, self.generator)
        self.gateway = gateway
        self.renderer = renderer if renderer is not None else CellRenderer()
        self.feed_factory: FeedFactory = feed_factory if feed_factory is not None else UnavailablePositionFeed
        self.viewport = ViewportGridManager(cell_size=self.rules.cell_size, padding=self.rules.viewport_padding)
        self.crafting = InventoryCraftingEngine(self.rules)
        self.outcome_log: list[dict[str, Any]] = []
        self.last_message: str | None = None
        self.movement_source: MovementSource = self._build_source(MovementMode.MANUAL)
        self._switch_source(self.state.movement_mode)

    @classmethod
    def start(
        cls,
        rules: GameRules | None = None,
        *,
        gateway: SnapshotStore | None = None,
        renderer: CellRenderer | None = None,
        feed_factory: FeedFactory | None = None,
    ) -> "GameSession":
        rules = rules if rules is not None else GameRules()
        generator = ProceduralValueGenerator(rules.token_probability)
        snapshot = gateway.load() if gateway is not None else None
        state = GameState.from_snapshot(snapshot, generator) if snapshot is not None else GameState.initial(rules, generator)
        return cls(rules, state=state, gateway=gateway, renderer=renderer, feed_factory=feed_factory)

    @property
    def player(self) -> CellCoord:
        return self.state.player

    @property
    def held_token(self) -> int | None:
        return self.state.held_token

    @property
    def movement_mode(self) -> MovementMode:
        return self.state.movement_mode

    @property
    def active_cells(self) -> frozenset[CellCoord]:
        return frozenset(self.viewport.active)

    def cell_value(self, coord: CellCoord) -> int:
        return self.state.overrides.get(coord)

    def is_near_player(self, coord: CellCoord) -> bool:
        return is_near(coord, self.state.player, self.rules.interaction_radius)

    def player_center(self) -> tuple[float, float]:
        return cell_center(self.state.player, self.rules.cell_size)

    def target_reached(self) -> bool:
        return self.crafting.target_reached(self.state.held_token)

    def move_to(self, coord: CellCoord) -> bool:
        if coord == self.state.player:
            return False
        self.state.player = coord
        self._record({"outcome": MOVED_OUTCOME, "coord": coord.to_dict()})
        self._persist()
        return True

    def step(self, di: int, dj: int) -> CellCoord | None:
        if not isinstance(self.movement_source, ManualMovementSource):
            return None
        return self.movement_source.step(di, dj)

    def step_direction(self, direction: str) -> CellCoord | None:
        if not isinstance(self.movement_source, ManualMovementSource):
            return None
        return self.movement_source.step_direction(direction)

    def sync_viewport(self, window: GeoWindow) -> ViewportDiff:
        diff = self.viewport.recompute(window)
        for coord in diff.deactivated:
            self.renderer.deactivate(coord)
        for coord in diff.activated:
            self.renderer.activate(coord, self.cell_value(coord))
        return diff

    def click_cell(self, coord: CellCoord) -> CraftResult:
        result = self.crafting.activate_cell(self.state, coord)
        self.last_message = result.message
        self._record(result.to_dict())
        if result.mutated:
            self._persist()
            if self.viewport.is_active(coord):
                self.renderer.refresh(coord, result.cell_value)
        return result

    def set_movement_mode(self, mode: MovementMode | str) -> MovementMode:
        requested = MovementMode.from_value(mode) if isinstance(mode, str) else mode
        selected = self._switch_source(requested)
        if selected == requested:
            self.last_message = f"Movement mode: {selected.value}."
        self._record({"outcome": MODE_CHANGED_OUTCOME, "movement_mode": selected.value})
        self._persist()
        return selected

    def toggle_movement_mode(self) -> MovementMode:
        if self.state.movement_mode == MovementMode.MANUAL:
            return self.set_movement_mode(MovementMode.TRACKED)
        return self.set_movement_mode(MovementMode.MANUAL)

    def pump(self) -> None:
        self.movement_source.pump()

    def reset(self) -> None:
        if self.gateway is not None:
            self.gateway.clear()
        self.movement_source.stop()
        self.state = GameState.initial(self.rules, self.generator)
        self._switch_source(MovementMode.MANUAL)
        self.last_message = "Game reset. Your hand is empty and every cell is back to its starting value."
        self._record({"outcome": RESET_OUTCOME})
        for coord in sorted(self.viewport.active):
            self.renderer.refresh(coord, self.cell_value(coord))

    def shutdown(self) -> None:
        self.movement_source.stop()

    def hand_text(self) -> str:
        if self.state.held_token is None:
            return "Empty hand"
        return f"Holding token value {self.state.held_token}"

    def status_lines(self) -> list[str]:
        lines = [f"Hand: {self.hand_text()}"]
        if self.target_reached():
            lines.append(f"Goal: You crafted a token of value {self.state.held_token}.")
        if self.last_message:
            lines.append(self.last_message)
        return lines

    def _build_source(self, mode: MovementMode) -> MovementSource:
        if mode == MovementMode.TRACKED:
            return TrackedMovementSource(
                self.feed_factory(),
                self.rules.cell_size,
                self.move_to,
                on_unavailable=self._handle_location_lost,
            )
        return ManualMovementSource(lambda: self.state.player, self.move_to)

    def _switch_source(self, mode: MovementMode) -> MovementMode:
        self.movement_source.stop()
        source = self._build_source(mode)
        self.movement_source = source
        source.start()
        if isinstance(source, TrackedMovementSource) and not source.available:
            self._note_location_unavailable(source.unavailable_reason or "unknown")
            return self._switch_source(MovementMode.MANUAL)
        self.state.movement_mode = mode
        return mode

    def _handle_location_lost(self, reason: str) -> None:
        self._note_location_unavailable(reason)
        self._switch_source(MovementMode.MANUAL)
        self._record({"outcome": MODE_CHANGED_OUTCOME, "movement_mode": MovementMode.MANUAL.value})
        self._persist()

    def _note_location_unavailable(self, reason: str) -> None:
        self.last_message = f"Location unavailable ({reason}). Using manual movement."
        self._record({"outcome": LOCATION_UNAVAILABLE_OUTCOME, "reason": reason})

    def _persist(self) -> None:
        if self.gateway is not None:
            self.gateway.save(self.state.to_snapshot())

    def _record(self, entry: dict[str, Any]) -> None:
        self.outcome_log.append(copy.deepcopy(entry))
        if len(self.outcome_log) > MAX_OUTCOME_LOG:
            overflow = len(self.outcome_log) - MAX_OUTCOME_LOG
            del self.outcome_log[:overflow]
