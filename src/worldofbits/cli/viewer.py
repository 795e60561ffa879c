from __future__ import annotations

import argparse
import sys
from typing import Sequence

from worldofbits.content.io import DEFAULT_SAVE_PATH, PersistenceGateway
from worldofbits.content.rules import DEFAULT_RULES_PATH, load_rules_or_default
from worldofbits.sim.core import GameSession
from worldofbits.sim.grid import CellCoord, cell_bounds
from worldofbits.sim.movement import DEFAULT_FEED_INTERVAL_SECONDS, position_feed_factory
from worldofbits.sim.viewport import GeoWindow

DEFAULT_VIEW_RADIUS = 5
LOG_PREFIX = "[worldofbits.ascii]"
PLAYER_GLYPH = "@"
EMPTY_NEAR_GLYPH = "."
EMPTY_FAR_GLYPH = " "
COMMANDS_HELP = "Commands: show | n | s | e | w | use <di> <dj> | mode manual|tracked | reset | quit"


class AsciiViewer:
    """Read-only projection of the cells around the player for terminal display."""

    def __init__(self, radius: int = DEFAULT_VIEW_RADIUS) -> None:
        if radius < 0:
            raise ValueError("radius must be >= 0")
        self.radius = radius

    def window(self, session: GameSession) -> GeoWindow:
        player = session.player
        south_west = cell_bounds(player.offset(-self.radius, -self.radius), session.rules.cell_size)
        north_east = cell_bounds(player.offset(self.radius, self.radius), session.rules.cell_size)
        return GeoWindow(
            south=south_west.south,
            north=north_east.north,
            west=south_west.west,
            east=north_east.east,
        )

    def render(self, session: GameSession) -> str:
        player = session.player
        lines = [
            f"cell=({player.i},{player.j}) mode={session.movement_mode.value} "
            f"active={len(session.active_cells)} changed={len(session.state.overrides)}",
        ]
        lines.extend(session.status_lines())
        for di in range(self.radius, -self.radius - 1, -1):
            row: list[str] = []
            for dj in range(-self.radius, self.radius + 1):
                coord = player.offset(di, dj)
                row.append(self._glyph(session, coord).rjust(3))
            lines.append(f"{di:>+3} |" + "".join(row))
        return "\n".join(lines)

    def _glyph(self, session: GameSession, coord: CellCoord) -> str:
        if coord == session.player:
            return PLAYER_GLYPH
        value = session.cell_value(coord)
        if value > 0:
            return str(value)
        return EMPTY_NEAR_GLYPH if session.is_near_player(coord) else EMPTY_FAR_GLYPH


def handle_command(session: GameSession, raw: str) -> str | None:
    """Apply one REPL command; returns text to print, or None to quit."""
    parts = raw.strip().split()
    if not parts:
        return ""
    command = parts[0].lower()
    if command in {"quit", "exit"}:
        return None
    if command == "show":
        return "show"
    if command in {"n", "s", "e", "w"} and len(parts) == 1:
        direction = {"n": "north", "s": "south", "e": "east", "w": "west"}[command]
        if session.step_direction(direction) is None:
            return "manual movement is off (use: mode manual)"
        return "show"
    if command == "use" and len(parts) == 3:
        try:
            di, dj = int(parts[1]), int(parts[2])
        except ValueError:
            return "use expects integer offsets"
        session.click_cell(session.player.offset(di, dj))
        return "show"
    if command == "mode" and len(parts) == 2:
        try:
            session.set_movement_mode(parts[1].lower())
        except ValueError as exc:
            return str(exc)
        return "show"
    if command == "reset" and len(parts) == 1:
        session.reset()
        return "show"
    return "unknown command"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="worldofbits-ascii", description="Terminal World of Bits session.")
    parser.add_argument("--rules-path", default=DEFAULT_RULES_PATH, help="Path to rules JSON.")
    parser.add_argument("--save-path", default=DEFAULT_SAVE_PATH, help="Snapshot JSON path.")
    parser.add_argument("--track-file", help="Position log replayed as the tracked movement feed.")
    parser.add_argument("--track-interval", type=float, default=DEFAULT_FEED_INTERVAL_SECONDS)
    parser.add_argument("--radius", type=int, default=DEFAULT_VIEW_RADIUS, help="Cells shown around the player.")
    return parser


def run_demo(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        rules = load_rules_or_default(args.rules_path)
    except (OSError, ValueError) as exc:
        print(f"{LOG_PREFIX} failed to load rules path={args.rules_path}: {exc}", file=sys.stderr)
        return 1
    session = GameSession.start(
        rules,
        gateway=PersistenceGateway(args.save_path),
        feed_factory=position_feed_factory(args.track_file, interval_seconds=args.track_interval),
    )
    view = AsciiViewer(radius=args.radius)

    print(f"World of Bits. {COMMANDS_HELP}")
    session.sync_viewport(view.window(session))
    print(view.render(session))

    try:
        while True:
            try:
                raw = input("> ")
            except EOFError:
                break
            session.pump()
            reply = handle_command(session, raw)
            if reply is None:
                break
            session.sync_viewport(view.window(session))
            if reply == "show":
                print(view.render(session))
            elif reply:
                print(reply)
    finally:
        session.shutdown()
    return 0


if __name__ == "__main__":
    raise SystemExit(run_demo())
