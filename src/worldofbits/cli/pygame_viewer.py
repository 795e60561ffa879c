from __future__ import annotations

import argparse
import importlib.metadata
import os
import platform
import sys
from dataclasses import dataclass, field
from typing import Any

from worldofbits.content.io import DEFAULT_SAVE_PATH, PersistenceGateway
from worldofbits.content.rules import DEFAULT_RULES_PATH, load_rules_or_default
from worldofbits.sim.core import CellRenderer, GameSession
from worldofbits.sim.grid import CellCoord, cell_bounds, cell_center, latlng_to_cell
from worldofbits.sim.hash import session_hash
from worldofbits.sim.movement import DEFAULT_FEED_INTERVAL_SECONDS, MovementMode, position_feed_factory
from worldofbits.sim.rules import GameRules
from worldofbits.sim.viewport import GeoWindow

WINDOW_SIZE = (1280, 820)
PANEL_WIDTH = 380
VIEWPORT_MARGIN = 12
PANEL_MARGIN = 12
CELL_PIXELS = 34
FRAMES_PER_SECOND = 60
LOG_PREFIX = "[worldofbits.viewer]"

BACKGROUND_COLOR = (236, 236, 230)
PANEL_COLOR = (24, 26, 36)
PANEL_BORDER_COLOR = (95, 98, 110)
PANEL_TEXT_COLOR = (235, 235, 240)
NEAR_BORDER_COLOR = (34, 34, 34)
FAR_BORDER_COLOR = (187, 187, 187)
NEAR_FILL_COLOR = (255, 229, 229)
FAR_FILL_COLOR = (248, 248, 248)
TOKEN_FILL_COLOR = (255, 127, 127)
EMPTY_NEAR_OPACITY = 0.22
EMPTY_FAR_OPACITY = 0.04
TOKEN_OPACITY = 0.55
PLAYER_RADIUS = 7

KEY_DIRECTIONS: dict[str, str] = {
    "K_w": "north",
    "K_UP": "north",
    "K_s": "south",
    "K_DOWN": "south",
    "K_a": "west",
    "K_LEFT": "west",
    "K_d": "east",
    "K_RIGHT": "east",
}

pygame: Any | None = None


@dataclass
class Camera:
    """Maps degrees to viewport pixels; north is up."""

    lat: float
    lng: float
    cell_size: float
    cell_pixels: int = CELL_PIXELS

    @property
    def pixels_per_degree(self) -> float:
        return self.cell_pixels / self.cell_size

    def center_on(self, lat: float, lng: float) -> None:
        self.lat = lat
        self.lng = lng

    def pan_pixels(self, dx: float, dy: float) -> None:
        self.lng -= dx / self.pixels_per_degree
        self.lat += dy / self.pixels_per_degree

    def geo_to_pixel(self, lat: float, lng: float, viewport: tuple[int, int, int, int]) -> tuple[float, float]:
        x, y, width, height = viewport
        center_x = x + width / 2.0
        center_y = y + height / 2.0
        return (
            center_x + (lng - self.lng) * self.pixels_per_degree,
            center_y - (lat - self.lat) * self.pixels_per_degree,
        )

    def pixel_to_geo(self, pixel_x: float, pixel_y: float, viewport: tuple[int, int, int, int]) -> tuple[float, float]:
        x, y, width, height = viewport
        center_x = x + width / 2.0
        center_y = y + height / 2.0
        return (
            self.lat - (pixel_y - center_y) / self.pixels_per_degree,
            self.lng + (pixel_x - center_x) / self.pixels_per_degree,
        )

    def visible_window(self, viewport: tuple[int, int, int, int]) -> GeoWindow:
        _, _, width, height = viewport
        return GeoWindow.around(
            self.lat,
            self.lng,
            half_height=(height / 2.0) / self.pixels_per_degree,
            half_width=(width / 2.0) / self.pixels_per_degree,
        )


@dataclass
class ActiveCellLayer(CellRenderer):
    """Renderer-side cache of the active cells and the values they display."""

    cells: dict[CellCoord, int] = field(default_factory=dict)

    def activate(self, coord: CellCoord, value: int) -> None:
        self.cells[coord] = value

    def deactivate(self, coord: CellCoord) -> None:
        self.cells.pop(coord, None)

    def refresh(self, coord: CellCoord, value: int) -> None:
        if coord in self.cells:
            self.cells[coord] = value


def blend(base: tuple[int, int, int], color: tuple[int, int, int], alpha: float) -> tuple[int, int, int]:
    alpha = max(0.0, min(1.0, alpha))
    return (
        int(round(base[0] + (color[0] - base[0]) * alpha)),
        int(round(base[1] + (color[1] - base[1]) * alpha)),
        int(round(base[2] + (color[2] - base[2]) * alpha)),
    )


def cell_style(value: int, near: bool) -> tuple[tuple[int, int, int], tuple[int, int, int], int]:
    """Fill color, border color and border width for a cell."""
    if value > 0:
        fill = blend(BACKGROUND_COLOR, TOKEN_FILL_COLOR, TOKEN_OPACITY)
    elif near:
        fill = blend(BACKGROUND_COLOR, NEAR_FILL_COLOR, EMPTY_NEAR_OPACITY)
    else:
        fill = blend(BACKGROUND_COLOR, FAR_FILL_COLOR, EMPTY_FAR_OPACITY)
    if near:
        return fill, NEAR_BORDER_COLOR, 2
    return fill, FAR_BORDER_COLOR, 1


def cell_pixel_rect(
    coord: CellCoord,
    camera: Camera,
    viewport: tuple[int, int, int, int],
) -> tuple[int, int, int, int]:
    bounds = cell_bounds(coord, camera.cell_size)
    left, top = camera.geo_to_pixel(bounds.north, bounds.west, viewport)
    right, bottom = camera.geo_to_pixel(bounds.south, bounds.east, viewport)
    x = int(round(left))
    y = int(round(top))
    return (x, y, int(round(right)) - x, int(round(bottom)) - y)


def cell_at_pixel(
    pixel_x: float,
    pixel_y: float,
    camera: Camera,
    viewport: tuple[int, int, int, int],
) -> CellCoord:
    lat, lng = camera.pixel_to_geo(pixel_x, pixel_y, viewport)
    return latlng_to_cell(lat, lng, camera.cell_size)


def _viewport_tuple() -> tuple[int, int, int, int]:
    panel_x = WINDOW_SIZE[0] - PANEL_WIDTH - PANEL_MARGIN
    width = panel_x - (VIEWPORT_MARGIN * 2)
    return (VIEWPORT_MARGIN, VIEWPORT_MARGIN, width, WINDOW_SIZE[1] - (VIEWPORT_MARGIN * 2))


def _panel_tuple() -> tuple[int, int, int, int]:
    panel_x = WINDOW_SIZE[0] - PANEL_WIDTH - PANEL_MARGIN
    return (panel_x, PANEL_MARGIN, PANEL_WIDTH, WINDOW_SIZE[1] - (PANEL_MARGIN * 2))


def _wrap_text(text: str, font: Any, max_width: int) -> list[str]:
    words = text.split(" ")
    lines: list[str] = []
    current = words[0] if words else ""
    for word in words[1:]:
        candidate = f"{current} {word}"
        if font.size(candidate)[0] <= max_width:
            current = candidate
            continue
        lines.append(current)
        current = word
    lines.append(current)
    return lines


def _draw_cells(
    screen: Any,
    session: GameSession,
    layer: ActiveCellLayer,
    camera: Camera,
    label_font: Any,
    *,
    viewport: tuple[int, int, int, int],
) -> None:
    clip_rect = pygame.Rect(viewport)
    old_clip = screen.get_clip()
    screen.set_clip(clip_rect)
    pygame.draw.rect(screen, BACKGROUND_COLOR, clip_rect)
    for coord in sorted(layer.cells):
        value = layer.cells[coord]
        near = session.is_near_player(coord)
        fill, border, width = cell_style(value, near)
        rect = pygame.Rect(cell_pixel_rect(coord, camera, viewport))
        pygame.draw.rect(screen, fill, rect)
        pygame.draw.rect(screen, border, rect, width)
        if value > 0:
            label = label_font.render(str(value), True, (20, 20, 20))
            screen.blit(label, label.get_rect(center=rect.center))
    player_x, player_y = camera.geo_to_pixel(*cell_center(session.player, camera.cell_size), viewport)
    pygame.draw.circle(screen, (255, 255, 255), (int(player_x), int(player_y)), PLAYER_RADIUS)
    pygame.draw.circle(screen, (0, 0, 0), (int(player_x), int(player_y)), PLAYER_RADIUS, 2)
    screen.set_clip(old_clip)
    pygame.draw.rect(screen, (64, 68, 84), clip_rect, 1)


def _draw_panel(screen: Any, session: GameSession, font: Any, small_font: Any) -> None:
    panel_rect = pygame.Rect(_panel_tuple())
    pygame.draw.rect(screen, PANEL_COLOR, panel_rect)
    pygame.draw.rect(screen, PANEL_BORDER_COLOR, panel_rect, 1)

    lines = [
        "World of Bits",
        "",
        *session.status_lines(),
        "",
        f"cell=({session.player.i},{session.player.j}) mode={session.movement_mode.value}",
        f"changed cells={len(session.state.overrides)} active cells={len(session.active_cells)}",
        "",
        "WASD/arrows move one cell",
        "LMB use a nearby cell",
        "RMB drag pan | C recenter",
        "T toggle tracking | R reset | ESC quit",
    ]
    y = panel_rect.y + 10
    for index, line in enumerate(lines):
        current_font = font if index == 0 else small_font
        for wrapped in _wrap_text(line, current_font, panel_rect.width - 20):
            if y > panel_rect.bottom - 20:
                return
            screen.blit(current_font.render(wrapped, True, PANEL_TEXT_COLOR), (panel_rect.x + 10, y))
            y += current_font.get_linesize()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="worldofbits-viewer",
        description="Run the World of Bits pygame map viewer.",
    )
    parser.add_argument(
        "--rules-path",
        default=DEFAULT_RULES_PATH,
        help="Path to rules JSON (built-in defaults are used when the default file is absent).",
    )
    parser.add_argument(
        "--save-path",
        default=DEFAULT_SAVE_PATH,
        help="Snapshot JSON path; written after every change and loaded on startup.",
    )
    parser.add_argument(
        "--track-file",
        help="Position log (lat,lng per line) replayed as the tracked movement feed.",
    )
    parser.add_argument(
        "--track-interval",
        type=float,
        default=DEFAULT_FEED_INTERVAL_SECONDS,
        help="Seconds between replayed positions from --track-file.",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Force SDL dummy video driver for CI/testing and exit without opening a real window.",
    )
    return parser


def _env_flag_enabled(var_name: str) -> bool:
    return os.environ.get(var_name, "").strip().lower() in {"1", "true", "yes", "on"}


def _print_startup_banner() -> None:
    try:
        pygame_version = importlib.metadata.version("pygame")
    except importlib.metadata.PackageNotFoundError:
        pygame_version = "not-installed"
    print(
        f"{LOG_PREFIX} startup "
        f"python={platform.python_version()} "
        f"pygame={pygame_version} "
        f"platform={platform.platform()}"
    )
    for name in ("SDL_VIDEODRIVER", "SDL_AUDIODRIVER"):
        value = os.environ.get(name, "<unset>")
        print(f"{LOG_PREFIX} env {name}={value}")


def _ensure_pygame_imported() -> Any:
    global pygame
    if pygame is None:
        import pygame as pygame_module

        pygame = pygame_module
    return pygame


def _build_viewer_session(
    rules: GameRules,
    *,
    save_path: str,
    layer: ActiveCellLayer,
    track_file: str | None = None,
    track_interval: float = DEFAULT_FEED_INTERVAL_SECONDS,
) -> GameSession:
    session = GameSession.start(
        rules,
        gateway=PersistenceGateway(save_path),
        renderer=layer,
        feed_factory=position_feed_factory(track_file, interval_seconds=track_interval),
    )
    print(
        f"{LOG_PREFIX} session "
        f"save_path={save_path} "
        f"player={session.player.key()} "
        f"held={session.held_token} "
        f"overrides={len(session.state.overrides)} "
        f"mode={session.movement_mode.value} "
        f"session_hash={session_hash(session)}"
    )
    return session


def _handle_keydown(session: GameSession, camera: Camera, key: int) -> bool:
    """Apply a key press; returns False when the viewer should exit."""
    if key == pygame.K_ESCAPE:
        return False
    for key_name, direction in KEY_DIRECTIONS.items():
        if key == getattr(pygame, key_name):
            if session.step_direction(direction) is None and session.movement_mode == MovementMode.TRACKED:
                session.last_message = "Tracking is on; press T to move manually."
            return True
    if key == pygame.K_t:
        session.toggle_movement_mode()
    elif key == pygame.K_r:
        session.reset()
        camera.center_on(*session.player_center())
    elif key == pygame.K_c:
        camera.center_on(*session.player_center())
    return True


def run_pygame_viewer(
    rules_path: str | None = DEFAULT_RULES_PATH,
    *,
    save_path: str = DEFAULT_SAVE_PATH,
    headless: bool = False,
    track_file: str | None = None,
    track_interval: float = DEFAULT_FEED_INTERVAL_SECONDS,
) -> int:
    if headless:
        os.environ["SDL_VIDEODRIVER"] = "dummy"
        print(f"{LOG_PREFIX} warning: headless mode active; no window will open.")

    _print_startup_banner()

    try:
        rules = load_rules_or_default(rules_path)
    except (OSError, ValueError) as exc:
        print(f"{LOG_PREFIX} failed to load rules path={rules_path}: {exc}", file=sys.stderr)
        return 1

    pygame_module = _ensure_pygame_imported()
    try:
        pygame_module.init()
    except Exception as exc:
        print(
            f"{LOG_PREFIX} failed during pygame.init(): "
            f"{exc}. Hint: verify a working SDL video driver (set SDL_VIDEODRIVER=dummy for headless mode).",
            file=sys.stderr,
        )
        return 1

    layer = ActiveCellLayer()
    session = _build_viewer_session(
        rules,
        save_path=save_path,
        layer=layer,
        track_file=track_file,
        track_interval=track_interval,
    )

    try:
        pygame_module.display.set_caption("World of Bits")
        screen = pygame_module.display.set_mode(WINDOW_SIZE)
    except Exception as exc:
        print(
            f"{LOG_PREFIX} failed during pygame.display.set_mode(...): "
            f"{exc}. Hint: GUI sessions require a valid display; use --headless or WORLDOFBITS_HEADLESS=1.",
            file=sys.stderr,
        )
        session.shutdown()
        pygame_module.quit()
        return 1

    print(f"{LOG_PREFIX} display initialized: {pygame_module.display.get_driver()}, window size={WINDOW_SIZE}")

    viewport = _viewport_tuple()
    camera = Camera(*session.player_center(), cell_size=rules.cell_size)
    session.sync_viewport(camera.visible_window(viewport))

    if headless:
        session.shutdown()
        pygame_module.quit()
        return 0

    clock = pygame_module.time.Clock()
    font = pygame_module.font.SysFont("consolas", 22)
    small_font = pygame_module.font.SysFont("consolas", 16)
    label_font = pygame_module.font.SysFont("consolas", 15, bold=True)
    viewport_rect = pygame_module.Rect(viewport)
    session.last_message = "Use the movement keys to explore. Click nearby cells to collect and craft."

    last_player = session.player
    dragging = False
    running = True
    while running:
        clock.tick(FRAMES_PER_SECOND)

        for event in pygame_module.event.get():
            if event.type == pygame_module.QUIT:
                running = False
            elif event.type == pygame_module.KEYDOWN:
                running = _handle_keydown(session, camera, event.key)
            elif event.type == pygame_module.MOUSEBUTTONDOWN and viewport_rect.collidepoint(event.pos):
                if event.button == 1:
                    session.click_cell(cell_at_pixel(event.pos[0], event.pos[1], camera, viewport))
                elif event.button == 3:
                    dragging = True
            elif event.type == pygame_module.MOUSEBUTTONUP and event.button == 3:
                dragging = False
            elif event.type == pygame_module.MOUSEMOTION and dragging:
                camera.pan_pixels(event.rel[0], event.rel[1])

        session.pump()
        if session.player != last_player:
            last_player = session.player
            camera.center_on(*session.player_center())
        session.sync_viewport(camera.visible_window(viewport))

        screen.fill((17, 18, 25))
        _draw_cells(screen, session, layer, camera, label_font, viewport=viewport)
        _draw_panel(screen, session, font, small_font)
        pygame_module.display.flip()

    session.shutdown()
    pygame_module.quit()
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    headless = args.headless or _env_flag_enabled("WORLDOFBITS_HEADLESS")
    raise SystemExit(
        run_pygame_viewer(
            args.rules_path,
            save_path=args.save_path,
            headless=headless,
            track_file=args.track_file,
            track_interval=args.track_interval,
        )
    )


if __name__ == "__main__":
    main()
