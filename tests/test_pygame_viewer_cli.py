from pathlib import Path

import pytest

from worldofbits.cli.pygame_viewer import (
    FAR_BORDER_COLOR,
    NEAR_BORDER_COLOR,
    ActiveCellLayer,
    Camera,
    _build_parser,
    _build_viewer_session,
    _viewport_tuple,
    blend,
    cell_at_pixel,
    cell_pixel_rect,
    cell_style,
)
from worldofbits.sim.grid import CellCoord, cell_center
from worldofbits.sim.rules import GameRules

RULES = GameRules(token_probability=1.0)


def test_viewer_parser_defaults() -> None:
    args = _build_parser().parse_args([])

    assert args.rules_path == "content/rules/default_rules.json"
    assert args.save_path == "saves/world_of_bits.json"
    assert args.track_file is None
    assert args.track_interval == 1.0
    assert args.headless is False


def test_viewer_parser_accepts_tracking_options() -> None:
    args = _build_parser().parse_args(["--track-file", "walk.csv", "--track-interval", "0.25", "--save-path", "dev.json"])

    assert args.track_file == "walk.csv"
    assert args.track_interval == 0.25
    assert args.save_path == "dev.json"


def test_camera_pixel_round_trip_and_cell_hit() -> None:
    viewport = _viewport_tuple()
    coord = CellCoord(147965, -488244)
    camera = Camera(*cell_center(coord, RULES.cell_size), cell_size=RULES.cell_size)
    x, y, width, height = viewport

    assert cell_at_pixel(x + width / 2, y + height / 2, camera, viewport) == coord
    assert cell_at_pixel(x + width / 2 + camera.cell_pixels, y + height / 2, camera, viewport) == coord.offset(0, 1)
    assert cell_at_pixel(x + width / 2, y + height / 2 - camera.cell_pixels, camera, viewport) == coord.offset(1, 0)
    lat, lng = camera.pixel_to_geo(*camera.geo_to_pixel(camera.lat + 0.001, camera.lng - 0.002, viewport), viewport)
    assert lat == pytest.approx(camera.lat + 0.001)
    assert lng == pytest.approx(camera.lng - 0.002)


def test_camera_pan_moves_visible_window() -> None:
    viewport = _viewport_tuple()
    camera = Camera(0.0, 0.0, cell_size=RULES.cell_size)
    before = camera.visible_window(viewport)

    camera.pan_pixels(-camera.cell_pixels, 0)

    after = camera.visible_window(viewport)
    assert after.west == pytest.approx(before.west + RULES.cell_size)
    assert after.north == pytest.approx(before.north)


def test_cell_pixel_rect_is_one_cell_wide() -> None:
    viewport = _viewport_tuple()
    camera = Camera(0.0, 0.0, cell_size=RULES.cell_size)

    _, _, width, height = cell_pixel_rect(CellCoord(0, 0), camera, viewport)

    assert abs(width - camera.cell_pixels) <= 1
    assert abs(height - camera.cell_pixels) <= 1


def test_active_cell_layer_only_refreshes_active_cells() -> None:
    layer = ActiveCellLayer()
    layer.activate(CellCoord(0, 0), 1)

    layer.refresh(CellCoord(0, 0), 0)
    layer.refresh(CellCoord(5, 5), 4)
    layer.deactivate(CellCoord(9, 9))

    assert layer.cells == {CellCoord(0, 0): 0}


def test_cell_style_distinguishes_near_cells_and_tokens() -> None:
    token_fill, near_border, near_width = cell_style(2, near=True)
    empty_fill, far_border, far_width = cell_style(0, near=False)

    assert near_border == NEAR_BORDER_COLOR and near_width == 2
    assert far_border == FAR_BORDER_COLOR and far_width == 1
    assert token_fill != empty_fill
    assert blend((0, 0, 0), (200, 100, 50), 0.5) == (100, 50, 25)
    assert blend((0, 0, 0), (200, 100, 50), 3.0) == (200, 100, 50)


def test_viewer_session_feeds_layer_from_viewport(tmp_path: Path, capsys) -> None:
    layer = ActiveCellLayer()
    session = _build_viewer_session(RULES, save_path=str(tmp_path / "save.json"), layer=layer)
    camera = Camera(*session.player_center(), cell_size=RULES.cell_size)

    session.sync_viewport(camera.visible_window(_viewport_tuple()))
    session.click_cell(session.player.offset(1, 0))

    assert set(layer.cells) == set(session.active_cells)
    assert layer.cells[session.player.offset(1, 0)] == 0
    assert "[worldofbits.viewer] session" in capsys.readouterr().out
    session.shutdown()


def test_main_help_prints_usage_without_starting_viewer(capsys: pytest.CaptureFixture[str]) -> None:
    from worldofbits.cli.pygame_viewer import main

    with pytest.raises(SystemExit) as result:
        main(["--help"])

    captured = capsys.readouterr()
    assert result.value.code == 0
    assert "usage:" in captured.out
    assert "--headless" in captured.out


def test_main_headless_mode_exits_cleanly_and_warns(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    from worldofbits.cli.pygame_viewer import main

    monkeypatch.setenv("SDL_VIDEODRIVER", "dummy")
    with pytest.raises(SystemExit) as result:
        main(["--headless", "--save-path", str(tmp_path / "save.json")])

    captured = capsys.readouterr()
    assert result.value.code == 0
    assert "headless mode active" in captured.out
    assert "[worldofbits.viewer] startup" in captured.out


def test_main_reports_bad_rules_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    from worldofbits.cli.pygame_viewer import main

    rules_path = tmp_path / "rules.json"
    rules_path.write_text('{"schema_version": 1, "rules": {"cell_size": -1}}', encoding="utf-8")

    with pytest.raises(SystemExit) as result:
        main(["--headless", "--rules-path", str(rules_path), "--save-path", str(tmp_path / "save.json")])

    assert result.value.code == 1
    assert "failed to load rules" in capsys.readouterr().err
