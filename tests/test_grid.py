import pytest

from worldofbits.sim.grid import (
    CellCoord,
    cell_bounds,
    cell_center,
    chebyshev_distance,
    floor_index,
    is_near,
    latlng_to_cell,
)

CELL_SIZE = 0.00025


@pytest.mark.parametrize(
    "value",
    [0.0, 0.00025, 0.0005, 0.00075, 0.001, 36.9914, -0.00025, -0.00075, -0.0001, -122.0609, 179.99999],
)
def test_cell_bounds_contain_the_point_they_were_computed_from(value: float) -> None:
    coord = latlng_to_cell(value, value, CELL_SIZE)
    bounds = cell_bounds(coord, CELL_SIZE)

    assert bounds.contains(value, value)


def test_floor_index_handles_edges_that_float_division_rounds_across() -> None:
    index = floor_index(0.00075, CELL_SIZE)

    assert index * CELL_SIZE <= 0.00075 < (index + 1) * CELL_SIZE
    assert index in {2, 3}


def test_negative_coordinates_floor_toward_negative_infinity() -> None:
    assert floor_index(-0.0001, CELL_SIZE) == -1
    assert floor_index(-0.0003, CELL_SIZE) == -2
    assert latlng_to_cell(-0.0001, 0.0001, CELL_SIZE) == CellCoord(-1, 0)


def test_cell_is_deterministic_for_same_point() -> None:
    assert latlng_to_cell(36.9914, -122.0609, CELL_SIZE) == latlng_to_cell(36.9914, -122.0609, CELL_SIZE)


def test_cell_center_maps_back_to_same_cell() -> None:
    coord = CellCoord(147965, -488244)
    lat, lng = cell_center(coord, CELL_SIZE)

    assert latlng_to_cell(lat, lng, CELL_SIZE) == coord


def test_chebyshev_distance_and_proximity() -> None:
    origin = CellCoord(0, 0)

    assert chebyshev_distance(origin, CellCoord(3, -2)) == 3
    assert chebyshev_distance(origin, CellCoord(-4, 1)) == 4
    assert is_near(CellCoord(3, 3), origin, 3)
    assert is_near(CellCoord(-3, 0), origin, 3)
    assert not is_near(CellCoord(4, 0), origin, 3)
    assert not is_near(CellCoord(0, -4), origin, 3)


def test_cell_coord_key_and_dict_round_trip() -> None:
    coord = CellCoord(-12, 40)

    assert coord.key() == "-12,40"
    assert CellCoord.from_key(coord.key()) == coord
    assert CellCoord.from_dict(coord.to_dict()) == coord
    assert coord.offset(1, -1) == CellCoord(-11, 39)
