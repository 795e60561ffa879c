from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from worldofbits.sim.grid import CellCoord, latlng_to_cell

DEFAULT_CELL_SIZE = 0.00025
DEFAULT_INTERACTION_RADIUS = 3
DEFAULT_TARGET_VALUE = 32
DEFAULT_TOKEN_PROBABILITY = 0.18
DEFAULT_VIEWPORT_PADDING = 1
DEFAULT_START_LAT = 36.9914
DEFAULT_START_LNG = -122.0609


@dataclass(frozen=True)
class GameRules:
    """Tuning constants shared by every game-state component."""

    cell_size: float = DEFAULT_CELL_SIZE
    interaction_radius: int = DEFAULT_INTERACTION_RADIUS
    target_value: int = DEFAULT_TARGET_VALUE
    token_probability: float = DEFAULT_TOKEN_PROBABILITY
    viewport_padding: int = DEFAULT_VIEWPORT_PADDING
    start_lat: float = DEFAULT_START_LAT
    start_lng: float = DEFAULT_START_LNG

    def __post_init__(self) -> None:
        if isinstance(self.cell_size, bool) or not isinstance(self.cell_size, (int, float)) or self.cell_size <= 0:
            raise ValueError("cell_size must be a number > 0")
        if isinstance(self.interaction_radius, bool) or not isinstance(self.interaction_radius, int):
            raise ValueError("interaction_radius must be an integer")
        if self.interaction_radius < 0:
            raise ValueError("interaction_radius must be >= 0")
        if isinstance(self.target_value, bool) or not isinstance(self.target_value, int) or self.target_value < 1:
            raise ValueError("target_value must be an integer >= 1")
        if isinstance(self.token_probability, bool) or not isinstance(self.token_probability, (int, float)):
            raise ValueError("token_probability must be numeric")
        if self.token_probability < 0.0 or self.token_probability > 1.0:
            raise ValueError("token_probability must be within [0.0, 1.0]")
        if isinstance(self.viewport_padding, bool) or not isinstance(self.viewport_padding, int):
            raise ValueError("viewport_padding must be an integer")
        if self.viewport_padding < 0:
            raise ValueError("viewport_padding must be >= 0")
        for field_name in ("start_lat", "start_lng"):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{field_name} must be numeric")

    def start_cell(self) -> CellCoord:
        return latlng_to_cell(self.start_lat, self.start_lng, self.cell_size)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cell_size": self.cell_size,
            "interaction_radius": self.interaction_radius,
            "target_value": self.target_value,
            "token_probability": self.token_probability,
            "viewport_padding": self.viewport_padding,
            "start_lat": self.start_lat,
            "start_lng": self.start_lng,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameRules":
        if not isinstance(data, dict):
            raise ValueError("rules must be an object")
        known_fields = set(cls().to_dict())
        unknown = sorted(key for key in data if key not in known_fields)
        if unknown:
            raise ValueError(f"unknown rules fields: {unknown}")
        return cls(**data)
