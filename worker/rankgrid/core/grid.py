"""Sampling grid construction around a business location."""

import logging
import math
from typing import Any, List, Sequence

from rankgrid.models import Coordinate, GridCell

logger = logging.getLogger(__name__)

# WGS-84 equatorial radius.
EARTH_RADIUS_METERS = 6378137.0
DEFAULT_GRID_SIZE = 5
DEFAULT_SPACING_METERS = 804.672  # half a mile


def validate_grid_size(value: Any) -> int:
    """Coerce operator input into an odd positive grid dimension."""
    if isinstance(value, bool):
        raise ValueError("grid size must be an odd positive integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError("grid size must be an odd positive integer")
        value = int(value)
    try:
        size = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("grid size must be an odd positive integer") from exc
    if size < 1 or size % 2 == 0:
        raise ValueError("grid size must be an odd positive integer")
    return size


def build_grid(center: Coordinate, grid_size: int, spacing_meters: float) -> List[GridCell]:
    """Return ``grid_size**2`` cells around ``center`` in row-major order.

    Rows step north/south by ``spacing_meters``; columns step east/west by the
    same ground distance, which needs the ``cos(latitude)`` correction so the
    grid stays square away from the equator. The center cell sits at
    ``row == col == grid_size // 2`` and equals ``center`` exactly.
    """
    if not center.is_valid():
        raise ValueError(f"center coordinate out of range: {center}")
    if spacing_meters <= 0:
        raise ValueError("spacing_meters must be positive")

    half = grid_size // 2
    lat_step = math.degrees(spacing_meters / EARTH_RADIUS_METERS)
    lng_step = math.degrees(
        spacing_meters / (EARTH_RADIUS_METERS * math.cos(math.radians(center.latitude)))
    )

    cells: List[GridCell] = []
    for r in range(-half, half + 1):
        for c in range(-half, half + 1):
            coordinate = Coordinate(
                latitude=center.latitude + r * lat_step,
                longitude=center.longitude + c * lng_step,
            )
            cells.append(GridCell(row=r + half, col=c + half, coordinate=coordinate))

    logger.debug(
        "Built %dx%d grid around %s (spacing=%.1fm, lat_step=%.6f, lng_step=%.6f)",
        grid_size,
        grid_size,
        center.as_location(),
        spacing_meters,
        lat_step,
        lng_step,
    )
    return cells


def center_index(cells: Sequence[GridCell]) -> int:
    return len(cells) // 2
