# src/manualbg/sector_geometry.py
from __future__ import annotations

from typing import Tuple


def sector_index(
    x: int,
    y: int,
    width: int,
    height: int,
    columns: int,
    rows: int,
) -> Tuple[int, int]:
    """
    Map an image pixel to the sector (grid cell) it belongs to.

    Each axis is split into `count` contiguous bands of `dimension // count`
    px. The sector index is the smallest i >= 1 with band * i > coordinate,
    minus one. Pixels left over by the integer truncation at the far edge
    belong to the last sector.

    Raises
    ------
    ValueError
        coordinate outside [0, dimension), or image smaller than the grid
    """
    sx = _band_index(int(x), int(width), int(columns), "x")
    sy = _band_index(int(y), int(height), int(rows), "y")
    return sx, sy


def sector_size(width: int, height: int, columns: int, rows: int) -> Tuple[int, int]:
    return int(width) // int(columns), int(height) // int(rows)


def display_to_image(
    x_disp: float,
    y_disp: float,
    display_width: int,
    width: int,
    height: int,
) -> Tuple[int, int]:
    """
    Scale a click on a downscaled display of the image back to image pixels
    (aspect ratio kept, so one factor for both axes). Clamped into the image.
    """
    scale = float(width) / float(display_width)
    x = min(int(width) - 1, max(0, int(x_disp * scale)))
    y = min(int(height) - 1, max(0, int(y_disp * scale)))
    return x, y


def _band_index(coord: int, dimension: int, count: int, axis: str) -> int:
    if count < 1:
        raise ValueError(f"sector count along {axis} must be positive, got {count}")
    if not (0 <= coord < dimension):
        raise ValueError(f"{axis}={coord} is outside the image (0..{dimension - 1})")

    band = dimension // count
    if band == 0:
        raise ValueError(
            f"image {axis}-dimension {dimension}px is smaller than {count} sectors"
        )

    return min(coord // band, count - 1)
