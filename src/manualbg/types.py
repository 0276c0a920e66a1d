# src/manualbg/types.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Tuple


Sector = Tuple[int, int]         # (sector_x, sector_y)


class SessionState(str, Enum):
    AWAITING_FIRST_SAMPLE = "awaiting_first_sample"
    COLLECTING = "collecting"
    READY = "ready"


@dataclass(frozen=True)
class GridSize:
    """
    Sector grid dimensions, fixed for one session.

    columns: sectors along x
    rows: sectors along y

    Both must be >= 2 so that every anchor has a right / lower neighbour
    during interpolation.
    """
    columns: int
    rows: int

    def __post_init__(self) -> None:
        if int(self.columns) < 2 or int(self.rows) < 2:
            raise ValueError(
                f"Grid needs at least 2 x 2 sectors, got {self.columns} x {self.rows}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {"columns": int(self.columns), "rows": int(self.rows)}


@dataclass(frozen=True)
class Sample:
    """
    One picked brightness sample.

    sector_x, sector_y: grid cell the click fell into
    value: mean brightness around the click (not rounded)
    x, y: clicked pixel in image coordinates
    """
    sector_x: int
    sector_y: int
    value: float
    x: int = -1
    y: int = -1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sector_x": int(self.sector_x),
            "sector_y": int(self.sector_y),
            "value": float(self.value),
            "x": int(self.x),
            "y": int(self.y),
        }


@dataclass(frozen=True)
class GridSetup:
    """
    Emitted once when a session starts on a new image.

    The host uses it to draw the sector overlay; sector_width / sector_height
    are the truncated band sizes (width // columns, height // rows).
    """
    image_identity: str
    width: int
    height: int
    columns: int
    rows: int
    border: int
    sector_width: int
    sector_height: int
