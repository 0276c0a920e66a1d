# src/manualbg/sample_grid.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

import numpy as np

from manualbg.types import GridSize, Sector


UNSET = -1.0  # below any valid brightness

VALUE_MIN = 0.0
VALUE_MAX = 255.0


class InsufficientSamplesError(ValueError):
    """Raised when a computation needs samples the grid does not hold yet."""


class SampleGrid:
    """
    Sparse columns x rows matrix of picked brightness samples.

    values[sector_x, sector_y] holds the mean brightness picked in that
    sector, or UNSET. Cells only change through set() / reset().
    """

    def __init__(self, columns: int, rows: int) -> None:
        self._size = GridSize(int(columns), int(rows))
        self._values = np.full((self._size.columns, self._size.rows), UNSET, dtype=np.float64)

    # ---- shape ----------------------------------------------------------
    @property
    def size(self) -> GridSize:
        return self._size

    @property
    def columns(self) -> int:
        return self._size.columns

    @property
    def rows(self) -> int:
        return self._size.rows

    # ---- mutation -------------------------------------------------------
    def reset(self, columns: Optional[int] = None, rows: Optional[int] = None) -> None:
        """Unset every cell; resize first when new dimensions are given."""
        if columns is not None or rows is not None:
            self._size = GridSize(
                int(columns) if columns is not None else self._size.columns,
                int(rows) if rows is not None else self._size.rows,
            )
            self._values = np.empty((self._size.columns, self._size.rows), dtype=np.float64)
        self._values.fill(UNSET)

    def set(self, sector_x: int, sector_y: int, value: float) -> None:
        sx, sy = self._check_cell(sector_x, sector_y)
        v = float(value)
        if not (VALUE_MIN <= v <= VALUE_MAX):
            raise ValueError(f"sample value {v} is outside [{VALUE_MIN}, {VALUE_MAX}]")
        self._values[sx, sy] = v

    # ---- queries --------------------------------------------------------
    def get(self, sector_x: int, sector_y: int) -> Optional[float]:
        sx, sy = self._check_cell(sector_x, sector_y)
        v = float(self._values[sx, sy])
        return None if v == UNSET else v

    @property
    def is_set(self) -> np.ndarray:
        return self._values != UNSET

    @property
    def values(self) -> np.ndarray:
        return self._values.copy()

    @property
    def n_set(self) -> int:
        return int(np.count_nonzero(self.is_set))

    def is_complete(self) -> bool:
        return bool(np.all(self.is_set))

    def missing_cells(self) -> List[Sector]:
        """Unset cells, column by column (sector_x outer, sector_y inner)."""
        return [
            (int(i), int(j))
            for i in range(self.columns)
            for j in range(self.rows)
            if self._values[i, j] == UNSET
        ]

    def darkest_value(self) -> float:
        """Minimum over set cells only."""
        mask = self.is_set
        if not np.any(mask):
            raise InsufficientSamplesError("No samples picked yet; darkest value is undefined")
        return float(np.min(self._values[mask]))

    def snapshot(self) -> "SampleGrid":
        g = SampleGrid(self.columns, self.rows)
        g._values = self._values.copy()
        return g

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": int(self.columns),
            "rows": int(self.rows),
            "values": [
                [None if v == UNSET else float(v) for v in self._values[i]]
                for i in range(self.columns)
            ],
        }

    def _check_cell(self, sector_x: int, sector_y: int) -> Sector:
        sx, sy = int(sector_x), int(sector_y)
        if not (0 <= sx < self.columns and 0 <= sy < self.rows):
            raise IndexError(
                f"sector ({sx}, {sy}) outside {self.columns} x {self.rows} grid"
            )
        return sx, sy

    def __repr__(self) -> str:
        return f"SampleGrid({self.columns}x{self.rows}, set={self.n_set}/{self.columns * self.rows})"
