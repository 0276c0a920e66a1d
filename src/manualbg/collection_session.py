# src/manualbg/collection_session.py
#
# 対話的なサンプル収集の状態機械
#   AWAITING_FIRST_SAMPLE -> COLLECTING -> READY
#   READY 後もサンプルの修正は可能（そのたびに全体を再計算）
#   on_reset / 画像の切り替えで AWAITING_FIRST_SAMPLE に戻る
#
# ホスト（matplotlib / streamlit 等）はクリックを画像座標に変換してから
# on_click を呼ぶ。結果はコールバックと ClickResult の両方で返す。

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from manualbg.config import CFG, Config
from manualbg.correct_background import build_background, correct
from manualbg.reconstruct_surface import preview_size, reconstruct_surface
from manualbg.sample_grid import VALUE_MAX, VALUE_MIN, InsufficientSamplesError, SampleGrid
from manualbg.sample_mean import sample_mean
from manualbg.sector_geometry import sector_index, sector_size
from manualbg.types import GridSetup, GridSize, Sample, SessionState


LogFn = Callable[[str], None]


@dataclass
class ClickResult:
    """
    Outcome of one on_click call.

    accepted: False when the click was rejected (grid untouched)
    sample: the sample written into the grid
    preview: low-res zero-filled surface while collecting
    background / corrected: full-res results once the grid is complete
    """
    state: SessionState
    accepted: bool
    sample: Optional[Sample] = None
    preview: Optional[np.ndarray] = None
    background: Optional[np.ndarray] = None
    corrected: Optional[np.ndarray] = None


@dataclass
class Correction:
    background: np.ndarray
    corrected: np.ndarray
    darkest_value: float


class CollectionSession:
    def __init__(
        self,
        cfg: Config = CFG,
        *,
        log: Optional[LogFn] = None,
        verbose: bool = True,
        on_setup: Optional[Callable[[GridSetup], None]] = None,
        preview_updated: Optional[Callable[[np.ndarray, int, int], None]] = None,
        background_ready: Optional[Callable[[np.ndarray], None]] = None,
        corrected_image_ready: Optional[Callable[[np.ndarray], None]] = None,
    ) -> None:
        self._size = GridSize(cfg.columns, cfg.rows)
        self._border = _check_border(cfg.pipette_border)
        self._preview_divisor = int(cfg.preview_divisor)

        self._log_fn = log
        self._verbose = bool(verbose)
        self._on_setup = on_setup
        self._preview_updated = preview_updated
        self._background_ready = background_ready
        self._corrected_image_ready = corrected_image_ready

        self.grid = SampleGrid(self._size.columns, self._size.rows)
        self.identity: Optional[str] = None
        self.state = SessionState.AWAITING_FIRST_SAMPLE
        self._image_shape: Optional[tuple] = None

    # ---- properties -----------------------------------------------------
    @property
    def columns(self) -> int:
        return self._size.columns

    @property
    def rows(self) -> int:
        return self._size.rows

    @property
    def border(self) -> int:
        return self._border

    # ---- inputs from the host -------------------------------------------
    def configure(self, columns: int, rows: int, border: int) -> None:
        """
        Set grid dimensions and pipette border for a new session.

        Validation happens before anything changes, so a rejected
        configuration leaves the running session as it was.
        """
        size = GridSize(int(columns), int(rows))
        b = _check_border(border)

        self._size = size
        self._border = b
        self.grid = SampleGrid(size.columns, size.rows)
        self.identity = None
        self._image_shape = None
        self.state = SessionState.AWAITING_FIRST_SAMPLE

    def on_reset(self) -> None:
        self._log(" - reset sample selection!")
        self.grid.reset()
        self.identity = None
        self._image_shape = None
        self.state = SessionState.AWAITING_FIRST_SAMPLE

    def on_click(self, image_identity: str, x: int, y: int, image: np.ndarray) -> ClickResult:
        img = np.asarray(image)
        if img.ndim != 2:
            raise ValueError(f"Expected a single-channel 2D image, got shape {img.shape}")
        height, width = img.shape

        # ----- brightness range (before any state change) -----
        lo, hi = float(np.nanmin(img)), float(np.nanmax(img))
        if lo < VALUE_MIN or hi > VALUE_MAX:
            self._log(
                f" ! WARNING: click ignored, image values {lo:g}..{hi:g} are outside "
                f"{VALUE_MIN:g}..{VALUE_MAX:g} (load the image with input_img to rescale)"
            )
            return ClickResult(state=self.state, accepted=False)

        if image_identity != self.identity or img.shape != self._image_shape:
            self._start(str(image_identity), width, height)

        # ----- sector -----
        try:
            sx, sy = sector_index(x, y, width, height, self.columns, self.rows)
        except ValueError as e:
            self._log(f" ! WARNING: click at {x} x {y} ignored ({e})")
            return ClickResult(state=self.state, accepted=False)

        # ----- sample -----
        value = sample_mean(img, x, y, self._border)
        sample = Sample(sector_x=sx, sector_y=sy, value=value, x=int(x), y=int(y))
        self.grid.set(sx, sy, value)
        self._log(
            f" - selected value {value:.2f} at image position {x} x {y} "
            f"in sector {sx + 1} x {sy + 1}"
        )

        if not self.grid.is_complete():
            mx, my = self.grid.missing_cells()[0]
            self._log(f"    still missing some values! e.g. sector {mx + 1} x {my + 1}")
            preview = self._update_preview(width, height)
            self.state = SessionState.COLLECTING
            return ClickResult(state=self.state, accepted=True, sample=sample, preview=preview)

        self._log(" - calculating correction background!!")
        result = self.compute_correction(img)
        self._log("    done creating background image")
        if self._background_ready is not None:
            self._background_ready(result.background)
        self._log("    done creating corrected image")
        if self._corrected_image_ready is not None:
            self._corrected_image_ready(result.corrected)
        self._log(" - done. Selections can still be changed to optimize the result.")

        self.state = SessionState.READY
        return ClickResult(
            state=self.state,
            accepted=True,
            sample=sample,
            background=result.background,
            corrected=result.corrected,
        )

    # ---- derived artifacts ----------------------------------------------
    def compute_correction(self, image: np.ndarray) -> Correction:
        """
        Full-resolution background and corrected image from the current grid.

        Runs on a snapshot of the grid. Raises InsufficientSamplesError while
        any sector is still missing.
        """
        img = np.asarray(image)
        height, width = img.shape[:2]
        grid = self.grid.snapshot()
        if not grid.is_complete():
            raise InsufficientSamplesError(
                f"{len(grid.missing_cells())} sector(s) still missing a sample"
            )

        surface = reconstruct_surface(grid, width, height, zero_fill_unset=False)
        darkest = grid.darkest_value()
        background = build_background(surface, darkest)
        corrected = correct(img, background)
        return Correction(background=background, corrected=corrected, darkest_value=darkest)

    def preview(self, width: int, height: int) -> np.ndarray:
        pw, ph = preview_size(width, height, self._preview_divisor)
        return reconstruct_surface(self.grid.snapshot(), pw, ph, zero_fill_unset=True)

    # ---- internals ------------------------------------------------------
    def _start(self, identity: str, width: int, height: int) -> None:
        self._log("--------------------------------------------------------")
        if self.identity is not None:
            self._log("Analysed image has changed. Reset sample selection...")
        else:
            self._log("Started manual background correction.")

        self.grid.reset()
        self.identity = identity
        self._image_shape = (height, width)
        self.state = SessionState.AWAITING_FIRST_SAMPLE

        sw, sh = sector_size(width, height, self.columns, self.rows)
        self._log(f" Analysing '{identity}'")
        self._log(f" Image dimensions: {width} x {height} px")
        self._log(f" using {self.columns} x {self.rows} sectors")
        self._log(f" sector dimensions: {sw} x {sh} px")
        self._log(
            " !select in all sectors a position, which is supposed to be "
            "the same phase with the same grey value!"
        )

        if self._on_setup is not None:
            self._on_setup(
                GridSetup(
                    image_identity=identity,
                    width=int(width),
                    height=int(height),
                    columns=self.columns,
                    rows=self.rows,
                    border=self._border,
                    sector_width=sw,
                    sector_height=sh,
                )
            )

    def _update_preview(self, width: int, height: int) -> np.ndarray:
        surface = self.preview(width, height)
        ph, pw = surface.shape
        if self._preview_updated is not None:
            self._preview_updated(surface, pw, ph)
        self._log("    done updating preview background image")
        return surface

    def _log(self, msg: str) -> None:
        if self._log_fn is not None:
            self._log_fn(msg)
        elif self._verbose:
            print(msg, flush=True)


def _check_border(border: int) -> int:
    b = int(border)
    if b < 1:
        raise ValueError(f"pipette border must be >= 1, got {border}")
    return b
