# Path: src/manualbg/reconstruct_surface.py

from __future__ import annotations

from typing import Tuple

import numpy as np

from manualbg.sample_grid import SampleGrid, InsufficientSamplesError


def reconstruct_surface(
    grid: SampleGrid,
    out_width: int,
    out_height: int,
    zero_fill_unset: bool,
) -> np.ndarray:
    """
    サンプルグリッドから背景輝度面を再構成する（双一次補間）

    プレビュー（低解像度, zero_fill_unset=True）と最終背景（原寸,
    zero_fill_unset=False）は同じ関数で、出力サイズと未設定セルの扱いだけが違う。

    手順
    ----
    1) 仮想セクターサイズ sw = out_width // (columns-1) + 1,
       sh = out_height // (rows-1) + 1
       （columns 個のアンカーの間の columns-1 区間で画像を張る。
        各サンプルはセクターの左上アンカー点の値として扱う）
    2) アンカー i = x // sw, j = y // sh  （i <= columns-2, j <= rows-2）
    3) fx = (x - sw*i) / sw, fy = (y - sh*j) / sh  （どちらも [0,1)）
    4) 4つのアンカー値を双一次補間

    Parameters
    ----------
    grid : SampleGrid
    out_width, out_height : int
        出力解像度（px）
    zero_fill_unset : bool
        True: 未設定アンカーを 0 として扱う（収集途中のプレビュー用）
        False: 参加するアンカーはすべて設定済みであること

    Returns
    -------
    surface : float32 ndarray (out_height, out_width)

    Raises
    ------
    InsufficientSamplesError
        zero_fill_unset=False で未設定のアンカーが補間に参加する場合
    """
    w = int(out_width)
    h = int(out_height)
    if w < 1 or h < 1:
        raise ValueError(f"output size must be positive, got {w} x {h}")

    cols, rows = grid.columns, grid.rows
    values = grid.values
    is_set = grid.is_set

    # ----- anchor cell / fractional offset per axis -----
    sw = w // (cols - 1) + 1
    sh = h // (rows - 1) + 1

    xs = np.arange(w)
    ys = np.arange(h)
    i = np.minimum(xs // sw, cols - 2)
    j = np.minimum(ys // sh, rows - 2)
    fx = ((xs - sw * i) / float(sw))[None, :]
    fy = ((ys - sh * j) / float(sh))[:, None]

    # ----- unset anchors -----
    if zero_fill_unset:
        values = np.where(is_set, values, 0.0)
    else:
        used_i = np.unique(np.concatenate([i, i + 1]))
        used_j = np.unique(np.concatenate([j, j + 1]))
        used = is_set[np.ix_(used_i, used_j)]
        if not np.all(used):
            missing = [
                (int(used_i[a]), int(used_j[b])) for a, b in zip(*np.nonzero(~used))
            ]
            raise InsufficientSamplesError(
                f"Cannot reconstruct surface: anchors {missing} are not set"
            )

    # (h, w) lookups: values[i[x], j[y]]
    ii = i[None, :]
    jj = j[:, None]
    v00 = values[ii, jj]
    v10 = values[ii + 1, jj]
    v01 = values[ii, jj + 1]
    v11 = values[ii + 1, jj + 1]

    # ----- bilinear blend -----
    top = v00 * (1.0 - fx) + v10 * fx
    bot = v01 * (1.0 - fx) + v11 * fx
    surface = top * (1.0 - fy) + bot * fy

    return surface.astype(np.float32)


def preview_size(width: int, height: int, divisor: int) -> Tuple[int, int]:
    d = max(1, int(divisor))
    return max(1, int(width) // d), max(1, int(height) // d)
