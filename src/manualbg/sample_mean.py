# Path: src/manualbg/sample_mean.py

from __future__ import annotations
import numpy as np


def sample_mean(image: np.ndarray, x: int, y: int, border: int = 2) -> float:
    """
    クリック位置周辺の平均輝度（ピペット）

    窓は [x-border, x+border-1] x [y-border, y+border-1]
    （各軸 2*border px、クリック位置に対して非対称）

    端の扱い
    --------
    画像外にはみ出す座標は画像内にクランプする（端の画素を繰り返す）。
    端の近くをクリックしても失敗せず、窓の画素数は常に (2*border)^2。

    Parameters
    ----------
    image : 2D ndarray (height, width)
    x, y : int
        クリック位置（画像座標）
    border : int
        1以上

    Returns
    -------
    mean : float
        丸めない（量子化を重ねないため）
    """
    img = np.asarray(image)
    if img.ndim != 2:
        raise ValueError(f"Expected a single-channel 2D image, got shape {img.shape}")

    b = int(border)
    if b < 1:
        raise ValueError(f"border must be >= 1, got {border}")

    h, w = img.shape
    xs = np.clip(np.arange(int(x) - b, int(x) + b), 0, w - 1)
    ys = np.clip(np.arange(int(y) - b, int(y) + b), 0, h - 1)

    window = img[np.ix_(ys, xs)].astype(np.float64, copy=False)
    return float(window.mean())
