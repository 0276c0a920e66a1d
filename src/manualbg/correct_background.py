# Path: src/manualbg/correct_background.py

from __future__ import annotations
import numpy as np


def build_background(surface: np.ndarray, darkest_value: float) -> np.ndarray:
    """
    背景画像（最暗サンプルからの超過輝度）

    surface から darkest_value を一律に引く。最も暗いサンプルの相が 0 付近になり、
    背景は「最暗の基準相より明るい分」だけを表す。
    ここではクランプしない（負値もそのまま）。クランプは correct() で行う。

    Parameters
    ----------
    surface : float ndarray (H, W)
        reconstruct_surface の出力
    darkest_value : float
        SampleGrid.darkest_value()

    Returns
    -------
    background : float32 ndarray (H, W)
    """
    s = np.asarray(surface, dtype=np.float32)
    return (s - np.float32(darkest_value)).astype(np.float32, copy=False)


def correct(source: np.ndarray, background: np.ndarray) -> np.ndarray:
    """
    背景補正（平坦化）

    result = clip(source - background, 0, 255)

    Parameters
    ----------
    source : ndarray (H, W)
        元画像（0-255 輝度）
    background : float ndarray (H, W)
        build_background の出力

    Returns
    -------
    corrected : float32 ndarray (H, W), [0, 255]
    """
    src = np.asarray(source, dtype=np.float32)
    bg = np.asarray(background, dtype=np.float32)

    if src.shape != bg.shape:
        raise ValueError(f"source {src.shape} and background {bg.shape} differ in shape")

    corrected = src - bg
    np.clip(corrected, 0.0, 255.0, out=corrected)
    return corrected
