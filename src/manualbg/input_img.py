# Path: src/manualbg/input_img.py
from __future__ import annotations

from pathlib import Path
from typing import Union

import numpy as np
import imageio.v3 as iio

PathLike = Union[str, Path]


def input_img(img_path: PathLike) -> np.ndarray:
    """
    画像を読み込み、グレースケールの float32（0.0-255.0 の輝度）で返す。
    以後の処理（サンプル値・背景・補正画像）はすべてこの 0-255 スケール。
    """
    arr = iio.imread(str(Path(img_path)))
    gray = _to_grayscale(arr)
    return _scale_to_255(gray, np.asarray(arr).dtype)


def to_uint8(img: np.ndarray) -> np.ndarray:
    return np.clip(np.asarray(img, dtype=np.float32), 0, 255).astype(np.uint8)


def _to_grayscale(arr: np.ndarray) -> np.ndarray:
    x = np.asarray(arr)

    if x.ndim == 2:
        return x

    if x.ndim == 3 and x.shape[2] in (3, 4):
        rgb = x[..., :3].astype(np.float32, copy=False)
        return 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]

    raise ValueError(f"Unsupported image shape: {x.shape}")


def _scale_to_255(x: np.ndarray, src_dtype: np.dtype) -> np.ndarray:
    a = np.asarray(x)

    if src_dtype == np.bool_:
        return a.astype(np.float32) * 255.0

    # integer source: rescale from the dtype range
    if np.issubdtype(src_dtype, np.integer):
        info = np.iinfo(src_dtype)
        return (a.astype(np.float32) * (255.0 / float(info.max))).astype(np.float32, copy=False)

    # float source: 0-1 -> x255, 0-255 as is, otherwise min-max
    a2 = a.astype(np.float32, copy=False)
    mn = float(np.nanmin(a2))
    mx = float(np.nanmax(a2))
    if mn >= 0.0 and mx <= 1.0:
        return a2 * 255.0
    if mn >= 0.0 and mx <= 255.0:
        return a2
    if mx <= mn:
        return np.zeros_like(a2, dtype=np.float32)
    return (a2 - mn) / (mx - mn) * 255.0
