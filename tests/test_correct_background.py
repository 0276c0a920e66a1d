import numpy as np
import pytest

from manualbg.correct_background import build_background, correct
from manualbg.reconstruct_surface import reconstruct_surface
from manualbg.sample_grid import SampleGrid


def test_correction_clamps_at_zero():
    out = correct(np.array([[30]], dtype=np.uint8), np.array([[50.0]]))
    assert out[0, 0] == 0.0


def test_correction_subtracts():
    src = np.array([[100, 200], [50, 0]], dtype=np.uint8)
    bg = np.array([[10.0, 0.0], [49.5, 0.0]], dtype=np.float32)
    out = correct(src, bg)
    assert out.dtype == np.float32
    assert np.allclose(out, [[90.0, 200.0], [0.5, 0.0]])


def test_correction_stays_in_range():
    rng = np.random.default_rng(1)
    src = rng.integers(0, 256, (40, 30)).astype(np.uint8)
    bg = rng.uniform(-50, 300, (40, 30))
    out = correct(src, bg)
    assert out.min() >= 0.0
    assert out.max() <= 255.0


def test_correction_shape_mismatch():
    with pytest.raises(ValueError):
        correct(np.zeros((4, 4)), np.zeros((4, 5)))


def test_background_is_not_clamped():
    bg = build_background(np.array([[10.0, 30.0]]), 20.0)
    assert np.allclose(bg, [[-10.0, 10.0]])


def test_darkest_anchor_maps_to_zero():
    g = SampleGrid(3, 3)
    for i in range(3):
        for j in range(3):
            g.set(i, j, 100 + 10 * i + 5 * j)
    g.set(1, 1, 60)

    w, h = 100, 80
    bg = build_background(reconstruct_surface(g, w, h, zero_fill_unset=False), g.darkest_value())

    sw = w // 2 + 1
    sh = h // 2 + 1
    anchors = [bg[sh * j, sw * i] for i in range(2) for j in range(2)]
    assert min(anchors) == pytest.approx(0.0, abs=1e-4)
    assert bg.min() >= -1e-4
