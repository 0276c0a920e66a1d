import numpy as np
import pytest

from manualbg.collection_session import CollectionSession
from manualbg.config import Config
from manualbg.sample_grid import InsufficientSamplesError
from manualbg.types import GridSetup, SessionState


W, H = 90, 60
CENTERS = [(15, 15), (45, 15), (75, 15), (15, 45), (45, 45), (75, 45)]


@pytest.fixture
def image():
    # brightness ramp along x: 50 .. 94.5
    xs = np.arange(W, dtype=np.float32)
    return np.tile(50.0 + 0.5 * xs, (H, 1))


class Recorder:
    def __init__(self):
        self.logs = []
        self.setups = []
        self.previews = []
        self.backgrounds = []
        self.corrected = []

    def session(self, **cfg_kw):
        cfg = Config(**{"columns": 3, "rows": 2, "pipette_border": 2, "preview_divisor": 10, **cfg_kw})
        return CollectionSession(
            cfg,
            log=self.logs.append,
            on_setup=self.setups.append,
            preview_updated=lambda s, w, h: self.previews.append((s, w, h)),
            background_ready=self.backgrounds.append,
            corrected_image_ready=self.corrected.append,
        )


@pytest.fixture
def rec():
    return Recorder()


def test_initial_state(rec):
    s = rec.session()
    assert s.state == SessionState.AWAITING_FIRST_SAMPLE
    assert s.identity is None
    assert s.grid.n_set == 0


def test_first_click_starts_session_and_updates_preview(rec, image):
    s = rec.session()
    res = s.on_click("img-a", 15, 15, image)

    assert res.accepted
    assert res.state == SessionState.COLLECTING
    assert s.state == SessionState.COLLECTING
    assert s.identity == "img-a"
    assert res.sample.sector_x == 0 and res.sample.sector_y == 0
    # x window 13..16
    assert res.sample.value == pytest.approx(50.0 + 0.5 * 14.5)

    assert rec.setups == [
        GridSetup(
            image_identity="img-a",
            width=W,
            height=H,
            columns=3,
            rows=2,
            border=2,
            sector_width=30,
            sector_height=30,
        )
    ]
    assert len(rec.previews) == 1
    surface, pw, ph = rec.previews[0]
    assert (pw, ph) == (9, 6)
    assert surface.shape == (6, 9)
    assert res.preview is surface
    assert rec.backgrounds == [] and rec.corrected == []
    assert any("Started" in m for m in rec.logs)
    assert any("still missing" in m for m in rec.logs)


def test_full_grid_produces_background_and_corrected(rec, image):
    s = rec.session()
    for x, y in CENTERS[:-1]:
        assert s.on_click("img-a", x, y, image).state == SessionState.COLLECTING
    res = s.on_click("img-a", *CENTERS[-1], image)

    assert res.state == SessionState.READY
    assert s.grid.is_complete()
    assert len(rec.setups) == 1
    assert len(rec.backgrounds) == 1 and len(rec.corrected) == 1

    bg = rec.backgrounds[0]
    cor = rec.corrected[0]
    assert bg.shape == (H, W) and cor.shape == (H, W)
    assert res.corrected is cor
    assert cor.min() >= 0.0
    assert bg[0, 0] == pytest.approx(0.0, abs=1e-4)
    # ramp is partly flattened
    assert cor.std() < image.std()


def test_refining_after_ready_recomputes(rec, image):
    s = rec.session()
    for x, y in CENTERS:
        s.on_click("img-a", x, y, image)
    first = s.grid.get(1, 0)

    res = s.on_click("img-a", 55, 20, image)
    assert res.state == SessionState.READY
    assert s.grid.is_complete()
    assert s.grid.get(1, 0) != first
    assert len(rec.corrected) == 2


def test_reclick_overwrites_sector(rec, image):
    s = rec.session()
    s.on_click("img-a", 10, 10, image)
    s.on_click("img-a", 20, 20, image)
    assert s.grid.n_set == 1
    assert s.grid.get(0, 0) == pytest.approx(50.0 + 0.5 * 19.5)


def test_identity_change_resets_grid(rec, image):
    s = rec.session()
    s.on_click("img-a", 15, 15, image)
    s.on_click("img-a", 45, 15, image)
    s.on_click("img-b", 75, 45, image)

    assert s.identity == "img-b"
    assert s.grid.n_set == 1
    assert s.grid.get(2, 1) is not None
    assert len(rec.setups) == 2
    assert any("changed" in m for m in rec.logs)


def test_shape_change_resets_grid(rec, image):
    s = rec.session()
    s.on_click("img-a", 15, 15, image)
    s.on_click("img-a", 15, 15, image[:, :60])
    assert s.grid.n_set == 1
    assert len(rec.setups) == 2
    assert rec.setups[-1].width == 60


def test_out_of_range_click_is_ignored(rec, image):
    s = rec.session()
    s.on_click("img-a", 15, 15, image)
    before = s.grid.values
    res = s.on_click("img-a", W, 10, image)

    assert not res.accepted
    assert res.state == SessionState.COLLECTING
    assert np.array_equal(s.grid.values, before)
    assert any("WARNING" in m for m in rec.logs)


def test_reset(rec, image):
    s = rec.session()
    s.on_click("img-a", 15, 15, image)
    s.on_reset()
    assert s.state == SessionState.AWAITING_FIRST_SAMPLE
    assert s.identity is None
    assert s.grid.n_set == 0

    s.on_click("img-a", 15, 15, image)
    assert len(rec.setups) == 2


def test_configure(rec, image):
    s = rec.session()
    s.on_click("img-a", 15, 15, image)
    s.configure(2, 2, 1)
    assert (s.columns, s.rows, s.border) == (2, 2, 1)
    assert (s.grid.columns, s.grid.rows) == (2, 2)
    assert s.state == SessionState.AWAITING_FIRST_SAMPLE

    for x, y in [(10, 10), (80, 10), (10, 50)]:
        s.on_click("img-a", x, y, image)
    assert s.on_click("img-a", 80, 50, image).state == SessionState.READY


@pytest.mark.parametrize("columns, rows, border", [(1, 3, 2), (3, 1, 2), (3, 3, 0)])
def test_invalid_configure_keeps_session(rec, image, columns, rows, border):
    s = rec.session()
    s.on_click("img-a", 15, 15, image)
    with pytest.raises(ValueError):
        s.configure(columns, rows, border)
    assert (s.columns, s.rows, s.border) == (3, 2, 2)
    assert s.grid.n_set == 1
    assert s.state == SessionState.COLLECTING


def test_invalid_config_at_construction():
    with pytest.raises(ValueError):
        CollectionSession(Config(columns=1))


def test_compute_correction_needs_complete_grid(rec, image):
    s = rec.session()
    s.on_click("img-a", 15, 15, image)
    with pytest.raises(InsufficientSamplesError):
        s.compute_correction(image)


def test_compute_correction_is_rederivable(rec, image):
    s = rec.session()
    for x, y in CENTERS:
        s.on_click("img-a", x, y, image)
    again = s.compute_correction(image)
    assert np.array_equal(again.corrected, rec.corrected[-1])
    assert again.darkest_value == s.grid.darkest_value()


def test_colour_image_rejected(rec):
    s = rec.session()
    with pytest.raises(ValueError):
        s.on_click("img-a", 5, 5, np.zeros((H, W, 3)))


def test_default_log_prints(image, capsys):
    s = CollectionSession(Config(columns=3, rows=2))
    s.on_click("img-a", 15, 15, image)
    assert "Started manual background correction." in capsys.readouterr().out


def test_quiet_session(image, capsys):
    s = CollectionSession(Config(columns=3, rows=2), verbose=False)
    s.on_click("img-a", 15, 15, image)
    assert capsys.readouterr().out == ""


def test_image_outside_brightness_range_is_rejected_untouched(rec, image):
    s = rec.session()
    s.on_click("img-a", 15, 15, image)
    before = s.grid.values

    raw16 = np.full((H, W), 1000, dtype=np.uint16)
    res = s.on_click("img-b", 15, 15, raw16)

    assert not res.accepted
    assert res.state == SessionState.COLLECTING
    assert s.identity == "img-a"
    assert np.array_equal(s.grid.values, before)
    assert len(rec.setups) == 1
    assert any("outside" in m and "WARNING" in m for m in rec.logs)


def test_rejected_range_on_fresh_session_does_not_start_it(rec):
    s = rec.session()
    res = s.on_click("img-a", 15, 15, np.full((H, W), 1000, dtype=np.uint16))
    assert not res.accepted
    assert s.state == SessionState.AWAITING_FIRST_SAMPLE
    assert s.identity is None
    assert rec.setups == []
