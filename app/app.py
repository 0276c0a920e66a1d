# app/app.py
import sys
from pathlib import Path
import tempfile
import hashlib

import numpy as np
import streamlit as st
import imageio.v3 as iio
from PIL import Image
from streamlit_image_coordinates import streamlit_image_coordinates

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from manualbg.config import CFG, Config
from manualbg.collection_session import CollectionSession
from manualbg.input_img import input_img, to_uint8
from manualbg.sector_geometry import display_to_image, sector_size
from manualbg.types import SessionState

st.set_page_config(layout="wide")
st.title("Manual Background Correction GUI")


def _file_id_from_bytes(b: bytes) -> str:
    return hashlib.sha1(b).hexdigest()[:12]


def _new_session(columns: int, rows: int, border: int) -> CollectionSession:
    log_lines = []
    st.session_state.log_lines = log_lines
    cfg = Config(
        columns=int(columns),
        rows=int(rows),
        pipette_border=int(border),
        preview_divisor=CFG.preview_divisor,
        output_dir=CFG.output_dir,
    )
    return CollectionSession(cfg, log=log_lines.append)


def draw_with_grid(img: np.ndarray, columns: int, rows: int, picks) -> np.ndarray:
    h, w = img.shape
    sw, sh = sector_size(w, h, columns, rows)
    canvas = np.repeat(to_uint8(img)[..., None], 3, axis=2)
    red = np.array([255, 0, 0], dtype=np.uint8)
    for k in range(1, columns):
        canvas[:, k * sw, :] = red
    for k in range(1, rows):
        canvas[k * sh, :, :] = red
    # picks as small crosses
    arm = max(2, min(w, h) // 100)
    for (x, y) in picks:
        canvas[y, max(0, x - arm):min(w, x + arm + 1), :] = red
        canvas[max(0, y - arm):min(h, y + arm + 1), x, :] = red
    return canvas


# ----------------------------
# Session state (for fixed layout)
# ----------------------------
if "file_id" not in st.session_state:
    st.session_state.file_id = None
if "session" not in st.session_state:
    st.session_state.session = None
if "picks" not in st.session_state:
    st.session_state.picks = []
if "log_lines" not in st.session_state:
    st.session_state.log_lines = []
if "last_coords" not in st.session_state:
    st.session_state.last_coords = None

# ----------------------------
# Sidebar: file uploader at top
# ----------------------------
st.sidebar.header("Input")
uploaded = st.sidebar.file_uploader(
    "Drag & drop here, or Browse file",
    type=["tif", "tiff", "png", "jpg", "jpeg"],
)

# ----------------------------
# Sidebar: parameters (all number inputs)
# ----------------------------
st.sidebar.header("Calculation parameters")

columns = int(
    st.sidebar.number_input(
        "**sector count in x direction:**",
        value=int(CFG.columns),
        min_value=2,
        step=1,
    )
)
rows = int(
    st.sidebar.number_input(
        "**sector count in y direction:**",
        value=int(CFG.rows),
        min_value=2,
        step=1,
    )
)
border = int(
    st.sidebar.number_input(
        "**pipette border:**  \n mean over 2*border x 2*border px around the pick",
        value=int(CFG.pipette_border),
        min_value=1,
        step=1,
    )
)

sidebar_disabled = uploaded is None

st.sidebar.markdown("---")
st.sidebar.header("Pick samples")
st.sidebar.write("Click the source image: one position per sector, all on the same phase.")
display_width = int(
    st.sidebar.slider("display width (px)", 300, 1600, 800, disabled=sidebar_disabled)
)
reset_button = st.sidebar.button("Reset selection", disabled=sidebar_disabled)

# ----------------------------
# Main: fixed layout placeholders (always rendered)
# ----------------------------
blank_gray = np.zeros((400, 400), dtype=np.uint8)

u1, u2 = st.columns(2)
with u1:
    st.write("Source with sector grid")
    source_ph = st.container()
with u2:
    st.write("Preview Background")
    preview_ph = st.image(blank_gray)

l1, l2 = st.columns(2)
with l1:
    st.write("Background")
    background_ph = st.image(blank_gray)
with l2:
    st.write("Corrected")
    corrected_ph = st.image(blank_gray)

st.write("Log")
log_ph = st.empty()

if uploaded is None:
    log_ph.text("")
    st.stop()

# ----------------------------
# With file: prepare temp path
# ----------------------------
file_bytes = uploaded.getvalue()
file_id = _file_id_from_bytes(file_bytes)
identity = f"{uploaded.name} [{file_id}]"

tmpdir = tempfile.TemporaryDirectory()
tmp_path = Path(tmpdir.name) / uploaded.name
tmp_path.write_bytes(file_bytes)
img = input_img(tmp_path)
tmpdir.cleanup()

session = st.session_state.session

if session is None:
    session = _new_session(columns, rows, border)
    st.session_state.session = session

# new parameters -> new session (grid size is fixed per session)
if (session.columns, session.rows, session.border) != (columns, rows, border):
    session.configure(columns, rows, border)
    st.session_state.picks = []

# new image -> samples belong to the old one
if st.session_state.file_id != file_id:
    st.session_state.file_id = file_id
    session.on_reset()
    st.session_state.picks = []

if reset_button:
    session.on_reset()
    st.session_state.picks = []

# ----------------------------
# Clickable source (display coords -> image px)
# ----------------------------
h, w = img.shape
disp_w = min(display_width, w)
with source_ph:
    coords = streamlit_image_coordinates(
        Image.fromarray(draw_with_grid(img, columns, rows, st.session_state.picks)),
        key=f"source_click_{file_id}",
        width=disp_w,
    )

# the widget keeps returning the last click on every rerun
if coords is not None and coords != st.session_state.last_coords:
    st.session_state.last_coords = coords
    x, y = display_to_image(coords["x"], coords["y"], disp_w, w, h)
    res = session.on_click(identity, x, y, img)
    if res.accepted:
        st.session_state.picks.append((x, y))
        st.rerun()

# ----------------------------
# Render
# ----------------------------

if session.grid.n_set > 0:
    preview_ph.image(to_uint8(session.preview(img.shape[1], img.shape[0])))

if session.state == SessionState.READY:
    result = session.compute_correction(img)
    background_ph.image(to_uint8(result.background))
    corrected_ph.image(to_uint8(result.corrected))
    st.download_button(
        "Download corrected image (png)",
        data=iio.imwrite("<bytes>", to_uint8(result.corrected), extension=".png"),
        file_name=f"{Path(uploaded.name).stem}__corrected.png",
    )

log_ph.text("\n".join(st.session_state.log_lines[-30:]))
