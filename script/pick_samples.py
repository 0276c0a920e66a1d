# script/pick_samples.py
#
# matplotlib ウィンドウ上で各セクターをクリックして背景補正する
#   左クリック : サンプル取得
#   x          : リセット
#   w          : 補正画像・背景画像を保存（全セクター取得後）
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Dict, List

import numpy as np
import imageio.v3 as iio
import matplotlib.pyplot as plt

from manualbg.collection_session import CollectionSession
from manualbg.config import CFG, Config
from manualbg.input_img import input_img, to_uint8
from manualbg.types import GridSetup, SessionState


def _draw_grid(ax, setup: GridSetup) -> List:
    artists = []
    for k in range(1, setup.columns):
        artists.append(ax.axvline(k * setup.sector_width - 0.5, color="red", lw=0.8))
    for k in range(1, setup.rows):
        artists.append(ax.axhline(k * setup.sector_height - 0.5, color="red", lw=0.8))
    return artists


def main() -> None:
    ap = argparse.ArgumentParser(description="Manual background correction by picking samples")
    ap.add_argument("image", type=str)
    ap.add_argument("--columns", type=int, default=CFG.columns)
    ap.add_argument("--rows", type=int, default=CFG.rows)
    ap.add_argument("--border", type=int, default=CFG.pipette_border)
    ap.add_argument("--out-dir", type=str, default=CFG.output_dir)
    args = ap.parse_args()

    img_path = Path(args.image)
    img = input_img(img_path)
    h, w = img.shape
    title = img_path.name

    fig, (ax_img, ax_bg, ax_cor) = plt.subplots(1, 3, figsize=(15, 5))
    ax_img.imshow(img, cmap="gray", vmin=0, vmax=255)
    ax_img.set_title(title)
    ax_bg.set_title("Preview Background")
    ax_cor.set_title("(corrected)")
    for ax in (ax_img, ax_bg, ax_cor):
        ax.set_axis_off()

    grid_artists: List = []
    markers: List = []
    latest: Dict[str, np.ndarray] = {}

    def on_setup(setup: GridSetup) -> None:
        for a in grid_artists + markers:
            a.remove()
        grid_artists[:] = _draw_grid(ax_img, setup)
        markers.clear()

    def on_preview(surface: np.ndarray, pw: int, ph: int) -> None:
        ax_bg.clear()
        ax_bg.imshow(surface, cmap="gray", vmin=0, vmax=255, extent=(0, w, h, 0))
        ax_bg.set_title(f"Preview Background ({pw} x {ph})")
        ax_bg.set_axis_off()

    def on_background(bg: np.ndarray) -> None:
        latest["background"] = bg
        ax_bg.clear()
        ax_bg.imshow(bg, cmap="gray")
        ax_bg.set_title(f"Background of {title}")
        ax_bg.set_axis_off()

    def on_corrected(cor: np.ndarray) -> None:
        latest["corrected"] = cor
        ax_cor.clear()
        ax_cor.imshow(cor, cmap="gray", vmin=0, vmax=255)
        ax_cor.set_title(f"{title} (corrected)")
        ax_cor.set_axis_off()

    cfg = Config(
        columns=args.columns,
        rows=args.rows,
        pipette_border=args.border,
        preview_divisor=CFG.preview_divisor,
        output_dir=args.out_dir,
    )
    session = CollectionSession(
        cfg,
        on_setup=on_setup,
        preview_updated=on_preview,
        background_ready=on_background,
        corrected_image_ready=on_corrected,
    )

    def on_press(event) -> None:
        if event.inaxes is not ax_img or event.button != 1:
            return
        if event.xdata is None or event.ydata is None:
            return
        x = int(round(event.xdata))
        y = int(round(event.ydata))
        if not (0 <= x < w and 0 <= y < h):
            return
        res = session.on_click(title, x, y, img)
        if res.accepted:
            markers.extend(ax_img.plot([x], [y], "r+", ms=10))
        fig.canvas.draw_idle()

    def on_key(event) -> None:
        if event.key == "x":
            session.on_reset()
            for a in grid_artists + markers:
                a.remove()
            grid_artists.clear()
            markers.clear()
            latest.clear()
            for ax in (ax_bg, ax_cor):
                ax.clear()
                ax.set_axis_off()
            fig.canvas.draw_idle()
        elif event.key == "w":
            if session.state != SessionState.READY:
                print(" - not all sectors picked yet, nothing saved", flush=True)
                return
            out_dir = Path(args.out_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            p_bg = out_dir / f"{img_path.stem}__background.tif"
            p_cor = out_dir / f"{img_path.stem}__corrected.tif"
            iio.imwrite(p_bg, to_uint8(latest["background"]))
            iio.imwrite(p_cor, to_uint8(latest["corrected"]))
            print(f" - saved {p_bg} and {p_cor}", flush=True)

    fig.canvas.mpl_connect("button_press_event", on_press)
    fig.canvas.mpl_connect("key_press_event", on_key)
    plt.tight_layout()
    plt.show()


if __name__ == "__main__":
    main()
