# Path: config.py
# 役割: session / pipeline / app / scripts から参照される設定値を集約する

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Config:
    # ---- sector grid ----
    columns: int = 3  # x方向のセクター数（2以上）
    rows: int = 3     # y方向のセクター数（2以上）

    # ---- sample_mean ----
    pipette_border: int = 2  # クリック位置の周囲 2*border x 2*border px を平均する

    # ---- preview ----
    preview_divisor: int = 10  # プレビュー背景は元画像の 1/10 サイズで再構成

    # ---- output ----
    output_dir: str = "data/output"  # pipeline の出力先（背景・補正画像・used_config）

CFG = Config()
