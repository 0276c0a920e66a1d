# Path: src/manualbg/pipeline.py
#
# クリック座標の列を CollectionSession に流して、背景補正を一括で実行する
#
# 入出力フォルダ（project root）
#   data/input          : 生画像
#   data/output         : 背景画像・補正画像・used_config.json
#
# 注意:
# ・座標は画像 px（整数）、(x, y) の順
# ・設定値は config.py の CFG から供給（引数で上書き可）

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import json
import time

import imageio.v3 as iio
import numpy as np

from manualbg.collection_session import ClickResult, CollectionSession
from manualbg.config import CFG, Config
from manualbg.input_img import input_img, to_uint8
from manualbg.types import Sample, SessionState

Point = Tuple[int, int]  # (x, y)


def run_pipeline(
    img_path: str | Path,
    points: Sequence[Point],
    *,
    columns: Optional[int] = None,
    rows: Optional[int] = None,
    border: Optional[int] = None,
    out_dir: str | Path | None = None,
    out_tag: Optional[str] = None,
    save_output: bool = True,
    verbose: bool = True,
) -> Dict[str, Any]:
    """
    画像1枚に対して、指定したクリック列を順に適用する。
    全セクターが埋まれば背景・補正画像を、埋まらなければプレビュー背景を保存する。
    """
    t_all0 = time.perf_counter()

    def log(msg: str) -> None:
        if verbose:
            print(msg, flush=True)

    def step_begin(name: str) -> float:
        log(f"[BEGIN] {name}")
        return time.perf_counter()

    def step_end(name: str, t0: float, extra: str = "") -> None:
        dt = time.perf_counter() - t0
        if extra:
            log(f"[END]   {name}  {dt:.3f}s  {extra}")
        else:
            log(f"[END]   {name}  {dt:.3f}s")

    img_path = Path(img_path)
    tag = out_tag.strip() if isinstance(out_tag, str) and out_tag.strip() else img_path.stem
    out_dir = Path(out_dir) if out_dir is not None else Path(CFG.output_dir)

    cfg = Config(
        columns=int(columns) if columns is not None else CFG.columns,
        rows=int(rows) if rows is not None else CFG.rows,
        pipette_border=int(border) if border is not None else CFG.pipette_border,
        preview_divisor=CFG.preview_divisor,
        output_dir=str(out_dir),
    )

    # ---- 1) 画像の読み込み ----
    t0 = step_begin("1) input_img")
    img = input_img(img_path)
    step_end("1) input_img", t0, extra=f"shape={tuple(img.shape)} dtype={img.dtype}")

    # ---- 2) サンプル収集 ----
    t0 = step_begin("2) collect samples")
    session = CollectionSession(cfg, log=log)
    samples: List[Sample] = []
    last: Optional[ClickResult] = None
    n_rejected = 0
    for x, y in points:
        res = session.on_click(tag, int(x), int(y), img)
        if not res.accepted:
            n_rejected += 1
            continue
        samples.append(res.sample)
        last = res
    step_end(
        "2) collect samples",
        t0,
        extra=f"clicks={len(points)} rejected={n_rejected} grid={session.grid!r}",
    )

    complete = session.state == SessionState.READY
    # the last accepted click of a complete grid already carries the full-res result
    correction = last if complete else None
    saved: Dict[str, str] = {}

    # ---- 3) 保存 ----
    if save_output:
        t0 = step_begin("3) save_output")
        out_dir.mkdir(parents=True, exist_ok=True)

        if correction is not None:
            saved.update(
                _save_correction(out_dir, tag, correction.background, correction.corrected)
            )
        elif session.grid.n_set > 0:
            p_prev = out_dir / f"{tag}__preview.tif"
            iio.imwrite(p_prev, to_uint8(session.preview(img.shape[1], img.shape[0])))
            saved["preview_tif"] = str(p_prev)

        p_cfg = out_dir / f"{tag}__used_config.json"
        _save_used_config(p_cfg, cfg, session, points, samples)
        saved["used_config_json"] = str(p_cfg)
        step_end("3) save_output", t0, extra=f"n_files={len(saved)}")

    dt_all = time.perf_counter() - t_all0
    log(f"[DONE] pipeline total {dt_all:.3f}s")

    return {
        "img_path": str(img_path),
        "tag": tag,
        "state": session.state.value,
        "complete": bool(complete),
        "n_samples": int(session.grid.n_set),
        "missing_sectors": [[int(i), int(j)] for i, j in session.grid.missing_cells()],
        "darkest_value": float(session.grid.darkest_value()) if session.grid.n_set else None,
        "n_rejected": int(n_rejected),
        "saved": saved,
        "background": correction.background if correction is not None else None,
        "corrected": correction.corrected if correction is not None else None,
    }


def _save_correction(
    out_dir: Path,
    tag: str,
    background: np.ndarray,
    corrected: np.ndarray,
) -> Dict[str, str]:
    out: Dict[str, str] = {}

    p_bg = out_dir / f"{tag}__background.tif"
    p_cor = out_dir / f"{tag}__corrected.tif"
    iio.imwrite(p_bg, to_uint8(background))
    iio.imwrite(p_cor, to_uint8(corrected))
    out["background_tif"] = str(p_bg)
    out["corrected_tif"] = str(p_cor)

    return out


def _save_used_config(
    path: Path,
    cfg: Config,
    session: CollectionSession,
    points: Sequence[Point],
    samples: Sequence[Sample],
) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)

    clicks: List[List[int]] = [[int(x), int(y)] for x, y in points]
    payload = {
        "used_config": asdict(cfg),
        "state": session.state.value,
        "grid_size": session.grid.size.to_dict(),
        "clicks": clicks,
        "samples": [s.to_dict() for s in samples],
        "grid": session.grid.to_dict(),
    }

    with path.open("w", encoding="utf-8") as fp:
        json.dump(payload, fp, ensure_ascii=False, indent=2)
