from __future__ import annotations

import argparse
import statistics
import time
from dataclasses import dataclass
from typing import Callable, List

import numpy as np

from aim_kit import DetectionPipeline, FrameGeometry, NMSConfig, PipelineConfig, decode_candidates, nms


@dataclass(frozen=True)
class TimingSummary:
    n: int
    mean_ms: float
    p50_ms: float
    p95_ms: float


def _percentile(sorted_values: List[float], q: float) -> float:
    if not sorted_values:
        raise ValueError("No values provided.")
    pos = (q / 100.0) * (len(sorted_values) - 1)
    lo = int(np.floor(pos))
    hi = int(np.ceil(pos))
    t = pos - lo
    return float(sorted_values[lo] * (1.0 - t) + sorted_values[hi] * t)


def _time(fn: Callable[[], object], repeats: int, warmup: int) -> TimingSummary:
    for _ in range(warmup):
        fn()
    samples: List[float] = []
    for _ in range(repeats):
        t0 = time.perf_counter()
        fn()
        samples.append((time.perf_counter() - t0) * 1000.0)
    samples.sort()
    return TimingSummary(
        n=len(samples),
        mean_ms=float(statistics.fmean(samples)),
        p50_ms=_percentile(samples, 50.0),
        p95_ms=_percentile(samples, 95.0),
    )


def _synthetic_candidates(n: int, n_classes: int, input_size: int, seed: int) -> np.ndarray:
    # Raw layout: [cx, cy, w, h, score, class_id]
    rng = np.random.default_rng(seed)
    cxcy = rng.uniform(0, input_size, size=(n, 2))
    wh = rng.uniform(5, input_size / 6, size=(n, 2))
    scores = rng.uniform(0.0, 1.0, size=(n, 1))
    class_ids = rng.integers(0, n_classes, size=(n, 1)).astype(np.float64)
    return np.concatenate([cxcy, wh, scores, class_ids], axis=1).astype(np.float32)


def _format(label: str, s: TimingSummary) -> str:
    return f"{label}: n={s.n} mean={s.mean_ms:.3f}ms p50={s.p50_ms:.3f}ms p95={s.p95_ms:.3f}ms"


def main() -> int:
    parser = argparse.ArgumentParser(description="Model-free latency benchmark of NMS and the full detection cycle.")
    parser.add_argument("--candidates", type=int, default=8400, help="Number of synthetic raw candidates per frame.")
    parser.add_argument("--classes", type=int, default=1, help="Number of synthetic classes.")
    parser.add_argument("--imgsz", type=int, default=640, help="Model input size S.")
    parser.add_argument("--conf", type=float, default=0.25, help="Score threshold.")
    parser.add_argument("--iou", type=float, default=0.45, help="IoU threshold.")
    parser.add_argument("--max-det", type=int, default=100, help="Max detections kept after NMS.")
    parser.add_argument("--display", default="390x844", help="Viewport WIDTHxHEIGHT for the full cycle.")
    parser.add_argument("--repeats", type=int, default=200)
    parser.add_argument("--warmup", type=int, default=10)
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    if args.candidates < 1:
        raise ValueError("--candidates must be >= 1")
    if args.repeats < 1:
        raise ValueError("--repeats must be >= 1")
    disp_w, disp_h = (int(v) for v in args.display.lower().split("x", 1))

    raw = _synthetic_candidates(args.candidates, args.classes, args.imgsz, args.seed)
    config = PipelineConfig(
        score_threshold=args.conf,
        iou_threshold=args.iou,
        model_input_size=args.imgsz,
        max_outputs=args.max_det,
    )
    decoded = decode_candidates(raw, args.imgsz)
    nms_cfg: NMSConfig = config.nms_config()
    pipeline = DetectionPipeline(config)
    geometry = FrameGeometry(1920, 1080, disp_w, disp_h)

    print(_format("decode", _time(lambda: decode_candidates(raw, args.imgsz), args.repeats, args.warmup)))
    print(_format("nms", _time(lambda: nms(decoded.boxes, decoded.scores, nms_cfg), args.repeats, args.warmup)))
    print(_format("full_cycle", _time(lambda: pipeline.run(raw, geometry), args.repeats, args.warmup)))

    result = pipeline.run(raw, geometry)
    print(f"kept={len(result.detections)} chosen={result.chosen_index} candidates={args.candidates}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
