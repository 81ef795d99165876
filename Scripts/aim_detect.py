from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import cv2

from aim_kit import (
    CandidateLayout,
    DetectionPipeline,
    FrameGeometry,
    PipelineConfig,
    crop_native,
    load_class_names,
    load_infer_fn,
    load_pipeline_config,
    to_model_input,
)


def _parse_size(value: str) -> Tuple[int, int]:
    try:
        w, h = value.lower().split("x", 1)
        size = int(w), int(h)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected WIDTHxHEIGHT, got {value!r}") from exc
    if size[0] <= 0 or size[1] <= 0:
        raise argparse.ArgumentTypeError("Display size must be positive")
    return size


def _collect_cli_dests(parser: argparse.ArgumentParser, argv: Sequence[str]) -> set[str]:
    dests: set[str] = set()
    for opt, action in parser._option_string_actions.items():
        if any(arg == opt or arg.startswith(f"{opt}=") for arg in argv):
            dests.add(action.dest)
    return dests


def _build_config(args: argparse.Namespace, cli_dests: set[str]) -> PipelineConfig:
    overrides = {
        "score_threshold": args.conf,
        "iou_threshold": args.iou,
        "model_input_size": args.imgsz,
        "max_outputs": args.max_det,
        "layout": CandidateLayout(args.layout),
        "channels_first": args.channels_first,
        "class_agnostic": not args.per_class_nms,
    }
    dest_for = {
        "score_threshold": "conf",
        "iou_threshold": "iou",
        "model_input_size": "imgsz",
        "max_outputs": "max_det",
        "layout": "layout",
        "channels_first": "channels_first",
        "class_agnostic": "per_class_nms",
    }

    if args.config:
        base = load_pipeline_config(Path(args.config))
        values = {key: getattr(base, key) for key in overrides}
        for key, value in overrides.items():
            if dest_for[key] in cli_dests:
                values[key] = value
        return PipelineConfig(**values)

    if args.conf is None:
        raise ValueError("--conf is required (or set score_threshold via --config).")
    return PipelineConfig(**overrides)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Run one aim-and-capture detection cycle on an image and print the chosen object."
    )
    parser.add_argument("--image", required=True, help="Path to an input image (native frame).")
    parser.add_argument("--model", required=True, help="Path to a detector (.onnx / .torchscript / .pt).")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / torchscript.")
    parser.add_argument("--metadata", default=None, help="Optional class metadata file (names mapping).")
    parser.add_argument("--config", default=None, help="Pipeline config JSON; CLI flags win over its values.")
    parser.add_argument(
        "--display",
        type=_parse_size,
        default=None,
        help="Viewport size WIDTHxHEIGHT (default: native size, i.e. no crop).",
    )
    parser.add_argument("--conf", type=float, default=None, help="Score threshold (required unless in --config).")
    parser.add_argument("--iou", type=float, default=0.45, help="IoU threshold for NMS.")
    parser.add_argument("--imgsz", type=int, default=640, help="Model input size S (S x S).")
    parser.add_argument("--max-det", type=int, default=100, help="Max detections kept after NMS.")
    parser.add_argument(
        "--layout",
        default=CandidateLayout.AUTO.value,
        choices=[m.value for m in CandidateLayout],
        help="Raw candidate column layout.",
    )
    parser.add_argument("--channels-first", action="store_true", help="Raw output is (C, N) instead of (N, C).")
    parser.add_argument("--per-class-nms", action="store_true", help="Use per-class NMS (default is class-agnostic).")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--out", default=None, help="Optional path to save the native-frame crop of the chosen object.")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...).")

    argv = list(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = _build_config(args, _collect_cli_dests(parser, argv))
    class_names = load_class_names(args.metadata) if args.metadata else {}

    img = cv2.imread(args.image)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {args.image}")
    h, w = img.shape[:2]
    disp_w, disp_h = args.display if args.display else (w, h)
    geometry = FrameGeometry.for_frame(img.shape, disp_w, disp_h)

    onnx_providers = None
    if args.onnx_providers:
        onnx_providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]
    infer = load_infer_fn(
        args.model,
        backend=args.backend,
        onnx_providers=onnx_providers,
        expected_input_size=config.model_input_size,
    )

    pipeline = DetectionPipeline(config, class_names=class_names)
    raw = infer(to_model_input(img, config.model_input_size))
    result = pipeline.run(raw, geometry)

    if result.error is not None:
        print(f"ERROR: {result.error}")
        return 2

    for idx, det in enumerate(result.detections):
        marker = "*" if idx == result.chosen_index else " "
        x, y, bw, bh = det.as_xywh()
        print(f"{marker} [{idx}] {pipeline.label_for(det)} display=({x:.1f}, {y:.1f}, {bw:.1f}, {bh:.1f})")

    if not result.can_capture:
        print("No object in view; capture disabled.")
        return 0

    print(f"Capture region (native x0, y0, x1, y1): {result.capture_region()}")
    if args.out:
        crop = crop_native(img, result)
        if crop is None or not cv2.imwrite(args.out, crop):
            raise RuntimeError(f"Failed to write crop: {args.out}")
        print(f"Wrote crop: {args.out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
