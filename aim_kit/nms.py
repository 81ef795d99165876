from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .errors import CoordinateSpaceError, MalformedInputError
from .types import Detection


@dataclass(frozen=True)
class NMSConfig:
    score_threshold: float
    iou_threshold: float = 0.45
    max_outputs: int = 100

    def __post_init__(self) -> None:
        if not math.isfinite(self.score_threshold) or not 0.0 <= self.score_threshold <= 1.0:
            raise ValueError("score_threshold must be within [0, 1]")
        if not math.isfinite(self.iou_threshold) or not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be within [0, 1]")
        if isinstance(self.max_outputs, bool) or int(self.max_outputs) != self.max_outputs or self.max_outputs < 1:
            raise ValueError("max_outputs must be an integer >= 1")


def _corners(boxes_xywh: np.ndarray):
    x1 = boxes_xywh[:, 0]
    y1 = boxes_xywh[:, 1]
    x2 = x1 + boxes_xywh[:, 2]
    y2 = y1 + boxes_xywh[:, 3]
    # Area from the corners (not w*h) so that IoU(a, a) is exactly 1.
    areas = (x2 - x1) * (y2 - y1)
    return x1, y1, x2, y2, areas


def _iou_one_to_many(i: int, rest: np.ndarray, x1, y1, x2, y2, areas) -> np.ndarray:
    xx1 = np.maximum(x1[i], x1[rest])
    yy1 = np.maximum(y1[i], y1[rest])
    xx2 = np.minimum(x2[i], x2[rest])
    yy2 = np.minimum(y2[i], y2[rest])

    inter = np.maximum(0.0, xx2 - xx1) * np.maximum(0.0, yy2 - yy1)
    union = areas[i] + areas[rest] - inter
    out = np.zeros_like(inter)
    np.divide(inter, union, out=out, where=union > 0)
    return out


def box_iou(box_xywh: Sequence[float], boxes_xywh: np.ndarray) -> np.ndarray:
    """
    IoU of one (x, y, w, h) box against each row of an (N, 4) array.
    """

    head = np.asarray(box_xywh, dtype=np.float64).reshape(1, 4)
    stacked = np.vstack([head, np.asarray(boxes_xywh, dtype=np.float64).reshape(-1, 4)])
    x1, y1, x2, y2, areas = _corners(stacked)
    return _iou_one_to_many(0, np.arange(1, stacked.shape[0]), x1, y1, x2, y2, areas)


def iou(a: Detection, b: Detection) -> float:
    """
    Intersection over union of two same-space detections. Symmetric; 0 when
    the boxes do not overlap or both have zero area.
    """

    if a.space is not b.space:
        raise CoordinateSpaceError(f"Cannot compare a {a.space} box with a {b.space} box.")
    return float(box_iou(a.as_xywh(), np.asarray([b.as_xywh()]))[0])


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Greedy NumPy NMS. Expects boxes shape (N, 4) as x, y, w, h and scores (N,).

    Drops scores below `cfg.score_threshold`, orders by score (ties by lower
    index), then repeatedly keeps the head and removes every remaining box
    whose IoU with it exceeds `cfg.iou_threshold`. Returns kept indices in
    descending-score order.
    """

    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    if boxes.shape[0] != scores.shape[0]:
        raise MalformedInputError(f"boxes ({boxes.shape[0]}) and scores ({scores.shape[0]}) length mismatch")

    candidates = np.flatnonzero(scores >= cfg.score_threshold)
    if candidates.size == 0:
        return np.empty((0,), dtype=np.int64)

    # Stable sort on the negated score keeps equal scores in index order.
    order = candidates[np.argsort(-scores[candidates], kind="stable")]
    x1, y1, x2, y2, areas = _corners(boxes)
    keep: List[int] = []

    while order.size > 0 and len(keep) < cfg.max_outputs:
        i = order[0]
        keep.append(int(i))
        rest = order[1:]
        overlap = _iou_one_to_many(i, rest, x1, y1, x2, y2, areas)
        order = rest[overlap <= cfg.iou_threshold]

    return np.asarray(keep, dtype=np.int64)


def batched_nms(boxes: np.ndarray, scores: np.ndarray, class_ids: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Per-class NMS; kept indices of all classes merged by descending score
    (ties by lower index) and truncated to `cfg.max_outputs`.
    """

    class_ids = np.asarray(class_ids).reshape(-1)
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)

    kept: List[int] = []
    for cls in np.unique(class_ids):
        idx = np.flatnonzero(class_ids == cls)
        keep_local = nms(boxes[idx], scores[idx], cfg)
        kept.extend(idx[keep_local].tolist())

    if not kept:
        return np.empty((0,), dtype=np.int64)

    kept_arr = np.asarray(kept, dtype=np.int64)
    order = np.lexsort((kept_arr, -scores[kept_arr]))
    return kept_arr[order][: cfg.max_outputs]


class NonMaxSuppressor:
    """
    Detection-level front end for `nms` / `batched_nms`.
    """

    def __init__(self, cfg: NMSConfig, *, class_agnostic: bool = True):
        self.cfg = cfg
        self.class_agnostic = class_agnostic

    def keep_indices(self, boxes: np.ndarray, scores: np.ndarray, class_ids: Optional[np.ndarray] = None) -> np.ndarray:
        if self.class_agnostic or class_ids is None:
            return nms(boxes, scores, self.cfg)
        return batched_nms(boxes, scores, class_ids, self.cfg)

    def suppress(self, detections: Sequence[Detection]) -> List[Detection]:
        if not detections:
            return []
        space = detections[0].space
        for det in detections:
            if det.space is not space:
                raise CoordinateSpaceError("All detections passed to suppress() must share one coordinate space.")

        boxes = np.asarray([d.as_xywh() for d in detections], dtype=np.float64)
        scores = np.asarray([d.score for d in detections], dtype=np.float64)
        class_ids = np.asarray([d.class_id for d in detections], dtype=np.int64)
        keep = self.keep_indices(boxes, scores, class_ids)
        return [detections[int(i)] for i in keep]
