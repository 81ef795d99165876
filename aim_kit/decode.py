from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Union

import numpy as np

from .errors import MalformedInputError
from .types import ModelDetection


ArrayLike = Union[np.ndarray, Sequence[Sequence[float]], Sequence[float]]

# cx, cy, w, h beyond this multiple of the model input size are malformed
MAX_EXTENT_FACTOR = 4.0


class CandidateLayout(str, Enum):
    """
    Column layout of one raw candidate row (model-input pixels for the box).
    """

    AUTO = "auto"
    # [cx, cy, w, h, score]  (single class, class id 0)
    SCORE_ONLY = "score_only"
    # [cx, cy, w, h, score, class_id]
    SCORE_CLASS = "score_class"
    # [cx, cy, w, h, objectness, p0, ..., pK-1]  (YOLOv5/v7 style); score = max(p)
    OBJECTNESS_PROBS = "objectness_probs"
    # same columns, score = objectness * max(p)
    OBJECTNESS_WEIGHTED = "objectness_weighted"
    # [cx, cy, w, h, p0, ..., pK-1]  (YOLOv8 style, no objectness)
    CLASS_PROBS = "class_probs"


def resolve_layout(layout: CandidateLayout, num_columns: int) -> CandidateLayout:
    layout = CandidateLayout(layout)
    if layout is CandidateLayout.AUTO:
        if num_columns == 5:
            return CandidateLayout.SCORE_ONLY
        if num_columns == 6:
            return CandidateLayout.SCORE_CLASS
        if num_columns > 6:
            return CandidateLayout.OBJECTNESS_PROBS
        raise MalformedInputError(f"Candidate rows need at least 5 columns, got {num_columns}.")

    required = {
        CandidateLayout.SCORE_ONLY: 5,
        CandidateLayout.SCORE_CLASS: 6,
        CandidateLayout.OBJECTNESS_PROBS: 6,
        CandidateLayout.OBJECTNESS_WEIGHTED: 6,
        CandidateLayout.CLASS_PROBS: 5,
    }[layout]
    if num_columns < required:
        raise MalformedInputError(f"Layout {layout.value!r} needs at least {required} columns, got {num_columns}.")
    if layout is CandidateLayout.SCORE_CLASS and num_columns != 6:
        raise MalformedInputError(f"Layout 'score_class' needs exactly 6 columns, got {num_columns}.")
    return layout


@dataclass(frozen=True)
class DecodedCandidates:
    """
    Vectorised decode result in model-input space.

    boxes: (N, 4) float64 as x, y, width, height (top-left + size)
    scores: (N,) float64 in [0, 1]; malformed rows carry 0
    class_ids: (N,) int64
    """

    boxes: np.ndarray
    scores: np.ndarray
    class_ids: np.ndarray
    input_size: int

    def __len__(self) -> int:
        return int(self.scores.shape[0])

    def detection(self, index: int) -> ModelDetection:
        x, y, w, h = self.boxes[index]
        return ModelDetection(
            x=float(x),
            y=float(y),
            width=float(w),
            height=float(h),
            score=float(self.scores[index]),
            class_id=int(self.class_ids[index]),
        )

    def to_detections(self, indices: Optional[Sequence[int]] = None) -> List[ModelDetection]:
        if indices is None:
            indices = range(len(self))
        return [self.detection(int(i)) for i in indices]

    @classmethod
    def empty(cls, input_size: int) -> "DecodedCandidates":
        return cls(
            boxes=np.zeros((0, 4), dtype=np.float64),
            scores=np.zeros((0,), dtype=np.float64),
            class_ids=np.zeros((0,), dtype=np.int64),
            input_size=input_size,
        )


def as_candidate_matrix(preds: ArrayLike, *, channels_first: bool = False) -> np.ndarray:
    """
    Normalise raw model output to a 2-D float64 (N, C) matrix.

    Accepts (N, C) or a batch of one (1, N, C). With `channels_first=True`
    the per-image matrix is (C, N) and is transposed (YOLOv8 exports emit
    e.g. 84 x 8400).
    """

    if preds is None:
        raise MalformedInputError("Raw model output is missing.")
    try:
        p = np.asarray(preds, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise MalformedInputError(f"Raw model output is not numeric: {exc}") from exc

    if p.ndim == 3:
        if p.shape[0] != 1:
            raise MalformedInputError(f"Batch > 1 is not supported (got shape {p.shape}). Pass one frame at a time.")
        p = p[0]
    if p.ndim == 1 and p.size == 0:
        return p.reshape((0, 0))
    if p.ndim != 2:
        raise MalformedInputError(f"Expected a 2-D candidate tensor (N, 5 + K), got shape {p.shape}.")
    if channels_first:
        p = p.T
    return p


def decode_candidates(
    preds: ArrayLike,
    input_size: int,
    *,
    layout: CandidateLayout = CandidateLayout.AUTO,
    num_classes: Optional[int] = None,
    channels_first: bool = False,
) -> DecodedCandidates:
    """
    Decode every raw candidate row into model-space boxes, scores and class ids.

    Center-size rows become corner-size boxes (x = cx - w/2, y = cy - h/2).
    Probability layouts use argmax (lowest index wins ties) for the class and
    the winning probability as score; only OBJECTNESS_WEIGHTED multiplies it
    by the objectness column.
    Rows with negative size, non-finite values, a box coordinate beyond
    MAX_EXTENT_FACTOR * input_size, an invalid class id or a score outside
    [0, 1] keep score 0 so the score threshold removes them.
    """

    if input_size <= 0:
        raise MalformedInputError(f"input_size must be > 0 (got {input_size})")

    p = as_candidate_matrix(preds, channels_first=channels_first)
    if p.shape[0] == 0:
        return DecodedCandidates.empty(input_size)

    resolved = resolve_layout(layout, p.shape[1])
    n = p.shape[0]
    rows = np.arange(n)

    with np.errstate(invalid="ignore", over="ignore"):
        finite = np.isfinite(p).all(axis=1)
        cx, cy, w, h = p[:, 0], p[:, 1], p[:, 2], p[:, 3]
        limit = MAX_EXTENT_FACTOR * float(input_size)
        geom_ok = (
            np.isfinite(p[:, :4]).all(axis=1)
            & (w >= 0)
            & (h >= 0)
            & (np.abs(p[:, :4]) <= limit).all(axis=1)
        )

        if resolved is CandidateLayout.SCORE_ONLY:
            scores = p[:, 4].copy()
            class_ids = np.zeros((n,), dtype=np.int64)
            class_ok = np.ones((n,), dtype=bool)
        elif resolved is CandidateLayout.SCORE_CLASS:
            scores = p[:, 4].copy()
            raw_cls = p[:, 5]
            class_ok = (raw_cls >= 0) & (raw_cls == np.floor(raw_cls))
            class_ids = np.where(class_ok & finite, raw_cls, 0).astype(np.int64)
        else:
            start = 4 if resolved is CandidateLayout.CLASS_PROBS else 5
            probs = np.where(np.isfinite(p[:, start:]), p[:, start:], -np.inf)
            class_ids = np.argmax(probs, axis=1).astype(np.int64)
            scores = probs[rows, class_ids]
            if resolved is CandidateLayout.OBJECTNESS_WEIGHTED:
                scores = p[:, 4] * scores
            class_ok = np.ones((n,), dtype=bool)

        if num_classes is not None:
            class_ok &= class_ids < int(num_classes)

        valid = finite & geom_ok & class_ok & (scores >= 0.0) & (scores <= 1.0)
        boxes = np.stack([cx - w / 2.0, cy - h / 2.0, w, h], axis=1)

    scores = np.where(valid, scores, 0.0)
    class_ids = np.where(valid, class_ids, 0).astype(np.int64)
    boxes[~geom_ok] = 0.0

    return DecodedCandidates(boxes=boxes, scores=scores, class_ids=class_ids, input_size=int(input_size))


def decode_candidate(
    row: ArrayLike,
    input_size: int,
    *,
    layout: CandidateLayout = CandidateLayout.AUTO,
    num_classes: Optional[int] = None,
) -> ModelDetection:
    """
    Decode a single raw candidate row into a ModelDetection.
    """

    r = np.asarray(row, dtype=np.float64)
    if r.ndim != 1:
        raise MalformedInputError(f"Expected a single candidate row, got shape {r.shape}.")
    decoded = decode_candidates(r[None, :], input_size, layout=layout, num_classes=num_classes)
    return decoded.detection(0)
