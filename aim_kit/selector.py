from __future__ import annotations

from typing import Optional, Sequence

from .types import CoordinateSpace, DisplayDetection, require_space


def select_center(detections: Sequence[DisplayDetection], displayed_width: float, displayed_height: float) -> Optional[int]:
    """
    Index of the detection whose center is closest to the viewport center, or
    None for an empty list. Equal distances keep the earliest index.
    """

    target_x = displayed_width * 0.5
    target_y = displayed_height * 0.5

    best_index: Optional[int] = None
    best_dist = 0.0
    for idx, det in enumerate(detections):
        require_space(det, CoordinateSpace.DISPLAY)
        cx, cy = det.center
        dist = (cx - target_x) ** 2 + (cy - target_y) ** 2
        if best_index is None or dist < best_dist:
            best_index = idx
            best_dist = dist
    return best_index
