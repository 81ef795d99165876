from __future__ import annotations

from typing import Optional

import numpy as np

from .errors import MalformedInputError
from .types import PipelineResult


def crop_native(frame: np.ndarray, result: PipelineResult) -> Optional[np.ndarray]:
    """
    Crop the chosen object out of the native frame (a view, no copy).

    Returns None when capture is not possible; never a partial crop.
    """

    if frame is None or not hasattr(frame, "shape") or frame.ndim < 2:
        raise MalformedInputError("frame must be a NumPy image array (H, W[, C]).")
    region = result.capture_region()
    if region is None:
        return None

    geometry = result.geometry
    h, w = frame.shape[:2]
    if geometry is not None and (int(geometry.native_width), int(geometry.native_height)) != (w, h):
        raise MalformedInputError(
            f"Frame size {w}x{h} does not match the cycle's native size "
            f"{int(geometry.native_width)}x{int(geometry.native_height)}."
        )

    x0, y0, x1, y1 = region
    return frame[y0:y1, x0:x1]
