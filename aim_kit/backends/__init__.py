"""
Inference backends that turn a (1, 3, S, S) blob into raw candidate output.

Kept apart from the post-processing core so that decoding, NMS and mapping can
be used (and tested) without any inference runtime installed.
"""

from __future__ import annotations

from typing import Any, Optional

import numpy as np

from ..errors import InferenceFailureError

__all__ = ["candidate_output", "square_input_size"]


def candidate_output(output: Any, output_index: int = 0) -> np.ndarray:
    """
    Pick the detection tensor out of a model's return value and check that it
    looks like raw candidates: (N, C) or a batch of one (1, N, C).
    """

    if isinstance(output, (tuple, list)):
        if not output:
            raise InferenceFailureError("Model returned no outputs.")
        try:
            output = output[output_index]
        except IndexError:
            raise InferenceFailureError(
                f"Model returned {len(output)} outputs; output_index={output_index} is out of range."
            ) from None
    if output is None:
        raise InferenceFailureError("Model returned no detection tensor.")

    arr = np.asarray(output)
    if arr.ndim not in (2, 3):
        raise InferenceFailureError(f"Expected a 2-D or 3-D candidate tensor, got shape {arr.shape}.")
    return arr


def square_input_size(shape: Any) -> Optional[int]:
    """
    S for a fixed NCHW (1, 3, S, S) input shape; None for dynamic axes.
    """

    if shape is None or len(shape) != 4:
        return None
    h, w = shape[2], shape[3]
    if isinstance(h, int) and isinstance(w, int) and h == w:
        return int(h)
    return None
