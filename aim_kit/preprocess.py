from __future__ import annotations

import numpy as np

from .errors import MalformedInputError


def to_model_input(image_bgr: np.ndarray, input_size: int = 640) -> np.ndarray:
    """
    Stretch-resize a BGR frame to the model's S x S input and build the blob.

    No letterboxing: x and y are scaled independently, which is what
    `model_to_native` undoes. Returns float32 (1, 3, S, S) RGB in [0, 1].
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for to_model_input(). Install with `pip install opencv-python`.") from e

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise MalformedInputError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] not in (3, 4):
        raise MalformedInputError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")
    if input_size <= 0:
        raise MalformedInputError(f"input_size must be > 0 (got {input_size})")

    # Drop alpha from BGRA frames.
    img = image_bgr[:, :, :3]
    h, w = img.shape[:2]
    if (w, h) != (input_size, input_size):
        img = cv2.resize(img, (input_size, input_size), interpolation=cv2.INTER_LINEAR)

    # BGR -> RGB, normalize, HWC -> CHW, add batch
    blob = img[:, :, ::-1].astype(np.float32) / 255.0
    blob = np.ascontiguousarray(np.transpose(blob, (2, 0, 1))[None, ...])
    return blob
