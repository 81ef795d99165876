from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Tuple, Union

import numpy as np

from .errors import InferenceFailureError, MalformedInputError
from .pipeline import DetectionPipeline
from .preprocess import to_model_input
from .runtime import InferFn
from .types import FrameGeometry, PipelineResult

logger = logging.getLogger(__name__)

PreprocessFn = Callable[[np.ndarray, int], np.ndarray]
GeometryLike = Union[FrameGeometry, Tuple[float, float]]


def _resolve_geometry(frame: np.ndarray, geometry: GeometryLike) -> FrameGeometry:
    if isinstance(geometry, FrameGeometry):
        return geometry
    if frame is None or not hasattr(frame, "shape"):
        raise MalformedInputError("Cannot read the native size from a missing frame.")
    try:
        displayed_width, displayed_height = geometry
    except (TypeError, ValueError) as exc:
        raise MalformedInputError(
            f"geometry must be a FrameGeometry or (displayed_width, displayed_height), got {geometry!r}"
        ) from exc
    return FrameGeometry.for_frame(frame.shape, displayed_width, displayed_height)


class CycleToken:
    """
    Handle for one started detection session; invalidated on stop/restart so
    that results of cycles still in flight are discarded.
    """

    def __init__(self) -> None:
        self._valid = True

    @property
    def valid(self) -> bool:
        return self._valid

    def invalidate(self) -> None:
        self._valid = False


class DetectionDriver:
    """
    Runs detection cycles for a live camera screen.

    - at most one cycle in flight: `step` returns None instead of queueing
      when another thread is still inside a cycle
    - `stop()` (screen lost focus / stream ended) invalidates the current
      token; a cycle that finishes afterwards is dropped, not delivered
    - inference exceptions become an empty result carrying
      `InferenceFailureError`
    - the driver, not the pipeline, remembers `last_result`
    """

    def __init__(
        self,
        pipeline: DetectionPipeline,
        infer_fn: InferFn,
        *,
        preprocess: Optional[PreprocessFn] = None,
    ):
        self.pipeline = pipeline
        self._infer_fn = infer_fn
        self._preprocess = preprocess or to_model_input
        self._lock = threading.Lock()
        self._token: Optional[CycleToken] = None
        self.last_result: Optional[PipelineResult] = None

    @property
    def running(self) -> bool:
        return self._token is not None and self._token.valid

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def start(self) -> CycleToken:
        if self._token is not None:
            self._token.invalidate()
        self._token = CycleToken()
        self.last_result = None
        return self._token

    def stop(self) -> None:
        if self._token is not None:
            self._token.invalidate()
        self._token = None
        self.last_result = None

    def step(self, frame: np.ndarray, geometry: GeometryLike) -> Optional[PipelineResult]:
        """
        Run one cycle on `frame`. Returns None when not running, when a cycle
        is already in flight, or when the session was stopped meanwhile.

        `geometry` is a FrameGeometry or the viewport size as
        (displayed_width, displayed_height), with the native size read from
        `frame`. A viewport that cannot be used (zero or non-finite, e.g. a
        collapsed layout) yields an empty result carrying MalformedInputError.
        """

        token = self._token
        if token is None or not token.valid:
            logger.debug("Driver not running; frame ignored")
            return None
        if not self._lock.acquire(blocking=False):
            logger.debug("Detection cycle still in flight; frame skipped")
            return None

        try:
            try:
                resolved = _resolve_geometry(frame, geometry)
            except MalformedInputError as exc:
                logger.warning("Unusable frame geometry: %s", exc)
                result = PipelineResult.empty(error=exc)
                self.last_result = result
                return result

            try:
                blob = self._preprocess(frame, self.pipeline.config.model_input_size)
                raw = self._infer_fn(blob)
            except Exception as exc:
                failure = InferenceFailureError(f"Inference failed: {exc}")
                failure.__cause__ = exc
                logger.warning("%s", failure)
                result = PipelineResult.empty(error=failure, geometry=resolved)
            else:
                result = self.pipeline.run(raw, resolved)

            if not token.valid:
                logger.debug("Session stopped during cycle; result discarded")
                return None
            self.last_result = result
            return result
        finally:
            self._lock.release()
