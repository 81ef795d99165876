from __future__ import annotations

import logging
from typing import Dict, List, Optional

import numpy as np

from .config import PipelineConfig
from .decode import ArrayLike, decode_candidates
from .errors import DetectionError, InferenceFailureError, MalformedInputError
from .mapping import CoordinateMapper
from .nms import NonMaxSuppressor
from .selector import select_center
from .types import Detection, DisplayDetection, FrameGeometry, NativeDetection, PipelineResult

logger = logging.getLogger(__name__)


class DetectionPipeline:
    """
    One detection cycle: decode -> NMS -> model->native->display -> center pick.

    Stateless and reentrant; the caller owns inference and any "last result"
    memory. `run` never raises for bad input: failures come back as an empty
    result with `error` set.
    """

    def __init__(self, config: PipelineConfig, class_names: Optional[Dict[int, str]] = None):
        self.config = config
        self.class_names = dict(class_names) if class_names else {}
        self.suppressor = NonMaxSuppressor(config.nms_config(), class_agnostic=config.class_agnostic)

    @property
    def num_classes(self) -> Optional[int]:
        if not self.class_names:
            return None
        return max(self.class_names) + 1

    def label_for(self, det: Detection) -> str:
        name = self.class_names.get(det.class_id, str(det.class_id))
        return f"{name} {det.score * 100:.1f}%"

    def run(self, raw: Optional[ArrayLike], geometry: Optional[FrameGeometry]) -> PipelineResult:
        try:
            return self._run(raw, geometry)
        except DetectionError as exc:
            logger.warning("Detection cycle failed: %s", exc)
            return PipelineResult.empty(error=exc, geometry=geometry if isinstance(geometry, FrameGeometry) else None)

    __call__ = run

    def _run(self, raw: Optional[ArrayLike], geometry: Optional[FrameGeometry]) -> PipelineResult:
        if raw is None:
            raise InferenceFailureError("No raw model output for this cycle.")
        if not isinstance(geometry, FrameGeometry):
            raise MalformedInputError(f"geometry must be a FrameGeometry, got {type(geometry).__name__}")

        cfg = self.config
        decoded = decode_candidates(
            raw,
            cfg.model_input_size,
            layout=cfg.layout,
            num_classes=self.num_classes,
            channels_first=cfg.channels_first,
        )
        if len(decoded) == 0:
            return PipelineResult(geometry=geometry)

        keep = self.suppressor.keep_indices(decoded.boxes, decoded.scores, decoded.class_ids)
        if keep.size == 0:
            return PipelineResult(geometry=geometry)

        mapper = CoordinateMapper(cfg.model_input_size, geometry)
        native: List[NativeDetection] = []
        display: List[DisplayDetection] = []
        for model_det in decoded.to_detections(keep.tolist()):
            native_det = mapper.model_to_native(model_det)
            native.append(native_det)
            display.append(mapper.native_to_display(native_det))

        chosen = select_center(display, geometry.displayed_width, geometry.displayed_height)
        logger.debug("Cycle kept %d of %d candidates; chosen=%s", len(display), len(decoded), chosen)
        return PipelineResult(
            detections=tuple(display),
            native_detections=tuple(native),
            chosen_index=chosen,
            geometry=geometry,
        )


def run_pipeline(
    raw: Optional[np.ndarray],
    geometry: FrameGeometry,
    config: PipelineConfig,
    class_names: Optional[Dict[int, str]] = None,
) -> PipelineResult:
    return DetectionPipeline(config, class_names=class_names).run(raw, geometry)
