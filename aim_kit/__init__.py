"""
Detection post-processing for aim-and-capture camera screens.

Turns raw detector output into display-space boxes plus the one box the user
is aiming at (closest to the viewport center), with its native-frame twin for
cropping. The core depends only on NumPy; OpenCV and the inference runtimes
are imported lazily where needed.
"""

from .types import (
    CoordinateSpace,
    Detection,
    DisplayDetection,
    FrameGeometry,
    ModelDetection,
    NativeDetection,
    PipelineResult,
    VisibleRegion,
)
from .errors import CoordinateSpaceError, DetectionError, InferenceFailureError, MalformedInputError
from .decode import CandidateLayout, DecodedCandidates, decode_candidate, decode_candidates
from .nms import NMSConfig, NonMaxSuppressor, batched_nms, iou, nms
from .mapping import CoordinateMapper, display_to_native, model_to_native, native_to_display, visible_region
from .selector import select_center
from .config import PipelineConfig, load_pipeline_config
from .pipeline import DetectionPipeline, run_pipeline
from .capture import crop_native
from .metadata import load_class_names
from .preprocess import to_model_input
from .runtime import load_infer_fn, find_project_root, resolve_path
from .driver import CycleToken, DetectionDriver

__all__ = [
    "CoordinateSpace",
    "Detection",
    "DisplayDetection",
    "FrameGeometry",
    "ModelDetection",
    "NativeDetection",
    "PipelineResult",
    "VisibleRegion",
    "CoordinateSpaceError",
    "DetectionError",
    "InferenceFailureError",
    "MalformedInputError",
    "CandidateLayout",
    "DecodedCandidates",
    "decode_candidate",
    "decode_candidates",
    "NMSConfig",
    "NonMaxSuppressor",
    "batched_nms",
    "iou",
    "nms",
    "CoordinateMapper",
    "display_to_native",
    "model_to_native",
    "native_to_display",
    "visible_region",
    "select_center",
    "PipelineConfig",
    "load_pipeline_config",
    "DetectionPipeline",
    "run_pipeline",
    "crop_native",
    "load_class_names",
    "to_model_input",
    "load_infer_fn",
    "find_project_root",
    "resolve_path",
    "CycleToken",
    "DetectionDriver",
]
