from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Tuple

from .errors import CoordinateSpaceError, DetectionError, MalformedInputError


class CoordinateSpace(str, Enum):
    MODEL = "model"
    NATIVE = "native"
    DISPLAY = "display"


@dataclass(frozen=True)
class Detection:
    """
    Axis-aligned box (top-left corner + size) with score and class id.

    Use one of the space-tagged subclasses; the base class carries no space and
    cannot be instantiated. Boxes from different spaces never compare equal and
    every operation that combines or maps boxes checks `space` first.
    """

    x: float
    y: float
    width: float
    height: float
    score: float
    class_id: int = 0

    space: ClassVar[Optional[CoordinateSpace]] = None

    def __post_init__(self) -> None:
        if self.space is None:
            raise CoordinateSpaceError(
                "Detection has no coordinate space; use ModelDetection, NativeDetection or DisplayDetection."
            )
        for name in ("x", "y", "width", "height", "score"):
            value = float(getattr(self, name))
            if not math.isfinite(value):
                raise MalformedInputError(f"{name} must be finite (got {value!r})")
            object.__setattr__(self, name, value)
        if isinstance(self.class_id, bool) or int(self.class_id) != self.class_id:
            raise MalformedInputError(f"class_id must be an integer (got {self.class_id!r})")
        object.__setattr__(self, "class_id", int(self.class_id))

        if self.width < 0 or self.height < 0:
            raise MalformedInputError(f"width/height must be >= 0 (got {self.width}, {self.height})")
        if not 0.0 <= self.score <= 1.0:
            raise MalformedInputError(f"score must be within [0, 1] (got {self.score})")
        if self.class_id < 0:
            raise MalformedInputError(f"class_id must be >= 0 (got {self.class_id})")

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width * 0.5, self.y + self.height * 0.5

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_xywh(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.width, self.height

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.x + self.width, self.y + self.height


@dataclass(frozen=True)
class ModelDetection(Detection):
    """Box in model-input pixels (the fixed S x S square)."""

    space: ClassVar[Optional[CoordinateSpace]] = CoordinateSpace.MODEL


@dataclass(frozen=True)
class NativeDetection(Detection):
    """Box in native camera/video frame pixels."""

    space: ClassVar[Optional[CoordinateSpace]] = CoordinateSpace.NATIVE


@dataclass(frozen=True)
class DisplayDetection(Detection):
    """Box in on-screen viewport pixels."""

    space: ClassVar[Optional[CoordinateSpace]] = CoordinateSpace.DISPLAY


def require_space(det: Detection, space: CoordinateSpace) -> None:
    if not isinstance(det, Detection) or det.space is not space:
        got = getattr(det, "space", None)
        raise CoordinateSpaceError(f"Expected a {space.value}-space detection, got {got!r} ({type(det).__name__}).")


@dataclass(frozen=True)
class FrameGeometry:
    """
    Native frame resolution plus the on-screen rectangle it is rendered into.

    Recreate whenever the camera stream or the layout changes.
    """

    native_width: float
    native_height: float
    displayed_width: float
    displayed_height: float

    def __post_init__(self) -> None:
        for name in ("native_width", "native_height", "displayed_width", "displayed_height"):
            raw = getattr(self, name)
            if isinstance(raw, bool):
                raise MalformedInputError(f"{name} must be a number")
            try:
                value = float(raw)
            except (TypeError, ValueError) as exc:
                raise MalformedInputError(f"{name} must be a number (got {raw!r})") from exc
            if not math.isfinite(value) or value <= 0:
                raise MalformedInputError(f"{name} must be finite and > 0 (got {raw!r})")
            object.__setattr__(self, name, value)

    @classmethod
    def for_frame(cls, frame_shape: Tuple[int, ...], displayed_width: float, displayed_height: float) -> "FrameGeometry":
        """
        Build geometry from an image shape (H, W[, C]) and the viewport size.
        """

        if len(frame_shape) < 2:
            raise MalformedInputError(f"Expected an image shape (H, W[, C]), got {frame_shape!r}")
        h, w = frame_shape[:2]
        return cls(native_width=w, native_height=h, displayed_width=displayed_width, displayed_height=displayed_height)

    @property
    def native_aspect(self) -> float:
        return self.native_width / self.native_height

    @property
    def displayed_aspect(self) -> float:
        return self.displayed_width / self.displayed_height


@dataclass(frozen=True)
class VisibleRegion:
    """
    Part of the native frame that is visible in the viewport, in native pixels.
    """

    source_x: float
    source_y: float
    visible_width: float
    visible_height: float


@dataclass(frozen=True)
class PipelineResult:
    """
    Outcome of one detection cycle.

    `detections` are in display space; `native_detections[i]` is the
    native-space twin of `detections[i]` and is what capture should crop with.
    Indices are only meaningful within this result.
    """

    detections: Tuple[DisplayDetection, ...] = ()
    native_detections: Tuple[NativeDetection, ...] = ()
    chosen_index: Optional[int] = None
    geometry: Optional[FrameGeometry] = None
    error: Optional[DetectionError] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "detections", tuple(self.detections))
        object.__setattr__(self, "native_detections", tuple(self.native_detections))
        for det in self.detections:
            require_space(det, CoordinateSpace.DISPLAY)
        for det in self.native_detections:
            require_space(det, CoordinateSpace.NATIVE)
        if len(self.detections) != len(self.native_detections):
            raise MalformedInputError("detections and native_detections must have the same length")
        if self.chosen_index is not None and not 0 <= self.chosen_index < len(self.detections):
            raise MalformedInputError(f"chosen_index out of range: {self.chosen_index}")

    @classmethod
    def empty(cls, error: Optional[DetectionError] = None, geometry: Optional[FrameGeometry] = None) -> "PipelineResult":
        return cls(geometry=geometry, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def chosen(self) -> Optional[DisplayDetection]:
        if self.chosen_index is None:
            return None
        return self.detections[self.chosen_index]

    @property
    def chosen_native(self) -> Optional[NativeDetection]:
        if self.chosen_index is None:
            return None
        return self.native_detections[self.chosen_index]

    @property
    def can_capture(self) -> bool:
        return self.chosen_index is not None

    def capture_region(self) -> Optional[Tuple[int, int, int, int]]:
        """
        Integer (x0, y0, x1, y1) crop of the chosen object in native pixels,
        clamped to the frame. None when nothing is chosen or the clamped
        rectangle is empty.
        """

        det = self.chosen_native
        if det is None or self.geometry is None:
            return None
        frame_w = int(self.geometry.native_width)
        frame_h = int(self.geometry.native_height)
        x1, y1, x2, y2 = det.as_xyxy()
        x0 = max(0, min(int(math.floor(x1)), frame_w))
        y0 = max(0, min(int(math.floor(y1)), frame_h))
        x1i = max(0, min(int(math.ceil(x2)), frame_w))
        y1i = max(0, min(int(math.ceil(y2)), frame_h))
        if x1i <= x0 or y1i <= y0:
            return None
        return x0, y0, x1i, y1i
