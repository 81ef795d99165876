"""
Coordinate mapping between the three box spaces.

model  --(linear scale)-->  native  --("cover" crop + uniform scale)-->  display

The viewport shows a centered crop of the native frame, scaled uniformly to
fill it (CSS `object-fit: cover`). The two stages are always applied in
sequence: capture consumers need the intermediate native-space box.
"""

from __future__ import annotations

from .errors import MalformedInputError
from .types import (
    CoordinateSpace,
    DisplayDetection,
    FrameGeometry,
    ModelDetection,
    NativeDetection,
    VisibleRegion,
    require_space,
)


def _check_input_size(input_size: int) -> None:
    if isinstance(input_size, bool) or input_size <= 0:
        raise MalformedInputError(f"input_size must be > 0 (got {input_size!r})")


def model_to_native(det: ModelDetection, input_size: int, geometry: FrameGeometry) -> NativeDetection:
    """
    Scale a model-input box (S x S) to native frame pixels, x and y independently.
    """

    require_space(det, CoordinateSpace.MODEL)
    _check_input_size(input_size)
    scale_x = geometry.native_width / float(input_size)
    scale_y = geometry.native_height / float(input_size)
    return NativeDetection(
        x=det.x * scale_x,
        y=det.y * scale_y,
        width=det.width * scale_x,
        height=det.height * scale_y,
        score=det.score,
        class_id=det.class_id,
    )


def visible_region(geometry: FrameGeometry) -> VisibleRegion:
    """
    Rectangle of the native frame that the viewport actually shows.
    """

    nw, nh = geometry.native_width, geometry.native_height
    dw, dh = geometry.displayed_width, geometry.displayed_height

    # nw / nh > dw / dh, cross-multiplied
    if nw * dh > dw * nh:
        visible_h = nh
        visible_w = nh * dw / dh
        return VisibleRegion(source_x=(nw - visible_w) / 2.0, source_y=0.0, visible_width=visible_w, visible_height=visible_h)

    visible_w = nw
    visible_h = nw * dh / dw
    return VisibleRegion(source_x=0.0, source_y=(nh - visible_h) / 2.0, visible_width=visible_w, visible_height=visible_h)


def native_to_display(det: NativeDetection, geometry: FrameGeometry) -> DisplayDetection:
    """
    Map a native-frame box into viewport pixels. Boxes are not clipped and may
    extend past the viewport edges.
    """

    require_space(det, CoordinateSpace.NATIVE)
    region = visible_region(geometry)
    scale_x = geometry.displayed_width / region.visible_width
    scale_y = geometry.displayed_height / region.visible_height
    return DisplayDetection(
        x=(det.x - region.source_x) * scale_x,
        y=(det.y - region.source_y) * scale_y,
        width=det.width * scale_x,
        height=det.height * scale_y,
        score=det.score,
        class_id=det.class_id,
    )


def display_to_native(det: DisplayDetection, geometry: FrameGeometry) -> NativeDetection:
    require_space(det, CoordinateSpace.DISPLAY)
    region = visible_region(geometry)
    scale_x = region.visible_width / geometry.displayed_width
    scale_y = region.visible_height / geometry.displayed_height
    return NativeDetection(
        x=det.x * scale_x + region.source_x,
        y=det.y * scale_y + region.source_y,
        width=det.width * scale_x,
        height=det.height * scale_y,
        score=det.score,
        class_id=det.class_id,
    )


class CoordinateMapper:
    """
    Mapper bound to one model input size and one frame geometry.
    """

    def __init__(self, input_size: int, geometry: FrameGeometry):
        _check_input_size(input_size)
        self.input_size = int(input_size)
        self.geometry = geometry
        self.region = visible_region(geometry)

    def model_to_native(self, det: ModelDetection) -> NativeDetection:
        return model_to_native(det, self.input_size, self.geometry)

    def native_to_display(self, det: NativeDetection) -> DisplayDetection:
        return native_to_display(det, self.geometry)

    def display_to_native(self, det: DisplayDetection) -> NativeDetection:
        return display_to_native(det, self.geometry)

    def model_to_display(self, det: ModelDetection) -> DisplayDetection:
        return self.native_to_display(self.model_to_native(det))
