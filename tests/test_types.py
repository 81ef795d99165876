import math
import unittest

import numpy as np

from aim_kit.capture import crop_native
from aim_kit.errors import CoordinateSpaceError, MalformedInputError
from aim_kit.types import (
    CoordinateSpace,
    Detection,
    DisplayDetection,
    FrameGeometry,
    ModelDetection,
    NativeDetection,
    PipelineResult,
    require_space,
)


def _result(native: NativeDetection, geometry: FrameGeometry) -> PipelineResult:
    display = DisplayDetection(*native.as_xywh(), score=native.score, class_id=native.class_id)
    return PipelineResult(detections=(display,), native_detections=(native,), chosen_index=0, geometry=geometry)


class TestDetection(unittest.TestCase):
    def test_space_is_part_of_the_type(self) -> None:
        self.assertIs(ModelDetection(0, 0, 1, 1, 0.5).space, CoordinateSpace.MODEL)
        self.assertIs(NativeDetection(0, 0, 1, 1, 0.5).space, CoordinateSpace.NATIVE)
        self.assertIs(DisplayDetection(0, 0, 1, 1, 0.5).space, CoordinateSpace.DISPLAY)
        self.assertNotEqual(ModelDetection(0, 0, 1, 1, 0.5), DisplayDetection(0, 0, 1, 1, 0.5))

    def test_base_class_has_no_space(self) -> None:
        with self.assertRaises(CoordinateSpaceError):
            Detection(0, 0, 1, 1, 0.5)

    def test_invariants(self) -> None:
        with self.assertRaises(MalformedInputError):
            NativeDetection(0, 0, -1, 1, 0.5)
        with self.assertRaises(MalformedInputError):
            NativeDetection(0, 0, 1, 1, 1.01)
        with self.assertRaises(MalformedInputError):
            NativeDetection(0, 0, 1, 1, 0.5, class_id=-1)
        with self.assertRaises(MalformedInputError):
            NativeDetection(math.nan, 0, 1, 1, 0.5)
        with self.assertRaises(MalformedInputError):
            NativeDetection(0, 0, 1, 1, 0.5, class_id=1.5)

    def test_helpers(self) -> None:
        det = DisplayDetection(10, 20, 30, 40, 0.5)
        self.assertEqual(det.center, (25.0, 40.0))
        self.assertEqual(det.area, 1200.0)
        self.assertEqual(det.as_xyxy(), (10.0, 20.0, 40.0, 60.0))

    def test_require_space(self) -> None:
        require_space(NativeDetection(0, 0, 1, 1, 0.5), CoordinateSpace.NATIVE)
        with self.assertRaises(CoordinateSpaceError):
            require_space(NativeDetection(0, 0, 1, 1, 0.5), CoordinateSpace.DISPLAY)


class TestFrameGeometry(unittest.TestCase):
    def test_rejects_non_positive_or_non_finite(self) -> None:
        for dims in ((0, 1080, 360, 640), (1920, -1, 360, 640), (1920, 1080, math.inf, 640), (1920, 1080, 360, math.nan)):
            with self.subTest(dims=dims):
                with self.assertRaises(MalformedInputError):
                    FrameGeometry(*dims)
        with self.assertRaises(MalformedInputError):
            FrameGeometry(True, 1080, 360, 640)

    def test_for_frame(self) -> None:
        geometry = FrameGeometry.for_frame((1080, 1920, 3), 360, 640)
        self.assertEqual(geometry, FrameGeometry(1920, 1080, 360, 640))
        self.assertAlmostEqual(geometry.native_aspect, 16 / 9)


class TestPipelineResult(unittest.TestCase):
    def test_empty_disables_capture(self) -> None:
        result = PipelineResult.empty()
        self.assertEqual(result.detections, ())
        self.assertIsNone(result.chosen_index)
        self.assertIsNone(result.chosen)
        self.assertFalse(result.can_capture)
        self.assertIsNone(result.capture_region())

    def test_capture_region_is_clamped(self) -> None:
        geometry = FrameGeometry(1920, 1080, 360, 640)
        result = _result(NativeDetection(1850.5, -10.2, 100, 60.4, 0.8), geometry)
        self.assertTrue(result.can_capture)
        self.assertEqual(result.capture_region(), (1850, 0, 1920, 51))

    def test_capture_region_outside_frame(self) -> None:
        geometry = FrameGeometry(640, 480, 640, 480)
        result = _result(NativeDetection(700, 10, 20, 20, 0.8), geometry)
        self.assertIsNone(result.capture_region())

    def test_rejects_bad_index_and_spaces(self) -> None:
        native = NativeDetection(0, 0, 1, 1, 0.5)
        display = DisplayDetection(0, 0, 1, 1, 0.5)
        with self.assertRaises(MalformedInputError):
            PipelineResult(detections=(display,), native_detections=(native,), chosen_index=1)
        with self.assertRaises(CoordinateSpaceError):
            PipelineResult(detections=(native,), native_detections=(native,), chosen_index=0)
        with self.assertRaises(MalformedInputError):
            PipelineResult(detections=(display,), native_detections=(), chosen_index=None)


class TestCropNative(unittest.TestCase):
    def test_crop_uses_native_box(self) -> None:
        geometry = FrameGeometry(1920, 1080, 360, 640)
        frame = np.zeros((1080, 1920, 3), dtype=np.uint8)
        crop = crop_native(frame, _result(NativeDetection(864, 486, 192, 108, 0.9), geometry))
        self.assertEqual(crop.shape, (108, 192, 3))

    def test_no_crop_when_nothing_chosen(self) -> None:
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        self.assertIsNone(crop_native(frame, PipelineResult.empty()))

    def test_frame_size_mismatch(self) -> None:
        geometry = FrameGeometry(1920, 1080, 360, 640)
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        with self.assertRaises(MalformedInputError):
            crop_native(frame, _result(NativeDetection(10, 10, 20, 20, 0.9), geometry))


if __name__ == "__main__":
    unittest.main()
