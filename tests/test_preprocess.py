import importlib.util
import unittest

import numpy as np

from aim_kit.errors import MalformedInputError
from aim_kit.preprocess import to_model_input

HAS_CV2 = importlib.util.find_spec("cv2") is not None


@unittest.skipUnless(HAS_CV2, "OpenCV (cv2) is not installed")
class TestToModelInput(unittest.TestCase):
    def test_stretch_resize_and_layout(self) -> None:
        frame = np.zeros((1080, 1920, 3), dtype=np.uint8)
        frame[:, :, 0] = 255  # pure blue in BGR
        blob = to_model_input(frame, 640)
        self.assertEqual(blob.shape, (1, 3, 640, 640))
        self.assertEqual(blob.dtype, np.float32)
        # RGB order: blue ends up in the last channel
        self.assertTrue(np.allclose(blob[0, 2], 1.0))
        self.assertTrue(np.allclose(blob[0, 0], 0.0))

    def test_bgra_frames_drop_alpha(self) -> None:
        frame = np.full((480, 640, 4), 128, dtype=np.uint8)
        blob = to_model_input(frame, 320)
        self.assertEqual(blob.shape, (1, 3, 320, 320))

    def test_rejects_non_images(self) -> None:
        with self.assertRaises(MalformedInputError):
            to_model_input(np.zeros((640, 640), dtype=np.uint8), 640)


if __name__ == "__main__":
    unittest.main()
