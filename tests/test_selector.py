import unittest

from aim_kit.errors import CoordinateSpaceError
from aim_kit.selector import select_center
from aim_kit.types import DisplayDetection, NativeDetection


class TestSelectCenter(unittest.TestCase):
    def test_empty_is_none(self) -> None:
        self.assertIsNone(select_center([], 360, 640))

    def test_single_detection_anywhere(self) -> None:
        self.assertEqual(select_center([DisplayDetection(0, 0, 5, 5, 0.9)], 360, 640), 0)
        self.assertEqual(select_center([DisplayDetection(-400, 900, 5, 5, 0.9)], 360, 640), 0)

    def test_closest_to_center_wins_over_score(self) -> None:
        dets = [
            DisplayDetection(0, 0, 50, 50, 0.99),
            DisplayDetection(160, 300, 40, 40, 0.51),
            DisplayDetection(300, 600, 50, 50, 0.9),
        ]
        self.assertEqual(select_center(dets, 360, 640), 1)

    def test_tie_keeps_earliest(self) -> None:
        # Mirror images around the center (180, 320).
        dets = [
            DisplayDetection(90, 310, 20, 20, 0.6),
            DisplayDetection(250, 310, 20, 20, 0.9),
        ]
        self.assertEqual(select_center(dets, 360, 640), 0)

    def test_rejects_other_spaces(self) -> None:
        with self.assertRaises(CoordinateSpaceError):
            select_center([NativeDetection(0, 0, 5, 5, 0.9)], 360, 640)


if __name__ == "__main__":
    unittest.main()
