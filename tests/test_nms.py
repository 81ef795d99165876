import unittest

import numpy as np

from aim_kit.errors import CoordinateSpaceError
from aim_kit.nms import NMSConfig, NonMaxSuppressor, batched_nms, box_iou, iou, nms
from aim_kit.types import DisplayDetection, ModelDetection


def _random_boxes(n: int, seed: int = 0):
    rng = np.random.default_rng(seed)
    xy = rng.uniform(0, 600, size=(n, 2))
    wh = rng.uniform(5, 80, size=(n, 2))
    scores = rng.uniform(0.0, 1.0, size=(n,))
    return np.concatenate([xy, wh], axis=1), scores


class TestIoU(unittest.TestCase):
    def test_identity_and_symmetry(self) -> None:
        boxes, scores = _random_boxes(50, seed=1)
        dets = [ModelDetection(*b, score=float(s)) for b, s in zip(boxes, scores)]
        for a in dets[:10]:
            self.assertEqual(iou(a, a), 1.0)
            for b in dets:
                self.assertEqual(iou(a, b), iou(b, a))

    def test_known_overlap(self) -> None:
        a = ModelDetection(270, 270, 100, 100, 0.9)
        b = ModelDetection(272, 272, 100, 100, 0.6)
        self.assertAlmostEqual(iou(a, b), 9604.0 / 10396.0)

    def test_disjoint_and_zero_area(self) -> None:
        a = ModelDetection(0, 0, 10, 10, 0.9)
        self.assertEqual(iou(a, ModelDetection(20, 20, 10, 10, 0.9)), 0.0)
        # Touching edges do not overlap.
        self.assertEqual(iou(a, ModelDetection(10, 0, 10, 10, 0.9)), 0.0)
        point = ModelDetection(5, 5, 0, 0, 0.9)
        self.assertEqual(iou(point, point), 0.0)

    def test_rejects_mixed_spaces(self) -> None:
        with self.assertRaises(CoordinateSpaceError):
            iou(ModelDetection(0, 0, 10, 10, 0.9), DisplayDetection(0, 0, 10, 10, 0.9))

    def test_box_iou_vector(self) -> None:
        out = box_iou([0, 0, 10, 10], np.array([[0, 0, 10, 10], [5, 0, 10, 10], [50, 50, 1, 1]]))
        self.assertTrue(np.allclose(out, [1.0, 50.0 / 150.0, 0.0]))


class TestNMS(unittest.TestCase):
    def test_near_duplicates_keep_highest(self) -> None:
        boxes = np.array([[270, 270, 100, 100], [272, 272, 100, 100]], dtype=np.float64)
        keep = nms(boxes, np.array([0.9, 0.6]), NMSConfig(score_threshold=0.5, iou_threshold=0.5))
        self.assertEqual(keep.tolist(), [0])

        # Order of the input does not matter, the higher score survives.
        keep = nms(boxes[::-1], np.array([0.6, 0.9]), NMSConfig(score_threshold=0.5, iou_threshold=0.5))
        self.assertEqual(keep.tolist(), [1])

    def test_score_threshold_filters_first(self) -> None:
        boxes = np.array([[0, 0, 10, 10], [100, 100, 10, 10], [200, 200, 10, 10]], dtype=np.float64)
        keep = nms(boxes, np.array([0.2, 0.5, 0.49]), NMSConfig(score_threshold=0.5))
        self.assertEqual(keep.tolist(), [1])

    def test_equal_scores_keep_lower_index(self) -> None:
        boxes = np.array([[0, 0, 10, 10], [0, 0, 10, 10], [100, 0, 10, 10]], dtype=np.float64)
        keep = nms(boxes, np.array([0.7, 0.7, 0.7]), NMSConfig(score_threshold=0.5))
        self.assertEqual(keep.tolist(), [0, 2])

    def test_iou_equal_to_threshold_is_kept(self) -> None:
        # IoU = 50 / 150 = 1/3
        boxes = np.array([[0, 0, 10, 10], [5, 0, 10, 10]], dtype=np.float64)
        overlap = float(box_iou(boxes[0], boxes[1:])[0])
        keep = nms(boxes, np.array([0.9, 0.8]), NMSConfig(score_threshold=0.1, iou_threshold=overlap))
        self.assertEqual(keep.tolist(), [0, 1])

    def test_max_outputs(self) -> None:
        boxes = np.array([[i * 20, 0, 10, 10] for i in range(5)], dtype=np.float64)
        scores = np.array([0.6, 0.9, 0.7, 0.8, 0.95])
        keep = nms(boxes, scores, NMSConfig(score_threshold=0.1, max_outputs=3))
        self.assertEqual(keep.tolist(), [4, 1, 3])

    def test_empty(self) -> None:
        keep = nms(np.zeros((0, 4)), np.zeros((0,)), NMSConfig(score_threshold=0.5))
        self.assertEqual(keep.shape, (0,))

    def test_idempotent_and_stable(self) -> None:
        boxes, scores = _random_boxes(2000)
        cfg = NMSConfig(score_threshold=0.3, iou_threshold=0.45, max_outputs=300)
        keep = nms(boxes, scores, cfg)
        self.assertTrue(np.array_equal(keep, nms(boxes.copy(), scores.copy(), cfg)))
        self.assertTrue(np.all(np.diff(scores[keep]) <= 0))

        again = nms(boxes[keep], scores[keep], cfg)
        self.assertEqual(again.tolist(), list(range(len(keep))))

    def test_batched_nms_keeps_other_classes(self) -> None:
        boxes = np.array([[0, 0, 10, 10], [1, 1, 10, 10], [0, 0, 10, 10]], dtype=np.float64)
        scores = np.array([0.6, 0.9, 0.8])
        class_ids = np.array([0, 1, 0])
        keep = batched_nms(boxes, scores, class_ids, NMSConfig(score_threshold=0.5))
        self.assertEqual(keep.tolist(), [1, 2])


class TestNonMaxSuppressor(unittest.TestCase):
    def test_suppress_detections(self) -> None:
        dets = [
            DisplayDetection(0, 0, 10, 10, 0.6),
            DisplayDetection(1, 1, 10, 10, 0.9),
            DisplayDetection(50, 50, 10, 10, 0.7),
        ]
        sup = NonMaxSuppressor(NMSConfig(score_threshold=0.5, iou_threshold=0.5))
        out = sup.suppress(dets)
        self.assertEqual(out, [dets[1], dets[2]])
        self.assertEqual(sup.suppress(out), out)

    def test_suppress_rejects_mixed_spaces(self) -> None:
        sup = NonMaxSuppressor(NMSConfig(score_threshold=0.5))
        with self.assertRaises(CoordinateSpaceError):
            sup.suppress([DisplayDetection(0, 0, 1, 1, 0.9), ModelDetection(0, 0, 1, 1, 0.9)])

    def test_config_validation(self) -> None:
        with self.assertRaises(ValueError):
            NMSConfig(score_threshold=1.5)
        with self.assertRaises(ValueError):
            NMSConfig(score_threshold=0.5, iou_threshold=-0.1)
        with self.assertRaises(ValueError):
            NMSConfig(score_threshold=0.5, max_outputs=0)


if __name__ == "__main__":
    unittest.main()
