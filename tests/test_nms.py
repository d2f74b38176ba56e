import unittest

import numpy as np

from landmark_kit.nms import NMSConfig, iou, nms, suppress, suppress_per_class
from landmark_kit.types import Detection


def det(x1, y1, x2, y2, conf, cls=0) -> Detection:
    return Detection(x1=x1, y1=y1, x2=x2, y2=y2, confidence=conf, class_id=cls)


def random_detections(seed: int, n: int = 40):
    rng = np.random.default_rng(seed)
    out = []
    for _ in range(n):
        x1, y1 = rng.uniform(0, 200, size=2)
        w, h = rng.uniform(5, 80, size=2)
        out.append(det(float(x1), float(y1), float(x1 + w), float(y1 + h), float(rng.uniform(0.2, 1.0))))
    return out


class TestIoU(unittest.TestCase):
    def test_overlap(self) -> None:
        self.assertAlmostEqual(iou(det(0, 0, 100, 100, 0.9), det(10, 10, 100, 100, 0.8)), 0.81)

    def test_disjoint(self) -> None:
        self.assertEqual(iou(det(0, 0, 50, 50, 0.9), det(200, 200, 250, 250, 0.8)), 0.0)

    def test_zero_area_boxes(self) -> None:
        self.assertEqual(iou(det(5, 5, 5, 5, 0.9), det(5, 5, 5, 5, 0.8)), 0.0)


class TestSuppress(unittest.TestCase):
    def test_high_overlap_keeps_first(self) -> None:
        a = det(0, 0, 100, 100, 0.9)
        b = det(10, 10, 100, 100, 0.8)
        self.assertEqual(suppress([b, a], iou_threshold=0.45), [a])

    def test_disjoint_keeps_both(self) -> None:
        a = det(0, 0, 50, 50, 0.9)
        b = det(200, 200, 250, 250, 0.8)
        self.assertEqual(suppress([a, b], iou_threshold=0.45), [a, b])

    def test_empty(self) -> None:
        self.assertEqual(suppress([], iou_threshold=0.45), [])
        self.assertEqual(nms(np.empty((0, 4)), np.empty((0,))).shape, (0,))

    def test_class_agnostic(self) -> None:
        a = det(0, 0, 100, 100, 0.9, cls=0)
        b = det(0, 0, 100, 100, 0.8, cls=2)
        self.assertEqual(suppress([a, b], iou_threshold=0.45), [a])

    def test_degenerate_boxes_not_suppressed(self) -> None:
        a = det(10, 10, 10, 10, 0.9)
        b = det(10, 10, 10, 10, 0.8)
        self.assertEqual(suppress([a, b], iou_threshold=0.0), [a, b])

    def test_equal_iou_is_kept(self) -> None:
        # IoU exactly 0.5 is not "above" a 0.5 threshold.
        a = det(0, 0, 100, 100, 0.9)
        b = det(0, 0, 100, 50, 0.8)
        self.assertEqual(suppress([a, b], iou_threshold=0.5), [a, b])

    def test_ties_keep_input_order(self) -> None:
        a = det(0, 0, 10, 10, 0.5)
        b = det(100, 100, 110, 110, 0.5)
        c = det(200, 200, 210, 210, 0.5)
        self.assertEqual(suppress([b, c, a], iou_threshold=0.45), [b, c, a])

    def test_cap(self) -> None:
        dets = [det(i * 100, 0, i * 100 + 50, 50, 0.5 + i * 0.1) for i in range(4)]
        kept = suppress(dets, iou_threshold=0.45, max_detections=1)
        self.assertEqual(kept, [dets[3]])
        self.assertEqual(len(suppress(dets, iou_threshold=0.45, max_detections=3)), 3)

    def test_sorted_by_confidence(self) -> None:
        for seed in range(5):
            kept = suppress(random_detections(seed), iou_threshold=0.45)
            confs = [d.confidence for d in kept]
            self.assertEqual(confs, sorted(confs, reverse=True))

    def test_idempotent(self) -> None:
        for seed in range(5):
            once = suppress(random_detections(seed), iou_threshold=0.45)
            self.assertEqual(suppress(once, iou_threshold=0.45), once)

    def test_no_kept_pair_overlaps_above_threshold(self) -> None:
        kept = suppress(random_detections(7), iou_threshold=0.3)
        for i, a in enumerate(kept):
            for b in kept[i + 1 :]:
                self.assertLessEqual(iou(a, b), 0.3)

    def test_threshold_monotonic_on_nested_boxes(self) -> None:
        # Disjoint boxes nested in one large box: each only competes with the large one.
        anchor = det(0, 0, 100, 100, 0.95)
        nested = [
            det(0, 0, 20, 20, 0.9),  # IoU 0.04
            det(50, 0, 90, 40, 0.8),  # IoU 0.16
            det(55, 55, 100, 100, 0.7),  # IoU 0.2025
            det(0, 50, 50, 100, 0.6),  # IoU 0.25
        ]
        dets = [anchor] + nested
        thresholds = [0.01, 0.05, 0.17, 0.21, 0.3, 0.9]
        kept_sets = [set(suppress(dets, iou_threshold=t)) for t in thresholds]
        for smaller, larger in zip(kept_sets, kept_sets[1:]):
            self.assertTrue(smaller <= larger)
        self.assertEqual(kept_sets[0], {anchor})
        self.assertEqual(kept_sets[-1], set(dets))


class TestNmsArray(unittest.TestCase):
    def test_indices(self) -> None:
        boxes = np.array([[10, 10, 100, 100], [0, 0, 100, 100], [200, 200, 250, 250]], dtype=np.float32)
        scores = np.array([0.8, 0.9, 0.7], dtype=np.float32)
        keep = nms(boxes, scores, NMSConfig(iou_threshold=0.45))
        self.assertEqual(keep.tolist(), [1, 2])

    def test_config_validation(self) -> None:
        with self.assertRaises(ValueError):
            NMSConfig(iou_threshold=1.5)
        with self.assertRaises(ValueError):
            NMSConfig(max_detections=0)


class TestSuppressPerClass(unittest.TestCase):
    def test_same_box_different_classes_survive(self) -> None:
        a = det(0, 0, 100, 100, 0.9, cls=0)
        b = det(0, 0, 100, 100, 0.8, cls=1)
        c = det(5, 5, 100, 100, 0.7, cls=1)
        self.assertEqual(suppress_per_class([c, b, a], iou_threshold=0.45), [a, b])

    def test_cap_after_merge(self) -> None:
        a = det(0, 0, 100, 100, 0.9, cls=0)
        b = det(0, 0, 100, 100, 0.8, cls=1)
        self.assertEqual(suppress_per_class([a, b], iou_threshold=0.45, max_detections=1), [a])


if __name__ == "__main__":
    unittest.main()
