import importlib.util
import unittest

import numpy as np

from landmark_kit.errors import InvalidImageDimensions
from landmark_kit.letterbox import as_rgba, letterbox, letterbox_params, limit_image_size
from landmark_kit.postprocess import Decoder, DecoderConfig, SingleClass
from landmark_kit.types import LetterboxResult, RawPrediction

HAS_CV2 = importlib.util.find_spec("cv2") is not None

SIZES = [(1280, 720), (720, 1280), (640, 640), (1, 1), (3, 1000), (1000, 3), (333, 777), (4032, 3024)]


class TestLetterboxParams(unittest.TestCase):
    def test_landscape_hd(self) -> None:
        scale, dx, dy = letterbox_params(1280, 720, 640)
        self.assertEqual(scale, 0.5)
        self.assertEqual(dx, 0.0)
        self.assertEqual(dy, 140.0)

    def test_portrait(self) -> None:
        scale, dx, dy = letterbox_params(720, 1280, 640)
        self.assertEqual(scale, 0.5)
        self.assertEqual(dx, 140.0)
        self.assertEqual(dy, 0.0)

    def test_bounds(self) -> None:
        for w, h in SIZES:
            scale, dx, dy = letterbox_params(w, h, 640)
            self.assertEqual(scale, min(640 / w, 640 / h))
            self.assertGreaterEqual(dx, 0.0)
            self.assertGreaterEqual(dy, 0.0)
            self.assertLessEqual(w * scale, 640 + 1e-9)
            self.assertLessEqual(h * scale, 640 + 1e-9)
            self.assertTrue(dx == 0.0 or dy == 0.0, (w, h, dx, dy))

    def test_zero_or_negative_dimensions(self) -> None:
        for w, h in [(0, 10), (10, 0), (-5, 10), (0, 0)]:
            with self.assertRaises(InvalidImageDimensions):
                letterbox_params(w, h, 640)

    def test_corner_round_trip(self) -> None:
        for w, h in SIZES:
            scale, dx, dy = letterbox_params(w, h, 640)
            lb = LetterboxResult(pixels=np.zeros((1, 1, 4), np.uint8), scale=scale, offset_x=dx, offset_y=dy, size=640)
            for px, py in [(0, 0), (w, 0), (0, h), (w, h)]:
                fx, fy = lb.to_original(*lb.to_letterbox(px, py))
                self.assertAlmostEqual(fx, px, places=6)
                self.assertAlmostEqual(fy, py, places=6)

    def test_decoder_inverts_full_image_box(self) -> None:
        decoder = Decoder(DecoderConfig(schema=SingleClass(), conf_threshold=0.5))
        for w, h in SIZES:
            scale, dx, dy = letterbox_params(w, h, 640)
            lb = LetterboxResult(pixels=np.zeros((1, 1, 4), np.uint8), scale=scale, offset_x=dx, offset_y=dy, size=640)
            x1, y1 = lb.to_letterbox(0, 0)
            x2, y2 = lb.to_letterbox(w, h)
            features = np.array([[(x1 + x2) / 2], [(y1 + y2) / 2], [x2 - x1], [y2 - y1], [0.9]], dtype=np.float64)
            (det,) = decoder.decode(RawPrediction(features=features), lb, (w, h))
            for got, want in zip(det.as_xyxy(), (0, 0, w, h)):
                self.assertAlmostEqual(got, want, delta=1e-3 * max(w, h, 1))


class TestLetterboxImage(unittest.TestCase):
    def test_no_resize_needed_pads_with_gray(self) -> None:
        img = np.full((320, 640, 3), 200, dtype=np.uint8)
        lb = letterbox(img, size=640)
        self.assertEqual(lb.pixels.shape, (640, 640, 4))
        self.assertEqual(lb.pixels.dtype, np.uint8)
        self.assertEqual((lb.scale, lb.offset_x, lb.offset_y), (1.0, 0.0, 160.0))
        self.assertTrue(np.all(lb.pixels[:160, :, :3] == 114))
        self.assertTrue(np.all(lb.pixels[480:, :, :3] == 114))
        self.assertTrue(np.all(lb.pixels[160:480, :, :3] == 200))
        self.assertTrue(np.all(lb.pixels[:, :, 3] == 255))

    def test_source_not_modified(self) -> None:
        img = np.zeros((320, 640, 4), dtype=np.uint8)
        before = img.copy()
        letterbox(img, size=640, color=(1, 2, 3))
        self.assertTrue(np.array_equal(img, before))

    def test_empty_image_rejected(self) -> None:
        with self.assertRaises(InvalidImageDimensions):
            letterbox(np.zeros((0, 10, 4), dtype=np.uint8))

    @unittest.skipUnless(HAS_CV2, "OpenCV not installed")
    def test_hd_frame(self) -> None:
        img = np.full((720, 1280, 4), 10, dtype=np.uint8)
        lb = letterbox(img, size=640)
        self.assertEqual(lb.pixels.shape, (640, 640, 4))
        self.assertEqual((lb.scale, lb.offset_x, lb.offset_y), (0.5, 0.0, 140.0))
        self.assertTrue(np.all(lb.pixels[:140, :, :3] == 114))
        self.assertTrue(np.all(lb.pixels[140:500, :, :3] == 10))
        self.assertTrue(np.all(lb.pixels[500:, :, :3] == 114))

    @unittest.skipUnless(HAS_CV2, "OpenCV not installed")
    def test_deterministic(self) -> None:
        rng = np.random.default_rng(0)
        img = rng.integers(0, 256, size=(301, 517, 3), dtype=np.uint8)
        a = letterbox(img, size=320)
        b = letterbox(img, size=320)
        self.assertTrue(np.array_equal(a.pixels, b.pixels))


class TestImageHelpers(unittest.TestCase):
    def test_as_rgba_adds_alpha(self) -> None:
        rgb = np.zeros((2, 3, 3), dtype=np.uint8)
        rgba = as_rgba(rgb)
        self.assertEqual(rgba.shape, (2, 3, 4))
        self.assertTrue(np.all(rgba[:, :, 3] == 255))

    def test_as_rgba_rejects_grayscale(self) -> None:
        with self.assertRaises(ValueError):
            as_rgba(np.zeros((4, 4), dtype=np.uint8))

    def test_limit_image_size_keeps_small_images(self) -> None:
        img = np.zeros((100, 200, 3), dtype=np.uint8)
        self.assertIs(limit_image_size(img, 2000), img)

    @unittest.skipUnless(HAS_CV2, "OpenCV not installed")
    def test_limit_image_size_shrinks_large_images(self) -> None:
        img = np.zeros((1000, 4000, 3), dtype=np.uint8)
        out = limit_image_size(img, 2000)
        self.assertEqual(out.shape, (500, 2000, 3))


if __name__ == "__main__":
    unittest.main()
