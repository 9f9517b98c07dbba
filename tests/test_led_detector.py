"""Unit tests for LED marker detection."""

import math
import unittest
import numpy as np
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vision.detection.led_detector import LedDetector, centroids_from_contours
from config.settings import Point


def blank_frame(height=480, width=640, channels=3):
    """Create a dark BGR frame."""
    if channels == 1:
        return np.zeros((height, width), dtype=np.uint8)
    return np.zeros((height, width, channels), dtype=np.uint8)


class TestLedDetector(unittest.TestCase):
    """Test the extraction pipeline on synthetic frames."""

    def setUp(self):
        """Set up test fixtures."""
        self.detector = LedDetector({})

    def test_detector_initialization(self):
        """Test default parameters."""
        info = self.detector.get_detection_info()
        self.assertEqual(info['threshold'], 251)
        self.assertEqual(info['erode_iterations'], 1)
        self.assertEqual(info['dilate_iterations'], 1)

    def test_single_square_centroid(self):
        """A bright square yields exactly its geometric center."""
        frame = blank_frame()
        frame[100:140, 200:240] = 255

        points = self.detector.extract(frame)

        self.assertEqual(len(points), 1)
        self.assertAlmostEqual(points[0].x, 219.5, places=6)
        self.assertAlmostEqual(points[0].y, 119.5, places=6)

    def test_multiple_blobs(self):
        """Each separate blob yields one point."""
        frame = blank_frame()
        frame[50:60, 50:60] = 255
        frame[200:220, 300:320] = 255
        frame[400:430, 500:510] = 255

        points = self.detector.extract(frame)

        centers = sorted((round(p.x, 3), round(p.y, 3)) for p in points)
        self.assertEqual(centers, [(54.5, 54.5), (309.5, 209.5), (504.5, 414.5)])

    def test_empty_frame(self):
        """A dark frame has no markers."""
        self.assertEqual(self.detector.extract(blank_frame()), [])

    def test_single_pixel_noise_removed(self):
        """Opening removes isolated bright pixels."""
        frame = blank_frame()
        frame[10, 10] = 255
        frame[300, 20:22] = 255
        frame[100:120, 100:120] = 255

        points = self.detector.extract(frame)

        self.assertEqual(len(points), 1)
        self.assertAlmostEqual(points[0].x, 109.5, places=6)

    def test_threshold_is_strict(self):
        """Intensity 251 is background, 252 is foreground."""
        frame = blank_frame()
        frame[100:120, 100:120] = 251
        self.assertEqual(self.detector.extract(frame), [])

        frame[100:120, 100:120] = 252
        self.assertEqual(len(self.detector.extract(frame)), 1)

    def test_grayscale_and_bgra_input(self):
        """Single-channel and four-channel frames are accepted."""
        gray = blank_frame(channels=1)
        gray[100:120, 100:120] = 255
        self.assertEqual(len(self.detector.extract(gray)), 1)

        bgra = blank_frame(channels=4)
        bgra[100:120, 100:120] = 255
        self.assertEqual(len(self.detector.extract(bgra)), 1)

    def test_frame_is_not_modified(self):
        """Extraction leaves the input frame untouched."""
        frame = blank_frame()
        frame[100:140, 200:240] = 255
        original = frame.copy()

        self.detector.extract(frame)

        self.assertTrue(np.array_equal(frame, original))

    def test_invalid_frames(self):
        """Unusable frames raise ValueError."""
        with self.assertRaises(ValueError):
            self.detector.extract(None)
        with self.assertRaises(ValueError):
            self.detector.extract(np.zeros((0, 0, 3), dtype=np.uint8))
        with self.assertRaises(ValueError):
            self.detector.extract(np.zeros((10, 10, 3), dtype=np.float32))
        with self.assertRaises(ValueError):
            self.detector.extract(np.zeros((10, 10, 5), dtype=np.uint8))

    def test_binarize_output(self):
        """The mask is binary and single channel."""
        frame = blank_frame()
        frame[100:120, 100:120] = 255

        mask = self.detector.binarize(frame)

        self.assertEqual(mask.shape, (480, 640))
        self.assertEqual(set(np.unique(mask).tolist()), {0, 255})


class TestDegenerateBlobs(unittest.TestCase):
    """Zero-area blobs are excluded instead of producing NaN."""

    def test_centroids_skip_zero_area_contours(self):
        """Point and line contours are dropped."""
        contours = [
            np.array([[[10, 10]]], dtype=np.int32),
            np.array([[[0, 0]], [[10, 0]]], dtype=np.int32),
            np.array([[[0, 0]], [[0, 10]], [[10, 10]], [[10, 0]]], dtype=np.int32),
            np.array([[[0, 0]], [[5, 5]], [[10, 10]]], dtype=np.int32),
        ]

        result = centroids_from_contours(contours)

        self.assertEqual(result.degenerate_count, 3)
        self.assertEqual(len(result.contours), 1)
        self.assertEqual(len(result.points), 1)
        self.assertIsInstance(result.points[0], Point)
        self.assertAlmostEqual(result.points[0].x, 5.0, places=9)
        self.assertAlmostEqual(result.points[0].y, 5.0, places=9)

    def test_pipeline_without_opening(self):
        """Thin lines and lone pixels survive without opening but are excluded."""
        detector = LedDetector({'erode_iterations': 0, 'dilate_iterations': 0})
        frame = blank_frame()
        frame[50, 100:120] = 255
        frame[300, 400] = 255
        frame[200:220, 300:320] = 255

        result = detector.detect(frame)

        self.assertEqual(result.degenerate_count, 2)
        self.assertEqual(len(result.points), 1)
        for point in result.points:
            self.assertTrue(math.isfinite(point.x))
            self.assertTrue(math.isfinite(point.y))
        self.assertAlmostEqual(result.points[0].x, 309.5, places=6)
        self.assertAlmostEqual(result.points[0].y, 209.5, places=6)


if __name__ == '__main__':
    unittest.main()
