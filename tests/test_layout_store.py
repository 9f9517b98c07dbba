"""Unit tests for layout storage."""

import json
import shutil
import tempfile
import unittest
from pathlib import Path
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vision.calibration.layout_store import LayoutStore
from config.settings import Point


class TestLayoutStore(unittest.TestCase):
    """Test LayoutStore persistence."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.temp_dir, ignore_errors=True)
        self.store = LayoutStore(Path(self.temp_dir) / "layouts")

    def test_directory_created(self):
        """The layout directory is created on demand."""
        self.assertTrue(self.store.layout_dir.is_dir())
        self.assertIsNone(self.store.load_latest())
        self.assertEqual(self.store.list_layouts(), [])

    def test_store_writes_record(self):
        """A stored layout holds raw and normalized points."""
        points = [Point(10, 20), Point(60, 120), Point(210, 70)]

        with self.assertLogs('vision.calibration.layout_store', level='INFO') as logs:
            path = self.store.store(points)

        self.assertTrue(path.exists())
        self.assertEqual(self.store.list_layouts(), [path])
        self.assertTrue(any("Scale: 0.01" in line for line in logs.output))

        with open(path) as f:
            record = json.load(f)
        self.assertAlmostEqual(record['scale'], 0.01)
        self.assertEqual(record['origin'], {'x': 10, 'y': 20})
        self.assertEqual(len(record['points']), 3)
        self.assertAlmostEqual(record['normalized'][1]['x'], 0.5)
        self.assertAlmostEqual(record['normalized'][1]['y'], 1.0)

    def test_latest_layout(self):
        """latest_layout.json follows the most recent store."""
        self.store.store([Point(0, 0), Point(0, 10)])
        self.store.store([Point(0, 0), Point(5, 20)])

        normalized = self.store.load_normalized()

        self.assertEqual(len(self.store.list_layouts()), 2)
        self.assertEqual(len(normalized), 2)
        self.assertEqual(normalized[0], Point(0.0, 0.0))
        self.assertAlmostEqual(normalized[1].x, 0.25)
        self.assertAlmostEqual(normalized[1].y, 1.0)

    def test_unusable_points_not_stored(self):
        """Empty or flat point sets are rejected without writing."""
        with self.assertLogs('vision.calibration.layout_store', level='WARNING'):
            self.assertIsNone(self.store.store([]))
        with self.assertLogs('vision.calibration.layout_store', level='WARNING'):
            self.assertIsNone(self.store.store([Point(0, 5), Point(9, 5)]))

        self.assertEqual(self.store.list_layouts(), [])
        self.assertIsNone(self.store.load_normalized())

    def test_corrupt_latest(self):
        """A damaged latest file reads as missing."""
        self.store.latest_file.write_text("{not json")
        with self.assertLogs('vision.calibration.layout_store', level='ERROR'):
            self.assertIsNone(self.store.load_latest())


if __name__ == '__main__':
    unittest.main()
