"""Unit tests for the calibration session state machine."""

import random
import threading
import unittest
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vision.calibration.session import CalibrationSession, CalibrationPhase
from config.settings import Point


def point_set(i):
    return [Point(float(i), float(i + 1))]


class TestCalibrationSession(unittest.TestCase):
    """Test session transitions."""

    def setUp(self):
        """Set up test fixtures."""
        self.session = CalibrationSession(capture_count=20)

    def test_initial_state(self):
        """A new session is idle and empty."""
        self.assertEqual(self.session.phase, CalibrationPhase.IDLE)
        self.assertEqual(self.session.captured, 0)
        self.assertIsNone(self.session.capturing_for())

    def test_default_capture_count(self):
        """Twenty captures per round by default."""
        self.assertEqual(CalibrationSession().capture_count, 20)

    def test_invalid_capture_count(self):
        """Rounds need at least one capture."""
        with self.assertRaises(ValueError):
            CalibrationSession(capture_count=0)

    def test_accumulate_while_idle_is_ignored(self):
        """Frames outside a round are discarded."""
        self.assertIsNone(self.session.accumulate(point_set(0)))
        self.assertEqual(self.session.captured, 0)
        self.assertEqual(self.session.phase, CalibrationPhase.IDLE)

    def test_full_round(self):
        """N accumulations produce one dataset of length N and go idle."""
        self.session.begin()
        self.assertEqual(self.session.phase, CalibrationPhase.CAPTURING)

        results = [self.session.accumulate(point_set(i)) for i in range(20)]

        self.assertTrue(all(r is None for r in results[:-1]))
        dataset = results[-1]
        self.assertEqual(len(dataset), 20)
        self.assertEqual(dataset[0], point_set(0))
        self.assertEqual(dataset[19], point_set(19))
        self.assertEqual(self.session.phase, CalibrationPhase.IDLE)
        self.assertEqual(self.session.captured, 0)
        self.assertEqual(self.session.rounds_completed, 1)

    def test_session_reused(self):
        """A second begin starts a fresh round on the same instance."""
        self.session.begin()
        for i in range(20):
            self.session.accumulate(point_set(i))
        self.assertIsNone(self.session.accumulate(point_set(99)))

        self.session.begin()
        results = [self.session.accumulate(point_set(i)) for i in range(20)]
        self.assertEqual(len(results[-1]), 20)
        self.assertEqual(self.session.rounds_completed, 2)

    def test_restart_discards_partial_round(self):
        """begin after 5 captures discards them."""
        self.session.begin()
        for i in range(5):
            self.session.accumulate(point_set(i))
        self.assertEqual(self.session.captured, 5)

        self.session.begin()
        self.assertEqual(self.session.captured, 0)

        results = [self.session.accumulate(point_set(100 + i)) for i in range(20)]
        self.assertTrue(all(r is None for r in results[:-1]))
        self.assertEqual(len(results[-1]), 20)
        self.assertEqual(results[-1][0], point_set(100))

    def test_captures_are_copied(self):
        """Later changes to a submitted list do not leak into the dataset."""
        session = CalibrationSession(capture_count=1)
        session.begin()
        points = [Point(1, 2)]
        dataset = session.accumulate(points)
        points.append(Point(3, 4))
        self.assertEqual(dataset, [[Point(1, 2)]])

    def test_empty_point_sets_count(self):
        """A frame with no markers still counts as a capture."""
        session = CalibrationSession(capture_count=2)
        session.begin()
        self.assertIsNone(session.accumulate([]))
        self.assertEqual(session.accumulate([]), [[], []])

    def test_status(self):
        """Status reports the open round."""
        self.session.begin()
        self.session.accumulate(point_set(0))

        status = self.session.status()

        self.assertEqual(status['phase'], 'capturing')
        self.assertEqual(status['captured'], 1)
        self.assertEqual(status['capture_count'], 20)
        self.assertGreaterEqual(status['capturing_for'], 0.0)


class TestConcurrentSession(unittest.TestCase):
    """Concurrent begin and accumulate calls."""

    def test_randomized_interleaving(self):
        """Completed datasets always have exactly N captures."""
        capture_count = 7
        session = CalibrationSession(capture_count=capture_count)
        completed = []
        completed_lock = threading.Lock()
        start_gate = threading.Barrier(4)
        starters_done = threading.Event()

        def submit(i):
            dataset = session.accumulate(point_set(i))
            if dataset is not None:
                with completed_lock:
                    completed.append(dataset)

        def frame_worker(seed):
            rng = random.Random(seed)
            start_gate.wait()
            i = 0
            while not starters_done.is_set():
                submit(i)
                i += 1
                if rng.random() < 0.01:
                    threading.Event().wait(0.0001)
            # The last begin() has happened; finish at least one round
            for j in range(capture_count * 2):
                submit(i + j)

        def start_worker(seed):
            rng = random.Random(seed)
            start_gate.wait()
            for _ in range(300):
                session.begin()
                threading.Event().wait(rng.random() * 0.0005)

        frame_threads = [threading.Thread(target=frame_worker, args=(seed,)) for seed in (1, 2)]
        start_threads = [threading.Thread(target=start_worker, args=(seed,)) for seed in (3, 4)]
        for thread in frame_threads + start_threads:
            thread.start()
        for thread in start_threads:
            thread.join(timeout=60)
        starters_done.set()
        for thread in frame_threads:
            thread.join(timeout=60)

        self.assertTrue(completed)
        for dataset in completed:
            self.assertEqual(len(dataset), capture_count)

        status = session.status()
        self.assertLessEqual(status['captured'], capture_count - 1)
        if status['phase'] == 'idle':
            self.assertEqual(status['captured'], 0)
            self.assertIsNone(status['capturing_for'])
        else:
            self.assertIsNotNone(status['capturing_for'])


if __name__ == '__main__':
    unittest.main()
