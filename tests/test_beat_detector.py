import unittest

import numpy as np

from beat_detector import BeatDetector


def frame(level, size=1024):
    return np.full(size, level)


class TestBeatDetector(unittest.TestCase):
    def test_beat_after_min_history_then_refractory(self):
        detector = BeatDetector(history_size=43, sensitivity=1.35, refractory_frames=4, min_history=8)
        for _ in range(8):
            self.assertFalse(detector.detect(frame(0.01)).beat)

        first = detector.detect(frame(0.9))
        self.assertTrue(first.beat)
        self.assertEqual(first.beat_count, 1)

        second = detector.detect(frame(0.9))
        self.assertFalse(second.beat)
        self.assertEqual(second.beat_count, 1)

    def test_no_beat_before_min_history(self):
        detector = BeatDetector(min_history=8)
        for _ in range(7):
            detector.detect(frame(0.01))
        self.assertFalse(detector.detect(frame(1.0)).beat)

    def test_beat_fires_again_after_refractory(self):
        detector = BeatDetector(history_size=43, refractory_frames=4, min_history=8)
        for _ in range(8):
            detector.detect(frame(0.01))
        self.assertTrue(detector.detect(frame(0.9)).beat)
        for _ in range(4):
            detector.detect(frame(0.01))
        result = detector.detect(frame(0.9))
        self.assertTrue(result.beat)
        self.assertEqual(result.beat_count, 2)

    def test_threshold_excludes_current_frame(self):
        detector = BeatDetector(min_history=2)
        detector.detect(frame(0.1))
        detector.detect(frame(0.1))
        result = detector.detect(frame(0.5))
        self.assertAlmostEqual(result.average_energy, 0.01, places=9)
        self.assertAlmostEqual(result.threshold, 0.01 * 1.35, places=9)
        self.assertAlmostEqual(result.instant_energy, 0.25, places=9)

    def test_silence_never_beats(self):
        detector = BeatDetector(min_history=1)
        for _ in range(20):
            self.assertFalse(detector.detect(frame(0.0)).beat)

    def test_empty_and_invalid_frames_have_zero_energy(self):
        detector = BeatDetector()
        self.assertEqual(detector.detect([]).instant_energy, 0.0)
        self.assertEqual(detector.detect(["x"]).instant_energy, 0.0)

    def test_reset(self):
        detector = BeatDetector(min_history=1)
        detector.detect(frame(0.01))
        detector.detect(frame(1.0))
        self.assertEqual(detector.beat_count, 1)
        detector.reset()
        self.assertEqual(detector.beat_count, 0)
        self.assertFalse(detector.detect(frame(1.0)).beat)


if __name__ == "__main__":
    unittest.main()
