import unittest

import numpy as np

from band_splitter import BandSplitter


class TestBandSplitter(unittest.TestCase):
    def setUp(self):
        self.splitter = BandSplitter(sample_rate=44100, fft_size=1024)

    def test_empty_input_is_all_zero(self):
        self.assertEqual(self.splitter.split([]), {"sub": 0.0, "low": 0.0, "mid": 0.0, "high": 0.0})
        self.assertEqual(self.splitter.split(None)["low"], 0.0)

    def test_low_band_energy_dominates(self):
        magnitudes = np.zeros(512)
        bin_hz = 44100 / 1024
        first = int(np.ceil(60 / bin_hz))
        last = int(np.floor(250 / bin_hz))
        magnitudes[first:last + 1] = 5.0

        bands = self.splitter.split(magnitudes)
        self.assertGreater(bands["low"], bands["high"])
        self.assertEqual(bands["high"], 0.0)

    def test_values_are_normalized(self):
        rng = np.random.default_rng(7)
        bands = self.splitter.split(rng.uniform(0, 100, 512))
        for value in bands.values():
            self.assertGreaterEqual(value, 0.0)
            self.assertLessEqual(value, 1.0)

    def test_flat_spectrum_yields_one(self):
        bands = self.splitter.split(np.full(512, 3.0))
        for value in bands.values():
            self.assertAlmostEqual(value, 1.0, places=9)

    def test_silence_does_not_divide_by_zero(self):
        bands = self.splitter(np.zeros(512))
        self.assertEqual(set(bands.values()), {0.0})


if __name__ == "__main__":
    unittest.main()
