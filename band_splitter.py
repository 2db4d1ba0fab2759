"""
vizbeats - Band Splitter
Converts FFT magnitudes into normalized sub/low/mid/high band energies.
"""

from typing import Dict

import numpy as np

from config import BAND_RANGES
from frequency_utils import band_bin_range

# Floor for the per-tick normalization scale
MIN_SCALE = 1.0e-9


class BandSplitter:
    def __init__(self, sample_rate: int = 44100, fft_size: int = 1024):
        self.sample_rate = int(sample_rate)
        self.fft_size = int(fft_size)
        self.bin_hz = self.sample_rate / float(self.fft_size)

    def split(self, magnitudes) -> Dict[str, float]:
        """Mean magnitude per band divided by the spectrum maximum, clamped to [0, 1]."""
        values = self._normalize_magnitudes(magnitudes)
        if len(values) == 0:
            return {name: 0.0 for name in BAND_RANGES}

        scale = max(float(values.max()), MIN_SCALE)
        bands = {}
        for name, (low_hz, high_hz) in BAND_RANGES.items():
            indices = band_bin_range(low_hz, high_hz, self.bin_hz, len(values))
            if len(indices) == 0:
                bands[name] = 0.0
                continue
            average = float(values[indices.start:indices.stop].mean())
            bands[name] = min(1.0, max(0.0, average / scale))
        return bands

    __call__ = split

    @staticmethod
    def _normalize_magnitudes(magnitudes) -> np.ndarray:
        if magnitudes is None:
            return np.zeros(0, dtype=np.float64)
        try:
            return np.abs(np.asarray(magnitudes, dtype=np.float64).ravel())
        except (TypeError, ValueError):
            return np.zeros(0, dtype=np.float64)
