import math

import numpy as np


def bin_frequency(bin_index: int, sample_rate: int, fft_size: int) -> float:
    """Center frequency (Hz) of an FFT bin."""
    return int(bin_index) * float(sample_rate) / float(fft_size)


def band_bin_range(low_hz: float, high_hz: float, bin_hz: float, length: int) -> range:
    """Bin indices covering [low_hz, high_hz], clamped to the magnitude array."""
    if length <= 0 or bin_hz <= 0:
        return range(0)

    first = max(0, min(length - 1, int(math.floor(low_hz / bin_hz))))
    last = max(0, min(length - 1, int(math.ceil(high_hz / bin_hz))))
    if first > last:
        return range(0)
    return range(first, last + 1)


def preview_spectrum(magnitudes: np.ndarray | None, bins: int = 32) -> np.ndarray:
    """Average-pool a magnitude spectrum into `bins` buckets in [0, 1].

    Magnitudes are scaled by 2/len so a full-scale windowed sine lands near
    its amplitude.
    """
    if magnitudes is None or len(magnitudes) == 0 or bins <= 0:
        return np.zeros(max(bins, 0), dtype=np.float64)

    values = np.abs(np.asarray(magnitudes, dtype=np.float64)) * (2.0 / len(magnitudes))
    step = max(len(values) // bins, 1)
    preview = np.zeros(bins, dtype=np.float64)
    for index in range(bins):
        window = values[index * step:(index + 1) * step]
        if len(window) == 0:
            continue
        preview[index] = float(np.mean(window))
    return np.clip(preview, 0.0, 1.0)
