"""
vizbeats - FFT Processor
Windowed power-of-two FFT producing a half spectrum, magnitudes and the peak bin.

Backends:
    reference - iterative radix-2 Cooley-Tukey written against numpy arrays
    numpy     - numpy.fft (pocketfft)
    scipy     - scipy.fft (pocketfft with planning/worker support)
    auto      - scipy when importable (else numpy); if the accelerated backend
                fails on first use it is replaced by the reference backend
"""

from dataclasses import dataclass
from typing import Callable, Dict

import numpy as np

from config import SUPPORTED_FFT_BACKENDS, SUPPORTED_WINDOWS
from errors import ConfigurationError
from frequency_utils import bin_frequency
from logging_utils import log_event

try:
    from scipy import fft as scipy_fft
    HAS_SCIPY = True
except ImportError:
    scipy_fft = None
    HAS_SCIPY = False
    log_event("WARN", "FFT", "scipy not found, 'scipy' FFT backend unavailable")


@dataclass(frozen=True)
class FFTResult:
    """Output of one transform (half spectrum only)."""
    magnitudes: np.ndarray    # |X[k]| for k in [0, N/2)
    spectrum: np.ndarray      # complex X[k] for k in [0, N/2)
    peak_bin: int             # argmax of magnitudes, first occurrence on ties
    peak_frequency: float     # peak_bin * sample_rate / fft_size


def is_power_of_two(value: int) -> bool:
    return value > 0 and (value & (value - 1)) == 0


def window_coefficients(window: str, size: int) -> np.ndarray:
    """Symmetric window of `size` points (closed forms over M-1)."""
    if window == "none" or size <= 1:
        return np.ones(size, dtype=np.float64)
    if window == "hamming":
        return np.hamming(size)
    if window == "hann":
        return np.hanning(size)
    if window == "blackman":
        return np.blackman(size)
    raise ConfigurationError(f"unsupported window: {window}")


def bit_reverse_indices(size: int) -> np.ndarray:
    """Permutation placing element i at the bit-reversed position of i."""
    bits = size.bit_length() - 1
    indices = np.arange(size, dtype=np.int64)
    reversed_indices = np.zeros(size, dtype=np.int64)
    for _ in range(bits):
        reversed_indices = (reversed_indices << 1) | (indices & 1)
        indices = indices >> 1
    return reversed_indices


class ReferenceFFT:
    """Iterative radix-2 FFT: bit-reversal permutation then log2(N) butterfly passes."""

    def __init__(self, size: int):
        self.size = size
        self._permutation = bit_reverse_indices(size)
        # Twiddle factors e^{-2*pi*i*k/len} for every butterfly length
        self._twiddles: Dict[int, np.ndarray] = {}
        length = 2
        while length <= size:
            half = length // 2
            self._twiddles[length] = np.exp(-2j * np.pi * np.arange(half) / length)
            length <<= 1

    def __call__(self, values: np.ndarray) -> np.ndarray:
        data = np.asarray(values, dtype=np.complex128)[self._permutation]
        length = 2
        while length <= self.size:
            half = length // 2
            blocks = data.reshape(-1, length)
            even = blocks[:, :half].copy()
            odd = blocks[:, half:] * self._twiddles[length]
            blocks[:, :half] = even + odd
            blocks[:, half:] = even - odd
            length <<= 1
        return data


def _numpy_fft(values: np.ndarray) -> np.ndarray:
    return np.fft.fft(values)


def _scipy_fft(values: np.ndarray) -> np.ndarray:
    return scipy_fft.fft(values)


class FFTProcessor:
    """Windowed FFT with a pluggable backend."""

    def __init__(self, sample_rate: int = 44100, fft_size: int = 1024,
                 window: str = "hamming", backend: str = "auto"):
        try:
            self.sample_rate = int(sample_rate)
            self.fft_size = int(fft_size)
        except (TypeError, ValueError):
            raise ConfigurationError("sample_rate and fft_size must be integers") from None
        self.window = str(window).lower()
        self.requested_backend = str(backend).lower()

        if not is_power_of_two(self.fft_size):
            raise ConfigurationError(f"fft_size must be power of two: {self.fft_size}")
        if self.window not in SUPPORTED_WINDOWS:
            raise ConfigurationError(f"unsupported window: {self.window}")
        if self.requested_backend not in SUPPORTED_FFT_BACKENDS:
            raise ConfigurationError(f"unsupported FFT backend: {self.requested_backend}")
        if self.requested_backend == "scipy" and not HAS_SCIPY:
            raise ConfigurationError("FFT backend 'scipy' requested but scipy is not installed")

        self._window = window_coefficients(self.window, self.fft_size)
        self._reference = ReferenceFFT(self.fft_size)
        self._auto_probe_pending = self.requested_backend == "auto"
        self.backend, self._transform = self._select_backend(self.requested_backend)

    def _select_backend(self, name: str) -> tuple[str, Callable[[np.ndarray], np.ndarray]]:
        if name == "reference":
            return "reference", self._reference
        if name == "numpy":
            return "numpy", _numpy_fft
        if name == "scipy":
            return "scipy", _scipy_fft
        # auto
        if HAS_SCIPY:
            return "scipy", _scipy_fft
        return "numpy", _numpy_fft

    def transform(self, samples) -> FFTResult:
        """Window and transform one frame (zero-padded or truncated to fft_size)."""
        frame = self._prepare_frame(samples)
        windowed = frame * self._window
        full = self._run_backend(windowed)

        half = self.fft_size // 2
        spectrum = np.asarray(full[:half], dtype=np.complex128)
        magnitudes = np.abs(spectrum)
        peak_bin = int(np.argmax(magnitudes)) if half > 0 else 0

        return FFTResult(
            magnitudes=magnitudes,
            spectrum=spectrum,
            peak_bin=peak_bin,
            peak_frequency=self.bin_frequency(peak_bin),
        )

    __call__ = transform

    def bin_frequency(self, bin_index: int) -> float:
        return bin_frequency(bin_index, self.sample_rate, self.fft_size)

    def _run_backend(self, windowed: np.ndarray) -> np.ndarray:
        if not self._auto_probe_pending:
            return self._transform(windowed)

        self._auto_probe_pending = False
        try:
            return self._transform(windowed)
        except Exception as e:
            log_event("INFO", "FFT", "Accelerated backend failed, using reference",
                      backend=self.backend, error=e)
            self.backend, self._transform = "reference", self._reference
            return self._transform(windowed)

    def _prepare_frame(self, samples) -> np.ndarray:
        try:
            values = np.asarray(samples, dtype=np.float64).ravel()
        except (TypeError, ValueError):
            return np.zeros(self.fft_size, dtype=np.float64)

        if len(values) >= self.fft_size:
            return values[:self.fft_size]
        return np.concatenate((values, np.zeros(self.fft_size - len(values), dtype=np.float64)))
