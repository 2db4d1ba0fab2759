"""
vizbeats - Analysis Pipeline
One call per tick: raw samples -> FFT, bands, beat, tempo, amplitude -> AnalysisResult.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

import numpy as np

from band_splitter import BandSplitter
from beat_detector import BeatDetector
from bpm_estimator import BPMEstimator
from config import BAND_RANGES, Config
from fft_processor import FFTProcessor
from frequency_utils import preview_spectrum
from smoother import Smoother


@dataclass(frozen=True)
class AnalysisResult:
    """Semantic audio features for one tick. Continuous values are smoothed, beat fields are not."""
    amplitude: float = 0.0
    bands: Mapping[str, float] = field(default_factory=lambda: {name: 0.0 for name in BAND_RANGES})
    fft: Tuple[float, ...] = ()
    beat: bool = False
    beat_count: int = 0
    bpm: float = 0.0
    peak_frequency: float = 0.0

    def __post_init__(self):
        # Read-only view over a private copy
        object.__setattr__(self, "bands", MappingProxyType(dict(self.bands)))

    @classmethod
    def silent(cls, preview_bins: int = 32, beat_count: int = 0, bpm: float = 0.0) -> "AnalysisResult":
        return cls(fft=tuple([0.0] * preview_bins), beat_count=beat_count, bpm=bpm)

    def band(self, name: str) -> float:
        return float(self.bands.get(str(name), 0.0))

    def to_dict(self) -> dict:
        return {
            "amplitude": self.amplitude,
            "bands": dict(self.bands),
            "fft": list(self.fft),
            "beat": self.beat,
            "beat_count": self.beat_count,
            "bpm": self.bpm,
            "peak_frequency": self.peak_frequency,
        }


class AnalysisPipeline:
    """
    Composes FFTProcessor, BandSplitter, BeatDetector, BPMEstimator and Smoother.

    Order per call: FFT -> bands (from magnitudes) -> beat (from raw sample
    energy) -> BPM (from the beat flag) -> RMS amplitude -> smoothing of
    amplitude, bands and the spectrum preview.
    """

    def __init__(self, sample_rate: int = 44100, fft_size: int = 1024, window: str = "hamming",
                 backend: str = "auto", frame_rate: Optional[float] = None,
                 smoothing_alpha: float = 0.35, bpm_smoothing_alpha: float = 0.2,
                 preview_bins: int = 32,
                 beat_detector: Optional[BeatDetector] = None,
                 bpm_estimator: Optional[BPMEstimator] = None,
                 smoother: Optional[Smoother] = None):
        self.sample_rate = int(sample_rate)
        self.fft_size = int(fft_size)
        # Tick rate of the caller; defaults to one frame of fft_size samples per tick
        self.frame_rate = float(frame_rate) if frame_rate else self.sample_rate / float(self.fft_size)
        self.preview_bins = int(preview_bins)
        self.bpm_smoothing_alpha = float(bpm_smoothing_alpha)

        self.fft = FFTProcessor(sample_rate=self.sample_rate, fft_size=self.fft_size,
                                window=window, backend=backend)
        self.band_splitter = BandSplitter(sample_rate=self.sample_rate, fft_size=self.fft_size)
        self.beat_detector = beat_detector or BeatDetector()
        self.bpm_estimator = bpm_estimator or BPMEstimator(frame_rate=self.frame_rate)
        self.smoother = smoother or Smoother(alpha=smoothing_alpha)

    @classmethod
    def from_config(cls, config: Config, sample_rate: Optional[int] = None) -> "AnalysisPipeline":
        analysis = config.analysis
        frame_rate = float(config.scheduler.frame_rate)
        return cls(
            sample_rate=sample_rate or analysis.sample_rate,
            fft_size=analysis.fft_size,
            window=analysis.window,
            backend=analysis.backend,
            frame_rate=frame_rate,
            smoothing_alpha=analysis.smoothing_alpha,
            bpm_smoothing_alpha=analysis.bpm_smoothing_alpha,
            preview_bins=analysis.preview_bins,
            beat_detector=BeatDetector(
                history_size=config.beat.history_size,
                sensitivity=config.beat.sensitivity,
                refractory_frames=config.beat.refractory_frames,
                min_history=config.beat.min_history,
            ),
            bpm_estimator=BPMEstimator(
                frame_rate=frame_rate,
                min_bpm=config.tempo.min_bpm,
                max_bpm=config.tempo.max_bpm,
                history_seconds=config.tempo.history_seconds,
                smoothing=config.tempo.smoothing,
                min_onsets=config.tempo.min_onsets,
            ),
        )

    def process(self, samples) -> AnalysisResult:
        values = self._as_samples(samples)
        if len(values) == 0:
            return AnalysisResult.silent(
                preview_bins=self.preview_bins,
                beat_count=self.beat_detector.beat_count,
                bpm=self.bpm_estimator.current_bpm,
            )

        fft_result = self.fft.transform(values)
        bands = self.band_splitter.split(fft_result.magnitudes)
        beat = self.beat_detector.detect(values)
        bpm = self.bpm_estimator.estimate(beat.beat)
        amplitude = min(1.0, max(0.0, float(np.sqrt(np.mean(values * values)))))
        preview = preview_spectrum(fft_result.magnitudes, self.preview_bins)

        return AnalysisResult(
            amplitude=self.smoother.smooth("amplitude", amplitude),
            bands=self.smoother.smooth_map(bands, "bands"),
            fft=tuple(self.smoother.smooth_array(preview, "fft")),
            beat=beat.beat,
            beat_count=beat.beat_count,
            bpm=self.smoother.smooth("bpm", bpm, alpha=self.bpm_smoothing_alpha),
            peak_frequency=fft_result.peak_frequency,
        )

    __call__ = process

    def reset_smoothing(self) -> None:
        self.smoother.reset()

    @staticmethod
    def _as_samples(samples) -> np.ndarray:
        if samples is None:
            return np.zeros(0, dtype=np.float64)
        try:
            return np.asarray(samples, dtype=np.float64).ravel()
        except (TypeError, ValueError):
            return np.zeros(0, dtype=np.float64)
