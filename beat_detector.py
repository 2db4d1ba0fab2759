"""
vizbeats - Beat Detector
Causal onset detection by thresholding frame energy against a moving average.
"""

from collections import deque
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class BeatResult:
    """Beat flag plus detector internals for one frame"""
    beat: bool
    beat_count: int
    instant_energy: float
    average_energy: float
    threshold: float


class BeatDetector:
    """
    Fires when the mean-square energy of a frame exceeds the average of the
    recent history times `sensitivity`, outside the refractory window.

    Defaults are tuned for ~1024-sample frames at 44.1kHz (43 frames ~ 1s).
    """

    def __init__(self, history_size: int = 43, sensitivity: float = 1.35,
                 refractory_frames: int = 4, min_history: int = 8):
        self.history_size = int(history_size)
        self.sensitivity = float(sensitivity)
        self.refractory_frames = int(refractory_frames)
        self.min_history = int(min_history)
        self._energy_history: deque[float] = deque(maxlen=max(1, self.history_size))
        self._frame_index = 0
        self._last_beat_frame = -self.refractory_frames
        self.beat_count = 0

    def detect(self, samples) -> BeatResult:
        instant_energy = self._frame_energy(samples)
        average_energy = float(np.mean(self._energy_history)) if self._energy_history else 0.0
        threshold = average_energy * self.sensitivity
        enough_history = len(self._energy_history) >= self.min_history
        refractory_ok = (self._frame_index - self._last_beat_frame) > self.refractory_frames
        beat = enough_history and refractory_ok and instant_energy > threshold and instant_energy > 0.0

        # Record the beat before pushing, so the triggering frame does not raise its own threshold
        if beat:
            self.beat_count += 1
            self._last_beat_frame = self._frame_index

        self._energy_history.append(instant_energy)
        self._frame_index += 1

        return BeatResult(
            beat=beat,
            beat_count=self.beat_count,
            instant_energy=instant_energy,
            average_energy=average_energy,
            threshold=threshold,
        )

    __call__ = detect

    def reset(self) -> None:
        """Clear energy history and counters."""
        self._energy_history.clear()
        self._frame_index = 0
        self._last_beat_frame = -self.refractory_frames
        self.beat_count = 0

    @staticmethod
    def _frame_energy(samples) -> float:
        try:
            values = np.asarray(samples, dtype=np.float64).ravel()
        except (TypeError, ValueError):
            return 0.0
        if len(values) == 0:
            return 0.0
        return float(np.mean(values * values))
