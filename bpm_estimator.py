"""
vizbeats - BPM Estimator
Autocorrelation of a rolling beat-impulse history, blended into a running estimate.
"""

from collections import deque

import numpy as np


class BPMEstimator:
    def __init__(self, frame_rate: float, min_bpm: float = 60.0, max_bpm: float = 200.0,
                 history_seconds: float = 10.0, smoothing: float = 0.25, min_onsets: int = 4):
        self.frame_rate = float(frame_rate)
        self.min_bpm = float(min_bpm)
        self.max_bpm = float(max_bpm)
        self.history_size = max(int(self.frame_rate * float(history_seconds)), 8)
        self.smoothing = float(smoothing)
        self.min_onsets = int(min_onsets)
        self._history: deque[float] = deque(maxlen=self.history_size)
        self.current_bpm = 0.0

    def estimate(self, beat: bool) -> float:
        """Feed one tick's beat flag and return the current tempo estimate."""
        self._history.append(1.0 if beat else 0.0)

        if self.onset_count() < self.min_onsets:
            return self.current_bpm

        candidate = self._candidate_bpm()
        if candidate <= 0.0:
            return self.current_bpm

        if self.current_bpm <= 0.0:
            self.current_bpm = candidate
        else:
            self.current_bpm += (candidate - self.current_bpm) * self.smoothing
        return self.current_bpm

    __call__ = estimate

    def onset_count(self) -> int:
        return int(sum(1 for value in self._history if value > 0.0))

    def reset(self) -> None:
        self._history.clear()
        self.current_bpm = 0.0

    def _lag_for_bpm(self, bpm: float) -> int:
        # Round half up so lag boundaries do not depend on banker's rounding
        return int(60.0 * self.frame_rate / bpm + 0.5)

    def _candidate_bpm(self) -> float:
        history = np.fromiter(self._history, dtype=np.float64, count=len(self._history))
        n = len(history)
        if n < 2:
            return 0.0

        min_lag = max(self._lag_for_bpm(self.max_bpm), 1)
        max_lag = min(self._lag_for_bpm(self.min_bpm), n - 1)
        if min_lag > max_lag:
            return 0.0

        best_lag = None
        best_score = float("-inf")
        for lag in range(min_lag, max_lag + 1):
            score = float(np.dot(history[lag:], history[:-lag]))
            # Strictly greater: ties keep the lowest lag (highest BPM)
            if score > best_score:
                best_score = score
                best_lag = lag

        if best_lag is None or best_score <= 0.0:
            return 0.0

        bpm = 60.0 * self.frame_rate / best_lag
        return min(self.max_bpm, max(self.min_bpm, bpm))
