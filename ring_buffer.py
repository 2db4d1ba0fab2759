"""
vizbeats - Ring Buffer
Thread-safe fixed-capacity store of the most recent PCM samples.
"""

import threading

import numpy as np

from errors import ConfigurationError


class RingBuffer:
    """Circular sample store shared between a capture thread and readers.

    All operations take one lock, held only while copying samples in or out.
    """

    def __init__(self, capacity: int):
        try:
            capacity = int(capacity)
        except (TypeError, ValueError):
            raise ConfigurationError(f"capacity must be a positive integer: {capacity!r}") from None
        if capacity <= 0:
            raise ConfigurationError("capacity must be positive")

        self.capacity = capacity
        self._buffer = np.zeros(capacity, dtype=np.float64)
        self._write_index = 0
        self._size = 0
        self._lock = threading.Lock()

    def write(self, samples) -> None:
        """Append samples; only the newest `capacity` samples survive."""
        try:
            values = np.asarray(samples, dtype=np.float64).ravel()
        except (TypeError, ValueError):
            raise ValueError("samples must be numeric") from None
        count = len(values)
        if count == 0:
            return

        with self._lock:
            if count >= self.capacity:
                self._buffer[:] = values[-self.capacity:]
                self._write_index = 0
                self._size = self.capacity
                return

            end = self._write_index + count
            if end <= self.capacity:
                self._buffer[self._write_index:end] = values
            else:
                split = self.capacity - self._write_index
                self._buffer[self._write_index:] = values[:split]
                self._buffer[:count - split] = values[split:]
            self._write_index = end % self.capacity
            self._size = min(self.capacity, self._size + count)

    def push(self, sample: float) -> None:
        self.write([sample])

    def latest(self, count: int | None = None) -> np.ndarray:
        """Return the most recent min(count, size) samples in chronological order."""
        with self._lock:
            if self._size == 0:
                return np.zeros(0, dtype=np.float64)

            requested = self._size if count is None else int(count)
            if requested <= 0:
                return np.zeros(0, dtype=np.float64)

            length = min(requested, self._size)
            start = (self._write_index - length) % self.capacity
            if start + length <= self.capacity:
                return self._buffer[start:start + length].copy()
            return np.concatenate((self._buffer[start:], self._buffer[:length - (self.capacity - start)]))

    def size(self) -> int:
        with self._lock:
            return self._size

    def __len__(self) -> int:
        return self.size()

    def clear(self) -> None:
        with self._lock:
            self._buffer.fill(0.0)
            self._write_index = 0
            self._size = 0
