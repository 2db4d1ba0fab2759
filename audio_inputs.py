"""
vizbeats - Audio inputs
Capture sources behind one boundary: start()/stop()/read(n).
read() never raises; failures are recorded in `last_error` and yield silence.

Sources:
    DummySineInput - deterministic oscillator (no hardware)
    FileInput      - decoded file via soundfile, looped, transport-syncable
    MicInput       - PyAudio callback stream (pyaudiowpatch on Windows)
"""

import math
import sys
import threading
from pathlib import Path
from typing import Optional

import numpy as np
import soundfile as sf

from errors import AudioSourceError
from logging_utils import log_event
from ring_buffer import RingBuffer

SUPPORTED_FILE_EXTENSIONS = (".wav", ".flac", ".ogg", ".mp3")


def import_pyaudio():
    """PyAudio module for this platform (WASAPI-patched build on Windows)."""
    if sys.platform == "win32":
        import pyaudiowpatch as pyaudio
    else:
        import pyaudio
    return pyaudio


class BaseInput:
    """Silent input; subclasses override read()."""

    supports_transport = False

    def __init__(self, sample_rate: int = 44100):
        self.sample_rate = int(sample_rate)
        self.last_error: Optional[BaseException] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        self._running = True

    def stop(self) -> None:
        self._running = False

    def read(self, count: int) -> np.ndarray:
        return np.zeros(max(int(count), 0), dtype=np.float64)

    def _record_error(self, error: BaseException) -> None:
        self.last_error = error
        log_event("WARN", "Input", str(error), source=self.__class__.__name__)


class DummySineInput(BaseInput):
    def __init__(self, sample_rate: int = 44100, frequency: float = 220.0, amplitude: float = 0.45):
        super().__init__(sample_rate)
        self.frequency = float(frequency)
        self.amplitude = max(0.0, min(1.0, float(amplitude)))
        self._phase = 0.0

    def read(self, count: int) -> np.ndarray:
        count = max(int(count), 0)
        if not self.running:
            return np.zeros(count, dtype=np.float64)

        step = 2.0 * math.pi * self.frequency / self.sample_rate
        phases = self._phase + step * np.arange(count, dtype=np.float64)
        self._phase = math.fmod(self._phase + step * count, 2.0 * math.pi)
        return np.sin(phases) * self.amplitude


class FileInput(BaseInput):
    """
    Whole file decoded up front to mono float samples; reads loop over it.
    sync_transport() pauses (silence) and moves the cursor to follow an
    external player.
    """

    supports_transport = True

    def __init__(self, path, sample_rate: int = 44100):
        super().__init__(sample_rate)
        self.path = Path(path) if path else None
        self.stream_sample_rate = self.sample_rate
        self._cursor = 0
        self._paused = False
        self._state_lock = threading.Lock()
        self._samples = self._load_samples()

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    def read(self, count: int) -> np.ndarray:
        count = max(int(count), 0)
        if not self.running or len(self._samples) == 0:
            return np.zeros(count, dtype=np.float64)

        with self._state_lock:
            if self._paused:
                return np.zeros(count, dtype=np.float64)
            indices = (self._cursor + np.arange(count)) % len(self._samples)
            self._cursor = int((self._cursor + count) % len(self._samples))
        return self._samples[indices]

    def sync_transport(self, playing: bool, position_seconds: Optional[float] = None) -> None:
        if len(self._samples) == 0:
            return
        with self._state_lock:
            self._paused = not playing
            if position_seconds is not None:
                try:
                    self._cursor = self._seconds_to_cursor(float(position_seconds))
                except (TypeError, ValueError):
                    pass

    def _seconds_to_cursor(self, seconds: float) -> int:
        rate = self.stream_sample_rate if self.stream_sample_rate > 0 else self.sample_rate
        # Python modulo keeps negative positions inside the file
        return int(math.floor(seconds * rate)) % len(self._samples)

    def _load_samples(self) -> np.ndarray:
        empty = np.zeros(0, dtype=np.float64)
        if self.path is None:
            self._record_error(AudioSourceError("No audio file configured"))
            return empty
        if not self.path.is_file():
            self._record_error(AudioSourceError(f"Audio file not found: {self.path}"))
            return empty
        extension = self.path.suffix.lower()
        if extension not in SUPPORTED_FILE_EXTENSIONS:
            self._record_error(AudioSourceError(f"Unsupported audio format: {extension}"))
            return empty

        try:
            data, rate = sf.read(str(self.path), dtype="float32", always_2d=True)
        except (RuntimeError, OSError, ValueError) as e:
            # soundfile raises LibsndfileError (a RuntimeError) for undecodable files
            self._record_error(AudioSourceError(f"Audio decode failed: {e}"))
            return empty

        self.stream_sample_rate = int(rate)
        self.last_error = None
        log_event("INFO", "Input", "Loaded audio file", path=self.path,
                  sample_rate=rate, seconds=f"{len(data) / float(rate):.1f}")
        return np.asarray(data.mean(axis=1), dtype=np.float64)


class MicInput(BaseInput):
    """Callback capture into a ring buffer.

    read(n) peeks at the newest n samples. read_available() drains only what
    arrived since its previous call, so a consumer appending to its own
    buffer never sees the same sample twice.
    """

    def __init__(self, sample_rate: int = 44100, frame_size: int = 1024,
                 device_index: Optional[int] = None, buffer_capacity: Optional[int] = None):
        super().__init__(sample_rate)
        self.frame_size = int(frame_size)
        self.device_index = device_index
        self.channels = 1
        self.ring_buffer = RingBuffer(buffer_capacity or max(self.frame_size * 8, self.sample_rate))
        self._pyaudio_module = None
        self._pyaudio = None
        self._stream = None
        self._unread = 0
        self._unread_lock = threading.Lock()

    def start(self) -> None:
        if self.running:
            return
        try:
            pyaudio = import_pyaudio()
            self._pyaudio_module = pyaudio
            self._pyaudio = pyaudio.PyAudio()
            if self.device_index is None:
                device_info = self._pyaudio.get_default_input_device_info()
            else:
                device_info = self._pyaudio.get_device_info_by_index(self.device_index)

            self.channels = max(1, min(int(device_info['maxInputChannels']), 2))
            log_event("INFO", "Input", "Using input device", device=device_info['name'],
                      channels=self.channels, sample_rate=self.sample_rate)

            self._stream = self._pyaudio.open(
                format=pyaudio.paFloat32,
                channels=self.channels,
                rate=self.sample_rate,
                frames_per_buffer=self.frame_size,
                input=True,
                input_device_index=int(device_info['index']),
                stream_callback=self._audio_callback,
            )
            self._running = True
            self._stream.start_stream()
            self.last_error = None
        except Exception as e:
            self._running = False
            self._record_error(AudioSourceError(f"Microphone start failed: {e}"))
            self._close()

    def stop(self) -> None:
        self._running = False
        self._close()

    def read(self, count: int) -> np.ndarray:
        count = max(int(count), 0)
        samples = self.ring_buffer.latest(count)
        if len(samples) < count:
            samples = np.concatenate((np.zeros(count - len(samples), dtype=np.float64), samples))
        return samples

    def read_available(self) -> np.ndarray:
        with self._unread_lock:
            count = self._unread
            self._unread = 0
            if count == 0:
                return np.zeros(0, dtype=np.float64)
            return self.ring_buffer.latest(count)

    def _audio_callback(self, in_data, frame_count, time_info, status):
        continue_flag = self._pyaudio_module.paContinue
        if not self.running:
            return (in_data, continue_flag)

        indata = np.frombuffer(in_data, dtype=np.float32).reshape(-1, self.channels)
        mono = indata.mean(axis=1) if indata.shape[1] > 1 else indata[:, 0]
        with self._unread_lock:
            self.ring_buffer.write(mono)
            self._unread = min(self._unread + len(mono), self.ring_buffer.capacity)
        return (in_data, continue_flag)

    def _close(self) -> None:
        if self._stream is not None:
            try:
                self._stream.stop_stream()
                self._stream.close()
            except Exception as e:
                log_event("WARN", "Input", "Error closing stream", error=e)
            self._stream = None
        if self._pyaudio is not None:
            self._pyaudio.terminate()
            self._pyaudio = None
