"""
vizbeats - Input Manager
Builds the configured audio source and feeds its frames into a RingBuffer.
"""

from typing import List, Optional

import numpy as np

from audio_inputs import DummySineInput, FileInput, MicInput, import_pyaudio
from config import SUPPORTED_AUDIO_SOURCES, Config
from errors import ConfigurationError
from logging_utils import log_event
from ring_buffer import RingBuffer

DEFAULT_SAMPLE_RATE = 44100


class InputManager:
    def __init__(self, source: str = "mic", sample_rate: int = DEFAULT_SAMPLE_RATE,
                 frame_size: int = 1024, ring_buffer_size: int = 4096,
                 file_path: Optional[str] = None, device_index: Optional[int] = None,
                 audio_input=None):
        self.source_name = str(source).lower()
        self.sample_rate = int(sample_rate)
        self.frame_size = int(frame_size)
        self.ring_buffer = RingBuffer(ring_buffer_size)
        self.input = audio_input if audio_input is not None else self._build_input(file_path, device_index)
        # File sources report their native rate
        self.sample_rate = int(getattr(self.input, "stream_sample_rate", self.sample_rate) or self.sample_rate)

    @classmethod
    def from_config(cls, config: Config) -> "InputManager":
        audio = config.audio
        return cls(
            source=audio.source,
            sample_rate=config.analysis.sample_rate,
            frame_size=audio.frame_size,
            ring_buffer_size=audio.ring_buffer_size,
            file_path=audio.file_path,
            device_index=audio.device_index,
        )

    def _build_input(self, file_path, device_index):
        if self.source_name == "mic":
            return MicInput(sample_rate=self.sample_rate, frame_size=self.frame_size,
                            device_index=device_index)
        if self.source_name == "file":
            return FileInput(file_path, sample_rate=self.sample_rate)
        if self.source_name == "dummy":
            return DummySineInput(sample_rate=self.sample_rate)
        raise ConfigurationError(
            f"unsupported audio source: {self.source_name}. "
            f"Use one of: {', '.join(SUPPORTED_AUDIO_SOURCES)}"
        )

    @property
    def running(self) -> bool:
        return self.input.running

    @property
    def supports_transport(self) -> bool:
        return bool(getattr(self.input, "supports_transport", False))

    @property
    def last_error(self):
        return getattr(self.input, "last_error", None)

    def start(self) -> None:
        self.input.start()
        log_event("INFO", "Input", "Started", source=self.source_name, sample_rate=self.sample_rate)

    def stop(self) -> None:
        self.input.stop()
        log_event("INFO", "Input", "Stopped", source=self.source_name)

    def capture_frame(self, count: Optional[int] = None) -> np.ndarray:
        """Read from the source and append to the ring buffer.

        Live sources that buffer on their own thread hand over only unseen
        samples; `count` applies to pull sources.
        """
        read_available = getattr(self.input, "read_available", None)
        if read_available is not None:
            samples = read_available()
        else:
            samples = self.input.read(self.frame_size if count is None else int(count))
        self.ring_buffer.write(samples)
        return samples

    def latest_samples(self, count: Optional[int] = None) -> np.ndarray:
        return self.ring_buffer.latest(self.frame_size if count is None else count)

    def realtime_capture_size(self, frame_rate) -> int:
        """Samples to ingest per tick to keep pace with real time."""
        try:
            rate = float(frame_rate)
        except (TypeError, ValueError):
            return self.frame_size
        if rate <= 0:
            return self.frame_size
        return max(int(round(self.sample_rate / rate)), 1)

    def sync_transport(self, playing: bool, position_seconds: Optional[float] = None) -> None:
        if self.supports_transport:
            self.input.sync_transport(playing, position_seconds)


def available_audio_devices() -> List[dict]:
    """Input-capable devices, or a single dummy descriptor when none can be listed."""
    devices = []
    try:
        pyaudio = import_pyaudio()
        p = pyaudio.PyAudio()
        try:
            for index in range(p.get_device_count()):
                info = p.get_device_info_by_index(index)
                if int(info.get('maxInputChannels', 0)) <= 0:
                    continue
                devices.append({
                    "index": index,
                    "name": info.get('name', f"device {index}"),
                    "max_input_channels": int(info['maxInputChannels']),
                    "default_sample_rate": float(info.get('defaultSampleRate', DEFAULT_SAMPLE_RATE)),
                })
        finally:
            p.terminate()
    except Exception as e:
        log_event("WARN", "Input", "Audio device enumeration failed", error=e)

    if devices:
        return devices
    return [{
        "index": 0,
        "name": "default (dummy fallback)",
        "max_input_channels": 1,
        "default_sample_rate": float(DEFAULT_SAMPLE_RATE),
    }]
