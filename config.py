# vizbeats Configuration
# All default values and constants

from dataclasses import dataclass, field, is_dataclass
from typing import Dict, Optional

from errors import ConfigurationError
from logging_utils import log_event


CURRENT_CONFIG_VERSION = 1

SUPPORTED_WINDOWS = ("hamming", "hann", "blackman", "none")
SUPPORTED_FFT_BACKENDS = ("auto", "reference", "numpy", "scipy")
SUPPORTED_AUDIO_SOURCES = ("mic", "file", "dummy")

# Named frequency bands in Hz (inclusive bounds)
BAND_RANGES: Dict[str, tuple] = {
    "sub": (20.0, 60.0),
    "low": (60.0, 250.0),
    "mid": (250.0, 4000.0),
    "high": (4000.0, 20000.0),
}


@dataclass
class AnalysisConfig:
    """FFT / smoothing parameters"""
    sample_rate: int = 44100
    fft_size: int = 1024              # Must be a power of two
    window: str = "hamming"           # hamming / hann / blackman / none
    backend: str = "auto"             # auto / reference / numpy / scipy
    smoothing_alpha: float = 0.35     # EMA factor for amplitude, bands, spectrum preview
    bpm_smoothing_alpha: float = 0.2  # EMA factor applied to the reported BPM
    preview_bins: int = 32            # Spectrum preview length in the frame payload


@dataclass
class BeatDetectionConfig:
    """Energy-threshold onset detection (tuned for ~1024-sample frames @ 44.1kHz)"""
    history_size: int = 43           # Frames of energy history (~1s)
    sensitivity: float = 1.35        # Instant energy must exceed average * this
    refractory_frames: int = 4       # Frames to suppress after a beat
    min_history: int = 8             # Frames required before any beat can fire


@dataclass
class TempoConfig:
    """Autocorrelation tempo estimation"""
    min_bpm: float = 60.0
    max_bpm: float = 200.0
    history_seconds: float = 10.0    # Beat impulse history length
    smoothing: float = 0.25          # EMA factor for new tempo candidates
    min_onsets: int = 4              # Onsets required before estimating


@dataclass
class AudioConfig:
    """Audio capture settings"""
    source: str = "mic"               # mic / file / dummy
    frame_size: int = 1024            # Samples analyzed per tick
    ring_buffer_size: int = 4096      # Samples retained by the capture ring buffer
    file_path: Optional[str] = None   # Used with source="file"
    # Device index - None means use system default
    device_index: Optional[int] = None


@dataclass
class SchedulerConfig:
    """Broadcast loop settings"""
    frame_rate: float = 60.0          # Ticks per second
    stop_timeout: float = 1.0         # Bounded join when stopping (seconds)
    survive_tick_errors: bool = True  # Report a failed tick and keep looping
    reset_smoothing_on_scene_change: bool = False


@dataclass
class ConnectionConfig:
    """TCP connection to the remote renderer"""
    host: str = "127.0.0.1"
    port: int = 4567
    auto_connect: bool = True
    reconnect_delay_ms: int = 3000
    queue_size: int = 256             # Pending outbound messages before the oldest is dropped


@dataclass
class MidiConfig:
    """MIDI control input"""
    enabled: bool = True
    device: Optional[str] = None      # None = first available input port
    poll_interval_ms: int = 10


@dataclass
class HotReloadConfig:
    """Scene file watcher"""
    enabled: bool = True
    poll_interval: float = 0.25       # Seconds between mtime checks


@dataclass
class Config:
    """Master configuration"""
    version: int = 1                  # Schema version for persisted configs
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    beat: BeatDetectionConfig = field(default_factory=BeatDetectionConfig)
    tempo: TempoConfig = field(default_factory=TempoConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    midi: MidiConfig = field(default_factory=MidiConfig)
    hot_reload: HotReloadConfig = field(default_factory=HotReloadConfig)

    # Global
    log_level: str = "INFO"           # Logging level (DEBUG/INFO/WARNING/ERROR)
    report_generation_enabled: bool = True    # Write session reports on shutdown
    dry_run: bool = False             # Log outbound messages instead of sending


def apply_dict_to_dataclass(target, data) -> None:
    """Recursively apply values from a dict onto a dataclass instance.
    Unknown keys are ignored."""
    if not isinstance(data, dict):
        return

    for key, value in data.items():
        if not hasattr(target, key):
            continue

        current = getattr(target, key)

        if is_dataclass(current) and isinstance(value, dict):
            apply_dict_to_dataclass(current, value)
            continue

        if is_dataclass(current):
            log_event("WARN", "Config", "Ignoring non-object value for section", key=key)
            continue

        setattr(target, key, value)


def _clamped_float(value, default: float, low: float, high: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = default
    return max(low, min(high, number))


def migrate_config(config: Config, loaded_version) -> None:
    """Upgrade older config structures to the current schema.
    Replaces None with defaults, normalizes names and bumps version."""
    try:
        version = int(loaded_version) if loaded_version is not None else 0
    except (TypeError, ValueError):
        version = 0

    defaults = Config()
    for section_name in ("analysis", "beat", "tempo", "audio", "scheduler",
                         "connection", "midi", "hot_reload"):
        section = getattr(config, section_name)
        default_section = getattr(defaults, section_name)
        for key, default_value in vars(default_section).items():
            if default_value is not None and getattr(section, key, None) is None:
                setattr(section, key, default_value)

    if version < 1:
        # Pre-1 files named the native transform library directly
        if str(config.analysis.backend).lower() in ("fftw", "native"):
            config.analysis.backend = "scipy"

    config.analysis.window = str(config.analysis.window).lower()
    config.analysis.backend = str(config.analysis.backend).lower()
    config.audio.source = str(config.audio.source).lower()
    if config.log_level is None:
        config.log_level = "INFO"
    if config.report_generation_enabled is None:
        config.report_generation_enabled = True
    if config.dry_run is None:
        config.dry_run = False

    config.analysis.smoothing_alpha = _clamped_float(config.analysis.smoothing_alpha, 0.35, 0.0, 1.0)
    config.analysis.bpm_smoothing_alpha = _clamped_float(config.analysis.bpm_smoothing_alpha, 0.2, 0.0, 1.0)
    config.tempo.smoothing = _clamped_float(config.tempo.smoothing, 0.25, 0.0, 1.0)

    config.version = CURRENT_CONFIG_VERSION


def validate_config(config: Config) -> None:
    """Raise ConfigurationError for values that components would reject later."""
    fft_size = config.analysis.fft_size
    if not isinstance(fft_size, int) or fft_size <= 0 or fft_size & (fft_size - 1):
        raise ConfigurationError(f"fft_size must be a power of two: {fft_size}")
    if config.analysis.window not in SUPPORTED_WINDOWS:
        raise ConfigurationError(f"unsupported window: {config.analysis.window}")
    if config.analysis.backend not in SUPPORTED_FFT_BACKENDS:
        raise ConfigurationError(f"unsupported FFT backend: {config.analysis.backend}")
    if config.audio.source not in SUPPORTED_AUDIO_SOURCES:
        raise ConfigurationError(
            f"unsupported audio source: {config.audio.source}. "
            f"Use one of: {', '.join(SUPPORTED_AUDIO_SOURCES)}"
        )
    if config.audio.source == "file" and not config.audio.file_path:
        raise ConfigurationError("audio.file_path is required when source is 'file'")
    if int(config.audio.ring_buffer_size) <= 0:
        raise ConfigurationError("ring_buffer_size must be positive")
    if int(config.audio.frame_size) <= 0:
        raise ConfigurationError("frame_size must be positive")
    if float(config.scheduler.frame_rate) <= 0:
        raise ConfigurationError("frame_rate must be positive")
    if config.tempo.min_bpm <= 0 or config.tempo.max_bpm < config.tempo.min_bpm:
        raise ConfigurationError("tempo range must satisfy 0 < min_bpm <= max_bpm")


# Default config instance
DEFAULT_CONFIG = Config()
