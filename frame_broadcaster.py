"""
vizbeats - Frame Broadcaster
Top-level tick orchestration: capture -> analyze -> resolve -> serialize -> emit,
then transition evaluation and scene swap.

Shared state (current scene, scene-local counter bases, transport state) lives
under one lock. The lock is never held while capturing audio, running the
pipeline, resolving/serializing or emitting.
"""

import threading
import time
from typing import Any, Callable, Iterable, List, Optional, Tuple

import numpy as np

from errors import FrameBuildError, summarize
from frame_scheduler import FrameScheduler
from frame_serializer import FrameSerializer
from logging_utils import log_event
from mapping_resolver import MappingResolver
from scene_model import Layer
from transition_controller import SceneTransition, TransitionController

# Transport positions at or below this (seconds) count as a restart of the track
TRANSPORT_RESTART_THRESHOLD = 0.05

EmitFn = Callable[[str, dict], None]
ErrorReporter = Callable[[BaseException, str], None]


def log_error_reporter(error: BaseException, context: str) -> None:
    log_event("ERROR", "FrameBroadcaster", summarize(error, context))


class FrameBroadcaster:
    """
    Owns the scheduler and produces one "audio_frame" per tick.

    pipeline         callable samples -> AnalysisResult (AnalysisPipeline)
    input_manager    capture boundary (InputManager); None means silence
    emit             callable (message_type, payload), fire-and-forget
    error_reporter   callable (error, context); defaults to an ERROR log line
    """

    def __init__(self, scene_name: str, scene_layers: Iterable[Layer] = (),
                 pipeline=None,
                 input_manager=None,
                 transition_controller: Optional[TransitionController] = None,
                 mapping_resolver: Optional[MappingResolver] = None,
                 serializer: Optional[FrameSerializer] = None,
                 emit: Optional[EmitFn] = None,
                 error_reporter: Optional[ErrorReporter] = None,
                 frame_rate: float = 60.0,
                 frame_size: int = 1024,
                 survive_tick_errors: bool = True,
                 reset_smoothing_on_scene_change: bool = False,
                 stop_timeout: float = 1.0,
                 clock: Callable[[], float] = time.time,
                 scheduler_factory=FrameScheduler):
        if pipeline is None:
            raise ValueError("pipeline is required")

        self.pipeline = pipeline
        self.input_manager = input_manager
        self.transition_controller = transition_controller or TransitionController()
        self.mapping_resolver = mapping_resolver or MappingResolver()
        self.serializer = serializer or FrameSerializer()
        self._emit_fn = emit
        self._error_reporter = error_reporter or log_error_reporter
        self.frame_size = int(frame_size)
        self.survive_tick_errors = survive_tick_errors
        self.reset_smoothing_on_scene_change = reset_smoothing_on_scene_change
        self.stop_timeout = stop_timeout
        self._clock = clock

        self._capture_size = self.frame_size
        if input_manager is not None and hasattr(input_manager, "realtime_capture_size"):
            self._capture_size = input_manager.realtime_capture_size(frame_rate)

        self.scheduler = scheduler_factory(
            frame_rate, self.tick, error_handler=self._handle_tick_error
        )

        self._lock = threading.Lock()
        # Guarded by _lock
        self._scene_name = str(scene_name)
        self._scene_layers: Tuple[Layer, ...] = tuple(scene_layers)
        self._generation = 0
        self._rebase_pending = True
        self._beat_base = 0
        self._frame_count = 0
        self._scene_beat_count = 0
        self._pending_announcement: Optional[dict] = None
        self._transport_playing = True
        self._transport_position: Optional[float] = None
        self._frames_emitted = 0
        self._scene_changes = 0
        self._audio_errors = 0
        self._frame_errors = 0
        self._scenes_visited: List[str] = [self._scene_name]
        self._started_at: Optional[float] = None

        self._last_input_error = None

    # ---- lifecycle -------------------------------------------------------

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        if self.running:
            return
        if self.input_manager is not None:
            self.input_manager.start()
        with self._lock:
            self._started_at = self._clock()
        self.scheduler.start()
        log_event("INFO", "FrameBroadcaster", "Started", scene=self.current_scene_name())

    def stop(self) -> None:
        """Stop the scheduler first so no tick reads from a half-closed input."""
        self.scheduler.stop(timeout=self.stop_timeout)
        if self.input_manager is not None:
            try:
                self.input_manager.stop()
            except Exception as e:
                self._report(e, "input stop")
        log_event("INFO", "FrameBroadcaster", "Stopped")

    # ---- external entry points -------------------------------------------

    def update_scene(self, name: str, layers: Iterable[Layer], effect: Any = None) -> None:
        """Replace the active scene wholesale and re-base the scene-local counters."""
        new_name = str(name)
        new_layers = tuple(layers)
        with self._lock:
            previous = self._scene_name
            self._scene_name = new_name
            self._scene_layers = new_layers
            self._generation += 1
            self._rebase_pending = True
            if new_name != previous:
                self._pending_announcement = {"from": previous, "to": new_name, "effect": effect}
                self._scene_changes += 1
                self._scenes_visited.append(new_name)
        if new_name != previous and self.reset_smoothing_on_scene_change:
            self._reset_smoothing()

    def reset_scene_counters(self) -> None:
        with self._lock:
            self._rebase_pending = True

    def sync_transport(self, playing: bool, position_seconds: Optional[float] = None) -> None:
        """
        Follow an external player. While paused on a file-backed source, transition
        evaluation is suspended and the scene-local counters hold still; a seek near
        zero re-bases them.
        """
        source = self.input_manager
        if source is not None and getattr(source, "supports_transport", False):
            try:
                source.sync_transport(playing, position_seconds)
            except Exception as e:
                self._report(e, "transport sync")

        try:
            position = float(position_seconds) if position_seconds is not None else None
        except (TypeError, ValueError):
            position = None
        with self._lock:
            self._transport_playing = bool(playing)
            self._transport_position = position
            if position is not None and position <= TRANSPORT_RESTART_THRESHOLD:
                self._rebase_pending = True

    # ---- snapshots -------------------------------------------------------

    def current_scene(self) -> Tuple[str, Tuple[Layer, ...]]:
        with self._lock:
            return self._scene_name, self._scene_layers

    def current_scene_name(self) -> str:
        with self._lock:
            return self._scene_name

    def scene_counters(self) -> Tuple[int, int]:
        """(frame_count, beat_count) since entering the current scene, as of the last tick."""
        with self._lock:
            return self._frame_count, self._scene_beat_count

    def transitions_suspended(self) -> bool:
        with self._lock:
            return self._transitions_suspended_locked()

    def session_summary(self) -> dict:
        with self._lock:
            started_at = self._started_at
            summary = {
                "scene": self._scene_name,
                "frames_emitted": self._frames_emitted,
                "scene_changes": self._scene_changes,
                "audio_errors": self._audio_errors,
                "frame_errors": self._frame_errors,
                "scenes_visited": list(self._scenes_visited),
            }
        summary["ticks"] = self.scheduler.tick_count
        summary["overruns"] = self.scheduler.overrun_count
        summary["duration_s"] = round(self._clock() - started_at, 3) if started_at is not None else 0.0
        return summary

    # ---- tick ------------------------------------------------------------

    def tick(self, elapsed: float = 0.0) -> dict:
        """Produce and emit one frame. Build failures raise FrameBuildError."""
        samples = self._capture_samples()

        try:
            analysis = self.pipeline(samples)
        except Exception as e:
            self._count_frame_error()
            raise FrameBuildError(summarize(e, "analysis")) from e

        with self._lock:
            suspended = self._transitions_suspended_locked()
            if self._rebase_pending:
                # The beat of the first tick in a scene belongs to that scene
                self._beat_base = int(analysis.beat_count) - (1 if analysis.beat else 0)
                self._frame_count = 0
                self._scene_beat_count = 0
                self._rebase_pending = False
            if suspended:
                # Paused transport holds scene progress where it stopped
                self._beat_base = int(analysis.beat_count) - self._scene_beat_count
            else:
                self._frame_count += 1
                self._scene_beat_count = max(0, int(analysis.beat_count) - self._beat_base)
            frame_count = self._frame_count
            scene_beats = self._scene_beat_count
            scene_name = self._scene_name
            layers = self._scene_layers
            announcement = self._pending_announcement
            self._pending_announcement = None
            generation = self._generation

        try:
            resolved = self.mapping_resolver.resolve(layers, analysis)
            frame = self.serializer.audio_frame(
                timestamp=self._clock(),
                analysis=analysis,
                scene_name=scene_name,
                layers=resolved,
                transition=announcement,
            )
        except Exception as e:
            with self._lock:
                if self._pending_announcement is None and self._generation == generation:
                    self._pending_announcement = announcement
            self._count_frame_error()
            raise FrameBuildError(summarize(e, f"frame for scene {scene_name}")) from e

        self._emit("audio_frame", frame)
        with self._lock:
            self._frames_emitted += 1

        if not suspended:
            change = self.transition_controller.next_transition(
                scene_name, analysis, frame_count=frame_count, beat_count=scene_beats
            )
            if change is not None:
                self._apply_transition(change, analysis, generation)
        return frame

    build_frame = tick

    # ---- internals -------------------------------------------------------

    def _apply_transition(self, change: SceneTransition, analysis, generation: int) -> None:
        with self._lock:
            if self._generation != generation:
                # Scene was replaced by another actor during this tick
                return
            self._scene_name = change.to_scene
            self._scene_layers = tuple(change.scene.layers)
            self._generation += 1
            # Re-base on the triggering tick: its beat counts for the new scene
            self._beat_base = int(analysis.beat_count) - (1 if analysis.beat else 0)
            self._frame_count = 0
            self._scene_beat_count = 0
            self._rebase_pending = False
            announcement = change.announcement()
            self._pending_announcement = announcement
            self._scene_changes += 1
            self._scenes_visited.append(change.to_scene)

        if self.reset_smoothing_on_scene_change:
            self._reset_smoothing()
        log_event("INFO", "FrameBroadcaster", "Scene transition",
                  from_scene=change.from_scene, to_scene=change.to_scene)
        self._emit("scene_change", dict(announcement))

    def _transitions_suspended_locked(self) -> bool:
        source = self.input_manager
        file_backed = source is not None and getattr(source, "supports_transport", False)
        return file_backed and not self._transport_playing

    def _capture_samples(self) -> np.ndarray:
        source = self.input_manager
        if source is None:
            return np.zeros(self.frame_size, dtype=np.float64)

        try:
            source.capture_frame(self._capture_size)
            samples = np.asarray(source.latest_samples(self.frame_size), dtype=np.float64)
        except Exception as e:
            self._count_audio_error()
            self._report(e, "audio capture")
            return np.zeros(self.frame_size, dtype=np.float64)

        input_error = getattr(source, "last_error", None)
        if input_error is not None and input_error is not self._last_input_error:
            self._count_audio_error()
            self._report(input_error, "audio input")
        self._last_input_error = input_error

        if len(samples) < self.frame_size:
            samples = np.concatenate((np.zeros(self.frame_size - len(samples), dtype=np.float64), samples))
        return samples

    def _handle_tick_error(self, error: BaseException) -> None:
        self._report(error, "tick")
        if not self.survive_tick_errors:
            raise error

    def _report(self, error: BaseException, context: str) -> None:
        try:
            self._error_reporter(error, context)
        except Exception as e:
            log_event("ERROR", "FrameBroadcaster", "Error reporter failed", error=e)

    def _emit(self, message_type: str, payload: dict) -> None:
        if self._emit_fn is None:
            return
        try:
            self._emit_fn(message_type, payload)
        except Exception as e:
            self._report(e, f"emit {message_type}")

    def _reset_smoothing(self) -> None:
        reset = getattr(self.pipeline, "reset_smoothing", None)
        if reset is not None:
            reset()

    def _count_audio_error(self) -> None:
        with self._lock:
            self._audio_errors += 1

    def _count_frame_error(self) -> None:
        with self._lock:
            self._frame_errors += 1
