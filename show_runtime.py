"""
vizbeats - Show Runtime
Wires config + show definition into a running show: input, analysis,
transitions, broadcaster, MIDI, hot reload and transport.
"""

import time
from typing import Optional

from analysis_pipeline import AnalysisPipeline
from config import Config, validate_config
from errors import ConfigurationError
from file_watcher import FileWatcher
from frame_broadcaster import FrameBroadcaster
from input_manager import InputManager
from logging_utils import log_event
from midi_input import MidiInput
from midi_map_executor import MidiMapExecutor
from midi_wiring import handle_midi_event
from reload_wiring import make_reload_handler
from scene_model import ShowDefinition
from transition_controller import TransitionController
from transport import FrameTransport


class ShowRuntime:
    def __init__(self, config: Config, definition: ShowDefinition,
                 transport: Optional[FrameTransport] = None,
                 scene_name: Optional[str] = None,
                 input_manager: Optional[InputManager] = None,
                 midi_input: Optional[MidiInput] = None):
        validate_config(config)
        self.config = config
        self.definition = definition
        self.transport = transport or FrameTransport(config.connection, dry_run=config.dry_run)

        if scene_name:
            scene = definition.scene(scene_name)
            if scene is None:
                raise ConfigurationError(
                    f"unknown scene: {scene_name}. Available: {', '.join(definition.scene_names()) or '-'}"
                )
        else:
            scene = definition.first_scene()

        self.input_manager = input_manager or InputManager.from_config(config)
        self.pipeline = AnalysisPipeline.from_config(config, sample_rate=self.input_manager.sample_rate)
        self.transition_controller = TransitionController(definition.scenes, definition.transitions)
        self.midi_executor = MidiMapExecutor(definition.midi_maps, definition.scenes, definition.globals)

        scheduler = config.scheduler
        self.broadcaster = FrameBroadcaster(
            scene.name,
            scene.layers,
            pipeline=self.pipeline,
            input_manager=self.input_manager,
            transition_controller=self.transition_controller,
            emit=self.transport.emit,
            frame_rate=scheduler.frame_rate,
            frame_size=config.audio.frame_size,
            survive_tick_errors=scheduler.survive_tick_errors,
            reset_smoothing_on_scene_change=scheduler.reset_smoothing_on_scene_change,
            stop_timeout=scheduler.stop_timeout,
        )

        self.midi_input = midi_input
        self.watcher: Optional[FileWatcher] = None
        self.started_at: Optional[float] = None
        self.stopped_at: Optional[float] = None

        self.transport.on("transport_sync", self._on_transport_sync)
        self.transport.on("switch_scene", self._on_switch_scene)

    def start(self) -> None:
        self.started_at = time.time()
        self.stopped_at = None
        self.transport.start()
        self.transport.emit("config_update", {
            "scene": self.broadcaster.serializer.serialize_scene(*self.broadcaster.current_scene()),
            "globals": self.midi_executor.globals(),
        })
        self.broadcaster.start()
        self._start_midi()
        self._start_watcher()
        log_event("INFO", "Runtime", "Show started", scene=self.broadcaster.current_scene_name(),
                  source=self.input_manager.source_name, frame_rate=self.config.scheduler.frame_rate)

    def stop(self) -> None:
        """Control inputs first, then broadcaster (scheduler, then input), then transport."""
        if self.midi_input is not None:
            self.midi_input.stop()
        if self.watcher is not None:
            self.watcher.stop()
        self.broadcaster.stop()
        self.transport.stop()
        self.stopped_at = time.time()
        log_event("INFO", "Runtime", "Show stopped")

    def session_summary(self) -> dict:
        summary = self.broadcaster.session_summary()
        summary["audio_source"] = self.input_manager.source_name
        summary["frame_rate"] = self.config.scheduler.frame_rate
        summary["session_started_at"] = self.started_at
        summary["session_ended_at"] = self.stopped_at if self.stopped_at is not None else time.time()
        return summary

    def handle_midi_event(self, event) -> int:
        return handle_midi_event(event, self.broadcaster, self.midi_executor, self.transport.emit)

    def _start_midi(self) -> None:
        if not self.config.midi.enabled or not self.definition.midi_maps:
            return
        if self.midi_input is None:
            self.midi_input = MidiInput(
                device=self.config.midi.device or self.definition.midi_device,
                poll_interval=self.config.midi.poll_interval_ms / 1000.0,
            )
        if not self.midi_input.start(callback=self.handle_midi_event):
            log_event("WARN", "Runtime", "MIDI maps defined but no MIDI input is available")

    def _start_watcher(self) -> None:
        if not self.config.hot_reload.enabled or not self.definition.source_path:
            return
        self.watcher = FileWatcher(
            self.definition.source_path,
            poll_interval=self.config.hot_reload.poll_interval,
            on_change=make_reload_handler(self.broadcaster, self.transport.emit, self.midi_executor),
        )
        self.watcher.start()

    def _on_transport_sync(self, payload: dict) -> None:
        self.broadcaster.sync_transport(bool(payload.get("playing", True)), payload.get("position"))

    def _on_switch_scene(self, payload: dict) -> None:
        name = payload.get("name")
        scene = self.transition_controller.scene(name) if name is not None else None
        if scene is None:
            log_event("WARN", "Runtime", "Ignoring switch to unknown scene", scene=name)
            return
        previous = self.broadcaster.current_scene_name()
        self.broadcaster.update_scene(scene.name, scene.layers, effect=payload.get("effect"))
        self.transport.emit("scene_change", {
            "from": previous, "to": scene.name, "effect": payload.get("effect"), "source": "remote",
        })
