#!/usr/bin/env python3
"""
vizbeats - Audio-reactive visual show driver

Analyzes live (or file/dummy) audio, maps it onto the scenes of a show file
and streams frames to a remote renderer at a fixed rate.
"""

import argparse
import sys
import time
from pathlib import Path

from config import SUPPORTED_AUDIO_SOURCES, validate_config
from config_persistence import get_config_dir, load_config
from errors import ConfigurationError, SceneLoadError
from input_manager import available_audio_devices
from logging_utils import log_event, set_log_level
from midi_input import available_devices as available_midi_devices
from scene_loader import load_definition
from session_reporter import SessionReporter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a vizbeats show")
    parser.add_argument("--scene", help="Path to the show file (JSON scenes/transitions)")
    parser.add_argument("--start-scene", help="Scene to start in (default: first scene in the file)")
    parser.add_argument("--config", help="Config file (default: ~/.vizbeats/config.json)")
    parser.add_argument("--audio-source", choices=SUPPORTED_AUDIO_SOURCES, help="Audio input")
    parser.add_argument("--audio-file", help="Audio file for --audio-source file")
    parser.add_argument("--host", help="Renderer host")
    parser.add_argument("--port", type=int, help="Renderer port")
    parser.add_argument("--frame-rate", type=float, help="Frames per second")
    parser.add_argument("--log-level", help="DEBUG / INFO / WARNING / ERROR")
    parser.add_argument("--dry-run", action="store_true", help="Log outbound messages instead of sending")
    parser.add_argument("--list-devices", action="store_true", help="List audio and MIDI inputs and exit")
    return parser


def apply_cli_overrides(config, args) -> None:
    if args.audio_file:
        config.audio.file_path = args.audio_file
        if not args.audio_source:
            config.audio.source = "file"
    if args.audio_source:
        config.audio.source = args.audio_source
    if args.host:
        config.connection.host = args.host
    if args.port is not None:
        config.connection.port = args.port
    if args.frame_rate is not None:
        config.scheduler.frame_rate = args.frame_rate
    if args.log_level:
        config.log_level = args.log_level.upper()
    if args.dry_run:
        config.dry_run = True


def list_devices() -> None:
    print("Audio inputs:")
    for device in available_audio_devices():
        print(f"  [{device['index']}] {device['name']} "
              f"({device['max_input_channels']} ch, {device['default_sample_rate']:.0f} Hz)")
    print("MIDI inputs:")
    names = available_midi_devices()
    for name in names:
        print(f"  {name}")
    if not names:
        print("  (none)")


def run_show(config, definition, start_scene=None) -> int:
    # Imported here so --list-devices stays light
    from show_runtime import ShowRuntime

    runtime = ShowRuntime(config, definition, scene_name=start_scene)
    runtime.start()
    try:
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        log_event("INFO", "Runtime", "Interrupted, shutting down")
    finally:
        runtime.stop()
        if config.report_generation_enabled:
            try:
                SessionReporter(get_config_dir() / "reports").save_session(runtime.session_summary())
            except OSError as e:
                log_event("WARN", "Runtime", "Failed to write session report", error=e)
    return 0


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)

    if args.list_devices:
        list_devices()
        sys.exit(0)

    config = load_config(Path(args.config) if args.config else None)
    apply_cli_overrides(config, args)
    set_log_level(config.log_level)

    if not args.scene:
        log_event("ERROR", "Runtime", "No show file given (use --scene PATH)")
        sys.exit(2)

    try:
        validate_config(config)
        definition = load_definition(args.scene)
        exit_code = run_show(config, definition, start_scene=args.start_scene)
    except (ConfigurationError, SceneLoadError) as e:
        log_event("ERROR", "Runtime", str(e))
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
