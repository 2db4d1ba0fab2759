"""
vizbeats - MIDI map executor
Matches MIDI events against show MIDI maps and turns them into runtime actions.

Action data:
    {"switch_scene": "drop", "effect": {"name": "flash"}}
    {"set": "intensity", "scale": 0.0078740, "offset": 0.0}   # event value * scale + offset
    {"set": "strobe", "value": true}                          # constant
"""

import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

from logging_utils import log_event
from midi_input import MidiEvent
from scene_model import MidiMapping, Scene


@dataclass(frozen=True)
class SwitchSceneAction:
    scene: Scene
    effect: Any = None


@dataclass(frozen=True)
class SetGlobalAction:
    key: str
    value: Any


MidiAction = Union[SwitchSceneAction, SetGlobalAction]


def mapping_matches(trigger: Dict[str, Any], event: MidiEvent) -> bool:
    try:
        if "note" in trigger:
            return event.type == "note_on" and event.data1 == int(trigger["note"])
        if "cc" in trigger:
            return event.type == "control_change" and event.data1 == int(trigger["cc"])
        if "pc" in trigger:
            return event.type == "program_change" and event.data1 == int(trigger["pc"])
    except (TypeError, ValueError):
        return False
    return False


def event_value(trigger: Dict[str, Any], event: MidiEvent) -> int:
    """Velocity/CC value for note and cc maps, program number for pc maps, in 0..127."""
    if "note" in trigger or "cc" in trigger:
        raw = event.data2
    elif "pc" in trigger:
        raw = event.data1
    else:
        return 0
    return max(0, min(127, int(raw)))


class MidiMapExecutor:
    def __init__(self, midi_maps: Iterable[MidiMapping] = (), scenes: Iterable[Scene] = (),
                 globals: Optional[Dict[str, Any]] = None):
        self._lock = threading.Lock()
        self._midi_maps: tuple = ()
        self._scenes: Dict[str, Scene] = {}
        self._globals: Dict[str, Any] = {}
        self.update(midi_maps, scenes, globals if globals is not None else {})

    def update(self, midi_maps: Iterable[MidiMapping], scenes: Iterable[Scene],
               globals: Optional[Dict[str, Any]] = None) -> None:
        """Replace maps and scenes; globals are kept unless given."""
        maps = tuple(midi_maps)
        scenes_by_name = {scene.name: scene for scene in scenes}
        with self._lock:
            self._midi_maps = maps
            self._scenes = scenes_by_name
            if globals is not None:
                self._globals = dict(globals)

    def globals(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._globals)

    def handle_event(self, event: MidiEvent) -> List[MidiAction]:
        with self._lock:
            maps = self._midi_maps
            scenes = self._scenes

        actions: List[MidiAction] = []
        for mapping in maps:
            if not mapping_matches(mapping.trigger, event):
                continue
            action = self._build_action(mapping, event, scenes)
            if action is not None:
                actions.append(action)
        return actions

    def _build_action(self, mapping: MidiMapping, event: MidiEvent,
                      scenes: Dict[str, Scene]) -> Optional[MidiAction]:
        action_data = mapping.action
        if "switch_scene" in action_data:
            scene = scenes.get(str(action_data["switch_scene"]))
            if scene is None:
                log_event("WARN", "MIDI", "Unknown scene in midi map", scene=action_data["switch_scene"])
                return None
            return SwitchSceneAction(scene=scene, effect=action_data.get("effect"))

        if "set" in action_data:
            key = str(action_data["set"])
            if "value" in action_data:
                value = action_data["value"]
            else:
                try:
                    value = event_value(mapping.trigger, event) * float(action_data.get("scale", 1.0)) \
                        + float(action_data.get("offset", 0.0))
                except (TypeError, ValueError) as e:
                    log_event("WARN", "MIDI", "Invalid scale/offset in midi map", key=key, error=e)
                    return None
            with self._lock:
                self._globals[key] = value
            return SetGlobalAction(key=key, value=value)
        return None
