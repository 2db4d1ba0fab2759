"""
vizbeats - Scene loader
Reads JSON show files (scenes, transitions, MIDI maps, globals) into a ShowDefinition.

Example:
    {
      "scenes": [
        {"name": "intro", "layers": [
          {"name": "bg", "type": "shader", "shader": "gradient",
           "params": {"speed": 0.5},
           "mappings": [{"source": "band:low", "target": "intensity"}]}
        ]}
      ],
      "transitions": [
        {"from": "intro", "to": "drop",
         "trigger": {"signal": "beat_count", "op": ">=", "value": 64},
         "effect": {"name": "crossfade", "duration": 2.0}}
      ],
      "midi": {"device": null, "maps": [{"trigger": {"note": 36}, "action": {"switch_scene": "drop"}}]},
      "globals": {"intensity": 1.0}
    }
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from errors import SceneLoadError, summarize
from logging_utils import log_event
from scene_model import (
    MAPPING_SOURCE_KINDS,
    Layer,
    LayerMapping,
    MappingSource,
    MidiMapping,
    Scene,
    ShowDefinition,
    TransitionRule,
    normalize_param_value,
)
from triggers import parse_trigger

MIDI_TRIGGER_KEYS = ("note", "cc", "pc")


def load_definition(path) -> ShowDefinition:
    """Load and validate a show file. Any failure raises SceneLoadError naming the file."""
    scene_path = Path(path).expanduser()
    try:
        with open(scene_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        definition = parse_definition(data, base_dir=scene_path.parent)
    except SceneLoadError as e:
        raise SceneLoadError(f"{scene_path}: {e}") from e
    except (OSError, ValueError) as e:
        raise SceneLoadError(summarize(e, str(scene_path))) from e

    log_event("INFO", "Scenes", "Loaded show definition", path=scene_path,
              scenes=len(definition.scenes), transitions=len(definition.transitions))
    return ShowDefinition(
        scenes=definition.scenes,
        transitions=definition.transitions,
        midi_maps=definition.midi_maps,
        globals=definition.globals,
        midi_device=definition.midi_device,
        source_path=str(scene_path),
    )


def parse_definition(data, base_dir: Optional[Path] = None) -> ShowDefinition:
    if not isinstance(data, dict):
        raise SceneLoadError("show definition must be a JSON object")

    scenes = tuple(_parse_scene(entry, base_dir) for entry in _as_list(data.get("scenes"), "scenes"))
    names = [scene.name for scene in scenes]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise SceneLoadError(f"duplicate scene names: {', '.join(duplicates)}")

    transitions = tuple(_parse_transition(entry) for entry in _as_list(data.get("transitions"), "transitions"))

    midi = data.get("midi") or {}
    if not isinstance(midi, dict):
        raise SceneLoadError("'midi' must be an object")
    midi_maps = tuple(_parse_midi_map(entry) for entry in _as_list(midi.get("maps"), "midi.maps"))
    midi_device = midi.get("device")

    show_globals = data.get("globals") or {}
    if not isinstance(show_globals, dict):
        raise SceneLoadError("'globals' must be an object")

    return ShowDefinition(
        scenes=scenes,
        transitions=transitions,
        midi_maps=midi_maps,
        globals={str(k): normalize_param_value(v, str(k)) for k, v in show_globals.items()},
        midi_device=str(midi_device) if midi_device else None,
    )


def _as_list(value, name: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise SceneLoadError(f"'{name}' must be a list")
    return value


def _require_name(entry: Dict[str, Any], what: str) -> str:
    name = entry.get("name")
    if name is None or str(name) == "":
        raise SceneLoadError(f"{what} is missing a name")
    return str(name)


def _parse_scene(entry, base_dir: Optional[Path]) -> Scene:
    if not isinstance(entry, dict):
        raise SceneLoadError("scene entries must be objects")
    name = _require_name(entry, "scene")
    layers = tuple(_parse_layer(layer, base_dir) for layer in _as_list(entry.get("layers"), f"{name}.layers"))
    return Scene(name=name, layers=layers)


def _parse_layer(entry, base_dir: Optional[Path]) -> Layer:
    if not isinstance(entry, dict):
        raise SceneLoadError("layer entries must be objects")
    name = _require_name(entry, "layer")

    params = entry.get("params") or {}
    if not isinstance(params, dict):
        raise SceneLoadError(f"layer {name}: 'params' must be an object")

    glsl = entry.get("glsl")
    glsl_source = entry.get("glsl_source")
    if glsl and glsl_source is None:
        glsl_source = _read_glsl(str(glsl), base_dir)

    return Layer(
        name=name,
        type=str(entry.get("type") or ("shader" if entry.get("shader") or glsl else "geometry")),
        shader=str(entry["shader"]) if entry.get("shader") else None,
        glsl=str(glsl) if glsl else None,
        glsl_source=glsl_source,
        params={str(k): normalize_param_value(v, f"{name}.{k}") for k, v in params.items()},
        mappings=tuple(_parse_mapping(m, name) for m in _as_list(entry.get("mappings"), f"{name}.mappings")),
    )


def _read_glsl(relative: str, base_dir: Optional[Path]) -> str:
    path = Path(relative)
    if not path.is_absolute() and base_dir is not None:
        path = base_dir / path
    if not path.is_file():
        raise SceneLoadError(f"GLSL file not found: {relative}")
    return path.read_text(encoding='utf-8')


def parse_mapping_source(value) -> MappingSource:
    """Accepts "amplitude", "band:low", "frequency_band:low" or {"kind": ..., "band": ...}."""
    if isinstance(value, str):
        kind, _, band = value.partition(":")
        if kind == "band":
            kind = "frequency_band"
        value = {"kind": kind, "band": band or None}
    if not isinstance(value, dict) or "kind" not in value:
        raise SceneLoadError(f"invalid mapping source: {value!r}")

    kind = str(value["kind"])
    band = value.get("band")
    if kind == "frequency_band" and not band:
        raise SceneLoadError("frequency_band mapping requires a band")
    if kind not in MAPPING_SOURCE_KINDS:
        # Unknown kinds are kept and resolve to no value at runtime
        log_event("WARN", "Scenes", "Unknown mapping source kind", kind=kind)
    return MappingSource(kind=kind, band=str(band) if band else None)


def _parse_mapping(entry, layer_name: str) -> LayerMapping:
    if not isinstance(entry, dict) or "source" not in entry or "target" not in entry:
        raise SceneLoadError(f"layer {layer_name}: mappings need 'source' and 'target'")
    return LayerMapping(source=parse_mapping_source(entry["source"]), target=str(entry["target"]))


def _parse_transition(entry) -> TransitionRule:
    if not isinstance(entry, dict):
        raise SceneLoadError("transition entries must be objects")
    if not entry.get("from") or not entry.get("to"):
        raise SceneLoadError("transitions need 'from' and 'to'")
    if "trigger" not in entry:
        raise SceneLoadError(f"transition {entry['from']} -> {entry['to']} has no trigger")
    return TransitionRule(
        from_scene=str(entry["from"]),
        to_scene=str(entry["to"]),
        trigger=parse_trigger(entry["trigger"]),
        effect=entry.get("effect"),
    )


def _parse_midi_map(entry) -> MidiMapping:
    if not isinstance(entry, dict):
        raise SceneLoadError("midi map entries must be objects")
    trigger = entry.get("trigger")
    action = entry.get("action")
    if not isinstance(trigger, dict) or not any(key in trigger for key in MIDI_TRIGGER_KEYS):
        raise SceneLoadError(f"midi trigger needs one of {', '.join(MIDI_TRIGGER_KEYS)}: {trigger!r}")
    if not isinstance(action, dict) or not ("switch_scene" in action or "set" in action):
        raise SceneLoadError(f"midi action needs 'switch_scene' or 'set': {action!r}")
    return MidiMapping(trigger=dict(trigger), action=dict(action))
