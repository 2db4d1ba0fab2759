"""
vizbeats - Scene data model
Immutable value types for scenes, layers, mappings, transitions and MIDI maps.
Scenes are replaced wholesale on switch or reload, never mutated in place.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from errors import SceneLoadError

MAPPING_SOURCE_KINDS = ("amplitude", "frequency_band", "fft_spectrum", "beat", "beat_count", "bpm")


def normalize_param_value(value, name: str = "param"):
    """Restrict a static param to number / bool / string / list of those."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, (int, float, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [normalize_param_value(item, name) for item in value]
    raise SceneLoadError(f"unsupported value for {name}: {type(value).__name__}")


@dataclass(frozen=True)
class MappingSource:
    kind: str
    band: Optional[str] = None        # Only for kind="frequency_band"

    def to_dict(self) -> dict:
        data = {"kind": self.kind}
        if self.band is not None:
            data["band"] = self.band
        return data


@dataclass(frozen=True)
class LayerMapping:
    source: MappingSource
    target: str


@dataclass(frozen=True)
class Layer:
    name: str
    type: str = "geometry"
    shader: Optional[str] = None
    glsl: Optional[str] = None
    glsl_source: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)
    mappings: Tuple[LayerMapping, ...] = ()

    def with_params(self, params: Dict[str, Any]) -> "Layer":
        return replace(self, params=dict(params))


@dataclass(frozen=True)
class Scene:
    name: str
    layers: Tuple[Layer, ...] = ()


@dataclass(frozen=True)
class TransitionRule:
    """Directed edge between scenes. `effect` is passed through to the renderer untouched."""
    from_scene: str
    to_scene: str
    trigger: Any                      # Callable[[TriggerContext], bool]
    effect: Any = None


@dataclass(frozen=True)
class MidiMapping:
    trigger: Dict[str, Any]           # {"note": 36} / {"cc": 1} / {"pc": 0}
    action: Dict[str, Any]            # {"switch_scene": "intro"} / {"set": "intensity", ...}


@dataclass(frozen=True)
class ShowDefinition:
    scenes: Tuple[Scene, ...] = ()
    transitions: Tuple[TransitionRule, ...] = ()
    midi_maps: Tuple[MidiMapping, ...] = ()
    globals: Dict[str, Any] = field(default_factory=dict)
    midi_device: Optional[str] = None
    source_path: Optional[str] = None

    def scene(self, name) -> Optional[Scene]:
        target = str(name)
        for scene in self.scenes:
            if scene.name == target:
                return scene
        return None

    def scene_names(self) -> Tuple[str, ...]:
        return tuple(scene.name for scene in self.scenes)

    def first_scene(self) -> Scene:
        if self.scenes:
            return self.scenes[0]
        return Scene(name="default")
