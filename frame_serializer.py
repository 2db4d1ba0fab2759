"""
vizbeats - Frame Serializer
Builds the per-tick "audio_frame" payload sent to the renderer.
"""

from typing import Any, Iterable, Optional

from scene_model import Layer

ROUND_DIGITS = 4


def round_value(value: Any, digits: int = ROUND_DIGITS) -> Any:
    """Round floats (recursively through lists and dicts); other values pass through."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return round(value, digits)
    if isinstance(value, (list, tuple)):
        return [round_value(item, digits) for item in value]
    if isinstance(value, dict):
        return {key: round_value(item, digits) for key, item in value.items()}
    return value


def _round_float(value, digits: int = ROUND_DIGITS) -> float:
    try:
        return round(float(value), digits)
    except (TypeError, ValueError):
        return 0.0


class FrameSerializer:
    def __init__(self, digits: int = ROUND_DIGITS):
        self.digits = digits

    def audio_frame(self, timestamp: float, analysis, scene_name, layers: Iterable[Layer],
                    transition: Optional[dict] = None) -> dict:
        return {
            "timestamp": float(timestamp),
            "audio": self.serialize_audio(analysis),
            "scene": self.serialize_scene(scene_name, layers),
            "transition": transition,
        }

    def serialize_scene(self, scene_name, layers: Iterable[Layer]) -> dict:
        return {"name": str(scene_name), "layers": [self.serialize_layer(layer) for layer in layers]}

    def serialize_audio(self, analysis) -> dict:
        return {
            "amplitude": _round_float(analysis.amplitude, self.digits),
            "bands": {name: _round_float(value, self.digits) for name, value in analysis.bands.items()},
            "fft": [_round_float(value, self.digits) for value in analysis.fft],
            "beat": bool(analysis.beat),
            "beat_count": int(analysis.beat_count),
            "bpm": _round_float(analysis.bpm, self.digits),
        }

    def serialize_layer(self, layer: Layer) -> dict:
        output = {
            "name": str(layer.name),
            "type": str(layer.type or "geometry"),
            "params": {str(key): round_value(value, self.digits) for key, value in layer.params.items()},
        }
        if layer.shader:
            output["shader"] = str(layer.shader)
        if layer.glsl:
            output["glsl"] = str(layer.glsl)
        if layer.glsl_source:
            output["glsl_source"] = str(layer.glsl_source)
        return output
