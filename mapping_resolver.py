"""
vizbeats - Mapping Resolver
Applies "source -> target param" bindings of each layer against one AnalysisResult.
"""

from typing import Any, Dict, Iterable, List, Optional

from scene_model import Layer, MappingSource


def resolve_source_value(source: MappingSource, analysis) -> Optional[Any]:
    """Concrete value for one mapping source, or None for unknown kinds."""
    kind = source.kind
    if kind == "amplitude":
        return float(analysis.amplitude)
    if kind == "frequency_band":
        value = analysis.bands.get(str(source.band)) if source.band is not None else None
        return None if value is None else float(value)
    if kind == "fft_spectrum":
        return [float(v) for v in analysis.fft]
    if kind == "beat":
        return bool(analysis.beat)
    if kind == "beat_count":
        return int(analysis.beat_count)
    if kind == "bpm":
        return float(analysis.bpm)
    return None


class MappingResolver:
    def resolve(self, layers: Iterable[Layer], analysis) -> List[Layer]:
        """Return new layers whose params are static params overridden by mapped values."""
        return [self.resolve_layer(layer, analysis) for layer in layers]

    def resolve_layer(self, layer: Layer, analysis) -> Layer:
        params: Dict[str, Any] = dict(layer.params)
        for mapping in layer.mappings:
            value = resolve_source_value(mapping.source, analysis)
            if value is not None:
                params[mapping.target] = value
        return layer.with_params(params)

    __call__ = resolve
