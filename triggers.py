"""
vizbeats - Transition triggers
Read-only evaluation context plus a small expression tree over named signals.

Plain-data form (as found in scene files):
    {"signal": "beat_count", "op": ">=", "value": 64}
    {"signal": "band:low", "op": ">", "value": 0.6}
    {"signal": "beat"}                         # truthiness
    {"all": [...]}, {"any": [...]}, {"not": {...}}
"""

import operator
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Tuple

from errors import SceneLoadError

OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}

SIGNALS = ("amplitude", "beat", "beat_count", "total_beat_count", "bpm",
           "peak_frequency", "frame_count")


@dataclass(frozen=True)
class TriggerContext:
    """Snapshot handed to trigger predicates. beat_count and frame_count are scene-local."""
    amplitude: float = 0.0
    bands: Dict[str, float] = field(default_factory=dict)
    fft_spectrum: Tuple[float, ...] = ()
    beat: bool = False
    beat_count: int = 0
    total_beat_count: int = 0
    bpm: float = 0.0
    peak_frequency: float = 0.0
    frame_count: int = 0

    @classmethod
    def from_analysis(cls, analysis, frame_count: int, beat_count: int) -> "TriggerContext":
        return cls(
            amplitude=float(analysis.amplitude),
            bands=dict(analysis.bands),
            fft_spectrum=tuple(analysis.fft),
            beat=bool(analysis.beat),
            beat_count=int(beat_count),
            total_beat_count=int(analysis.beat_count),
            bpm=float(analysis.bpm),
            peak_frequency=float(analysis.peak_frequency),
            frame_count=int(frame_count),
        )

    def frequency_band(self, name) -> float:
        return float(self.bands.get(str(name), 0.0))

    def signal(self, name: str):
        if name.startswith("band:"):
            return self.frequency_band(name[len("band:"):])
        if name in SIGNALS:
            return getattr(self, name)
        raise KeyError(f"unknown signal: {name}")


class Trigger:
    def __call__(self, context: TriggerContext) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class Compare(Trigger):
    signal: str
    op: str = "truthy"
    value: Any = None

    def __call__(self, context: TriggerContext) -> bool:
        current = context.signal(self.signal)
        if self.op == "truthy":
            return bool(current)
        return bool(OPERATORS[self.op](current, self.value))


@dataclass(frozen=True)
class AllOf(Trigger):
    terms: Tuple[Trigger, ...]

    def __call__(self, context: TriggerContext) -> bool:
        return all(term(context) for term in self.terms)


@dataclass(frozen=True)
class AnyOf(Trigger):
    terms: Tuple[Trigger, ...]

    def __call__(self, context: TriggerContext) -> bool:
        return any(term(context) for term in self.terms)


@dataclass(frozen=True)
class Not(Trigger):
    term: Trigger

    def __call__(self, context: TriggerContext) -> bool:
        return not self.term(context)


@dataclass(frozen=True)
class CallableTrigger(Trigger):
    """Wraps a user function taking the read-only TriggerContext."""
    func: Callable[[TriggerContext], Any]

    def __call__(self, context: TriggerContext) -> bool:
        return bool(self.func(context))


def _validate_signal(name) -> str:
    if not isinstance(name, str):
        raise SceneLoadError(f"trigger signal must be a string: {name!r}")
    if name.startswith("band:") and len(name) > len("band:"):
        return name
    if name not in SIGNALS:
        raise SceneLoadError(f"unknown trigger signal: {name}")
    return name


def parse_trigger(data) -> Trigger:
    """Build a trigger tree from plain data; malformed input raises SceneLoadError."""
    if isinstance(data, Trigger):
        return data
    if not isinstance(data, dict):
        raise SceneLoadError(f"trigger must be an object, got {type(data).__name__}")

    if "all" in data or "any" in data:
        key = "all" if "all" in data else "any"
        terms = data[key]
        if not isinstance(terms, list) or not terms:
            raise SceneLoadError(f"'{key}' trigger needs a non-empty list")
        parsed = tuple(parse_trigger(term) for term in terms)
        return AllOf(parsed) if key == "all" else AnyOf(parsed)

    if "not" in data:
        return Not(parse_trigger(data["not"]))

    if "signal" not in data:
        raise SceneLoadError(f"trigger has no signal: {data}")
    signal = _validate_signal(data["signal"])
    op = data.get("op", "truthy")
    if op != "truthy" and op not in OPERATORS:
        raise SceneLoadError(f"unknown trigger operator: {op}")
    if op != "truthy" and "value" not in data:
        raise SceneLoadError(f"trigger '{signal} {op}' has no value")
    return Compare(signal=signal, op=op, value=data.get("value"))
