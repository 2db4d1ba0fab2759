"""
vizbeats - Smoother
Exponential moving averages keyed per signal, per array index or per map entry.
"""

import threading
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional

DEFAULT_ALPHA = 0.35


def _normalize_alpha(value, fallback: float = DEFAULT_ALPHA) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return fallback


class Smoother:
    """
    y_t = y_{t-1} + alpha * (x_t - y_{t-1}); the first observation of a key is
    taken verbatim. Map and array helpers key their state under a namespace so
    unrelated signals never share state.
    """

    def __init__(self, alpha: float = DEFAULT_ALPHA):
        self.alpha = _normalize_alpha(alpha)
        self._states: Dict[Hashable, float] = {}
        self._lock = threading.Lock()

    def smooth(self, key: Hashable, value, alpha: Optional[float] = None) -> float:
        try:
            normalized = float(value)
        except (TypeError, ValueError):
            return 0.0
        step = self.alpha if alpha is None else _normalize_alpha(alpha, self.alpha)

        with self._lock:
            previous = self._states.get(key)
            current = normalized if previous is None else previous + (normalized - previous) * step
            self._states[key] = current
        return current

    def smooth_map(self, values: Mapping[Any, Any], namespace: Hashable,
                   alpha: Optional[float] = None) -> Dict[Any, float]:
        return {
            entry_key: self.smooth((namespace, entry_key), value, alpha=alpha)
            for entry_key, value in dict(values).items()
        }

    def smooth_array(self, values: Iterable[Any], namespace: Hashable,
                     alpha: Optional[float] = None) -> List[float]:
        return [
            self.smooth((namespace, index), value, alpha=alpha)
            for index, value in enumerate(values)
        ]

    def reset(self, namespace: Optional[Hashable] = None) -> None:
        """Clear one namespace (or a plain key of that name), or everything."""
        with self._lock:
            if namespace is None:
                self._states.clear()
                return
            stale = [
                key for key in self._states
                if key == namespace or (isinstance(key, tuple) and key and key[0] == namespace)
            ]
            for key in stale:
                del self._states[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
