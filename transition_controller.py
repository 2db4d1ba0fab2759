"""
vizbeats - Transition Controller
Scene-graph state machine: finds the first matching transition rule for the
current scene and returns the target scene.
"""

import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from logging_utils import log_event
from scene_model import Scene, TransitionRule
from triggers import TriggerContext


@dataclass(frozen=True)
class SceneTransition:
    from_scene: str
    to_scene: str
    effect: Any
    scene: Scene

    def announcement(self) -> dict:
        return {"from": self.from_scene, "to": self.to_scene, "effect": self.effect}


def evaluate_trigger(trigger, context: TriggerContext) -> bool:
    """Run a trigger predicate; any failure counts as "did not fire"."""
    if not callable(trigger):
        return False
    try:
        return bool(trigger(context))
    except Exception as e:
        log_event("DEBUG", "Transitions", "Trigger failed, treated as not fired", error=e)
        return False


class TransitionController:
    def __init__(self, scenes: Iterable[Scene] = (), transitions: Iterable[TransitionRule] = ()):
        self._lock = threading.Lock()
        self._scenes: Dict[str, Scene] = {}
        self._transitions: Tuple[TransitionRule, ...] = ()
        self.update(scenes, transitions)

    def update(self, scenes: Iterable[Scene], transitions: Iterable[TransitionRule]) -> None:
        """Replace both catalogs at once (hot reload)."""
        scenes_by_name = {str(scene.name): scene for scene in scenes}
        rules = tuple(transitions)
        with self._lock:
            self._scenes = scenes_by_name
            self._transitions = rules

    def scene(self, name) -> Optional[Scene]:
        with self._lock:
            return self._scenes.get(str(name))

    def scene_names(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._scenes)

    def transitions(self) -> Tuple[TransitionRule, ...]:
        with self._lock:
            return self._transitions

    def next_transition(self, current_scene, analysis, frame_count: int = 0,
                        beat_count: int = 0) -> Optional[SceneTransition]:
        """
        First rule (declaration order) leaving `current_scene` whose trigger fires.
        frame_count and beat_count are scene-local and maintained by the caller.
        Returns None when nothing fires or the matched target scene is unknown.
        """
        with self._lock:
            scenes = self._scenes
            rules = self._transitions

        current = str(current_scene)
        context = TriggerContext.from_analysis(analysis, frame_count=frame_count, beat_count=beat_count)
        for rule in rules:
            if rule.from_scene != current:
                continue
            if not evaluate_trigger(rule.trigger, context):
                continue

            target = scenes.get(rule.to_scene)
            if target is None:
                log_event("DEBUG", "Transitions", "Transition target scene not found",
                          from_scene=rule.from_scene, to_scene=rule.to_scene)
                return None
            return SceneTransition(
                from_scene=rule.from_scene,
                to_scene=rule.to_scene,
                effect=rule.effect,
                scene=target,
            )
        return None
