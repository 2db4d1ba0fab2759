from errors import SceneLoadError
from logging_utils import log_event
from scene_loader import load_definition


def apply_reloaded_definition(definition, broadcaster, emit, executor=None) -> None:
    """Swap a freshly loaded show into the running broadcaster."""
    broadcaster.transition_controller.update(definition.scenes, definition.transitions)
    scene = definition.first_scene()
    broadcaster.update_scene(scene.name, scene.layers)
    if executor is not None:
        executor.update(definition.midi_maps, definition.scenes, definition.globals)
        show_globals = executor.globals()
    else:
        show_globals = dict(definition.globals)
    emit("config_update", {
        "scene": broadcaster.serializer.serialize_scene(scene.name, scene.layers),
        "globals": show_globals,
    })
    log_event("INFO", "Watcher", "Show reloaded", scene=scene.name, scenes=len(definition.scenes))


def make_reload_handler(broadcaster, emit, executor=None):
    """on_change callback for FileWatcher. A broken file keeps the current show running."""
    def on_change(path) -> None:
        try:
            definition = load_definition(path)
        except SceneLoadError as e:
            log_event("ERROR", "Watcher", "Reload failed, keeping current show", error=e)
            emit("config_update", {"error": str(e)})
            return
        apply_reloaded_definition(definition, broadcaster, emit, executor)
    return on_change
