from midi_map_executor import SetGlobalAction, SwitchSceneAction


def apply_midi_action(action, broadcaster, executor, emit) -> None:
    """Apply one MIDI action to the running show and announce it."""
    if isinstance(action, SwitchSceneAction):
        previous = broadcaster.current_scene_name()
        broadcaster.update_scene(action.scene.name, action.scene.layers, effect=action.effect)
        emit("scene_change", {
            "from": previous,
            "to": action.scene.name,
            "effect": action.effect,
            "source": "midi",
        })
        return

    if isinstance(action, SetGlobalAction):
        emit("config_update", {"globals": executor.globals()})


def handle_midi_event(event, broadcaster, executor, emit) -> int:
    """Run every action a MIDI event maps to. Returns the number applied."""
    actions = executor.handle_event(event)
    for action in actions:
        apply_midi_action(action, broadcaster, executor, emit)
    return len(actions)
