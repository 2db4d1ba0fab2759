import unittest

from analysis_pipeline import AnalysisResult
from frame_broadcaster import FrameBroadcaster
from midi_input import MidiEvent
from midi_map_executor import MidiMapExecutor
from midi_wiring import handle_midi_event
from scene_model import Layer, MidiMapping, Scene

INTRO = Scene("intro", (Layer("a"),))
DROP = Scene("drop", (Layer("b", type="shader", shader="tunnel"),))


class TestMidiWiring(unittest.TestCase):
    def setUp(self):
        self.messages = []
        self.broadcaster = FrameBroadcaster("intro", INTRO.layers,
                                            pipeline=lambda samples: AnalysisResult.silent())
        self.executor = MidiMapExecutor(
            [
                MidiMapping({"note": 36}, {"switch_scene": "drop", "effect": {"name": "flash"}}),
                MidiMapping({"cc": 1}, {"set": "intensity", "scale": 0.1}),
            ],
            [INTRO, DROP],
        )

    def emit(self, message_type, payload):
        self.messages.append((message_type, payload))

    def test_note_switches_scene(self):
        applied = handle_midi_event(MidiEvent("note_on", 0, 36, 100), self.broadcaster, self.executor, self.emit)

        self.assertEqual(applied, 1)
        self.assertEqual(self.broadcaster.current_scene(), ("drop", DROP.layers))
        self.assertEqual(self.messages, [("scene_change", {
            "from": "intro", "to": "drop", "effect": {"name": "flash"}, "source": "midi",
        })])
        frame = self.broadcaster.tick()
        self.assertEqual(frame["transition"], {"from": "intro", "to": "drop", "effect": {"name": "flash"}})
        self.assertEqual(frame["scene"]["layers"][0]["shader"], "tunnel")

    def test_cc_updates_globals(self):
        handle_midi_event(MidiEvent("control_change", 0, 1, 50), self.broadcaster, self.executor, self.emit)
        self.assertEqual(self.messages, [("config_update", {"globals": {"intensity": 5.0}})])
        self.assertEqual(self.broadcaster.current_scene_name(), "intro")

    def test_unmapped_event_does_nothing(self):
        self.assertEqual(
            handle_midi_event(MidiEvent("note_on", 0, 99, 100), self.broadcaster, self.executor, self.emit), 0
        )
        self.assertEqual(self.messages, [])


if __name__ == "__main__":
    unittest.main()
