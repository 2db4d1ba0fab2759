import json
import tempfile
import unittest
from pathlib import Path

from errors import SceneLoadError
from scene_loader import load_definition, parse_definition, parse_mapping_source
from scene_model import MappingSource
from triggers import Compare

SHOW = {
    "scenes": [
        {
            "name": "intro",
            "layers": [
                {
                    "name": "bg",
                    "type": "shader",
                    "shader": "gradient",
                    "params": {"speed": 0.5, "palette": ["#000", "#fff"], "mirror": True},
                    "mappings": [
                        {"source": "band:low", "target": "intensity"},
                        {"source": {"kind": "amplitude"}, "target": "speed"},
                    ],
                }
            ],
        },
        {"name": "drop", "layers": [{"name": "cube", "type": "geometry"}]},
    ],
    "transitions": [
        {
            "from": "intro",
            "to": "drop",
            "trigger": {"signal": "beat_count", "op": ">=", "value": 64},
            "effect": {"name": "crossfade", "duration": 2.0},
        }
    ],
    "midi": {"device": "Launchpad", "maps": [{"trigger": {"note": 36}, "action": {"switch_scene": "drop"}}]},
    "globals": {"intensity": 1.0},
}


class TestSceneLoader(unittest.TestCase):
    def test_parse_definition(self):
        definition = parse_definition(SHOW)

        self.assertEqual(definition.scene_names(), ("intro", "drop"))
        layer = definition.scene("intro").layers[0]
        self.assertEqual(layer.type, "shader")
        self.assertEqual(layer.params["palette"], ["#000", "#fff"])
        self.assertEqual(layer.mappings[0].source, MappingSource("frequency_band", "low"))
        self.assertEqual(layer.mappings[1].source, MappingSource("amplitude"))

        rule = definition.transitions[0]
        self.assertEqual((rule.from_scene, rule.to_scene), ("intro", "drop"))
        self.assertIsInstance(rule.trigger, Compare)
        self.assertEqual(rule.effect, {"name": "crossfade", "duration": 2.0})

        self.assertEqual(definition.midi_device, "Launchpad")
        self.assertEqual(definition.midi_maps[0].trigger, {"note": 36})
        self.assertEqual(definition.globals, {"intensity": 1.0})

    def test_load_definition_reads_glsl_relative_to_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            shader = Path(tmpdir) / "shaders" / "wave.frag"
            shader.parent.mkdir()
            shader.write_text("void main() {}", encoding="utf-8")
            show_file = Path(tmpdir) / "show.json"
            show_file.write_text(json.dumps({
                "scenes": [{"name": "art", "layers": [{"name": "wave", "glsl": "shaders/wave.frag"}]}]
            }), encoding="utf-8")

            definition = load_definition(show_file)

        layer = definition.first_scene().layers[0]
        self.assertEqual(layer.type, "shader")
        self.assertEqual(layer.glsl, "shaders/wave.frag")
        self.assertEqual(layer.glsl_source, "void main() {}")
        self.assertEqual(definition.source_path, str(show_file))

    def test_missing_glsl_file_raises(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            show_file = Path(tmpdir) / "show.json"
            show_file.write_text(json.dumps({
                "scenes": [{"name": "art", "layers": [{"name": "wave", "glsl": "missing.frag"}]}]
            }), encoding="utf-8")
            with self.assertRaises(SceneLoadError) as ctx:
                load_definition(show_file)
            self.assertIn("missing.frag", str(ctx.exception))

    def test_missing_and_corrupt_files_raise(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(SceneLoadError):
                load_definition(Path(tmpdir) / "nope.json")
            broken = Path(tmpdir) / "broken.json"
            broken.write_text("{not json", encoding="utf-8")
            with self.assertRaises(SceneLoadError):
                load_definition(broken)

    def test_invalid_structures_raise(self):
        bad_shows = [
            [],
            {"scenes": {"name": "x"}},
            {"scenes": [{"layers": []}]},
            {"scenes": [{"name": "a"}, {"name": "a"}]},
            {"scenes": [{"name": "a", "layers": [{"name": "l", "params": {"p": {"nested": 1}}}]}]},
            {"transitions": [{"from": "a", "to": "b"}]},
            {"midi": {"maps": [{"trigger": {"key": 1}, "action": {"switch_scene": "a"}}]}},
            {"midi": {"maps": [{"trigger": {"cc": 1}, "action": {"explode": True}}]}},
        ]
        for show in bad_shows:
            with self.assertRaises(SceneLoadError):
                parse_definition(show)

    def test_parse_mapping_source_forms(self):
        self.assertEqual(parse_mapping_source("bpm"), MappingSource("bpm"))
        self.assertEqual(parse_mapping_source("frequency_band:high"), MappingSource("frequency_band", "high"))
        self.assertEqual(parse_mapping_source("sparkle"), MappingSource("sparkle"))
        with self.assertRaises(SceneLoadError):
            parse_mapping_source("frequency_band")

    def test_empty_show_has_default_scene(self):
        definition = parse_definition({})
        self.assertEqual(definition.first_scene().name, "default")


if __name__ == "__main__":
    unittest.main()
