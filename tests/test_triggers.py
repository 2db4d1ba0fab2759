import unittest

from analysis_pipeline import AnalysisResult
from errors import SceneLoadError
from triggers import AllOf, AnyOf, CallableTrigger, Compare, Not, TriggerContext, parse_trigger


def context(**overrides):
    analysis = AnalysisResult(
        amplitude=overrides.pop("amplitude", 0.5),
        bands={"sub": 0.1, "low": 0.7, "mid": 0.3, "high": 0.2},
        fft=(0.0,) * 32,
        beat=overrides.pop("beat", False),
        beat_count=overrides.pop("total_beat_count", 100),
        bpm=128.0,
    )
    return TriggerContext.from_analysis(
        analysis,
        frame_count=overrides.pop("frame_count", 10),
        beat_count=overrides.pop("beat_count", 5),
    )


class TestTriggerContext(unittest.TestCase):
    def test_scene_local_and_total_counts(self):
        ctx = context(beat_count=5, total_beat_count=100)
        self.assertEqual(ctx.beat_count, 5)
        self.assertEqual(ctx.total_beat_count, 100)

    def test_frequency_band_lookup(self):
        ctx = context()
        self.assertEqual(ctx.frequency_band("low"), 0.7)
        self.assertEqual(ctx.frequency_band("missing"), 0.0)
        self.assertEqual(ctx.signal("band:low"), 0.7)

    def test_context_is_read_only(self):
        ctx = context()
        with self.assertRaises(AttributeError):
            ctx.beat_count = 99


class TestTriggerTree(unittest.TestCase):
    def test_compare(self):
        self.assertTrue(Compare("beat_count", ">=", 5)(context(beat_count=5)))
        self.assertFalse(Compare("beat_count", ">", 5)(context(beat_count=5)))
        self.assertTrue(Compare("beat")(context(beat=True)))

    def test_combinators(self):
        loud = Compare("amplitude", ">", 0.4)
        late = Compare("frame_count", ">=", 100)
        ctx = context(amplitude=0.5, frame_count=10)
        self.assertFalse(AllOf((loud, late))(ctx))
        self.assertTrue(AnyOf((loud, late))(ctx))
        self.assertTrue(Not(late)(ctx))

    def test_callable_trigger(self):
        trigger = CallableTrigger(lambda c: c.bpm > 120 and c.frequency_band("low") > 0.5)
        self.assertTrue(trigger(context()))


class TestParseTrigger(unittest.TestCase):
    def test_parse_nested(self):
        trigger = parse_trigger({
            "all": [
                {"signal": "beat_count", "op": ">=", "value": 4},
                {"not": {"signal": "band:high", "op": ">", "value": 0.5}},
            ]
        })
        self.assertIsInstance(trigger, AllOf)
        self.assertTrue(trigger(context(beat_count=4)))

    def test_parse_truthy_default(self):
        trigger = parse_trigger({"signal": "beat"})
        self.assertTrue(trigger(context(beat=True)))
        self.assertFalse(trigger(context(beat=False)))

    def test_malformed_data_raises(self):
        for bad in (
            "beat_count >= 4",
            {"op": ">="},
            {"signal": "loudness", "op": ">", "value": 1},
            {"signal": "amplitude", "op": "~", "value": 1},
            {"signal": "amplitude", "op": ">"},
            {"any": []},
        ):
            with self.assertRaises(SceneLoadError):
                parse_trigger(bad)


if __name__ == "__main__":
    unittest.main()
