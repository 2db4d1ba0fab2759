import csv
import json
import tempfile
import unittest
from pathlib import Path

import numpy as np

from session_reporter import CSV_FIELDS, SessionReporter


def summary(**overrides):
    data = {
        "session_started_at": 10.0,
        "session_ended_at": 70.0,
        "duration_s": 60.0,
        "ticks": 3600,
        "frames_emitted": 3598,
        "scene_changes": 2,
        "audio_errors": 0,
        "frame_errors": 2,
        "overruns": 5,
        "scene": "outro",
        "scenes_visited": ["intro", "drop", "outro"],
        "audio_source": "file",
        "frame_rate": 60.0,
    }
    data.update(overrides)
    return data


class TestSessionReporter(unittest.TestCase):
    def test_writes_json_and_csv_reports(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            report_dir = Path(tmpdir) / "reports"
            SessionReporter(report_dir).save_session(summary(frames_emitted=np.int64(3598)))

            with open(report_dir / "show_session_report.json", "r", encoding="utf-8") as f:
                payload = json.load(f)
            self.assertEqual(payload["session_count"], 1)
            self.assertEqual(payload["latest"]["frames_emitted"], 3598)
            self.assertEqual(payload["latest"]["scenes_visited"], ["intro", "drop", "outro"])

            with open(report_dir / "show_session_report.csv", "r", newline="", encoding="utf-8") as f:
                rows = list(csv.DictReader(f))
            self.assertEqual(list(rows[0].keys()), CSV_FIELDS)
            self.assertEqual(rows[0]["scenes_visited"], "intro|drop|outro")

    def test_keeps_only_latest_sessions(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            reporter = SessionReporter(Path(tmpdir), max_sessions=2)
            for scene in ("a", "b", "c"):
                reporter.save_session(summary(scene=scene))

            with open(reporter.json_path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            self.assertEqual([s["scene"] for s in payload["sessions"]], ["b", "c"])
            self.assertEqual(payload["latest"]["scene"], "c")

    def test_corrupt_report_is_replaced(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            reporter = SessionReporter(Path(tmpdir))
            reporter.json_path.write_text("{broken", encoding="utf-8")
            reporter.save_session(summary())

            with open(reporter.json_path, "r", encoding="utf-8") as f:
                self.assertEqual(json.load(f)["session_count"], 1)


if __name__ == "__main__":
    unittest.main()
