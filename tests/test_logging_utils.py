import logging
import unittest

from logging_utils import LOGGER_NAME, TaggedFormatter, get_log_level, log_event, set_log_level


class TestLogEvent(unittest.TestCase):
    def test_fields_trail_message(self):
        with self.assertLogs(LOGGER_NAME, level="DEBUG") as captured:
            log_event("WARN", "Scheduler", "Slow tick", elapsed=0.02, overruns=3)

        record = captured.records[0]
        self.assertEqual(record.levelno, logging.WARNING)
        self.assertEqual(record.tag, "Scheduler")
        self.assertEqual(record.getMessage(), "Slow tick | elapsed=0.02 overruns=3")

    def test_unknown_level_logs_as_info(self):
        with self.assertLogs(LOGGER_NAME, level="DEBUG") as captured:
            log_event("loud", "Input", "100% ready")
        self.assertEqual(captured.records[0].levelno, logging.INFO)
        self.assertEqual(captured.records[0].getMessage(), "100% ready")


class TestTaggedFormatter(unittest.TestCase):
    def test_renders_level_and_tag(self):
        record = logging.makeLogRecord({"msg": "Started", "levelname": "INFO", "tag": "Input"})
        self.assertTrue(TaggedFormatter().format(record).endswith(" [INFO][Input] Started"))

    def test_missing_tag_uses_default(self):
        record = logging.makeLogRecord({"msg": "hello", "levelname": "DEBUG"})
        self.assertIn("[DEBUG][App] hello", TaggedFormatter().format(record))


class TestLogLevel(unittest.TestCase):
    def setUp(self):
        self.addCleanup(set_log_level, get_log_level())

    def test_set_log_level_accepts_aliases(self):
        self.assertEqual(set_log_level("debug"), "DEBUG")
        self.assertEqual(get_log_level(), "DEBUG")
        self.assertEqual(set_log_level("warn"), "WARNING")
        self.assertEqual(set_log_level("verbose"), "INFO")
        self.assertEqual(set_log_level(None), "INFO")


if __name__ == "__main__":
    unittest.main()
