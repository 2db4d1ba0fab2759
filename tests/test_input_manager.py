import unittest
from types import SimpleNamespace
from unittest import mock

import numpy as np

from audio_inputs import BaseInput, DummySineInput, FileInput, MicInput
from config import Config
from errors import ConfigurationError
from input_manager import InputManager, available_audio_devices


class CountingInput(BaseInput):
    supports_transport = True

    def __init__(self):
        super().__init__(sample_rate=1000)
        self.next_value = 0.0
        self.transport = []

    def read(self, count):
        values = self.next_value + np.arange(count, dtype=np.float64)
        self.next_value += count
        return values

    def sync_transport(self, playing, position_seconds=None):
        self.transport.append((playing, position_seconds))


class TestInputManager(unittest.TestCase):
    def test_builds_source_by_name(self):
        self.assertIsInstance(InputManager("dummy").input, DummySineInput)
        self.assertIsInstance(InputManager("MIC").input, MicInput)
        self.assertIsInstance(InputManager("file", file_path=None).input, FileInput)

    def test_unknown_source_raises(self):
        with self.assertRaises(ConfigurationError):
            InputManager("line-in")

    def test_from_config(self):
        config = Config()
        config.audio.source = "dummy"
        config.audio.frame_size = 256
        manager = InputManager.from_config(config)
        self.assertEqual(manager.frame_size, 256)
        self.assertEqual(manager.source_name, "dummy")

    def test_capture_feeds_ring_buffer(self):
        manager = InputManager("dummy", frame_size=4, ring_buffer_size=8, audio_input=CountingInput())
        manager.capture_frame(3)
        manager.capture_frame(3)
        np.testing.assert_array_equal(manager.latest_samples(), [2.0, 3.0, 4.0, 5.0])
        np.testing.assert_array_equal(manager.latest_samples(2), [4.0, 5.0])

    def test_mic_capture_keeps_ring_contiguous(self):
        mic = MicInput(sample_rate=44100, frame_size=1024)
        mic._pyaudio_module = SimpleNamespace(paContinue=0)
        mic._running = True
        mic._audio_callback(np.arange(1024, dtype=np.float32).tobytes(), 1024, None, 0)
        manager = InputManager("mic", frame_size=1024, ring_buffer_size=4096, audio_input=mic)

        manager.capture_frame(735)
        manager.capture_frame(735)

        np.testing.assert_array_equal(manager.latest_samples(1024), np.arange(1024))

        mic._audio_callback(np.arange(1024, 1536, dtype=np.float32).tobytes(), 512, None, 0)
        manager.capture_frame(735)
        np.testing.assert_array_equal(manager.latest_samples(1536), np.arange(1536))

    def test_realtime_capture_size(self):
        manager = InputManager("dummy", sample_rate=44100, frame_size=1024)
        self.assertEqual(manager.realtime_capture_size(60), 735)
        self.assertEqual(manager.realtime_capture_size(0), 1024)
        self.assertEqual(manager.realtime_capture_size("fast"), 1024)

    def test_transport_forwarded_only_when_supported(self):
        source = CountingInput()
        manager = InputManager("dummy", audio_input=source)
        self.assertTrue(manager.supports_transport)
        manager.sync_transport(False, 2.0)
        self.assertEqual(source.transport, [(False, 2.0)])

        self.assertFalse(InputManager("dummy").supports_transport)
        InputManager("dummy").sync_transport(True, 1.0)

    def test_start_stop_delegate(self):
        manager = InputManager("dummy")
        manager.start()
        self.assertTrue(manager.running)
        manager.stop()
        self.assertFalse(manager.running)


class TestAvailableAudioDevices(unittest.TestCase):
    def test_falls_back_to_dummy_descriptor(self):
        with mock.patch("input_manager.import_pyaudio", side_effect=ImportError("missing")):
            devices = available_audio_devices()
        self.assertEqual(len(devices), 1)
        self.assertIn("dummy", devices[0]["name"])

    def test_lists_input_capable_devices(self):
        fake = mock.Mock()
        fake.get_device_count.return_value = 2
        fake.get_device_info_by_index.side_effect = [
            {"name": "Speakers", "maxInputChannels": 0},
            {"name": "USB Mic", "maxInputChannels": 2, "defaultSampleRate": 48000.0},
        ]
        module = mock.Mock()
        module.PyAudio.return_value = fake
        with mock.patch("input_manager.import_pyaudio", return_value=module):
            devices = available_audio_devices()
        self.assertEqual(devices, [{"index": 1, "name": "USB Mic", "max_input_channels": 2,
                                    "default_sample_rate": 48000.0}])
        fake.terminate.assert_called_once()


if __name__ == "__main__":
    unittest.main()
