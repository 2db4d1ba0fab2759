import shutil
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest import mock

import numpy as np
import soundfile as sf

from audio_inputs import BaseInput, DummySineInput, FileInput, MicInput
from errors import AudioSourceError


class TestDummySineInput(unittest.TestCase):
    def test_silent_until_started(self):
        source = DummySineInput(sample_rate=8000)
        np.testing.assert_array_equal(source.read(16), np.zeros(16))

    def test_phase_continues_across_reads(self):
        source = DummySineInput(sample_rate=8000, frequency=440.0, amplitude=0.5)
        source.start()
        joined = np.concatenate((source.read(100), source.read(100)))

        reference = DummySineInput(sample_rate=8000, frequency=440.0, amplitude=0.5)
        reference.start()
        np.testing.assert_allclose(joined, reference.read(200), atol=1e-9)
        self.assertLessEqual(np.max(np.abs(joined)), 0.5 + 1e-12)

    def test_base_input_reads_silence(self):
        self.assertEqual(len(BaseInput().read(-5)), 0)


class TestFileInput(unittest.TestCase):
    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        # Stereo with left/right averaging to 0, 0.25, 0.5, 0.75
        left = np.array([0.0, 0.5, 0.5, 1.0, 0.5, 0.25, 0.0, 0.0], dtype=np.float32)
        right = np.array([0.0, 0.0, 0.5, 0.5, 0.0, 0.25, 0.5, 0.0], dtype=np.float32)
        self.path = self.temp_dir / "loop.wav"
        sf.write(str(self.path), np.column_stack((left, right)), 8, subtype="FLOAT")
        self.mono = (left + right) / 2.0

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_loads_mono_and_native_rate(self):
        source = FileInput(self.path, sample_rate=44100)
        self.assertIsNone(source.last_error)
        self.assertEqual(source.stream_sample_rate, 8)
        self.assertEqual(source.sample_count, 8)

    def test_reads_loop_over_file(self):
        source = FileInput(self.path)
        source.start()
        first = source.read(6)
        second = source.read(6)
        np.testing.assert_allclose(first, self.mono[:6])
        np.testing.assert_allclose(second, np.concatenate((self.mono[6:], self.mono[:4])))

    def test_transport_pause_and_seek(self):
        source = FileInput(self.path)
        source.start()
        source.sync_transport(False, 0.5)
        np.testing.assert_array_equal(source.read(3), np.zeros(3))

        # 0.5 s at 8 Hz is sample 4
        source.sync_transport(True)
        np.testing.assert_allclose(source.read(2), self.mono[4:6])

        source.sync_transport(True, -0.25)
        np.testing.assert_allclose(source.read(1), self.mono[6:7])

    def test_missing_file_records_error(self):
        source = FileInput(self.temp_dir / "missing.wav")
        source.start()
        self.assertIsInstance(source.last_error, AudioSourceError)
        np.testing.assert_array_equal(source.read(4), np.zeros(4))
        source.sync_transport(True, 1.0)

    def test_unsupported_extension_records_error(self):
        other = self.temp_dir / "notes.txt"
        other.write_text("not audio", encoding="utf-8")
        source = FileInput(other)
        self.assertIn("Unsupported", str(source.last_error))

    def test_undecodable_file_records_error(self):
        broken = self.temp_dir / "broken.wav"
        broken.write_bytes(b"RIFF0000WAVEjunk")
        source = FileInput(broken)
        self.assertIn("decode failed", str(source.last_error))

    def test_no_path_records_error(self):
        self.assertIsInstance(FileInput(None).last_error, AudioSourceError)


class TestMicInput(unittest.TestCase):
    def test_callback_downmixes_into_ring_buffer(self):
        mic = MicInput(sample_rate=8000, frame_size=4)
        mic._pyaudio_module = SimpleNamespace(paContinue=0)
        mic._running = True
        mic.channels = 2
        frames = np.array([[0.2, 0.4], [0.6, 0.8]], dtype=np.float32)

        result = mic._audio_callback(frames.tobytes(), 2, None, 0)

        self.assertEqual(result[1], 0)
        np.testing.assert_allclose(mic.read(4), [0.0, 0.0, 0.3, 0.7], atol=1e-6)

    def test_read_available_drains_new_samples_once(self):
        mic = MicInput(sample_rate=8000, frame_size=4)
        mic._pyaudio_module = SimpleNamespace(paContinue=0)
        mic._running = True

        mic._audio_callback(np.array([1.0, 2.0, 3.0], dtype=np.float32).tobytes(), 3, None, 0)
        np.testing.assert_array_equal(mic.read_available(), [1.0, 2.0, 3.0])
        self.assertEqual(len(mic.read_available()), 0)

        mic._audio_callback(np.array([4.0], dtype=np.float32).tobytes(), 1, None, 0)
        np.testing.assert_array_equal(mic.read_available(), [4.0])
        np.testing.assert_array_equal(mic.read(2), [3.0, 4.0])

    def test_start_failure_is_recorded(self):
        mic = MicInput()
        with mock.patch("audio_inputs.import_pyaudio", side_effect=ImportError("no pyaudio")):
            mic.start()
        self.assertFalse(mic.running)
        self.assertIsInstance(mic.last_error, AudioSourceError)
        np.testing.assert_array_equal(mic.read(3), np.zeros(3))


if __name__ == "__main__":
    unittest.main()
