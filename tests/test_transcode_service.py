import os
import tempfile
import unittest

from fake_tools import FakeFFmpeg
from converters.ffmpeg_service import FFmpegService
from services.transcode_service import TranscodeStep, normalized_output_path


class TranscodeStepTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.source = os.path.join(self.tmpdir.name, "song-1.webm")
        with open(self.source, 'wb') as fh:
            fh.write(b'webm')

    def tearDown(self):
        self.tmpdir.cleanup()

    def _step(self, fake, enabled=True):
        return TranscodeStep(FFmpegService(ffmpeg_path='ffmpeg', runner=fake), enabled=enabled)

    def test_missing_tool_is_skipped(self):
        result = self._step(FakeFFmpeg(present=False)).try_transcode_to_normalized_audio(self.source)
        self.assertFalse(result.transcoded)
        self.assertEqual(result.skipped_reason, 'tool-not-found')

    def test_fixed_argument_set(self):
        fake = FakeFFmpeg()
        result = self._step(fake).try_transcode_to_normalized_audio(self.source)

        expected_out = os.path.join(self.tmpdir.name, "song-1.mp3")
        self.assertEqual(result.output_path, expected_out)
        self.assertEqual(fake.calls[-1], ['ffmpeg', '-y', '-i', self.source, '-vn', '-ab', '192k', '-ar', '44100',
                                          '-f', 'mp3', expected_out])
        self.assertTrue(os.path.exists(self.source))

    def test_failed_transcode_is_non_fatal_and_cleans_output(self):
        result = self._step(FakeFFmpeg(fail=True)).try_transcode_to_normalized_audio(self.source)

        self.assertFalse(result.transcoded)
        self.assertIn('non-zero', result.skipped_reason)
        self.assertFalse(os.path.exists(os.path.join(self.tmpdir.name, "song-1.mp3")))

    def test_disabled(self):
        fake = FakeFFmpeg()
        result = self._step(fake, enabled=False).try_transcode_to_normalized_audio(self.source)
        self.assertEqual(result.skipped_reason, 'disabled')
        self.assertEqual(fake.calls, [])

    def test_mp3_input_gets_distinct_output(self):
        self.assertEqual(normalized_output_path('/t/a.mp3'), '/t/a-normalized.mp3')
        self.assertEqual(normalized_output_path('/t/a.m4a'), '/t/a.mp3')


if __name__ == "__main__":
    unittest.main()
