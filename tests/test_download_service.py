import os
import tempfile
import unittest
from unittest import mock

from fake_tools import FakeYtDlp, LISTING
from services.capability_service import CapabilityProbe
from services.download_service import (
    DownloadOrchestrator,
    DownloadStrategy,
    SEGMENT_RETRY_ARGS,
    build_ladder,
    matches_signature,
    remove_partial_files,
)
from services.yt_dlp_service import YtDlpService
from utils.exceptions import DownloadFailedError

URL = "https://www.youtube.com/watch?v=abc"


class BuildLadderTests(unittest.TestCase):
    def test_static_order(self):
        selectors = [s.format_selector for s in build_ladder()]
        self.assertEqual(selectors, ['bestaudio', 'bestaudio[ext=webm]/bestaudio/best', 'bestaudio/best'])

    def test_discovered_format_goes_first(self):
        ladder = build_ladder(['139', '251'])
        self.assertEqual(len(ladder), 4)
        self.assertEqual(ladder[0], DownloadStrategy('251'))
        self.assertEqual(ladder[1].format_selector, 'bestaudio')

    def test_signature_match_is_case_insensitive(self):
        self.assertTrue(matches_signature('ERROR: Unable to download fragment 3', ['unable to download fragment']))
        self.assertFalse(matches_signature('ERROR: HTTP Error 403', ['unable to download fragment']))
        self.assertFalse(matches_signature(None, ['x']))


class DownloadOrchestratorTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.output = os.path.join(self.tmpdir.name, "song-1700000000000.webm")

    def tearDown(self):
        self.tmpdir.cleanup()

    def _orchestrator(self, fake, **kwargs):
        ydl = YtDlpService(command=['yt-dlp'], runner=fake)
        return DownloadOrchestrator(ydl=ydl, probe=CapabilityProbe(ydl), **kwargs)

    def _leftovers(self):
        return sorted(os.listdir(self.tmpdir.name))

    def test_first_strategy_success(self):
        fake = FakeYtDlp({'bestaudio': ['ok']})
        result = self._orchestrator(fake).download(URL, self.output)

        self.assertEqual(result.path, self.output)
        self.assertTrue(os.path.isfile(self.output))
        self.assertEqual(len(result.attempts), 1)
        self.assertEqual(fake.formats_tried(), ['bestaudio'])

    def test_minimal_argument_set(self):
        fake = FakeYtDlp({'bestaudio': ['ok']})
        self._orchestrator(fake).download(URL, self.output, cookies_path='/tmp/cookies.txt')

        self.assertEqual(fake.download_calls[0], [
            'yt-dlp', URL, '--output', self.output, '--format', 'bestaudio',
            '--cookies', '/tmp/cookies.txt', '--no-warnings',
        ])

    def test_discovered_format_is_tried_first(self):
        fake = FakeYtDlp({'251': ['ok']}, listing=LISTING)
        result = self._orchestrator(fake).download(URL, self.output)

        self.assertEqual(fake.formats_tried(), ['251'])
        self.assertEqual(result.attempts[0].strategy.format_selector, '251')

    def test_third_strategy_after_two_unrecognised_failures(self):
        fake = FakeYtDlp({
            'bestaudio': ['partial:ERROR: HTTP Error 403: Forbidden'],
            'bestaudio[ext=webm]/bestaudio/best': ['partial:ERROR: Requested format is not available'],
            'bestaudio/best': ['ok'],
        })
        orch = self._orchestrator(fake)
        with mock.patch.object(orch, 'cleanup_partial', wraps=orch.cleanup_partial) as cleanup:
            result = orch.download(URL, self.output)

        self.assertEqual(cleanup.call_count, 2)
        self.assertEqual(result.path, self.output)
        self.assertEqual(fake.formats_tried(), ['bestaudio', 'bestaudio[ext=webm]/bestaudio/best', 'bestaudio/best'])
        self.assertEqual(self._leftovers(), [os.path.basename(self.output)])

    def test_fragment_files_removed_before_next_attempt(self):
        fake = FakeYtDlp({
            'bestaudio': ['fragments:ERROR: HTTP Error 403: Forbidden'],
            'bestaudio[ext=webm]/bestaudio/best': ['ok'],
        })
        result = self._orchestrator(fake).download(URL, self.output)

        self.assertEqual(fake.dir_listings[1], [])
        self.assertEqual(result.path, self.output)
        self.assertEqual(self._leftovers(), [os.path.basename(self.output)])

    def test_fragment_files_removed_before_segment_retry(self):
        fake = FakeYtDlp({'bestaudio': ['fragments:ERROR: unable to download fragment 3', 'ok']})
        self._orchestrator(fake).download(URL, self.output)

        self.assertEqual(fake.formats_tried(), ['bestaudio', 'bestaudio'])
        self.assertEqual(fake.dir_listings[1], [])
        self.assertEqual(self._leftovers(), [os.path.basename(self.output)])

    def test_remove_partial_files_leaves_other_downloads_alone(self):
        other = os.path.join(self.tmpdir.name, "song-2.webm.part-Frag1")
        for path in (self.output + '.part-Frag3', self.output + '.part-Frag3.part', self.output + '.ytdl', other):
            with open(path, 'wb') as fh:
                fh.write(b'x')

        removed = remove_partial_files(self.output)

        self.assertEqual(len(removed), 3)
        self.assertEqual(self._leftovers(), ["song-2.webm.part-Frag1"])

    def test_segment_failure_retries_same_strategy_once(self):
        fake = FakeYtDlp({'bestaudio': ['ERROR: unable to download fragment 12', 'ok']})
        result = self._orchestrator(fake).download(URL, self.output)

        self.assertEqual(fake.formats_tried(), ['bestaudio', 'bestaudio'])
        retry_cmd = fake.download_calls[1]
        for flag in SEGMENT_RETRY_ARGS:
            self.assertIn(flag, retry_cmd)
        self.assertNotIn('--hls-prefer-ffmpeg', fake.download_calls[0])
        self.assertEqual(len(result.attempts), 2)

    def test_segment_failure_retry_then_moves_on(self):
        fake = FakeYtDlp({
            'bestaudio': ['ERROR: unable to download fragment 12'],
            'bestaudio[ext=webm]/bestaudio/best': ['ok'],
        })
        self._orchestrator(fake).download(URL, self.output)
        self.assertEqual(fake.formats_tried(), ['bestaudio', 'bestaudio', 'bestaudio[ext=webm]/bestaudio/best'])

    def test_retry_signatures_are_configurable(self):
        fake = FakeYtDlp({'bestaudio': ['ERROR: custom glitch', 'ok']})
        self._orchestrator(fake, retry_signatures=['custom glitch']).download(URL, self.output)
        self.assertEqual(fake.formats_tried(), ['bestaudio', 'bestaudio'])

    def test_exit_zero_without_file_is_failure(self):
        fake = FakeYtDlp({'bestaudio': ['empty'], 'bestaudio[ext=webm]/bestaudio/best': ['ok']})
        result = self._orchestrator(fake).download(URL, self.output)

        self.assertFalse(result.attempts[0].succeeded)
        self.assertIn('no file', result.attempts[0].error)
        self.assertTrue(result.attempts[1].succeeded)

    def test_exhaustion_raises_with_last_error(self):
        fake = FakeYtDlp({
            'bestaudio': ['partial:ERROR: first'],
            'bestaudio[ext=webm]/bestaudio/best': ['ERROR: second'],
            'bestaudio/best': ['ERROR: third'],
        })
        with self.assertRaises(DownloadFailedError) as ctx:
            self._orchestrator(fake).download(URL, self.output)

        self.assertEqual(ctx.exception.last_error, 'ERROR: third')
        self.assertEqual(len(ctx.exception.attempts), 3)
        self.assertEqual(self._leftovers(), [])

    def test_probe_failure_still_attempts_with_minimal_flags(self):
        fake = FakeYtDlp({'bestaudio': ['ok']})
        ydl = YtDlpService(command=['yt-dlp'], runner=fake)
        probe = CapabilityProbe(ydl)
        fake.missing = True
        snapshot = probe.probe()
        fake.missing = False

        self.assertIsNone(snapshot.version)
        self.assertEqual(snapshot.supported_flags, frozenset())

        orch = DownloadOrchestrator(ydl=ydl, probe=probe, optional_flags=['no-playlist'])
        result = orch.download(URL, self.output)
        self.assertEqual(result.path, self.output)
        self.assertEqual(fake.download_calls[0], ['yt-dlp', URL, '--output', self.output, '--format', 'bestaudio',
                                                  '--no-warnings'])

    def test_optional_flag_passed_only_when_confirmed(self):
        fake = FakeYtDlp({'bestaudio': ['ok']})
        self._orchestrator(fake, optional_flags=['no-playlist', 'allow-unplayable-formats']).download(URL, self.output)

        cmd = fake.download_calls[0]
        self.assertIn('--no-playlist', cmd)
        self.assertNotIn('--allow-unplayable-formats', cmd)

    def test_stale_output_is_not_mistaken_for_success(self):
        with open(self.output, 'wb') as fh:
            fh.write(b'stale')
        fake = FakeYtDlp({'bestaudio': ['empty'], 'bestaudio[ext=webm]/bestaudio/best': ['ok']})
        result = self._orchestrator(fake).download(URL, self.output)

        self.assertFalse(result.attempts[0].succeeded)
        with open(result.path, 'rb') as fh:
            self.assertEqual(fh.read(), b'audio-bytes')


if __name__ == "__main__":
    unittest.main()
