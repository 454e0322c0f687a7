import os
import glob
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
from services.capability_service import CapabilityProbe, capability_probe, select_optional_flags
from services.format_service import FormatLister
from services.yt_dlp_service import YtDlpService
from utils.config import env_list
from utils.exceptions import DownloadFailedError, ExternalServiceError

logger = logging.getLogger(__name__)

# Error text fragments that mean "segment fetch failed"; worth one retry with ffmpeg muxing.
RETRY_SIGNATURES = env_list(
    'YTDLP_RETRY_SIGNATURES',
    'unable to download fragment,fragment not found,did not get any data blocks,unable to download video data',
)
# Optional boolean flags an operator wants; only passed once --help confirms them.
OPTIONAL_FLAGS = env_list('YTDLP_OPTIONAL_FLAGS', '')

SEGMENT_RETRY_ARGS = ('--hls-prefer-ffmpeg', '--hls-use-mpegts')
PARTIAL_SUFFIXES = ('', '.ytdl')


@dataclass(frozen=True)
class DownloadStrategy:
    format_selector: str
    extra_args: Tuple[str, ...] = ()

    def with_args(self, args: Sequence[str]) -> 'DownloadStrategy':
        return DownloadStrategy(self.format_selector, tuple(self.extra_args) + tuple(args))


@dataclass(frozen=True)
class DownloadAttemptResult:
    strategy: DownloadStrategy
    output_path: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.output_path is not None


@dataclass
class DownloadResult:
    path: str
    attempts: List[DownloadAttemptResult] = field(default_factory=list)


STATIC_LADDER = (
    DownloadStrategy('bestaudio'),
    DownloadStrategy('bestaudio[ext=webm]/bestaudio/best'),
    DownloadStrategy('bestaudio/best'),
)


def build_ladder(discovered_format_ids: Sequence[str] = ()) -> List[DownloadStrategy]:
    """Ordered strategies; a concrete audio format id found by listing goes first.

    yt-dlp lists formats worst to best, so the last audio-only id is used.
    """
    ladder = list(STATIC_LADDER)
    if discovered_format_ids:
        ladder.insert(0, DownloadStrategy(discovered_format_ids[-1]))
    return ladder


def matches_signature(error_text: Optional[str], signatures: Sequence[str]) -> bool:
    if not error_text:
        return False
    lowered = error_text.lower()
    return any(sig.lower() in lowered for sig in signatures if sig)


def remove_partial_files(output_path: str) -> List[str]:
    """Remove the output file and every yt-dlp temp file derived from it.

    Fragmented (HLS/DASH) downloads leave <out>.part-Frag<N> and <out>.part-Frag<N>.part.
    """
    candidates = [output_path + suffix for suffix in PARTIAL_SUFFIXES]
    candidates += sorted(glob.glob(glob.escape(output_path) + '.part*'))
    removed = []
    for candidate in candidates:
        try:
            os.remove(candidate)
            removed.append(candidate)
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning('Could not remove partial file %s: %s', candidate, e)
    return removed


class DownloadOrchestrator:
    """Walks the format ladder against the yt-dlp executable until a file appears."""

    def __init__(self, ydl: Optional[YtDlpService] = None, probe: Optional[CapabilityProbe] = None,
                 lister: Optional[FormatLister] = None, retry_signatures: Optional[Sequence[str]] = None,
                 optional_flags: Optional[Sequence[str]] = None):
        self.ydl = ydl or YtDlpService()
        self.probe = probe or capability_probe
        self.lister = lister or FormatLister(self.ydl)
        self.retry_signatures = list(RETRY_SIGNATURES if retry_signatures is None else retry_signatures)
        self.optional_flags = list(OPTIONAL_FLAGS if optional_flags is None else optional_flags)

    def download(self, source_url: str, output_path: str, cookies_path: Optional[str] = None) -> DownloadResult:
        snapshot = self.probe.ensure()
        optional_args = select_optional_flags(snapshot, self.optional_flags)

        discovered = self.lister.list_audio_formats(source_url, cookies_path=cookies_path)
        ladder = build_ladder(discovered)
        logger.info('Downloading %s with %d strategies (discovered formats: %s)',
                    source_url, len(ladder), ', '.join(discovered) or 'none')

        # stale output from an earlier crash must not count as success
        remove_partial_files(output_path)

        attempts: List[DownloadAttemptResult] = []
        last_error = None
        for strategy in ladder:
            result = self._attempt(source_url, output_path, strategy, cookies_path, optional_args)
            attempts.append(result)
            if result.succeeded:
                return DownloadResult(path=result.output_path, attempts=attempts)
            last_error = result.error

            if matches_signature(result.error, self.retry_signatures):
                logger.info('Segment download failure for format %s; retrying with ffmpeg HLS muxing',
                            strategy.format_selector)
                result = self._attempt(source_url, output_path, strategy.with_args(SEGMENT_RETRY_ARGS),
                                       cookies_path, optional_args)
                attempts.append(result)
                if result.succeeded:
                    return DownloadResult(path=result.output_path, attempts=attempts)
                last_error = result.error

        logger.error('All %d download attempts failed for %s', len(attempts), source_url)
        raise DownloadFailedError(last_error, attempts)

    def _attempt(self, source_url: str, output_path: str, strategy: DownloadStrategy,
                 cookies_path: Optional[str], optional_args: Sequence[str]) -> DownloadAttemptResult:
        logger.debug('Trying yt-dlp with format: %s', strategy.format_selector)
        error = None
        try:
            res = self.ydl.download(source_url, output_path, strategy.format_selector, cookies_path=cookies_path,
                                    extra_args=list(optional_args) + list(strategy.extra_args))
        except ExternalServiceError as e:
            res = None
            error = str(e)

        # the file on disk decides, not the exit code
        if res is not None and os.path.isfile(output_path):
            if not res.ok:
                logger.warning('yt-dlp exited %s but produced %s; accepting the file', res.returncode, output_path)
            return DownloadAttemptResult(strategy=strategy, output_path=output_path)

        if error is None:
            if res.ok:
                error = f"yt-dlp exited 0 but no file was written to {output_path}"
            else:
                error = (res.stderr or res.stdout).strip() or f"yt-dlp exited with code {res.returncode}"

        logger.warning('yt-dlp attempt with format %s failed: %s', strategy.format_selector, error)
        self.cleanup_partial(output_path)
        return DownloadAttemptResult(strategy=strategy, error=error)

    def cleanup_partial(self, output_path: str) -> None:
        removed = remove_partial_files(output_path)
        if removed:
            logger.debug('Removed partial download files: %s', ', '.join(removed))
