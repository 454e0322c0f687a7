import os
import logging
from dataclasses import dataclass
from typing import Optional
from converters.ffmpeg_service import FFmpegService
from utils.config import env_bool
from utils.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

TRANSCODE_ENABLED = env_bool('TRANSCODE_ENABLED', True)


@dataclass(frozen=True)
class TranscodeResult:
    output_path: Optional[str] = None
    skipped_reason: Optional[str] = None

    @property
    def transcoded(self) -> bool:
        return self.output_path is not None


def normalized_output_path(input_path: str) -> str:
    base, ext = os.path.splitext(input_path)
    if ext.lower() == '.mp3':
        return f"{base}-normalized.mp3"
    return f"{base}.mp3"


class TranscodeStep:
    """Best-effort conversion to MP3; the caller keeps the original file on any skip."""

    def __init__(self, ffmpeg: Optional[FFmpegService] = None, enabled: Optional[bool] = None):
        self.ffmpeg = ffmpeg or FFmpegService()
        self.enabled = TRANSCODE_ENABLED if enabled is None else enabled

    def try_transcode_to_normalized_audio(self, input_path: str) -> TranscodeResult:
        if not self.enabled:
            return TranscodeResult(skipped_reason='disabled')
        if not self.ffmpeg.is_available():
            logger.info('ffmpeg not found; uploading %s as downloaded', os.path.basename(input_path))
            return TranscodeResult(skipped_reason='tool-not-found')

        output_path = normalized_output_path(input_path)
        cmd = self.ffmpeg.build_normalize_command(input_path, output_path)
        try:
            self.ffmpeg.run(cmd)
        except ExternalServiceError as e:
            logger.warning('Transcode of %s failed, keeping original: %s', input_path, e)
            self._discard(output_path)
            return TranscodeResult(skipped_reason=str(e))

        if not os.path.isfile(output_path):
            return TranscodeResult(skipped_reason='ffmpeg produced no output file')
        return TranscodeResult(output_path=output_path)

    def _discard(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning('Could not remove failed transcode output %s: %s', path, e)
