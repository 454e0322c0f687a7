import os
import shutil
import logging
from typing import Callable, List, Optional
from utils.config import env_float
from utils.exceptions import ExternalServiceError, ToolNotFoundError
from utils.process import ToolResult, run_tool

logger = logging.getLogger(__name__)

FFMPEG_TIMEOUT_SECONDS = env_float('FFMPEG_TIMEOUT_SECONDS', 600)

NORMALIZED_AUDIO_OPTS = ['-vn', '-ab', '192k', '-ar', '44100', '-f', 'mp3']


class FFmpegService:
    """Simple FFmpeg wrapper class.

    Responsible for producing well-formed ffmpeg commands and executing them.
    """

    def __init__(self, ffmpeg_path: Optional[str] = None,
                 runner: Optional[Callable[[List[str], Optional[float]], ToolResult]] = None):
        self.ffmpeg_path = ffmpeg_path or os.getenv('FFMPEG_PATH') or shutil.which('ffmpeg') or 'ffmpeg'
        self.runner = runner or run_tool

    def is_available(self) -> bool:
        try:
            return self.runner([self.ffmpeg_path, '-version'], 15).ok
        except ToolNotFoundError:
            return False
        except ExternalServiceError as e:
            logger.debug('ffmpeg presence check failed: %s', e)
            return False

    def build_normalize_command(self, infile: str, outfile: str) -> List[str]:
        return [self.ffmpeg_path, '-y', '-i', infile] + NORMALIZED_AUDIO_OPTS + [outfile]

    def run(self, cmd: List[str], timeout: Optional[float] = FFMPEG_TIMEOUT_SECONDS) -> ToolResult:
        res = self.runner(cmd, timeout)
        if not res.ok:
            logger.error('FFmpeg error stdout=%s stderr=%s', res.stdout, res.stderr)
            raise ExternalServiceError('FFmpeg returned non-zero exit code')
        return res
