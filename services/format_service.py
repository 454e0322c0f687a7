import re
import logging
from typing import List, Optional
from services.yt_dlp_service import YtDlpService
from utils.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

AUDIO_ONLY_LINE = re.compile(r'^\s*(\d+)\s.*\baudio only\b', re.IGNORECASE)


def parse_audio_format_ids(listing: str) -> List[str]:
    ids = []
    for line in (listing or '').splitlines():
        m = AUDIO_ONLY_LINE.match(line)
        if m:
            ids.append(m.group(1))
    return ids


class FormatLister:
    def __init__(self, ydl: Optional[YtDlpService] = None):
        self.ydl = ydl or YtDlpService()

    def list_audio_formats(self, source_url: str, cookies_path: Optional[str] = None) -> List[str]:
        try:
            res = self.ydl.list_formats(source_url, cookies_path=cookies_path)
        except ExternalServiceError as e:
            logger.warning('Format listing failed for %s: %s', source_url, e)
            return []
        # yt-dlp may exit non-zero and still print a usable table
        ids = parse_audio_format_ids(res.output)
        if not ids:
            logger.debug('No audio-only formats listed for %s (exit %s)', source_url, res.returncode)
        return ids
