import os
import logging
from typing import Optional
from mutagen.easyid3 import EasyID3
from mutagen.id3 import ID3NoHeaderError
from mutagen.mp3 import MP3
from services.yt_dlp_service import YtDlpService
from utils.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

DEFAULT_ARTIST_NAME = os.getenv('DEFAULT_ARTIST_NAME', 'Unknown Artist')


def _thumbnail_sort_key(thumbnail):
    if not isinstance(thumbnail, dict):
        return (0, 0, 0)
    preference = thumbnail.get('preference')
    height = thumbnail.get('height')
    width = thumbnail.get('width')
    return (
        preference if preference is not None else 0,
        height if height is not None else 0,
        width if width is not None else 0
    )


def select_best_thumbnail_url(entry: dict) -> Optional[str]:
    if not entry or not isinstance(entry, dict):
        return None

    thumbnails = entry.get('thumbnails') or []
    if isinstance(thumbnails, list) and thumbnails:
        for candidate in sorted(thumbnails, key=_thumbnail_sort_key, reverse=True):
            url = candidate.get('url') if isinstance(candidate, dict) else candidate
            if url:
                return url

    # SoundCloud exposes artwork on the track, falling back to the uploader avatar
    return entry.get('thumbnail') or entry.get('artwork_url') or entry.get('uploader_avatar')


def build_track_metadata(title: str, artist: Optional[str], source_url: Optional[str] = None) -> dict:
    return {
        'title': title.strip(),
        'artist': artist.strip() if isinstance(artist, str) and artist.strip() else DEFAULT_ARTIST_NAME,
        'source_url': source_url,
    }


def lookup_cover_image(ydl: YtDlpService, url: str) -> str:
    """Best cover image for url, or '' when metadata is unavailable."""
    try:
        info = ydl.extract_info(url, yt_opts={'noplaylist': True})
    except ExternalServiceError as e:
        logger.warning('Could not fetch metadata for %s: %s', url, e)
        return ''
    return select_best_thumbnail_url(info) or ''


def apply_metadata_tags(file_path: str, metadata: dict) -> bool:
    """Write ID3 title/artist tags into an MP3; other containers are left alone."""
    if not file_path or not os.path.exists(file_path) or not file_path.lower().endswith('.mp3'):
        return False

    try:
        try:
            audio = EasyID3(file_path)
        except ID3NoHeaderError:
            audio_file = MP3(file_path)
            audio_file.add_tags()
            audio_file.save()
            audio = EasyID3(file_path)
        audio['title'] = [metadata.get('title') or os.path.basename(file_path)]
        audio['artist'] = [metadata.get('artist') or DEFAULT_ARTIST_NAME]
        audio['albumartist'] = [metadata.get('artist') or DEFAULT_ARTIST_NAME]
        if metadata.get('source_url'):
            audio['website'] = [metadata['source_url']]
        audio.save()
        return True
    except Exception as e:
        logger.warning('Failed to write tags for %s: %s', file_path, e)
        return False
