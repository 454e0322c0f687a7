import os
import logging
from typing import Any, Dict, Optional
from metadata.metadata_service import apply_metadata_tags, build_track_metadata, lookup_cover_image
from services.download_service import DownloadOrchestrator
from services.library_service import LibraryService, serialize_document
from services.transcode_service import TranscodeStep
from services.upload_service import UploadOrchestrator, UploadResult
from services.yt_dlp_service import YtDlpService
from utils.config import resolve_cookie_file
from utils.storage import LocalStorageDriver
from utils.url_utils import is_soundcloud_url

logger = logging.getLogger(__name__)


def default_temp_dir() -> str:
    return os.getenv('TEMP_DOWNLOAD_DIR') or os.path.join(os.path.abspath(os.path.dirname(__file__)), '..', 'user_downloads')


class UploadPipeline:
    """download -> transcode -> tag -> upload -> persist, strictly in that order."""

    def __init__(self, downloader: Optional[DownloadOrchestrator] = None, transcoder: Optional[TranscodeStep] = None,
                 uploader: Optional[UploadOrchestrator] = None, library: Optional[LibraryService] = None,
                 ydl: Optional[YtDlpService] = None, storage: Optional[LocalStorageDriver] = None,
                 lookup_cover: bool = True):
        self.ydl = ydl or YtDlpService()
        self.storage = storage or LocalStorageDriver(base_dir=default_temp_dir())
        self.downloader = downloader or DownloadOrchestrator(ydl=self.ydl)
        self.transcoder = transcoder or TranscodeStep()
        self.uploader = uploader or UploadOrchestrator(local=self.storage)
        self.library = library or LibraryService()
        self.lookup_cover = lookup_cover

    def output_path_for(self, url: str) -> str:
        if is_soundcloud_url(url):
            return self.storage.timestamped_path('sc-song', 'mp3')
        return self.storage.timestamped_path('song', 'webm')

    def fetch_audio(self, url: str, title: str, artist: Optional[str] = None) -> UploadResult:
        cookies_path = resolve_cookie_file()
        if cookies_path and not os.path.isfile(cookies_path):
            logger.warning('Configured cookie file %s does not exist; downloading without cookies', cookies_path)
            cookies_path = None

        output_path = self.output_path_for(url)
        downloaded = self.downloader.download(url, output_path, cookies_path=cookies_path)
        logger.info('Download complete: %s', downloaded.path)

        upload_path = downloaded.path
        extra_cleanup = []
        transcode = self.transcoder.try_transcode_to_normalized_audio(downloaded.path)
        if transcode.transcoded:
            upload_path = transcode.output_path
            extra_cleanup.append(downloaded.path)
        else:
            logger.info('Transcode skipped (%s); uploading original file', transcode.skipped_reason)

        apply_metadata_tags(upload_path, build_track_metadata(title, artist, source_url=url))
        return self.uploader.upload(upload_path, cleanup_paths=extra_cleanup)

    def run(self, url: str, title: str, artist: Optional[str] = None, playlist_id: Optional[str] = None,
            new_playlist_name: Optional[str] = None) -> Dict[str, Any]:
        uploaded = self.fetch_audio(url, title, artist)
        logger.info('Uploaded %s as %s: %s', url, uploaded.resource_kind.value, uploaded.remote_url)

        cover_image = lookup_cover_image(self.ydl, url) if self.lookup_cover else ''
        meta = build_track_metadata(title, artist)
        song = self.library.create_song(meta['title'], meta['artist'], uploaded.remote_url, cover_image)
        playlist = self.library.attach_to_playlist(song, playlist_id=playlist_id, new_playlist_name=new_playlist_name)
        return {'success': True, 'song': serialize_document(song), 'playlist': serialize_document(playlist)}
