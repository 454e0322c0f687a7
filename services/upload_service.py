import os
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence
from utils.config import env_list
from utils.storage import CloudinaryStorageDriver, LocalStorageDriver

logger = logging.getLogger(__name__)

CHUNK_SIZE_BYTES = 10_485_760
UPLOAD_FOLDER = os.getenv('CLOUDINARY_FOLDER', 'songs')
TOO_LARGE_STATUS = 413
TOO_LARGE_SIGNATURES = env_list('UPLOAD_TOO_LARGE_SIGNATURES', '413')

# The host re-encodes anything uploaded as video; audio goes up untouched as raw.
AUDIO_EXTENSIONS = {'mp3', 'm4a', 'webm', 'opus', 'ogg', 'wav', 'flac', 'aac'}


class ResourceKind(str, Enum):
    RAW = 'raw'
    TRANSCODED_MEDIA = 'video'


@dataclass(frozen=True)
class UploadResult:
    remote_url: str
    resource_kind: ResourceKind


def classify_resource(path: str) -> ResourceKind:
    ext = os.path.splitext(path)[1].lower().lstrip('.')
    return ResourceKind.RAW if ext in AUDIO_EXTENSIONS else ResourceKind.TRANSCODED_MEDIA


def is_payload_too_large(exc: BaseException, signatures: Sequence[str] = TOO_LARGE_SIGNATURES) -> bool:
    for attr in ('http_code', 'status_code', 'status'):
        code = getattr(exc, attr, None)
        if isinstance(code, int):
            return code == TOO_LARGE_STATUS
    text = str(exc).lower()
    return any(sig.lower() in text for sig in signatures if sig)


class UploadOrchestrator:
    def __init__(self, host: Optional[CloudinaryStorageDriver] = None, local: Optional[LocalStorageDriver] = None,
                 folder: str = UPLOAD_FOLDER, too_large_signatures: Optional[Sequence[str]] = None):
        self.host = host or CloudinaryStorageDriver()
        self.local = local or LocalStorageDriver()
        self.folder = folder
        self.too_large_signatures = list(TOO_LARGE_SIGNATURES if too_large_signatures is None else too_large_signatures)

    def upload(self, local_path: str, cleanup_paths: Iterable[str] = ()) -> UploadResult:
        """Upload local_path and delete it (plus cleanup_paths) whatever happens."""
        kind = classify_resource(local_path)
        try:
            try:
                res = self.host.upload(local_path, resource_type=kind.value, folder=self.folder)
            except Exception as exc:
                if not is_payload_too_large(exc, self.too_large_signatures):
                    raise
                logger.info('Upload of %s rejected as too large; retrying in %d byte chunks',
                            os.path.basename(local_path), CHUNK_SIZE_BYTES)
                res = self.host.upload_large(local_path, resource_type=kind.value, folder=self.folder,
                                             chunk_size=CHUNK_SIZE_BYTES)
            return UploadResult(remote_url=res['secure_url'], resource_kind=kind)
        finally:
            for path in [local_path, *cleanup_paths]:
                if self.local.delete(path):
                    logger.debug('Deleted local upload input %s', path)
