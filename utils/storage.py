import os
import time
import tempfile
import logging
from typing import Dict, Optional
import cloudinary
import cloudinary.uploader

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = int(os.getenv('TEMP_STORAGE_TTL', '3600'))


class LocalStorageDriver:
    """Temp directory for in-flight downloads.

    Files are named after the request timestamp; there is no lock on the
    namespace.
    """

    def __init__(self, base_dir: Optional[str] = None, ttl: int = DEFAULT_TTL_SECONDS):
        self.base_dir = base_dir or tempfile.gettempdir()
        self.ttl = ttl
        os.makedirs(self.base_dir, exist_ok=True)

    def path_for(self, key: str) -> str:
        return os.path.join(self.base_dir, key)

    def timestamped_path(self, prefix: str, ext: str) -> str:
        return self.path_for(f"{prefix}-{int(time.time() * 1000)}.{ext.lstrip('.')}")

    def delete(self, path: str) -> bool:
        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning('Failed to delete temp file %s: %s', path, e)
            return False

    def cleanup_old(self) -> int:
        now = time.time()
        removed = 0
        for name in os.listdir(self.base_dir):
            p = os.path.join(self.base_dir, name)
            try:
                if os.path.isfile(p) and now - os.path.getmtime(p) > self.ttl:
                    os.unlink(p)
                    removed += 1
            except OSError:
                continue
        return removed


class CloudinaryStorageDriver:
    """Remote media host. Credentials come from CLOUDINARY_* env vars (or CLOUDINARY_URL)."""

    def __init__(self, cloud_name: Optional[str] = None, api_key: Optional[str] = None,
                 api_secret: Optional[str] = None):
        cloud_name = cloud_name or os.getenv('CLOUDINARY_CLOUD_NAME')
        if cloud_name:
            cloudinary.config(
                cloud_name=cloud_name,
                api_key=api_key or os.getenv('CLOUDINARY_API_KEY'),
                api_secret=api_secret or os.getenv('CLOUDINARY_API_SECRET'),
                secure=True,
            )

    def upload(self, path: str, resource_type: str, folder: str) -> Dict:
        return cloudinary.uploader.upload(path, resource_type=resource_type, folder=folder)

    def upload_large(self, path: str, resource_type: str, folder: str, chunk_size: int) -> Dict:
        return cloudinary.uploader.upload_large(path, resource_type=resource_type, folder=folder,
                                                chunk_size=chunk_size)
