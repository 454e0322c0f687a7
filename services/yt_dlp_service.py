import os
import sys
import time
import shutil
import hashlib
import json
import logging
from typing import Callable, Dict, List, Optional, Sequence
import yt_dlp
from utils.config import env_float, resolve_cookie_file
from utils.exceptions import ExternalServiceError
from utils.process import ToolResult, run_tool

logger = logging.getLogger(__name__)

YTDLP_TIMEOUT_SECONDS = env_float('YTDLP_TIMEOUT_SECONDS', 900)
YTDLP_PROBE_TIMEOUT_SECONDS = env_float('YTDLP_PROBE_TIMEOUT_SECONDS', 30)

Runner = Callable[[List[str], Optional[float]], ToolResult]


def default_ytdlp_command() -> List[str]:
    configured = os.getenv('YTDLP_PATH')
    if configured:
        return [configured]
    found = shutil.which('yt-dlp')
    if found:
        return [found]
    # the yt-dlp distribution always ships the module entry point
    return [sys.executable, '-m', 'yt_dlp']


class YtDlpService:
    """Single place to talk to yt-dlp.

    Downloads, probing and format listing go through the yt-dlp executable so
    the exact argument list is under our control. Metadata lookups use the
    library in-process and keep a tiny in-memory cache with TTL.
    """

    def __init__(self, command: Optional[Sequence[str]] = None, runner: Optional[Runner] = None,
                 cache_ttl: int = 60 * 60):
        self.command = list(command) if command else default_ytdlp_command()
        self.runner = runner or run_tool
        self.cache_ttl = cache_ttl
        self._cache: Dict[str, Dict] = {}

    # --- executable boundary ---

    def run(self, args: Sequence[str], timeout: Optional[float] = YTDLP_TIMEOUT_SECONDS) -> ToolResult:
        return self.runner(self.command + list(args), timeout)

    def version(self) -> ToolResult:
        return self.run(['--version'], timeout=YTDLP_PROBE_TIMEOUT_SECONDS)

    def help(self) -> ToolResult:
        return self.run(['--help'], timeout=YTDLP_PROBE_TIMEOUT_SECONDS)

    def list_formats(self, url: str, cookies_path: Optional[str] = None) -> ToolResult:
        args = ['--list-formats']
        if cookies_path:
            args += ['--cookies', cookies_path]
        args.append(url)
        return self.run(args, timeout=YTDLP_PROBE_TIMEOUT_SECONDS)

    def download(self, url: str, output_path: str, format_selector: str, cookies_path: Optional[str] = None,
                 extra_args: Sequence[str] = ()) -> ToolResult:
        args = [url, '--output', output_path, '--format', format_selector]
        if cookies_path:
            args += ['--cookies', cookies_path]
        args.append('--no-warnings')
        args += list(extra_args)
        return self.run(args)

    # --- in-process metadata lookups ---

    def _cache_key(self, q: str) -> str:
        return hashlib.sha1(q.encode('utf-8')).hexdigest()

    def _get_cached(self, key: str) -> Optional[Dict]:
        item = self._cache.get(key)
        if not item:
            return None
        if time.time() - item['ts'] > self.cache_ttl:
            del self._cache[key]
            return None
        return item['val']

    def _set_cache(self, key: str, value: Dict):
        self._cache[key] = {'ts': time.time(), 'val': value}

    def extract_info(self, url: str, yt_opts: Optional[Dict] = None) -> Dict:
        opts = {'skip_download': True, 'quiet': True, 'no_warnings': True}
        opts.update(yt_opts or {})
        cookie_file = resolve_cookie_file()
        if cookie_file and os.path.exists(cookie_file) and 'cookiefile' not in opts:
            opts['cookiefile'] = cookie_file

        cache_key = self._cache_key(url + json.dumps(opts, sort_keys=True))
        cached = self._get_cached(cache_key)
        if cached:
            return cached

        try:
            with yt_dlp.YoutubeDL(opts) as ydl:
                info = ydl.extract_info(url, download=False)
        except Exception as exc:
            msg = str(exc)
            if 'Sign in to confirm' in msg or ('Sign in' in msg and 'bot' in msg):
                raise ExternalServiceError(
                    f"{msg}. yt-dlp needs a cookies file: set YTDLP_COOKIES_FILE or place "
                    "youtube.com_cookies.txt in the working directory."
                )
            raise ExternalServiceError(f"yt-dlp error: {exc}")

        info = yt_dlp.YoutubeDL.sanitize_info(info) if info else {}
        self._set_cache(cache_key, info)
        return info
