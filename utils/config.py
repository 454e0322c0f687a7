import os
from typing import List, Optional


def env_list(name: str, default: str = '') -> List[str]:
    """Comma separated env value as a list of stripped, non-empty items."""
    raw = os.getenv(name)
    if raw is None:
        raw = default
    return [item.strip() for item in raw.split(',') if item.strip()]


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = float(raw)
    # 0 disables the timeout
    return value if value > 0 else None


def resolve_cookie_file() -> Optional[str]:
    # YTDLP_COOKIES_FILE wins; otherwise a youtube.com_cookies.txt in the working directory
    cookie_env = os.environ.get('YTDLP_COOKIES_FILE')
    if cookie_env:
        return cookie_env
    if os.path.exists('youtube.com_cookies.txt'):
        return os.path.abspath('youtube.com_cookies.txt')
    return None
