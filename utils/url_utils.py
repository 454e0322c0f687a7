from urllib.parse import urlparse, urlunparse


def is_youtube_url(url):
    return isinstance(url, str) and ("youtube.com/" in url.lower() or "youtu.be/" in url.lower())


def is_ytmusic_url(url):
    return isinstance(url, str) and "music.youtube.com" in url.lower()


def is_soundcloud_url(url):
    return isinstance(url, str) and "soundcloud.com/" in url.lower()


def normalize_supported_url(url):
    if not url:
        return url
    parsed = urlparse(url)
    if is_ytmusic_url(url):
        return urlunparse(parsed._replace(netloc="www.youtube.com"))
    if is_soundcloud_url(url):
        # share links carry tracking params (?si=..., ?utm_...) that break track resolution
        return urlunparse(parsed._replace(query="", fragment=""))
    return url
