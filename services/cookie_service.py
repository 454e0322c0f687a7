import os
import math
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional
from utils.exceptions import NotFoundError

logger = logging.getLogger(__name__)

# Netscape cookies.txt: domain, include-subdomains, path, secure, expiry, name, value
EXPIRY_COLUMN = 4
COLUMNS = 7


@dataclass(frozen=True)
class CookieRecord:
    domain: str
    flag: str
    path: str
    secure: str
    expiry: str
    name: str = ''
    value: str = ''

    @property
    def expiry_epoch(self) -> Optional[float]:
        try:
            value = float(self.expiry.strip())
        except (AttributeError, ValueError):
            return None
        return value if math.isfinite(value) else None


@dataclass(frozen=True)
class CookieExpiry:
    expires_at: Optional[datetime] = None
    cookie_count: int = 0

    @property
    def epoch(self) -> Optional[int]:
        return int(self.expires_at.timestamp()) if self.expires_at else None

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at > (now or datetime.now(timezone.utc))


def _data_lines(text: str):
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith('#'):
            continue
        yield line


def parse_cookie_lines(text: str) -> List[CookieRecord]:
    """Rows with at least an expiry column; short rows get empty name/value."""
    records = []
    for line in _data_lines(text):
        cols = line.split('\t')
        if len(cols) <= EXPIRY_COLUMN:
            continue
        head = cols[:COLUMNS - 1]
        value = '\t'.join(cols[COLUMNS - 1:])
        records.append(CookieRecord(*head, value) if len(cols) >= COLUMNS else CookieRecord(*head))
    return records


def collect_expiry_values(records: List[CookieRecord]) -> List[float]:
    return [r.expiry_epoch for r in records if r.expiry_epoch is not None]


def to_datetime(epoch: float) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(epoch, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def inspect(cookie_file_path: Optional[str]) -> CookieExpiry:
    """Latest expiry found in a cookies.txt export. Reads the file on every call."""
    if not cookie_file_path or not os.path.isfile(cookie_file_path):
        raise NotFoundError('Cookie file not found')

    with open(cookie_file_path, 'r', encoding='utf-8', errors='replace') as fh:
        text = fh.read()

    records = parse_cookie_lines(text)
    # values datetime cannot represent (millisecond or sentinel expiries) are skipped
    for epoch in sorted(collect_expiry_values(records), reverse=True):
        expires_at = to_datetime(epoch)
        if expires_at is not None:
            return CookieExpiry(expires_at=expires_at, cookie_count=len(records))
        logger.warning('Ignoring unrepresentable cookie expiry %s in %s', epoch, cookie_file_path)

    logger.info('No expiry values found in %s', cookie_file_path)
    return CookieExpiry(cookie_count=len(records))
