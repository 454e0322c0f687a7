import threading
import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional
from services.yt_dlp_service import YtDlpService
from utils.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

# Flags we care about; matched against `--help` output in hyphen and underscore spelling.
KNOWN_FLAGS = (
    'no-playlist',
    'allow-unplayable-formats',
    'hls-prefer-ffmpeg',
    'hls-use-mpegts',
    'list-formats',
    'cookies',
    'no-warnings',
)


@dataclass(frozen=True)
class CapabilitySnapshot:
    version: Optional[str] = None
    help_text: str = ''
    supported_flags: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def known(self) -> bool:
        return self.version is not None

    def supports(self, flag: str) -> bool:
        return flag.lstrip('-') in self.supported_flags

    def as_dict(self) -> dict:
        return {'version': self.version, 'supported_flags': sorted(self.supported_flags)}


UNKNOWN = CapabilitySnapshot()


def scan_help_text(help_text: str, candidates: Iterable[str] = KNOWN_FLAGS) -> FrozenSet[str]:
    lowered = (help_text or '').lower()
    found = set()
    for flag in candidates:
        if flag in lowered or flag.replace('-', '_') in lowered:
            found.add(flag)
    return frozenset(found)


def select_optional_flags(snapshot: CapabilitySnapshot, requested: Iterable[str]) -> List[str]:
    """Return the requested optional flags the installed binary is known to accept.

    Nothing is passed on speculation: an unknown snapshot yields no flags.
    """
    selected = []
    for flag in requested:
        name = flag.lstrip('-')
        if name and snapshot.supports(name):
            selected.append(f"--{name}")
    return selected


class CapabilityProbe:
    """Process-wide cache of what the installed yt-dlp binary supports.

    The snapshot is replaced as a whole value; when an eager probe and a
    late blocking probe race, the last one to finish wins.
    """

    def __init__(self, ydl: Optional[YtDlpService] = None):
        self.ydl = ydl or YtDlpService()
        self._snapshot = UNKNOWN
        self._resolved = threading.Event()
        self._thread = None

    @property
    def snapshot(self) -> CapabilitySnapshot:
        return self._snapshot

    @property
    def resolved(self) -> bool:
        return self._resolved.is_set()

    def probe(self) -> CapabilitySnapshot:
        snapshot = UNKNOWN
        try:
            version_res = self.ydl.version()
            help_res = self.ydl.help()
            if version_res.ok and help_res.ok:
                help_text = help_res.stdout or help_res.output
                snapshot = CapabilitySnapshot(
                    version=version_res.stdout.strip() or None,
                    help_text=help_text,
                    supported_flags=scan_help_text(help_text),
                )
            else:
                logger.warning('yt-dlp capability probe failed (exit %s/%s); using minimal flag set',
                               version_res.returncode, help_res.returncode)
        except ExternalServiceError as e:
            logger.warning('yt-dlp capability probe failed: %s; using minimal flag set', e)

        self._snapshot = snapshot
        self._resolved.set()
        if snapshot.known:
            logger.info('yt-dlp %s detected, %d known flags supported', snapshot.version, len(snapshot.supported_flags))
        return snapshot

    def start_background_probe(self) -> threading.Thread:
        t = threading.Thread(target=self.probe, name='ytdlp-capability-probe', daemon=True)
        self._thread = t
        t.start()
        return t

    def ensure(self) -> CapabilitySnapshot:
        if self._resolved.is_set():
            return self._snapshot
        logger.debug('Capability probe not resolved yet; probing synchronously')
        return self.probe()


capability_probe = CapabilityProbe()
