import subprocess
import logging
from dataclasses import dataclass
from typing import List, Optional
from utils.exceptions import ExternalServiceError, ToolNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolResult:
    """Captured outcome of one external tool invocation."""
    cmd: List[str]
    returncode: int
    stdout: str = ''
    stderr: str = ''

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        # some tools print useful text on stderr even on success
        return '\n'.join(part for part in (self.stdout, self.stderr) if part)


def run_tool(cmd: List[str], timeout: Optional[float] = None) -> ToolResult:
    """Run an external command and capture its streams.

    A non-zero exit status is returned, not raised; only a missing binary or a
    timeout raise.
    """
    logger.debug('Running external command: %s', ' '.join(cmd))
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError:
        raise ToolNotFoundError(f"{cmd[0]} not found")
    except subprocess.TimeoutExpired:
        raise ExternalServiceError(f"{cmd[0]} timed out after {timeout}s")
    except OSError as exc:
        raise ExternalServiceError(f"{cmd[0]} could not be started: {exc}")
    return ToolResult(cmd=list(cmd), returncode=proc.returncode, stdout=proc.stdout or '', stderr=proc.stderr or '')
