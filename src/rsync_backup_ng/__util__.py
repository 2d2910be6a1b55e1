# pyright: standard

"""rsync-backup-ng: rsync_backup_ng/__util__.py
Common utility code shared among the modules.
"""

import logging
import math
import shutil
import subprocess
import time
from datetime import datetime
from pathlib import Path

from . import SNAPSHOT_FORMAT

logger = logging.getLogger(__name__)


class AbortError(Exception):
    """Exception where rsync-backup-ng should abort."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class DestinationError(AbortError):
    """The path is not a sanctioned backup destination."""


class ConcurrentRunError(AbortError):
    """Another backup run is still active on the destination."""


class InsufficientSpaceError(AbortError):
    """The destination is full and nothing can be reclaimed."""


class SnapshotTransferError(AbortError):
    """The transfer tool reported a fatal error."""


def log_heading(caption: str) -> str:
    """Formatted heading for logging output sections."""
    return f"{f'--[ {caption} ]':-<50}"


def str_to_date(name: str) -> float:
    """Parse a snapshot name into a Unix epoch, interpreting it as local time.

    Raises:
        ValueError: If the name does not follow the snapshot format
    """
    return time.mktime(datetime.strptime(name, SNAPSHOT_FORMAT).timetuple())


def date_to_str(when: datetime | float | None = None) -> str:
    """Format a point in time as a snapshot name (default: now)."""
    if when is None:
        when = datetime.now()
    elif not isinstance(when, datetime):
        when = datetime.fromtimestamp(when)
    return when.strftime(SNAPSHOT_FORMAT)


def disk_usage_percent(path: str | Path) -> int:
    """Return the used percentage of the filesystem holding ``path``.

    Computed like ``df``: used / (used + available), rounded up, so the
    space reserved for root counts as unavailable.
    """
    usage = shutil.disk_usage(path)
    usable = usage.used + usage.free
    if usable <= 0:
        return 100
    return math.ceil(usage.used * 100 / usable)


def exec_subprocess(command, method="run", **kwargs):
    """Execute a command with the subprocess module and log it."""
    logger.debug("Executing: %s", command)
    try:
        return getattr(subprocess, method)(command, **kwargs)
    except FileNotFoundError as e:
        raise AbortError(f"Command not found: {command[0]}") from e
    except subprocess.CalledProcessError as e:
        raise AbortError(f"Command failed with code {e.returncode}") from e
