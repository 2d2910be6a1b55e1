# pyright: standard

"""rsync-backup-ng: rsync_backup_ng/core/resume.py
Detect and recover a backup left behind by an interrupted run.

A run writes its pid to ``backup.inprogress`` and only removes the file after
a fully successful transfer. Finding the file at startup means either another
run is still going, or the previous one died. In the latter case the newest
snapshot directory is the partial one: it is renamed to the new run's name so
rsync continues filling it, and the snapshot before it becomes the link
reference.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

import psutil
from filelock import FileLock

from .. import __util__
from .context import RunContext
from .repository import Snapshot, SnapshotRepository

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = ".rsync-backup-ng.lock"


class ResumeState(Enum):
    CLEAN = "clean"
    INTERRUPTED_STALE = "interrupted-stale"
    INTERRUPTED_ACTIVE = "interrupted-active"


class ActiveRunDetector(Protocol):
    """Decides whether the pid recorded by a previous run is still running."""

    def is_active(self, pid: int) -> bool: ...


class ProcessTableDetector:
    """Look up the pid among running processes of this program, like pgrep.

    A process matches when its name or command line mentions the console
    script or the package run with ``python -m``.
    """

    def __init__(
        self, program_names: tuple[str, ...] = ("rsync-backup-ng", "rsync_backup_ng")
    ) -> None:
        self.program_names = program_names

    def _matches(self, info: dict) -> bool:
        name = info.get("name") or ""
        cmdline = " ".join(info.get("cmdline") or [])
        return any(
            program in name or program in cmdline for program in self.program_names
        )

    def running_pids(self) -> set[int]:
        own_pid = os.getpid()
        pids = set()
        for proc in psutil.process_iter(["pid", "name", "cmdline"]):
            if proc.info["pid"] != own_pid and self._matches(proc.info):
                pids.add(proc.info["pid"])
        return pids

    def is_active(self, pid: int) -> bool:
        return pid in self.running_pids()


class InProgressMarker:
    """The ``backup.inprogress`` file holding the pid of the current run."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def read_pid(self) -> Optional[int]:
        """Return the recorded pid, or None if the content is not a pid."""
        try:
            content = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        try:
            return int(content)
        except ValueError:
            logger.warning("Ignoring unreadable pid %r in %s", content, self.path)
            return None

    def write(self, pid: int) -> None:
        logger.debug("Writing pid %d to %s", pid, self.path)
        self.path.write_text(f"{pid}\n", encoding="utf-8")

    def remove(self) -> None:
        self.path.unlink(missing_ok=True)


@dataclass
class ResumeResult:
    """Outcome of the startup check.

    Attributes:
        state: Which startup state was found
        working_path: Directory the new snapshot is built in
        previous: Complete snapshot to hard-link against, if any
    """

    state: ResumeState
    working_path: Path
    previous: Optional[Snapshot]


class ResumeCoordinator:
    """Run once at startup to reconcile state left by a previous run."""

    def __init__(
        self,
        repository: SnapshotRepository,
        context: RunContext,
        detector: Optional[ActiveRunDetector] = None,
    ) -> None:
        self.repository = repository
        self.context = context
        self.detector = detector or ProcessTableDetector()
        self.marker = InProgressMarker(repository.inprogress_path)

    def inspect(self) -> ResumeState:
        """Classify the destination without changing anything."""
        if not self.marker.exists():
            return ResumeState.CLEAN
        pid = self.marker.read_pid()
        if pid is not None and self.detector.is_active(pid):
            return ResumeState.INTERRUPTED_ACTIVE
        return ResumeState.INTERRUPTED_STALE

    def resume(self) -> ResumeResult:
        """Inspect the destination and decide how this run starts.

        Raises:
            ConcurrentRunError: If the recorded run is still active
        """
        lock_path = self.repository.root / LOCK_FILE_NAME
        if self.context.dry_run:
            return self._resume()
        with FileLock(lock_path):
            return self._resume()

    def _resume(self) -> ResumeResult:
        working_path = self.context.working_path
        chain = self.repository.list()

        state = self.inspect()
        if state is ResumeState.CLEAN:
            previous = chain[0] if chain else None
            return ResumeResult(state, working_path, previous)

        if state is ResumeState.INTERRUPTED_ACTIVE:
            raise __util__.ConcurrentRunError(
                f"Previous backup task (pid {self.marker.read_pid()}) is still "
                "active - aborting."
            )

        if not chain:
            logger.info(
                "%s exists but no snapshot was found - starting a new backup.",
                self.marker.path,
            )
            self._claim_marker()
            return ResumeResult(ResumeState.INTERRUPTED_STALE, working_path, None)

        logger.info(
            "%s already exists - the previous backup failed or was interrupted. "
            "Backup will resume from there.",
            self.marker.path,
        )
        interrupted = chain[0]
        previous = chain[1] if len(chain) > 1 else None

        if interrupted.path != working_path:
            if self.context.dry_run:
                logger.info("Would move %s to %s", interrupted.path, working_path)
            else:
                logger.info("Moving %s to %s", interrupted.path, working_path)
                interrupted.path.rename(working_path)

        self._claim_marker()
        return ResumeResult(ResumeState.INTERRUPTED_STALE, working_path, previous)

    def _claim_marker(self) -> None:
        # Avoid multiple concurrent resumes
        if self.context.dry_run:
            logger.info("Would write pid %d to %s", self.context.pid, self.marker.path)
            return
        self.marker.write(self.context.pid)
