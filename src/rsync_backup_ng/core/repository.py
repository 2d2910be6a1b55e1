# pyright: standard

"""rsync-backup-ng: rsync_backup_ng/core/repository.py
Snapshot chain stored under a backup destination.
"""

import logging
import os
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from .. import INPROGRESS_FILE, LATEST_LINK, MARKER_FILE, __util__

logger = logging.getLogger(__name__)

SNAPSHOT_NAME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}-\d{6}$")


@dataclass(frozen=True, order=True)
class Snapshot:
    """One timestamped snapshot directory.

    Ordering follows the timestamp, so sorting a list of snapshots puts the
    oldest first.
    """

    timestamp: float
    name: str
    path: Path = field(compare=False)

    def __str__(self) -> str:
        return self.name


def marker_path(destination: str | Path) -> Path:
    """Return the path of the backup marker file."""
    return Path(destination) / MARKER_FILE


def is_valid_destination(path: str | Path) -> bool:
    """True if the marker file exists directly under ``path``."""
    return marker_path(path).is_file()


class SnapshotRepository:
    """Read and maintain the snapshot chain of one backup destination."""

    def __init__(self, root: str | Path, dry_run: bool = False) -> None:
        self.root = Path(root).expanduser()
        self.dry_run = dry_run

    def __repr__(self) -> str:
        return f"{self.root}"

    @property
    def inprogress_path(self) -> Path:
        return self.root / INPROGRESS_FILE

    @property
    def latest_path(self) -> Path:
        return self.root / LATEST_LINK

    def is_valid_destination(self) -> bool:
        return is_valid_destination(self.root)

    def require_valid_destination(self) -> None:
        """Abort unless the root carries the backup marker."""
        if not self.is_valid_destination():
            logger.info(
                "Safety check failed - the destination does not appear to be "
                "a backup folder or drive (marker file not found)."
            )
            logger.info(
                "If it is indeed a backup folder, you may add the marker file "
                "by running the following command:"
            )
            logger.info(
                'mkdir -p -- "%s" ; touch "%s"', self.root, marker_path(self.root)
            )
            raise __util__.DestinationError(
                f"{self.root} is not a backup destination (marker file not found)"
            )

    def list(self) -> list[Snapshot]:
        """Return all snapshots under the root, newest first.

        Entries whose names do not look like a snapshot are ignored. Names that
        look like one but cannot be parsed are warned about and skipped.
        """
        if not self.root.is_dir():
            return []

        snapshots = []
        for item in self.root.iterdir():
            if not SNAPSHOT_NAME_RE.match(item.name):
                continue
            if item.is_symlink() or not item.is_dir():
                continue
            try:
                timestamp = __util__.str_to_date(item.name)
            except ValueError as e:
                logger.warning("Could not parse date: %s (%s)", item, e)
                continue
            snapshots.append(Snapshot(timestamp, item.name, item))

        snapshots.sort(reverse=True)
        logger.debug("Found %d snapshot(s) in %s", len(snapshots), self.root)
        return snapshots

    def get(self, name: str) -> Snapshot | None:
        """Find a snapshot by name."""
        for snapshot in self.list():
            if snapshot.name == name:
                return snapshot
        return None

    @staticmethod
    def resolve_absolute(snapshot: Snapshot) -> Path:
        """Absolute path of a snapshot, suitable as a link reference.

        rsync interprets a relative ``--link-dest`` relative to the
        destination, not the working directory.
        """
        return Path(os.path.abspath(snapshot.path))

    def expire(self, snapshot: Snapshot) -> None:
        """Delete a snapshot after re-checking that it lives on a destination.

        Raises:
            DestinationError: If the snapshot's parent lacks the marker file.
                Nothing is deleted in that case.
        """
        parent = snapshot.path.parent
        if not is_valid_destination(parent):
            raise __util__.DestinationError(
                f"{snapshot.path} is not on a backup destination - aborting."
            )

        if self.dry_run:
            logger.info("Would expire %s", snapshot.path)
            return

        logger.info("Expiring %s", snapshot.path)
        shutil.rmtree(snapshot.path)

    def update_latest(self, snapshot_name: str) -> None:
        """Point the ``latest`` symlink at the given snapshot name."""
        if self.dry_run:
            logger.info("Would link %s -> %s", self.latest_path, snapshot_name)
            return
        if self.latest_path.is_symlink() or self.latest_path.exists():
            self.latest_path.unlink()
        self.latest_path.symlink_to(snapshot_name)
        logger.debug("Linked %s -> %s", self.latest_path, snapshot_name)

    def latest_name(self) -> str | None:
        """Name the ``latest`` symlink points at, if any."""
        if not self.latest_path.is_symlink():
            return None
        return os.readlink(self.latest_path)
