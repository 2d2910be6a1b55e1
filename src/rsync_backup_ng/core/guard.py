# pyright: standard

"""rsync-backup-ng: rsync_backup_ng/core/guard.py
Reclaim destination space by sacrificing old snapshots and retrying.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

from .. import __util__
from .repository import SnapshotRepository
from .transfer import Transfer, TransferOutcome, TransferSpec

logger = logging.getLogger(__name__)

DEFAULT_USAGE_THRESHOLD = 90


class DiskSpaceGuard:
    """Run a transfer, expiring the oldest snapshot whenever the destination fills up.

    Every retry removes one snapshot, so the number of attempts is bounded by
    the size of the chain when the loop starts.
    """

    def __init__(
        self,
        repository: SnapshotRepository,
        transfer: Transfer,
        threshold: int = DEFAULT_USAGE_THRESHOLD,
        auto_expire: bool = True,
        usage_probe: Optional[Callable[[Path], int]] = None,
        before_attempt: Optional[Callable[[], None]] = None,
    ) -> None:
        self.repository = repository
        self.transfer = transfer
        self.threshold = threshold
        self.auto_expire = auto_expire
        self.usage_probe = usage_probe or __util__.disk_usage_percent
        self.before_attempt = before_attempt

    def run_with_recovery(self, spec: TransferSpec) -> TransferOutcome:
        """Run the transfer until it completes without exhausting the destination.

        Raises:
            InsufficientSpaceError: If the destination is full and fewer than
                two snapshots are left, or automatic expiry is disabled
        """
        max_attempts = len(self.repository.list()) + 1

        for attempt in range(1, max_attempts + 1):
            if self.before_attempt is not None:
                self.before_attempt()

            logger.debug("Transfer attempt %d of at most %d", attempt, max_attempts)
            outcome = self.transfer.run(spec)

            usage = self.usage_probe(self.repository.root)
            logger.debug("Destination usage: %d%%", usage)
            if usage <= self.threshold:
                return outcome

            if self.repository.dry_run:
                logger.warning(
                    "Destination is %d%% full - a real run would expire the "
                    "oldest backup and resume.",
                    usage,
                )
                return outcome

            self._reclaim(usage)

        raise __util__.InsufficientSpaceError(
            "No space left on device after expiring every old backup."
        )

    def _reclaim(self, usage: int) -> None:
        """Expire the single oldest snapshot, ignoring retention tiers."""
        if not self.auto_expire:
            raise __util__.InsufficientSpaceError(
                f"No space left on device ({usage}% used), and automatic purging "
                "of old backups is disabled."
            )

        logger.warning(
            "No space left on device (%d%% used) - removing oldest backup "
            "and resuming.",
            usage,
        )
        chain = self.repository.list()
        if len(chain) < 2:
            raise __util__.InsufficientSpaceError(
                "No space left on device, and no backup old enough to reclaim."
            )

        self.repository.expire(chain[-1])
