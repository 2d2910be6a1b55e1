"""Time-based retention for the snapshot chain.

Snapshots younger than ``keep_all_days`` are always kept. Up to
``keep_daily_days`` only the newest snapshot of each calendar day survives,
beyond that only the newest of each calendar month.

Each snapshot is compared with the snapshot visited just before it (walking
newest first), not with the last one that was kept. Since the chain is sorted,
snapshots sharing a day or month are adjacent, so the newest of each group is
the one that survives. Names that cannot be parsed never reach this module:
the repository skips them when building the chain.
"""

import logging
from collections.abc import Iterable

from .config.schema import RetentionConfig
from .core.repository import Snapshot, SnapshotRepository

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

# Older than any real snapshot name, so the newest snapshot never matches it
SENTINEL_NAME = "0000-00-00-000000"

DAY_PREFIX = len("YYYY-MM-DD")
MONTH_PREFIX = len("YYYY-MM")


def expiration_candidates(
    chain: Iterable[Snapshot],
    now: float,
    keep_all_days: int = 1,
    keep_daily_days: int = 31,
) -> set[Snapshot]:
    """Return the snapshots of ``chain`` that should be expired.

    Args:
        chain: Snapshots ordered newest first
        now: Current time as a Unix epoch
        keep_all_days: Age in days below which everything is kept
        keep_daily_days: Age in days below which one snapshot per day is kept

    Returns:
        Set of snapshots to expire
    """
    keep_all_date = now - keep_all_days * SECONDS_PER_DAY
    keep_dailies_date = now - keep_daily_days * SECONDS_PER_DAY

    candidates: set[Snapshot] = set()
    previous_name = SENTINEL_NAME

    for snapshot in chain:
        name = snapshot.name
        if snapshot.timestamp > keep_all_date:
            pass
        elif snapshot.timestamp > keep_dailies_date:
            if name[:DAY_PREFIX] == previous_name[:DAY_PREFIX]:
                candidates.add(snapshot)
        elif name[:MONTH_PREFIX] == previous_name[:MONTH_PREFIX]:
            candidates.add(snapshot)

        previous_name = name

    return candidates


class RetentionPolicy:
    """Apply the tiered keep policy to a snapshot repository."""

    def __init__(self, config: RetentionConfig | None = None) -> None:
        self.config = config or RetentionConfig()

    def expiration_candidates(
        self, chain: Iterable[Snapshot], now: float
    ) -> set[Snapshot]:
        return expiration_candidates(
            chain,
            now,
            keep_all_days=self.config.keep_all_days,
            keep_daily_days=self.config.keep_daily_days,
        )

    def prune(self, repository: SnapshotRepository, now: float) -> list[Snapshot]:
        """Expire every retention candidate found in the repository.

        Returns:
            The expired snapshots, newest first
        """
        chain = repository.list()
        candidates = self.expiration_candidates(chain, now)
        expired = [s for s in chain if s in candidates]
        for snapshot in expired:
            repository.expire(snapshot)
        logger.debug(
            "Retention kept %d, expired %d", len(chain) - len(expired), len(expired)
        )
        return expired


def format_retention_summary(config: RetentionConfig) -> str:
    """One-line description of a retention configuration."""
    return (
        f"keep all < {config.keep_all_days}d, "
        f"daily < {config.keep_daily_days}d, monthly beyond"
    )
