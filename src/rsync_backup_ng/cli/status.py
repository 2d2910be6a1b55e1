"""Status command: Show destination health."""

import argparse
import logging

from .. import __util__
from ..__logger__ import create_logger
from ..config import ConfigError
from ..core.context import RunContext
from ..core.repository import SnapshotRepository
from ..core.resume import ResumeCoordinator, ResumeState
from .common import get_log_level, resolve_destinations

logger = logging.getLogger(__name__)

STATE_LABELS = {
    ResumeState.CLEAN: "idle",
    ResumeState.INTERRUPTED_STALE: "interrupted (will resume on next run)",
    ResumeState.INTERRUPTED_ACTIVE: "backup running",
}


def execute_status(args: argparse.Namespace) -> int:
    """Execute the status command.

    Shows marker validity, in-progress state, latest snapshot and usage of
    each destination.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    log_level = get_log_level(args)
    create_logger(log_level)

    try:
        destinations = resolve_destinations(args)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1

    if not destinations:
        print("No destinations configured")
        return 1

    print("rsync-backup-ng Status")
    print("=" * 60)

    all_healthy = True

    for destination in destinations:
        repository = SnapshotRepository(destination)
        print(f"Destination: {repository.root}")

        if not repository.is_valid_destination():
            print("  Status: not a backup destination (marker file not found)")
            print("")
            all_healthy = False
            continue

        context = RunContext(destination=repository.root)
        state = ResumeCoordinator(repository, context).inspect()
        snapshots = repository.list()

        print(f"  State: {STATE_LABELS[state]}")
        print(f"  Snapshots: {len(snapshots)}")
        print(f"  Latest: {repository.latest_name() or 'none'}")
        if snapshots:
            print(f"  Oldest: {snapshots[-1].name}")
        print(f"  Usage: {__util__.disk_usage_percent(repository.root)}%")
        print("")

        if state is ResumeState.INTERRUPTED_STALE:
            all_healthy = False

    print("=" * 60)
    if all_healthy:
        print("Overall: All destinations healthy")
    else:
        print("Overall: Some issues detected")

    return 0 if all_healthy else 1
