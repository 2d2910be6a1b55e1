"""List command: Show the snapshot chain of each destination."""

import argparse
import logging
import time

from ..__logger__ import create_logger
from ..config import ConfigError
from ..core.repository import SnapshotRepository
from .common import get_log_level, resolve_destinations

logger = logging.getLogger(__name__)


def format_age(seconds: float) -> str:
    """Human readable age, coarsest sensible unit."""
    seconds = max(0, int(seconds))
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


def execute_list(args: argparse.Namespace) -> int:
    """Execute the list command.

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

    now = time.time()
    errors = 0

    for destination in destinations:
        repository = SnapshotRepository(destination)
        print(f"Destination: {repository.root}")

        if not repository.is_valid_destination():
            print("  Not a backup destination (marker file not found)")
            errors += 1
            continue

        snapshots = repository.list()
        latest = repository.latest_name()
        if not snapshots:
            print("  No snapshots")

        for snapshot in snapshots:
            flag = " (latest)" if snapshot.name == latest else ""
            age = format_age(now - snapshot.timestamp)
            print(f"  {snapshot.name}  {age:>6}{flag}")

        print(f"  Total: {len(snapshots)} snapshot(s)")
        print("")

    return 1 if errors else 0
