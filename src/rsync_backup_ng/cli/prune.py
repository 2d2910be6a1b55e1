"""Prune command: Apply retention policies."""

import argparse
import logging
import time

from .. import __util__
from ..__logger__ import create_logger
from ..config import ConfigError, RetentionConfig
from ..core.context import RunContext
from ..core.repository import SnapshotRepository
from ..core.resume import ResumeCoordinator, ResumeState
from ..retention import RetentionPolicy, format_retention_summary
from .common import get_log_level, load_cli_config

logger = logging.getLogger(__name__)


def execute_prune(args: argparse.Namespace) -> int:
    """Execute the prune command.

    Applies the tiered retention policy to each destination without
    running a backup.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    log_level = get_log_level(args)
    create_logger(log_level)

    explicit = getattr(args, "destination", None)
    try:
        config = load_cli_config(args, required=not explicit)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1

    retention_config = config.global_config.retention if config else RetentionConfig()
    if explicit:
        destinations = list(explicit)
    else:
        assert config is not None
        destinations = [job.destination for job in config.get_enabled_jobs()]

    if not destinations:
        logger.error("No destinations configured")
        return 1

    dry_run = getattr(args, "dry_run", False)
    if dry_run:
        logger.info("Dry run mode - showing what would be deleted")

    logger.info(__util__.log_heading(f"Pruning snapshots at {time.ctime()}"))
    logger.info("Retention: %s", format_retention_summary(retention_config))

    policy = RetentionPolicy(retention_config)
    now = time.time()
    total_expired = 0
    errors = 0

    for destination in destinations:
        logger.info("Destination: %s", destination)
        repository = SnapshotRepository(destination, dry_run=dry_run)
        try:
            repository.require_valid_destination()
            context = RunContext(destination=repository.root, dry_run=dry_run)
            state = ResumeCoordinator(repository, context).inspect()
            if state is ResumeState.INTERRUPTED_ACTIVE:
                raise __util__.ConcurrentRunError(
                    "A backup is running on this destination - not pruning"
                )
            before = len(repository.list())
            expired = policy.prune(repository, now)
        except __util__.AbortError as e:
            logger.error("Error pruning %s: %s", destination, e)
            errors += 1
            continue

        total_expired += len(expired)
        logger.info(
            "  %s %d snapshot(s), %d kept",
            "Would expire" if dry_run else "Expired",
            len(expired),
            before - len(expired),
        )

    logger.info(__util__.log_heading(f"Finished at {time.ctime()}"))
    logger.info(
        "Total: %d snapshot(s) %s", total_expired, "to expire" if dry_run else "expired"
    )

    return 1 if errors else 0
