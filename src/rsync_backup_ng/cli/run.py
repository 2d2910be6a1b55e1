"""Run command: Execute all configured backup jobs."""

import argparse
import logging
import time

from .. import __util__
from ..__logger__ import create_logger
from ..config import Config, ConfigError, JobConfig
from ..core.operations import run_backup
from .common import get_log_level, load_cli_config

logger = logging.getLogger(__name__)


def execute_run(args: argparse.Namespace) -> int:
    """Execute the run command.

    Jobs run one after another. A failing job does not stop the others.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    log_level = get_log_level(args)
    create_logger(log_level)

    try:
        config = load_cli_config(args)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1
    assert config is not None

    if config.global_config.log_file:
        create_logger(log_level, log_file=config.global_config.log_file)

    jobs = config.get_enabled_jobs()
    if not jobs:
        logger.error("No jobs configured")
        return 1

    dry_run = getattr(args, "dry_run", False)

    logger.info(__util__.log_heading(f"Started at {time.ctime()}"))
    logger.info("Processing %d job(s)", len(jobs))

    results = []
    for job in jobs:
        results.append((job.destination, _backup_job(job, config, dry_run)))

    logger.info(__util__.log_heading(f"Finished at {time.ctime()}"))

    success_count = sum(1 for _, success in results if success)
    fail_count = len(results) - success_count

    if fail_count > 0:
        logger.warning(
            "Completed with errors: %d succeeded, %d failed", success_count, fail_count
        )
        return 1
    else:
        logger.info("All %d job(s) completed successfully", success_count)
        return 0


def _backup_job(job: JobConfig, config: Config, dry_run: bool) -> bool:
    """Back up a single job, returning whether it succeeded."""
    logger.info("Job: %s -> %s", job.source, job.destination)
    try:
        run_backup(
            job.source,
            job.destination,
            exclusion=job.exclude,
            config=config.global_config,
            dry_run=dry_run,
        )
    except __util__.AbortError as e:
        logger.error("Job %s failed: %s", job.destination, e)
        return False
    return True
