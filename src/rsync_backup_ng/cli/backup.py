"""Backup command: one snapshot of a source into a destination."""

import argparse
import logging

from .. import __util__
from ..__logger__ import create_logger
from ..config import ConfigError, GlobalConfig
from ..core.operations import run_backup
from .common import get_log_level, load_cli_config

logger = logging.getLogger(__name__)


def find_quoted(*values: str | None) -> str | None:
    """Return the first value containing a single quote, if any."""
    for value in values:
        if value and "'" in value:
            return value
    return None


def execute_backup(args: argparse.Namespace) -> int:
    """Execute the backup command.

    Global settings come from the configuration file when one exists,
    otherwise the defaults apply.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    log_level = get_log_level(args)
    create_logger(log_level)

    quoted = find_quoted(args.source, args.destination, args.exclude)
    if quoted is not None:
        logger.error("Arguments must not contain single quotes: %s", quoted)
        return 1

    try:
        config = load_cli_config(args, required=False)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1

    global_config = config.global_config if config else GlobalConfig()
    exclusion = args.exclude
    if exclusion is None and config is not None:
        job = config.find_job(args.destination)
        if job is not None:
            exclusion = job.exclude

    if global_config.log_file:
        create_logger(log_level, log_file=global_config.log_file)

    try:
        run_backup(
            args.source,
            args.destination,
            exclusion=exclusion,
            config=global_config,
            dry_run=getattr(args, "dry_run", False),
        )
    except __util__.AbortError as e:
        logger.error("%s", e)
        return 1

    return 0
