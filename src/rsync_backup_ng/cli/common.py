"""Shared CLI utilities and argument parsers."""

import argparse
import logging

from ..config import Config, ConfigError, find_config_file, load_config

logger = logging.getLogger(__name__)


def add_verbosity_args(parser: argparse.ArgumentParser) -> None:
    """Add verbosity-related arguments to a parser."""
    group = parser.add_argument_group("Output options")
    group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )
    group.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output",
    )


def add_dry_run_arg(parser: argparse.ArgumentParser) -> None:
    """Add the dry-run flag."""
    parser.add_argument(
        "-x",
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )


def get_log_level(args: argparse.Namespace) -> str:
    """Determine log level from parsed arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        Log level string (DEBUG, INFO, WARNING, ERROR)
    """
    if getattr(args, "debug", False):
        return "DEBUG"
    elif getattr(args, "quiet", False):
        return "WARNING"
    elif getattr(args, "verbose", False):
        return "DEBUG"
    else:
        return "INFO"


def load_cli_config(args: argparse.Namespace, required: bool = True) -> Config | None:
    """Find and load the configuration named by ``--config`` or the defaults.

    Args:
        args: Parsed command line arguments
        required: Treat a missing configuration file as an error

    Returns:
        The configuration, or None if no file exists and none is required

    Raises:
        ConfigError: If the file is invalid, or missing while required
    """
    config_path = find_config_file(getattr(args, "config", None))
    if config_path is None:
        if required:
            raise ConfigError(
                "No configuration file found. "
                "Create one with: rsync-backup-ng config init"
            )
        return None

    logger.info("Loading configuration from: %s", config_path)
    config, warnings = load_config(config_path)

    for warning in warnings:
        logger.warning("Config: %s", warning)

    return config


def resolve_destinations(args: argparse.Namespace) -> list[str]:
    """Destinations named with ``--destination``, or those of the enabled jobs.

    Raises:
        ConfigError: If no destination is given and no configuration exists
    """
    explicit = getattr(args, "destination", None)
    if explicit:
        return list(explicit)

    config = load_cli_config(args)
    assert config is not None
    return [job.destination for job in config.get_enabled_jobs()]
