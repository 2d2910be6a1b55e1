"""TOML configuration loading and validation.

Handles config file discovery, parsing, and validation with helpful error messages.
"""

import tomllib
from pathlib import Path
from typing import Any

from .schema import (
    DEFAULT_LOG_DIR,
    Config,
    GlobalConfig,
    JobConfig,
    RetentionConfig,
)


class ConfigError(Exception):
    """Configuration loading or validation error."""

    pass


# Config file search paths in priority order
CONFIG_PATHS = [
    Path.home() / ".config" / "rsync-backup-ng" / "config.toml",
    Path("/etc/rsync-backup-ng/config.toml"),
]


def find_config_file(explicit_path: str | None = None) -> Path | None:
    """Find configuration file.

    Args:
        explicit_path: Explicitly specified config path (highest priority)

    Returns:
        Path to config file, or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        raise ConfigError(f"Config file not found: {explicit_path}")

    for path in CONFIG_PATHS:
        if path.exists():
            return path

    return None


def _parse_retention(data: dict[str, Any]) -> RetentionConfig:
    """Parse retention configuration from dict."""
    retention = RetentionConfig(
        keep_all_days=data.get("keep_all_days", 1),
        keep_daily_days=data.get("keep_daily_days", 31),
    )
    for key in ("keep_all_days", "keep_daily_days"):
        value = getattr(retention, key)
        if not isinstance(value, int):
            raise ConfigError(f"'{key}' must be an integer number of days")
    if retention.keep_all_days < 0 or retention.keep_daily_days < 0:
        raise ConfigError("Retention periods must not be negative")
    if retention.keep_daily_days < retention.keep_all_days:
        raise ConfigError("'keep_daily_days' must not be shorter than 'keep_all_days'")
    return retention


def _parse_job(data: dict[str, Any]) -> JobConfig:
    """Parse job configuration from dict."""
    for key in ("source", "destination"):
        if key not in data:
            raise ConfigError(f"Job missing required '{key}' field")

    return JobConfig(
        source=data["source"],
        destination=data["destination"],
        exclude=data.get("exclude"),
        enabled=data.get("enabled", True),
    )


def _parse_flags(value: Any, key: str) -> list[str]:
    """Accept flags as a list or a whitespace separated string."""
    if isinstance(value, str):
        return value.split()
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise ConfigError(f"'{key}' must be a string or a list of strings")


def _parse_global(data: dict[str, Any]) -> GlobalConfig:
    """Parse global configuration from dict."""
    retention = RetentionConfig()
    if "retention" in data:
        retention = _parse_retention(data["retention"])

    usage_threshold = data.get("usage_threshold", 90)
    if not isinstance(usage_threshold, int) or not 0 < usage_threshold <= 100:
        raise ConfigError("'usage_threshold' must be an integer between 1 and 100")

    rsync_flags = None
    if "rsync_flags" in data:
        rsync_flags = _parse_flags(data["rsync_flags"], "rsync_flags")

    return GlobalConfig(
        log_dir=data.get("log_dir", DEFAULT_LOG_DIR),
        log_file=data.get("log_file"),
        usage_threshold=usage_threshold,
        auto_expire=data.get("auto_expire", True),
        rsync_flags=rsync_flags,
        rsync_append_flags=_parse_flags(
            data.get("rsync_append_flags", []), "rsync_append_flags"
        ),
        retention=retention,
    )


def _validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of warnings."""
    warnings = []

    if not config.jobs:
        warnings.append("No jobs configured")

    # One job per destination chain
    destinations = [j.destination.rstrip("/") for j in config.jobs]
    if len(destinations) != len(set(destinations)):
        warnings.append("Duplicate job destinations detected")

    for job in config.jobs:
        if ":" in job.destination.split("/", 1)[0]:
            warnings.append(
                f"Destination '{job.destination}' looks remote; only local "
                "destinations are supported"
            )

    return warnings


def load_config(path: Path | str) -> tuple[Config, list[str]]:
    """Load and validate configuration from TOML file.

    Args:
        path: Path to configuration file

    Returns:
        Tuple of (Config object, list of warnings)

    Raises:
        ConfigError: If config is invalid or cannot be parsed
    """
    path = Path(path)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}")

    global_config = _parse_global(data.get("global", {}))

    jobs = []
    for job_data in data.get("jobs", []):
        jobs.append(_parse_job(job_data))

    config = Config(global_config=global_config, jobs=jobs)

    warnings = _validate_config(config)

    return config, warnings


def generate_example_config() -> str:
    """Generate example configuration file content."""
    return """# rsync-backup-ng configuration
# See documentation for full options

[global]
log_dir = "~/.rsync-backup-ng"
# log_file = "/var/log/rsync-backup-ng.log"
usage_threshold = 90    # Destination usage (%) treated as full
auto_expire = true      # Expire the oldest backup when the destination fills up
# rsync_append_flags = ["--partial"]

[global.retention]
keep_all_days = 1       # Keep every backup younger than 1 day
keep_daily_days = 31    # Then one per day up to 31 days, one per month beyond

# Home directory backup
[[jobs]]
source = "/home"
destination = "/mnt/backup/home"
# exclude = "/home/.sync/IgnoreList"

# Patterns instead of a file
# [[jobs]]
# source = "/etc"
# destination = "/mnt/backup/etc"
# exclude = "*.bak *.swp"
"""
