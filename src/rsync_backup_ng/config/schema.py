"""Configuration schema definitions using dataclasses.

Defines the structure for TOML configuration with sensible defaults.
"""

from dataclasses import dataclass, field
from typing import Optional

DEFAULT_LOG_DIR = "~/.rsync-backup-ng"


@dataclass
class RetentionConfig:
    """Retention policy configuration.

    Attributes:
        keep_all_days: Snapshots younger than this are always kept
        keep_daily_days: Up to this age, one snapshot per day is kept;
            older snapshots are thinned to one per month
    """

    keep_all_days: int = 1
    keep_daily_days: int = 31


@dataclass
class JobConfig:
    """Backup job configuration.

    Attributes:
        source: Directory to back up
        destination: Backup destination root (must hold backup.marker)
        exclude: Exclusion file path, or whitespace separated patterns
        enabled: Whether this job runs with the ``run`` command
    """

    source: str
    destination: str
    exclude: Optional[str] = None
    enabled: bool = True


@dataclass
class GlobalConfig:
    """Global configuration settings.

    Attributes:
        log_dir: Directory for rsync transcripts of running backups
        log_file: Path to log file (None for no file logging)
        usage_threshold: Destination usage percentage treated as full
        auto_expire: Expire the oldest snapshot when the destination fills up
        rsync_flags: Replacement for the default rsync flags
        rsync_append_flags: Flags added after the defaults
        retention: Retention policy
    """

    log_dir: str = DEFAULT_LOG_DIR
    log_file: Optional[str] = None
    usage_threshold: int = 90
    auto_expire: bool = True
    rsync_flags: Optional[list[str]] = None
    rsync_append_flags: list[str] = field(default_factory=list)
    retention: RetentionConfig = field(default_factory=RetentionConfig)


@dataclass
class Config:
    """Root configuration object.

    Attributes:
        global_config: Global settings that apply to all jobs
        jobs: List of backup jobs
    """

    global_config: GlobalConfig = field(default_factory=GlobalConfig)
    jobs: list[JobConfig] = field(default_factory=list)

    def get_enabled_jobs(self) -> list[JobConfig]:
        """Get list of enabled jobs."""
        return [j for j in self.jobs if j.enabled]

    def find_job(self, destination: str) -> Optional[JobConfig]:
        """Find the job writing to the given destination."""
        for job in self.jobs:
            if job.destination.rstrip("/") == destination.rstrip("/"):
                return job
        return None
