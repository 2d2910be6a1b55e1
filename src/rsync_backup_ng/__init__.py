"""rsync-backup-ng: rsync_backup_ng/__init__.py."""

__version__ = "0.1.0"

# Snapshot directory names, local time
SNAPSHOT_FORMAT = "%Y-%m-%d-%H%M%S"

MARKER_FILE = "backup.marker"
INPROGRESS_FILE = "backup.inprogress"
LATEST_LINK = "latest"
