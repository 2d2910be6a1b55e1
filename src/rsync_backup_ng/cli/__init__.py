"""Command line interface for rsync-backup-ng."""
