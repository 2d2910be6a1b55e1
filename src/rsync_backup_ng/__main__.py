# pyright: standard

"""rsync-backup-ng: rsync_backup_ng/__main__.py.

Incremental, hard-linked rsync snapshots of a directory tree.
"""

import signal
import sys

from .cli.dispatcher import main as cli_main


def _terminate(signum, frame) -> None:
    """Exit on SIGTERM, leaving the in-progress state for the next run."""
    print(f"{signal.Signals(signum).name} caught.", file=sys.stderr)
    raise SystemExit(1)


def main() -> int:
    """Console script entry point."""
    signal.signal(signal.SIGTERM, _terminate)
    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
