# pyright: standard

"""rsync-backup-ng: rsync_backup_ng/__logger__.py
A common logger for displaying through rich.
"""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

# Informational output goes to stdout, warnings and errors to stderr
cons = Console()
err_cons = Console(stderr=True)
rich_handler = RichHandler(console=cons, show_path=False)
# Create a logger directly
logger = logging.getLogger("rsync_backup_ng")


class _BelowLevelFilter(logging.Filter):
    """Pass only records strictly below the given level."""

    def __init__(self, level: int) -> None:
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


def create_logger(
    level: str | int = logging.INFO, log_file: Optional[str | Path] = None
) -> None:
    """Helper function to setup logging for a run.

    Args:
        level: Log level name or number
        log_file: Optional path of a plain text log file
    """
    # pylint: disable=global-statement
    global cons, err_cons, rich_handler

    cons = Console()
    err_cons = Console(stderr=True)

    rich_handler = RichHandler(console=cons, show_path=False)
    rich_handler.addFilter(_BelowLevelFilter(logging.WARNING))
    err_handler = RichHandler(console=err_cons, show_path=False)
    err_handler.setLevel(logging.WARNING)

    handlers: list[logging.Handler] = [rich_handler, err_handler]

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        format="%(message)s",
        datefmt="%H:%M:%S",
        level=level,
        handlers=handlers,
        force=True,
    )
    logger.setLevel(level)
