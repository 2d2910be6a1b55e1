"""Per-run context shared by the backup components."""

import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .. import __util__


@dataclass(frozen=True)
class RunContext:
    """Values fixed for the duration of one backup run.

    Attributes:
        destination: Backup destination root
        now: Start time of the run; names the working snapshot
        dry_run: Report destructive steps instead of performing them
        pid: Process id recorded in the in-progress marker
    """

    destination: Path
    now: datetime = field(default_factory=datetime.now)
    dry_run: bool = False
    pid: int = field(default_factory=os.getpid)

    @property
    def snapshot_name(self) -> str:
        return __util__.date_to_str(self.now)

    @property
    def epoch(self) -> float:
        return self.now.timestamp()

    @property
    def working_path(self) -> Path:
        return self.destination / self.snapshot_name
