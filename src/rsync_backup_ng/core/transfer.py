# pyright: standard

"""rsync-backup-ng: rsync_backup_ng/core/transfer.py
The external transfer primitive: rsync with ``--link-dest``.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

from .. import __util__

logger = logging.getLogger(__name__)

DEFAULT_RSYNC_FLAGS = [
    "--compress",
    "--numeric-ids",
    "--links",
    "--hard-links",
    "--one-file-system",
    "--archive",
    "--itemize-changes",
    "--verbose",
]

# Per-source exclusion list used when none is given
DEFAULT_IGNORE_LIST = Path(".sync") / "IgnoreList"

WARNING_PREFIX = "rsync:"
ERROR_PREFIX = "rsync error:"


@dataclass
class TransferSpec:
    """Everything one transfer invocation needs.

    Attributes:
        source: Directory to copy from
        destination: Working snapshot directory to copy into
        link_dest: Absolute path of the previous snapshot, if incremental
        exclude_from: File with exclusion patterns
        excludes: Inline exclusion patterns
        transcript: Log file the tool writes
        dry_run: Ask the tool not to change anything
    """

    source: Path
    destination: Path
    transcript: Path
    link_dest: Optional[Path] = None
    exclude_from: Optional[Path] = None
    excludes: list[str] = field(default_factory=list)
    dry_run: bool = False


@dataclass
class TransferOutcome:
    """What the tool reported.

    Attributes:
        warnings: Non-fatal ``rsync:`` lines
        fatal_error: First ``rsync error:`` line, if any
        returncode: Exit status of the tool
        transcript: Log file that was written
    """

    warnings: list[str] = field(default_factory=list)
    fatal_error: Optional[str] = None
    returncode: int = 0
    transcript: Optional[Path] = None

    @property
    def succeeded(self) -> bool:
        return self.fatal_error is None


class Transfer(Protocol):
    """A transfer primitive able to resume into a partially filled destination."""

    def run(self, spec: TransferSpec) -> TransferOutcome: ...


def resolve_exclusions(
    exclusion: Optional[str], source: str | Path
) -> tuple[Optional[Path], list[str]]:
    """Interpret an exclusion argument.

    An existing file is passed as an exclusion file, anything else is split on
    whitespace into patterns. Without an argument, ``<source>/.sync/IgnoreList``
    is used if present.

    Returns:
        Tuple of (exclusion file or None, list of patterns)
    """
    if not exclusion:
        ignore_list = Path(source) / DEFAULT_IGNORE_LIST
        if ignore_list.is_file():
            logger.info("No exclusion given. Assuming %s usage.", ignore_list)
            return ignore_list, []
        return None, []

    exclusion_path = Path(exclusion).expanduser()
    if exclusion_path.is_file():
        return exclusion_path, []
    return None, exclusion.split()


def scan_transcript(text: str) -> tuple[list[str], Optional[str]]:
    """Split a transcript into warning lines and the first fatal error line."""
    warnings = []
    fatal_error = None
    for line in text.splitlines():
        if ERROR_PREFIX in line:
            if fatal_error is None:
                fatal_error = line.strip()
        elif WARNING_PREFIX in line:
            warnings.append(line.strip())
    return warnings, fatal_error


class RsyncTransfer:
    """Run rsync synchronously and read back its log file."""

    def __init__(
        self,
        flags: Optional[list[str]] = None,
        append_flags: Optional[list[str]] = None,
        executable: str = "rsync",
    ) -> None:
        self.flags = list(DEFAULT_RSYNC_FLAGS if flags is None else flags)
        self.append_flags = list(append_flags or [])
        self.executable = executable

    def build_command(self, spec: TransferSpec) -> list[str]:
        cmd = [self.executable]
        if spec.dry_run:
            cmd.append("--dry-run")
        cmd += self.flags
        cmd += self.append_flags
        cmd += ["--log-file", str(spec.transcript)]
        if spec.exclude_from is not None:
            cmd += ["--exclude-from", str(spec.exclude_from)]
        for pattern in spec.excludes:
            cmd += ["--exclude", pattern]
        if spec.link_dest is not None:
            cmd += ["--link-dest", str(spec.link_dest)]
        # Trailing slashes copy the contents, not the directory itself
        cmd += ["--", f"{spec.source}/", f"{spec.destination}/"]
        return cmd

    def run(self, spec: TransferSpec) -> TransferOutcome:
        cmd = self.build_command(spec)
        logger.info("Running command:")
        logger.info("%s", " ".join(cmd))

        # rsync appends to its log file; only this attempt is of interest
        spec.transcript.parent.mkdir(parents=True, exist_ok=True)
        spec.transcript.unlink(missing_ok=True)
        result = __util__.exec_subprocess(cmd, check=False)
        logger.debug("rsync exited with code %d", result.returncode)

        try:
            text = spec.transcript.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            text = ""

        warnings, fatal_error = scan_transcript(text)
        if fatal_error is None and result.returncode != 0 and not warnings:
            fatal_error = f"rsync exited with code {result.returncode}"

        return TransferOutcome(
            warnings=warnings,
            fatal_error=fatal_error,
            returncode=result.returncode,
            transcript=spec.transcript,
        )
