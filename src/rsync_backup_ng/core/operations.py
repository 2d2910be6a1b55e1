"""Core backup operations: run one incremental snapshot backup.

Startup reconciles any interrupted run, then the transfer runs inside the
disk space guard with retention pruning before every attempt. Only a fully
successful transfer moves ``latest`` and removes the in-progress marker;
every failure leaves them for the next run to resume from.
"""

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .. import __util__
from ..config.schema import GlobalConfig
from ..retention import RetentionPolicy
from .context import RunContext
from .guard import DiskSpaceGuard
from .repository import SnapshotRepository
from .resume import (
    ActiveRunDetector,
    InProgressMarker,
    ResumeCoordinator,
    ResumeResult,
)
from .transfer import (
    RsyncTransfer,
    Transfer,
    TransferOutcome,
    TransferSpec,
    resolve_exclusions,
)

logger = logging.getLogger(__name__)


class TransferOrchestrator:
    """Compose the transfer for the working snapshot and interpret its outcome."""

    def __init__(
        self,
        repository: SnapshotRepository,
        context: RunContext,
        transfer: Transfer,
        retention: RetentionPolicy,
        usage_threshold: int = 90,
        auto_expire: bool = True,
        usage_probe: Optional[Callable[[Path], int]] = None,
    ) -> None:
        self.repository = repository
        self.context = context
        self.transfer = transfer
        self.retention = retention
        self.usage_threshold = usage_threshold
        self.auto_expire = auto_expire
        self.usage_probe = usage_probe
        self.marker = InProgressMarker(repository.inprogress_path)
        self._spec: Optional[TransferSpec] = None

    def build_spec(
        self,
        source: Path,
        resume: ResumeResult,
        log_dir: Path,
        exclusion: Optional[str] = None,
    ) -> TransferSpec:
        exclude_from, excludes = resolve_exclusions(exclusion, source)

        link_dest = None
        if resume.previous is None:
            logger.info("No previous backup - creating new one.")
        else:
            link_dest = self.repository.resolve_absolute(resume.previous)
            logger.info(
                "Previous backup found - doing incremental backup from %s", link_dest
            )

        return TransferSpec(
            source=source,
            destination=resume.working_path,
            transcript=log_dir / f"{self.context.snapshot_name}.log",
            link_dest=link_dest,
            exclude_from=exclude_from,
            excludes=excludes,
            dry_run=self.context.dry_run,
        )

    def run(
        self,
        source: Path,
        resume: ResumeResult,
        log_dir: Path,
        exclusion: Optional[str] = None,
    ) -> TransferOutcome:
        """Transfer into the working snapshot and finalize on success.

        Raises:
            SnapshotTransferError: If the tool reported a fatal error
            InsufficientSpaceError: If space could not be reclaimed
        """
        spec = self.build_spec(source, resume, log_dir, exclusion)
        self._spec = spec

        if not self.context.dry_run and not spec.destination.is_dir():
            logger.info("Creating destination %s", spec.destination)
            spec.destination.mkdir(parents=True)

        logger.info("Starting backup...")
        logger.info("From: %s/", spec.source)
        logger.info("To:   %s/", spec.destination)

        guard = DiskSpaceGuard(
            self.repository,
            self.transfer,
            threshold=self.usage_threshold,
            auto_expire=self.auto_expire,
            usage_probe=self.usage_probe,
            before_attempt=self._before_attempt,
        )
        outcome = guard.run_with_recovery(spec)

        self._check_outcome(outcome)
        self._finalize(spec)
        return outcome

    def _before_attempt(self) -> None:
        """Prune by retention and mark the run as in progress."""
        self.retention.prune(self.repository, self.context.epoch)

        spec = self._spec
        if spec and spec.link_dest is not None and not spec.link_dest.is_dir():
            logger.warning(
                "Link reference %s is gone - continuing without it.", spec.link_dest
            )
            spec.link_dest = None

        if self.context.dry_run:
            return
        self.marker.write(self.context.pid)

    def _check_outcome(self, outcome: TransferOutcome) -> None:
        transcript = outcome.transcript or "the rsync log"
        if outcome.warnings:
            for line in outcome.warnings:
                logger.debug("rsync: %s", line)
            logger.warning(
                "Rsync reported a warning, please check '%s' for more details.",
                transcript,
            )
        if outcome.fatal_error is not None:
            raise __util__.SnapshotTransferError(
                f"Rsync reported an error ({outcome.fatal_error}), please check "
                f"'{transcript}' for more details."
            )

    def _finalize(self, spec: TransferSpec) -> None:
        self.repository.update_latest(spec.destination.name)
        if not self.context.dry_run:
            self.marker.remove()
        spec.transcript.unlink(missing_ok=True)
        logger.info("Backup completed without errors.")


def run_backup(
    source: str | Path,
    destination: str | Path,
    exclusion: Optional[str] = None,
    config: Optional[GlobalConfig] = None,
    dry_run: bool = False,
    now: Optional[datetime] = None,
    detector: Optional[ActiveRunDetector] = None,
    transfer: Optional[Transfer] = None,
    usage_probe: Optional[Callable[[Path], int]] = None,
) -> TransferOutcome:
    """Run one backup of ``source`` into a new snapshot under ``destination``.

    Args:
        source: Directory to back up
        destination: Backup destination root holding ``backup.marker``
        exclusion: Exclusion file or whitespace separated patterns
        config: Global settings (defaults when None)
        dry_run: Report destructive steps instead of performing them
        now: Start time of the run (defaults to the current time)
        detector: Active run detector (defaults to the process table)
        transfer: Transfer primitive (defaults to rsync)
        usage_probe: Destination usage measurement in percent

    Returns:
        The outcome of the final transfer attempt

    Raises:
        AbortError: On any fatal condition
    """
    config = config or GlobalConfig()
    source = Path(source).expanduser()
    repository = SnapshotRepository(destination, dry_run=dry_run)
    context = RunContext(
        destination=repository.root,
        now=now or datetime.now(),
        dry_run=dry_run,
    )

    if not source.is_dir():
        raise __util__.AbortError(
            f"Source folder '{source}' does not exist - aborting."
        )

    repository.require_valid_destination()

    if dry_run:
        logger.info("Dry run mode - no changes will be made")
    logger.info(__util__.log_heading(f"Started at {time.ctime(context.epoch)}"))

    log_dir = Path(config.log_dir).expanduser()
    if not log_dir.is_dir():
        logger.info("Creating profile folder in '%s'...", log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

    resume = ResumeCoordinator(repository, context, detector=detector).resume()
    logger.debug("Startup state: %s", resume.state.value)

    if transfer is None:
        transfer = RsyncTransfer(
            flags=config.rsync_flags, append_flags=config.rsync_append_flags
        )

    orchestrator = TransferOrchestrator(
        repository,
        context,
        transfer,
        RetentionPolicy(config.retention),
        usage_threshold=config.usage_threshold,
        auto_expire=config.auto_expire,
        usage_probe=usage_probe,
    )
    outcome = orchestrator.run(source, resume, log_dir, exclusion)

    logger.info(__util__.log_heading(f"Finished at {time.ctime()}"))
    return outcome
