"""Core backup components for rsync-backup-ng.

The snapshot repository, resume protocol, transfer primitive and disk space
guard. Orchestration lives in ``core.operations``.
"""

from .context import RunContext
from .guard import DiskSpaceGuard
from .repository import Snapshot, SnapshotRepository, is_valid_destination
from .resume import (
    ActiveRunDetector,
    InProgressMarker,
    ProcessTableDetector,
    ResumeCoordinator,
    ResumeResult,
    ResumeState,
)
from .transfer import RsyncTransfer, Transfer, TransferOutcome, TransferSpec

__all__ = [
    "RunContext",
    "DiskSpaceGuard",
    "Snapshot",
    "SnapshotRepository",
    "is_valid_destination",
    "ActiveRunDetector",
    "InProgressMarker",
    "ProcessTableDetector",
    "ResumeCoordinator",
    "ResumeResult",
    "ResumeState",
    "RsyncTransfer",
    "Transfer",
    "TransferOutcome",
    "TransferSpec",
]
