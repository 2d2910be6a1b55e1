"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from rsync_backup_ng import MARKER_FILE
from rsync_backup_ng.core.transfer import TransferOutcome, TransferSpec


class FakeDetector:
    """Active run detector answering from a fixed set of pids."""

    def __init__(self, active_pids=()):
        self.active_pids = set(active_pids)
        self.queries = []

    def is_active(self, pid):
        self.queries.append(pid)
        return pid in self.active_pids


class FakeTransfer:
    """Transfer that writes a file into the destination instead of running rsync."""

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.specs = []
        self.link_dests = []

    def run(self, spec: TransferSpec) -> TransferOutcome:
        self.specs.append(spec)
        self.link_dests.append(spec.link_dest)
        if not spec.dry_run:
            spec.destination.mkdir(parents=True, exist_ok=True)
            (spec.destination / "data.txt").write_text("payload")
        if self.outcomes:
            return self.outcomes.pop(0)
        return TransferOutcome(transcript=spec.transcript)


@pytest.fixture
def destination(tmp_path):
    """Create a backup destination carrying the marker file."""
    dest = tmp_path / "backup"
    dest.mkdir()
    (dest / MARKER_FILE).touch()
    return dest


@pytest.fixture
def source(tmp_path):
    """Create a source directory with some content."""
    src = tmp_path / "source"
    src.mkdir()
    (src / "file.txt").write_text("hello")
    return src


@pytest.fixture
def make_snapshots():
    """Return a helper creating snapshot directories under a destination."""

    def _make(dest: Path, *names: str) -> list[Path]:
        paths = []
        for name in names:
            path = dest / name
            path.mkdir()
            (path / "data.txt").write_text(name)
            paths.append(path)
        return paths

    return _make


@pytest.fixture
def fake_detector():
    """Detector reporting no active runs."""
    return FakeDetector()


@pytest.fixture
def fake_transfer():
    """Transfer that always succeeds."""
    return FakeTransfer()


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config_toml():
    """Return a sample valid TOML configuration string."""
    return """
[global]
log_dir = "/tmp/rsync-backup-ng-logs"
usage_threshold = 85
auto_expire = false
rsync_append_flags = "--compress-level=3 --partial"

[global.retention]
keep_all_days = 2
keep_daily_days = 14

[[jobs]]
source = "/home"
destination = "/mnt/backup/home"
exclude = "*.bak *.swp"

[[jobs]]
source = "/etc"
destination = "/mnt/backup/etc"
enabled = false
"""


@pytest.fixture
def minimal_config_toml():
    """Return a minimal valid TOML configuration string."""
    return """
[[jobs]]
source = "/home"
destination = "/mnt/backup"
"""


@pytest.fixture
def config_file(tmp_config_dir, sample_config_toml):
    """Create a temporary config file with sample content."""
    config_path = tmp_config_dir / "config.toml"
    config_path.write_text(sample_config_toml)
    return config_path


@pytest.fixture
def no_default_config(monkeypatch):
    """Hide any configuration file installed on the host."""
    from rsync_backup_ng.config import loader

    monkeypatch.setattr(loader, "CONFIG_PATHS", [])
