"""Tests for the command line interface."""

import argparse
import os
from unittest import mock

import pytest

from rsync_backup_ng import INPROGRESS_FILE, __util__, __version__
from rsync_backup_ng.cli import backup as backup_cmd
from rsync_backup_ng.cli.common import get_log_level, resolve_destinations
from rsync_backup_ng.cli.dispatcher import (
    create_subcommand_parser,
    is_legacy_mode,
    legacy_to_subcommand,
    main,
)
from rsync_backup_ng.cli.list_cmd import format_age
from rsync_backup_ng.config import ConfigError


class TestGetLogLevel:
    """Tests for get_log_level function."""

    def test_default_level(self):
        """Test default log level is INFO."""
        assert get_log_level(argparse.Namespace()) == "INFO"

    def test_verbose(self):
        """Test verbose flag enables DEBUG."""
        args = argparse.Namespace(verbose=True, quiet=False, debug=False)
        assert get_log_level(args) == "DEBUG"

    def test_quiet(self):
        """Test quiet flag sets WARNING."""
        args = argparse.Namespace(verbose=False, quiet=True, debug=False)
        assert get_log_level(args) == "WARNING"

    def test_debug_wins(self):
        """Test debug takes precedence over quiet."""
        args = argparse.Namespace(verbose=False, quiet=True, debug=True)
        assert get_log_level(args) == "DEBUG"


class TestLegacyMode:
    """Tests for positional legacy invocation."""

    @pytest.mark.parametrize(
        "argv",
        [
            ["/home", "/mnt/backup"],
            ["./src", "/mnt/backup"],
            ["data/docs", "/mnt/backup"],
            ["~/docs", "/mnt/backup"],
            ["src", "dest"],
            ["src", "dest", "*.bak", "--dry-run"],
        ],
    )
    def test_paths_are_legacy(self, argv):
        """Test path-looking or paired plain arguments select legacy mode."""
        assert is_legacy_mode(argv)

    @pytest.mark.parametrize(
        "argv",
        [
            [],
            ["backup", "-s", "/a", "-d", "/b"],
            ["list"],
            ["-v", "run"],
            ["--help"],
            ["src"],
        ],
    )
    def test_subcommands_are_not_legacy(self, argv):
        """Test subcommands and options are parsed normally."""
        assert not is_legacy_mode(argv)

    def test_conversion(self):
        """Test positional arguments map onto the backup command."""
        assert legacy_to_subcommand(["/src", "/dst", "*.bak", "--dry-run"]) == [
            "backup",
            "--source",
            "/src",
            "--destination",
            "/dst",
            "--exclude",
            "*.bak",
            "--dry-run",
        ]

    def test_conversion_without_exclusion(self):
        """Test the exclusion is optional."""
        args = create_subcommand_parser().parse_args(
            legacy_to_subcommand(["/src", "/dst"])
        )
        assert args.command == "backup"
        assert args.source == "/src"
        assert args.destination == "/dst"
        assert args.exclude is None


class TestParser:
    """Tests for the subcommand parser."""

    def test_backup_arguments(self):
        """Test short options of the backup command."""
        args = create_subcommand_parser().parse_args(
            ["backup", "-s", "/src", "-d", "/dst", "-e", "*.tmp", "-x"]
        )
        assert args.source == "/src"
        assert args.destination == "/dst"
        assert args.exclude == "*.tmp"
        assert args.dry_run is True

    def test_backup_requires_destination(self):
        """Test the destination is mandatory."""
        with pytest.raises(SystemExit):
            create_subcommand_parser().parse_args(["backup", "-s", "/src"])

    def test_prune_destinations(self):
        """Test several destinations can be pruned."""
        args = create_subcommand_parser().parse_args(
            ["prune", "-d", "/a", "-d", "/b", "--dry-run"]
        )
        assert args.destination == ["/a", "/b"]
        assert args.dry_run


class TestMain:
    """Tests for the main entry point."""

    def test_version(self, capsys):
        """Test the version flag."""
        assert main(["--version"]) == 0
        assert __version__ in capsys.readouterr().out

    def test_no_command(self, capsys):
        """Test running without a command fails."""
        assert main([]) == 1

    def test_backup_success(self, no_default_config):
        """Test the backup command passes its arguments through."""
        with mock.patch.object(backup_cmd, "run_backup") as run_backup:
            assert main(["backup", "-s", "/src", "-d", "/dst", "-x"]) == 0

        run_backup.assert_called_once()
        args, kwargs = run_backup.call_args
        assert args == ("/src", "/dst")
        assert kwargs["dry_run"] is True
        assert kwargs["exclusion"] is None

    def test_legacy_backup(self, no_default_config):
        """Test a legacy invocation runs a backup."""
        with mock.patch.object(backup_cmd, "run_backup") as run_backup:
            assert main(["/src", "/dst", "*.bak"]) == 0
        assert run_backup.call_args.kwargs["exclusion"] == "*.bak"

    def test_legacy_relative_names(self, no_default_config):
        """Test bare relative names are taken as source and destination."""
        with mock.patch.object(backup_cmd, "run_backup") as run_backup:
            assert main(["src", "dst"]) == 0
        assert run_backup.call_args.args == ("src", "dst")

    def test_backup_abort(self, no_default_config):
        """Test a fatal condition exits with status 1."""
        with mock.patch.object(
            backup_cmd, "run_backup", side_effect=__util__.DestinationError("nope")
        ):
            assert main(["backup", "-s", "/src", "-d", "/dst"]) == 1

    def test_backup_rejects_single_quotes(self, no_default_config):
        """Test arguments with single quotes are refused."""
        with mock.patch.object(backup_cmd, "run_backup") as run_backup:
            assert main(["backup", "-s", "/it's", "-d", "/dst"]) == 1
        run_backup.assert_not_called()

    def test_backup_uses_job_exclusion(self, config_file):
        """Test a configured job supplies the exclusion for its destination."""
        with mock.patch.object(backup_cmd, "run_backup") as run_backup:
            code = main(
                [
                    "-c",
                    str(config_file),
                    "backup",
                    "-s",
                    "/home",
                    "-d",
                    "/mnt/backup/home",
                ]
            )
        assert code == 0
        kwargs = run_backup.call_args.kwargs
        assert kwargs["exclusion"] == "*.bak *.swp"
        assert kwargs["config"].usage_threshold == 85

    def test_keyboard_interrupt(self, no_default_config, capsys):
        """Test an interrupt exits with status 1."""
        with mock.patch.object(backup_cmd, "run_backup", side_effect=KeyboardInterrupt):
            assert main(["backup", "-s", "/src", "-d", "/dst"]) == 1
        assert "SIGINT caught." in capsys.readouterr().err

    def test_backup_end_to_end(self, source, destination, tmp_path, monkeypatch):
        """Test a real run of the backup command with rsync replaced."""
        config_path = tmp_path / "config.toml"
        config_path.write_text(f'[global]\nlog_dir = "{tmp_path / "logs"}"\n')

        def fake_rsync(cmd, method="run", **kwargs):
            dest = cmd[-1].rstrip("/")
            os.makedirs(dest, exist_ok=True)
            return mock.Mock(returncode=0)

        monkeypatch.setattr(__util__, "exec_subprocess", fake_rsync)
        monkeypatch.setattr(__util__, "disk_usage_percent", lambda path: 10)

        argv = ["-c", str(config_path), "backup"]
        code = main(argv + ["-s", str(source), "-d", str(destination)])

        assert code == 0
        assert os.path.islink(destination / "latest")
        assert not (destination / INPROGRESS_FILE).exists()


class TestCommands:
    """Tests for the maintenance commands."""

    def test_run_without_config(self, no_default_config):
        """Test the run command needs a configuration."""
        assert main(["run"]) == 1

    def test_run_jobs(self, tmp_path, no_default_config):
        """Test every enabled job is backed up and failures are counted."""
        config_path = tmp_path / "config.toml"
        config_path.write_text(
            """
[[jobs]]
source = "/a"
destination = "/backup/a"

[[jobs]]
source = "/b"
destination = "/backup/b"

[[jobs]]
source = "/c"
destination = "/backup/c"
enabled = false
"""
        )
        with mock.patch(
            "rsync_backup_ng.cli.run.run_backup",
            side_effect=[None, __util__.InsufficientSpaceError("full")],
        ) as run_backup:
            assert main(["-c", str(config_path), "run"]) == 1

        assert [c.args[0] for c in run_backup.call_args_list] == ["/a", "/b"]

    def test_prune_destination(self, destination, make_snapshots, no_default_config):
        """Test pruning an explicit destination without a configuration."""
        make_snapshots(destination, "2020-01-02-000000", "2020-01-01-000000")

        assert main(["prune", "-d", str(destination)]) == 0

        assert (destination / "2020-01-02-000000").exists()
        assert not (destination / "2020-01-01-000000").exists()

    def test_prune_dry_run(self, destination, make_snapshots, no_default_config):
        """Test a dry-run prune deletes nothing."""
        make_snapshots(destination, "2020-01-02-000000", "2020-01-01-000000")

        assert main(["prune", "--dry-run", "-d", str(destination)]) == 0

        assert (destination / "2020-01-01-000000").exists()

    def test_prune_unmarked(self, tmp_path, no_default_config):
        """Test pruning an unmarked directory fails."""
        assert main(["prune", "-d", str(tmp_path)]) == 1

    def test_prune_refuses_active_run(
        self, destination, make_snapshots, no_default_config
    ):
        """Test nothing is pruned while a backup runs on the destination."""
        make_snapshots(destination, "2020-01-02-000000", "2020-01-01-000000")
        (destination / INPROGRESS_FILE).write_text("4242\n")

        with mock.patch(
            "rsync_backup_ng.core.resume.ProcessTableDetector.is_active",
            return_value=True,
        ) as is_active:
            assert main(["prune", "-d", str(destination)]) == 1

        is_active.assert_called_once_with(4242)
        assert (destination / "2020-01-01-000000").exists()
        assert (destination / "2020-01-02-000000").exists()

    def test_prune_after_dead_run(self, destination, make_snapshots, no_default_config):
        """Test a marker left by a dead run does not block pruning."""
        make_snapshots(destination, "2020-01-02-000000", "2020-01-01-000000")
        (destination / INPROGRESS_FILE).write_text("4242\n")

        with mock.patch(
            "rsync_backup_ng.core.resume.ProcessTableDetector.is_active",
            return_value=False,
        ):
            assert main(["prune", "-d", str(destination)]) == 0

        assert not (destination / "2020-01-01-000000").exists()

    def test_list(self, destination, make_snapshots, capsys, no_default_config):
        """Test listing a destination's chain."""
        make_snapshots(destination, "2024-01-02-000000", "2024-01-03-000000")
        os.symlink("2024-01-03-000000", destination / "latest")

        assert main(["list", "-d", str(destination)]) == 0

        out = capsys.readouterr().out
        assert "2024-01-02-000000" in out
        assert "2024-01-03-000000" in out
        assert "(latest)" in out
        assert "Total: 2 snapshot(s)" in out

    def test_status(self, destination, make_snapshots, capsys, no_default_config):
        """Test status reports an interrupted run."""
        make_snapshots(destination, "2024-01-02-000000")
        (destination / INPROGRESS_FILE).write_text("not-a-pid")

        assert main(["status", "-d", str(destination)]) == 1

        out = capsys.readouterr().out
        assert "interrupted" in out
        assert "Snapshots: 1" in out

    def test_status_without_destinations(self, no_default_config):
        """Test status needs a destination or a configuration."""
        assert main(["status"]) == 1

    def test_config_init_and_validate(self, tmp_path, capsys):
        """Test writing the example configuration and validating it."""
        path = tmp_path / "config.toml"

        assert main(["config", "init", "-o", str(path)]) == 0
        assert main(["-c", str(path), "config", "validate"]) == 0
        assert "Configuration is valid." in capsys.readouterr().out

    def test_config_validate_invalid(self, tmp_path, capsys):
        """Test validation reports errors."""
        path = tmp_path / "config.toml"
        path.write_text("[global]\nusage_threshold = 0\n")

        assert main(["-c", str(path), "config", "validate"]) == 1
        assert "Configuration error" in capsys.readouterr().out

    def test_config_without_action(self):
        """Test the config command requires an action."""
        assert main(["config"]) == 1


class TestHelpers:
    """Tests for small CLI helpers."""

    def test_resolve_explicit_destinations(self):
        """Test explicit destinations bypass the configuration."""
        args = argparse.Namespace(destination=["/a"], config=None)
        assert resolve_destinations(args) == ["/a"]

    def test_resolve_requires_config(self, no_default_config):
        """Test a missing configuration is an error without destinations."""
        with pytest.raises(ConfigError):
            resolve_destinations(argparse.Namespace(destination=None, config=None))

    @pytest.mark.parametrize(
        "seconds,expected", [(0, "0m"), (600, "10m"), (7200, "2h"), (3 * 86400, "3d")]
    )
    def test_format_age(self, seconds, expected):
        """Test ages are shown in the coarsest unit."""
        assert format_age(seconds) == expected
