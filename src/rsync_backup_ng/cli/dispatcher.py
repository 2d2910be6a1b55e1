"""CLI dispatcher with legacy mode detection.

This module handles routing between the subcommand-based CLI and the
positional ``SRC DEST [EXCL]`` form, which is treated as ``backup``.
"""

import argparse
import sys
from typing import Callable

from .common import add_dry_run_arg, add_verbosity_args

# Known subcommands
SUBCOMMANDS = frozenset(
    {
        "backup",
        "run",
        "prune",
        "list",
        "status",
        "config",
    }
)


def is_legacy_mode(argv: list[str]) -> bool:
    """Detect if arguments indicate legacy CLI mode.

    Legacy mode is when the first argument looks like a path rather
    than a subcommand, or when at least two plain arguments are given:
        rsync-backup-ng /source /dest
        rsync-backup-ng source dest

    Args:
        argv: Command line arguments (without program name)

    Returns:
        True if legacy mode should be used
    """
    if not argv:
        return False

    first = argv[0]

    if first in SUBCOMMANDS:
        return False

    if first.startswith("-"):
        return False

    # Anything with a path shape
    if first.startswith(("/", "./", "../", "~")):
        return True
    if "/" in first and "://" not in first:
        return True

    # Bare relative names: SRC DEST
    positional = [a for a in argv if not a.startswith("-")]
    return len(positional) >= 2


def legacy_to_subcommand(argv: list[str]) -> list[str]:
    """Rewrite ``SRC DEST [EXCL] [options]`` as ``backup`` arguments."""
    positional = [a for a in argv if not a.startswith("-")]
    options = [a for a in argv if a.startswith("-")]

    converted = ["backup"]
    for flag, value in zip(("--source", "--destination", "--exclude"), positional):
        converted += [flag, value]
    # Extra positionals are left for argparse to reject
    converted += positional[3:]
    return converted + options


def create_subcommand_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="rsync-backup-ng",
        description="Incremental rsync snapshot backups with tiered retention",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    add_verbosity_args(parser)

    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="Path to configuration file",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands (use 'command --help' for details)",
    )

    # backup command
    backup_parser = subparsers.add_parser(
        "backup",
        help="Back up one source into a new snapshot",
        description="Transfer a source directory into a new timestamped snapshot",
    )
    backup_parser.add_argument(
        "-s",
        "--source",
        metavar="PATH",
        required=True,
        help="Directory to back up",
    )
    backup_parser.add_argument(
        "-d",
        "--destination",
        metavar="PATH",
        required=True,
        help="Backup destination (must contain backup.marker)",
    )
    backup_parser.add_argument(
        "-e",
        "--exclude",
        metavar="EXCL",
        help="Exclusion file, or whitespace separated patterns",
    )
    add_dry_run_arg(backup_parser)

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Execute all configured backup jobs",
        description="Back up every enabled job from the configuration file",
    )
    add_dry_run_arg(run_parser)

    # prune command
    prune_parser = subparsers.add_parser(
        "prune",
        help="Apply retention policies",
        description="Expire old snapshots according to retention settings",
    )
    add_dry_run_arg(prune_parser)
    prune_parser.add_argument(
        "-d",
        "--destination",
        metavar="PATH",
        action="append",
        help="Only prune specific destination(s)",
    )

    # list command
    list_parser = subparsers.add_parser(
        "list",
        help="Show snapshots",
        description="List the snapshot chain of each destination",
    )
    list_parser.add_argument(
        "-d",
        "--destination",
        metavar="PATH",
        action="append",
        help="Only list specific destination(s)",
    )

    # status command
    status_parser = subparsers.add_parser(
        "status",
        help="Show destination health",
        description="Display marker, in-progress state, latest snapshot and usage",
    )
    status_parser.add_argument(
        "-d",
        "--destination",
        metavar="PATH",
        action="append",
        help="Only show specific destination(s)",
    )

    # config command with subcommands
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Validate or initialize configuration",
    )
    config_subs = config_parser.add_subparsers(dest="config_action")

    config_subs.add_parser(
        "validate",
        help="Validate configuration file",
    )

    init_parser = config_subs.add_parser(
        "init",
        help="Generate example configuration",
    )
    init_parser.add_argument(
        "-o",
        "--output",
        metavar="FILE",
        help="Output file (default: stdout)",
    )

    return parser


def run_subcommand(args: argparse.Namespace) -> int:
    """Run the specified subcommand.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    from .. import __version__

    if args.version:
        print(f"rsync-backup-ng {__version__}")
        return 0

    if not args.command:
        print("No command specified. Use --help for usage information.")
        return 1

    handlers: dict[str, Callable] = {
        "backup": cmd_backup,
        "run": cmd_run,
        "prune": cmd_prune,
        "list": cmd_list,
        "status": cmd_status,
        "config": cmd_config,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


def cmd_backup(args: argparse.Namespace) -> int:
    """Execute backup command."""
    from .backup import execute_backup

    return execute_backup(args)


def cmd_run(args: argparse.Namespace) -> int:
    """Execute run command."""
    from .run import execute_run

    return execute_run(args)


def cmd_prune(args: argparse.Namespace) -> int:
    """Execute prune command."""
    from .prune import execute_prune

    return execute_prune(args)


def cmd_list(args: argparse.Namespace) -> int:
    """Execute list command."""
    from .list_cmd import execute_list

    return execute_list(args)


def cmd_status(args: argparse.Namespace) -> int:
    """Execute status command."""
    from .status import execute_status

    return execute_status(args)


def cmd_config(args: argparse.Namespace) -> int:
    """Execute config command."""
    from .config_cmd import execute_config

    return execute_config(args)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for rsync-backup-ng CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    if is_legacy_mode(argv):
        argv = legacy_to_subcommand(argv)

    parser = create_subcommand_parser()
    args = parser.parse_args(argv)

    try:
        return run_subcommand(args)
    except KeyboardInterrupt:
        # Marker and partial snapshot stay behind for the next run to resume
        print("SIGINT caught.", file=sys.stderr)
        return 1
