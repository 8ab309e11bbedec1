"""
pm CLI - gitpack Plugin Manager.

Pacman-style interface for managing git-backed plugins.

Usage:
    pm -S <source>[@ref]         Install plugin and declare it in config
    pm -R <name>                 Remove plugin
    pm -U [name ...]             Update plugin(s)
    pm -Q                        List plugins in session
    pm -Qi <name>                Show plugin info
    pm -C                        Delete plugins not in session
    pm --snap-save [path]        Save snapshot of installed commits
    pm --snap-load [path]        Check out commits from snapshot
"""

import argparse
import logging
import sys
from pathlib import Path

from gitpack.config.schema import ValidationError as ConfigValidationError
from gitpack.config.toml_handler import TOMLError
from gitpack.plugin.git_ops import GitError
from gitpack.plugin.manager import PackError
from gitpack.plugin.spec import ValidationError as SpecValidationError


class PMError(Exception):
    """Base exception for pm errors."""

    pass


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with pacman-style flags."""
    parser = argparse.ArgumentParser(
        prog="pm",
        description="gitpack Plugin Manager - Pacman-style plugin manager",
        add_help=False,
    )

    # Operation flags (mutually exclusive)
    ops = parser.add_mutually_exclusive_group()
    ops.add_argument("-S", "--sync", action="store_true", help="Install plugin")
    ops.add_argument("-R", "--remove", action="store_true", help="Remove plugin")
    ops.add_argument("-U", "--upgrade", action="store_true", help="Update plugin(s)")
    ops.add_argument("-Q", "--query", action="store_true", help="Query session")
    ops.add_argument("-C", "--clean", action="store_true", help="Delete orphaned plugins")
    ops.add_argument("--snap-save", action="store_true", help="Save snapshot")
    ops.add_argument("--snap-load", action="store_true", help="Load snapshot")
    ops.add_argument("-h", "--help", action="store_true", help="Show help")

    # Query sub-flags
    parser.add_argument("-i", "--info", action="store_true", help="Show info (-Qi)")

    # Common options
    parser.add_argument("--keep", action="store_true", help="Keep plugin directory on -R")
    parser.add_argument(
        "--noconfirm", action="store_true", help="Skip confirmation prompts"
    )
    parser.add_argument("--offline", action="store_true", help="Do not download on -U")
    parser.add_argument("--config", type=Path, default=None, help="Config file path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    # Positional arguments
    parser.add_argument("targets", nargs="*", help="Plugin sources, names or paths")

    return parser


def print_help():
    """Print help message."""
    help_text = """
pm - gitpack Plugin Manager

Usage:
    pm -S <source>[@ref]         Install plugin and declare it in config
    pm -R <name>                 Remove plugin
    pm -U [name ...]             Update plugin(s)
    pm -Q                        List plugins in session
    pm -Qi <name>                Show plugin info
    pm -C                        Delete plugins not in session
    pm --snap-save [path]        Save snapshot of installed commits
    pm --snap-load [path]        Check out commits from snapshot

Options:
    --keep                       Keep plugin directory on -R
    --noconfirm                  Skip confirmation prompts
    --offline                    Do not download updates on -U
    --config <path>              Config file (default: config/gitpack.toml)
    -v, --verbose                Verbose output
    -h, --help                   Show this help
"""
    print(help_text.strip())


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for pm CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        # Show help
        if args.help or not any(
            (
                args.sync,
                args.remove,
                args.upgrade,
                args.query,
                args.clean,
                args.snap_save,
                args.snap_load,
            )
        ):
            print_help()
            return 0

        # Route to appropriate command
        if args.sync:
            # -S: Install
            from pm.commands.install import install_command

            return install_command(args)

        elif args.remove:
            # -R: Remove
            from pm.commands.remove import remove_command

            return remove_command(args)

        elif args.upgrade:
            # -U: Update
            from pm.commands.upgrade import upgrade_command

            return upgrade_command(args)

        elif args.query:
            # -Q: Query
            from pm.commands.query import query_command

            return query_command(args)

        elif args.clean:
            # -C: Clean
            from pm.commands.clean import clean_command

            return clean_command(args)

        else:
            from pm.commands.snapshot import snapshot_command

            return snapshot_command(args)

    except (
        PMError,
        PackError,
        GitError,
        TOMLError,
        ConfigValidationError,
        SpecValidationError,
    ) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
