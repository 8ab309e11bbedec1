"""
pm install command (-S).

Install plugins from git repositories and declare them in config file.
"""

import sys
from typing import Any

from gitpack.config import add_plugin_entry
from gitpack.plugin.spec import normalize_spec
from pm.commands.context import config_path, create_manager


def install_command(args: Any) -> int:
    """
    Execute install command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if not args.targets:
        print("Error: No targets specified", file=sys.stderr)
        print("Usage: pm -S <source>[@ref]", file=sys.stderr)
        return 1

    manager = create_manager(args)

    success_count = 0
    fail_count = 0

    for target in args.targets:
        entry = parse_target(target)
        name = normalize_spec(entry)[-1].name

        manager.add(entry)
        _, present = manager.plugin_path(name)
        if not present:
            print(f"Failed to install {name}", file=sys.stderr)
            fail_count += 1
            continue

        add_plugin_entry(config_path(args), entry)
        success_count += 1

    # Summary
    if args.verbose:
        print(f"\nInstalled: {success_count}, Failed: {fail_count}")

    return 0 if fail_count == 0 else 1


def parse_target(target: str) -> dict[str, str]:
    """
    Parse plugin target.

    Args:
        target: Plugin source or name, optionally with `@<ref>` to check out

    Returns:
        Plugin spec table
    """
    key = "source" if "/" in target else "name"

    # Only the last path component may carry a ref ("git@host:..." is a source)
    head, sep, last = target.rpartition("/")
    if "@" in last:
        last, ref = last.split("@", 1)
        return {key: f"{head}{sep}{last}", "checkout": ref}
    return {key: target}
