"""
pm remove command (-R).

Remove plugins from session and config file.
"""

import sys
from typing import Any

from gitpack.config import remove_plugin_entry
from pm.commands.context import config_path, create_manager


def remove_command(args: Any) -> int:
    """
    Execute remove command.

    Plugin directory is deleted unless `--keep` is given.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if not args.targets:
        print("Error: No targets specified", file=sys.stderr)
        print("Usage: pm -R <name>", file=sys.stderr)
        return 1

    manager = create_manager(args)
    for name in args.targets:
        manager.remove(name, delete_dir=not args.keep)
        if remove_plugin_entry(config_path(args), name) and args.verbose:
            print(f"Removed `{name}` from {config_path(args)}")

    return 0
