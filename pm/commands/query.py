"""
pm query command (-Q).

List plugins in session or show details of selected ones.
"""

import sys
from typing import Any

from gitpack.plugin.manager import PackManager
from pm.commands.context import create_manager


def query_command(args: Any) -> int:
    """
    Execute query command.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    manager = create_manager(args)

    if args.info:
        if not args.targets:
            print("Error: No targets specified", file=sys.stderr)
            print("Usage: pm -Qi <name>", file=sys.stderr)
            return 1
        for name in args.targets:
            print_info(manager, name)
        return 0

    snap = manager.snap_get()
    for spec in manager.get_session():
        print(f"{spec.name} {snap.get(spec.name, '(not installed)')}")
    return 0


def print_info(manager: PackManager, name: str) -> None:
    """Print declared fields and available refs of a plugin."""
    spec = next((s for s in manager.get_session() if s.name == name), None)
    path, present = manager.plugin_path(name)

    print(f"Name     : {name}")
    print(f"Path     : {path}")
    if spec is not None:
        print(f"Source   : {spec.source or '<None>'}")
        print(f"Checkout : {spec.checkout or '<default branch>'}")
        print(f"Monitor  : {spec.monitor or '<default branch>'}")
        print(f"Depends  : {', '.join(spec.depends) or '<None>'}")
    else:
        print("Session  : <not added>")

    if not present:
        print("Installed: no")
        return

    refs = manager.list_refs(name)
    print(f"Branches : {' '.join(refs['branches']) or '<None>'}")
    print(f"Tags     : {' '.join(refs['tags']) or '<None>'}")
    print()
