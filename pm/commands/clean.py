"""
pm clean command (-C).

Delete plugin directories which are not declared.
"""

from typing import Any

from pm.commands.context import create_manager


def clean_command(args: Any) -> int:
    manager = create_manager(args)
    deleted = manager.clean(force=args.noconfirm)
    if args.verbose:
        print(f"\nDeleted: {len(deleted)}")
    return 0
