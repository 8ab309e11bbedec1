"""
pm upgrade command (-U).

Update all or selected plugins, with confirmation unless `--noconfirm`.
"""

from typing import Any

from pm.commands.context import create_manager


def upgrade_command(args: Any) -> int:
    """
    Execute upgrade command.

    Returns:
        Exit code (non-zero if some plugin failed to update)
    """
    manager = create_manager(args)
    plugs = manager.update(
        args.targets or None,
        force=args.noconfirm,
        offline=args.offline,
    )
    return 1 if any(p.job.failed for p in plugs) else 0
