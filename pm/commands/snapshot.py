"""
pm snapshot commands (--snap-save, --snap-load).
"""

from pathlib import Path
from typing import Any

from pm.commands.context import create_manager


def snapshot_command(args: Any) -> int:
    """
    Save or load snapshot.

    Optional first target is snapshot file path (default: from config).
    """
    manager = create_manager(args)
    path = Path(args.targets[0]) if args.targets else None

    if args.snap_save:
        path = manager.snap_save(path)
        print(path)
    else:
        manager.snap_load(path)
    return 0
