"""
Utils Module - Small helpers shared by plugin operations.
"""

from datetime import datetime
from pathlib import Path


def get_timestamp() -> str:
    """Current local time in 'YYYY-mm-dd HH:MM:SS' format."""
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def list_subdirs(path: Path) -> list[Path]:
    """Sorted child directories of `path` (empty if `path` is absent)."""
    if not path.is_dir():
        return []
    return sorted(p for p in path.iterdir() if p.is_dir())
