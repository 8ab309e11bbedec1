"""
Plugin activation.

Activated plugin directories form the load path of the consuming runtime.
With `use_sys_path`, directories are also made importable by mirroring them
into `sys.path`.
"""

import sys
from pathlib import Path


class RuntimePath:
    """Ordered set of active plugin directories."""

    def __init__(self, use_sys_path: bool = False):
        self.use_sys_path = use_sys_path
        self._paths: list[Path] = []

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def activate(self, path: Path) -> None:
        """Make plugin directory active. Does nothing if it already is."""
        if path in self._paths:
            return
        self._paths.append(path)
        if self.use_sys_path and str(path) not in sys.path:
            sys.path.append(str(path))

    def deactivate(self, path: Path) -> None:
        if path not in self._paths:
            return
        self._paths.remove(path)
        if self.use_sys_path and str(path) in sys.path:
            sys.path.remove(str(path))

    def is_active(self, path: Path) -> bool:
        return path in self._paths
