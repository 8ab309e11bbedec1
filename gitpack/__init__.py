"""
gitpack - Git-backed plugin manager.

This is the main package that exports the public API of gitpack.
"""

__version__ = "0.1.0"

from gitpack.config import Settings, load_config_file
from gitpack.plugin.manager import PackError, PackManager
from gitpack.plugin.spec import PluginSpec, ValidationError, normalize_spec

__all__ = [
    "__version__",
    "PackError",
    "PackManager",
    "PluginSpec",
    "Settings",
    "ValidationError",
    "load_config_file",
    "normalize_spec",
]
