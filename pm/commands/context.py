"""
Shared setup of pm commands.

Every command works on a session made of plugins declared in config file.
"""

from pathlib import Path
from typing import Any

from gitpack.config import DEFAULT_CONFIG_FILE, load_config_file
from gitpack.plugin.manager import PackManager


def config_path(args: Any) -> Path:
    return args.config or DEFAULT_CONFIG_FILE


def create_manager(args: Any) -> PackManager:
    """
    Create manager and add all plugins declared in config file.

    Declared plugins are added one by one, so a broken declaration is
    reported without preventing others from being added.
    """
    settings, plugins = load_config_file(config_path(args))
    manager = PackManager(settings)

    for entry in plugins:
        manager.now(lambda entry=entry: manager.add(entry))
    manager.run_later()

    return manager
