"""
gitpack Configuration System - TOML-based configuration management.

This module provides:
- Settings schema and validation
- Loading settings and declared plugins from a config file
- Editing declared plugins with comment preservation

Example config file:
    [gitpack]
    silent = false

    [gitpack.job]
    n_threads = 4
    timeout = 60

    [[plugins]]
    source = "user/repo"
    checkout = "v1.0"
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomlkit

from gitpack.config.schema import (
    ConfigField,
    ValidationError,
    generate_default_config,
    validate_config,
)
from gitpack.config.toml_handler import (
    generate_toml_from_schema,
    load_document,
    read_toml,
    write_toml,
)
from gitpack.plugin.spec import ValidationError as SpecValidationError
from gitpack.plugin.spec import normalize_spec

# Default config file path
DEFAULT_CONFIG_FILE = Path("config/gitpack.toml")

SECTION = "gitpack"

SCHEMA: dict[str, ConfigField] = {
    "job.n_threads": ConfigField(
        int, 0, "Maximum number of parallel jobs (0 means 80% of CPU cores)", min=0
    ),
    "job.timeout": ConfigField(float, 30.0, "Timeout of a single job in seconds", min=0.1),
    "path.package": ConfigField(str, "~/.local/share/gitpack/site", "Package root directory"),
    "path.snapshot": ConfigField(str, "~/.config/gitpack/snapshot.toml", "Default snapshot file"),
    "path.log": ConfigField(str, "~/.local/state/gitpack/update.log", "Update log file"),
    "silent": ConfigField(bool, False, "Whether to suppress non-error notifications"),
}


@dataclass
class Settings:
    """
    Validated gitpack settings.

    Attributes:
        n_threads: Maximum number of parallel jobs (None for default)
        timeout: Timeout of a single job in seconds
        package_path: Package root directory
        snapshot_path: Default snapshot file
        log_path: Update log file
        silent: Whether to suppress non-error notifications
    """

    n_threads: int | None
    timeout: float
    package_path: Path
    snapshot_path: Path
    log_path: Path
    silent: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        """
        Create settings from a (possibly partial) `[gitpack]` table.

        Raises:
            ValidationError: If some field is unknown or has wrong type
        """
        values = validate_config(data, SCHEMA)
        return cls(
            n_threads=values["job.n_threads"] or None,
            timeout=values["job.timeout"],
            package_path=Path(values["path.package"]).expanduser(),
            snapshot_path=Path(values["path.snapshot"]).expanduser(),
            log_path=Path(values["path.log"]).expanduser(),
            silent=values["silent"],
        )

    @property
    def pack_path(self) -> Path:
        """Directory containing `opt/` and `start/` plugin subtrees."""
        return self.package_path / "pack" / "deps"


def load_config_file(config_file: Path | None = None) -> tuple[Settings, list[Any]]:
    """
    Load settings and declared plugins.

    Args:
        config_file: Path to config file (default: config/gitpack.toml).
            Absent file means default settings and no plugins.

    Returns:
        Tuple of (settings, plugin entries)

    Raises:
        ValidationError: If settings or plugin array are malformed
        TOMLError: If file cannot be parsed
    """
    config_file = config_file or DEFAULT_CONFIG_FILE
    data = read_toml(config_file) if config_file.exists() else {}

    section = data.get(SECTION, {})
    if not isinstance(section, dict):
        raise ValidationError(f"'{SECTION}' should be a table")
    settings = Settings.from_dict(section)

    plugins = data.get("plugins", [])
    if not isinstance(plugins, list):
        raise ValidationError("'plugins' should be an array")
    return settings, plugins


def _entry_name(entry: Any) -> str | None:
    try:
        return normalize_spec(entry)[-1].name
    except SpecValidationError:
        return None


def add_plugin_entry(config_file: Path, entry: str | dict[str, Any]) -> None:
    """
    Declare plugin in config file. Replaces an entry of the same plugin.

    Missing file is created with default settings.
    """
    if not config_file.exists():
        content = generate_toml_from_schema(SECTION, SCHEMA, generate_default_config(SCHEMA))
        doc = tomlkit.parse(content)
    else:
        doc = load_document(config_file)

    if isinstance(entry, str):
        entry = {"source" if "/" in entry else "name": entry}
    name = _entry_name(entry)

    table = tomlkit.table()
    table.update(entry)

    new_plugins, replaced = tomlkit.aot(), False
    for existing in doc.get("plugins", []):
        if not replaced and _entry_name(existing.unwrap()) == name:
            new_plugins.append(table)
            replaced = True
        else:
            new_plugins.append(existing)
    if not replaced:
        new_plugins.append(table)
    doc["plugins"] = new_plugins

    write_toml(config_file, doc)


def remove_plugin_entry(config_file: Path, name: str) -> bool:
    """
    Remove plugin declaration from config file.

    Returns:
        Whether an entry was removed
    """
    if not config_file.exists():
        return False
    doc = load_document(config_file)
    plugins = doc.get("plugins")
    if plugins is None:
        return False

    kept = [t for t in plugins if _entry_name(t.unwrap()) != name]
    if len(kept) == len(plugins):
        return False

    new_plugins = tomlkit.aot()
    for t in kept:
        new_plugins.append(t)
    doc["plugins"] = new_plugins
    write_toml(config_file, doc)
    return True


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "SCHEMA",
    "Settings",
    "load_config_file",
    "add_plugin_entry",
    "remove_plugin_entry",
]
