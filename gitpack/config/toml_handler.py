"""
TOML File I/O Handler.

This module provides TOML parsing and writing with comment preservation.

Key features:
- Parse TOML files using tomllib (Python 3.11+)
- Edit TOML files using tomlkit (preserves comments and formatting)
- Generate TOML from schema with descriptive comments
"""

import tomllib
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import TOMLKitError

from gitpack.config.schema import ConfigField


class TOMLError(Exception):
    """Base exception for TOML-related errors."""

    pass


def read_toml(file_path: Path) -> dict[str, Any]:
    """
    Read and parse a TOML file.

    Args:
        file_path: Path to the TOML file

    Returns:
        Parsed TOML data as dictionary

    Raises:
        TOMLError: If file cannot be read or parsed
    """
    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise TOMLError(f"TOML file not found: {file_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise TOMLError(f"Failed to parse TOML file {file_path}: {e}") from e
    except OSError as e:
        raise TOMLError(f"Failed to read TOML file {file_path}: {e}") from e


def write_toml(file_path: Path, data: dict[str, Any]) -> None:
    """
    Write data to a TOML file using tomlkit (preserves formatting).

    Args:
        file_path: Path to the TOML file
        data: Data to write (plain dictionary or tomlkit document)

    Raises:
        TOMLError: If file cannot be written
    """
    try:
        # Ensure parent directory exists
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w", encoding="utf-8") as f:
            tomlkit.dump(data, f)
    except (OSError, TypeError, ValueError) as e:
        raise TOMLError(f"Failed to write TOML file {file_path}: {e}") from e


def load_document(file_path: Path) -> tomlkit.TOMLDocument:
    """
    Load TOML file for editing.

    Returns:
        Parsed document, or empty document if file does not exist

    Raises:
        TOMLError: If file cannot be read or parsed
    """
    if not file_path.exists():
        return tomlkit.document()
    try:
        return tomlkit.parse(file_path.read_text(encoding="utf-8"))
    except TOMLKitError as e:
        raise TOMLError(f"Failed to parse TOML file {file_path}: {e}") from e
    except OSError as e:
        raise TOMLError(f"Failed to read TOML file {file_path}: {e}") from e


def generate_toml_from_schema(
    section: str, schema: dict[str, ConfigField], config_data: dict[str, Any]
) -> str:
    """
    Generate TOML content from schema with descriptive comments.

    Dotted field names become nested tables inside `section`.

    Args:
        section: Name of top-level table
        schema: Schema dictionary (dotted field name -> ConfigField)
        config_data: Configuration data (dotted field name -> value)

    Returns:
        TOML string with comments
    """
    doc = tomlkit.document()
    doc.add(tomlkit.comment(f"Configuration for {section}"))
    doc.add(tomlkit.nl())

    section_table = tomlkit.table()
    subtables: dict[str, Any] = {}

    # Plain keys should come before nested tables
    for field_name in sorted(schema, key=lambda name: "." in name):
        field = schema[field_name]
        if "." in field_name:
            table_name, key = field_name.split(".", 1)
            target = subtables.setdefault(table_name, tomlkit.table())
        else:
            key, target = field_name, section_table

        if field.description:
            target.add(tomlkit.comment(field.description))

        constraints = []
        if field.min is not None:
            constraints.append(f"min: {field.min}")
        if field.max is not None:
            constraints.append(f"max: {field.max}")
        if field.choices is not None:
            constraints.append(f"choices: {field.choices}")
        if constraints:
            target.add(tomlkit.comment(f"Constraints: {', '.join(constraints)}"))

        target.add(key, config_data.get(field_name, field.default))

    for table_name, table in subtables.items():
        section_table.add(table_name, table)

    doc.add(section, section_table)
    return tomlkit.dumps(doc)
