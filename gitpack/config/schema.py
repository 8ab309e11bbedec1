"""
Configuration Schema System.

This module provides schema declaration and validation for gitpack settings.

Key features:
- Type-safe field definitions with constraints
- Dotted field names mapped to nested TOML tables ("job.timeout")
- Absent fields take their defaults, unknown fields are rejected
"""

from dataclasses import dataclass
from typing import Any


class SchemaError(Exception):
    """Base exception for schema-related errors."""

    pass


class ValidationError(SchemaError):
    """Raised when value validation fails."""

    pass


def _matches_type(value: Any, type_: type) -> bool:
    # `bool` is a subclass of `int`, but `true` is not a number of threads
    if isinstance(value, bool) and type_ is not bool:
        return False
    if type_ is float:
        return isinstance(value, (int, float))
    return isinstance(value, type_)


@dataclass
class ConfigField:
    """
    Represents a configuration field with type and constraints.

    Attributes:
        type_: The expected type of the field value
        default: Default value for the field
        description: Human-readable description
        min: Minimum value (for numbers) or minimum length (for strings)
        max: Maximum value (for numbers) or maximum length (for strings)
        choices: List of allowed values (optional)
    """

    type_: type
    default: Any
    description: str = ""
    min: Any = None
    max: Any = None
    choices: list[Any] | None = None

    def __post_init__(self):
        """Validate field definition."""
        if not _matches_type(self.default, self.type_):
            raise SchemaError(
                f"Default value {self.default!r} does not match type {self.type_.__name__}"
            )

        if (self.min is not None or self.max is not None) and self.type_ not in (
            int,
            float,
            str,
        ):
            raise SchemaError(
                f"min/max constraints only supported for int, float, str. Got {self.type_.__name__}"
            )

        if self.choices is not None and self.default not in self.choices:
            raise SchemaError(
                f"Default value {self.default!r} not in choices {self.choices}"
            )

    def validate(self, value: Any) -> Any:
        """
        Validate a value against this field's constraints.

        Args:
            value: The value to validate

        Returns:
            Value converted to field's type (ints are accepted for floats)

        Raises:
            ValidationError: If validation fails
        """
        if not _matches_type(value, self.type_):
            raise ValidationError(
                f"Expected type {self.type_.__name__}, got {type(value).__name__}"
            )
        if self.type_ is float:
            value = float(value)

        if self.choices is not None and value not in self.choices:
            raise ValidationError(
                f"Value {value!r} not in allowed choices {self.choices}"
            )

        if self.type_ in (int, float):
            if self.min is not None and value < self.min:
                raise ValidationError(f"Value {value} is less than minimum {self.min}")
            if self.max is not None and value > self.max:
                raise ValidationError(
                    f"Value {value} is greater than maximum {self.max}"
                )

        if self.type_ is str:
            if self.min is not None and len(value) < self.min:
                raise ValidationError(
                    f"String length {len(value)} is less than minimum {self.min}"
                )
            if self.max is not None and len(value) > self.max:
                raise ValidationError(
                    f"String length {len(value)} is greater than maximum {self.max}"
                )

        return value


def flatten_table(table: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """
    Flatten nested tables into dotted keys.

    Example:
        flatten_table({"job": {"timeout": 10}}) == {"job.timeout": 10}
    """
    res = {}
    for key, value in table.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, dict):
            res.update(flatten_table(value, prefix=f"{full_key}."))
        else:
            res[full_key] = value
    return res


def validate_config(config: dict[str, Any], schema: dict[str, ConfigField]) -> dict[str, Any]:
    """
    Validate a configuration dictionary against a schema.

    Args:
        config: The configuration dictionary to validate (nested or dotted)
        schema: The schema dictionary (dotted field name -> ConfigField)

    Returns:
        Dictionary with a validated value for every schema field

    Raises:
        ValidationError: If validation fails
    """
    config = flatten_table(config)

    for key in config:
        if key not in schema:
            raise ValidationError(f"Unknown configuration field: {key}")

    res = {}
    for field_name, field in schema.items():
        if field_name not in config:
            res[field_name] = field.default
            continue

        try:
            res[field_name] = field.validate(config[field_name])
        except ValidationError as e:
            raise ValidationError(f"Field '{field_name}': {e}") from e

    return res


def generate_default_config(schema: dict[str, ConfigField]) -> dict[str, Any]:
    """Generate a configuration with default values for all fields."""
    return {field_name: field.default for field_name, field in schema.items()}
