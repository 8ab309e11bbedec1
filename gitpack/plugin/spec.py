"""
Plugin Specification.

This module provides parsing and validation of plugin specifications.

Key features:
- String shorthand: "user/repo" (source) or "repo" (name)
- "user/repo" sources are expanded to full GitHub URIs
- Name is inferred from source when absent
- Nested `depends` are flattened, dependencies before dependents
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from gitpack.plugin.hooks import HookError, Hooks, parse_hook_event


class SpecError(Exception):
    """Base exception for specification-related errors."""

    pass


class ValidationError(SpecError):
    """Raised when specification validation fails."""

    pass


USER_REPO_PATTERN = re.compile(r"^[\w-]+/[\w.-]+$")

SPEC_FIELDS = {"source", "name", "checkout", "monitor", "track", "depends", "hooks"}


@dataclass
class PluginSpec:
    """
    Declared configuration of one plugin.

    Attributes:
        name: Plugin name, also its directory basename (unique key)
        source: URI to install and fetch updates from
        checkout: Ref to reconcile working tree to (default: remote's default branch)
        monitor: Ref to watch for upstream changes (default: remote's default branch)
        depends: Names of plugins this one depends on
        hooks: Lifecycle callbacks
        path: Plugin directory, set once registered
    """

    name: str
    source: str | None = None
    checkout: str | None = None
    monitor: str | None = None
    depends: list[str] = field(default_factory=list)
    hooks: Hooks = field(default_factory=Hooks)
    path: Path | None = None

    def copy(self) -> "PluginSpec":
        """Copy which can be mutated without affecting this spec."""
        return PluginSpec(
            name=self.name,
            source=self.source,
            checkout=self.checkout,
            monitor=self.monitor,
            depends=list(self.depends),
            hooks=Hooks(**self.hooks.to_dict()),
            path=self.path,
        )

    def to_dict(self) -> dict[str, Any]:
        """Present fields as a table (callables included as is)."""
        res: dict[str, Any] = {"name": self.name}
        for key in ("source", "checkout", "monitor"):
            value = getattr(self, key)
            if value is not None:
                res[key] = value
        res["depends"] = list(self.depends)
        res["hooks"] = self.hooks.to_dict()
        if self.path is not None:
            res["path"] = str(self.path)
        return res


def normalize_spec(spec: "str | dict[str, Any] | PluginSpec") -> list[PluginSpec]:
    """
    Normalize a plugin specification.

    Args:
        spec: String shorthand, table with spec fields, or already
            normalized spec

    Returns:
        Flat list of specs: dependencies (recursively) first, `spec` last

    Raises:
        ValidationError: If specification is invalid
    """
    res: list[PluginSpec] = []
    _expand_spec(res, spec)
    return res


def _expand_spec(target: list[PluginSpec], spec: Any) -> None:
    if isinstance(spec, PluginSpec):
        _validate_normalized(spec)
        target.append(spec.copy())
        return

    if isinstance(spec, str):
        key = "source" if "/" in spec else "name"
        spec = {key: spec}

    if not isinstance(spec, dict):
        raise ValidationError(
            f"Plugin spec should be string or table, got {type(spec).__name__}"
        )

    unknown = set(spec) - SPEC_FIELDS
    if unknown:
        raise ValidationError(f"Unknown plugin spec field: {sorted(unknown)[0]}")

    source = spec.get("source")
    if source is not None and not isinstance(source, str):
        raise ValidationError("'source' in plugin spec should be string")
    name = spec.get("name")
    if name is not None and not isinstance(name, str):
        raise ValidationError("'name' in plugin spec should be string")
    if source is None and name is None:
        raise ValidationError("Plugin spec should have proper 'source' or 'name'")

    if source is not None and USER_REPO_PATTERN.match(source):
        source = f"https://github.com/{source}"

    if name is None:
        name = source.rstrip("/").rsplit("/", 1)[-1]
    _validate_name(name)

    checkout = _get_optional_str(spec, "checkout")
    monitor = _get_optional_str(spec, "monitor")
    track = _get_optional_str(spec, "track")
    if monitor is not None and track is not None and monitor != track:
        raise ValidationError("'monitor' and 'track' in plugin spec should not differ")
    monitor = monitor if monitor is not None else track

    hooks = _parse_hooks(spec.get("hooks"))

    depends = spec.get("depends", [])
    if not isinstance(depends, list):
        raise ValidationError("'depends' in plugin spec should be array")
    dep_names = []
    for dep in depends:
        n_before = len(target)
        _expand_spec(target, dep)
        # Last added spec is the direct dependency itself
        if len(target) > n_before:
            dep_names.append(target[-1].name)

    target.append(
        PluginSpec(
            name=name,
            source=source,
            checkout=checkout,
            monitor=monitor,
            depends=dep_names,
            hooks=hooks,
        )
    )


def _validate_name(name: str) -> None:
    if name == "":
        raise ValidationError("'name' in plugin spec should not be empty")
    if "/" in name:
        raise ValidationError("'name' in plugin spec should not contain '/'")


def _validate_normalized(spec: PluginSpec) -> None:
    if not isinstance(spec.name, str):
        raise ValidationError("'name' in plugin spec should be string")
    _validate_name(spec.name)
    for key in ("source", "checkout", "monitor"):
        value = getattr(spec, key)
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"'{key}' in plugin spec should be string")
    if not isinstance(spec.depends, list) or not all(isinstance(d, str) for d in spec.depends):
        raise ValidationError("'depends' in plugin spec should be array of names")
    for event_name, callback in spec.hooks.to_dict().items():
        if not callable(callback):
            raise ValidationError(f"'hooks.{event_name}' in plugin spec should be callable")


def _get_optional_str(spec: dict[str, Any], key: str) -> str | None:
    value = spec.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"'{key}' in plugin spec should be string")
    return value


def _parse_hooks(hooks: Any) -> Hooks:
    if hooks is None:
        return Hooks()
    if isinstance(hooks, Hooks):
        hooks = hooks.to_dict()
    if not isinstance(hooks, dict):
        raise ValidationError("'hooks' in plugin spec should be table")

    res = Hooks()
    for event_name, callback in hooks.items():
        try:
            event = parse_hook_event(event_name)
        except HookError as e:
            raise ValidationError(f"'hooks.{event_name}' in plugin spec: {e}") from e
        if not callable(callback):
            raise ValidationError(f"'hooks.{event_name}' in plugin spec should be callable")
        res.set(event, callback)
    return res
