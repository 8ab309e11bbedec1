"""
Session Registry.

This module stores plugin specs registered during the current session.

Specs registered several times under the same name are merged: later
non-empty fields override earlier ones, hooks are merged per event and
`depends` lists are concatenated. Plugin keeps position of its first
registration.
"""

import threading

from gitpack.plugin.spec import PluginSpec


def merge_specs(base: PluginSpec, new: PluginSpec) -> PluginSpec:
    """
    Merge two specs of the same plugin, preferring `new`.

    Args:
        base: Earlier registered spec
        new: Later registered spec

    Returns:
        New merged spec
    """
    depends = list(base.depends)
    depends.extend(d for d in new.depends if d not in depends)
    return PluginSpec(
        name=new.name,
        source=new.source if new.source is not None else base.source,
        checkout=new.checkout if new.checkout is not None else base.checkout,
        monitor=new.monitor if new.monitor is not None else base.monitor,
        depends=depends,
        hooks=base.hooks.merged(new.hooks),
        path=new.path if new.path is not None else base.path,
    )


class SessionRegistry:
    """
    Ordered, deduplicated collection of plugin specs.

    All returned specs are copies, so mutating them does not affect the
    registry.
    """

    def __init__(self):
        self._specs: dict[str, PluginSpec] = {}
        self._lock = threading.Lock()

    def register(self, spec: PluginSpec) -> None:
        """Register spec, merging it with an existing one of the same name."""
        with self._lock:
            existing = self._specs.get(spec.name)
            if existing is None:
                self._specs[spec.name] = spec.copy()
            else:
                self._specs[spec.name] = merge_specs(existing, spec)

    def unregister(self, name: str) -> PluginSpec | None:
        """Remove spec from registry. Returns removed spec, if any."""
        with self._lock:
            return self._specs.pop(name, None)

    def get(self, name: str) -> PluginSpec | None:
        with self._lock:
            spec = self._specs.get(name)
            return None if spec is None else spec.copy()

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._specs

    def __len__(self) -> int:
        with self._lock:
            return len(self._specs)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._specs)

    def specs(self) -> list[PluginSpec]:
        """Copies of registered specs in order of first registration."""
        with self._lock:
            return [spec.copy() for spec in self._specs.values()]

    def clear(self) -> None:
        with self._lock:
            self._specs.clear()
