"""
Plugin Lifecycle Hooks.

This module provides lifecycle hook slots and their execution.

Key features:
- Fixed set of lifecycle events (create, change, delete; pre and post)
- `pre_install`/`post_install` accepted as aliases of create events
- Hook errors are logged as warnings and never abort a batch
"""

from collections.abc import Callable
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

from gitpack.core.notify import Notifier


class HookError(Exception):
    """Base exception for hook-related errors."""

    pass


class HookEvent(Enum):
    """Lifecycle event enumeration."""

    PRE_CREATE = "pre_create"
    POST_CREATE = "post_create"
    PRE_CHANGE = "pre_change"
    POST_CHANGE = "post_change"
    PRE_DELETE = "pre_delete"
    POST_DELETE = "post_delete"


HOOK_ALIASES = {
    "pre_install": HookEvent.PRE_CREATE,
    "post_install": HookEvent.POST_CREATE,
}


def parse_hook_event(name: str) -> HookEvent:
    """
    Get lifecycle event from its name.

    Raises:
        HookError: If name is not a known lifecycle event
    """
    if name in HOOK_ALIASES:
        return HOOK_ALIASES[name]
    try:
        return HookEvent(name)
    except ValueError as e:
        known = [event.value for event in HookEvent] + list(HOOK_ALIASES)
        raise HookError(f"Unknown hook '{name}'. Expected one of: {', '.join(known)}") from e


@dataclass
class Hooks:
    """
    Optional callbacks, one slot per lifecycle event.

    Every callback takes no arguments.
    """

    pre_create: Callable[[], Any] | None = None
    post_create: Callable[[], Any] | None = None
    pre_change: Callable[[], Any] | None = None
    post_change: Callable[[], Any] | None = None
    pre_delete: Callable[[], Any] | None = None
    post_delete: Callable[[], Any] | None = None

    def get(self, event: HookEvent) -> Callable[[], Any] | None:
        return getattr(self, event.value)

    def set(self, event: HookEvent, callback: Callable[[], Any] | None) -> None:
        setattr(self, event.value, callback)

    def merged(self, other: "Hooks") -> "Hooks":
        """Return new hooks where slots set in `other` take precedence."""
        res = Hooks()
        for f in fields(self):
            setattr(res, f.name, getattr(other, f.name) or getattr(self, f.name))
        return res

    def to_dict(self) -> dict[str, Callable[[], Any]]:
        """Return only present hooks."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name)}


def execute_hook(
    hooks: Hooks, event: HookEvent, plugin_name: str, notifier: Notifier | None = None
) -> bool:
    """
    Execute a lifecycle hook for a plugin.

    Args:
        hooks: Plugin hooks
        event: Lifecycle event to execute
        plugin_name: Name of plugin (for warnings)
        notifier: Channel for hook errors (default: `gitpack` logger)

    Returns:
        False if hook raised an error, True otherwise
    """
    callback = hooks.get(event)
    if callback is None:
        return True

    try:
        callback()
    except Exception as e:
        notifier = notifier or Notifier()
        notifier.warning(f"Error executing {event.value} hook in `{plugin_name}`:\n{e}")
        return False
    return True
