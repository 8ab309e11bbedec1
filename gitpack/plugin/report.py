"""
Update Feedback.

This module converts reconciliation results into a human-reviewable report.

Key features:
- Entries sorted by importance: errors, updates, monitor changes, no changes
- Confirm document with one `+++ <name> +++` marker line per pending update
- Append-only update log with timestamped titles
- Editor-based confirmation surface
"""

import logging
import os
import re
import shlex
import subprocess
import tempfile
from pathlib import Path

from gitpack.core.utils import get_timestamp
from gitpack.plugin.reconcile import Plug

logger = logging.getLogger(__name__)

UPDATE_MARKER = re.compile(r"^\+\+\+ (.*) \+\+\+$")

CONFIRM_UPDATE_HEADER = """\
This is a confirmation report before an update.

Lines `+++ <plugin_name> +++` show plugins with pending updates.
Remove such line to not update that plugin.
Save the file and exit to apply the remaining updates.
Exit without saving to cancel update."""

CONFIRM_CLEAN_HEADER = """\
# This is a confirmation report before a clean.
#
# Lines below are paths of plugin directories to be deleted.
# Remove such line to keep that directory.
# Save the file and exit to delete the remaining directories.
# Exit without saving to cancel clean."""

# Groups in order of importance
GROUP_ERROR, GROUP_UPDATE, GROUP_MONITOR, GROUP_SAME = range(4)


def get_group(p: Plug) -> int:
    if p.job.failed:
        return GROUP_ERROR
    if p.head != p.checkout_to:
        return GROUP_UPDATE
    if p.has_monitor_updates:
        return GROUP_MONITOR
    return GROUP_SAME


def format_entry(p: Plug) -> str:
    """Report entry of a single plugin."""
    err = p.error
    if err != "":
        return f"!!! {p.name} !!!\n\n" + _indent(err)

    group = get_group(p)
    title = f"+++ {p.name} +++" if group == GROUP_UPDATE else f"--- {p.name} ---"
    parts = [title, ""]

    source = p.spec.source or "<None>"
    if group == GROUP_UPDATE:
        parts.append(f"Path:         {p.path}")
        parts.append(f"Source:       {source}")
        parts.append(f"State before: {p.head}")
        parts.append(f"State after:  {p.checkout_to} ({p.spec.checkout})")
    else:
        parts.append(f"Path:   {p.path}")
        parts.append(f"Source: {source}")
        parts.append(f"State:  {p.checkout_to} ({p.spec.checkout})")

    # Show logs only if they are present
    if p.checkout_log != "":
        parts.append(f"\nPending updates from `{p.spec.checkout}`:")
        parts.append(p.checkout_log)
    if p.monitor_log != "":
        parts.append(f"\nMonitor updates from `{p.spec.monitor}`:")
        parts.append(p.monitor_log)

    return "\n".join(parts)


def build_report(plugs: list[Plug]) -> str:
    """Sorted report of all plugins. Order within a group is preserved."""
    entries = [format_entry(p) for p in sorted(plugs, key=get_group)]
    return "\n\n".join(entries)


def build_confirm_document(plugs: list[Plug]) -> str:
    return CONFIRM_UPDATE_HEADER + "\n\n" + build_report(plugs) + "\n"


def parse_confirmed_names(text: str) -> list[str]:
    """Names of plugins which kept their update marker line."""
    res = []
    for line in text.splitlines():
        match = UPDATE_MARKER.match(line)
        if match is not None:
            res.append(match.group(1))
    return res


def build_clean_document(paths: list[Path]) -> str:
    return CONFIRM_CLEAN_HEADER + "\n\n" + "\n".join(str(p) for p in paths) + "\n"


def parse_confirmed_paths(text: str, paths: list[Path]) -> list[Path]:
    """Paths from `paths` which are still listed in confirmed document."""
    kept = {line.strip() for line in text.splitlines()}
    return [p for p in paths if str(p) in kept]


def append_update_log(log_path: Path, plugs: list[Plug]) -> None:
    """
    Append timestamped report to update log.

    Args:
        log_path: Path to log file (created with parent directories)
        plugs: Reconciled plugins
    """
    title = f"========== Update {get_timestamp()} =========="
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with open(log_path, "a", encoding="utf-8") as f:
        f.write(title + "\n" + build_report(plugs) + "\n\n")
    logger.debug(f"Appended update report to {log_path}")


def editor_confirm(text: str) -> str | None:
    """
    Let user edit `text` in `$VISUAL`/`$EDITOR`.

    Returns:
        Edited text, or None if editor failed or file was not saved
    """
    editor = os.environ.get("VISUAL") or os.environ.get("EDITOR") or "vi"

    with tempfile.NamedTemporaryFile(
        "w", suffix=".gitpack", delete=False, encoding="utf-8"
    ) as f:
        f.write(text)
        path = Path(f.name)

    try:
        mtime = path.stat().st_mtime_ns
        try:
            result = subprocess.run([*shlex.split(editor), str(path)])
        except OSError as e:
            logger.error(f"(gitpack) Could not start editor `{editor}`: {e}")
            return None
        if result.returncode != 0 or path.stat().st_mtime_ns == mtime:
            return None
        return path.read_text(encoding="utf-8")
    finally:
        path.unlink(missing_ok=True)


def _indent(text: str) -> str:
    return "\n".join("  " + line for line in text.split("\n"))
