"""
Plugin Manager.

This module provides the application context of gitpack.

Key features:
- Session of registered plugins with on-disk presence detection
- Install on add, update with confirmation or log, clean of orphans
- Snapshots of installed commits
- Two-stage execution of user callbacks
"""

import logging
import shutil
from collections.abc import Callable
from pathlib import Path
from typing import Any

from gitpack.config import Settings
from gitpack.config.toml_handler import read_toml, write_toml
from gitpack.core.notify import Notifier
from gitpack.core.runner import Job, ProcessRunner, stream_to_str
from gitpack.core.scheduler import TwoStageScheduler
from gitpack.core.utils import list_subdirs
from gitpack.plugin import git_ops
from gitpack.plugin.hooks import HookEvent, Hooks, execute_hook
from gitpack.plugin.reconcile import Plug, Reconciler
from gitpack.plugin.registry import SessionRegistry
from gitpack.plugin.report import (
    append_update_log,
    build_clean_document,
    build_confirm_document,
    editor_confirm,
    parse_confirmed_names,
    parse_confirmed_paths,
)
from gitpack.plugin.runtime import RuntimePath
from gitpack.plugin.spec import PluginSpec, normalize_spec

logger = logging.getLogger(__name__)


class PackError(Exception):
    """Base exception for plugin manager errors."""

    pass


class PackManager:
    """
    Plugin manager bound to one package root.

    Example:
        manager = PackManager(settings)
        manager.add("user/repo")
        manager.update(force=True)
    """

    def __init__(
        self,
        settings: Settings,
        runtime: RuntimePath | None = None,
        confirm: Callable[[str], str | None] | None = None,
        notifier: Notifier | None = None,
    ):
        """
        Initialize PackManager.

        Args:
            settings: Validated settings
            runtime: Load path to activate plugins in
            confirm: Confirmation surface. Receives report document and
                returns edited document, or None to cancel.
                Default: edit in `$VISUAL`/`$EDITOR`.
            notifier: Notification channel
        """
        self.settings = settings
        self.notifier = notifier or Notifier(silent=settings.silent)
        self.runtime = runtime or RuntimePath()
        self.confirm = confirm or editor_confirm
        self.registry = SessionRegistry()
        self.runner = ProcessRunner(
            n_threads=settings.n_threads,
            timeout=settings.timeout,
            on_exit_msg=self.notifier.info,
        )
        self.reconciler = Reconciler(self.runner, self.notifier)
        self.scheduler = TwoStageScheduler(self.notifier)

    @property
    def opt_path(self) -> Path:
        return self.settings.pack_path / "opt"

    @property
    def start_path(self) -> Path:
        return self.settings.pack_path / "start"

    def plugin_path(self, name: str) -> tuple[Path, bool]:
        """
        Locate plugin directory.

        Returns:
            Tuple of (path, whether it is present on disk). Absent plugins
            are located in `opt/`.
        """
        for subdir in (self.opt_path, self.start_path):
            path = subdir / name
            if path.is_dir():
                return path, True
        return self.opt_path / name, False

    # Session ----------------------------------------------------------------
    def add(self, spec: str | dict[str, Any] | PluginSpec) -> None:
        """
        Add plugin (with its dependencies) to current session.

        Absent plugins are installed first. Present plugins are only
        registered, so repeated calls are cheap.

        Raises:
            ValidationError: If spec is invalid
            GitError: If installation is needed but git is missing
        """
        specs = normalize_spec(spec)

        to_install = []
        for s in specs:
            s.path, present = self.plugin_path(s.name)
            if not present:
                to_install.append(s)

        if to_install:
            git_ops.ensure_git_exec()
            self.opt_path.mkdir(parents=True, exist_ok=True)
            plugs = [Plug.from_spec(s, cwd=self.opt_path) for s in to_install]
            self.reconciler.install(plugs)

        for s in specs:
            self.registry.register(s)
            if s.path.is_dir():
                self.runtime.activate(s.path)

    def remove(self, name: str, delete_dir: bool = False) -> None:
        """
        Remove plugin from current session.

        Args:
            name: Plugin name
            delete_dir: Whether to also delete plugin directory (with
                `pre_delete` and `post_delete` hooks around it)

        Raises:
            PackError: If plugin is neither registered nor present on disk
        """
        spec = self.registry.get(name)
        path, present = self.plugin_path(name)
        if spec is None and not present:
            raise PackError(f"`{name}` is not a known plugin")

        self.runtime.deactivate(path)
        self.registry.unregister(name)
        if not delete_dir:
            return

        hooks = spec.hooks if spec is not None else Hooks()
        execute_hook(hooks, HookEvent.PRE_DELETE, name, self.notifier)
        if present:
            shutil.rmtree(path)
        execute_hook(hooks, HookEvent.POST_DELETE, name, self.notifier)
        self.notifier.info(f"Removed `{name}`")

    def get_session(self) -> list[PluginSpec]:
        """
        Get copies of all plugin specs in current session.

        Session consists of:
        - Added plugins, in order of first addition.
        - Present `start/` plugins which were not added, alphabetically.
        """
        specs = self.registry.specs()
        for s in specs:
            s.path, _ = self.plugin_path(s.name)

        names = {s.name for s in specs}
        for path in list_subdirs(self.start_path):
            if path.name not in names:
                specs.append(PluginSpec(name=path.name, path=path))
        return specs

    # Update -----------------------------------------------------------------
    def update(
        self, names: list[str] | None = None, force: bool = False, offline: bool = False
    ) -> list[Plug]:
        """
        Update plugins.

        - Synchronize specs with state of plugins on disk.
        - Infer data before downloading updates.
        - If not offline, download updates (in parallel).
        - Infer data after downloading updates.
        - If update is forced, apply all changes immediately while appending
          update log. Otherwise ask for confirmation first.

        Args:
            names: Names of plugins to update (default: whole session)
            force: Whether to skip confirmation
            offline: Whether to skip downloading updates

        Returns:
            Reconciliation data of every considered plugin

        Raises:
            PackError: If `names` is not a list of strings
        """
        plugs = self._plugs_from_names(names)
        if not plugs:
            self.notifier.info("Nothing to update")
            return []

        git_ops.ensure_git_exec()
        self.reconciler.infer_update_data(plugs, offline=offline)

        if force:
            self._finish_update(plugs)
            return plugs

        edited = self.confirm(build_confirm_document(plugs))
        if edited is None:
            self.notifier.info("Update is cancelled")
            return plugs

        confirmed = set(parse_confirmed_names(edited))
        to_update = [p for p in plugs if p.name in confirmed and p.needs_checkout]
        self._finish_update(to_update)
        return plugs

    def _finish_update(self, plugs: list[Plug]) -> None:
        if not plugs:
            self.notifier.info("Nothing to update")
            return
        self.reconciler.checkout(plugs)
        try:
            append_update_log(self.settings.log_path, plugs)
        except OSError as e:
            self.notifier.error(f"Could not write update log: {e}")
        self.reconciler.show_notifications(plugs, "update")

    def _plugs_from_names(self, names: list[str] | None) -> list[Plug]:
        if names is not None and (
            not isinstance(names, list) or not all(isinstance(n, str) for n in names)
        ):
            raise PackError("`names` should be array of plugin names")

        session = self.get_session()
        if names is None:
            return [Plug.from_spec(s) for s in session]

        # Batch follows session order and has at most one plug per plugin
        wanted = set(names)
        known = {s.name for s in session}
        unknown = [n for n in dict.fromkeys(names) if n not in known]
        if unknown:
            self.notifier.warning(f"Not in session: {', '.join(unknown)}")
        return [Plug.from_spec(s) for s in session if s.name in wanted]

    # Clean ------------------------------------------------------------------
    def clean(self, force: bool = False) -> list[Path]:
        """
        Delete plugin directories which are not in current session.

        Args:
            force: Whether to skip confirmation

        Returns:
            Deleted directories
        """
        session_names = {s.name for s in self.get_session()}
        all_paths = list_subdirs(self.opt_path) + list_subdirs(self.start_path)
        orphans = [p for p in all_paths if p.name not in session_names]
        if not orphans:
            self.notifier.info("Nothing to clean")
            return []

        if not force:
            edited = self.confirm(build_clean_document(orphans))
            if edited is None:
                self.notifier.info("Clean is cancelled")
                return []
            orphans = parse_confirmed_paths(edited, orphans)

        deleted = []
        for i, path in enumerate(orphans, start=1):
            try:
                shutil.rmtree(path)
            except OSError as e:
                self.notifier.error(f"Could not delete {path}: {e}")
                continue
            self.runtime.deactivate(path)
            deleted.append(path)
            self.notifier.info(f"({i}/{len(orphans)}) Deleted `{path.name}`")
        return deleted

    # Snapshot ---------------------------------------------------------------
    def snap_get(self) -> dict[str, str]:
        """Get mapping from name to current commit of present plugins."""
        session = [s for s in self.get_session() if s.path.is_dir()]
        if not session:
            return {}

        git_ops.ensure_git_exec()
        plugs = [Plug.from_spec(s) for s in session]
        self.reconciler.infer_head(plugs)
        self.reconciler.show_notifications(plugs, "computing snapshot")
        return {p.name: p.head for p in plugs if not p.job.failed}

    def snap_set(self, snap: dict[str, str]) -> None:
        """
        Check out session plugins to commits from snapshot.

        Declared `checkout` of plugins is left untouched.

        Raises:
            PackError: If snapshot is not a mapping from name to commit
        """
        if not isinstance(snap, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in snap.items()
        ):
            raise PackError("Snapshot should be table with string values")

        plugs = []
        for s in self.get_session():
            if s.name in snap:
                s.checkout = snap[s.name]
                plugs.append(Plug.from_spec(s))
        if not plugs:
            self.notifier.info("Nothing to check out")
            return

        git_ops.ensure_git_exec()
        self.reconciler.checkout(plugs)
        self.reconciler.show_notifications(plugs, "applying snapshot")

    def snap_save(self, path: Path | None = None) -> Path:
        """Write snapshot to file (default: configured snapshot path)."""
        path = path or self.settings.snapshot_path
        write_toml(path, self.snap_get())
        self.notifier.info(f"Created snapshot at {path}")
        return path

    def snap_load(self, path: Path | None = None) -> None:
        """Apply snapshot from file (default: configured snapshot path)."""
        path = path or self.settings.snapshot_path
        self.snap_set(read_toml(path))

    # Inspection -------------------------------------------------------------
    def list_refs(self, name: str) -> dict[str, list[str]]:
        """
        List remote branches and tags of an installed plugin.

        Raises:
            PackError: If plugin is not present or git failed
        """
        path, present = self.plugin_path(name)
        if not present:
            raise PackError(f"`{name}` is not installed")

        git_ops.ensure_git_exec()
        branches_job = Job(command=git_ops.list_branches(), cwd=path)
        tags_job = Job(command=git_ops.list_tags(), cwd=path)
        self.runner.run([branches_job, tags_job])
        for job in (branches_job, tags_job):
            if job.failed:
                raise PackError(f"Could not list refs of `{name}`:\n{stream_to_str(job.err)}")

        branches = [
            b.removeprefix("origin/")
            for b in stream_to_str(branches_job.out).splitlines()
            if b not in ("origin", "origin/HEAD")
        ]
        tags = stream_to_str(tags_job.out).splitlines()
        return {"branches": branches, "tags": tags}

    # Two-stage execution ----------------------------------------------------
    def now(self, f: Callable[[], Any]) -> None:
        self.scheduler.now(f)

    def later(self, f: Callable[[], Any]) -> None:
        self.scheduler.later(f)

    def run_later(self) -> None:
        """Execute deferred callbacks and report errors of both stages."""
        self.scheduler.run()
