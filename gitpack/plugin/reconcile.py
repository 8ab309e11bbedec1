"""
Plugin Reconciliation.

This module brings plugins on disk in accordance with their specs.

Every phase operates on a batch of plugins and has the same shape:
- `prepare` decides each job's command from current plugin data.
- All jobs are executed in parallel.
- `process` extracts results back into plugin data.

A plugin whose job has recorded an error is skipped by all later phases,
while other plugins in the batch proceed.

Phase order during update:
origin/source -> target refs -> head -> monitor start -> (download) ->
checkout target -> monitor end -> logs -> decision -> checkout.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from gitpack.core.notify import Notifier
from gitpack.core.runner import Job, ProcessRunner, stream_to_str
from gitpack.core.utils import get_timestamp
from gitpack.plugin import git_ops
from gitpack.plugin.helptags import regenerate_helptags
from gitpack.plugin.hooks import HookEvent, execute_hook
from gitpack.plugin.spec import PluginSpec

logger = logging.getLogger(__name__)

NO_SOURCE_ERROR = "SPECIFICATION HAS NO `source` TO INSTALL PLUGIN."


@dataclass
class Plug:
    """
    Plugin data for a single reconciliation pass.

    Attributes:
        spec: Copy of plugin spec (may be filled in during the pass)
        job: Job reused by every phase of the pass
        head: Current commit
        checkout_to: Commit to check out
        monitor_from: Commit of monitor ref before download
        monitor_to: Commit of monitor ref after download
        checkout_log: Log of changes between `head` and `checkout_to`
        monitor_log: Log of changes between `monitor_from` and `monitor_to`
        needs_checkout: Whether working tree should change
    """

    spec: PluginSpec
    job: Job
    head: str | None = None
    checkout_to: str | None = None
    monitor_from: str | None = None
    monitor_to: str | None = None
    checkout_log: str = ""
    monitor_log: str = ""
    needs_checkout: bool = False

    @classmethod
    def from_spec(cls, spec: PluginSpec, cwd: Path | None = None) -> "Plug":
        """Create fresh pass data. Job runs in plugin directory by default."""
        spec = spec.copy()
        return cls(spec=spec, job=Job(command=[], cwd=cwd or spec.path))

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def path(self) -> Path:
        return self.spec.path

    @property
    def error(self) -> str:
        return stream_to_str(self.job.err)

    @property
    def has_monitor_updates(self) -> bool:
        return self.monitor_log != ""


class Reconciler:
    """Runs reconciliation phases over batches of plugins."""

    def __init__(self, runner: ProcessRunner, notifier: Notifier | None = None):
        self.runner = runner
        self.notifier = notifier or Notifier()

    def run_jobs(
        self,
        plugs: list[Plug],
        prepare: Callable[[Plug], None] | None = None,
        process: Callable[[Plug], None] | None = None,
    ) -> None:
        """
        Execute one phase for plugins that did not fail yet.

        Args:
            plugs: Batch of plugins
            prepare: Sets job's command (and exit message)
            process: Extracts job results into plugin data
        """
        active = [p for p in plugs if not p.job.failed]

        if prepare is not None:
            for p in active:
                prepare(p)

        self.runner.run([p.job for p in active])

        if process is not None:
            for p in active:
                if not p.job.failed:
                    process(p)

        # Preserve errors and warnings for jobs to be properly reusable
        for p in active:
            p.job.reset()

    def exec_hooks(self, plugs: list[Plug], event: HookEvent) -> None:
        for p in plugs:
            if not p.job.failed:
                execute_hook(p.spec.hooks, event, p.name, self.notifier)

    # Install ----------------------------------------------------------------
    def install(self, plugs: list[Plug]) -> None:
        """Clone absent plugins and check them out according to their specs."""
        self.exec_hooks(plugs, HookEvent.PRE_CREATE)

        def prepare(p: Plug) -> None:
            if p.spec.source is None:
                p.job.err.append(NO_SOURCE_ERROR)
                return
            p.job.command = git_ops.clone(p.spec.source, p.path)
            p.job.exit_msg = f"Installed `{p.name}`"

        self.run_jobs(plugs, prepare)

        for p in plugs:
            p.job.cwd = p.path
        self.checkout(plugs, all_helptags=True)

        self.exec_hooks(plugs, HookEvent.POST_CREATE)
        self.show_notifications(plugs, "installing plugin")

    # Update -----------------------------------------------------------------
    def infer_update_data(self, plugs: list[Plug], offline: bool = False) -> None:
        """Compute everything needed to decide about checkout."""
        self.ensure_origin_source(plugs)
        self.ensure_target_refs(plugs)
        self.infer_head(plugs)
        self.infer_commit(plugs, "monitor", "monitor_from")

        if not offline:
            self.download(plugs)

        self.infer_commit(plugs, "checkout", "checkout_to")
        self.infer_commit(plugs, "monitor", "monitor_to")
        self.infer_log(plugs, "head", "checkout_to", "checkout_log")
        self.infer_log(plugs, "monitor_from", "monitor_to", "monitor_log")
        self.decide(plugs)

    def ensure_origin_source(self, plugs: list[Plug]) -> None:
        """Force `origin` to spec's source or recover source from `origin`."""

        def prepare(p: Plug) -> None:
            source = p.spec.source
            p.job.command = git_ops.set_origin(source) if source else git_ops.get_origin()

        def process(p: Plug) -> None:
            p.spec.source = p.spec.source or stream_to_str(p.job.out)

        self.run_jobs(plugs, prepare, process)

    def ensure_target_refs(self, plugs: list[Plug]) -> None:
        """Use remote's default branch for absent `checkout` and `monitor`."""

        def needs_infer(p: Plug) -> bool:
            return p.spec.checkout is None or p.spec.monitor is None

        def prepare(p: Plug) -> None:
            p.job.command = git_ops.get_default_origin_branch() if needs_infer(p) else []

        def process(p: Plug) -> None:
            if not needs_infer(p):
                return
            def_branch = stream_to_str(p.job.out).removeprefix("origin/")
            p.spec.checkout = p.spec.checkout or def_branch
            p.spec.monitor = p.spec.monitor or def_branch

        self.run_jobs(plugs, prepare, process)

    def infer_head(self, plugs: list[Plug]) -> None:
        def prepare(p: Plug) -> None:
            p.job.command = git_ops.get_hash("HEAD") if p.head is None else []

        def process(p: Plug) -> None:
            p.head = p.head or stream_to_str(p.job.out)

        self.run_jobs(plugs, prepare, process)

    def infer_commit(self, plugs: list[Plug], ref_field: str, out_field: str) -> None:
        """
        Resolve spec's ref to a commit.

        Args:
            plugs: Batch of plugins
            ref_field: Name of spec field with ref ("checkout" or "monitor")
            out_field: Name of plug field to store commit in
        """
        should_infer: dict[str, bool] = {}
        is_origin_branch: dict[str, bool] = {}

        # Determine if reference points to an origin branch
        def prepare_branch(p: Plug) -> None:
            should_infer[p.name] = getattr(p, out_field) is None
            ref = getattr(p.spec, ref_field)
            p.job.command = git_ops.is_origin_branch(ref) if should_infer[p.name] else []

        def process_branch(p: Plug) -> None:
            is_origin_branch[p.name] = stream_to_str(p.job.out).strip() != ""

        self.run_jobs(plugs, prepare_branch, process_branch)

        # Force "HEAD" to always point to current commit to freeze updates.
        # This is needed because `origin/HEAD` is also present.
        def prepare_hash(p: Plug) -> None:
            if not should_infer.get(p.name, False):
                p.job.command = []
                return
            ref = getattr(p.spec, ref_field)
            from_origin = is_origin_branch.get(p.name, False) and ref != "HEAD"
            p.job.command = git_ops.get_hash(f"origin/{ref}" if from_origin else ref)

        def process_hash(p: Plug) -> None:
            if should_infer.get(p.name, False):
                setattr(p, out_field, stream_to_str(p.job.out))

        self.run_jobs(plugs, prepare_hash, process_hash)

    def download(self, plugs: list[Plug]) -> None:
        n_noerror = sum(1 for p in plugs if not p.job.failed)
        if n_noerror == 0:
            return
        self.notifier.info(f"Downloading {n_noerror} update{'s' if n_noerror > 1 else ''}")

        def prepare(p: Plug) -> None:
            p.job.command = git_ops.fetch()
            p.job.exit_msg = f"Downloaded update for `{p.name}`"

        self.run_jobs(plugs, prepare)

    def infer_log(self, plugs: list[Plug], from_field: str, to_field: str, out_field: str) -> None:
        def prepare(p: Plug) -> None:
            p.job.command = git_ops.log(getattr(p, from_field), getattr(p, to_field))

        def process(p: Plug) -> None:
            setattr(p, out_field, stream_to_str(p.job.out))

        self.run_jobs(plugs, prepare, process)

    def decide(self, plugs: list[Plug]) -> None:
        for p in plugs:
            p.needs_checkout = not p.job.failed and p.head != p.checkout_to

    # Checkout ---------------------------------------------------------------
    def checkout(self, plugs: list[Plug], all_helptags: bool = False) -> None:
        """
        Check out plugins to their targets.

        Args:
            plugs: Batch of plugins
            all_helptags: Whether to regenerate help tags for all plugins
                and not only for changed ones
        """
        self.infer_head(plugs)
        self.ensure_target_refs(plugs)
        self.infer_commit(plugs, "checkout", "checkout_to")
        self.decide(plugs)

        changing = [p for p in plugs if p.needs_checkout]

        # Stash changes
        stash_cmd = git_ops.stash(get_timestamp())

        def prepare_stash(p: Plug) -> None:
            p.job.command = stash_cmd

        self.run_jobs(changing, prepare_stash)

        self.exec_hooks(changing, HookEvent.PRE_CHANGE)

        # Use no-op command for unchanged plugins to still show feedback
        def prepare_checkout(p: Plug) -> None:
            p.job.command = git_ops.checkout(p.checkout_to) if p.needs_checkout else git_ops.version()
            p.job.exit_msg = f"Checked out `{p.spec.checkout}` in `{p.name}`"

        self.run_jobs(plugs, prepare_checkout)

        self.exec_hooks(changing, HookEvent.POST_CHANGE)

        # (Re)Generate help tags according to the current help files
        for p in plugs if all_helptags else changing:
            if p.job.failed:
                continue
            try:
                regenerate_helptags(p.path)
            except OSError as e:
                self.notifier.warning(f"Could not generate help tags in `{p.name}`: {e}")

    # Feedback ---------------------------------------------------------------
    def show_notifications(self, plugs: list[Plug], action_name: str) -> None:
        for p in plugs:
            warn = stream_to_str(p.job.warn)
            if warn != "":
                self.notifier.warning(f"Warnings in `{p.name}` during {action_name}\n{warn}")
            err = stream_to_str(p.job.err)
            if err != "":
                self.notifier.error(f"Error in `{p.name}` during {action_name}\n{err}")
