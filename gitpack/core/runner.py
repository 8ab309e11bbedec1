"""
Process Runner.

This module runs batches of external commands with bounded parallelism.

Key features:
- Fill up to N concurrent slots, start next job as soon as one finishes
- Capture stdout/stderr of every job into its own buffers
- Per-job timeout with forced termination
- Failed jobs are skipped on reuse (sticky error stream)
"""

import logging
import math
import os
import subprocess
import tempfile
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

logger = logging.getLogger(__name__)


@dataclass
class Job:
    """
    A unit of work bound to one working directory.

    Attributes:
        command: Argument vector (empty to skip)
        cwd: Working directory of the process
        exit_msg: Message to notify about after successful completion
        out: Collected stdout chunks
        warn: Collected stderr chunks of successful commands
        err: Collected error chunks (non-empty means job has failed)
    """

    command: list[str]
    cwd: Path
    exit_msg: str | None = None
    out: list[str] = field(default_factory=list)
    warn: list[str] = field(default_factory=list)
    err: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        """Whether any error was recorded for this job."""
        return len(self.err) > 0

    @property
    def runnable(self) -> bool:
        """Whether the job should be spawned in the next batch."""
        return len(self.command) > 0 and not self.failed

    def reset(self) -> None:
        """Prepare job for reuse. Errors and warnings are preserved."""
        self.command = []
        self.exit_msg = None
        self.out = []


def stream_to_str(stream: list[str]) -> str:
    """Join collected chunks and strip trailing newlines."""
    return "".join(stream).rstrip("\n")


def default_n_threads() -> int:
    """Return 80% of available CPU cores, but at least 1."""
    return max(math.floor(0.8 * (os.cpu_count() or 1)), 1)


@dataclass
class _Running:
    """Book-keeping for a spawned job."""

    job: Job
    process: subprocess.Popen
    stdout: IO[bytes]
    stderr: IO[bytes]
    deadline: float


class ProcessRunner:
    """
    Run jobs in parallel and wait for all of them to finish.

    Nothing is raised for process failures. Spawn failure, non-zero exit
    code and timeout are all recorded as text in `job.err`.
    """

    def __init__(
        self,
        n_threads: int | None = None,
        timeout: float = 30.0,
        poll_interval: float = 0.001,
        on_exit_msg: Callable[[str], None] | None = None,
    ):
        """
        Initialize ProcessRunner.

        Args:
            n_threads: Maximum number of simultaneously running processes
                (default: 80% of CPU cores)
            timeout: Timeout for a single job in seconds
            poll_interval: Delay between completion checks in seconds
            on_exit_msg: Callback receiving progress messages of finished jobs
        """
        self.n_threads = n_threads if n_threads else default_n_threads()
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.on_exit_msg = on_exit_msg

    def run(self, jobs: list[Job]) -> None:
        """
        Execute all runnable jobs and block until they finish or time out.

        Args:
            jobs: Jobs to execute. Jobs with empty command or with already
                recorded error are not spawned.
        """
        queue = deque(job for job in jobs if job.runnable)
        n_total, n_finished = len(queue), 0
        if n_total == 0:
            return

        active: list[_Running] = []
        while queue or active:
            # Fill free slots in array order
            while queue and len(active) < self.n_threads:
                running = self._spawn(queue.popleft())
                if running is None:
                    n_finished += 1
                    continue
                active.append(running)

            still_active = []
            for running in active:
                if running.process.poll() is not None:
                    self._finish(running)
                elif time.monotonic() > running.deadline:
                    self._kill(running)
                else:
                    still_active.append(running)
                    continue

                n_finished += 1
                self._report_exit(running.job, n_finished, n_total)
            active = still_active

            if active:
                time.sleep(self.poll_interval)

    def _spawn(self, job: Job) -> _Running | None:
        """Start job's process. Returns None if it could not be spawned."""
        stdout = tempfile.TemporaryFile()
        stderr = tempfile.TemporaryFile()
        try:
            process = subprocess.Popen(
                job.command,
                cwd=job.cwd,
                stdin=subprocess.DEVNULL,
                stdout=stdout,
                stderr=stderr,
            )
        except OSError as e:
            stdout.close()
            stderr.close()
            job.err.append(f"COULD NOT SPAWN PROCESS: {e}")
            logger.debug(f"Failed to spawn {job.command} in {job.cwd}: {e}")
            return None

        logger.debug(f"Spawned {job.command} in {job.cwd}")
        return _Running(
            job=job,
            process=process,
            stdout=stdout,
            stderr=stderr,
            deadline=time.monotonic() + self.timeout,
        )

    def _finish(self, running: _Running) -> None:
        """Collect output of a process that exited on its own."""
        job, code = running.job, running.process.returncode
        out, err = self._collect(running)
        job.out.append(out)

        # Exit code 0 means that `stderr` is only a warning
        if code == 0:
            if err:
                job.warn.append(err)
            return

        job.err.append(err)
        job.err.insert(0, f"ERROR CODE {code}\n")

    def _kill(self, running: _Running) -> None:
        """Terminate a process which reached its timeout."""
        running.process.kill()
        running.process.wait()
        job = running.job
        out, err = self._collect(running)
        job.out.append(out)
        if err:
            job.err.append(err)
        job.err.append("PROCESS REACHED TIMEOUT.")

    def _collect(self, running: _Running) -> tuple[str, str]:
        """Read captured streams and release them."""
        res = []
        for stream in (running.stdout, running.stderr):
            stream.seek(0)
            res.append(stream.read().decode("utf-8", errors="replace"))
            stream.close()
        return res[0], res[1]

    def _report_exit(self, job: Job, n_finished: int, n_total: int) -> None:
        if job.exit_msg is None or job.failed or self.on_exit_msg is None:
            return
        self.on_exit_msg(f"({n_finished}/{n_total}) {job.exit_msg}")
