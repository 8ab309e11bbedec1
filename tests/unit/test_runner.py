"""
Tests for Process Runner.

This test suite covers:
1. Bounded parallelism
2. Output, warning and error collection
3. Timeout handling
4. Short-circuit of failed and empty jobs
5. Progress messages
"""

import sys
from pathlib import Path

import pytest

from gitpack.core.runner import Job, ProcessRunner, default_n_threads, stream_to_str


def python_job(code: str, cwd: Path, exit_msg: str | None = None) -> Job:
    return Job(command=[sys.executable, "-c", code], cwd=cwd, exit_msg=exit_msg)


class FakePopen:
    """Process which finishes after a few polls and tracks concurrency."""

    active = 0
    max_active = 0
    spawned: list[list[str]] = []

    def __init__(self, command, cwd=None, stdin=None, stdout=None, stderr=None):
        FakePopen.active += 1
        FakePopen.max_active = max(FakePopen.max_active, FakePopen.active)
        FakePopen.spawned.append(command)
        self.returncode = None
        self._polls_left = 3
        stdout.write(f"{command[-1]}\n".encode())

    def poll(self):
        if self.returncode is not None:
            return self.returncode
        self._polls_left -= 1
        if self._polls_left > 0:
            return None
        self.returncode = 0
        FakePopen.active -= 1
        return 0

    def kill(self):
        pass

    def wait(self):
        return self.returncode


@pytest.fixture
def fake_popen(monkeypatch):
    FakePopen.active = 0
    FakePopen.max_active = 0
    FakePopen.spawned = []
    monkeypatch.setattr("gitpack.core.runner.subprocess.Popen", FakePopen)
    return FakePopen


class TestConcurrency:
    """Test bounded parallelism."""

    def test_never_exceeds_thread_limit(self, fake_popen, tmp_path):
        """No more than `n_threads` processes should be active at once."""
        jobs = [Job(command=["job", str(i)], cwd=tmp_path) for i in range(10)]
        ProcessRunner(n_threads=3, poll_interval=0).run(jobs)

        assert fake_popen.max_active == 3
        assert fake_popen.active == 0
        assert [stream_to_str(job.out) for job in jobs] == [str(i) for i in range(10)]

    def test_starts_jobs_in_array_order(self, fake_popen, tmp_path):
        jobs = [Job(command=["job", str(i)], cwd=tmp_path) for i in range(5)]
        ProcessRunner(n_threads=2, poll_interval=0).run(jobs)

        assert [cmd[-1] for cmd in fake_popen.spawned] == ["0", "1", "2", "3", "4"]

    def test_default_n_threads(self):
        assert default_n_threads() >= 1
        assert ProcessRunner().n_threads == default_n_threads()


class TestShortCircuit:
    """Test skipping of jobs which should not run."""

    def test_failed_job_is_not_spawned(self, fake_popen, tmp_path):
        """Job with recorded error should not spawn and keep its output."""
        job = Job(command=["job", "x"], cwd=tmp_path, out=["previous"], err=["boom"])
        ProcessRunner(poll_interval=0).run([job])

        assert fake_popen.spawned == []
        assert job.out == ["previous"]
        assert job.err == ["boom"]

    def test_empty_command_is_not_spawned(self, fake_popen, tmp_path):
        job = Job(command=[], cwd=tmp_path)
        ProcessRunner(poll_interval=0).run([job])

        assert fake_popen.spawned == []
        assert job.out == []

    def test_reset_preserves_errors_and_warnings(self, tmp_path):
        job = Job(command=["x"], cwd=tmp_path, exit_msg="msg", out=["o"], warn=["w"], err=["e"])
        job.reset()

        assert job.command == []
        assert job.exit_msg is None
        assert job.out == []
        assert job.warn == ["w"]
        assert job.err == ["e"]


class TestRealProcesses:
    """Test execution of real processes."""

    def test_collects_stdout(self, tmp_path):
        job = python_job("print('hello')", tmp_path)
        ProcessRunner().run([job])

        assert stream_to_str(job.out) == "hello"
        assert not job.failed

    def test_runs_in_cwd(self, tmp_path):
        job = python_job("import os; print(os.getcwd())", tmp_path)
        ProcessRunner().run([job])

        assert Path(stream_to_str(job.out)).resolve() == tmp_path.resolve()

    def test_nonzero_exit_code_is_error(self, tmp_path):
        """Error code line should come first, followed by stderr."""
        job = python_job("import sys; sys.stderr.write('bad thing'); sys.exit(3)", tmp_path)
        ProcessRunner().run([job])

        assert job.failed
        assert job.err[0] == "ERROR CODE 3\n"
        assert stream_to_str(job.err) == "ERROR CODE 3\nbad thing"

    def test_stderr_of_success_is_warning(self, tmp_path):
        job = python_job("import sys; sys.stderr.write('careful')", tmp_path)
        ProcessRunner().run([job])

        assert not job.failed
        assert stream_to_str(job.warn) == "careful"

    def test_failure_does_not_halt_siblings(self, tmp_path):
        jobs = [
            python_job("print(1)", tmp_path),
            python_job("import sys; sys.exit(1)", tmp_path),
            python_job("print(3)", tmp_path),
        ]
        ProcessRunner(n_threads=1).run(jobs)

        assert [job.failed for job in jobs] == [False, True, False]
        assert stream_to_str(jobs[2].out) == "3"

    def test_timeout_kills_process(self, tmp_path):
        job = python_job("import time; time.sleep(30)", tmp_path)
        ProcessRunner(timeout=0.2).run([job])

        assert job.failed
        assert job.err[-1] == "PROCESS REACHED TIMEOUT."

    def test_spawn_failure_is_error(self, tmp_path):
        job = Job(command=["gitpack-surely-missing-executable"], cwd=tmp_path)
        ProcessRunner().run([job])

        assert job.failed
        assert stream_to_str(job.err).startswith("COULD NOT SPAWN PROCESS")

    def test_missing_cwd_is_error(self, tmp_path):
        job = python_job("print(1)", tmp_path / "missing")
        ProcessRunner().run([job])

        assert job.failed


class TestExitMessages:
    """Test progress messages."""

    def test_reports_successful_jobs(self, tmp_path):
        messages = []
        jobs = [
            python_job("pass", tmp_path, exit_msg="Done a"),
            python_job("import sys; sys.exit(1)", tmp_path, exit_msg="Done b"),
            python_job("pass", tmp_path),
        ]
        ProcessRunner(n_threads=1, on_exit_msg=messages.append).run(jobs)

        assert messages == ["(1/3) Done a"]
