"""
Shared helpers for gitpack tests.

Git-dependent tests build throwaway repositories with the real `git` binary.
"""

import shutil
import subprocess
from pathlib import Path

import pytest

from gitpack.core.notify import Notifier

GIT = [
    "git",
    "-c",
    "user.name=gitpack",
    "-c",
    "user.email=gitpack@example.com",
    "-c",
    "commit.gpgsign=false",
    "-c",
    "tag.gpgsign=false",
]

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


class RecordingNotifier(Notifier):
    """Notifier which keeps messages instead of logging them."""

    def __init__(self, silent: bool = False):
        super().__init__(silent=silent)
        self.infos: list[str] = []
        self.warnings: list[str] = []
        self.errors: list[str] = []

    def info(self, msg: str) -> None:
        if not self.silent:
            self.infos.append(msg)

    def warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def error(self, msg: str) -> None:
        self.errors.append(msg)


def git(cwd: Path, *args: str) -> str:
    """Run git command and return its stripped stdout."""
    result = subprocess.run(
        [*GIT, *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def commit(repo: Path, message: str) -> str:
    """Create commit with a new file named after `message`. Returns its hash."""
    (repo / f"{message}.txt").write_text(f"{message}\n")
    git(repo, "add", "--all")
    git(repo, "commit", "--quiet", "-m", message)
    return git(repo, "rev-parse", "HEAD")


def make_remote(path: Path, messages: tuple[str, ...] = ("initial",)) -> list[str]:
    """Create repository with `main` branch and commits. Returns their hashes."""
    path.mkdir(parents=True)
    git(path, "init", "--quiet")
    git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    return [commit(path, m) for m in messages]
