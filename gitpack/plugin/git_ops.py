"""
Git Commands for Plugin Management.

This module builds argument vectors for git operations used during plugin
installation and updates. Nothing here spawns processes or touches the file
system, so produced commands can be checked directly.

Key features:
- Clone with blob filter, submodules and explicit `origin` remote
- Fetch with forced tag sync
- Resolve refs to commits and compute logs between them
- Query default and remote branches
"""

import shutil
from pathlib import Path


class GitError(Exception):
    """Base exception for git-related errors."""

    pass


def git_cmd(*args: str) -> list[str]:
    """
    Build full git command.

    Uses '-c gc.auto=0' to disable "Auto packing..." messages in stderr.

    Args:
        *args: Git subcommand and its arguments

    Returns:
        Argument vector
    """
    return ["git", "-c", "gc.auto=0", *args]


def ensure_git_exec() -> None:
    """
    Ensure `git` executable is available.

    Raises:
        GitError: If git is not found
    """
    if shutil.which("git") is None:
        raise GitError("git command not found. Please install git.")


def version() -> list[str]:
    """Command without side effects. Used as a no-op job."""
    return git_cmd("version")


def clone(source: str, path: Path) -> list[str]:
    """
    Clone a plugin repository.

    Args:
        source: Git repository URI
        path: Target directory for clone

    Returns:
        Argument vector
    """
    return git_cmd(
        "clone",
        "--quiet",
        "--filter=blob:none",
        "--recurse-submodules",
        "--origin",
        "origin",
        source,
        str(path),
    )


def stash(timestamp: str) -> list[str]:
    """Stash local changes with a timestamped message."""
    return git_cmd("stash", "--quiet", "--message", f"(gitpack) {timestamp} Stash before checkout")


def checkout(target: str) -> list[str]:
    """Checkout to branch, tag or commit."""
    return git_cmd("checkout", "--quiet", target)


def fetch() -> list[str]:
    """
    Fetch updates from origin.

    Using '--tags --force' means conflicting tags will be synced with remote.
    """
    return git_cmd("fetch", "--quiet", "--tags", "--force", "--recurse-submodules=yes", "origin")


def set_origin(source: str) -> list[str]:
    """Set URI of `origin` remote."""
    return git_cmd("remote", "set-url", "origin", source)


def get_origin() -> list[str]:
    """Get URI of `origin` remote."""
    return git_cmd("remote", "get-url", "origin")


def get_default_origin_branch() -> list[str]:
    """Get branch which `origin/HEAD` points to (as 'origin/<branch>')."""
    return git_cmd("rev-parse", "--abbrev-ref", "origin/HEAD")


def is_origin_branch(name: str) -> list[str]:
    """Output branch's name only if it is present among remote branches."""
    return git_cmd("branch", "--list", "--all", "--format=%(refname:short)", f"origin/{name}")


def get_hash(rev: str) -> list[str]:
    """
    Resolve revision to a commit hash.

    Using `rev-list -1` shows a commit of revision, while `rev-parse` shows
    hash of revision. Those are different for annotated tags.
    """
    return git_cmd("rev-list", "-1", rev)


def log(from_ref: str | None, to_ref: str | None) -> list[str]:
    """
    Log commits between two refs.

    `--topo-order` makes showing divergent branches nicer.
    `--decorate-refs` shows only tags near commits (not `origin/main`, etc.).

    Args:
        from_ref: Start of range
        to_ref: End of range

    Returns:
        Argument vector, or empty list if there is nothing to log
    """
    if from_ref is None or to_ref is None or from_ref == to_ref:
        return []
    return git_cmd(
        "log",
        "--pretty=format:%m %h │ %s%d",
        "--topo-order",
        "--decorate-refs=refs/tags",
        f"{from_ref}...{to_ref}",
    )


def list_branches() -> list[str]:
    """List remote branches of `origin`."""
    return git_cmd("branch", "--remote", "--list", "--format=%(refname:short)", "origin/*")


def list_tags() -> list[str]:
    """List all tags."""
    return git_cmd("tag", "--list")
