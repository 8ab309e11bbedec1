"""
Fixtures shared by gitpack tests.
"""

import pytest

from gitpack.config import Settings
from tests.unit.support import RecordingNotifier


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def settings(tmp_path):
    return Settings.from_dict(
        {
            "job": {"timeout": 30},
            "path": {
                "package": str(tmp_path / "site"),
                "snapshot": str(tmp_path / "snapshot.toml"),
                "log": str(tmp_path / "update.log"),
            },
        }
    )


@pytest.fixture(autouse=True)
def git_identity(monkeypatch):
    """Identity for commits created by gitpack itself (like stashes)."""
    for key in ("GIT_AUTHOR", "GIT_COMMITTER"):
        monkeypatch.setenv(f"{key}_NAME", "gitpack")
        monkeypatch.setenv(f"{key}_EMAIL", "gitpack@example.com")
