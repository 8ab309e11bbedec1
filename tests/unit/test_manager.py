"""
Tests for Plugin Manager.

This test suite covers:
1. Add with install and session registration
2. Update with and without download, confirmation and log
3. Freezing plugin with "HEAD" checkout
4. Partial failure isolation within a batch
5. Snapshots
6. Clean of orphaned directories
7. Lifecycle hooks around install, change and delete

All tests use local repositories created with the real `git` binary.
"""

import pytest

from gitpack.plugin.manager import PackError, PackManager
from gitpack.plugin.runtime import RuntimePath
from tests.unit.support import commit, git, make_remote, requires_git

pytestmark = requires_git


def accept_all(text: str) -> str:
    return text


def reject(text: str) -> None:
    return None


@pytest.fixture
def remote(tmp_path):
    """Remote repository named `repo` with one commit."""
    path = tmp_path / "remotes" / "repo"
    make_remote(path)
    return path


@pytest.fixture
def manager(settings, notifier):
    return PackManager(settings, runtime=RuntimePath(), confirm=reject, notifier=notifier)


def head_of(manager: PackManager, name: str) -> str:
    path, _ = manager.plugin_path(name)
    return git(path, "rev-parse", "HEAD")


class TestAdd:
    """Test adding plugins."""

    def test_add_installs_into_opt(self, manager, remote, notifier):
        manager.add(str(remote))

        path = manager.settings.pack_path / "opt" / "repo"
        assert (path / "initial.txt").exists()
        assert [s.name for s in manager.get_session()] == ["repo"]
        assert manager.runtime.is_active(path)
        assert notifier.errors == []
        assert any("Installed `repo`" in msg for msg in notifier.infos)

    def test_add_twice_does_not_reclone(self, manager, remote):
        manager.add(str(remote))
        marker = manager.settings.pack_path / "opt" / "repo" / "local.txt"
        marker.write_text("local change")

        manager.add({"name": "repo"})

        assert marker.exists()
        [spec] = manager.get_session()
        assert spec.source == str(remote)

    def test_add_checks_out_declared_ref(self, manager, remote):
        first = git(remote, "rev-parse", "HEAD")
        commit(remote, "second")
        git(remote, "tag", "v1", first)

        manager.add({"source": str(remote), "checkout": "v1"})

        assert head_of(manager, "repo") == first

    def test_add_without_source_fails_install(self, manager, notifier):
        manager.add("absent")

        assert not manager.plugin_path("absent")[1]
        assert len(notifier.errors) == 1
        assert "SPECIFICATION HAS NO `source` TO INSTALL PLUGIN." in notifier.errors[0]

    def test_add_generates_helptags(self, manager, remote):
        (remote / "doc").mkdir()
        (remote / "doc" / "repo.txt").write_text("*repo.txt* Help\n")
        commit(remote, "docs")

        manager.add(str(remote))

        tags = manager.settings.pack_path / "opt" / "repo" / "doc" / "tags"
        assert tags.read_text() == "repo.txt\trepo.txt\t/*repo.txt*\n"

    def test_batch_failure_is_isolated(self, manager, tmp_path, notifier):
        """Broken plugin in the middle of a batch should not affect others."""
        make_remote(tmp_path / "remotes" / "first")
        make_remote(tmp_path / "remotes" / "third")
        missing = tmp_path / "remotes" / "second"

        manager.add(
            {
                "source": str(tmp_path / "remotes" / "third"),
                "depends": [str(tmp_path / "remotes" / "first"), str(missing)],
            }
        )

        assert manager.plugin_path("first")[1]
        assert not manager.plugin_path("second")[1]
        assert manager.plugin_path("third")[1]
        assert len(notifier.errors) == 1
        assert "Error in `second` during installing plugin" in notifier.errors[0]

        manager.update(force=True, offline=True)
        log = manager.settings.log_path.read_text()
        assert sum(line.startswith("!!! ") for line in log.splitlines()) == 1
        assert "!!! second !!!" in log
        assert sum(line.startswith("--- ") for line in log.splitlines()) == 2


class TestUpdate:
    """Test updating plugins."""

    def test_offline_without_download_changes_nothing(self, manager, remote):
        manager.add(str(remote))
        head = head_of(manager, "repo")
        commit(remote, "second")

        [plug] = manager.update(force=True, offline=True)

        assert plug.checkout_to == head
        assert plug.checkout_log == ""
        assert head_of(manager, "repo") == head

    def test_offline_after_download_moves_to_new_commit(self, manager, remote):
        manager.add(str(remote))
        new = commit(remote, "second")

        # Download without applying
        manager.update()
        [plug] = manager.update(force=True, offline=True)

        assert plug.checkout_to == new
        assert "second" in plug.checkout_log
        assert head_of(manager, "repo") == new

    def test_head_checkout_freezes_plugin(self, manager, remote):
        manager.add({"source": str(remote), "checkout": "HEAD"})
        head = head_of(manager, "repo")
        commit(remote, "second")

        [plug] = manager.update(force=True)

        assert plug.head == head
        assert plug.checkout_to == head
        assert head_of(manager, "repo") == head

    def test_monitor_updates_without_checkout(self, manager, remote):
        git(remote, "tag", "v1")
        manager.add({"source": str(remote), "checkout": "v1", "monitor": "main"})
        head = head_of(manager, "repo")
        commit(remote, "upstream")

        [plug] = manager.update(force=True)

        assert not plug.needs_checkout
        assert "upstream" in plug.monitor_log
        assert head_of(manager, "repo") == head

    def test_confirm_applies_only_kept_plugins(self, settings, notifier, tmp_path):
        make_remote(tmp_path / "remotes" / "a")
        make_remote(tmp_path / "remotes" / "b")
        documents = []

        def confirm(text):
            documents.append(text)
            return text.replace("+++ a +++", "")

        manager = PackManager(settings, confirm=confirm, notifier=notifier)
        manager.add(str(tmp_path / "remotes" / "a"))
        manager.add(str(tmp_path / "remotes" / "b"))
        head_a = head_of(manager, "a")
        new_b = commit(tmp_path / "remotes" / "b", "second")
        commit(tmp_path / "remotes" / "a", "second")

        manager.update()

        assert "+++ a +++" in documents[0]
        assert "+++ b +++" in documents[0]
        assert head_of(manager, "a") == head_a
        assert head_of(manager, "b") == new_b
        log = settings.log_path.read_text()
        assert "+++ b +++" in log
        assert "a +++" not in log

    def test_cancelled_confirm_changes_nothing(self, manager, remote):
        manager.add(str(remote))
        head = head_of(manager, "repo")
        commit(remote, "second")

        [plug] = manager.update()

        assert plug.needs_checkout
        assert head_of(manager, "repo") == head
        assert not manager.settings.log_path.exists()

    def test_source_change_is_applied_to_origin(self, manager, remote, tmp_path):
        manager.add(str(remote))
        moved = tmp_path / "remotes" / "moved"
        remote.rename(moved)

        manager.add({"name": "repo", "source": str(moved)})
        manager.update(force=True)

        path, _ = manager.plugin_path("repo")
        assert git(path, "remote", "get-url", "origin") == str(moved)

    def test_stash_before_checkout(self, manager, remote):
        manager.add(str(remote))
        path, _ = manager.plugin_path("repo")
        (path / "initial.txt").write_text("local edit\n")
        new = commit(remote, "second")

        manager.update(force=True)

        assert head_of(manager, "repo") == new
        assert "Stash before checkout" in git(path, "stash", "list")

    def test_names_must_be_list(self, manager):
        with pytest.raises(PackError, match="`names` should be array"):
            manager.update("repo")

    def test_nothing_to_update(self, manager, notifier):
        assert manager.update() == []
        assert "Nothing to update" in notifier.infos

    def test_repeated_names_make_one_plug_each(self, manager, tmp_path, notifier):
        for name in ("a", "b"):
            make_remote(tmp_path / "remotes" / name)
            manager.add(str(tmp_path / "remotes" / name))
        new = commit(tmp_path / "remotes" / "a", "second")

        plugs = manager.update(["b", "a", "a", "missing", "missing"], force=True)

        assert [p.name for p in plugs] == ["a", "b"]
        assert head_of(manager, "a") == new
        assert "Not in session: missing" in notifier.warnings
        log = manager.settings.log_path.read_text()
        assert log.count("+++ a +++") == 1

    def test_missing_editor_cancels_update(self, settings, notifier, remote, monkeypatch):
        monkeypatch.setenv("VISUAL", str(remote / "no-such-editor"))
        manager = PackManager(settings, notifier=notifier)
        manager.add(str(remote))
        head = head_of(manager, "repo")
        commit(remote, "second")

        [plug] = manager.update()

        assert plug.needs_checkout
        assert head_of(manager, "repo") == head
        assert "Update is cancelled" in notifier.infos


class TestSnapshot:
    """Test snapshots."""

    def test_save_load_round_trip(self, manager, tmp_path):
        for name in ("a", "b"):
            make_remote(tmp_path / "remotes" / name, ("one", "two"))
            manager.add(str(tmp_path / "remotes" / name))
        heads = {name: head_of(manager, name) for name in ("a", "b")}

        path = manager.snap_save(tmp_path / "snap.toml")
        manager.snap_load(path)

        assert manager.snap_get() == heads
        assert {name: head_of(manager, name) for name in ("a", "b")} == heads

    def test_snap_set_keeps_declared_checkout(self, manager, remote):
        first = git(remote, "rev-parse", "HEAD")
        manager.add(str(remote))
        commit(remote, "second")
        manager.update()
        manager.update(force=True, offline=True)

        manager.snap_set({"repo": first})

        assert head_of(manager, "repo") == first
        [spec] = manager.get_session()
        assert spec.checkout is None

    def test_snap_set_validates(self, manager):
        with pytest.raises(PackError, match="Snapshot"):
            manager.snap_set({"repo": 1})


class TestRemoveAndClean:
    """Test removal and cleaning."""

    def test_remove_with_hooks(self, manager, remote):
        calls = []
        manager.add(
            {
                "source": str(remote),
                "hooks": {
                    "pre_delete": lambda: calls.append("pre_delete"),
                    "post_delete": lambda: calls.append("post_delete"),
                },
            }
        )
        path, _ = manager.plugin_path("repo")

        manager.remove("repo", delete_dir=True)

        assert calls == ["pre_delete", "post_delete"]
        assert not path.exists()
        assert manager.get_session() == []
        assert not manager.runtime.is_active(path)

    def test_remove_keeps_directory(self, manager, remote):
        manager.add(str(remote))
        manager.remove("repo")

        assert manager.plugin_path("repo")[1]
        assert manager.get_session() == []

    def test_broken_hook_is_reported_to_notifier(self, manager, remote, notifier):
        def broken():
            raise RuntimeError("oops")

        manager.add({"source": str(remote), "hooks": {"pre_delete": broken}})
        manager.remove("repo", delete_dir=True)

        assert not manager.plugin_path("repo")[1]
        assert "Error executing pre_delete hook in `repo`:\noops" in notifier.warnings

    def test_remove_unknown(self, manager):
        with pytest.raises(PackError, match="not a known plugin"):
            manager.remove("unknown")

    def test_clean_deletes_only_orphans(self, manager, remote):
        manager.add(str(remote))
        orphan = manager.opt_path / "orphan"
        orphan.mkdir(parents=True)

        # Registered plugin moved between subtrees is not an orphan
        manager.start_path.mkdir(parents=True)
        (manager.opt_path / "repo").rename(manager.start_path / "repo")

        deleted = manager.clean(force=True)

        assert deleted == [orphan]
        assert not orphan.exists()
        assert (manager.start_path / "repo").exists()

    def test_clean_confirm(self, settings, notifier):
        manager = PackManager(settings, confirm=lambda text: "", notifier=notifier)
        orphan = manager.opt_path / "orphan"
        orphan.mkdir(parents=True)

        assert manager.clean() == []
        assert orphan.exists()


class TestSession:
    """Test session composition."""

    def test_start_plugins_are_in_session(self, manager, remote):
        manager.add(str(remote))
        for name in ("zeta", "alpha"):
            (manager.start_path / name).mkdir(parents=True)

        assert [s.name for s in manager.get_session()] == ["repo", "alpha", "zeta"]

    def test_change_hooks_on_update(self, manager, remote):
        calls = []
        manager.add(
            {
                "source": str(remote),
                "hooks": {
                    "pre_install": lambda: calls.append("pre_create"),
                    "post_create": lambda: calls.append("post_create"),
                    "pre_change": lambda: calls.append("pre_change"),
                    "post_change": lambda: calls.append("post_change"),
                },
            }
        )
        commit(remote, "second")
        manager.update(force=True)

        assert calls == ["pre_create", "post_create", "pre_change", "post_change"]

    def test_two_stage_add(self, manager, remote, notifier):
        manager.now(lambda: manager.add(str(remote)))
        manager.later(lambda: manager.add({"source": 1}))
        manager.run_later()

        assert [s.name for s in manager.get_session()] == ["repo"]
        assert any("two-stage execution" in msg for msg in notifier.errors)
