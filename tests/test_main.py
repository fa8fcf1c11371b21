"""
Tests for the project-hub command line.
"""

from unittest.mock import patch

import pytest

from project_hub.components.staging_store import StagingStore
from project_hub.main import Application, _parse_file_spec, build_parser, main
from project_hub.models.git import FileOperation


class _GatewayContext:
    """Async context manager handing out an existing gateway."""

    def __init__(self, gateway):
        self.gateway = gateway

    async def __aenter__(self):
        return self.gateway

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


@pytest.fixture
def db_path(temp_dir):
    return str(temp_dir / "staging.db")


@pytest.fixture
def run(db_path):
    def _run(*argv):
        return main(["--db", db_path, *argv])

    return _run


@pytest.fixture
def offline(remote, ctx):
    """Route remote commands to the in-memory remote."""
    with patch.object(Application, "gateway", lambda self: _GatewayContext(remote)), patch.object(
        Application, "credentials", lambda self, owner=None: ctx
    ):
        yield remote


class TestParser:
    """Test cases for argument parsing."""

    def test_file_spec(self):
        change = _parse_file_spec("src/app.py=./local/app.py")
        assert change.path == "src/app.py"
        assert change.operation is FileOperation.ADD
        assert change.source_reference == "./local/app.py"

    def test_bad_file_spec(self):
        with pytest.raises(ValueError):
            _parse_file_spec("src/app.py")

    def test_protection_flags(self):
        args = build_parser().parse_args(
            ["branch", "create", "demo", "release", "--protect", "--enforce-admins"]
        )
        assert args.protect is True
        assert args.enforce_admins is True
        assert args.require_reviews is False

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestLocalCommands:
    """Project and change commands against a temporary staging database."""

    def test_project_lifecycle(self, run, db_path, capsys):
        assert run("project", "add", "Demo App", "--type", "python") == 0
        assert run("project", "link", "demo app", "octo/demo") == 0
        assert run("project", "show", "Demo") == 0

        out = capsys.readouterr().out
        assert "Registered project Demo App" in out
        assert "Linked Demo App to octo/demo" in out
        assert "repository:  octo/demo" in out

        store = StagingStore(db_path)
        try:
            assert store.find_project("Demo App").repository_name == "demo"
        finally:
            store.close()

    def test_change_lifecycle(self, run, capsys):
        run("project", "add", "Demo App")
        assert run("change", "record", "Demo App", "feature", "Add login", "--files", "a.py") == 0
        assert run("change", "pending", "Demo App") == 0
        assert run("change", "clear", "Demo App", "abcdef1") == 0
        assert run("change", "pending", "Demo App") == 0

        out = capsys.readouterr().out
        assert "Recorded feature change" in out
        assert "feature: Add login [a.py]" in out
        assert "as committed in abcdef1" in out
        assert out.rstrip().endswith("No pending changes")

    def test_unknown_project_fails(self, run, capsys):
        assert run("project", "show", "nothing-here") == 1
        assert "Error:" in capsys.readouterr().err

    def test_duplicate_project_fails(self, run, capsys):
        run("project", "add", "Demo App")
        assert run("project", "add", "demo app") == 1
        assert "already exists" in capsys.readouterr().err

    def test_link_requires_owner_and_name(self, run, capsys):
        run("project", "add", "Demo App")
        assert run("project", "link", "Demo App", "just-a-name") == 1
        assert "OWNER/NAME" in capsys.readouterr().err


class TestRemoteCommands:
    """Remote commands routed to the in-memory remote."""

    def test_commit_syncs_pending_changes(self, run, offline, ctx, temp_dir, capsys):
        local_file = temp_dir / "app.py"
        local_file.write_text("print('v2')\n", encoding="utf-8")
        run("project", "add", "Demo App")
        run("project", "link", "Demo App", "octo/demo")
        run("change", "record", "Demo App", "bugfix", "fix greeting")

        assert run("commit", "Demo App", "--file", f"src/app.py={local_file}") == 0

        head = offline.head(ctx, "demo", "main")
        assert offline.files_at(ctx, "demo", head)["src/app.py"] == "print('v2')\n"
        assert offline.commit(ctx, "demo", head).message == "fix: Fix greeting"
        out = capsys.readouterr().out
        assert f"Committed {head}" in out

        run("change", "pending", "Demo App")
        assert "No pending changes" in capsys.readouterr().out

    def test_commit_with_nothing_to_do(self, run, offline, capsys):
        run("project", "add", "Demo App")
        run("project", "link", "Demo App", "octo/demo")

        assert run("commit", "Demo App") == 0
        assert "Nothing to commit" in capsys.readouterr().out

    def test_branch_and_merge_commands(self, run, offline, ctx, capsys):
        assert run("branch", "create", "demo", "feature/x") == 0
        assert run("branch", "list", "demo") == 0
        assert run("merge", "demo", "main", "feature/x") == 0

        out = capsys.readouterr().out
        assert "Created feature/x" in out
        assert "feature/x " in out
        assert "Already up to date" in out

    def test_delete_default_branch_fails(self, run, offline, capsys):
        assert run("branch", "delete", "demo", "main") == 1
        assert "Cannot delete default branch main" in capsys.readouterr().err

    def test_log_and_revert(self, run, offline, ctx, capsys):
        root = offline.head(ctx, "demo", "main")

        assert run("log", "demo") == 0
        assert f"{root[:7]} Initial commit" in capsys.readouterr().out

        assert run("revert", "demo", root) == 1
        assert "Cannot revert root commit" in capsys.readouterr().err
