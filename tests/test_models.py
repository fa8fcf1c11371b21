"""
Unit tests for data models.
"""

from datetime import datetime, timezone

import pytest

from project_hub.models.config import (
    AccountConfig,
    Configuration,
    CredentialContext,
    GitHubApiConfig,
    LoggingConfig,
)
from project_hub.models.git import (
    BranchProtection,
    Commit,
    CommitAuthor,
    CommitResult,
    FileChangeOp,
    FileOperation,
    Tree,
    TreeEntry,
)
from project_hub.models.staging import ChangeType, PendingChange, ProjectRecord


class TestFileChangeOp:
    """Test cases for FileChangeOp."""

    def test_string_operation_is_coerced(self):
        change = FileChangeOp(path="a.txt", operation="add", content="x")
        assert change.operation is FileOperation.ADD

    def test_add_requires_content_or_source(self):
        change = FileChangeOp(path="a.txt", operation=FileOperation.ADD)
        with pytest.raises(ValueError, match="Content or source reference required"):
            change.validate()

    def test_content_and_source_are_exclusive(self):
        change = FileChangeOp(
            path="a.txt", operation=FileOperation.MODIFY, content="x", source_reference="/tmp/a"
        )
        with pytest.raises(ValueError, match="not both"):
            change.validate()

    def test_delete_needs_no_content(self):
        change = FileChangeOp(path="a.txt", operation=FileOperation.DELETE)
        assert change.validate() is True

    def test_empty_content_is_allowed(self):
        change = FileChangeOp(path="empty.txt", operation=FileOperation.ADD, content="")
        assert change.validate() is True


class TestCommitModels:
    """Test cases for commit and tree models."""

    def test_root_and_merge_flags(self):
        root = Commit(sha="a" * 40, message="init", tree_sha="t" * 40, parents=[])
        normal = Commit(sha="b" * 40, message="m", tree_sha="t" * 40, parents=["a" * 40])
        merge = Commit(
            sha="c" * 40, message="m", tree_sha="t" * 40, parents=["a" * 40, "b" * 40]
        )

        assert root.is_root and not root.is_merge
        assert not normal.is_root and not normal.is_merge
        assert merge.is_merge and not merge.is_root

    def test_tree_lookup(self):
        tree = Tree(sha="t" * 40, entries=[TreeEntry(path="a.txt", sha="1" * 40)])
        assert tree.paths() == ["a.txt"]
        assert tree.find("a.txt").sha == "1" * 40
        assert tree.find("missing.txt") is None

    def test_tree_entry_payload_keeps_null_sha(self):
        payload = TreeEntry(path="gone.txt").to_payload()
        assert payload == {"path": "gone.txt", "mode": "100644", "type": "blob", "sha": None}

    def test_author_validation(self):
        assert CommitAuthor(name="Ada", email="ada@example.com").validate()
        with pytest.raises(ValueError, match="Invalid author email"):
            CommitAuthor(name="Ada", email="nope").validate()

    def test_author_payload_includes_date(self):
        date = datetime(2024, 1, 1, tzinfo=timezone.utc)
        payload = CommitAuthor(name="Ada", email="ada@example.com", date=date).to_payload()
        assert payload["date"] == "2024-01-01T00:00:00+00:00"

    def test_protection_payload(self):
        payload = BranchProtection(required_reviews=True, enforce_admins=True).to_payload()
        assert payload["enforce_admins"] is True
        assert payload["required_pull_request_reviews"] == {"required_approving_review_count": 1}
        assert payload["required_status_checks"] is None
        assert payload["restrictions"] is None

    def test_commit_result_validation(self):
        with pytest.raises(ValueError, match="sha required"):
            CommitResult(sha="", url="", files=[]).validate()


class TestStagingModels:
    """Test cases for staging models."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("feature", ChangeType.FEATURE),
            ("BUGFIX", ChangeType.BUGFIX),
            (" documentation ", ChangeType.DOCUMENTATION),
            ("chore", ChangeType.OTHER),
            (ChangeType.REFACTOR, ChangeType.REFACTOR),
        ],
    )
    def test_change_type_parse(self, value, expected):
        assert ChangeType.parse(value) is expected

    def test_committed_change_requires_sha(self):
        change = PendingChange(
            id="1",
            project_id="p",
            type=ChangeType.FEATURE,
            description="thing",
            timestamp=datetime.now(timezone.utc),
            committed=True,
        )
        with pytest.raises(ValueError, match="commit_sha required"):
            change.validate()

    def test_project_repository(self):
        project = ProjectRecord(
            id="p", name="Demo", path="", type="python", created_at=datetime.now(timezone.utc)
        )
        assert project.repository is None
        project.repository_owner = "octo"
        project.repository_name = "demo"
        assert project.has_repository
        assert project.repository == "octo/demo"


class TestConfigModels:
    """Test cases for configuration models."""

    def test_credential_context_urls(self, ctx):
        assert ctx.repo_path("demo") == "/repos/octo/demo"
        assert ctx.commit_url("demo", "abc") == "https://github.com/octo/demo/commit/abc"
        assert ctx.compare_url("demo", "main", "dev") == (
            "https://github.com/octo/demo/compare/main...dev"
        )

    def test_credential_context_hides_token(self):
        ctx = CredentialContext(owner="octo", token="very-secret")
        assert "very-secret" not in repr(ctx)

    def test_credential_context_is_frozen(self, ctx):
        with pytest.raises(Exception):
            ctx.owner = "someone-else"

    def test_missing_env_token_is_invalid(self):
        account = AccountConfig(owner="octo", token="__MISSING_ENV_VAR_GITHUB_TOKEN__")
        with pytest.raises(ValueError, match="Token is required"):
            account.validate()

    def test_configuration_requires_accounts(self):
        with pytest.raises(ValueError, match="At least one account"):
            Configuration(accounts=[]).validate()

    def test_default_account_must_exist(self):
        config = Configuration(
            accounts=[AccountConfig(owner="octo", token="t")], default_account="other"
        )
        with pytest.raises(ValueError, match="not a configured account"):
            config.validate()

    def test_get_account(self):
        config = Configuration(
            accounts=[AccountConfig(owner="octo", token="t"), AccountConfig(owner="org", token="u")]
        )
        assert config.get_account().owner == "octo"
        assert config.get_account("org").token == "u"
        with pytest.raises(ValueError, match="not configured"):
            config.get_account("nobody")

    def test_api_config_rejects_bad_url(self):
        with pytest.raises(ValueError, match="Invalid api_url"):
            GitHubApiConfig(api_url="ftp://example.com").validate()

    def test_logging_config_level(self):
        with pytest.raises(ValueError, match="Log level"):
            LoggingConfig(level="LOUD").validate()
