"""
Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests
in the Project Hub test suite.
"""

import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from project_hub.components.staging_store import StagingStore
from project_hub.models.config import CredentialContext
from project_hub.models.git import (
    Branch,
    Commit,
    CommitAuthor,
    FileChangeOp,
    FileOperation,
    MergeOutcome,
    Tree,
    TreeEntry,
)
from tests.integration_fixtures import (
    BASE_TREE_SHA,
    HEAD_SHA,
    NEW_COMMIT_SHA,
    NEW_TREE_SHA,
    InMemoryGateway,
)


# Test data fixtures
@pytest.fixture
def ctx():
    """Create a CredentialContext for testing."""
    return CredentialContext(owner="octo", token="test_token", default_branch="main")


@pytest.fixture
def sample_author():
    """Create a sample CommitAuthor for testing."""
    return CommitAuthor(name="Ada Lovelace", email="ada@example.com")


@pytest.fixture
def sample_changes():
    """Create file operations touching two paths."""
    return [
        FileChangeOp(path="src/app.py", operation=FileOperation.MODIFY, content="print('hi')\n"),
        FileChangeOp(path="docs/old.md", operation=FileOperation.DELETE),
    ]


@pytest.fixture
def base_tree():
    """Create the tree the head commit points at."""
    return Tree(
        sha=BASE_TREE_SHA,
        entries=[
            TreeEntry(path="README.md", sha="1" * 40),
            TreeEntry(path="src/app.py", sha="2" * 40),
            TreeEntry(path="docs/old.md", sha="3" * 40),
        ],
    )


@pytest.fixture
def sample_commit():
    """Create a sample Commit with one parent."""
    return Commit(
        sha=HEAD_SHA,
        message="feat: add app",
        tree_sha=BASE_TREE_SHA,
        parents=["e" * 40],
        timestamp=datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
        files_changed=["src/app.py"],
    )


# Mock fixtures
@pytest.fixture
def mock_gateway(base_tree):
    """Create a mock remote gateway for testing."""
    gateway = Mock()
    gateway.create_blob = AsyncMock(side_effect=lambda ctx, repo, content, enc: f"blob-{len(content)}")
    gateway.get_tree = AsyncMock(return_value=base_tree)
    gateway.create_tree = AsyncMock(return_value=NEW_TREE_SHA)
    gateway.create_commit = AsyncMock(return_value=NEW_COMMIT_SHA)
    gateway.get_ref = AsyncMock(return_value=HEAD_SHA)
    gateway.create_ref = AsyncMock(side_effect=lambda ctx, repo, name, sha: sha)
    gateway.update_ref = AsyncMock(side_effect=lambda ctx, repo, name, sha, force=False: sha)
    gateway.delete_ref = AsyncMock(return_value=None)
    gateway.get_commit = AsyncMock()
    gateway.list_commits = AsyncMock(return_value=[])
    gateway.merge = AsyncMock(return_value=MergeOutcome(sha=NEW_COMMIT_SHA, message="Merge"))
    gateway.list_branches = AsyncMock(
        return_value=[Branch(name="main", head_sha=HEAD_SHA, default_branch=True)]
    )
    gateway.get_branch = AsyncMock(return_value=Branch(name="main", head_sha=HEAD_SHA))
    gateway.update_branch_protection = AsyncMock(return_value=None)
    return gateway


@pytest.fixture
def remote(ctx):
    """Create an in-memory remote with one repository called 'demo'."""
    gateway = InMemoryGateway()
    gateway.create_repository(
        ctx,
        "demo",
        {"README.md": "# demo\n", "src/app.py": "print('v1')\n"},
    )
    return gateway


# Staging fixtures
@pytest.fixture
def store():
    """Create an in-memory staging store."""
    staging = StagingStore(":memory:")
    yield staging
    staging.close()


@pytest.fixture
def linked_project(store):
    """Create a project linked to octo/demo."""
    project = store.register_project("Demo App", path="/work/demo", project_type="python")
    return store.link_repository(project.id, "octo", "demo")


# Temporary directory fixtures
@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# Environment fixtures
@pytest.fixture
def mock_env_vars():
    """Mock environment variables for testing."""
    env_vars = {
        "GITHUB_TOKEN": "ghp_test_token",
        "GITHUB_ORG_TOKEN": "ghp_org_token",
    }

    original_values = {}
    for key, value in env_vars.items():
        original_values[key] = os.environ.get(key)
        os.environ[key] = value

    yield env_vars

    for key, original_value in original_values.items():
        if original_value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original_value


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "unit: mark test as unit test")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        if not any(
            marker.name in ["integration", "slow"] for marker in item.iter_markers()
        ):
            item.add_marker(pytest.mark.unit)
