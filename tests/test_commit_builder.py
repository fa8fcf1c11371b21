"""
Unit tests for the CommitBuilder component.

The remote gateway is mocked; see test_integration.py for runs against the
in-memory remote.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from project_hub.components.commit_builder import CommitBuilder
from project_hub.models.git import FileChangeOp, FileOperation, Tree, TreeEntry
from project_hub.utils.error_handling import (
    ConcurrentUpdateError,
    ConflictError,
    InternalError,
    ValidationError,
    map_api_error,
)
from tests.integration_fixtures import BASE_TREE_SHA, HEAD_SHA, NEW_COMMIT_SHA, NEW_TREE_SHA


class TestCommitBuilder:
    """Test cases for CommitBuilder class."""

    @pytest.fixture
    def builder(self, mock_gateway) -> CommitBuilder:
        return CommitBuilder(mock_gateway)

    @pytest.mark.asyncio
    async def test_create_commit_happy_path(
        self, builder, mock_gateway, ctx, sample_changes, sample_author
    ):
        result = await builder.create_commit(
            ctx, "demo", sample_changes, "feat: update app", author=sample_author
        )

        assert result.sha == NEW_COMMIT_SHA
        assert result.url == f"https://github.com/octo/demo/commit/{NEW_COMMIT_SHA}"
        assert result.files == ["src/app.py", "docs/old.md"]

        mock_gateway.get_ref.assert_awaited_once_with(ctx, "demo", "main")
        mock_gateway.get_tree.assert_awaited_once_with(ctx, "demo", HEAD_SHA, recursive=True)
        mock_gateway.create_blob.assert_awaited_once_with(ctx, "demo", "print('hi')\n", "utf-8")

        base_sha, entries = mock_gateway.create_tree.await_args.args[2:]
        assert base_sha == BASE_TREE_SHA
        by_path = {entry.path: entry for entry in entries}
        assert by_path["src/app.py"].sha == "blob-12"
        assert by_path["src/app.py"].mode == "100644"
        assert by_path["docs/old.md"].sha is None

        mock_gateway.create_commit.assert_awaited_once_with(
            ctx,
            "demo",
            "feat: update app",
            NEW_TREE_SHA,
            [HEAD_SHA],
            author=sample_author,
            committer=sample_author,
        )
        mock_gateway.update_ref.assert_awaited_once_with(
            ctx, "demo", "main", NEW_COMMIT_SHA, force=False
        )

    @pytest.mark.asyncio
    async def test_explicit_branch(self, builder, mock_gateway, ctx, sample_changes):
        await builder.create_commit(ctx, "demo", sample_changes, "msg", branch="feature/x")

        mock_gateway.get_ref.assert_awaited_once_with(ctx, "demo", "feature/x")
        assert mock_gateway.update_ref.await_args.args[2] == "feature/x"

    @pytest.mark.asyncio
    async def test_empty_changes_reuse_base_tree(self, builder, mock_gateway, ctx):
        result = await builder.create_commit(ctx, "demo", [], "chore: empty")

        mock_gateway.create_tree.assert_not_awaited()
        assert mock_gateway.create_commit.await_args.args[3] == BASE_TREE_SHA
        assert result.files == []

    @pytest.mark.asyncio
    async def test_delete_of_absent_path_is_dropped(self, builder, mock_gateway, ctx):
        changes = [
            FileChangeOp(path="never/existed.txt", operation=FileOperation.DELETE),
            FileChangeOp(path="new.txt", operation=FileOperation.ADD, content="new"),
        ]

        await builder.create_commit(ctx, "demo", changes, "msg")

        entries = mock_gateway.create_tree.await_args.args[3]
        assert [entry.path for entry in entries] == ["new.txt"]

    @pytest.mark.asyncio
    async def test_only_absent_deletes_reuse_base_tree(self, builder, mock_gateway, ctx):
        changes = [FileChangeOp(path="ghost.txt", operation=FileOperation.DELETE)]

        await builder.create_commit(ctx, "demo", changes, "msg")

        mock_gateway.create_tree.assert_not_awaited()
        assert mock_gateway.create_commit.await_args.args[3] == BASE_TREE_SHA

    @pytest.mark.asyncio
    async def test_source_reference_read_as_text(self, builder, mock_gateway, ctx, tmp_path):
        source = tmp_path / "notes.md"
        source.write_text("héllo\n", encoding="utf-8")
        changes = [
            FileChangeOp(
                path="docs/notes.md",
                operation=FileOperation.ADD,
                source_reference=str(source),
            )
        ]

        await builder.create_commit(ctx, "demo", changes, "docs: notes")

        mock_gateway.create_blob.assert_awaited_once_with(ctx, "demo", "héllo\n", "utf-8")

    @pytest.mark.asyncio
    async def test_unreadable_source_reference(self, builder, mock_gateway, ctx, tmp_path):
        changes = [
            FileChangeOp(path="inline.txt", operation=FileOperation.ADD, content="inline\n"),
            FileChangeOp(
                path="a.txt",
                operation=FileOperation.ADD,
                source_reference=str(tmp_path / "missing.txt"),
            ),
        ]

        with pytest.raises(ValidationError, match="Cannot read"):
            await builder.create_commit(ctx, "demo", changes, "msg")
        mock_gateway.get_ref.assert_not_awaited()
        mock_gateway.get_tree.assert_not_awaited()
        mock_gateway.create_blob.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_binary_source_reference_rejected(self, builder, mock_gateway, ctx, tmp_path):
        source = tmp_path / "image.bin"
        source.write_bytes(b"\xff\xfe\x00\x81")
        changes = [
            FileChangeOp(path="image.bin", operation=FileOperation.ADD, source_reference=str(source))
        ]

        with pytest.raises(ValidationError, match="UTF-8"):
            await builder.create_commit(ctx, "demo", changes, "msg")
        mock_gateway.get_ref.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_blob_cancels_remaining_uploads(self, builder, mock_gateway, ctx):
        finished = []

        async def create_blob(ctx, repo, content, encoding):
            if content == "fails":
                raise InternalError("blob upload failed", operation="create_blob")
            await asyncio.sleep(0.05)
            finished.append(content)
            return "blob-slow"

        mock_gateway.create_blob = AsyncMock(side_effect=create_blob)
        changes = [
            FileChangeOp(path="a.txt", operation=FileOperation.ADD, content="fails"),
            FileChangeOp(path="b.txt", operation=FileOperation.ADD, content="slow"),
        ]

        with pytest.raises(InternalError):
            await builder.create_commit(ctx, "demo", changes, "msg")
        await asyncio.sleep(0.1)

        assert finished == []
        mock_gateway.create_tree.assert_not_awaited()
        mock_gateway.update_ref.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "repo,branch,message,path",
        [
            ("bad repo", "main", "msg", "a.txt"),
            ("demo", "bad..branch", "msg", "a.txt"),
            ("demo", "main", "   ", "a.txt"),
            ("demo", "main", "msg", "../escape.txt"),
            ("demo", "main", "msg", "/abs.txt"),
        ],
    )
    async def test_validation_before_any_remote_call(
        self, builder, mock_gateway, ctx, repo, branch, message, path
    ):
        changes = [FileChangeOp(path=path, operation=FileOperation.ADD, content="x")]

        with pytest.raises(ValidationError):
            await builder.create_commit(ctx, repo, changes, message, branch=branch)

        mock_gateway.get_ref.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_duplicate_paths_rejected(self, builder, mock_gateway, ctx):
        changes = [
            FileChangeOp(path="a.txt", operation=FileOperation.ADD, content="1"),
            FileChangeOp(path="a.txt", operation=FileOperation.DELETE),
        ]

        with pytest.raises(ValidationError, match="Duplicate"):
            await builder.create_commit(ctx, "demo", changes, "msg")
        mock_gateway.get_ref.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_content_rejected(self, builder, mock_gateway, ctx):
        changes = [FileChangeOp(path="a.txt", operation=FileOperation.MODIFY)]

        with pytest.raises(ValidationError, match="Content or source reference"):
            await builder.create_commit(ctx, "demo", changes, "msg")

    @pytest.mark.asyncio
    async def test_moved_ref_raises_concurrent_update(self, builder, mock_gateway, ctx, sample_changes):
        mock_gateway.update_ref = AsyncMock(
            side_effect=map_api_error(422, "Update is not a fast forward", "update_ref", "demo")
        )

        with pytest.raises(ConcurrentUpdateError) as exc_info:
            await builder.create_commit(ctx, "demo", sample_changes, "msg")

        assert isinstance(exc_info.value, ConflictError)
        mock_gateway.update_ref.assert_awaited_once()
        mock_gateway.create_commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_truncated_tree_still_commits(self, builder, mock_gateway, ctx):
        mock_gateway.get_tree = AsyncMock(
            return_value=Tree(
                sha=BASE_TREE_SHA,
                entries=[TreeEntry(path="a.txt", sha="1" * 40)],
                truncated=True,
            )
        )
        changes = [FileChangeOp(path="a.txt", operation=FileOperation.DELETE)]

        result = await builder.create_commit(ctx, "demo", changes, "msg")

        assert result.sha == NEW_COMMIT_SHA
