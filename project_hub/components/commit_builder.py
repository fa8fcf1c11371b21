"""
Commit construction against a remote branch.

This module provides the CommitBuilder class that turns a list of file
operations into blob, tree and commit objects and advances the branch ref
with a fast-forward-only update.
"""

import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..interfaces import IRemoteGateway
from ..models.config import CredentialContext
from ..models.git import (
    BLOB_MODE,
    BLOB_TYPE,
    CommitAuthor,
    CommitResult,
    FileChangeOp,
    FileOperation,
    Tree,
    TreeEntry,
)
from ..utils.error_handling import ValidationError, with_error_handling
from ..utils.logging import get_logger
from ..utils.validators import (
    validate_branch_name,
    validate_file_path,
    validate_repository_name,
)

logger = get_logger("commit.builder")


def _read_source(source_reference: str) -> str:
    return Path(source_reference).expanduser().read_text(encoding="utf-8")


class CommitBuilder:
    """
    Builds parent-chained commits from file operations.

    The builder is stateless apart from the gateway it is composed with.
    A moved branch ref surfaces as ConcurrentUpdateError; the builder never
    retries, callers re-run create_commit from the start.
    """

    def __init__(self, gateway: IRemoteGateway):
        self.gateway = gateway

    def _validate(
        self,
        repo: str,
        branch: str,
        changes: Sequence[FileChangeOp],
        message: str,
        author: Optional[CommitAuthor],
    ) -> None:
        validate_repository_name(repo)
        validate_branch_name(branch)

        if not message or not message.strip():
            raise ValidationError("Commit message cannot be empty", repo=repo)

        seen = set()
        for change in changes:
            validate_file_path(change.path)
            try:
                change.validate()
            except ValueError as e:
                raise ValidationError(str(e), operation="create_commit", repo=repo)
            if change.path in seen:
                raise ValidationError(
                    f"Duplicate operation for path {change.path}",
                    operation="create_commit",
                    repo=repo,
                )
            seen.add(change.path)

        if author is not None:
            try:
                author.validate()
            except ValueError as e:
                raise ValidationError(str(e), operation="create_commit", repo=repo)

    async def _load_contents(
        self, repo: str, changes: Sequence[FileChangeOp]
    ) -> Dict[str, str]:
        """Resolve the text of every add or modify, keyed by path."""
        loop = asyncio.get_running_loop()
        contents: Dict[str, str] = {}
        for change in changes:
            if change.operation is FileOperation.DELETE:
                continue
            if change.content is not None:
                contents[change.path] = change.content
                continue
            try:
                contents[change.path] = await loop.run_in_executor(
                    None, _read_source, change.source_reference
                )
            except (OSError, UnicodeDecodeError) as e:
                raise ValidationError(
                    f"Cannot read {change.source_reference} as UTF-8 text: {e}",
                    operation="create_commit",
                    repo=repo,
                ) from e
        return contents

    async def _build_entry(
        self,
        ctx: CredentialContext,
        repo: str,
        change: FileChangeOp,
        base_tree: Tree,
        contents: Dict[str, str],
    ) -> Optional[TreeEntry]:
        """Create the tree entry for one operation; None drops the operation."""
        if change.operation is FileOperation.DELETE:
            if base_tree.find(change.path) is None:
                logger.debug(
                    f"Delete of {change.path} is a no-op, path not in base tree",
                    extra={"repo": repo},
                )
                return None
            return TreeEntry(path=change.path, mode=BLOB_MODE, type=BLOB_TYPE, sha=None)

        blob_sha = await self.gateway.create_blob(
            ctx, repo, contents[change.path], "utf-8"
        )
        return TreeEntry(path=change.path, mode=BLOB_MODE, type=BLOB_TYPE, sha=blob_sha)

    @with_error_handling(component="commit.builder")
    async def create_commit(
        self,
        ctx: CredentialContext,
        repo: str,
        changes: Sequence[FileChangeOp],
        message: str,
        branch: Optional[str] = None,
        author: Optional[CommitAuthor] = None,
    ) -> CommitResult:
        """
        Create one commit applying all file operations and advance the branch.

        Args:
            ctx: Credentials for the remote account
            repo: Repository name under ctx.owner
            changes: File operations to apply
            message: Commit message
            branch: Target branch; defaults to ctx.default_branch
            author: Author and committer identity; omitted when None

        Returns:
            CommitResult with the new sha, its web URL and the touched paths

        Raises:
            ValidationError: Malformed input or an unreadable source file,
                raised before any remote call
            ConcurrentUpdateError: The branch moved since its head was read
        """
        branch = branch or ctx.default_branch
        self._validate(repo, branch, changes, message, author)
        contents = await self._load_contents(repo, changes)

        head_sha = await self.gateway.get_ref(ctx, repo, branch)
        base_tree = await self.gateway.get_tree(ctx, repo, head_sha, recursive=True)
        if base_tree.truncated:
            logger.warning(
                "Base tree listing was truncated, deletes of unlisted paths are dropped",
                extra={"repo": repo, "branch": branch},
            )

        tasks = [
            asyncio.ensure_future(
                self._build_entry(ctx, repo, change, base_tree, contents)
            )
            for change in changes
        ]
        try:
            built = await asyncio.gather(*tasks)
        finally:
            unfinished = [task for task in tasks if not task.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.wait(unfinished)
        entries: List[TreeEntry] = [entry for entry in built if entry is not None]

        if entries:
            tree_sha = await self.gateway.create_tree(ctx, repo, base_tree.sha, entries)
        else:
            logger.warning(
                "Creating commit with an unchanged tree",
                extra={"repo": repo, "branch": branch, "operations": len(changes)},
            )
            tree_sha = base_tree.sha

        commit_sha = await self.gateway.create_commit(
            ctx,
            repo,
            message,
            tree_sha,
            [head_sha],
            author=author,
            committer=author,
        )
        await self.gateway.update_ref(ctx, repo, branch, commit_sha, force=False)

        logger.info(
            f"Committed {len(changes)} file operation(s) to {branch}",
            extra={"repo": repo, "sha": commit_sha, "parent": head_sha},
        )

        return CommitResult(
            sha=commit_sha,
            url=ctx.commit_url(repo, commit_sha),
            files=[change.path for change in changes],
        )
