"""
Revert commits by restoring the tree of their parent.

The revert commit takes the target's first-parent tree wholesale and is
parented on the current branch head. When the head is still the target this
exactly undoes it. When other commits landed in between, their changes are
discarded too: this is not a three-way revert.
"""

from typing import Optional

from ..interfaces import IRemoteGateway
from ..models.config import CredentialContext
from ..models.git import CommitResult
from ..utils.error_handling import (
    UnsupportedRevertError,
    ValidationError,
    with_error_handling,
)
from ..utils.logging import get_logger
from ..utils.validators import (
    validate_branch_name,
    validate_commit_sha,
    validate_repository_name,
)

logger = get_logger("revert.engine")


class RevertEngine:
    def __init__(self, gateway: IRemoteGateway):
        self.gateway = gateway

    @with_error_handling(component="revert.engine")
    async def revert_commit(
        self,
        ctx: CredentialContext,
        repo: str,
        sha: str,
        message: str,
        branch: Optional[str] = None,
    ) -> CommitResult:
        """
        Create a commit restoring the tree that preceded sha.

        Args:
            ctx: Credentials for the remote account
            repo: Repository name
            sha: Commit to revert
            message: Message of the revert commit
            branch: Branch to advance; defaults to ctx.default_branch

        Returns:
            CommitResult for the revert commit, listing the target's files

        Raises:
            UnsupportedRevertError: For root commits and merge commits
            ConcurrentUpdateError: If the branch moved during the revert
        """
        branch = branch or ctx.default_branch
        validate_repository_name(repo)
        validate_commit_sha(sha)
        validate_branch_name(branch)
        if not message or not message.strip():
            raise ValidationError("Revert message cannot be empty", repo=repo)

        target = await self.gateway.get_commit(ctx, repo, sha)

        if target.is_merge:
            raise UnsupportedRevertError(
                f"Cannot revert merge commit {sha} ({len(target.parents)} parents)",
                operation="revert_commit",
                repo=repo,
            )
        if target.is_root:
            raise UnsupportedRevertError(
                f"Cannot revert root commit {sha}",
                operation="revert_commit",
                repo=repo,
            )

        parent = await self.gateway.get_commit(ctx, repo, target.parents[0])
        head_sha = await self.gateway.get_ref(ctx, repo, branch)

        if head_sha != target.sha:
            logger.warning(
                f"{branch} has moved past {sha}; reverting resets the tree to "
                f"{parent.sha} and drops intervening changes",
                extra={"repo": repo, "head": head_sha},
            )

        revert_sha = await self.gateway.create_commit(
            ctx, repo, message, parent.tree_sha, [head_sha]
        )
        await self.gateway.update_ref(ctx, repo, branch, revert_sha, force=False)

        logger.info(
            f"Reverted {sha} on {branch}",
            extra={"repo": repo, "sha": revert_sha},
        )

        return CommitResult(
            sha=revert_sha,
            url=ctx.commit_url(repo, revert_sha),
            files=list(target.files_changed),
        )
