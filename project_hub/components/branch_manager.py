"""
Branch lifecycle and merge operations on a remote repository.
"""

from typing import List, Optional

from ..interfaces import IRemoteGateway
from ..models.config import CredentialContext
from ..models.git import Branch, BranchProtection, BranchResult, MergeResult
from ..utils.error_handling import (
    DefaultBranchDeletionError,
    ProjectHubError,
    with_error_handling,
)
from ..utils.logging import get_logger
from ..utils.validators import validate_branch_name, validate_repository_name

logger = get_logger("branch.manager")


class BranchManager:
    """Creates, deletes, lists and merges branches using the ref primitives."""

    def __init__(self, gateway: IRemoteGateway):
        self.gateway = gateway

    @with_error_handling(component="branch.manager")
    async def create_branch(
        self,
        ctx: CredentialContext,
        repo: str,
        name: str,
        from_branch: Optional[str] = None,
        protection: Optional[BranchProtection] = None,
    ) -> BranchResult:
        """
        Create a branch at the head of another branch.

        Protection, when requested, is applied as a follow-up call. A failure
        there is reported on the result and does not undo the new branch.

        Args:
            ctx: Credentials for the remote account
            repo: Repository name
            name: New branch name
            from_branch: Source branch; defaults to ctx.default_branch
            protection: Optional protection rules for the new branch

        Returns:
            BranchResult for the created branch

        Raises:
            RefAlreadyExistsError: If a branch called name already exists
        """
        source = from_branch or ctx.default_branch
        validate_repository_name(repo)
        validate_branch_name(name)
        validate_branch_name(source)

        source_sha = await self.gateway.get_ref(ctx, repo, source)
        sha = await self.gateway.create_ref(ctx, repo, name, source_sha)
        logger.info(
            f"Created branch {name} from {source}",
            extra={"repo": repo, "sha": sha},
        )

        result = BranchResult(name=name, sha=sha, url=ctx.tree_url(repo, name))

        if protection is not None:
            try:
                await self.gateway.update_branch_protection(ctx, repo, name, protection)
                result.protected = True
            except ProjectHubError as e:
                logger.warning(
                    f"Branch {name} created but protection could not be applied",
                    extra={"repo": repo, "error": str(e)},
                )
                result.protection_error = str(e)

        return result

    @with_error_handling(component="branch.manager")
    async def delete_branch(self, ctx: CredentialContext, repo: str, name: str) -> None:
        """
        Delete a branch.

        Raises:
            DefaultBranchDeletionError: Always, when name is the default branch
            BranchNotFoundError: If the branch does not exist
        """
        if name == ctx.default_branch:
            raise DefaultBranchDeletionError(repo, name)

        validate_repository_name(repo)
        validate_branch_name(name)

        await self.gateway.delete_ref(ctx, repo, name)
        logger.info(f"Deleted branch {name}", extra={"repo": repo})

    @with_error_handling(component="branch.manager")
    async def list_branches(self, ctx: CredentialContext, repo: str) -> List[Branch]:
        """List every branch in the repository."""
        validate_repository_name(repo)
        return await self.gateway.list_branches(ctx, repo)

    @with_error_handling(component="branch.manager")
    async def get_branch(self, ctx: CredentialContext, repo: str, name: str) -> Branch:
        """
        Fetch a single branch.

        Raises:
            BranchNotFoundError: If the branch does not exist
        """
        validate_repository_name(repo)
        validate_branch_name(name)
        return await self.gateway.get_branch(ctx, repo, name)

    @with_error_handling(component="branch.manager")
    async def merge_branches(
        self,
        ctx: CredentialContext,
        repo: str,
        base: str,
        head: str,
        message: Optional[str] = None,
    ) -> MergeResult:
        """
        Merge head into base on the server.

        A conflict is an expected outcome and comes back as
        merged=False, conflicted=True. Any other failure is raised.

        Args:
            ctx: Credentials for the remote account
            repo: Repository name
            base: Branch to merge into
            head: Branch to merge from
            message: Merge commit message

        Returns:
            MergeResult describing the outcome
        """
        validate_repository_name(repo)
        validate_branch_name(base)
        validate_branch_name(head)

        outcome = await self.gateway.merge(
            ctx, repo, base, head, message or f"Merge {head} into {base}"
        )

        if outcome.conflicted:
            logger.warning(
                f"Merge of {head} into {base} conflicted",
                extra={"repo": repo},
            )
            return MergeResult(
                merged=False,
                sha=None,
                conflicted=True,
                message="Merge conflict",
                url=ctx.compare_url(repo, base, head),
            )

        if outcome.already_merged:
            logger.info(
                f"{base} already contains {head}, nothing to merge",
                extra={"repo": repo},
            )
            return MergeResult(
                merged=False,
                sha=None,
                conflicted=False,
                message=outcome.message,
                url=ctx.compare_url(repo, base, head),
            )

        logger.info(
            f"Merged {head} into {base}",
            extra={"repo": repo, "sha": outcome.sha},
        )
        return MergeResult(
            merged=True,
            sha=outcome.sha,
            conflicted=False,
            message=outcome.message,
            url=ctx.commit_url(repo, outcome.sha),
        )
