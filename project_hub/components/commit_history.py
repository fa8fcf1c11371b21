"""
Read-only access to remote commit history.
"""

from datetime import datetime
from typing import List, Optional

from ..interfaces import IRemoteGateway
from ..models.config import CredentialContext
from ..models.git import Commit
from ..utils.error_handling import ValidationError, with_error_handling
from ..utils.logging import get_logger
from ..utils.validators import (
    validate_branch_name,
    validate_commit_sha,
    validate_file_path,
    validate_repository_name,
)

logger = get_logger("commit.history")


class CommitHistory:
    """Lists and fetches commits."""

    def __init__(self, gateway: IRemoteGateway):
        self.gateway = gateway

    @with_error_handling(component="commit.history")
    async def get_commit(self, ctx: CredentialContext, repo: str, sha: str) -> Commit:
        validate_repository_name(repo)
        validate_commit_sha(sha)
        return await self.gateway.get_commit(ctx, repo, sha)

    @with_error_handling(component="commit.history")
    async def list_commits(
        self,
        ctx: CredentialContext,
        repo: str,
        branch: Optional[str] = None,
        path: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        author: Optional[str] = None,
    ) -> List[Commit]:
        """
        List commits reachable from a branch, newest first.

        Args:
            branch: Branch to walk; defaults to ctx.default_branch
            path: Only commits touching this path
            since: Only commits after this time
            until: Only commits before this time
            author: Only commits by this login or email
        """
        validate_repository_name(repo)
        validate_branch_name(branch or ctx.default_branch)
        if path is not None:
            validate_file_path(path)
        if since and until and since > until:
            raise ValidationError("'since' must not be later than 'until'", repo=repo)

        commits = await self.gateway.list_commits(
            ctx,
            repo,
            branch=branch,
            path=path,
            since=since,
            until=until,
            author=author,
        )
        logger.debug(
            f"Listed {len(commits)} commit(s)",
            extra={"repo": repo, "branch": branch or ctx.default_branch},
        )
        return commits
