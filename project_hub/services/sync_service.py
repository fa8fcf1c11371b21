"""
Synchronisation of a project's staged work to its linked repository.
"""

from typing import Optional, Sequence

from ..components.commit_builder import CommitBuilder
from ..components.commit_message import generate_commit_message
from ..interfaces import IStagingStore
from ..models.config import CredentialContext
from ..models.git import CommitAuthor, CommitResult, FileChangeOp
from ..utils.error_handling import ValidationError, with_error_handling
from ..utils.logging import get_logger

logger = get_logger("sync.service")


class ProjectSyncService:
    """
    Commits file operations for a project and marks its pending changes.

    Composes a staging store with a commit builder; holds no state of its own.
    """

    def __init__(self, store: IStagingStore, builder: CommitBuilder):
        self.store = store
        self.builder = builder

    @with_error_handling(component="sync.service")
    async def commit_pending_changes(
        self,
        ctx: CredentialContext,
        project_id: str,
        changes: Sequence[FileChangeOp],
        message: Optional[str] = None,
        branch: Optional[str] = None,
        author: Optional[CommitAuthor] = None,
    ) -> Optional[CommitResult]:
        """
        Commit file operations to the project's repository.

        Every change pending when the commit lands is marked committed with
        the new sha, whether or not the commit touched the files it lists.

        Args:
            ctx: Credentials for the repository owner
            project_id: Project whose pending changes are being committed
            changes: File operations to apply
            message: Commit message; generated from pending changes when None
            branch: Target branch; defaults to ctx.default_branch
            author: Author and committer identity

        Returns:
            CommitResult, or None when there are no file operations; pending
            changes are then left untouched

        Raises:
            ProjectNotFoundError: If the project does not exist
            ValidationError: If the project has no linked repository
            ConcurrentUpdateError: If the branch moved during the commit
        """
        project = self.store.get_project(project_id)
        if not project.has_repository:
            raise ValidationError(
                f"Project {project.name} is not linked to a repository",
                operation="commit_pending_changes",
            )
        if project.repository_owner != ctx.owner:
            raise ValidationError(
                f"Project {project.name} belongs to {project.repository_owner}, "
                f"credentials are for {ctx.owner}",
                operation="commit_pending_changes",
                repo=project.repository_name,
            )

        if not changes:
            logger.info(
                "Nothing to commit", extra={"project_id": project_id}
            )
            return None

        pending = self.store.get_pending_changes(project_id)

        if not message:
            if pending:
                message = generate_commit_message(pending)
            else:
                message = f"chore: Update {len(changes)} file(s)"

        result = await self.builder.create_commit(
            ctx,
            project.repository_name,
            changes,
            message,
            branch=branch,
            author=author,
        )

        self.store.clear_committed_changes(project_id, result.sha)
        logger.info(
            f"Synced {len(pending)} pending change(s) for {project.name}",
            extra={"project_id": project_id, "sha": result.sha},
        )
        return result
