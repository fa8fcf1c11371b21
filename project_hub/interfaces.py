"""
Protocol interfaces for the Project Hub sync pipeline.

This module defines the protocol interfaces that establish component
boundaries and enable dependency injection: the remote gateway every
operation module is composed with, and the staging store.
"""

from datetime import datetime
from typing import ContextManager, List, Optional, Protocol, Sequence

from .models.config import CredentialContext
from .models.git import (
    Branch,
    BranchProtection,
    Commit,
    CommitAuthor,
    MergeOutcome,
    Tree,
    TreeEntry,
)
from .models.staging import ChangeType, PendingChange, ProjectRecord


class IRemoteGateway(Protocol):
    """Protocol for primitive operations on a remote tree-based repository."""

    async def create_blob(
        self, ctx: CredentialContext, repo: str, content: str, encoding: str = "utf-8"
    ) -> str:
        """Store file content and return the blob sha."""
        ...

    async def get_tree(
        self, ctx: CredentialContext, repo: str, sha: str, recursive: bool = True
    ) -> Tree:
        """Fetch the tree of a commit or tree sha."""
        ...

    async def create_tree(
        self,
        ctx: CredentialContext,
        repo: str,
        base_sha: str,
        entries: Sequence[TreeEntry],
    ) -> str:
        """Overlay entries on a base tree and return the new tree sha."""
        ...

    async def create_commit(
        self,
        ctx: CredentialContext,
        repo: str,
        message: str,
        tree_sha: str,
        parents: List[str],
        author: Optional[CommitAuthor] = None,
        committer: Optional[CommitAuthor] = None,
    ) -> str:
        """Create a commit object and return its sha."""
        ...

    async def get_ref(self, ctx: CredentialContext, repo: str, branch: str) -> str:
        """Resolve a branch to its head sha."""
        ...

    async def create_ref(
        self, ctx: CredentialContext, repo: str, name: str, sha: str
    ) -> str:
        """Create a branch ref pointing at sha."""
        ...

    async def update_ref(
        self,
        ctx: CredentialContext,
        repo: str,
        name: str,
        sha: str,
        force: bool = False,
    ) -> str:
        """Move a branch ref; fast-forward only unless force is set."""
        ...

    async def delete_ref(self, ctx: CredentialContext, repo: str, name: str) -> None:
        """Delete a branch ref."""
        ...

    async def get_commit(self, ctx: CredentialContext, repo: str, sha: str) -> Commit:
        """Fetch commit metadata including parents and changed files."""
        ...

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
        """List commits reachable from a branch."""
        ...

    async def merge(
        self,
        ctx: CredentialContext,
        repo: str,
        base: str,
        head: str,
        message: Optional[str] = None,
    ) -> MergeOutcome:
        """Merge head into base on the server. Conflicts are returned, not raised."""
        ...

    async def list_branches(self, ctx: CredentialContext, repo: str) -> List[Branch]:
        """List all branches."""
        ...

    async def get_branch(self, ctx: CredentialContext, repo: str, name: str) -> Branch:
        """Fetch one branch."""
        ...

    async def update_branch_protection(
        self,
        ctx: CredentialContext,
        repo: str,
        branch: str,
        protection: BranchProtection,
    ) -> None:
        """Apply protection rules to a branch."""
        ...


class IStagingStore(Protocol):
    """Protocol for the per-project store of pending changes."""

    def get_project(self, project_id: str) -> ProjectRecord:
        """Return a project record."""
        ...

    def record_change(
        self,
        project_id: str,
        change_type: ChangeType,
        description: str,
        files: Optional[List[str]] = None,
    ) -> PendingChange:
        """Append a new uncommitted change."""
        ...

    def get_pending_changes(self, project_id: str) -> List[PendingChange]:
        """Return uncommitted changes in insertion order."""
        ...

    def clear_committed_changes(self, project_id: str, commit_sha: str) -> None:
        """Mark every uncommitted change as committed with commit_sha."""
        ...

    def transaction(self, project_id: str) -> ContextManager:
        """Open an explicit transaction boundary for one project."""
        ...
