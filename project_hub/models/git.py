"""
Git object and operation result models.

This module defines data models for the remote tree-based repository:
tree entries, commits, branches and the results returned by the commit,
branch and merge operations.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

BLOB_MODE = "100644"
BLOB_TYPE = "blob"


class FileOperation(Enum):
    """File-level operation applied by a commit."""

    ADD = "add"
    MODIFY = "modify"
    DELETE = "delete"


@dataclass
class FileChangeOp:
    """A single file operation requested for one commit."""

    path: str
    operation: FileOperation
    content: Optional[str] = None
    source_reference: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.operation, str):
            self.operation = FileOperation(self.operation)

    def validate(self) -> bool:
        """Validate the file operation."""
        if not self.path or not self.path.strip():
            raise ValueError("File path cannot be empty")

        if self.operation is FileOperation.DELETE:
            return True

        if self.content is None and not self.source_reference:
            raise ValueError(
                f"Content or source reference required for "
                f"{self.operation.value} operation on {self.path}"
            )

        if self.content is not None and self.source_reference:
            raise ValueError(
                f"Provide either content or a source reference for {self.path}, not both"
            )

        return True


@dataclass
class CommitAuthor:
    """Author or committer identity."""

    name: str
    email: str
    date: Optional[datetime] = None

    def validate(self) -> bool:
        """Validate identity fields."""
        if not self.name or not self.name.strip():
            raise ValueError("Author name cannot be empty")

        if not self.email or "@" not in self.email:
            raise ValueError(f"Invalid author email: {self.email}")

        return True

    def to_payload(self) -> Dict[str, str]:
        payload = {"name": self.name, "email": self.email}
        if self.date is not None:
            payload["date"] = self.date.isoformat()
        return payload


@dataclass(frozen=True)
class TreeEntry:
    """One path in a tree. A sha of None removes the path on tree composition."""

    path: str
    mode: str = BLOB_MODE
    type: str = BLOB_TYPE
    sha: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {"path": self.path, "mode": self.mode, "type": self.type, "sha": self.sha}


@dataclass
class Tree:
    """A full tree snapshot."""

    sha: str
    entries: List[TreeEntry]
    truncated: bool = False

    def paths(self) -> List[str]:
        return [entry.path for entry in self.entries]

    def find(self, path: str) -> Optional[TreeEntry]:
        for entry in self.entries:
            if entry.path == path:
                return entry
        return None


@dataclass
class Commit:
    """An immutable commit object."""

    sha: str
    message: str
    tree_sha: str
    parents: List[str]
    author: Optional[CommitAuthor] = None
    committer: Optional[CommitAuthor] = None
    timestamp: Optional[datetime] = None
    files_changed: List[str] = field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return not self.parents

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1


@dataclass
class BranchProtection:
    """Protection rules applied to a branch."""

    required_reviews: bool = False
    required_status_checks: bool = False
    enforce_admins: bool = False

    def to_payload(self) -> Dict[str, Any]:
        """Build the branch protection request body."""
        return {
            "required_status_checks": {"strict": True, "contexts": []}
            if self.required_status_checks
            else None,
            "enforce_admins": self.enforce_admins,
            "required_pull_request_reviews": {"required_approving_review_count": 1}
            if self.required_reviews
            else None,
            "restrictions": None,
        }


@dataclass
class Branch:
    """A named, mutable pointer to a commit."""

    name: str
    head_sha: str
    protected: bool = False
    default_branch: bool = False


@dataclass
class CommitResult:
    """Result of a commit or revert operation."""

    sha: str
    url: str
    files: List[str]

    def validate(self) -> None:
        """Validate commit result data."""
        if not self.sha:
            raise ValueError("sha required for commit results")

        if not isinstance(self.files, list):
            raise ValueError("files must be a list")


@dataclass
class BranchResult:
    """Result of a branch creation."""

    name: str
    sha: str
    url: str
    protected: bool = False
    protection_error: Optional[str] = None


@dataclass
class MergeOutcome:
    """Raw outcome of a server-side merge. Conflicts are a value, not an error."""

    sha: Optional[str] = None
    message: str = ""
    files_changed: List[str] = field(default_factory=list)
    conflicted: bool = False
    already_merged: bool = False


@dataclass
class MergeResult:
    """Result of merging one branch into another."""

    merged: bool
    sha: Optional[str]
    conflicted: bool
    message: str
    url: str
