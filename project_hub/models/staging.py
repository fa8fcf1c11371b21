"""
Staging data models: projects and their locally recorded changes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class ChangeType(Enum):
    """Kind of work a pending change describes."""

    FEATURE = "feature"
    BUGFIX = "bugfix"
    REFACTOR = "refactor"
    DOCUMENTATION = "documentation"
    OTHER = "other"

    @classmethod
    def parse(cls, value) -> "ChangeType":
        """Return the matching member, falling back to OTHER for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


@dataclass
class PendingChange:
    """A locally recorded description of work not yet (or already) committed."""

    id: str
    project_id: str
    type: ChangeType
    description: str
    timestamp: datetime
    files: List[str] = field(default_factory=list)
    committed: bool = False
    commit_sha: Optional[str] = None

    def validate(self) -> bool:
        """Validate the change record."""
        if not self.id:
            raise ValueError("Change id cannot be empty")

        if not self.description or not self.description.strip():
            raise ValueError("Change description cannot be empty")

        if self.committed and not self.commit_sha:
            raise ValueError("commit_sha required for committed changes")

        if not self.committed and self.commit_sha:
            raise ValueError("Uncommitted changes cannot carry a commit_sha")

        return True


@dataclass
class ProjectRecord:
    """A project known to the staging store."""

    id: str
    name: str
    path: str
    type: str
    created_at: datetime
    description: str = ""
    repository_owner: Optional[str] = None
    repository_name: Optional[str] = None
    last_commit: Optional[str] = None

    @property
    def has_repository(self) -> bool:
        return bool(self.repository_owner and self.repository_name)

    @property
    def repository(self) -> Optional[str]:
        if not self.has_repository:
            return None
        return f"{self.repository_owner}/{self.repository_name}"
