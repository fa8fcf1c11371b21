"""
Data models for the Project Hub sync pipeline.

This module contains the data classes used throughout the application for
representing git objects, staged changes, results and configuration.
"""

from .config import (
    AccountConfig,
    Configuration,
    CredentialContext,
    GitHubApiConfig,
    LoggingConfig,
    StorageConfig,
)
from .git import (
    Branch,
    BranchProtection,
    BranchResult,
    Commit,
    CommitAuthor,
    CommitResult,
    FileChangeOp,
    FileOperation,
    MergeOutcome,
    MergeResult,
    Tree,
    TreeEntry,
)
from .staging import ChangeType, PendingChange, ProjectRecord

__all__ = [
    "AccountConfig",
    "Configuration",
    "CredentialContext",
    "GitHubApiConfig",
    "LoggingConfig",
    "StorageConfig",
    "Branch",
    "BranchProtection",
    "BranchResult",
    "Commit",
    "CommitAuthor",
    "CommitResult",
    "FileChangeOp",
    "FileOperation",
    "MergeOutcome",
    "MergeResult",
    "Tree",
    "TreeEntry",
    "ChangeType",
    "PendingChange",
    "ProjectRecord",
]
