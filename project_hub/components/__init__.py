"""
Core components for Project Hub.

This module contains the remote gateway and the operation classes composed
with it: commit construction, branch management, reverts and history, plus
the local staging store.
"""

from .branch_manager import BranchManager
from .commit_builder import CommitBuilder
from .commit_history import CommitHistory
from .commit_message import generate_commit_message
from .github_gateway import GitHubGateway
from .revert_engine import RevertEngine
from .staging_store import StagingStore, StagingTransaction

__all__ = [
    "BranchManager",
    "CommitBuilder",
    "CommitHistory",
    "GitHubGateway",
    "RevertEngine",
    "StagingStore",
    "StagingTransaction",
    "generate_commit_message",
]
