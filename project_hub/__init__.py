"""
Project Hub Sync

Tracks locally recorded project changes and turns file operations into
parent-chained commits on a remote repository, with branch management,
server-side merges and reverts.
"""

__version__ = "0.1.0"
__author__ = "Project Hub Team"
