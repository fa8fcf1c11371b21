"""
Service layer for Project Hub.

This module contains the services that load configuration, verify account
tokens and drive the staging-to-commit flow.
"""

from .config_manager import ConfigurationManager
from .credentials import TokenInfo, verify_token
from .sync_service import ProjectSyncService

__all__ = [
    "ConfigurationManager",
    "ProjectSyncService",
    "TokenInfo",
    "verify_token",
]
