"""
Configuration models for the system.
"""

from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlparse

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_WEB_URL = "https://github.com"


@dataclass(frozen=True)
class CredentialContext:
    """
    Explicit credentials threaded into every remote call.

    A value object: nothing in the pipeline keeps a process-wide "current
    account", callers pass the context they want to act as.
    """

    owner: str
    token: str
    default_branch: str = "main"
    api_url: str = DEFAULT_API_URL
    web_url: str = DEFAULT_WEB_URL

    def repo_path(self, repo: str) -> str:
        return f"/repos/{self.owner}/{repo}"

    def commit_url(self, repo: str, sha: str) -> str:
        return f"{self.web_url}/{self.owner}/{repo}/commit/{sha}"

    def tree_url(self, repo: str, branch: str) -> str:
        return f"{self.web_url}/{self.owner}/{repo}/tree/{branch}"

    def compare_url(self, repo: str, base: str, head: str) -> str:
        return f"{self.web_url}/{self.owner}/{repo}/compare/{base}...{head}"

    def __repr__(self) -> str:
        return (
            f"CredentialContext(owner={self.owner!r}, token='***', "
            f"default_branch={self.default_branch!r}, api_url={self.api_url!r})"
        )


@dataclass
class AccountConfig:
    """A remote account the user can act as."""

    owner: str
    token: str
    default_branch: str = "main"

    def validate(self) -> bool:
        """Validate account configuration."""
        if not self.owner or not self.owner.strip():
            raise ValueError("Account owner cannot be empty")

        if not self.token or self.token.startswith("__MISSING_ENV_VAR_"):
            raise ValueError(f"Token is required for account '{self.owner}'")

        if not self.default_branch or not self.default_branch.strip():
            raise ValueError(f"Default branch cannot be empty for '{self.owner}'")

        return True


@dataclass
class GitHubApiConfig:
    """Remote API endpoint settings."""

    api_url: str = DEFAULT_API_URL
    web_url: str = DEFAULT_WEB_URL
    timeout: int = 30

    def validate(self) -> bool:
        """Validate API endpoint settings."""
        for name, url in (("api_url", self.api_url), ("web_url", self.web_url)):
            parsed = urlparse(url)
            if parsed.scheme not in ["http", "https"] or not parsed.netloc:
                raise ValueError(f"Invalid {name}: {url}")

        if not isinstance(self.timeout, int) or self.timeout <= 0:
            raise ValueError("API timeout must be a positive integer")

        if self.timeout > 300:
            raise ValueError("API timeout cannot exceed 300 seconds")

        return True


@dataclass
class StorageConfig:
    """Staging store location."""

    database_path: str = "~/.project-hub/staging.db"

    def validate(self) -> bool:
        if not self.database_path or not self.database_path.strip():
            raise ValueError("Database path cannot be empty")
        return True


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "INFO"
    directory: Optional[str] = "logs"

    def validate(self) -> bool:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return True


@dataclass
class Configuration:
    """System configuration."""

    accounts: List[AccountConfig]
    default_account: Optional[str] = None
    github: GitHubApiConfig = field(default_factory=GitHubApiConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> bool:
        """Validate system configuration."""
        if not isinstance(self.accounts, list):
            raise ValueError("Accounts must be a list")

        if not self.accounts:
            raise ValueError("At least one account must be configured")

        owners = [account.owner for account in self.accounts]
        if len(set(owners)) != len(owners):
            raise ValueError("Account owners must be unique")

        if self.default_account is not None and self.default_account not in owners:
            raise ValueError(
                f"Default account '{self.default_account}' is not a configured account"
            )

        for account in self.accounts:
            account.validate()

        self.github.validate()
        self.storage.validate()
        self.logging.validate()

        return True

    def get_account(self, owner: Optional[str] = None) -> AccountConfig:
        """Return the named account, or the default (first) account."""
        target = owner or self.default_account
        if target is None:
            return self.accounts[0]

        for account in self.accounts:
            if account.owner == target:
                return account

        raise ValueError(f"Account '{target}' is not configured")
