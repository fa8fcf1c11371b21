"""
Configuration management for Project Hub.
"""

import json
import os
from typing import Any, Dict, Optional

import yaml

from ..models.config import (
    AccountConfig,
    Configuration,
    CredentialContext,
    GitHubApiConfig,
    LoggingConfig,
    StorageConfig,
)
from ..utils.logging import get_logger

logger = get_logger("config")

MISSING_ENV_PREFIX = "__MISSING_ENV_VAR_"


class ConfigurationManager:
    """Manages loading, validation, and reloading of system configuration."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file. If None, uses default paths.
        """
        self.config_path = config_path or self._find_config_file()
        self._config: Optional[Configuration] = None
        self._last_modified: Optional[float] = None

    def _find_config_file(self) -> str:
        """Find the configuration file in standard locations."""
        possible_paths = [
            "config/config.yaml",
            "config/config.yml",
            "config/config.json",
            "config.yaml",
            "config.yml",
            "config.json",
            os.path.expanduser("~/.project-hub/config.yaml"),
        ]

        for path in possible_paths:
            if os.path.exists(path):
                return path

        if os.path.exists("config/config.example.yaml"):
            raise ValueError(
                "No configuration file found. Please copy 'config/config.example.yaml' "
                "to 'config/config.yaml' and customize it for your needs."
            )

        raise ValueError(
            "No configuration file found. Please create a configuration file "
            "at one of these locations: " + ", ".join(possible_paths)
        )

    def _read_raw(self, path: str) -> Dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            if path.endswith(".json"):
                raw_config = json.load(f)
            else:
                raw_config = yaml.safe_load(f)

        if not isinstance(raw_config, dict):
            raise ValueError("Configuration root must be a mapping")
        return raw_config

    def load_config(self) -> Configuration:
        """
        Load configuration from file.

        Returns:
            Configuration object with validated settings.

        Raises:
            ValueError: If configuration is invalid or file cannot be read.
            FileNotFoundError: If configuration file doesn't exist.
        """
        if not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            raw_config = self._read_raw(self.config_path)
            raw_config = self._expand_env_vars(raw_config)
            config = self._parse_config(raw_config)
            config.validate()
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {e}") from e
        except (OSError, TypeError, ValueError) as e:
            raise ValueError(f"Error loading configuration: {e}") from e

        self._config = config
        self._last_modified = os.path.getmtime(self.config_path)
        logger.info(
            f"Loaded configuration from {self.config_path}",
            extra={"accounts": len(config.accounts)},
        )
        return config

    def _expand_env_vars(self, obj: Any, strict: bool = True) -> Any:
        """
        Recursively expand ${VAR_NAME} values.

        With strict=False an unset variable becomes a placeholder that fails
        validation where a real value is required.
        """
        if isinstance(obj, dict):
            return {key: self._expand_env_vars(value, strict) for key, value in obj.items()}
        elif isinstance(obj, list):
            return [self._expand_env_vars(item, strict) for item in obj]
        elif isinstance(obj, str):
            if obj.startswith("${") and obj.endswith("}"):
                var_name = obj[2:-1]
                env_value = os.getenv(var_name)
                if env_value is None:
                    if strict:
                        raise ValueError(f"Environment variable '{var_name}' not found")
                    return f"{MISSING_ENV_PREFIX}{var_name}__"
                return env_value
            return obj
        else:
            return obj

    def _parse_config(self, raw_config: Dict[str, Any]) -> Configuration:
        """Parse raw configuration dictionary into Configuration object."""
        try:
            accounts = [
                AccountConfig(
                    owner=account["owner"],
                    token=account["token"],
                    default_branch=account.get("default_branch", "main"),
                )
                for account in raw_config.get("accounts", [])
            ]

            github_data = raw_config.get("github", {})
            github = GitHubApiConfig(
                api_url=github_data.get("api_url", GitHubApiConfig.api_url),
                web_url=github_data.get("web_url", GitHubApiConfig.web_url),
                timeout=github_data.get("timeout", GitHubApiConfig.timeout),
            )

            storage_data = raw_config.get("storage", {})
            storage = StorageConfig(
                database_path=storage_data.get(
                    "database_path", StorageConfig.database_path
                )
            )

            logging_data = raw_config.get("logging", {})
            logging_config = LoggingConfig(
                level=logging_data.get("level", "INFO"),
                directory=logging_data.get("directory", "logs"),
            )

            return Configuration(
                accounts=accounts,
                default_account=raw_config.get("default_account"),
                github=github,
                storage=storage,
                logging=logging_config,
            )

        except KeyError as e:
            raise ValueError(f"Missing required configuration key: {e}") from e
        except (AttributeError, TypeError) as e:
            raise ValueError(f"Error parsing configuration: {e}") from e

    def get_config(self) -> Configuration:
        """
        Get current configuration, loading if necessary.

        Returns:
            Current configuration object.
        """
        if self._config is None:
            return self.load_config()
        return self._config

    def get_credentials(self, owner: Optional[str] = None) -> CredentialContext:
        """
        Build the credential context for an account.

        Args:
            owner: Account owner; the configured default account when None

        Raises:
            ValueError: If the account is not configured
        """
        config = self.get_config()
        account = config.get_account(owner)
        return CredentialContext(
            owner=account.owner,
            token=account.token,
            default_branch=account.default_branch,
            api_url=config.github.api_url.rstrip("/"),
            web_url=config.github.web_url.rstrip("/"),
        )

    def reload_if_changed(self) -> bool:
        """
        Reload configuration if file has been modified.

        Returns:
            True if configuration was reloaded, False otherwise.
        """
        if not os.path.exists(self.config_path):
            return False

        current_modified = os.path.getmtime(self.config_path)

        if self._last_modified is None or current_modified > self._last_modified:
            try:
                self.load_config()
                return True
            except ValueError as e:
                logger.warning(
                    "Configuration reload failed, keeping current configuration",
                    extra={"error": str(e)},
                )
                return False

        return False

    def validate_config_file(self, config_path: str) -> bool:
        """
        Validate a configuration file without loading it.

        Unset environment variables do not fail validation on their own,
        but an account token that depends on one does.

        Args:
            config_path: Path to configuration file to validate.

        Returns:
            True if configuration is valid.

        Raises:
            ValueError: If configuration is invalid with detailed error message.
        """
        if not os.path.exists(config_path):
            raise ValueError(f"Configuration file not found: {config_path}")

        try:
            raw_config = self._read_raw(config_path)
            raw_config = self._expand_env_vars(raw_config, strict=False)
            config = self._parse_config(raw_config)
            config.validate()
            return True
        except (OSError, yaml.YAMLError, json.JSONDecodeError, ValueError) as e:
            raise ValueError(f"Configuration validation failed: {e}") from e

    def get_config_template(self) -> Dict[str, Any]:
        """
        Get a template configuration dictionary.

        Returns:
            Dictionary with example configuration structure.
        """
        return {
            "default_account": "my-user",
            "accounts": [
                {
                    "owner": "my-user",
                    "token": "${GITHUB_TOKEN}",
                    "default_branch": "main",
                },
                {
                    "owner": "my-org",
                    "token": "${GITHUB_ORG_TOKEN}",
                    "default_branch": "develop",
                },
            ],
            "github": {
                "api_url": "https://api.github.com",
                "web_url": "https://github.com",
                "timeout": 30,
            },
            "storage": {"database_path": "~/.project-hub/staging.db"},
            "logging": {"level": "INFO", "directory": "logs"},
        }
