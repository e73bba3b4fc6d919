"""Configuration management for Resource Explorer setup.

This module handles YAML configuration loading, validation, and
environment variable override support. The resulting Configuration is
passed explicitly to the orchestrator; nothing below it reads the
environment.
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
import yaml


DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "default.yaml"
DEFAULT_POLICY_TEMPLATE = (
    Path(__file__).resolve().parent.parent / "policies" / "resource_lister_policy.json"
)

# Environment variable -> dotted configuration key
ENVIRONMENT_OVERRIDES = (
    ("AWS_PROFILE", "aws.profile_name"),
    ("HOME_REGION", "aws.home_region"),
    ("ROOT_ACCOUNT_ID", "organization.root_account_id"),
    ("MEMBER_ACCOUNTS", "organization.member_accounts"),
    ("GOOGLE_AUDIENCE_ID", "federation.audience"),
    ("FEDERATION_AUDIENCE", "federation.audience"),
    ("LOG_LEVEL", "logging.level"),
)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


class Configuration:
    """Configuration management with YAML loading and validation.

    This class handles loading configuration from YAML files (or an
    in-memory mapping), validating the structure, and supporting
    environment variable overrides.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        apply_environment: bool = True,
    ) -> None:
        """Initialize configuration manager.

        Args:
            config_path: Optional path to configuration file.
                        If None, auto-detects config.yaml in current directory
                        and falls back to the packaged defaults.
            data: Optional configuration mapping used instead of a file
            apply_environment: Whether environment variables override values

        Raises:
            ConfigurationError: When configuration file is invalid
        """
        self._config: Dict[str, Any] = {}
        if data is not None:
            self._config_path = None
            self._config = _copy_sections(data)
        else:
            self._config_path = self._resolve_config_path(config_path)
            self._load_configuration()
        if apply_environment:
            self._apply_environment_overrides()
        self._validate_configuration()

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        """Resolve configuration file path.

        Args:
            config_path: Optional path to configuration file

        Returns:
            Resolved Path object to configuration file

        Raises:
            ConfigurationError: When configuration file not found
        """
        config_path = config_path or os.environ.get("RESOURCE_EXPLORER_CONFIG")
        if config_path:
            path = Path(config_path)
        else:
            path = Path("config.yaml")
            if not path.exists():
                path = Path("config/settings.yaml")
            if not path.exists():
                path = DEFAULT_CONFIG_PATH

        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}. "
                "Please create a configuration file or specify a valid path."
            )

        return path

    def _load_configuration(self) -> None:
        """Load configuration from YAML file.

        Raises:
            ConfigurationError: When YAML file is invalid
        """
        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                self._config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file {self._config_path}: {e}"
            )
        except IOError as e:
            raise ConfigurationError(
                f"Unable to read configuration file {self._config_path}: {e}"
            )

        if not isinstance(self._config, dict):
            raise ConfigurationError(
                f"Configuration file {self._config_path} must contain a mapping"
            )

    def _validate_configuration(self) -> None:
        """Validate configuration has required fields.

        Raises:
            ConfigurationError: When required fields are missing
        """
        if "aws" not in self._config:
            raise ConfigurationError("Required configuration section 'aws' is missing")

        for section in ("aws", "organization", "federation", "lister_role",
                        "resource_explorer", "logging"):
            value = self._config.get(section)
            if value is not None and not isinstance(value, dict):
                raise ConfigurationError(f"Section '{section}' must be a mapping")

        aws_config = self._config["aws"] or {}
        if "home_region" not in aws_config:
            raise ConfigurationError("Required field 'aws.home_region' is missing")

        home_region = aws_config["home_region"]
        if not isinstance(home_region, str) or not home_region:
            raise ConfigurationError("Field 'aws.home_region' must be a non-empty string")

        # YAML reads unquoted account ids as integers
        root_account_id = self.get("organization.root_account_id")
        if isinstance(root_account_id, int) and not isinstance(root_account_id, bool):
            self._set_nested_value(
                "organization.root_account_id", str(root_account_id).zfill(12)
            )
        elif root_account_id is not None and not isinstance(root_account_id, str):
            raise ConfigurationError(
                "Field 'organization.root_account_id' must be a string"
            )

        member_accounts = self.get("organization.member_accounts")
        if member_accounts is not None:
            self._set_nested_value(
                "organization.member_accounts", _parse_member_accounts(member_accounts)
            )

        tags = self.get("lister_role.tags")
        if tags is not None and not isinstance(tags, dict):
            raise ConfigurationError("Field 'lister_role.tags' must be a mapping")

        for flag in ("resource_explorer.skip_aggregator",
                     "resource_explorer.skip_default_view"):
            value = self.get(flag)
            if value is not None and not isinstance(value, bool):
                raise ConfigurationError(f"Field '{flag}' must be a boolean")

        level = self.get("logging.level")
        if level is not None and not isinstance(
            logging.getLevelName(str(level).upper()), int
        ):
            raise ConfigurationError(f"Field 'logging.level' is not a log level: {level}")

    def _apply_environment_overrides(self) -> None:
        """Apply environment variable overrides to configuration."""
        for variable, key_path in ENVIRONMENT_OVERRIDES:
            if os.environ.get(variable):
                self._set_nested_value(key_path, os.environ[variable])

    def _set_nested_value(self, key_path: str, value: Any) -> None:
        """Set nested configuration value using dot notation.

        Args:
            key_path: Dot-separated key path (e.g., 'aws.home_region')
            value: Value to set
        """
        keys = key_path.split(".")
        current = self._config

        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def set(self, key_path: str, value: Any) -> None:
        """Override a configuration value using dot notation.

        Args:
            key_path: Dot-separated key path (e.g., 'aws.home_region')
            value: Value to set
        """
        self._set_nested_value(key_path, value)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key_path: Dot-separated key path (e.g., 'aws.home_region')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split(".")
        current = self._config

        try:
            for key in keys:
                current = current[key]
        except (KeyError, TypeError):
            return default
        return default if current is None else current

    def get_home_region(self) -> str:
        """Get the aggregator-home region.

        Returns:
            Region that receives the aggregator index and default view
        """
        return self.get("aws.home_region")

    def get_control_region(self) -> str:
        """Get the region used for global APIs (STS, IAM, Organizations, Account)."""
        return self.get("aws.control_region", "us-east-1")

    def get_profile_name(self) -> Optional[str]:
        """Get the AWS profile name, if configured."""
        return self.get("aws.profile_name")

    def get_root_account_id(self) -> str:
        """Get the root/management account id (empty when not configured)."""
        return self.get("organization.root_account_id", "")

    def get_member_accounts(self) -> Optional[List[str]]:
        """Get the configured member account list.

        Returns:
            Account ids to process when an invocation names none, or None
            to fall back to discovery
        """
        return self.get("organization.member_accounts")

    def get_access_role_name(self) -> str:
        """Get the cross-account role assumed in member accounts."""
        return self.get("organization.access_role_name", "OrganizationAccountAccessRole")

    def get_session_name(self) -> str:
        """Get the role session name used for cross-account access."""
        return self.get("organization.session_name", "ResourceExplorerSetup")

    def get_federation_audience(self) -> str:
        """Get the audience claim trusted by the federated lister role."""
        return self.get("federation.audience", "")

    def get_federation_provider(self) -> str:
        """Get the web identity provider trusted by the lister role."""
        return self.get("federation.provider", "accounts.google.com")

    def get_lister_role_name(self) -> str:
        return self.get("lister_role.role_name", "P0RoleIamResourceLister")

    def get_lister_policy_name(self) -> str:
        return self.get("lister_role.policy_name", "P0RoleIamResourceListerPolicy")

    def get_policy_template_path(self) -> Path:
        """Get the inline policy template path.

        Returns:
            Configured template path, or the packaged template
        """
        template = self.get("lister_role.policy_template")
        return Path(template) if template else DEFAULT_POLICY_TEMPLATE

    def get_lister_role_tags(self) -> Dict[str, str]:
        tags = self.get("lister_role.tags", {"P0Security": "Managed by Lambda"})
        return {str(key): str(value) for key, value in tags.items()}

    def get_view_name(self) -> str:
        """Get the name of the default view created in the aggregator region."""
        return self.get("resource_explorer.view_name", "all-resources-p0")

    def get_skip_aggregator(self) -> bool:
        return self.get("resource_explorer.skip_aggregator", False)

    def get_skip_default_view(self) -> bool:
        return self.get("resource_explorer.skip_default_view", False)

    def get_log_level(self) -> str:
        return str(self.get("logging.level", "INFO")).upper()


def _parse_member_accounts(value: Any) -> List[str]:
    """Normalise a member account list, accepting a JSON-encoded string."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError as e:
            raise ConfigurationError(
                f"Field 'organization.member_accounts' is not a valid JSON list: {e}"
            ) from e

    if not isinstance(value, list) or any(
        isinstance(item, bool) or not isinstance(item, (str, int)) for item in value
    ):
        raise ConfigurationError(
            "Field 'organization.member_accounts' must be a list of account ids"
        )
    return [str(item).zfill(12) if isinstance(item, int) else item for item in value]


def _copy_sections(data: Dict[str, Any]) -> Dict[str, Any]:
    """Copy a configuration mapping one level deep so overrides never leak."""
    return {
        key: dict(value) if isinstance(value, dict) else value
        for key, value in data.items()
    }
