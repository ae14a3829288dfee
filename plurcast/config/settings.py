"""
Configuration system using Pydantic for type-safe settings management.

This module provides the settings consumed by the credential subsystem and the
``plur-creds`` command: which storage tier to use, where encrypted and legacy
plaintext files live, where the master password comes from, and where account
state is kept.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from plurcast.enums import StorageBackend
from plurcast.exceptions import ConfigurationError

DEFAULT_CONFIG_FILE = Path("~/.config/plurcast/config.yaml")


class CredentialSettings(BaseModel):
    """Credential storage configuration.

    Example YAML:
        credentials:
          storage: encrypted
          path: ~/.config/plurcast/credentials
          master_password_env: PLURCAST_MASTER_PASSWORD
    """

    storage: StorageBackend = Field(default=StorageBackend.KEYRING, description="Preferred storage backend")
    path: Path = Field(
        default=Path("~/.config/plurcast/credentials"),
        description="Directory for encrypted credential files",
        validate_default=True,
    )
    legacy_path: Path = Field(
        default=Path("~/.config/plurcast"),
        description="Directory holding legacy plaintext credential files",
        validate_default=True,
    )
    master_password_env: str = Field(
        default="PLURCAST_MASTER_PASSWORD",
        description="Environment variable supplying the master password",
    )
    master_password: SecretStr | None = Field(
        default=None,
        exclude=True,
        description="Master password (prefer the environment variable)",
    )

    @field_validator("path", "legacy_path", mode="before")
    @classmethod
    def validate_path(cls, value: object) -> object:
        """Reject empty paths and expand ``~``."""
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("Credential path cannot be empty")
        return Path(value).expanduser() if isinstance(value, (str, Path)) else value

    @field_validator("storage", mode="before")
    @classmethod
    def normalize_storage(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    def resolve_master_password(self) -> str | None:
        """Master password from settings, falling back to the environment."""
        if self.master_password is not None:
            return self.master_password.get_secret_value()
        return os.getenv(self.master_password_env) or None


class PlurcastSettings(BaseSettings):
    """Top-level plurcast settings.

    Values come from, in increasing priority: defaults, ``PLURCAST_*``
    environment variables (``__`` separates nested keys, e.g.
    ``PLURCAST_CREDENTIALS__STORAGE=encrypted``), and the YAML file passed
    to ``from_yaml``.
    """

    model_config = SettingsConfigDict(
        env_prefix="PLURCAST_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    credentials: CredentialSettings = Field(default_factory=CredentialSettings)
    accounts_file: Path = Field(
        default=Path("~/.config/plurcast/accounts.yaml"),
        description="Account state file (active and registered account names)",
        validate_default=True,
    )

    @field_validator("accounts_file", mode="after")
    @classmethod
    def expand_accounts_file(cls, value: Path) -> Path:
        return value.expanduser()

    @classmethod
    def from_yaml(cls, config_path: str | Path | None = None) -> PlurcastSettings:
        """Load settings from YAML file with environment variable interpolation.

        Supports ${VAR_NAME} and ${VAR_NAME:-default} substitution. A missing
        file yields defaults, so the credential tooling works before any
        configuration has been written.

        Args:
            config_path: Path to YAML configuration file
                (default: ~/.config/plurcast/config.yaml)

        Returns:
            PlurcastSettings instance

        Raises:
            ConfigurationError: If config file is unreadable or invalid
        """
        config_file = Path(config_path).expanduser() if config_path else DEFAULT_CONFIG_FILE.expanduser()
        if not config_file.exists():
            if config_path:
                raise ConfigurationError(f"Configuration file not found: {config_path}")
            return cls()

        try:
            yaml_content = config_file.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_file}") from e

        try:
            yaml_content = cls._interpolate_env_vars(yaml_content)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        try:
            config_dict = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_file}: {e}") from e

        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")

        try:
            return cls(**config_dict)
        except ValidationError as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}") from e

    @staticmethod
    def _interpolate_env_vars(content: str) -> str:
        """Interpolate ${VAR_NAME} placeholders with environment variables.

        Supports two syntaxes:
        - ${VAR_NAME} - Required environment variable (raises if not set)
        - ${VAR_NAME:-default} - Optional with default value

        YAML comment lines are left unchanged.

        Raises:
            ValueError: If a required environment variable is not set
        """
        pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            value = os.getenv(var_name)

            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                raise ValueError(f"Environment variable {var_name} is not set")

        def process_line(line: str) -> str:
            if line.lstrip().startswith("#"):
                return line
            return pattern.sub(replace_var, line)

        return "\n".join(process_line(line) for line in content.split("\n"))
