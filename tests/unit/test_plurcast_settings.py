"""Tests for plurcast/config/settings.py.

Tests cover:
- CredentialSettings validation and defaults
- Master password resolution
- PlurcastSettings loading from YAML
- Environment variable overrides and interpolation
- Error handling for missing and malformed files
"""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from plurcast.config import CredentialSettings, PlurcastSettings
from plurcast.config import settings as settings_module
from plurcast.enums import StorageBackend
from plurcast.exceptions import ConfigurationError


class TestCredentialSettings:
    """Test CredentialSettings validation."""

    def test_defaults(self):
        """Test keyring is the default tier."""
        config = CredentialSettings()

        assert config.storage == StorageBackend.KEYRING
        assert config.path == Path("~/.config/plurcast/credentials").expanduser()
        assert config.legacy_path == Path("~/.config/plurcast").expanduser()
        assert config.master_password_env == "PLURCAST_MASTER_PASSWORD"
        assert config.master_password is None

    @pytest.mark.parametrize("value", ["keyring", "Encrypted", " PLAIN "])
    def test_storage_normalized(self, value):
        """Test backend names are case- and whitespace-insensitive."""
        config = CredentialSettings(storage=value)

        assert config.storage.value == value.strip().lower()

    def test_unknown_storage_rejected(self):
        """Test unknown backend names fail validation."""
        with pytest.raises(ValidationError):
            CredentialSettings(storage="vault")

    @pytest.mark.parametrize("field", ["path", "legacy_path"])
    def test_empty_path_rejected(self, field):
        """Test an empty credential path is a configuration error."""
        with pytest.raises(ValidationError, match="cannot be empty"):
            CredentialSettings(**{field: "  "})

    def test_path_expands_home(self):
        """Test ~ is expanded."""
        config = CredentialSettings(path="~/secrets")

        assert config.path == Path.home() / "secrets"

    def test_master_password_not_in_dump(self):
        """Test the password is excluded from serialization and repr."""
        config = CredentialSettings(master_password="correct horse battery")

        assert "master_password" not in config.model_dump()
        assert "correct horse battery" not in repr(config)

    def test_resolve_prefers_settings_value(self, monkeypatch):
        """Test an explicit value wins over the environment."""
        monkeypatch.setenv("PLURCAST_MASTER_PASSWORD", "from-environment")
        config = CredentialSettings(master_password="from-settings")

        assert config.resolve_master_password() == "from-settings"

    def test_resolve_from_environment(self, monkeypatch):
        """Test the configured environment variable is read."""
        monkeypatch.setenv("MY_PLURCAST_PASS", "from-environment")
        config = CredentialSettings(master_password_env="MY_PLURCAST_PASS")

        assert config.resolve_master_password() == "from-environment"

    def test_resolve_empty_environment_is_none(self, monkeypatch):
        """Test an empty variable counts as unset."""
        monkeypatch.setenv("PLURCAST_MASTER_PASSWORD", "")

        assert CredentialSettings().resolve_master_password() is None


class TestPlurcastSettingsFromYaml:
    """Test PlurcastSettings.from_yaml."""

    def test_load_valid_file(self, tmp_path):
        """Test a complete configuration file."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            yaml.safe_dump(
                {
                    "credentials": {
                        "storage": "encrypted",
                        "path": str(tmp_path / "creds"),
                        "legacy_path": str(tmp_path / "legacy"),
                    },
                    "accounts_file": str(tmp_path / "accounts.yaml"),
                }
            )
        )

        settings = PlurcastSettings.from_yaml(config_file)

        assert settings.credentials.storage == StorageBackend.ENCRYPTED
        assert settings.credentials.path == tmp_path / "creds"
        assert settings.credentials.legacy_path == tmp_path / "legacy"
        assert settings.accounts_file == tmp_path / "accounts.yaml"

    def test_missing_default_file_uses_defaults(self, tmp_path, monkeypatch):
        """Test running before any configuration exists."""
        monkeypatch.setattr(settings_module, "DEFAULT_CONFIG_FILE", tmp_path / "absent.yaml")

        settings = PlurcastSettings.from_yaml()

        assert settings.credentials.storage == StorageBackend.KEYRING

    def test_missing_explicit_file_raises(self, tmp_path):
        """Test an explicit path that does not exist is an error."""
        with pytest.raises(ConfigurationError, match="Configuration file not found"):
            PlurcastSettings.from_yaml(tmp_path / "absent.yaml")

    def test_empty_file_uses_defaults(self, tmp_path):
        """Test an empty file is valid."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")

        settings = PlurcastSettings.from_yaml(config_file)

        assert settings.credentials.storage == StorageBackend.KEYRING

    def test_invalid_yaml(self, tmp_path):
        """Test YAML syntax errors are reported."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("credentials: [unclosed")

        with pytest.raises(ConfigurationError, match="Invalid YAML syntax"):
            PlurcastSettings.from_yaml(config_file)

    def test_non_mapping_rejected(self, tmp_path):
        """Test a top-level list is rejected."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- keyring\n- encrypted\n")

        with pytest.raises(ConfigurationError, match="YAML object"):
            PlurcastSettings.from_yaml(config_file)

    def test_validation_error_wrapped(self, tmp_path):
        """Test validation errors surface as ConfigurationError."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("credentials:\n  storage: vault\n")

        with pytest.raises(ConfigurationError, match="Failed to validate configuration"):
            PlurcastSettings.from_yaml(config_file)

    def test_env_var_interpolation(self, tmp_path, monkeypatch):
        """Test ${VAR} and ${VAR:-default} substitution."""
        monkeypatch.setenv("PLURCAST_TEST_DIR", str(tmp_path / "interpolated"))
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "credentials:\n"
            "  storage: ${PLURCAST_TEST_STORAGE:-encrypted}\n"
            "  path: ${PLURCAST_TEST_DIR}\n"
        )

        settings = PlurcastSettings.from_yaml(config_file)

        assert settings.credentials.storage == StorageBackend.ENCRYPTED
        assert settings.credentials.path == tmp_path / "interpolated"

    def test_missing_env_var_raises(self, tmp_path, monkeypatch):
        """Test a required variable that is unset is an error."""
        monkeypatch.delenv("PLURCAST_UNSET_VARIABLE", raising=False)
        config_file = tmp_path / "config.yaml"
        config_file.write_text("credentials:\n  path: ${PLURCAST_UNSET_VARIABLE}\n")

        with pytest.raises(ConfigurationError, match="PLURCAST_UNSET_VARIABLE"):
            PlurcastSettings.from_yaml(config_file)

    def test_comments_not_interpolated(self, tmp_path, monkeypatch):
        """Test placeholders in comment lines are left alone."""
        monkeypatch.delenv("PLURCAST_UNSET_VARIABLE", raising=False)
        config_file = tmp_path / "config.yaml"
        config_file.write_text("# path: ${PLURCAST_UNSET_VARIABLE}\ncredentials:\n  storage: plain\n")

        settings = PlurcastSettings.from_yaml(config_file)

        assert settings.credentials.storage == StorageBackend.PLAIN


class TestPlurcastSettingsEnvironment:
    """Test PLURCAST_* environment overrides."""

    def test_nested_env_override(self, monkeypatch):
        """Test PLURCAST_CREDENTIALS__STORAGE selects the backend."""
        monkeypatch.setenv("PLURCAST_CREDENTIALS__STORAGE", "encrypted")

        settings = PlurcastSettings()

        assert settings.credentials.storage == StorageBackend.ENCRYPTED

    def test_default_paths_expanded(self, monkeypatch, tmp_path):
        """Test every default path is resolved against the home directory."""
        monkeypatch.setenv("HOME", str(tmp_path))

        settings = PlurcastSettings()

        assert settings.credentials.path == tmp_path / ".config" / "plurcast" / "credentials"
        assert settings.credentials.legacy_path == tmp_path / ".config" / "plurcast"
        assert settings.accounts_file == tmp_path / ".config" / "plurcast" / "accounts.yaml"
        assert "~" not in str(settings.credentials.path)

    def test_accounts_file_env_override(self, monkeypatch, tmp_path):
        """Test the account state location can come from the environment."""
        monkeypatch.setenv("PLURCAST_ACCOUNTS_FILE", str(tmp_path / "state.yaml"))

        settings = PlurcastSettings()

        assert settings.accounts_file == tmp_path / "state.yaml"

    def test_yaml_overrides_environment(self, monkeypatch, tmp_path):
        """Test file values take priority over environment values."""
        monkeypatch.setenv("PLURCAST_ACCOUNTS_FILE", str(tmp_path / "from-env.yaml"))
        config_file = tmp_path / "config.yaml"
        config_file.write_text(f"accounts_file: {tmp_path / 'from-file.yaml'}\n")

        settings = PlurcastSettings.from_yaml(config_file)

        assert settings.accounts_file == tmp_path / "from-file.yaml"
