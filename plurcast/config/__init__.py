"""Configuration system for plurcast.

Key Components:
    - PlurcastSettings: Top-level settings with YAML loading support
    - CredentialSettings: Credential storage tier, paths and master password source

Example:
    >>> from plurcast.config import PlurcastSettings
    >>> settings = PlurcastSettings.from_yaml("~/.config/plurcast/config.yaml")
    >>> settings.credentials.storage
    <StorageBackend.KEYRING: 'keyring'>
"""

from plurcast.config.settings import CredentialSettings, PlurcastSettings

__all__ = ["CredentialSettings", "PlurcastSettings"]
