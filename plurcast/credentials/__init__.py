"""Secure multi-backend credential storage for plurcast.

This package provides:
- Three storage backends (OS keyring, encrypted files, legacy plaintext files)
- A manager that orders them, falls back on retrieval and migrates plaintext
  credentials into secure storage
- Multi-account namespacing: every credential is keyed by
  (service, key, account), with ``default`` used when no account is given

Example usage:

    from plurcast.config import PlurcastSettings
    from plurcast.credentials import CredentialManager

    settings = PlurcastSettings.from_yaml()
    with CredentialManager.from_settings(settings) as manager:
        manager.store_account('plurcast.nostr', 'private_key', 'test', 'nsec1...')
        report = manager.migrate_from_plain()
"""

from .backend import CredentialId, CredentialStore
from .encrypted_backend import EncryptedFileBackend
from .keyring_backend import KeyringBackend
from .manager import CredentialManager
from .migration import MigrationReport
from .plain_backend import PlainFileBackend
from .secret import MasterPassword

__all__ = [
    # Backends
    "CredentialStore",
    "KeyringBackend",
    "EncryptedFileBackend",
    "PlainFileBackend",
    # Manager
    "CredentialManager",
    "CredentialId",
    "MigrationReport",
    "MasterPassword",
]
