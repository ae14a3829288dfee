"""OS-level keyring backend using system credential stores.

Platform Support:
- Linux: Secret Service API (GNOME Keyring, KWallet)
- macOS: Keychain
- Windows: Windows Credential Locker

Namespace:
    The service passed to the OS is ``"{service}.{account}"`` (for example
    ``plurcast.nostr.test``); the username is the credential key unchanged.
"""

from typing import cast

import structlog

try:
    import keyring
    from keyring.backends import chainer, fail
    from keyring.errors import InitError, KeyringError, KeyringLocked, NoKeyringError, PasswordDeleteError

    KEYRING_AVAILABLE = True
except ImportError:
    KEYRING_AVAILABLE = False

from plurcast.exceptions import (
    CredentialNotFoundError,
    KeyringUnavailableError,
)
from plurcast.exceptions import KeyringError as KeyringOperationError

from .backend import CredentialId, CredentialStore

log = structlog.get_logger(__name__)


class KeyringBackend(CredentialStore):
    """OS-level credential storage using the system keyring.

    This is the recommended backend for workstations as it:
    - Integrates with OS security features
    - Supports biometric unlock (Touch ID, Windows Hello)
    - Provides automatic encryption at rest

    When the secret service cannot be reached (headless Linux without a
    Secret Service daemon, locked keychain, missing package) every
    operation raises KeyringUnavailableError, which the credential manager
    treats as "try the next backend".

    The OS APIs cannot enumerate entries, so ``list_accounts`` always
    returns an empty list; the account manager is the registry of names.

    Example:
        >>> backend = KeyringBackend()
        >>> backend.store_account('plurcast.nostr', 'private_key', 'test', 'nsec1...')
        >>> backend.retrieve_account('plurcast.nostr', 'private_key', 'test')
        'nsec1...'
    """

    @property
    def name(self) -> str:
        return "keyring"

    @property
    def available(self) -> bool:
        """Check if a functional keyring is configured.

        Returns False if:
        - keyring package not installed
        - No backend configured (headless systems)
        - Backend fails to initialize
        """
        if not KEYRING_AVAILABLE:
            return False

        try:
            backend = keyring.get_keyring()
        except Exception as e:
            log.debug("keyring_probe_failed", error=str(e))
            return False

        if isinstance(backend, fail.Keyring):
            return False
        if isinstance(backend, chainer.ChainerBackend) and not backend.backends:
            return False
        return True

    @staticmethod
    def keyring_service(service: str, account: str) -> str:
        """Service string handed to the OS keyring."""
        return f"{service}.{account}"

    def _ensure_available(self, cred: CredentialId) -> None:
        if not self.available:
            raise KeyringUnavailableError(
                "OS keyring not accessible",
                reference=str(cred),
                suggestion="Install and unlock a Secret Service provider, or set storage to 'encrypted'",
                backend=self.name,
            )

    def _translate(self, e: Exception, action: str, cred: CredentialId) -> Exception:
        """Map keyring library errors onto the credential hierarchy."""
        if isinstance(e, (NoKeyringError, InitError, KeyringLocked)):
            return KeyringUnavailableError(f"OS keyring unavailable: {e}", reference=str(cred), backend=self.name)
        return KeyringOperationError(f"Failed to {action} credential: {e}", reference=str(cred), backend=self.name)

    def store_account(self, service: str, key: str, account: str, value: str) -> None:
        cred = CredentialId(service, key, account)
        self._ensure_available(cred)

        try:
            keyring.set_password(self.keyring_service(service, account), key, value)
        except KeyringError as e:
            raise self._translate(e, "store", cred) from e

        log.debug("credential_stored", backend=self.name, service=service, key=key, account=account)

    def retrieve_account(self, service: str, key: str, account: str) -> str:
        cred = CredentialId(service, key, account)
        self._ensure_available(cred)

        try:
            credential = cast(str | None, keyring.get_password(self.keyring_service(service, account), key))
        except KeyringError as e:
            raise self._translate(e, "retrieve", cred) from e

        if credential is None:
            raise CredentialNotFoundError("Credential not found in keyring", reference=str(cred), backend=self.name)

        log.debug("credential_retrieved", backend=self.name, service=service, key=key, account=account)
        return credential

    def delete_account(self, service: str, key: str, account: str) -> None:
        cred = CredentialId(service, key, account)
        self._ensure_available(cred)

        try:
            keyring.delete_password(self.keyring_service(service, account), key)
        except PasswordDeleteError as e:
            raise CredentialNotFoundError(
                "Credential not found in keyring", reference=str(cred), backend=self.name
            ) from e
        except KeyringError as e:
            raise self._translate(e, "delete", cred) from e

        log.debug("credential_deleted", backend=self.name, service=service, key=key, account=account)

    def exists_account(self, service: str, key: str, account: str) -> bool:
        try:
            self.retrieve_account(service, key, account)
        except CredentialNotFoundError:
            return False
        return True

    def list_accounts(self, service: str, key: str) -> list[str]:
        return []
