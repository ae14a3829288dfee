"""Abstract base class for credential storage backends."""

from abc import ABC, abstractmethod
from typing import NamedTuple

from plurcast.accounts.manager import DEFAULT_ACCOUNT


class CredentialId(NamedTuple):
    """Identifier of one stored credential.

    The value itself is never part of an identifier, so ids are safe to log
    and to put in reports and error messages.
    """

    service: str
    key: str
    account: str = DEFAULT_ACCOUNT

    def __str__(self) -> str:
        return f"{self.service}/{self.key}[{self.account}]"


class CredentialStore(ABC):
    """Interface all credential storage backends implement.

    Backends implement the account-aware methods. The single-account
    methods (``store``, ``retrieve``, ``delete``, ``exists``) are defined
    here once, in terms of the account-aware ones with the ``default``
    account, and must not be overridden: that keeps pre-multi-account data
    and the ``default`` account in the same namespace for every backend.

    Error contract:
        - ``retrieve_account`` and ``delete_account`` raise
          CredentialNotFoundError when the credential is absent.
        - Any other failure raises a different CredentialError subclass
          (KeyringUnavailableError, DecryptionFailedError, ...), never
          CredentialNotFoundError.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier (e.g., 'keyring', 'encrypted_file')."""

    def backend_name(self) -> str:
        """Backend name for diagnostics."""
        return self.name

    @abstractmethod
    def store_account(self, service: str, key: str, account: str, value: str) -> None:
        """Store a credential, replacing any existing value.

        Args:
            service: Service namespace (e.g., 'plurcast.nostr')
            key: Credential type (e.g., 'private_key')
            account: Account name within the service
            value: Secret value
        """

    @abstractmethod
    def retrieve_account(self, service: str, key: str, account: str) -> str:
        """Retrieve a credential.

        Raises:
            CredentialNotFoundError: If the credential is absent
        """

    @abstractmethod
    def delete_account(self, service: str, key: str, account: str) -> None:
        """Delete a credential.

        Raises:
            CredentialNotFoundError: If the credential is absent
        """

    @abstractmethod
    def exists_account(self, service: str, key: str, account: str) -> bool:
        """Return True if the credential is stored in this backend."""

    @abstractmethod
    def list_accounts(self, service: str, key: str) -> list[str]:
        """Return account names with a stored credential for (service, key)."""

    # Single-account convenience methods

    def store(self, service: str, key: str, value: str) -> None:
        self.store_account(service, key, DEFAULT_ACCOUNT, value)

    def retrieve(self, service: str, key: str) -> str:
        return self.retrieve_account(service, key, DEFAULT_ACCOUNT)

    def delete(self, service: str, key: str) -> None:
        self.delete_account(service, key, DEFAULT_ACCOUNT)

    def exists(self, service: str, key: str) -> bool:
        return self.exists_account(service, key, DEFAULT_ACCOUNT)
