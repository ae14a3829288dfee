"""Credential manager: ordered backends with fallback and migration.

Backend Order:
    Built once from configuration and never changed afterwards:
    1. Keyring (if selected and available)
    2. Encrypted files (if selected, or when the keyring was selected but
       is unavailable)
    3. Plaintext files (always last, for legacy credentials)

Fallback Policy:
    - store: first backend only; its error propagates
    - retrieve: CredentialNotFoundError and KeyringUnavailableError move on
      to the next backend; any other error stops the search and is raised
      as-is (a wrong master password must not look like a missing credential)
    - delete: every backend is attempted and failures are collected
"""

import asyncio
import hmac
import weakref
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

import structlog

from plurcast.accounts.manager import DEFAULT_ACCOUNT, AccountManager
from plurcast.config.settings import PlurcastSettings
from plurcast.enums import Platform, StorageBackend
from plurcast.exceptions import (
    AccountError,
    BackendNotAvailableError,
    CredentialDeleteError,
    CredentialError,
    CredentialIOError,
    CredentialNotFoundError,
    KeyringUnavailableError,
    MigrationFailedError,
    NoStoreAvailableError,
)
from plurcast.utils.terminal import stdin_is_tty

from .backend import CredentialId, CredentialStore
from .encrypted_backend import EncryptedFileBackend
from .keyring_backend import KeyringBackend
from .migration import MigrationReport
from .plain_backend import PlainFileBackend
from .secret import MasterPassword

log = structlog.get_logger(__name__)

_PLATFORM_BY_SERVICE = {platform.service: platform.value for platform in Platform}


def _clear_secrets(holders: tuple[MasterPassword, ...]) -> None:
    for holder in holders:
        holder.clear()


class CredentialManager(CredentialStore):
    """Facade over an ordered list of credential backends.

    The manager is itself a CredentialStore, so callers use the same
    account-aware and single-account methods as with a single backend.

    Example:
        >>> settings = PlurcastSettings.from_yaml()
        >>> with CredentialManager.from_settings(settings) as manager:
        ...     manager.store_account("plurcast.nostr", "private_key", "test", "nsec1...")
        ...     manager.retrieve_account("plurcast.nostr", "private_key", "test")
        'nsec1...'
    """

    def __init__(
        self,
        backends: Sequence[CredentialStore],
        account_manager: AccountManager | None = None,
    ) -> None:
        """Initialize manager.

        Args:
            backends: Backends in priority order
            account_manager: Source of active accounts and registered names

        Raises:
            NoStoreAvailableError: If no backend is given
        """
        if not backends:
            raise NoStoreAvailableError()

        self._backends: tuple[CredentialStore, ...] = tuple(backends)
        self.account_manager = account_manager

        holders = tuple(b.master_password for b in self._backends if isinstance(b, EncryptedFileBackend))
        # Wipes the master password on close(), garbage collection or interpreter exit
        self._finalizer = weakref.finalize(self, _clear_secrets, holders)

        log.debug("credential_manager_initialized", backends=self.backends())

    @classmethod
    def from_settings(
        cls,
        settings: PlurcastSettings,
        password_prompt: Callable[[], str] | None = None,
        account_manager: AccountManager | None = None,
    ) -> "CredentialManager":
        """Build the backend list from configuration.

        The master password for encrypted storage is taken from
        ``credentials.master_password``, then the configured environment
        variable, then ``password_prompt`` when stdin is a terminal. If none
        yields a password the encrypted backend is still configured and
        stores fail with MasterPasswordNotSetError until one is set.

        Raises:
            WeakPasswordError: If the supplied master password is too short
        """
        config = settings.credentials
        backends: list[CredentialStore] = []
        use_encrypted = config.storage == StorageBackend.ENCRYPTED

        if config.storage == StorageBackend.KEYRING:
            keyring_backend = KeyringBackend()
            if keyring_backend.available:
                backends.append(keyring_backend)
            else:
                log.warning("keyring_unavailable", fallback="encrypted_file")
                use_encrypted = True

        if use_encrypted:
            master_password = MasterPassword()
            password = config.resolve_master_password()
            if password is None and password_prompt is not None and stdin_is_tty():
                password = password_prompt()
            if password:
                master_password.set(password)
            else:
                log.warning("master_password_not_set", env_var=config.master_password_env)
            backends.append(EncryptedFileBackend(config.path, master_password))

        backends.append(PlainFileBackend(config.legacy_path))

        if account_manager is None:
            account_manager = AccountManager(settings.accounts_file)
        return cls(backends, account_manager=account_manager)

    @property
    def name(self) -> str:
        return "manager"

    def __enter__(self) -> "CredentialManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Wipe cached master passwords. The manager is unusable for encrypted storage afterwards."""
        self._finalizer()

    def backends(self) -> list[str]:
        """Backend names in priority order."""
        return [backend.name for backend in self._backends]

    def primary_backend(self) -> CredentialStore:
        """The backend that receives every store."""
        return self._backends[0]

    def is_insecure(self) -> bool:
        """True when new credentials would be written in plaintext."""
        return isinstance(self.primary_backend(), PlainFileBackend)

    def set_master_password(self, password: str) -> None:
        """Set the master password on every encrypted backend.

        Raises:
            WeakPasswordError: If the password is shorter than 8 characters
            BackendNotAvailableError: If encrypted storage is not configured
        """
        encrypted = [b for b in self._backends if isinstance(b, EncryptedFileBackend)]
        if not encrypted:
            raise BackendNotAvailableError(
                "Encrypted storage is not configured",
                suggestion="Set credentials.storage to 'encrypted'",
            )
        for backend in encrypted:
            backend.set_master_password(password)

    def resolve_account(self, platform: str, account: str | None = None) -> str:
        """Account to use for a platform: ``account`` if given, else the active one.

        Raises:
            InvalidAccountNameError: If ``account`` is malformed
        """
        if account is not None:
            AccountManager.validate_account_name(account)
            return account
        if self.account_manager is None:
            return DEFAULT_ACCOUNT
        return self.account_manager.get_active_account(platform)

    # CredentialStore implementation

    def store_account(self, service: str, key: str, account: str, value: str) -> None:
        AccountManager.validate_account_name(account)
        backend = self.primary_backend()
        backend.store_account(service, key, account, value)
        log.info("credential_stored", backend=backend.name, service=service, key=key, account=account)

    def retrieve_account(self, service: str, key: str, account: str) -> str:
        AccountManager.validate_account_name(account)
        cred = CredentialId(service, key, account)

        for backend in self._backends:
            try:
                value = backend.retrieve_account(service, key, account)
            except CredentialNotFoundError:
                log.debug("credential_not_in_backend", backend=backend.name, credential=str(cred))
                continue
            except KeyringUnavailableError as e:
                log.debug("backend_unavailable", backend=backend.name, error=e.message)
                continue

            log.debug("credential_resolved", backend=backend.name, credential=str(cred))
            return value

        raise CredentialNotFoundError(
            f"Credential not found in any backend ({', '.join(self.backends())})",
            reference=str(cred),
            suggestion="Store it with 'plur-creds set'",
        )

    def delete_account(self, service: str, key: str, account: str) -> None:
        AccountManager.validate_account_name(account)
        cred = CredentialId(service, key, account)
        errors: dict[str, CredentialError] = {}
        deleted: list[str] = []

        for backend in self._backends:
            try:
                backend.delete_account(service, key, account)
            except CredentialNotFoundError:
                continue
            except KeyringUnavailableError as e:
                log.debug("backend_unavailable", backend=backend.name, error=e.message)
                continue
            except CredentialError as e:
                errors[backend.name] = e
                continue
            deleted.append(backend.name)

        if errors:
            log.error("credential_delete_failed", credential=str(cred), backends=sorted(errors), deleted=deleted)
            raise CredentialDeleteError(str(cred), errors)

        if not deleted:
            raise CredentialNotFoundError("Credential not found in any backend", reference=str(cred))

        log.info("credential_deleted", credential=str(cred), backends=deleted)

    def exists_account(self, service: str, key: str, account: str) -> bool:
        AccountManager.validate_account_name(account)
        return self.find_backend(service, key, account) is not None

    def find_backend(self, service: str, key: str, account: str) -> str | None:
        """Name of the first backend holding the credential, or None."""
        for backend in self._backends:
            try:
                if backend.exists_account(service, key, account):
                    return backend.name
            except KeyringUnavailableError:
                continue
        return None

    def list_accounts(self, service: str, key: str) -> list[str]:
        accounts: set[str] = set()
        for backend in self._backends:
            accounts.update(backend.list_accounts(service, key))

        # Keyring entries cannot be enumerated; check the registered names
        if self.account_manager is not None:
            platform = _PLATFORM_BY_SERVICE.get(service, service)
            for account in self.account_manager.list_accounts(platform):
                if account not in accounts and self.exists_account(service, key, account):
                    accounts.add(account)
            if DEFAULT_ACCOUNT not in accounts and self.exists_account(service, key, DEFAULT_ACCOUNT):
                accounts.add(DEFAULT_ACCOUNT)

        return sorted(accounts)

    # Async wrappers: keyring and file access block, so run them off the event loop

    async def astore(self, service: str, key: str, value: str, account: str = DEFAULT_ACCOUNT) -> None:
        await asyncio.to_thread(self.store_account, service, key, account, value)

    async def aretrieve(self, service: str, key: str, account: str = DEFAULT_ACCOUNT) -> str:
        return await asyncio.to_thread(self.retrieve_account, service, key, account)

    async def aexists(self, service: str, key: str, account: str = DEFAULT_ACCOUNT) -> bool:
        return await asyncio.to_thread(self.exists_account, service, key, account)

    # Migration

    def _plain_backend(self) -> PlainFileBackend | None:
        for backend in self._backends:
            if isinstance(backend, PlainFileBackend):
                return backend
        return None

    def detect_plain_credentials(self) -> list[CredentialId]:
        """Plaintext credentials of known platforms present on disk."""
        plain = self._plain_backend()
        if plain is None:
            return []
        return [cred for cred, _path in plain.discover()]

    def plain_credential_files(self) -> list[Path]:
        """Paths of the plaintext credential files present on disk."""
        plain = self._plain_backend()
        if plain is None:
            return []
        return [path for _cred, path in plain.discover()]

    def migrate_from_plain(self) -> MigrationReport:
        """Copy plaintext credentials into the primary secure backend.

        Each credential is stored through ``store_account`` and read back
        through ``retrieve_account``; it is reported as migrated only if the
        value read back is identical. Credentials the primary backend
        already holds are skipped. Plaintext files are never modified.

        Returns:
            Report of migrated, failed and skipped credentials

        Raises:
            MigrationFailedError: If the primary backend is plaintext
        """
        primary = self.primary_backend()
        if self.is_insecure():
            raise MigrationFailedError(
                "No secure storage backend available",
                suggestion="Configure 'keyring' or 'encrypted' storage before migrating",
            )

        plain = self._plain_backend()
        report = MigrationReport()
        if plain is None:
            return report

        for cred in self.detect_plain_credentials():
            try:
                if primary.exists_account(*cred):
                    report.skipped.append(cred)
                    log.info("migration_skipped", credential=str(cred), backend=primary.name)
                    continue

                value = plain.retrieve_account(*cred)
                self.store_account(cred.service, cred.key, cred.account, value)
                stored = self.retrieve_account(*cred)
            except (CredentialError, AccountError) as e:
                report.failed.append((cred, e.message))
                log.warning("migration_failed", credential=str(cred), error=e.message)
                continue

            if not hmac.compare_digest(stored.encode("utf-8"), value.encode("utf-8")):
                report.failed.append((cred, "Verification failed: stored value does not match the original"))
                log.warning("migration_verification_failed", credential=str(cred), backend=primary.name)
                continue

            report.migrated.append(cred)
            log.info("credential_migrated", credential=str(cred), backend=primary.name)

        log.info(
            "migration_completed",
            migrated=len(report.migrated),
            failed=len(report.failed),
            skipped=len(report.skipped),
        )
        return report

    def cleanup_plain_files(self, migrated: Iterable[CredentialId]) -> list[CredentialId]:
        """Delete plaintext sources of migrated credentials.

        Each credential is verified again against the primary backend
        before its plaintext file is removed; mismatches are left in place.

        Returns:
            Credentials whose plaintext file was deleted

        Raises:
            CredentialIOError: If a plaintext file cannot be deleted
        """
        plain = self._plain_backend()
        if plain is None or self.is_insecure():
            return []

        primary = self.primary_backend()
        removed: list[CredentialId] = []
        for cred in migrated:
            try:
                original = plain.retrieve_account(*cred)
                secure = primary.retrieve_account(*cred)
            except CredentialNotFoundError:
                log.warning("cleanup_skipped", credential=str(cred), reason="missing")
                continue

            if not hmac.compare_digest(original.encode("utf-8"), secure.encode("utf-8")):
                log.warning("cleanup_skipped", credential=str(cred), reason="mismatch")
                continue

            try:
                plain.delete_account(*cred)
            except CredentialNotFoundError:
                continue
            except CredentialIOError:
                log.error("cleanup_failed", credential=str(cred))
                raise

            removed.append(cred)
            log.info("plaintext_credential_removed", credential=str(cred))

        return removed
