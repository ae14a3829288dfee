"""Plaintext file backend kept for backward compatibility.

WARNING: credentials handled by this backend are stored unencrypted and are
protected only by file permissions (0600). It exists so that installations
predating secure storage keep working; use ``plur-creds migrate`` to move
them into the keyring or encrypted storage.

File Mapping:
    Historical single-account files, default account only:
    - plurcast.nostr / private_key      -> nostr.keys
    - plurcast.mastodon / access_token  -> mastodon.token
    - plurcast.bluesky / app_password   -> bluesky.auth
    Everything else: ``{service}.{account}.{key}``
"""

import threading
from pathlib import Path

import structlog

from plurcast.enums import Platform
from plurcast.exceptions import CredentialIOError, CredentialNotFoundError, InvalidInputError
from plurcast.utils.files import write_private_file

from .backend import DEFAULT_ACCOUNT, CredentialId, CredentialStore

log = structlog.get_logger(__name__)

LEGACY_FILES: dict[tuple[str, str], str] = {
    (platform.service, platform.credential_key): platform.legacy_filename for platform in Platform
}


class PlainFileBackend(CredentialStore):
    """Legacy plaintext credential storage.

    A deprecation warning is logged the first time each (service, key) is
    read or written through an instance, not on every call.

    Example:
        >>> backend = PlainFileBackend(Path("~/.config/plurcast").expanduser())
        >>> backend.retrieve('plurcast.nostr', 'private_key')  # reads nostr.keys
    """

    def __init__(self, base_path: Path) -> None:
        """Initialize plaintext backend.

        Args:
            base_path: Directory holding the plaintext credential files
        """
        self.base_path = base_path
        self._warned: set[tuple[str, str]] = set()
        self._warned_lock = threading.Lock()

    @property
    def name(self) -> str:
        return "plain_file"

    def file_path(self, service: str, key: str, account: str) -> Path:
        """Path of the plaintext file for a credential."""
        for part in (service, key, account):
            if not part or "/" in part or "\\" in part or part in (".", ".."):
                raise InvalidInputError(f"Invalid credential identifier component: {part!r}")

        if account == DEFAULT_ACCOUNT and (service, key) in LEGACY_FILES:
            return self.base_path / LEGACY_FILES[(service, key)]
        return self.base_path / f"{service}.{account}.{key}"

    def _warn_once(self, service: str, key: str) -> None:
        with self._warned_lock:
            if (service, key) in self._warned:
                return
            self._warned.add((service, key))

        log.warning(
            "plaintext_credential_deprecated",
            service=service,
            key=key,
            hint="Run 'plur-creds migrate' to move credentials to secure storage",
        )

    def store_account(self, service: str, key: str, account: str, value: str) -> None:
        self._warn_once(service, key)
        cred = CredentialId(service, key, account)
        path = self.file_path(service, key, account)

        try:
            write_private_file(path, value.encode("utf-8"))
        except OSError as e:
            raise CredentialIOError(f"Failed to write plaintext file: {e}", reference=str(cred), backend=self.name) from e

        log.debug("credential_stored", backend=self.name, service=service, key=key, account=account, path=str(path))

    def retrieve_account(self, service: str, key: str, account: str) -> str:
        self._warn_once(service, key)
        cred = CredentialId(service, key, account)
        path = self.file_path(service, key, account)

        if not path.exists():
            raise CredentialNotFoundError("Credential not found in plaintext storage", reference=str(cred), backend=self.name)

        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise CredentialNotFoundError(
                "Credential not found in plaintext storage", reference=str(cred), backend=self.name
            ) from e
        except (OSError, UnicodeDecodeError) as e:
            raise CredentialIOError(f"Failed to read plaintext file: {e}", reference=str(cred), backend=self.name) from e

        log.debug("credential_retrieved", backend=self.name, service=service, key=key, account=account)
        # Hand-edited legacy files usually end with a newline
        return content.rstrip("\r\n")

    def delete_account(self, service: str, key: str, account: str) -> None:
        cred = CredentialId(service, key, account)
        path = self.file_path(service, key, account)

        try:
            path.unlink()
        except FileNotFoundError as e:
            raise CredentialNotFoundError(
                "Credential not found in plaintext storage", reference=str(cred), backend=self.name
            ) from e
        except OSError as e:
            raise CredentialIOError(f"Failed to delete plaintext file: {e}", reference=str(cred), backend=self.name) from e

        log.debug("credential_deleted", backend=self.name, service=service, key=key, account=account)

    def exists_account(self, service: str, key: str, account: str) -> bool:
        return self.file_path(service, key, account).exists()

    def list_accounts(self, service: str, key: str) -> list[str]:
        accounts: set[str] = set()

        if self.exists_account(service, key, DEFAULT_ACCOUNT):
            accounts.add(DEFAULT_ACCOUNT)

        if self.base_path.is_dir():
            prefix = f"{service}."
            suffix = f".{key}"
            for entry in self.base_path.iterdir():
                name = entry.name
                if not (entry.is_file() and name.startswith(prefix) and name.endswith(suffix)):
                    continue
                account = name[len(prefix) : len(name) - len(suffix)]
                if account and "." not in account:
                    accounts.add(account)

        return sorted(accounts)

    def discover(self) -> list[tuple[CredentialId, Path]]:
        """Find plaintext credential files for the known platforms.

        Returns:
            (credential id, file path) for every file present on disk
        """
        found = []
        for platform in Platform:
            for account in self.list_accounts(platform.service, platform.credential_key):
                cred = CredentialId(platform.service, platform.credential_key, account)
                found.append((cred, self.file_path(*cred)))
        return found
