"""Encrypted file backend using passphrase-derived AES-256-GCM.

Security Model:
- One file per credential: ``{service}.{account}.{key}.enc`` under a
  configured directory, mode 0600 on POSIX.
- Key derivation: scrypt (memory-hard) with a fresh random salt per file.
- Encryption: AES-256-GCM with a fresh nonce per write. The credential
  identifier is bound as associated data, so a file renamed to another
  identity fails authentication.
- The master password is held in memory only (see ``secret.py``).
- Suitable for headless systems without keyring support.

File Layout:
    magic (4) | log2(n) (1) | r (1) | p (1) | salt (16) | nonce (12) | ciphertext+tag
"""

import os
from pathlib import Path

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from plurcast.exceptions import (
    CredentialIOError,
    CredentialNotFoundError,
    DecryptionFailedError,
    EncryptionError,
    InvalidInputError,
    MasterPasswordNotSetError,
)
from plurcast.utils.files import write_private_file

from .backend import CredentialId, CredentialStore
from .secret import MasterPassword

log = structlog.get_logger(__name__)

FILE_SUFFIX = ".enc"
MAGIC = b"PCE1"
SALT_LEN = 16
NONCE_LEN = 12
KEY_LEN = 32

# scrypt cost: n = 2**15, r = 8 needs 32 MiB per derivation
SCRYPT_LOG_N = 15
SCRYPT_R = 8
SCRYPT_P = 1
MAX_SCRYPT_LOG_N = 20

_HEADER_LEN = len(MAGIC) + 3 + SALT_LEN + NONCE_LEN


class EncryptedFileBackend(CredentialStore):
    """Encrypted file-based credential storage.

    This backend provides:
    - Authenticated encryption (AES-256-GCM)
    - Memory-hard password-based key derivation (scrypt)
    - One file per credential, written atomically

    Security Considerations:
    - Master password must be at least 8 characters (12+ recommended)
    - A wrong password surfaces DecryptionFailedError, never "not found"
    - Vulnerable if the master password is compromised

    Example:
        >>> backend = EncryptedFileBackend(Path("~/.config/plurcast/credentials").expanduser())
        >>> backend.set_master_password("correct horse battery")
        >>> backend.store_account('plurcast.nostr', 'private_key', 'default', 'nsec1...')
        >>> backend.retrieve('plurcast.nostr', 'private_key')
        'nsec1...'
    """

    def __init__(self, base_path: Path, master_password: MasterPassword | None = None) -> None:
        """Initialize encrypted file backend.

        Args:
            base_path: Directory holding the encrypted credential files
            master_password: Shared password holder; a private one is created if None
        """
        self.base_path = base_path
        self.master_password = master_password if master_password is not None else MasterPassword()

    @property
    def name(self) -> str:
        return "encrypted_file"

    def set_master_password(self, password: str) -> None:
        """Set the master password for encryption and decryption.

        Raises:
            WeakPasswordError: If the password is shorter than 8 characters
        """
        self.master_password.set(password)
        log.debug("master_password_set", backend=self.name)

    def file_path(self, service: str, key: str, account: str) -> Path:
        """Path of the encrypted file for a credential."""
        for part in (service, key, account):
            if not part or "/" in part or "\\" in part or part in (".", ".."):
                raise InvalidInputError(f"Invalid credential identifier component: {part!r}")
        return self.base_path / f"{service}.{account}.{key}{FILE_SUFFIX}"

    @staticmethod
    def _derive_key(secret: bytearray, salt: bytes, log_n: int, r: int, p: int) -> bytes:
        kdf = Scrypt(salt=salt, length=KEY_LEN, n=2**log_n, r=r, p=p)
        return kdf.derive(secret)

    @staticmethod
    def _associated_data(cred: CredentialId) -> bytes:
        return "\x00".join(cred).encode("utf-8")

    def _encrypt(self, cred: CredentialId, value: str) -> bytes:
        salt = os.urandom(SALT_LEN)
        nonce = os.urandom(NONCE_LEN)

        try:
            key = self.master_password.use(
                lambda secret: self._derive_key(secret, salt, SCRYPT_LOG_N, SCRYPT_R, SCRYPT_P)
            )
        except MasterPasswordNotSetError as e:
            raise MasterPasswordNotSetError(reference=str(cred), backend=self.name) from e

        ciphertext = AESGCM(key).encrypt(nonce, value.encode("utf-8"), self._associated_data(cred))
        header = MAGIC + bytes([SCRYPT_LOG_N, SCRYPT_R, SCRYPT_P])
        return header + salt + nonce + ciphertext

    def _decrypt(self, cred: CredentialId, blob: bytes) -> str:
        # 16 bytes is the GCM tag
        if len(blob) < _HEADER_LEN + 16 or not blob.startswith(MAGIC):
            raise DecryptionFailedError(reference=str(cred), backend=self.name)

        offset = len(MAGIC)
        log_n, r, p = blob[offset], blob[offset + 1], blob[offset + 2]
        offset += 3
        salt = blob[offset : offset + SALT_LEN]
        offset += SALT_LEN
        nonce = blob[offset : offset + NONCE_LEN]
        offset += NONCE_LEN
        ciphertext = blob[offset:]

        if not (1 <= log_n <= MAX_SCRYPT_LOG_N and 1 <= r <= 32 and 1 <= p <= 16):
            raise DecryptionFailedError(reference=str(cred), backend=self.name)

        try:
            key = self.master_password.use(lambda secret: self._derive_key(secret, salt, log_n, r, p))
        except MasterPasswordNotSetError as e:
            raise MasterPasswordNotSetError(reference=str(cred), backend=self.name) from e
        except ValueError as e:
            # Nonsensical scrypt parameters in a damaged header
            raise DecryptionFailedError(reference=str(cred), backend=self.name) from e

        try:
            plaintext = AESGCM(key).decrypt(nonce, ciphertext, self._associated_data(cred))
        except InvalidTag as e:
            raise DecryptionFailedError(reference=str(cred), backend=self.name) from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncryptionError("Decrypted credential is not valid UTF-8", reference=str(cred), backend=self.name) from e

    def store_account(self, service: str, key: str, account: str, value: str) -> None:
        cred = CredentialId(service, key, account)
        path = self.file_path(service, key, account)
        blob = self._encrypt(cred, value)

        try:
            write_private_file(path, blob)
        except OSError as e:
            raise CredentialIOError(f"Failed to write encrypted file: {e}", reference=str(cred), backend=self.name) from e

        log.debug("credential_stored", backend=self.name, service=service, key=key, account=account, path=str(path))

    def retrieve_account(self, service: str, key: str, account: str) -> str:
        cred = CredentialId(service, key, account)
        path = self.file_path(service, key, account)

        if not path.exists():
            raise CredentialNotFoundError("Credential not found in encrypted storage", reference=str(cred), backend=self.name)

        try:
            blob = path.read_bytes()
        except FileNotFoundError as e:
            raise CredentialNotFoundError(
                "Credential not found in encrypted storage", reference=str(cred), backend=self.name
            ) from e
        except OSError as e:
            raise CredentialIOError(f"Failed to read encrypted file: {e}", reference=str(cred), backend=self.name) from e

        value = self._decrypt(cred, blob)
        log.debug("credential_retrieved", backend=self.name, service=service, key=key, account=account)
        return value

    def delete_account(self, service: str, key: str, account: str) -> None:
        cred = CredentialId(service, key, account)
        path = self.file_path(service, key, account)

        try:
            path.unlink()
        except FileNotFoundError as e:
            raise CredentialNotFoundError(
                "Credential not found in encrypted storage", reference=str(cred), backend=self.name
            ) from e
        except OSError as e:
            raise CredentialIOError(f"Failed to delete encrypted file: {e}", reference=str(cred), backend=self.name) from e

        log.debug("credential_deleted", backend=self.name, service=service, key=key, account=account)

    def exists_account(self, service: str, key: str, account: str) -> bool:
        return self.file_path(service, key, account).exists()

    def list_accounts(self, service: str, key: str) -> list[str]:
        if not self.base_path.is_dir():
            return []

        prefix = f"{service}."
        suffix = f".{key}{FILE_SUFFIX}"
        accounts = []
        for entry in self.base_path.iterdir():
            name = entry.name
            if not (name.startswith(prefix) and name.endswith(suffix)):
                continue
            account = name[len(prefix) : len(name) - len(suffix)]
            # Account names never contain dots
            if account and "." not in account:
                accounts.append(account)
        return sorted(accounts)
