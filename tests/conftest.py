"""Pytest configuration and shared fixtures."""

from pathlib import Path

import keyring
import pytest
import structlog
from keyring.backend import KeyringBackend as KeyringLibraryBackend
from keyring.backends import fail
from keyring.errors import PasswordDeleteError

from plurcast.accounts import AccountManager
from plurcast.config import CredentialSettings, PlurcastSettings
from plurcast.credentials import encrypted_backend

MASTER_PASSWORD = "correct horse battery staple"
NOSTR_HEX_KEY = "a" * 64


class MemoryKeyring(KeyringLibraryBackend):
    """In-memory stand-in for the OS secret service."""

    priority = 1

    def __init__(self) -> None:
        super().__init__()
        self.entries: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> str | None:
        return self.entries.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self.entries[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        try:
            del self.entries[(service, username)]
        except KeyError:
            raise PasswordDeleteError("Password not found") from None


@pytest.fixture(autouse=True)
def fast_kdf(monkeypatch: pytest.MonkeyPatch) -> None:
    """Cheaper scrypt cost for new files; stored parameters still drive decryption."""
    monkeypatch.setattr(encrypted_backend, "SCRYPT_LOG_N", 10)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's own plurcast environment out of the tests."""
    monkeypatch.delenv("PLURCAST_MASTER_PASSWORD", raising=False)
    monkeypatch.delenv("PLURCAST_CREDENTIALS__STORAGE", raising=False)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Drop logger configuration bound to a CliRunner stream."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def memory_keyring():
    """Install an in-memory keyring for the duration of a test."""
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)


@pytest.fixture
def no_keyring():
    """Simulate a headless system without a secret service."""
    previous = keyring.get_keyring()
    keyring.set_keyring(fail.Keyring())
    yield
    keyring.set_keyring(previous)


@pytest.fixture
def credentials_dir(tmp_path: Path) -> Path:
    """Directory for encrypted credential files."""
    return tmp_path / "credentials"


@pytest.fixture
def legacy_dir(tmp_path: Path) -> Path:
    """Directory for legacy plaintext credential files."""
    path = tmp_path / "plurcast"
    path.mkdir()
    return path


@pytest.fixture
def accounts_file(tmp_path: Path) -> Path:
    """Account state file location."""
    return tmp_path / "accounts.yaml"


@pytest.fixture
def account_manager(accounts_file: Path) -> AccountManager:
    """AccountManager backed by a temporary state file."""
    return AccountManager(accounts_file)


@pytest.fixture
def make_settings(credentials_dir: Path, legacy_dir: Path, accounts_file: Path):
    """Build PlurcastSettings pointing at temporary directories."""

    def _make(storage: str = "encrypted", master_password: str | None = MASTER_PASSWORD) -> PlurcastSettings:
        return PlurcastSettings(
            credentials=CredentialSettings(
                storage=storage,
                path=credentials_dir,
                legacy_path=legacy_dir,
                master_password=master_password,
            ),
            accounts_file=accounts_file,
        )

    return _make
