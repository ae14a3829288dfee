"""Multi-account registry and active-account tracking.

The account manager owns two pieces of state, persisted together in a small
YAML file kept apart from all credential material:

    active:            # platform -> active account name
      nostr: test
    accounts:          # platform -> registered account names
      nostr:
        - test
        - prod

Account names are not secret, so the file uses ordinary permissions (0644).
A corrupted file is not fatal: a warning is logged and every platform falls
back to the ``default`` account.
"""

import os
import re
from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from plurcast.exceptions import (
    AccountNotFoundError,
    AccountStateError,
    InvalidAccountNameError,
    ReservedAccountNameError,
)
from plurcast.utils.locks import ReadWriteLock

log = structlog.get_logger(__name__)

DEFAULT_ACCOUNT = "default"
DEFAULT_STATE_FILE = Path("~/.config/plurcast/accounts.yaml")
MAX_ACCOUNT_NAME_LENGTH = 64
RESERVED_ACCOUNT_NAMES = frozenset({"all", "none", "list"})
STATE_FILE_MODE = 0o644

_ACCOUNT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class AccountState(BaseModel):
    """Persisted account state.

    Hand-edited entries with malformed account names are dropped with a
    warning, so a bad name never reaches credential lookups.
    """

    active: dict[str, str] = Field(default_factory=dict)
    accounts: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("active", mode="after")
    @classmethod
    def drop_invalid_active(cls, value: dict[str, str]) -> dict[str, str]:
        return {platform: name for platform, name in value.items() if _valid_stored_name(platform, name)}

    @field_validator("accounts", mode="after")
    @classmethod
    def drop_invalid_accounts(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        cleaned = {}
        for platform, names in value.items():
            valid = [name for name in dict.fromkeys(names) if _valid_stored_name(platform, name)]
            if valid:
                cleaned[platform] = valid
        return cleaned


def _valid_stored_name(platform: str, name: str) -> bool:
    try:
        AccountManager.validate_account_name(name)
    except InvalidAccountNameError as e:
        log.warning("account_state_invalid_name", platform=platform, account=name, error=e.message)
        return False
    return True


class AccountManager:
    """Registry of named accounts per platform.

    Reads and writes of the in-memory state go through one reader-writer
    lock, so an instance can be shared between threads posting to several
    platforms at once.

    Example:
        >>> manager = AccountManager(Path("/tmp/accounts.yaml"))
        >>> manager.register_account("nostr", "test")
        >>> manager.set_active_account("nostr", "test")
        >>> manager.get_active_account("nostr")
        'test'
        >>> manager.get_active_account("mastodon")
        'default'
    """

    def __init__(self, state_file: Path | None = None) -> None:
        """Initialize account manager and load any existing state.

        Args:
            state_file: Path to the YAML state file
                (default: ~/.config/plurcast/accounts.yaml)

        Raises:
            AccountStateError: If the state file exists but cannot be read
        """
        self.state_file = (state_file or DEFAULT_STATE_FILE).expanduser()
        self._lock = ReadWriteLock()
        self._state = self._load()

    @staticmethod
    def validate_account_name(name: str) -> None:
        """Validate account name format.

        Rules:
        - Cannot be empty
        - Maximum 64 characters
        - ASCII letters, digits, hyphens and underscores only
        - Not one of the reserved names (all, none, list), case-insensitive

        Raises:
            InvalidAccountNameError: If the name breaks a rule
        """
        if not name:
            raise InvalidAccountNameError("Account name cannot be empty")

        if len(name) > MAX_ACCOUNT_NAME_LENGTH:
            raise InvalidAccountNameError(
                f"Account name too long: {len(name)} characters (max {MAX_ACCOUNT_NAME_LENGTH})"
            )

        if not _ACCOUNT_NAME_PATTERN.match(name):
            raise InvalidAccountNameError(
                f"Invalid account name '{name}'. Must be alphanumeric with hyphens/underscores only"
            )

        if name.lower() in RESERVED_ACCOUNT_NAMES:
            raise ReservedAccountNameError(name)

    def get_active_account(self, platform: str) -> str:
        """Return the active account for a platform, or ``default`` if unset."""
        with self._lock.read():
            return self._state.active.get(platform, DEFAULT_ACCOUNT)

    def set_active_account(self, platform: str, account: str) -> None:
        """Make ``account`` the active account for ``platform`` and persist.

        Raises:
            InvalidAccountNameError: If the name is malformed
            AccountNotFoundError: If the account is not registered
        """
        self.validate_account_name(account)

        with self._lock.write():
            if not self._exists(platform, account):
                raise AccountNotFoundError(account, platform)
            self._state.active[platform] = account
            self._save()

        log.info("active_account_set", platform=platform, account=account)

    def list_accounts(self, platform: str) -> list[str]:
        """Registered account names for a platform, in registration order."""
        with self._lock.read():
            return list(self._state.accounts.get(platform, []))

    def register_account(self, platform: str, account: str) -> None:
        """Add an account to the registry (no-op if already registered).

        Raises:
            InvalidAccountNameError: If the name is malformed
        """
        self.validate_account_name(account)

        with self._lock.write():
            names = self._state.accounts.setdefault(platform, [])
            if account in names:
                return
            names.append(account)
            self._save()

        log.debug("account_registered", platform=platform, account=account)

    def unregister_account(self, platform: str, account: str) -> None:
        """Remove an account; the platform falls back to ``default`` if it was active."""
        with self._lock.write():
            names = self._state.accounts.get(platform, [])
            if account in names:
                names.remove(account)
            if not names:
                self._state.accounts.pop(platform, None)

            if self._state.active.get(platform) == account:
                del self._state.active[platform]
                log.info("active_account_reset", platform=platform, previous=account)

            self._save()

        log.debug("account_unregistered", platform=platform, account=account)

    def account_exists(self, platform: str, account: str) -> bool:
        """True if the account is registered. ``default`` always exists."""
        with self._lock.read():
            return self._exists(platform, account)

    def _exists(self, platform: str, account: str) -> bool:
        return account == DEFAULT_ACCOUNT or account in self._state.accounts.get(platform, [])

    def _save(self) -> None:
        """Write state to disk. Caller must hold the write lock."""
        content = yaml.safe_dump(self._state.model_dump(), default_flow_style=False, sort_keys=True)
        temp_file = self.state_file.with_suffix(".tmp")

        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            temp_file.write_text(content, encoding="utf-8")
            os.chmod(temp_file, STATE_FILE_MODE)
            temp_file.replace(self.state_file)
        except OSError as e:
            raise AccountStateError(f"Failed to write account state file {self.state_file}: {e}") from e

    def _load(self) -> AccountState:
        if not self.state_file.exists():
            return AccountState()

        try:
            raw = self.state_file.read_bytes()
        except OSError as e:
            raise AccountStateError(f"Failed to read account state file {self.state_file}: {e}") from e

        try:
            data = yaml.safe_load(raw.decode("utf-8"))
            if data is None:
                return AccountState()
            return AccountState.model_validate(data)
        except (UnicodeDecodeError, yaml.YAMLError, ValidationError) as e:
            log.warning("account_state_corrupted", path=str(self.state_file), error=str(e))
            return AccountState()
