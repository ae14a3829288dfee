"""Named accounts per platform and the active-account mapping."""

from .manager import (
    DEFAULT_ACCOUNT,
    MAX_ACCOUNT_NAME_LENGTH,
    RESERVED_ACCOUNT_NAMES,
    AccountManager,
    AccountState,
)

__all__ = [
    "DEFAULT_ACCOUNT",
    "AccountManager",
    "AccountState",
    "MAX_ACCOUNT_NAME_LENGTH",
    "RESERVED_ACCOUNT_NAMES",
]
