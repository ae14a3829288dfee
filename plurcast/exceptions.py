"""Custom exception hierarchy for plurcast.

This module defines the structured exception hierarchy used by the credential
subsystem and its callers. The credential manager is the only place that
decides whether an error means "try the next backend" or "stop"; everything
else simply raises the most specific class below.

Exception Hierarchy:
    PlurcastError (base)
    ├── ConfigurationError
    ├── InvalidInputError
    ├── CredentialError
    │   ├── CredentialNotFoundError
    │   ├── BackendNotAvailableError
    │   │   └── KeyringUnavailableError
    │   ├── KeyringError
    │   ├── MasterPasswordNotSetError
    │   ├── WeakPasswordError
    │   ├── EncryptionError
    │   │   └── DecryptionFailedError
    │   ├── NoStoreAvailableError
    │   ├── MigrationFailedError
    │   ├── CredentialIOError
    │   └── CredentialDeleteError
    └── AccountError
        ├── InvalidAccountNameError
        │   └── ReservedAccountNameError
        ├── AccountNotFoundError
        └── AccountStateError

Messages never contain credential values. A ``reference`` names the
credential (``service/key[account]``) so users can tell which one failed.

Example Usage:
    >>> from plurcast.exceptions import CredentialNotFoundError
    >>> try:
    ...     manager.retrieve_account("plurcast.nostr", "private_key", "prod")
    ... except CredentialNotFoundError as e:
    ...     print(e.reference)
"""

from __future__ import annotations

# Exit codes used by the CLI layer
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CREDENTIAL = 2
EXIT_INVALID_INPUT = 3


class PlurcastError(Exception):
    """Base exception for all plurcast errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(PlurcastError):
    """Configuration-related errors.

    Examples:
        - Invalid YAML syntax
        - Unknown storage backend name
        - Empty credential path
    """

    pass


class InvalidInputError(PlurcastError):
    """User supplied input was rejected before any storage was touched."""

    pass


# =============================================================================
# Credential Errors
# =============================================================================


class CredentialError(PlurcastError):
    """Credential-related errors.

    This is the base class for credential-specific errors.

    Attributes:
        message: Human-readable error description
        reference: The credential that failed (e.g., "plurcast.nostr/private_key[default]")
        suggestion: Optional suggestion for resolution
        backend: Name of the backend that raised, when known
    """

    def __init__(
        self,
        message: str,
        reference: str | None = None,
        suggestion: str | None = None,
        backend: str | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            reference: Identifier of the credential that failed
            suggestion: Optional suggestion for resolution
            backend: Backend name for diagnostics
        """
        self.reference = reference
        self.suggestion = suggestion
        self.backend = backend

        full_message = message
        if backend:
            full_message = f"[{backend}] {full_message}"
        if reference:
            full_message = f"{full_message} (reference: {reference})"
        if suggestion:
            full_message = f"{full_message}\nSuggestion: {suggestion}"

        super().__init__(full_message)
        # Preserve original message (super sets self.message to full_message)
        self.message = message


class CredentialNotFoundError(CredentialError):
    """Credential is absent from a reachable backend."""

    pass


class BackendNotAvailableError(CredentialError):
    """Requested backend is not available on this system."""

    pass


class KeyringUnavailableError(BackendNotAvailableError):
    """The OS secret service cannot be reached.

    Distinct from CredentialNotFoundError: the service is unreachable, so
    nothing can be said about whether the credential exists.
    """

    pass


class KeyringError(CredentialError):
    """The OS secret service was reachable but the operation failed."""

    pass


class MasterPasswordNotSetError(CredentialError):
    """Encrypted storage was used before a master password was supplied."""

    def __init__(self, reference: str | None = None, backend: str | None = None) -> None:
        super().__init__(
            "Master password not set",
            reference=reference,
            suggestion="Set PLURCAST_MASTER_PASSWORD or run interactively to be prompted",
            backend=backend,
        )


class WeakPasswordError(CredentialError):
    """Master password is shorter than the minimum length."""

    def __init__(self, min_length: int = 8) -> None:
        super().__init__(
            f"Master password is too weak (minimum {min_length} characters)",
            suggestion="Use a passphrase of 12 or more characters",
        )


class EncryptionError(CredentialError):
    """Encryption or decryption operation failed."""

    pass


class DecryptionFailedError(EncryptionError):
    """Ciphertext could not be authenticated: wrong password or corrupted file."""

    def __init__(self, reference: str | None = None, backend: str | None = None) -> None:
        super().__init__(
            "Decryption failed: incorrect password or corrupted file",
            reference=reference,
            suggestion="Verify your master password",
            backend=backend,
        )


class NoStoreAvailableError(CredentialError):
    """No credential backend is configured."""

    def __init__(self) -> None:
        super().__init__("No credential store available")


class MigrationFailedError(CredentialError):
    """A migration precondition failed, or a single credential could not migrate."""

    pass


class CredentialIOError(CredentialError):
    """Filesystem operation on a credential file failed."""

    pass


class CredentialDeleteError(CredentialError):
    """Deletion failed in one or more backends.

    Attributes:
        errors: Mapping of backend name to the error it raised
    """

    def __init__(self, reference: str, errors: dict[str, CredentialError]) -> None:
        self.errors = errors
        details = "; ".join(f"{name}: {err.message}" for name, err in errors.items())
        super().__init__(f"Failed to delete credential from {len(errors)} backend(s): {details}", reference=reference)


# =============================================================================
# Account Errors
# =============================================================================


class AccountError(PlurcastError):
    """Base exception for account management errors."""

    pass


class InvalidAccountNameError(AccountError):
    """Account name does not satisfy the naming rules."""

    pass


class ReservedAccountNameError(InvalidAccountNameError):
    """Account name collides with a reserved word."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Account name '{name}' is reserved")


class AccountNotFoundError(AccountError):
    """Account is not registered for the platform.

    Attributes:
        account: Account name that was looked up
        platform: Platform the lookup was scoped to
    """

    def __init__(self, account: str, platform: str) -> None:
        self.account = account
        self.platform = platform
        super().__init__(f"Account '{account}' not found for platform '{platform}'")


class AccountStateError(AccountError):
    """The account state file could not be read or written."""

    pass


def exit_code_for(error: BaseException) -> int:
    """Map an error to the process exit code used by the CLI.

    Args:
        error: Exception raised by a command

    Returns:
        3 for rejected input, 2 for credential failures, 1 otherwise
    """
    if isinstance(error, (InvalidInputError, InvalidAccountNameError)):
        return EXIT_INVALID_INPUT
    if isinstance(error, CredentialError):
        return EXIT_CREDENTIAL
    return EXIT_FAILURE
