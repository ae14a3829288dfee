"""Result type for plaintext-to-secure-storage migration runs."""

from dataclasses import dataclass, field

from .backend import CredentialId


@dataclass
class MigrationReport:
    """Outcome of one ``migrate_from_plain`` run. Never persisted.

    Attributes:
        migrated: Credentials stored in secure storage and verified by read-back
        failed: Credentials that could not migrate, with the reason
        skipped: Credentials already present in secure storage
    """

    migrated: list[CredentialId] = field(default_factory=list)
    failed: list[tuple[CredentialId, str]] = field(default_factory=list)
    skipped: list[CredentialId] = field(default_factory=list)

    def is_success(self) -> bool:
        """True when no credential failed."""
        return not self.failed

    def total(self) -> int:
        return len(self.migrated) + len(self.failed) + len(self.skipped)
