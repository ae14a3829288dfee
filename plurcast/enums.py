"""Enumerations for plurcast storage backends and platforms."""

from enum import Enum


class StorageBackend(str, Enum):
    """Credential storage tiers selectable in configuration.

    - keyring: OS secret service (Keychain, Credential Manager, Secret Service)
    - encrypted: password-encrypted files
    - plain: legacy plaintext files (insecure, backward compatibility only)
    """

    KEYRING = "keyring"
    ENCRYPTED = "encrypted"
    PLAIN = "plain"

    def __str__(self) -> str:
        return self.value


class Platform(str, Enum):
    """Posting platforms whose credentials are managed by plur-creds."""

    NOSTR = "nostr"
    MASTODON = "mastodon"
    BLUESKY = "bluesky"

    def __str__(self) -> str:
        return self.value

    @property
    def service(self) -> str:
        """Credential service namespace, e.g. ``plurcast.nostr``."""
        return f"plurcast.{self.value}"

    @property
    def credential_key(self) -> str:
        """Semantic type of the platform's credential."""
        return _CREDENTIAL_KEYS[self]

    @property
    def legacy_filename(self) -> str:
        """Historical single-account plaintext filename."""
        return _LEGACY_FILENAMES[self]

    @property
    def label(self) -> str:
        """Human-readable credential description."""
        return _LABELS[self]

    @classmethod
    def parse(cls, value: str) -> "Platform":
        """Look up a platform case-insensitively.

        Raises:
            ValueError: If the platform is unknown
        """
        try:
            return cls(value.lower())
        except ValueError:
            supported = ", ".join(p.value for p in cls)
            raise ValueError(f"Unknown platform: {value}. Supported platforms: {supported}") from None


_CREDENTIAL_KEYS = {
    Platform.NOSTR: "private_key",
    Platform.MASTODON: "access_token",
    Platform.BLUESKY: "app_password",
}

_LEGACY_FILENAMES = {
    Platform.NOSTR: "nostr.keys",
    Platform.MASTODON: "mastodon.token",
    Platform.BLUESKY: "bluesky.auth",
}

_LABELS = {
    Platform.NOSTR: "Private Key",
    Platform.MASTODON: "Access Token",
    Platform.BLUESKY: "App Password",
}
