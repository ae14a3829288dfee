"""CLI commands for plur-creds.

The commands are registered on the ``plur-creds`` group in
``plurcast.main``:

    set, list, use, delete, test, migrate, audit

Usage Examples:
    Store a credential for a named account::

        $ plur-creds set nostr --account test

    Move legacy plaintext files into secure storage::

        $ plur-creds migrate
"""

from plurcast.cli.credentials import (
    audit_credentials,
    delete_credential,
    list_credentials,
    migrate_credentials,
    set_credential,
    test_credentials,
    use_account,
)

__all__ = [
    "audit_credentials",
    "delete_credential",
    "list_credentials",
    "migrate_credentials",
    "set_credential",
    "test_credentials",
    "use_account",
]
