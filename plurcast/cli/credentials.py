"""CLI commands for credential management.

This module provides the ``plur-creds`` subcommands for storing, listing,
switching and removing platform credentials, migrating legacy plaintext
files, and auditing credential security.

Credential values are never printed. Output names the platform, the account
and the backend holding the credential.

Commands:
    - set: Store a credential for a platform account
    - list: Show stored credentials (without values)
    - use: Make an account the active one for a platform
    - delete: Remove a credential from every backend
    - test: Check that credentials exist
    - migrate: Move plaintext credentials into secure storage
    - audit: Report insecure storage and file permissions

Example:
    Store and switch accounts::

        $ plur-creds set nostr --account test
        $ plur-creds use nostr --account test
        $ plur-creds list
"""

import re
import sys
from typing import NoReturn

import click
import structlog

from plurcast.accounts import DEFAULT_ACCOUNT, AccountManager
from plurcast.config import PlurcastSettings
from plurcast.credentials import CredentialManager
from plurcast.enums import Platform
from plurcast.exceptions import (
    EXIT_FAILURE,
    CredentialNotFoundError,
    InvalidInputError,
    PlurcastError,
    exit_code_for,
)
from plurcast.utils.files import PRIVATE_FILE_MODE, file_mode
from plurcast.utils.terminal import stdin_is_tty

log = structlog.get_logger(__name__)

_NOSTR_HEX_KEY = re.compile(r"^[0-9a-fA-F]{64}$")

_PROMPTS = {
    Platform.NOSTR: "Enter Nostr private key for account '{account}' (hex or nsec format)",
    Platform.MASTODON: "Enter Mastodon OAuth access token for account '{account}'",
    Platform.BLUESKY: "Enter Bluesky app password for account '{account}'",
}


@click.command(name="set")
@click.argument("platform")
@click.option("--account", default=DEFAULT_ACCOUNT, show_default=True, help="Account name")
@click.option("--stdin", "use_stdin", is_flag=True, help="Read credential from stdin (for automation)")
@click.pass_context
def set_credential(ctx: click.Context, platform: str, account: str, use_stdin: bool) -> None:
    """Store credentials for a platform.

    PLATFORM is one of: nostr, mastodon, bluesky.

    Examples:

        plur-creds set nostr --account test

        echo "$TOKEN" | plur-creds set mastodon --stdin
    """
    try:
        target = _parse_platform(platform)
        AccountManager.validate_account_name(account)
        manager, account_manager = _open(ctx, prompt_for_password=True)

        with manager:
            if manager.exists_account(target.service, target.credential_key, account):
                if use_stdin or not stdin_is_tty():
                    raise InvalidInputError(
                        f"Credentials for '{target}' account '{account}' already exist. "
                        "Refusing to overwrite in non-interactive mode. Run interactively or delete first "
                        f"with 'plur-creds delete {target} --account {account}'."
                    )
                click.echo(
                    click.style(
                        f"A credential already exists for '{target}' account '{account}'. "
                        "This will OVERWRITE the existing secret.",
                        fg="yellow",
                    )
                )
                answer = click.prompt(
                    "Type 'overwrite' to confirm (or anything else to cancel)", default="", show_default=False
                )
                if answer.strip() != "overwrite":
                    click.echo("Cancelled")
                    return

            value = _read_value(target, account, use_stdin)
            manager.store_account(target.service, target.credential_key, account, value)
            account_manager.register_account(target.value, account)
            backend = manager.primary_backend().name

        click.echo(
            click.style(
                f"✓ Stored {target} credentials for account '{account}' using {backend} backend",
                fg="green",
            )
        )
        if backend == "plain_file":
            click.echo(click.style("Warning: credential stored in plaintext", fg="yellow"))

    except PlurcastError as e:
        _fail(e)


@click.command(name="list")
@click.option("--platform", "platform_filter", default=None, help="Only show this platform")
@click.pass_context
def list_credentials(ctx: click.Context, platform_filter: str | None) -> None:
    """List stored credentials (values are never shown)."""
    try:
        platforms = [_parse_platform(platform_filter)] if platform_filter else list(Platform)
        manager, account_manager = _open(ctx)

        click.echo("Stored credentials:")
        click.echo()

        found_any = False
        with manager:
            for target in platforms:
                active = account_manager.get_active_account(target.value)
                for account in manager.list_accounts(target.service, target.credential_key):
                    backend = manager.find_backend(target.service, target.credential_key, account)
                    if backend is None:
                        continue
                    marker = " [active]" if account == active else ""
                    click.echo(f"  ✓ {target} ({account}): {target.label} (stored in {backend}){marker}")
                    found_any = True

        if not found_any:
            click.echo("  No credentials found.")
            click.echo()
            click.echo("Use 'plur-creds set <platform> --account <name>' to store credentials.")

    except PlurcastError as e:
        _fail(e)


@click.command(name="use")
@click.argument("platform")
@click.option("--account", required=True, help="Account name to make active")
@click.pass_context
def use_account(ctx: click.Context, platform: str, account: str) -> None:
    """Set the active account for a platform.

    Example:

        plur-creds use nostr --account prod
    """
    try:
        target = _parse_platform(platform)
        AccountManager.validate_account_name(account)
        manager, account_manager = _open(ctx)

        with manager:
            if not manager.exists_account(target.service, target.credential_key, account):
                raise CredentialNotFoundError(
                    f"Account '{account}' not found for platform '{target}'",
                    suggestion=f"Use 'plur-creds set {target} --account {account}' to create it",
                )

        # Credentials stored before the account registry existed
        if not account_manager.account_exists(target.value, account):
            account_manager.register_account(target.value, account)
        account_manager.set_active_account(target.value, account)

        click.echo(click.style(f"✓ Set '{account}' as active account for {target}", fg="green"))

    except PlurcastError as e:
        _fail(e)


@click.command(name="delete")
@click.argument("platform")
@click.option("--account", default=DEFAULT_ACCOUNT, show_default=True, help="Account name")
@click.option("-f", "--force", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def delete_credential(ctx: click.Context, platform: str, account: str, force: bool) -> None:
    """Delete credentials for a platform account from every backend."""
    try:
        target = _parse_platform(platform)
        AccountManager.validate_account_name(account)
        manager, account_manager = _open(ctx)

        with manager:
            if not manager.exists_account(target.service, target.credential_key, account):
                click.echo(f"No credentials found for {target} account '{account}'")
                return

            if not force and stdin_is_tty():
                if not click.confirm(f"Delete {target} credentials for account '{account}'?", default=False):
                    click.echo("Cancelled")
                    return

            was_active = account_manager.get_active_account(target.value) == account
            manager.delete_account(target.service, target.credential_key, account)

        account_manager.unregister_account(target.value, account)
        click.echo(click.style(f"✓ Deleted {target} credentials for account '{account}'", fg="green"))

        if was_active and account != DEFAULT_ACCOUNT:
            click.echo(f"ℹ Active account was '{account}', reset to '{DEFAULT_ACCOUNT}'")

    except PlurcastError as e:
        _fail(e)


@click.command(name="test")
@click.argument("platform", required=False)
@click.option("--account", default=None, help="Account name (default: active account)")
@click.option("-a", "--all", "test_all", is_flag=True, help="Test all platforms")
@click.pass_context
def test_credentials(ctx: click.Context, platform: str | None, account: str | None, test_all: bool) -> None:
    """Check that credentials exist for a platform account.

    Full authentication against the platform is performed by the posting
    clients; this command only confirms the credential can be found.
    """
    try:
        if not test_all and platform is None:
            raise InvalidInputError("Either specify a platform or use --all flag")

        manager, _account_manager = _open(ctx)
        with manager:
            if test_all:
                _test_all(manager)
                return

            target = _parse_platform(platform or "")
            resolved = manager.resolve_account(target.value, account)
            click.echo(f"Testing {target} credentials for account '{resolved}'...")

            if not manager.exists_account(target.service, target.credential_key, resolved):
                raise CredentialNotFoundError(f"No credentials found for {target} account '{resolved}'")

        click.echo(click.style(f"✓ {target} credentials found for account '{resolved}'", fg="green"))
        click.echo("  Note: Full authentication testing requires platform client integration")

    except PlurcastError as e:
        _fail(e)


@click.command(name="migrate")
@click.option("--cleanup", is_flag=True, help="Delete migrated plaintext files without asking")
@click.option("--no-cleanup", "no_cleanup", is_flag=True, help="Keep plaintext files without asking")
@click.pass_context
def migrate_credentials(ctx: click.Context, cleanup: bool, no_cleanup: bool) -> None:
    """Migrate plaintext credential files to secure storage.

    Every migrated credential is read back and compared before it is
    reported as migrated. Plaintext files are only removed after an
    explicit confirmation (or --cleanup).
    """
    try:
        if cleanup and no_cleanup:
            raise InvalidInputError("--cleanup and --no-cleanup are mutually exclusive")

        manager, _account_manager = _open(ctx, prompt_for_password=True)
        with manager:
            click.echo("Migrating plaintext credentials to secure storage...")
            click.echo()
            report = manager.migrate_from_plain()

            click.echo("Migration complete:")
            click.echo(f"  ✓ Migrated: {len(report.migrated)}")
            click.echo(f"  ✗ Failed: {len(report.failed)}")
            click.echo(f"  ⊘ Skipped: {len(report.skipped)}")
            click.echo()

            if report.migrated:
                click.echo(f"Successfully migrated to {manager.primary_backend().name}:")
                for cred in report.migrated:
                    click.echo(f"  ✓ {cred}")
                click.echo()

            if report.failed:
                click.echo("Failed to migrate:")
                for cred, reason in report.failed:
                    click.echo(f"  ✗ {cred}: {reason}")
                click.echo()

            if report.skipped:
                click.echo("Skipped (already in secure storage):")
                for cred in report.skipped:
                    click.echo(f"  ⊘ {cred}")
                click.echo()

            if not report.is_success():
                click.echo(click.style("⚠ Some migrations failed. Plaintext files were not deleted.", fg="yellow"))
                click.echo("Fix the errors and run migration again.")
                sys.exit(EXIT_FAILURE)

            if not report.migrated:
                return

            if not cleanup and not no_cleanup and stdin_is_tty():
                cleanup = click.confirm("Delete migrated plaintext credential files?", default=False)

            if cleanup:
                removed = manager.cleanup_plain_files(report.migrated)
                for cred in removed:
                    click.echo(f"  Removed plaintext file for {cred}")
            else:
                click.echo("Plaintext credential files kept. Run 'plur-creds migrate --cleanup' to remove them.")

    except PlurcastError as e:
        _fail(e)


@click.command(name="audit")
@click.pass_context
def audit_credentials(ctx: click.Context) -> None:
    """Audit credential security.

    Reports plaintext storage, plaintext credential files on disk and
    credential files readable by other users. Exits with status 1 when
    any issue is found.
    """
    try:
        settings: PlurcastSettings = ctx.obj["settings"]
        config = settings.credentials
        issues = 0

        click.echo("Auditing credential security...")
        click.echo()
        click.echo("Credential storage configuration:")
        click.echo(f"  Backend: {config.storage}")
        click.echo(f"  Path: {config.path}")
        click.echo()

        manager, _account_manager = _open(ctx)
        with manager:
            if manager.is_insecure():
                click.echo(click.style("⚠ SECURITY ISSUE: Using plain text credential storage", fg="red"))
                click.echo("  Recommendation: Configure keyring or encrypted storage")
                click.echo("  Run: plur-creds migrate")
                click.echo()
                issues += 1
            else:
                click.echo(f"✓ Using secure credential storage: {manager.primary_backend().name}")
                click.echo()

            plain_files = manager.plain_credential_files()

        credential_files = list(plain_files)
        if config.path.is_dir():
            credential_files.extend(sorted(config.path.glob("*.enc")))

        if sys.platform != "win32":
            for path in credential_files:
                mode = file_mode(path)
                if mode != PRIVATE_FILE_MODE:
                    click.echo(click.style("⚠ SECURITY ISSUE: Incorrect file permissions", fg="red"))
                    click.echo(f"  File: {path}")
                    click.echo(f"  Current: {mode:o}")
                    click.echo("  Expected: 600 (owner read/write only)")
                    click.echo(f"  Fix: chmod 600 {path}")
                    click.echo()
                    issues += 1

        if plain_files:
            click.echo(click.style("⚠ SECURITY ISSUE: Plain text credential files found:", fg="red"))
            for path in plain_files:
                click.echo(f"  - {path}")
            click.echo("  Recommendation: Run 'plur-creds migrate' to move to secure storage")
            click.echo()
            issues += 1

        if issues:
            click.echo(click.style("Security audit complete: Issues found", fg="yellow", bold=True))
            click.echo("Follow the recommendations above to improve security.")
            sys.exit(EXIT_FAILURE)

        click.echo(click.style("✓ Security audit complete: No issues found", fg="green", bold=True))

    except PlurcastError as e:
        _fail(e)


# Helper functions


def _open(ctx: click.Context, prompt_for_password: bool = False) -> tuple[CredentialManager, AccountManager]:
    """Build the credential and account managers from the loaded settings.

    Args:
        ctx: Click context carrying ``settings``
        prompt_for_password: Ask for the master password on a terminal when
            encrypted storage is configured and no password was supplied

    Raises:
        PlurcastError: If the account state or master password is unusable
    """
    settings: PlurcastSettings = ctx.obj["settings"]
    account_manager = AccountManager(settings.accounts_file)
    manager = CredentialManager.from_settings(
        settings,
        password_prompt=_prompt_master_password if prompt_for_password else None,
        account_manager=account_manager,
    )
    return manager, account_manager


def _prompt_master_password() -> str:
    return click.prompt("Master password", hide_input=True)


def _parse_platform(value: str) -> Platform:
    try:
        return Platform.parse(value)
    except ValueError as e:
        raise InvalidInputError(str(e)) from e


def _read_value(target: Platform, account: str, use_stdin: bool) -> str:
    """Read the credential from stdin or a hidden prompt and validate it.

    Raises:
        InvalidInputError: If no terminal is available, or the value is empty
            or malformed
    """
    if use_stdin:
        value = sys.stdin.read().strip()
    else:
        if not stdin_is_tty():
            raise InvalidInputError("Not a TTY. Use --stdin flag to read credentials from stdin for automation.")
        value = click.prompt(_PROMPTS[target].format(account=account), hide_input=True)

    if not value:
        raise InvalidInputError("Credential value cannot be empty")

    if target is Platform.NOSTR:
        key = value.strip()
        if not (_NOSTR_HEX_KEY.match(key) or key.startswith("nsec")):
            raise InvalidInputError("Invalid Nostr key format. Must be 64-character hex or bech32 nsec format.")

    return value


def _test_all(manager: CredentialManager) -> None:
    click.echo("Testing all platform credentials...")
    click.echo()

    found = 0
    missing = 0
    for target in Platform:
        account = manager.resolve_account(target.value)
        if manager.exists_account(target.service, target.credential_key, account):
            click.echo(click.style(f"✓ {target} credentials found for account '{account}'", fg="green"))
            found += 1
        else:
            click.echo(click.style(f"✗ {target} credentials not found for account '{account}'", fg="red"))
            missing += 1

    click.echo()
    click.echo(f"Summary: {found} found, {missing} not found")

    if missing:
        sys.exit(EXIT_FAILURE)


def _fail(error: PlurcastError) -> NoReturn:
    """Print an error (never a credential value) and exit with its status."""
    click.echo(click.style(f"Error: {error}", fg="red"), err=True)
    log.debug("command_failed", error_type=type(error).__name__, exc_info=True)
    sys.exit(exit_code_for(error))
