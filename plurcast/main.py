"""CLI entry point for plur-creds."""

import sys

import click
import structlog

from plurcast import __version__
from plurcast.cli import (
    audit_credentials,
    delete_credential,
    list_credentials,
    migrate_credentials,
    set_credential,
    test_credentials,
    use_account,
)
from plurcast.config import PlurcastSettings
from plurcast.exceptions import ConfigurationError
from plurcast.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)


@click.group()
@click.option(
    "--config",
    default=None,
    type=click.Path(dir_okay=False),
    help="Path to configuration file (default: ~/.config/plurcast/config.yaml)",
)
@click.option("--log-level", default="WARNING", help="Logging level")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="plur-creds")
@click.pass_context
def cli(ctx: click.Context, config: str | None, log_level: str, verbose: bool) -> None:
    """plur-creds: Manage Plurcast platform credentials securely."""
    configure_logging("DEBUG" if verbose else log_level)

    try:
        settings = PlurcastSettings.from_yaml(config)
    except ConfigurationError as e:
        click.echo(click.style(f"Error: {e.message}", fg="red"), err=True)
        log.debug("config_error", exc_info=True)
        sys.exit(1)

    ctx.obj = {"settings": settings}


cli.add_command(set_credential)
cli.add_command(list_credentials)
cli.add_command(use_account)
cli.add_command(delete_credential)
cli.add_command(test_credentials)
cli.add_command(migrate_credentials)
cli.add_command(audit_credentials)


if __name__ == "__main__":
    cli()
