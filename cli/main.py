"""
CLI entry point.

Main command group for the hostdb release manifest tools.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from hostdb import __version__
from hostdb.config import ConfigError, SyncConfig


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Setup logging for the CLI.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    return logging.getLogger("hostdb")


@click.group()
@click.version_option(version=__version__, prog_name="hostdb-releases")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="YAML config file (default: ./hostdb-releases.yaml if present).",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level (overrides config and HOSTDB_LOG_LEVEL).",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], log_level: Optional[str]) -> None:
    """
    hostdb release manifest tools.

    Keeps releases.json consistent with the repository's GitHub Releases.

    Use 'hostdb-releases COMMAND --help' for more information on a command.
    """
    ctx.ensure_object(dict)

    try:
        config = SyncConfig(config_path=config_path)
        config.override(log_level=log_level)
        config.validate()
    except ConfigError as e:
        click.echo(click.style("Error: ", fg="red", bold=True) + str(e))
        sys.exit(1)

    setup_logging(config.log_level)
    ctx.obj["config"] = config


# Import and register subcommands
from cli.reconcile import reconcile  # noqa: E402
from cli.update import update  # noqa: E402

cli.add_command(reconcile)
cli.add_command(update)


def main() -> None:
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
