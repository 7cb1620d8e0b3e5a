"""hex-preload CLI entry point."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .commands.cache import cache
from .commands.config import config
from .commands.preload import preload
from .config import load_config
from .console import error_console
from .exceptions import ConfigError
from .logging_setup import init_logging

logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="hex-preload")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Configuration file path (default: search ./hex_preload.yaml and friends)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Minimum log level (overrides configuration)",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Append structured JSONL logs to this file",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, log_level: str | None, log_file: Path | None):
    """hex-preload - fetch and cache Hex.pm packages for offline compilation."""
    try:
        loaded = load_config(config_path)
    except ConfigError as e:
        error_console.print(f"[red]Configuration error:[/red] {e}")
        ctx.exit(2)

    init_logging(log_level or loaded.log_level, log_file)
    logger.debug(f"Using cache directory {loaded.cache.directory or 'default'}")

    ctx.ensure_object(dict)
    ctx.obj["config"] = loaded

    if ctx.invoked_subcommand is None:
        click.echo("\n" + ctx.get_help())
        ctx.exit()


cli.add_command(cache)
cli.add_command(config)
cli.add_command(preload)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
