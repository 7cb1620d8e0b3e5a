"""Configuration commands."""

from __future__ import annotations

from pathlib import Path

import click
import yaml

from ..config import create_example_config
from ..config import save_config
from ..console import console
from .context import get_config


@click.group(invoke_without_command=True)
@click.pass_context
def config(ctx: click.Context):
    """Inspect and create configuration files."""
    if ctx.invoked_subcommand is None:
        click.echo("\n" + ctx.get_help())
        ctx.exit()


@config.command(name="init")
@click.argument("path", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file")
def config_init(path: Path | None, force: bool):
    """Create an example configuration file (default: ./hex_preload.yaml)."""
    target = path or Path("hex_preload.yaml")

    if target.exists() and not force:
        console.print(f"[yellow]{target} already exists.[/yellow] Use --force to overwrite.")
        raise click.exceptions.Exit(1)

    save_config(create_example_config(), target)
    console.print(f"[green]✓ Wrote example configuration to {target}[/green]")


@config.command(name="show")
@click.pass_context
def config_show(ctx: click.Context):
    """Show the effective configuration."""
    effective = get_config(ctx).model_dump(mode="json", exclude_none=True)
    click.echo(yaml.safe_dump(effective, sort_keys=False))
