"""Preload command: resolve, download and cache all configured packages."""

from __future__ import annotations

import asyncio
import json
from collections import Counter

import click
from rich.panel import Panel
from rich.table import Table

from ..config import LoaderConfig
from ..config import PackageSpec
from ..console import console
from ..models import LoadResult
from ..registry.client import RegistryClient
from ..stdlib.builtin_packages import is_builtin_package
from ..stdlib.loader import PackageLoader
from .context import get_config


async def _run_preload(config: LoaderConfig) -> LoadResult:
    async with RegistryClient(config.registry) as client:
        loader = PackageLoader(config, client=client)
        return await loader.load_all()


def _render_result(result: LoadResult) -> None:
    per_package = Counter(module.package_name for module in result.modules)

    if per_package:
        table = Table(title="Loaded Packages", show_header=True, header_style="bold cyan")
        table.add_column("Package", style="green")
        table.add_column("Source", style="dim")
        table.add_column("Modules", justify="right")
        for package_name, count in sorted(per_package.items()):
            source = "builtin" if is_builtin_package(package_name) else "user"
            table.add_row(package_name, source, str(count))
        console.print(table)

    if result.auxiliary_files:
        names = ", ".join(sorted(f.path for f in result.auxiliary_files))
        console.print(f"[dim]Auxiliary files ({len(result.auxiliary_files)}): {names}[/dim]")

    if result.errors:
        console.print(
            Panel(
                "\n".join(result.errors),
                title=f"[bold red]{len(result.errors)} error(s)[/bold red]",
                border_style="red",
            )
        )

    console.print(f"\n[bold]Total:[/bold] {len(result.modules)} modules from {len(per_package)} packages")


@click.command()
@click.option(
    "--package",
    "-p",
    "packages",
    multiple=True,
    metavar="NAME[@VERSION]",
    help="Extra package to load (repeatable)",
)
@click.option("--no-cache", is_flag=True, help="Bypass the package cache for this run")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def preload(ctx: click.Context, packages: tuple[str, ...], no_cache: bool, as_json: bool):
    """Load builtin and configured packages into the local cache."""
    config = get_config(ctx)

    updates: dict = {}
    if packages:
        updates["packages"] = [*config.packages, *(PackageSpec.parse(p) for p in packages)]
    if no_cache:
        updates["cache"] = config.cache.model_copy(update={"enabled": False})
    if updates:
        config = config.model_copy(update=updates)

    result = asyncio.run(_run_preload(config))

    if as_json:
        payload = {
            "modules": [{"module": m.module_name, "package": m.package_name} for m in result.modules],
            "auxiliary_files": [f.path for f in result.auxiliary_files],
            "errors": result.errors,
        }
        click.echo(json.dumps(payload, indent=2))
    else:
        _render_result(result)

    if not result.succeeded:
        ctx.exit(1)
