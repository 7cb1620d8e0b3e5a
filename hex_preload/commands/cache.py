"""Cache management commands.

Provides commands to inspect, manage, and clean the package cache. Every
package downloaded from the registry is stored there, keyed by exact version.
"""

from __future__ import annotations

from datetime import UTC
from datetime import datetime

import click
from rich.table import Table

from ..console import console
from ..package_cache import PackageCache
from ..package_cache import clean_package_cache
from .context import get_cache


def _format_size(size_bytes: int) -> str:
    """Format bytes as human-readable size."""
    size_float = float(size_bytes)
    for unit in ["B", "KB", "MB", "GB"]:
        if size_float < 1024:
            return f"{size_float:.1f} {unit}"
        size_float /= 1024
    return f"{size_float:.1f} TB"


def _format_timestamp(epoch_ms: int) -> str:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=UTC).strftime("%Y-%m-%d %H:%M UTC")


def _require_enabled(cache: PackageCache) -> bool:
    if not cache.enabled:
        console.print("[yellow]Package cache is disabled in configuration.[/yellow]")
        return False
    return True


@click.group(invoke_without_command=True)
@click.pass_context
def cache(ctx: click.Context):
    """Manage the package cache.

    The cache stores extracted registry packages so later loads work
    without network access.
    """
    if ctx.invoked_subcommand is None:
        click.echo("\n" + ctx.get_help())
        ctx.exit()


@cache.command(name="path")
@click.pass_context
def cache_path(ctx: click.Context):
    """Show the cache directory path."""
    package_cache = get_cache(ctx)
    console.print(f"[cyan]{package_cache.cache_dir}[/cyan]")

    if package_cache.cache_dir.exists():
        console.print("[dim]Status: exists[/dim]")
    else:
        console.print("[dim]Status: not created yet[/dim]")


@cache.command(name="size")
@click.pass_context
def cache_size(ctx: click.Context):
    """Show total cache disk usage."""
    package_cache = get_cache(ctx)

    if not package_cache.cache_dir.exists():
        console.print("[dim]Cache directory does not exist yet.[/dim]")
        console.print(f"[dim]Path: {package_cache.cache_dir}[/dim]")
        return

    console.print(f"[bold]Cache Size:[/bold] {_format_size(package_cache.size_bytes())}")
    console.print(f"[dim]Path: {package_cache.cache_dir}[/dim]")


@cache.command(name="list")
@click.pass_context
def cache_list(ctx: click.Context):
    """List all cached packages."""
    package_cache = get_cache(ctx)
    if not _require_enabled(package_cache):
        return

    entries = package_cache.list()
    if not entries:
        console.print("[dim]No cached packages found.[/dim]")
        return

    now_ms = int(datetime.now(UTC).timestamp() * 1000)

    table = Table(title="Cached Packages")
    table.add_column("Package", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Files", justify="right")
    table.add_column("Cached", style="dim")
    table.add_column("Expires", style="dim")
    table.add_column("Status")

    for entry in entries:
        metadata = entry.metadata
        status = "[green]valid[/green]" if metadata.is_valid(now_ms) else "[yellow]expired[/yellow]"
        table.add_row(
            entry.package_name,
            entry.version,
            str(len(metadata.files)),
            _format_timestamp(metadata.cached_at),
            _format_timestamp(metadata.expires_at),
            status,
        )

    console.print(table)
    console.print(f"\n[bold]Total:[/bold] {len(entries)} packages")


@cache.command(name="remove")
@click.argument("package_name")
@click.argument("version", required=False)
@click.pass_context
def cache_remove(ctx: click.Context, package_name: str, version: str | None):
    """Remove one package version, or every version of a package."""
    package_cache = get_cache(ctx)
    if not _require_enabled(package_cache):
        return

    try:
        if version:
            package_cache.remove(package_name, version)
            console.print(f"[green]Removed {package_name}@{version} from cache[/green]")
        else:
            package_cache.remove_package(package_name)
            console.print(f"[green]Removed all cached versions of {package_name}[/green]")
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        ctx.exit(1)


@cache.command(name="cleanup")
@click.pass_context
def cache_cleanup(ctx: click.Context):
    """Remove expired cache entries."""
    package_cache = get_cache(ctx)
    if not _require_enabled(package_cache):
        return

    removed = package_cache.cleanup()
    if removed:
        console.print(f"[green]Removed {removed} expired entries[/green]")
    else:
        console.print("[dim]No expired entries found.[/dim]")


@cache.command(name="clean")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Skip confirmation prompt",
)
@click.pass_context
def cache_clean(ctx: click.Context, force: bool):
    """Remove every cached package."""
    package_cache = get_cache(ctx)

    if not package_cache.cache_dir.exists():
        console.print("[dim]Cache directory does not exist - nothing to clean.[/dim]")
        return

    entries = package_cache.list()
    total_size = package_cache.size_bytes()

    console.print("\n[bold]Will clean all cached packages:[/bold]")
    console.print(f"  Packages: {len(entries)}")
    console.print(f"  Size: {_format_size(total_size)}")

    # Confirm unless --force
    if not force and not click.confirm("\nProceed with cleaning cache?"):
        console.print("[yellow]Aborted.[/yellow]")
        return

    try:
        clean_package_cache(package_cache.cache_dir)
    except OSError as e:
        console.print(f"[red]Error cleaning cache:[/red] {e}")
        ctx.exit(1)

    console.print(f"\n[green]Cleaned {len(entries)} packages ({_format_size(total_size)})[/green]")
