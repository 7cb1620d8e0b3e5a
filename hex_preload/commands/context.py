"""Shared access to the configuration loaded by the top-level CLI group."""

import click

from ..config import LoaderConfig
from ..config import load_config
from ..package_cache import PackageCache


def get_config(ctx: click.Context) -> LoaderConfig:
    """Get the LoaderConfig stored by the root group, or load defaults."""
    obj = ctx.find_object(dict)
    if obj is not None and isinstance(obj.get("config"), LoaderConfig):
        return obj["config"]
    return load_config()


def get_cache(ctx: click.Context) -> PackageCache:
    """Build a PackageCache from the active configuration."""
    return PackageCache(get_config(ctx).cache)
