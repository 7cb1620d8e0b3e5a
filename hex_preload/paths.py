"""Cache path policy.

This module centralizes the on-disk location decisions. Libraries receive
directories via injection; this module provides the defaults.
"""

import os
import sys
from pathlib import Path

APP_DIR_NAME = "hex-preload"
CACHE_DIR_ENV = "HEX_PRELOAD_CACHE_DIR"


def get_cache_root() -> Path:
    """Get the platform-specific base cache directory.

    Resolution order:
    1. ``HEX_PRELOAD_CACHE_DIR`` environment variable
    2. macOS: ~/Library/Caches/hex-preload
    3. Windows: %LOCALAPPDATA%/hex-preload
    4. Other: $XDG_CACHE_HOME/hex-preload or ~/.cache/hex-preload
    """
    if override := os.environ.get(CACHE_DIR_ENV):
        return Path(override).expanduser()

    home = Path.home()
    if sys.platform == "darwin":
        return home / "Library" / "Caches" / APP_DIR_NAME
    if sys.platform == "win32":
        local_app_data = os.environ.get("LOCALAPPDATA")
        base = Path(local_app_data) if local_app_data else home / "AppData" / "Local"
        return base / APP_DIR_NAME

    xdg_cache = os.environ.get("XDG_CACHE_HOME")
    base = Path(xdg_cache) if xdg_cache else home / ".cache"
    return base / APP_DIR_NAME


def get_package_cache_dir() -> Path:
    """Get the directory holding cached registry packages."""
    return get_cache_root() / "packages"
