"""
Package cache management.

Stores extracted package files on disk keyed by exact (name, version), with
a TTL recorded in a metadata file written after the package files.

Layout:
    {cache_dir}/{package}/{version}/<relative file paths...>
    {cache_dir}/{package}/{version}/.meta.json
"""

from __future__ import annotations

import contextlib
import json
import logging
import shutil
import tempfile
import time
from collections.abc import Iterable
from pathlib import Path
from pathlib import PurePosixPath
from typing import Protocol

from .archive import SOURCE_EXTENSION
from .archive import auxiliary_name_from_path
from .archive import module_name_from_path
from .config import CacheConfig
from .exceptions import CacheCorruptionError
from .models import CachedPackage
from .models import CacheMetadata
from .paths import get_package_cache_dir

logger = logging.getLogger(__name__)

METADATA_FILENAME = ".meta.json"


class _FileLike(Protocol):
    path: str
    content: str


def _now_ms() -> int:
    return int(time.time() * 1000)


def _validate_component(value: str, label: str) -> None:
    if not value or not value.strip():
        raise ValueError(f"{label} cannot be empty")
    # Prevent path traversal out of the cache directory
    if "/" in value or "\\" in value or value in (".", ".."):
        raise ValueError(f"Invalid {label}: {value}")


def _validate_relative_path(file_path: str) -> None:
    pure = PurePosixPath(file_path)
    if pure.is_absolute() or ".." in pure.parts or not pure.parts:
        raise ValueError(f"Invalid cached file path: {file_path}")


class PackageCache:
    """
    TTL-bounded on-disk cache of extracted package files.

    Contract:
    - Inputs: package name, exact version, files (path + content)
    - Outputs: module key -> content maps, metadata, listings
    - Side Effects: Filesystem writes under the cache directory
    - Errors: ValueError for invalid names/paths, OSError for disk issues on write
    - Disabled caches report misses and discard writes
    """

    def __init__(self, config: CacheConfig | None = None):
        """Initialize the cache.

        Args:
            config: Cache settings. Defaults to enabled, platform cache dir, 7 day TTL.
        """
        config = config or CacheConfig()
        self.enabled = config.enabled
        self.directory = Path(config.directory) if config.directory else get_package_cache_dir()
        self.ttl = config.ttl

    @property
    def cache_dir(self) -> Path:
        return self.directory

    def _package_dir(self, package_name: str, version: str) -> Path:
        _validate_component(package_name, "package name")
        _validate_component(version, "version")
        if version == "latest":
            raise ValueError("Symbolic version 'latest' must be resolved before caching")
        return self.directory / package_name / version

    def _metadata_path(self, package_name: str, version: str) -> Path:
        return self._package_dir(package_name, version) / METADATA_FILENAME

    def get_metadata(self, package_name: str, version: str) -> CacheMetadata | None:
        """Get cached metadata for a package, or None if absent or unreadable."""
        if not self.enabled:
            return None

        metadata_path = self._metadata_path(package_name, version)
        if not metadata_path.exists():
            return None

        try:
            data = json.loads(metadata_path.read_text(encoding="utf-8"))
            return CacheMetadata.from_dict(data)
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.debug(f"Unreadable cache metadata at {metadata_path}: {e}")
            return None

    def has(self, package_name: str, version: str) -> bool:
        """Check if a package version is cached and unexpired."""
        metadata = self.get_metadata(package_name, version)
        return metadata is not None and metadata.is_valid(_now_ms())

    def get(self, package_name: str, version: str) -> dict[str, str] | None:
        """Get cached files for a package.

        Files ending in .gleam are keyed by module name, with any leading src/ dropped
        ("src/gleam/io.gleam" and "gleam/io.gleam" -> "gleam/io"). Other files keep
        their path minus src/ ("src/x_ffi.mjs" -> "x_ffi.mjs").

        Returns:
            Map of key to content, or None on miss, expiry or corruption
        """
        metadata = self.get_metadata(package_name, version)
        if metadata is None or not metadata.is_valid(_now_ms()):
            return None

        try:
            return self._read_files(package_name, version, metadata)
        except CacheCorruptionError as e:
            logger.warning(f"{e}; removing corrupted entry")
            self.remove(package_name, version)
            return None

    def _read_files(self, package_name: str, version: str, metadata: CacheMetadata) -> dict[str, str]:
        package_dir = self._package_dir(package_name, version)
        files: dict[str, str] = {}

        for file_path in metadata.files:
            try:
                _validate_relative_path(file_path)
                content = (package_dir / file_path).read_text(encoding="utf-8")
            except (OSError, ValueError, UnicodeDecodeError) as e:
                raise CacheCorruptionError(package_name, version, file_path) from e

            if file_path.endswith(SOURCE_EXTENSION):
                key = module_name_from_path(file_path)
            else:
                key = auxiliary_name_from_path(file_path)
            files[key] = content

        return files

    def set(self, package_name: str, version: str, files: Iterable[_FileLike]) -> None:
        """Store files in the cache.

        Files are written first and metadata last, so an interrupted write
        leaves an entry without metadata, which reads as a miss.

        Args:
            package_name: Package name
            version: Exact package version
            files: Objects with ``path`` (relative to package root) and ``content``

        Raises:
            ValueError: Invalid name, version or file path
            OSError: Unable to write to the cache directory
        """
        if not self.enabled:
            return

        package_dir = self._package_dir(package_name, version)
        package_dir.mkdir(parents=True, exist_ok=True)

        file_paths: list[str] = []
        for file in files:
            _validate_relative_path(file.path)
            full_path = package_dir / file.path
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_text(file.content, encoding="utf-8")
            file_paths.append(file.path)

        metadata = CacheMetadata(
            package_name=package_name,
            version=version,
            cached_at=_now_ms(),
            ttl=self.ttl,
            files=file_paths,
        )
        self._save_metadata(package_dir, metadata)
        logger.debug(f"Cached {package_name}@{version} ({len(file_paths)} files)")

    def _save_metadata(self, package_dir: Path, metadata: CacheMetadata) -> None:
        metadata_file = package_dir / METADATA_FILENAME

        # Write to temp file first (atomic write pattern)
        with tempfile.NamedTemporaryFile(
            mode="w", dir=package_dir, prefix="meta_", suffix=".tmp", delete=False, encoding="utf-8"
        ) as tmp_file:
            temp_path = Path(tmp_file.name)
            try:
                json.dump(metadata.to_dict(), tmp_file, indent=2)
                tmp_file.flush()
            except Exception as e:
                with contextlib.suppress(OSError):
                    temp_path.unlink()
                raise OSError(f"Failed to save cache metadata: {e}") from e

        temp_path.replace(metadata_file)

    def remove(self, package_name: str, version: str) -> None:
        """Remove a specific package version from the cache."""
        if not self.enabled:
            return
        shutil.rmtree(self._package_dir(package_name, version), ignore_errors=True)

    def remove_package(self, package_name: str) -> None:
        """Remove all versions of a package from the cache."""
        if not self.enabled:
            return
        _validate_component(package_name, "package name")
        shutil.rmtree(self.directory / package_name, ignore_errors=True)

    def clear(self) -> None:
        """Remove every cached package."""
        if not self.enabled:
            return
        shutil.rmtree(self.directory, ignore_errors=True)

    def list(self) -> list[CachedPackage]:
        """List all cached entries that have readable metadata.

        Returns:
            Entries sorted by package name, then version
        """
        if not self.enabled or not self.directory.exists():
            return []

        packages: list[CachedPackage] = []
        for package_dir in sorted(self.directory.iterdir()):
            if not package_dir.is_dir() or package_dir.name.startswith("."):
                continue

            for version_dir in sorted(package_dir.iterdir()):
                if not version_dir.is_dir():
                    continue
                try:
                    metadata = self.get_metadata(package_dir.name, version_dir.name)
                except ValueError:
                    continue
                if metadata:
                    packages.append(CachedPackage(package_dir.name, version_dir.name, metadata))

        return packages

    def cleanup(self) -> int:
        """Remove expired cache entries.

        Returns:
            Number of entries removed
        """
        if not self.enabled:
            return 0

        now = _now_ms()
        removed = 0
        for entry in self.list():
            if not entry.metadata.is_valid(now):
                self.remove(entry.package_name, entry.version)
                logger.info(f"Removed expired cache entry {entry.package_name}@{entry.version}")
                removed += 1

        return removed

    def size_bytes(self) -> int:
        """Total disk usage of the cache directory in bytes."""
        if not self.directory.exists():
            return 0
        total = 0
        with contextlib.suppress(OSError):
            for entry in self.directory.rglob("*"):
                if entry.is_file():
                    with contextlib.suppress(OSError):
                        total += entry.stat().st_size
        return total


def clean_package_cache(directory: Path | None = None) -> bool:
    """Remove the package cache directory.

    Returns:
        True if a directory was removed, False if it did not exist
    """
    cache_dir = directory or get_package_cache_dir()
    if not cache_dir.exists():
        return False
    shutil.rmtree(cache_dir)
    logger.info(f"Removed package cache: {cache_dir}")
    return True
