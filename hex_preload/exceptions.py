"""Error taxonomy for package resolution, retrieval and caching."""


class HexPreloadError(Exception):
    """Base class for all hex-preload errors."""


class RegistryError(HexPreloadError):
    """Raised when the registry cannot be reached or rejects a request.

    Covers non-retryable client errors, exhausted retries and timeouts.
    """

    def __init__(self, message: str, status_code: int | None = None, url: str | None = None):
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class ArchiveError(HexPreloadError):
    """Raised when a package tarball is malformed or incomplete."""


class CacheCorruptionError(HexPreloadError):
    """Raised internally when cache metadata references a missing file."""

    def __init__(self, package_name: str, version: str, missing_path: str):
        self.package_name = package_name
        self.version = version
        self.missing_path = missing_path
        super().__init__(f"Cache entry {package_name}@{version} is missing {missing_path}")


class PreludeLoadError(HexPreloadError):
    """Raised when the runtime prelude cannot be fetched."""


class ConfigError(HexPreloadError):
    """Raised when a configuration file cannot be read or validated."""
