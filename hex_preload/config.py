"""Configuration models and file loading.

A single explicit configuration object with documented defaults per field.
Files are YAML (JSON is accepted too, since YAML is a superset).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel
from pydantic import Field
from pydantic import ValidationError
from pydantic import field_validator

from .exceptions import ConfigError
from .stdlib.builtin_packages import BUILTIN_PACKAGE_NAMES
from .stdlib.builtin_packages import PRELUDE_URL

logger = logging.getLogger(__name__)

DEFAULT_TTL = 7 * 24 * 60 * 60  # 7 days in seconds

DEFAULT_CONFIG_PATHS = (
    Path("hex_preload.yaml"),
    Path("hex_preload.yml"),
    Path("hex_preload.json"),
    Path(".hex_preload.json"),
)


class CacheConfig(BaseModel):
    """On-disk package cache settings."""

    enabled: bool = Field(default=True, description="Disable to make every cache operation a no-op")
    directory: Path | None = Field(None, description="Cache root. Defaults to the platform cache dir")
    ttl: int = Field(default=DEFAULT_TTL, ge=0, description="Entry time-to-live in seconds")


class RegistryConfig(BaseModel):
    """Registry endpoints and retry policy."""

    api_base: str = Field(default="https://hex.pm/api", description="Package metadata API base URL")
    repo_base: str = Field(default="https://repo.hex.pm", description="Tarball repository base URL")
    max_retries: int = Field(default=3, ge=1, description="Attempts per request")
    base_retry_delay: float = Field(default=1.0, ge=0, description="Backoff base in seconds")
    timeout: float = Field(default=30.0, gt=0, description="Per-attempt timeout in seconds")


class PackageSpec(BaseModel):
    """A user-requested package, optionally pinned to a version."""

    name: str = Field(..., min_length=1)
    version: str | None = Field(None, description="Exact version. Omit for the latest stable release")

    @classmethod
    def parse(cls, value: str | dict[str, Any] | PackageSpec) -> PackageSpec:
        """Parse ``name``, ``name@version`` or a mapping into a PackageSpec."""
        if isinstance(value, PackageSpec):
            return value
        if isinstance(value, dict):
            return cls.model_validate(value)
        name, sep, version = str(value).partition("@")
        return cls(name=name, version=version if sep and version else None)


class LoaderConfig(BaseModel):
    """Complete configuration for a load cycle."""

    packages: list[PackageSpec] = Field(default_factory=list, description="Third-party packages to load")
    cache: CacheConfig = Field(default_factory=CacheConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    builtin_packages: list[str] = Field(default_factory=lambda: list(BUILTIN_PACKAGE_NAMES))
    prelude_url: str = Field(default=PRELUDE_URL, description="Runtime prelude location")
    max_concurrency: int = Field(default=8, ge=1, description="Packages resolved in parallel")
    load_timeout: float | None = Field(default=300.0, gt=0, description="Deadline for the whole load")
    fallback_io: bool = Field(default=True, description="Provide a minimal gleam/io if none was loaded")
    log_level: str = Field(default="WARNING")

    @field_validator("packages", mode="before")
    @classmethod
    def _coerce_packages(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [PackageSpec.parse(item) if isinstance(item, str) else item for item in value]
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Flatten the ``standardLibrary`` section and accept camelCase keys."""
    result = dict(data)
    for section_key in ("standardLibrary", "standard_library"):
        section = result.pop(section_key, None)
        if isinstance(section, dict):
            for key in ("packages", "cache"):
                if key in section and key not in result:
                    result[key] = section[key]

    aliases = {
        "builtinPackages": "builtin_packages",
        "preludeUrl": "prelude_url",
        "maxConcurrency": "max_concurrency",
        "loadTimeout": "load_timeout",
        "fallbackIo": "fallback_io",
        "logLevel": "log_level",
    }
    for camel, snake in aliases.items():
        if camel in result and snake not in result:
            result[snake] = result.pop(camel)

    registry = result.get("registry")
    if isinstance(registry, dict):
        registry_aliases = {
            "apiBase": "api_base",
            "repoBase": "repo_base",
            "maxRetries": "max_retries",
            "baseRetryDelay": "base_retry_delay",
        }
        result["registry"] = {registry_aliases.get(k, k): v for k, v in registry.items()}
    return result


def parse_config(data: dict[str, Any] | None) -> LoaderConfig:
    """Validate raw configuration data.

    Raises:
        ConfigError: Data does not match the configuration schema
    """
    if not data:
        return LoaderConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a mapping, got {type(data).__name__}")
    try:
        return LoaderConfig.model_validate(_normalize_keys(data))
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def _read_config_file(path: Path) -> LoaderConfig:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e
    return parse_config(data)


def load_config(path: Path | str | None = None) -> LoaderConfig:
    """Load configuration from a file.

    Args:
        path: Explicit config file. If None, searches the default locations
            in the current directory and returns defaults when none exists.

    Returns:
        Validated LoaderConfig

    Raises:
        ConfigError: Explicit path is missing or invalid
    """
    if path is not None:
        return _read_config_file(Path(path))

    for candidate in DEFAULT_CONFIG_PATHS:
        if not candidate.exists():
            continue
        try:
            config = _read_config_file(candidate)
            logger.debug(f"Loaded configuration from {candidate}")
            return config
        except ConfigError as e:
            logger.warning(f"Skipping invalid config file {candidate}: {e}")

    return LoaderConfig()


def save_config(config: LoaderConfig, path: Path | str) -> None:
    """Write configuration as YAML."""
    data = config.model_dump(mode="json", exclude_none=True)
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")


def create_example_config() -> LoaderConfig:
    """Example configuration with a pinned and an unpinned package."""
    return LoaderConfig(
        packages=[
            PackageSpec(name="gleam_community_colour"),
            PackageSpec(name="dinostore", version="0.1.0"),
        ],
        cache=CacheConfig(ttl=DEFAULT_TTL),
        log_level="WARNING",
    )
