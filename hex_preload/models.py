"""Plain data records shared by the registry, archive, cache and loader layers."""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from typing import Any


@dataclass(frozen=True)
class PackageIdentity:
    """Exact (name, version) pair. Version is never symbolic."""

    name: str
    version: str

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass
class Release:
    """A single published release of a registry package."""

    version: str
    url: str
    inserted_at: str


@dataclass
class RegistryPackageInfo:
    """Package metadata as reported by the registry API."""

    name: str
    latest_version: str
    releases: list[Release] = field(default_factory=list)


@dataclass
class ExtractedFile:
    """A file pulled out of a package tarball.

    ``path`` is relative to the package root and keeps its ``src/`` prefix.
    """

    path: str
    content: str
    is_auxiliary: bool = False


@dataclass
class ExtractResult:
    """Output of tarball extraction."""

    files: list[ExtractedFile] = field(default_factory=list)
    metadata: dict[str, Any] | None = None


@dataclass
class CacheMetadata:
    """Metadata record stored next to a cached package as ``.meta.json``."""

    package_name: str
    version: str
    cached_at: int  # epoch milliseconds
    ttl: int  # seconds
    files: list[str] = field(default_factory=list)

    @property
    def expires_at(self) -> int:
        return self.cached_at + self.ttl * 1000

    def is_valid(self, now_ms: int) -> bool:
        return now_ms < self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "packageName": self.package_name,
            "version": self.version,
            "cachedAt": self.cached_at,
            "ttl": self.ttl,
            "files": list(self.files),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheMetadata:
        """Build metadata from its JSON form.

        Raises:
            KeyError: A required key is missing
            TypeError: A value has the wrong type
        """
        files = data["files"]
        if not isinstance(files, list):
            raise TypeError("files must be a list")
        return cls(
            package_name=str(data["packageName"]),
            version=str(data["version"]),
            cached_at=int(data["cachedAt"]),
            ttl=int(data["ttl"]),
            files=[str(f) for f in files],
        )


@dataclass
class CachedPackage:
    """One entry reported by ``PackageCache.list()``."""

    package_name: str
    version: str
    metadata: CacheMetadata


@dataclass
class LoadedModule:
    """A primary source module ready to hand to the compiler."""

    module_name: str
    source: str
    package_name: str


@dataclass
class AuxiliaryFile:
    """A runtime companion file staged verbatim next to compiled output."""

    path: str
    content: str


@dataclass
class LoadResult:
    """Aggregate result of a load cycle. Partial failures land in ``errors``."""

    modules: list[LoadedModule] = field(default_factory=list)
    auxiliary_files: list[AuxiliaryFile] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def extend(self, other: LoadResult) -> None:
        self.modules.extend(other.modules)
        self.auxiliary_files.extend(other.auxiliary_files)
        self.errors.extend(other.errors)

    @property
    def succeeded(self) -> bool:
        return len(self.modules) > 0

    def module_names(self) -> list[str]:
        return [m.module_name for m in self.modules]
