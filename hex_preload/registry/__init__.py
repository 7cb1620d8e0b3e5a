"""Registry access: package metadata, tarball downloads, version ordering."""

from .client import RegistryClient
from .versions import compare_versions
from .versions import is_prerelease
from .versions import version_key

__all__ = [
    "RegistryClient",
    "compare_versions",
    "is_prerelease",
    "version_key",
]
