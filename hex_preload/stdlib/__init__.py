"""Standard library catalogue and loader.

The loader itself lives in ``hex_preload.stdlib.loader``.
"""

from .builtin_packages import BUILTIN_PACKAGE_MODULES
from .builtin_packages import BUILTIN_PACKAGE_NAMES
from .builtin_packages import BUILTIN_PACKAGES
from .builtin_packages import FALLBACK_SOURCE_URLS
from .builtin_packages import BuiltinPackage
from .builtin_packages import get_builtin_package
from .builtin_packages import is_builtin_package

__all__ = [
    "BUILTIN_PACKAGES",
    "BUILTIN_PACKAGE_MODULES",
    "BUILTIN_PACKAGE_NAMES",
    "FALLBACK_SOURCE_URLS",
    "BuiltinPackage",
    "get_builtin_package",
    "is_builtin_package",
]
