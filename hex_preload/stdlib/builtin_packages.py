"""Builtin package catalogue.

These packages are always loaded, independent of user configuration. They
provide the standard library needed to compile and run typical programs.

Some packages (dinostore, gleam_stdin) are left out because they lag behind
the latest gleam_stdlib API. Users can still request them with a pinned
version through the ``packages`` configuration list.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class BuiltinPackage:
    """A builtin package and its human-readable description."""

    name: str
    description: str


BUILTIN_PACKAGES: tuple[BuiltinPackage, ...] = (
    BuiltinPackage("gleam_stdlib", "Gleam standard library with core types and functions"),
    BuiltinPackage("gleam_javascript", "Gleam JavaScript interop (arrays, promises)"),
    BuiltinPackage("gleam_json", "JSON encoding and decoding"),
    BuiltinPackage("gleam_http", "HTTP types and utilities"),
    BuiltinPackage("gleam_fetch", "Fetch API for HTTP requests"),
    BuiltinPackage("plinth", "Browser and JavaScript utilities"),
    BuiltinPackage("filepath", "File path manipulation utilities"),
    BuiltinPackage("simplifile", "File system operations for Gleam"),
)

BUILTIN_PACKAGE_NAMES: tuple[str, ...] = tuple(pkg.name for pkg in BUILTIN_PACKAGES)

# Raw source roots used when the registry is unavailable
FALLBACK_SOURCE_URLS: dict[str, str] = {
    "gleam_stdlib": "https://raw.githubusercontent.com/gleam-lang/stdlib/main/src",
    "gleam_javascript": "https://raw.githubusercontent.com/gleam-lang/javascript/main/src",
    "gleam_json": "https://raw.githubusercontent.com/gleam-lang/json/main/src",
    "gleam_http": "https://raw.githubusercontent.com/gleam-lang/http/main/src",
    "gleam_fetch": "https://raw.githubusercontent.com/gleam-lang/fetch/main/src",
    "plinth": "https://raw.githubusercontent.com/CrowdHailer/plinth/main/src",
    "filepath": "https://raw.githubusercontent.com/lpil/filepath/main/src",
    "simplifile": "https://raw.githubusercontent.com/bcpeinhardt/simplifile/main/src",
}

# Commonly used modules per builtin package, relative to the source root
BUILTIN_PACKAGE_MODULES: dict[str, tuple[str, ...]] = {
    "gleam_stdlib": (
        "gleam/io.gleam",
        "gleam/list.gleam",
        "gleam/string.gleam",
        "gleam/string_tree.gleam",
        "gleam/int.gleam",
        "gleam/float.gleam",
        "gleam/bool.gleam",
        "gleam/result.gleam",
        "gleam/option.gleam",
        "gleam/order.gleam",
        "gleam/bit_array.gleam",
        "gleam/dict.gleam",
        "gleam/set.gleam",
        "gleam/uri.gleam",
        "gleam/dynamic.gleam",
        "gleam/dynamic/decode.gleam",
        "gleam/function.gleam",
    ),
    "gleam_javascript": (
        "gleam/javascript/array.gleam",
        "gleam/javascript/promise.gleam",
    ),
    "gleam_json": ("gleam/json.gleam",),
    "gleam_http": (
        "gleam/http.gleam",
        "gleam/http/request.gleam",
        "gleam/http/response.gleam",
        "gleam/http/service.gleam",
        "gleam/http/cookie.gleam",
    ),
    "gleam_fetch": (
        "gleam/fetch.gleam",
        "gleam/fetch/form_data.gleam",
    ),
    "plinth": (
        "plinth/browser/document.gleam",
        "plinth/browser/element.gleam",
        "plinth/browser/event.gleam",
        "plinth/browser/window.gleam",
        "plinth/javascript/global.gleam",
        "plinth/javascript/date.gleam",
        "plinth/javascript/console.gleam",
        "plinth/javascript/json.gleam",
        "plinth/javascript/storage.gleam",
    ),
    "filepath": ("filepath.gleam",),
    "simplifile": ("simplifile.gleam",),
}

PRELUDE_URL = "https://raw.githubusercontent.com/gleam-lang/gleam/main/compiler-core/templates/prelude.mjs"
PRELUDE_FILENAME = "gleam_prelude.mjs"


def is_builtin_package(package_name: str) -> bool:
    """Check if a package name is a builtin package."""
    return package_name in BUILTIN_PACKAGE_NAMES


def get_builtin_package(package_name: str) -> BuiltinPackage | None:
    """Get builtin package info by name."""
    return next((pkg for pkg in BUILTIN_PACKAGES if pkg.name == package_name), None)
