"""Package tarball extraction.

Registry tarballs have a nested structure:
- Outer uncompressed tar containing: VERSION, metadata.config, contents.tar.gz
- contents.tar.gz is a gzip-compressed tar holding the package files,
  including the src/ directory
"""

from __future__ import annotations

import gzip
import io
import logging
import re
import tarfile
import zlib
from pathlib import PurePosixPath
from typing import Any

from .exceptions import ArchiveError
from .models import ExtractedFile
from .models import ExtractResult

logger = logging.getLogger(__name__)

CONTENTS_ENTRY = "contents.tar.gz"
METADATA_ENTRY = "metadata.config"
SOURCE_ROOT = "src/"
SOURCE_EXTENSION = ".gleam"
AUXILIARY_EXTENSIONS = (".mjs", ".js")

_BINARY_PAIR_RE = re.compile(r'\{\s*<<"([^"]+)">>\s*,\s*<<"((?:[^"\\]|\\.)*)">>\s*\}\s*\.')
_LIST_PAIR_RE = re.compile(r'\{\s*<<"([^"]+)">>\s*,\s*\[(.*?)\]\s*\}\s*\.', re.DOTALL)
_BINARY_RE = re.compile(r'<<"((?:[^"\\]|\\.)*)">>')


def _read_tar(data: bytes, label: str) -> dict[str, bytes]:
    """Read the regular files of an uncompressed tar into a name -> bytes map.

    Directories, symlinks and other special members are skipped; tarfile
    steps over their data blocks when advancing to the next header.
    """
    files: dict[str, bytes] = {}
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as tar:
            for member in tar:
                if not member.isreg():
                    logger.debug(f"Skipping non-file entry {member.name!r} in {label}")
                    continue
                handle = tar.extractfile(member)
                if handle is None:
                    continue
                name = member.name[2:] if member.name.startswith("./") else member.name
                files[name] = handle.read()
    except tarfile.TarError as e:
        raise ArchiveError(f"Malformed {label}: {e}") from e
    return files


def parse_metadata_config(text: str) -> dict[str, Any]:
    """Best-effort parse of Erlang-term ``metadata.config``.

    Only ``{<<"key">>, <<"value">>}.`` and ``{<<"key">>, [<<"a">>, ...]}.``
    terms are understood; anything else is ignored.
    """
    metadata: dict[str, Any] = {}
    for key, value in _BINARY_PAIR_RE.findall(text):
        metadata[key] = value
    for key, items in _LIST_PAIR_RE.findall(text):
        metadata.setdefault(key, _BINARY_RE.findall(items))
    return metadata


def is_safe_path(path: str) -> bool:
    """True if ``path`` cannot escape the directory it is extracted into."""
    pure = PurePosixPath(path)
    return not pure.is_absolute() and ".." not in pure.parts and "\\" not in path


def is_source_path(path: str) -> bool:
    return path.startswith(SOURCE_ROOT) and path.endswith(SOURCE_EXTENSION)


def is_auxiliary_path(path: str) -> bool:
    return path.startswith(SOURCE_ROOT) and path.endswith(AUXILIARY_EXTENSIONS)


def module_name_from_path(file_path: str) -> str:
    """Get module name from file path.

    Examples:
        "src/gleam/io.gleam" -> "gleam/io"
        "src/dinostore.gleam" -> "dinostore"
    """
    name = file_path.removeprefix(SOURCE_ROOT)
    return name.removesuffix(SOURCE_EXTENSION)


def auxiliary_name_from_path(file_path: str) -> str:
    """Get the staged name of an auxiliary file ("src/x_ffi.mjs" -> "x_ffi.mjs")."""
    return file_path.removeprefix(SOURCE_ROOT)


def extract_package_tarball(data: bytes) -> ExtractResult:
    """Extract source and auxiliary files from a registry tarball.

    Args:
        data: Raw outer tarball bytes as downloaded from the registry

    Returns:
        ExtractResult with .gleam sources and .mjs/.js companions from src/

    Raises:
        ArchiveError: Tarball is malformed or has no contents archive
    """
    outer_files = _read_tar(data, "package tarball")

    contents = outer_files.get(CONTENTS_ENTRY)
    if contents is None:
        raise ArchiveError(f"missing contents archive: {CONTENTS_ENTRY} not found in package tarball")

    try:
        contents_tar = gzip.decompress(contents)
    except (OSError, EOFError, zlib.error) as e:
        raise ArchiveError(f"Failed to decompress {CONTENTS_ENTRY}: {e}") from e

    inner_files = _read_tar(contents_tar, CONTENTS_ENTRY)

    result = ExtractResult()
    for path, content in sorted(inner_files.items()):
        if not is_safe_path(path):
            logger.warning(f"Skipping unsafe path {path!r} in {CONTENTS_ENTRY}")
            continue
        if is_source_path(path):
            is_auxiliary = False
        elif is_auxiliary_path(path):
            is_auxiliary = True
        else:
            continue
        result.files.append(
            ExtractedFile(path=path, content=content.decode("utf-8", errors="replace"), is_auxiliary=is_auxiliary)
        )

    raw_metadata = outer_files.get(METADATA_ENTRY)
    if raw_metadata is not None:
        try:
            result.metadata = parse_metadata_config(raw_metadata.decode("utf-8")) or None
        except UnicodeDecodeError as e:
            logger.debug(f"Ignoring unreadable {METADATA_ENTRY}: {e}")

    return result
