"""Shared fixtures for hex-preload tests."""

import gzip
import io
import tarfile
from pathlib import Path

import pytest


def _add_bytes(tar: tarfile.TarFile, name: str, data: bytes) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    tar.addfile(info, io.BytesIO(data))


def build_tarball(
    files: dict[str, str],
    metadata: str | None = '{<<"name">>,<<"demo">>}.\n{<<"version">>,<<"1.0.0">>}.\n',
    *,
    include_contents: bool = True,
    extra_inner_entries: bool = False,
) -> bytes:
    """Build a registry-style outer tar with a nested contents.tar.gz."""
    inner = io.BytesIO()
    with tarfile.open(fileobj=inner, mode="w") as tar:
        if extra_inner_entries:
            dir_info = tarfile.TarInfo("src/gleam")
            dir_info.type = tarfile.DIRTYPE
            tar.addfile(dir_info)
            link_info = tarfile.TarInfo("src/link.gleam")
            link_info.type = tarfile.SYMTYPE
            link_info.linkname = "src/demo.gleam"
            tar.addfile(link_info)
        for path, content in files.items():
            _add_bytes(tar, path, content.encode("utf-8"))

    outer = io.BytesIO()
    with tarfile.open(fileobj=outer, mode="w") as tar:
        _add_bytes(tar, "VERSION", b"3")
        if metadata is not None:
            _add_bytes(tar, "metadata.config", metadata.encode("utf-8"))
        if include_contents:
            _add_bytes(tar, "contents.tar.gz", gzip.compress(inner.getvalue()))
    return outer.getvalue()


@pytest.fixture
def tarball_factory():
    return build_tarball


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "packages"
