"""
Tests for PackageCache.

Focus on on-disk invariants: metadata written last, TTL expiry,
self-healing on corruption and path validation.
"""

import json

import pytest
from hex_preload import package_cache as cache_module
from hex_preload.config import CacheConfig
from hex_preload.models import ExtractedFile
from hex_preload.package_cache import METADATA_FILENAME
from hex_preload.package_cache import PackageCache
from hex_preload.package_cache import clean_package_cache

NOW_MS = 1_700_000_000_000


@pytest.fixture
def clock(monkeypatch):
    """Controllable millisecond clock."""
    state = {"now": NOW_MS}
    monkeypatch.setattr(cache_module, "_now_ms", lambda: state["now"])
    return state


@pytest.fixture
def cache(cache_dir, clock):
    return PackageCache(CacheConfig(directory=cache_dir, ttl=60))


@pytest.fixture
def sample_files():
    return [
        ExtractedFile("src/gleam/io.gleam", "pub fn println() { Nil }"),
        ExtractedFile("src/gleam/list.gleam", "pub fn map() { Nil }"),
        ExtractedFile("src/gleam_stdlib.mjs", "export function print() {}", is_auxiliary=True),
    ]


class TestPackageCache:
    def test_set_get_roundtrip(self, cache, sample_files):
        cache.set("gleam_stdlib", "0.34.0", sample_files)

        assert cache.get("gleam_stdlib", "0.34.0") == {
            "gleam/io": "pub fn println() { Nil }",
            "gleam/list": "pub fn map() { Nil }",
            "gleam_stdlib.mjs": "export function print() {}",
        }

    def test_keys_without_src_prefix(self, cache):
        cache.set(
            "pkg",
            "1.0.0",
            [ExtractedFile("gleam/io.gleam", "x"), ExtractedFile("pkg_ffi.mjs", "y", is_auxiliary=True)],
        )

        assert cache.get("pkg", "1.0.0") == {"gleam/io": "x", "pkg_ffi.mjs": "y"}

    def test_metadata_written_with_camel_case_keys(self, cache, cache_dir, sample_files):
        cache.set("gleam_stdlib", "0.34.0", sample_files)

        data = json.loads((cache_dir / "gleam_stdlib" / "0.34.0" / METADATA_FILENAME).read_text())
        assert data["packageName"] == "gleam_stdlib"
        assert data["cachedAt"] == NOW_MS
        assert data["ttl"] == 60
        assert data["files"] == [f.path for f in sample_files]

    def test_no_temp_files_left_behind(self, cache, cache_dir, sample_files):
        cache.set("gleam_stdlib", "0.34.0", sample_files)

        leftovers = list((cache_dir / "gleam_stdlib" / "0.34.0").glob("*.tmp"))
        assert leftovers == []

    def test_set_is_idempotent(self, cache, sample_files):
        cache.set("gleam_stdlib", "0.34.0", sample_files)
        first = cache.get("gleam_stdlib", "0.34.0")
        cache.set("gleam_stdlib", "0.34.0", sample_files)

        assert cache.get("gleam_stdlib", "0.34.0") == first
        assert len(cache.list()) == 1

    def test_missing_entry_is_a_miss(self, cache):
        assert cache.get("nope", "1.0.0") is None
        assert cache.has("nope", "1.0.0") is False

    def test_entry_without_metadata_is_a_miss(self, cache, cache_dir):
        package_dir = cache_dir / "partial" / "1.0.0" / "src"
        package_dir.mkdir(parents=True)
        (package_dir / "partial.gleam").write_text("pub fn x() { 1 }")

        assert cache.get("partial", "1.0.0") is None
        assert cache.list() == []

    def test_ttl_expiry(self, cache, clock, sample_files):
        cache.set("gleam_stdlib", "0.34.0", sample_files)
        assert cache.has("gleam_stdlib", "0.34.0") is True

        clock["now"] = NOW_MS + 59_999
        assert cache.has("gleam_stdlib", "0.34.0") is True

        clock["now"] = NOW_MS + 60_000
        assert cache.has("gleam_stdlib", "0.34.0") is False
        assert cache.get("gleam_stdlib", "0.34.0") is None

    def test_corrupted_entry_self_heals(self, cache, cache_dir, sample_files):
        cache.set("gleam_stdlib", "0.34.0", sample_files)
        (cache_dir / "gleam_stdlib" / "0.34.0" / "src" / "gleam" / "io.gleam").unlink()

        assert cache.get("gleam_stdlib", "0.34.0") is None
        assert not (cache_dir / "gleam_stdlib" / "0.34.0").exists()
        assert cache.list() == []

    def test_unreadable_metadata_is_a_miss(self, cache, cache_dir, sample_files):
        cache.set("gleam_stdlib", "0.34.0", sample_files)
        (cache_dir / "gleam_stdlib" / "0.34.0" / METADATA_FILENAME).write_text("{not json")

        assert cache.get_metadata("gleam_stdlib", "0.34.0") is None
        assert cache.get("gleam_stdlib", "0.34.0") is None

    def test_list_sorted(self, cache, sample_files):
        cache.set("plinth", "0.2.0", sample_files)
        cache.set("gleam_json", "1.0.0", sample_files)
        cache.set("gleam_json", "0.7.0", sample_files)

        assert [(e.package_name, e.version) for e in cache.list()] == [
            ("gleam_json", "0.7.0"),
            ("gleam_json", "1.0.0"),
            ("plinth", "0.2.0"),
        ]

    def test_cleanup_removes_only_expired(self, cache, clock, sample_files):
        cache.set("old", "1.0.0", sample_files)
        clock["now"] = NOW_MS + 30_000
        cache.set("fresh", "1.0.0", sample_files)
        clock["now"] = NOW_MS + 61_000

        assert cache.cleanup() == 1
        assert [e.package_name for e in cache.list()] == ["fresh"]

    def test_remove_missing_entry_is_not_an_error(self, cache):
        cache.remove("never_cached", "1.0.0")
        cache.remove_package("never_cached")

    def test_remove_package_removes_all_versions(self, cache, sample_files):
        cache.set("gleam_json", "1.0.0", sample_files)
        cache.set("gleam_json", "0.7.0", sample_files)
        cache.set("plinth", "0.2.0", sample_files)

        cache.remove_package("gleam_json")
        assert [e.package_name for e in cache.list()] == ["plinth"]

    def test_clear(self, cache, cache_dir, sample_files):
        cache.set("gleam_json", "1.0.0", sample_files)
        cache.clear()
        assert not cache_dir.exists()
        assert cache.list() == []

    def test_size_bytes(self, cache, sample_files):
        assert cache.size_bytes() == 0
        cache.set("gleam_stdlib", "0.34.0", sample_files)
        assert cache.size_bytes() > sum(len(f.content) for f in sample_files)


class TestPathValidation:
    def test_latest_is_rejected(self, cache, sample_files):
        with pytest.raises(ValueError, match="latest"):
            cache.set("gleam_json", "latest", sample_files)

    @pytest.mark.parametrize("name", ["../escape", "a/b", "..", "", "a\\b"])
    def test_invalid_package_names(self, cache, sample_files, name):
        with pytest.raises(ValueError):
            cache.set(name, "1.0.0", sample_files)

    def test_file_path_traversal_rejected(self, cache, cache_dir):
        with pytest.raises(ValueError):
            cache.set("evil", "1.0.0", [ExtractedFile("../../outside.gleam", "x")])
        assert not (cache_dir.parent / "outside.gleam").exists()

    def test_absolute_file_path_rejected(self, cache):
        with pytest.raises(ValueError):
            cache.set("evil", "1.0.0", [ExtractedFile("/etc/passwd", "x")])


class TestDisabledCache:
    @pytest.fixture
    def disabled(self, cache_dir):
        return PackageCache(CacheConfig(enabled=False, directory=cache_dir))

    def test_operations_are_noops(self, disabled, cache_dir, sample_files):
        disabled.set("gleam_json", "1.0.0", sample_files)

        assert not cache_dir.exists()
        assert disabled.get("gleam_json", "1.0.0") is None
        assert disabled.has("gleam_json", "1.0.0") is False
        assert disabled.list() == []
        assert disabled.cleanup() == 0
        disabled.remove("gleam_json", "1.0.0")
        disabled.clear()


class TestCleanPackageCache:
    def test_removes_existing_directory(self, cache, cache_dir, sample_files):
        cache.set("gleam_json", "1.0.0", sample_files)
        assert clean_package_cache(cache_dir) is True
        assert not cache_dir.exists()

    def test_missing_directory(self, tmp_path):
        assert clean_package_cache(tmp_path / "nothing") is False

    def test_default_directory_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HEX_PRELOAD_CACHE_DIR", str(tmp_path / "root"))
        (tmp_path / "root" / "packages").mkdir(parents=True)

        assert clean_package_cache() is True
        assert not (tmp_path / "root" / "packages").exists()
