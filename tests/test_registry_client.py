"""Tests for RegistryClient retry policy and response handling.

HTTP is served by ``httpx.MockTransport``; backoff sleeps are recorded
instead of awaited.
"""

import asyncio

import httpx
import pytest
from hex_preload.config import RegistryConfig
from hex_preload.exceptions import RegistryError
from hex_preload.registry import client as client_module
from hex_preload.registry.client import RegistryClient


@pytest.fixture
def sleeps(monkeypatch):
    """Record backoff delays without sleeping."""
    recorded: list[float] = []

    async def fake_sleep(delay: float) -> None:
        recorded.append(delay)

    monkeypatch.setattr(client_module, "_backoff_sleep", fake_sleep)
    return recorded


def make_client(handler, **config) -> RegistryClient:
    return RegistryClient(RegistryConfig(**config), transport=httpx.MockTransport(handler))


def package_payload(*versions: str) -> dict:
    return {
        "name": "demo",
        "releases": [
            {"version": v, "url": f"https://hex.pm/api/packages/demo/releases/{v}", "inserted_at": "2024-01-01"}
            for v in versions
        ],
    }


class TestRetryPolicy:
    @pytest.mark.asyncio
    async def test_server_errors_retry_until_exhausted(self, sleeps):
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(503)

        client = make_client(handler, max_retries=3, base_retry_delay=1.0)
        with pytest.raises(RegistryError) as exc_info:
            await client.fetch_text("https://example.test/file")

        assert len(calls) == 3
        assert exc_info.value.status_code == 503
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_backoff_doubles_each_attempt(self, sleeps):
        client = make_client(lambda request: httpx.Response(500), max_retries=4, base_retry_delay=1.0)
        with pytest.raises(RegistryError):
            await client.fetch_text("https://example.test/file")

        assert sleeps == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_not_found_fails_without_retry(self, sleeps):
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(404)

        client = make_client(handler)
        with pytest.raises(RegistryError) as exc_info:
            await client.get_package_info("missing")

        assert len(calls) == 1
        assert sleeps == []
        assert exc_info.value.status_code == 404
        assert "HTTP 404" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self, sleeps):
        responses = iter([httpx.Response(429), httpx.Response(200, text="ok")])

        client = make_client(lambda request: next(responses))
        assert await client.fetch_text("https://example.test/file") == "ok"
        assert sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_network_error_is_retried(self, sleeps):
        attempts = {"count": 0}

        def handler(request):
            attempts["count"] += 1
            if attempts["count"] == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, text="recovered")

        client = make_client(handler)
        assert await client.fetch_text("https://example.test/file") == "recovered"
        assert attempts["count"] == 2

    @pytest.mark.asyncio
    async def test_timeout_fails_immediately(self, sleeps):
        attempts = {"count": 0}

        async def handler(request):
            attempts["count"] += 1
            await asyncio.sleep(1)
            return httpx.Response(200)

        client = make_client(handler, timeout=0.01, max_retries=3)
        with pytest.raises(RegistryError, match="timeout"):
            await client.fetch_text("https://example.test/slow")

        assert attempts["count"] == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_fetch_text_without_retry_makes_one_attempt(self, sleeps):
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(502)

        client = make_client(handler, max_retries=5)
        with pytest.raises(RegistryError):
            await client.fetch_text("https://example.test/file", retry=False)

        assert len(calls) == 1
        assert sleeps == []


class TestPackageInfo:
    @pytest.mark.asyncio
    async def test_releases_sorted_newest_first(self):
        client = make_client(lambda request: httpx.Response(200, json=package_payload("0.1.0", "1.2.0", "0.9.0")))
        info = await client.get_package_info("demo")

        assert [r.version for r in info.releases] == ["1.2.0", "0.9.0", "0.1.0"]
        assert info.latest_version == "1.2.0"

    @pytest.mark.asyncio
    async def test_request_targets_api_base(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json=package_payload("1.0.0"))

        client = make_client(handler, api_base="https://mirror.test/api/")
        await client.get_package_info("demo")
        assert seen == ["https://mirror.test/api/packages/demo"]

    @pytest.mark.asyncio
    async def test_malformed_response_raises(self):
        client = make_client(lambda request: httpx.Response(200, json={"name": "demo"}))
        with pytest.raises(RegistryError, match="Malformed"):
            await client.get_package_info("demo")

    @pytest.mark.asyncio
    async def test_latest_version_skips_prereleases(self):
        client = make_client(lambda request: httpx.Response(200, json=package_payload("1.0.0", "1.2.0", "2.0.0-rc1")))
        assert await client.get_latest_version("demo") == "1.2.0"

    @pytest.mark.asyncio
    async def test_latest_version_falls_back_to_prerelease(self):
        client = make_client(lambda request: httpx.Response(200, json=package_payload("0.1.0-rc1", "0.2.0-rc1")))
        assert await client.get_latest_version("demo") == "0.2.0-rc1"

    @pytest.mark.asyncio
    async def test_latest_version_without_releases_raises(self):
        client = make_client(lambda request: httpx.Response(200, json=package_payload()))
        with pytest.raises(RegistryError, match="no releases"):
            await client.get_latest_version("demo")


class TestDownloads:
    @pytest.mark.asyncio
    async def test_download_tarball_url(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, content=b"tarball-bytes")

        async with make_client(handler) as client:
            data = await client.download_tarball("gleam_json", "1.0.0")

        assert data == b"tarball-bytes"
        assert seen == ["https://repo.hex.pm/tarballs/gleam_json-1.0.0.tar"]

    @pytest.mark.asyncio
    async def test_download_latest_resolves_then_downloads(self):
        def handler(request):
            if request.url.path.startswith("/api/packages/"):
                return httpx.Response(200, json=package_payload("0.5.0", "0.6.0"))
            assert request.url.path == "/tarballs/demo-0.6.0.tar"
            return httpx.Response(200, content=b"data")

        client = make_client(handler)
        assert await client.download_latest("demo") == ("0.6.0", b"data")
