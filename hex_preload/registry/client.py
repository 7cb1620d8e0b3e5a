"""Registry client for resolving and downloading Hex.pm packages.

Transient failures (5xx, 429, connection errors) are retried with
exponential backoff. Client errors fail immediately and a timeout fails the
current request without retrying.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from ..config import RegistryConfig
from ..exceptions import RegistryError
from ..models import Release
from ..models import RegistryPackageInfo
from .versions import is_prerelease
from .versions import version_key

logger = logging.getLogger(__name__)


async def _backoff_sleep(delay: float) -> None:
    await asyncio.sleep(delay)


class RegistryClient:
    """Client for the package registry API and tarball repository.

    Can be used as an async context manager to share one connection pool
    across calls; otherwise each call opens a short-lived client.
    """

    def __init__(
        self,
        config: RegistryConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize registry client.

        Args:
            config: Endpoints and retry policy. Defaults to public Hex.pm.
            transport: Optional httpx transport (used by tests)
        """
        self.config = config or RegistryConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> RegistryClient:
        self._client = self._create_client()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _create_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with self._create_client() as client:
            yield client

    async def _request_with_retry(self, url: str, max_retries: int | None = None) -> httpx.Response:
        """GET a URL, retrying transient failures with exponential backoff.

        Args:
            url: Absolute URL to fetch
            max_retries: Attempt limit. Defaults to the configured value.

        Returns:
            Successful response with its body loaded

        Raises:
            RegistryError: Client error, timeout, or retries exhausted
        """
        attempts = max_retries or self.config.max_retries
        last_error: RegistryError | None = None

        async with self._session() as client:
            for attempt in range(attempts):
                try:
                    async with asyncio.timeout(self.config.timeout):
                        response = await client.get(url)
                except (TimeoutError, httpx.TimeoutException) as e:
                    raise RegistryError(
                        f"timeout: request to {url} exceeded {self.config.timeout:g}s", url=url
                    ) from e
                except httpx.TransportError as e:
                    last_error = RegistryError(f"Network error fetching {url}: {e}", url=url)
                else:
                    if response.is_success:
                        return response

                    status = response.status_code
                    message = f"HTTP {status}: {response.reason_phrase}"
                    # Client errors are permanent, except rate limiting
                    if 400 <= status < 500 and status != 429:
                        raise RegistryError(message, status_code=status, url=url)
                    last_error = RegistryError(message, status_code=status, url=url)

                if attempt < attempts - 1:
                    delay = self.config.base_retry_delay * (2**attempt)
                    logger.debug(f"Retrying {url} in {delay:g}s after: {last_error}")
                    await _backoff_sleep(delay)

        raise last_error or RegistryError(f"Unknown error fetching {url}", url=url)

    async def get_package_info(self, package_name: str) -> RegistryPackageInfo:
        """Get package information from the registry API.

        Args:
            package_name: Registry package name

        Returns:
            Package info with releases sorted newest first

        Raises:
            RegistryError: Request failed or the response was malformed
        """
        url = f"{self.config.api_base.rstrip('/')}/packages/{package_name}"
        response = await self._request_with_retry(url)

        try:
            data = response.json()
            releases = [
                Release(
                    version=str(release["version"]),
                    url=str(release.get("url", "")),
                    inserted_at=str(release.get("inserted_at", "")),
                )
                for release in data["releases"]
            ]
        except (ValueError, KeyError, TypeError) as e:
            raise RegistryError(f"Malformed registry response for {package_name}: {e}", url=url) from e

        releases.sort(key=lambda r: version_key(r.version), reverse=True)

        return RegistryPackageInfo(
            name=str(data.get("name", package_name)),
            latest_version=releases[0].version if releases else "",
            releases=releases,
        )

    async def get_latest_version(self, package_name: str) -> str:
        """Get the latest stable version of a package.

        Falls back to the newest pre-release when no stable release exists.

        Raises:
            RegistryError: Request failed or the package has no releases
        """
        info = await self.get_package_info(package_name)

        stable = next((r for r in info.releases if not is_prerelease(r.version)), None)
        version = stable.version if stable else info.latest_version
        if not version:
            raise RegistryError(f"Package {package_name} has no releases")
        return version

    async def download_tarball(self, package_name: str, version: str) -> bytes:
        """Download the outer package tarball for an exact version."""
        url = f"{self.config.repo_base.rstrip('/')}/tarballs/{package_name}-{version}.tar"
        response = await self._request_with_retry(url)
        logger.debug(f"Downloaded {package_name}-{version}.tar ({len(response.content)} bytes)")
        return response.content

    async def download_latest(self, package_name: str) -> tuple[str, bytes]:
        """Download the latest stable version of a package.

        Returns:
            Tuple of (version, tarball bytes)
        """
        version = await self.get_latest_version(package_name)
        tarball = await self.download_tarball(package_name, version)
        return version, tarball

    async def fetch_text(self, url: str, *, retry: bool = True) -> str:
        """Fetch a text document, e.g. the runtime prelude or a raw source file.

        Args:
            url: Absolute URL
            retry: If False, make a single attempt
        """
        response = await self._request_with_retry(url, max_retries=None if retry else 1)
        return response.text
