"""
npm Registry Client

This module talks to the npm registry, its search and download statistics
endpoints, and the Bundlephobia size API, and normalizes their responses into
package records.
"""

import re
from typing import Any
from urllib.parse import quote

import httpx

from ..config.logging_config import pkg_logger
from ..errors import PackageNotFoundError, UpstreamError, UpstreamTimeoutError
from .models import (
    Author,
    BundleSize,
    DownloadPeriod,
    DownloadStats,
    Found,
    NotFound,
    PackageLookup,
    PackageRecord,
    Repository,
    SearchResult,
    SearchScore,
    TransientError,
)
from .version_range import parse_version

# "Name <email> (url)" with email and url optional
AUTHOR_PATTERN = re.compile(r"^([^<(]+?)(?:\s*<([^>]+)>)?(?:\s*\(([^)]+)\))?$")

MAX_SEARCH_LIMIT = 100


def normalize_license(license_data: Any) -> str | None:
    """
    Normalize a manifest license field to a display string.

    Handles SPDX strings, the legacy ``{"type": "MIT", "url": ...}`` object and
    the legacy ``licenses`` array (joined with ", ").
    """
    if isinstance(license_data, list):
        names = [normalize_license(item) for item in license_data]
        return ", ".join(n for n in names if n) or None
    if isinstance(license_data, dict):
        return license_data.get("type") or None
    if isinstance(license_data, str):
        return license_data.strip() or None
    return None


def encode_package_name(name: str) -> str:
    """Encode a package name for a registry URL path (``@scope/pkg`` -> ``@scope%2Fpkg``)."""
    return quote(name, safe="@")


class RegistryClient:
    """Client for npm registry operations."""

    def __init__(
        self,
        registry_url: str = "https://registry.npmjs.org",
        npm_api_url: str = "https://api.npmjs.org",
        bundlephobia_url: str = "https://bundlephobia.com/api",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None
    ):
        self.registry_url = registry_url.rstrip("/")
        self.search_url = f"{self.registry_url}/-/v1/search"
        self.npm_api_url = npm_api_url.rstrip("/")
        self.bundlephobia_url = bundlephobia_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            headers={"Accept": "application/json", "User-Agent": "npmplus/1.0.0"}
        )

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``url`` and decode JSON, mapping failures to typed errors."""
        try:
            async with self._client() as client:
                response = await client.get(url, params=params)
                response.raise_for_status()
                return response.json()

        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"Request to {url} timed out after {self.timeout:g}s") from e
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"Request to {url} failed: {e.response.status_code}",
                status_code=e.response.status_code
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamError(f"Request to {url} failed: {e}") from e

    async def search(self, query: str, limit: int = 25, offset: int = 0) -> list[SearchResult]:
        """Search the registry. Results keep the registry's ranking order."""
        if not 1 <= limit <= MAX_SEARCH_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_SEARCH_LIMIT}")
        if offset < 0:
            raise ValueError("offset must not be negative")

        params = {
            "text": query,
            "size": limit,
            "from": offset,
            "quality": 0.65,
            "popularity": 0.98,
            "maintenance": 0.5
        }

        data = await self._get_json(self.search_url, params=params)
        return [self._transform_search_result(item) for item in data.get("objects", [])]

    async def get_package_info(self, package_name: str, version: str | None = None) -> PackageLookup:
        """Fetch a package manifest; ``latest`` when no version is given."""
        try:
            manifest = await self._fetch_manifest(package_name, version)
            return Found(self._transform_manifest(manifest))

        except PackageNotFoundError:
            return NotFound(name=package_name, version=version)
        except UpstreamError as e:
            pkg_logger.warning(f"Registry lookup failed for {package_name}: {e}")
            return TransientError(name=package_name, message=str(e), status_code=e.status_code)

    async def _fetch_manifest(self, package_name: str, version: str | None) -> dict[str, Any]:
        url = f"{self.registry_url}/{encode_package_name(package_name)}/{quote(version or 'latest', safe='')}"
        try:
            return await self._get_json(url)
        except UpstreamError as e:
            if e.status_code == 404:
                raise PackageNotFoundError(package_name, version) from e
            raise

    async def get_download_stats(
        self,
        package_name: str,
        period: DownloadPeriod | str = DownloadPeriod.LAST_WEEK
    ) -> DownloadStats:
        """Get point-in-time download counts. Any failure raises."""
        period = DownloadPeriod(period)
        url = f"{self.npm_api_url}/downloads/point/{period.value}/{encode_package_name(package_name)}"
        data = await self._get_json(url)

        return DownloadStats(
            downloads=data.get("downloads") or 0,
            period=period,
            start=data.get("start") or "",
            end=data.get("end") or ""
        )

    async def get_bundle_size(self, package_name: str, version: str | None = None) -> BundleSize:
        """Get bundle size data; a zeroed record when unavailable."""
        try:
            return await self.fetch_bundle_size(package_name, version)

        except Exception as e:
            # Bundlephobia has no data for many packages
            pkg_logger.debug(f"Could not get bundle size for {package_name}: {e}")
            return BundleSize()

    async def fetch_bundle_size(self, package_name: str, version: str | None = None) -> BundleSize:
        """Get bundle size data. Any failure raises UpstreamError."""
        package_spec = f"{package_name}@{version}" if version else package_name
        data = await self._get_json(f"{self.bundlephobia_url}/size", params={"package": package_spec})

        return BundleSize(
            size=data.get("size") or 0,
            gzip=data.get("gzip") or 0,
            dependency_count=data.get("dependencyCount") or 0
        )

    async def package_exists(self, package_name: str) -> bool:
        """Probe the registry; any error counts as "does not exist"."""
        try:
            async with self._client() as client:
                response = await client.head(f"{self.registry_url}/{encode_package_name(package_name)}")
                return response.is_success

        except Exception as e:
            pkg_logger.debug(f"Existence check failed for {package_name}: {e}")
            return False

    async def get_package_versions(self, package_name: str) -> list[str]:
        """Get published versions, newest first."""
        url = f"{self.registry_url}/{encode_package_name(package_name)}"
        try:
            data = await self._get_json(url)
        except UpstreamError as e:
            if e.status_code == 404:
                raise PackageNotFoundError(package_name) from e
            raise

        versions = list(data.get("versions", {}).keys())
        parsed = {v: parse_version(v) for v in versions}
        comparable = sorted((v for v in versions if parsed[v] is not None), key=lambda v: parsed[v], reverse=True)
        return comparable + sorted(v for v in versions if parsed[v] is None)

    def _transform_search_result(self, item: dict[str, Any]) -> SearchResult:
        package_data = item.get("package", {})
        score = item.get("score") or {}
        detail = score.get("detail") or {}

        return SearchResult(
            name=package_data.get("name", ""),
            version=package_data.get("version", ""),
            description=package_data.get("description") or "",
            keywords=tuple(package_data.get("keywords") or ()),
            author=self._extract_author(package_data.get("author")),
            published_at=package_data.get("date"),
            score=SearchScore(
                final=score.get("final") or 0.0,
                quality=detail.get("quality") or 0.0,
                popularity=detail.get("popularity") or 0.0,
                maintenance=detail.get("maintenance") or 0.0
            ),
            search_score=item.get("searchScore")
        )

    def _transform_manifest(self, manifest: dict[str, Any]) -> PackageRecord:
        maintainers = [self._extract_author(m) for m in manifest.get("maintainers") or []]

        return PackageRecord(
            name=manifest.get("name", ""),
            version=manifest.get("version", ""),
            description=manifest.get("description") or "",
            keywords=tuple(manifest.get("keywords") or ()),
            homepage=manifest.get("homepage"),
            repository=self._extract_repository(manifest.get("repository")),
            bugs=self._extract_bugs(manifest.get("bugs")),
            license=self._extract_license(manifest),
            author=self._extract_author(manifest.get("author")),
            maintainers=tuple(m for m in maintainers if m is not None),
            dependencies=dict(manifest.get("dependencies") or {}),
            dev_dependencies=dict(manifest.get("devDependencies") or {}),
            peer_dependencies=dict(manifest.get("peerDependencies") or {}),
            engines=dict(manifest.get("engines") or {}) if isinstance(manifest.get("engines"), dict) else {}
        )

    def _extract_author(self, author_data: Any) -> Author | None:
        """Extract author from a ``Name <email> (url)`` string or an object."""
        if isinstance(author_data, str):
            author_data = author_data.strip()
            if not author_data:
                return None
            match = AUTHOR_PATTERN.match(author_data)
            if match:
                return Author(
                    name=match.group(1).strip(),
                    email=match.group(2).strip() if match.group(2) else None,
                    url=match.group(3).strip() if match.group(3) else None
                )
            return Author(name=author_data)
        elif isinstance(author_data, dict) and author_data.get("name"):
            return Author(
                name=author_data["name"],
                email=author_data.get("email"),
                url=author_data.get("url")
            )
        return None

    def _extract_repository(self, repo_data: Any) -> Repository | None:
        """Extract repository from string or object formats."""
        if isinstance(repo_data, str):
            return Repository(url=re.sub(r"^git\+", "", repo_data))
        elif isinstance(repo_data, dict):
            url = repo_data.get("url")
            if url and isinstance(url, str):
                return Repository(
                    url=re.sub(r"^git\+", "", url),
                    type=repo_data.get("type") or "git",
                    directory=repo_data.get("directory")
                )
        return None

    def _extract_bugs(self, bugs_data: Any) -> str | None:
        if isinstance(bugs_data, str):
            return bugs_data
        elif isinstance(bugs_data, dict):
            return bugs_data.get("url") or bugs_data.get("email")
        return None

    def _extract_license(self, manifest: dict[str, Any]) -> str | None:
        return normalize_license(manifest.get("license") or manifest.get("licenses"))
