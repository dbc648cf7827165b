"""
Package Orchestrator

This module composes the registry client, security scanner, package manager
runner and cache. Lookups are cache-aside; package records are enriched with
download statistics, bundle size and security data concurrently, and an
enrichment failure only leaves its field empty.
"""

import asyncio
import os
from dataclasses import replace
from typing import Any

from ..cache.ttl_cache import CacheMetrics, TTLCache, create_key
from ..config.logging_config import pkg_logger
from ..config.settings import Settings
from ..errors import PackageNotFoundError, UpstreamError
from .licenses import build_license_report
from .models import (
    BundleSize,
    DetectionResult,
    Dialect,
    DownloadPeriod,
    DownloadStats,
    Found,
    LicenseInfo,
    LicenseReport,
    NotFound,
    OperationResult,
    PackageLookup,
    SearchResult,
    SecurityInfo,
    TransientError,
)
from .registry_client import RegistryClient
from .runner import PackageManagerRunner
from .security_scanner import SecurityScanner


class PackageOrchestrator:
    """Entry point for every package intelligence operation."""

    def __init__(
        self,
        cache: TTLCache,
        registry: RegistryClient,
        scanner: SecurityScanner,
        runner: PackageManagerRunner,
        search_ttl: int = 900,
        package_ttl: int = 3600,
        security_ttl: int = 3600
    ):
        self.cache = cache
        self.registry = registry
        self.scanner = scanner
        self.runner = runner
        self.search_ttl = search_ttl
        self.package_ttl = package_ttl
        self.security_ttl = security_ttl

    def _cache_get(self, key: str) -> Any:
        try:
            value = self.cache.get(key)
        except Exception as e:
            pkg_logger.warning(f"Cache read failed for {key}: {e}")
            return None

        pkg_logger.debug(f"Cache {'hit' if value is not None else 'miss'}: {key}")
        return value

    def _cache_set(self, key: str, value: Any, ttl: int) -> None:
        try:
            self.cache.set(key, value, ttl)
        except Exception as e:
            pkg_logger.warning(f"Cache write failed for {key}: {e}")

    async def search_packages(self, query: str, limit: int = 25, offset: int = 0) -> list[SearchResult]:
        """Search the registry, cached for 15 minutes per (query, limit, offset)."""
        cache_key = create_key("search", query, limit, offset)
        cached = self._cache_get(cache_key)
        if cached is not None:
            return list(cached)

        results = await self.registry.search(query, limit, offset)
        self._cache_set(cache_key, tuple(results), self.search_ttl)
        return results

    async def get_package_info(self, package_name: str, version: str | None = None) -> PackageLookup:
        """Get an enriched package record, cached for 1 hour."""
        cache_key = create_key("package", package_name, version or "latest")
        cached = self._cache_get(cache_key)
        if cached is not None:
            return Found(cached)

        lookup = await self.registry.get_package_info(package_name, version)
        if not isinstance(lookup, Found):
            return lookup

        base = lookup.record
        download_stats, bundle_size, security_info = await asyncio.gather(
            self._enrich("download stats", package_name,
                         self.registry.get_download_stats(package_name, DownloadPeriod.LAST_WEEK)),
            self._enrich("bundle size", package_name,
                         self.registry.fetch_bundle_size(package_name, base.version)),
            self._enrich("security info", package_name,
                         self.scanner.check_vulnerabilities(package_name, base.version))
        )

        record = replace(
            base,
            download_stats=download_stats,
            bundle_size=bundle_size,
            security_info=security_info
        )

        self._cache_set(cache_key, record, self.package_ttl)
        return Found(record)

    async def _enrich(self, label: str, package_name: str, call) -> Any:
        """Await an enrichment call; failures become an absent field."""
        try:
            return await call
        except Exception as e:
            pkg_logger.warning(f"Could not get {label} for {package_name}: {e}")
            return None

    async def check_vulnerabilities(self, package_name: str, version: str | None = None) -> SecurityInfo:
        """Scan a package for vulnerabilities, cached for 1 hour."""
        cache_key = create_key("security", package_name, version or "any")
        cached = self._cache_get(cache_key)
        if cached is not None:
            return cached

        info = await self.scanner.check_vulnerabilities(package_name, version)
        self._cache_set(cache_key, info, self.security_ttl)
        return info

    async def get_download_stats(
        self,
        package_name: str,
        period: DownloadPeriod | str = DownloadPeriod.LAST_WEEK
    ) -> DownloadStats:
        """Get download statistics for a package."""
        return await self.registry.get_download_stats(package_name, period)

    async def get_bundle_size(self, package_name: str, version: str | None = None) -> BundleSize:
        """Get bundle size data for a package."""
        return await self.registry.get_bundle_size(package_name, version)

    async def package_exists(self, package_name: str) -> bool:
        """Verify that a package exists in the registry."""
        return await self.registry.package_exists(package_name)

    async def get_package_versions(self, package_name: str) -> list[str]:
        """Get available versions for a package."""
        return await self.registry.get_package_versions(package_name)

    async def detect_package_manager(self, cwd: str | None = None) -> DetectionResult:
        """Detect the package manager of a project, with its installed version."""
        return await self.runner.detect_with_version(cwd)

    def _resolve_dialect(self, cwd: str | None, dialect: Dialect | str | None) -> Dialect:
        if dialect:
            return Dialect(dialect)
        return self.runner.detect(cwd).dialect

    async def install_packages(
        self,
        packages: list[str],
        cwd: str | None = None,
        dev: bool = False,
        global_: bool = False,
        dialect: Dialect | str | None = None
    ) -> OperationResult:
        """Install packages with the detected or requested package manager."""
        return await self.runner.install(
            packages, cwd, self._resolve_dialect(cwd, dialect), dev=dev, global_=global_
        )

    async def update_packages(
        self,
        packages: list[str] | None = None,
        cwd: str | None = None,
        dialect: Dialect | str | None = None
    ) -> OperationResult:
        """Update packages."""
        return await self.runner.update(packages, cwd, self._resolve_dialect(cwd, dialect))

    async def remove_packages(
        self,
        packages: list[str],
        cwd: str | None = None,
        global_: bool = False,
        dialect: Dialect | str | None = None
    ) -> OperationResult:
        """Remove packages."""
        return await self.runner.remove(packages, cwd, self._resolve_dialect(cwd, dialect), global_=global_)

    async def check_outdated(
        self,
        cwd: str | None = None,
        global_: bool = False,
        dialect: Dialect | str | None = None
    ) -> OperationResult:
        """Check for outdated packages."""
        return await self.runner.outdated(cwd, self._resolve_dialect(cwd, dialect), global_=global_)

    async def audit_dependencies(
        self,
        cwd: str | None = None,
        fix: bool = False,
        force: bool = False,
        production: bool = False,
        dialect: Dialect | str | None = None
    ) -> OperationResult:
        """Audit project dependencies for vulnerabilities."""
        return await self.runner.audit(
            cwd, self._resolve_dialect(cwd, dialect), fix=fix, force=force, production=production
        )

    async def clean_cache(
        self,
        cwd: str | None = None,
        global_: bool = False,
        dialect: Dialect | str | None = None
    ) -> OperationResult:
        """Clean the package manager cache."""
        return await self.runner.clean_cache(cwd, self._resolve_dialect(cwd, dialect), global_=global_)

    async def dependency_tree(
        self,
        cwd: str | None = None,
        depth: int = 0,
        production: bool = False,
        dialect: Dialect | str | None = None
    ) -> OperationResult:
        """List the installed dependency tree through the package manager."""
        return await self.runner.list_dependencies(
            cwd, self._resolve_dialect(cwd, dialect), depth=depth, production=production
        )

    async def list_licenses(self, cwd: str | None = None, production: bool = False) -> LicenseReport:
        """Group the installed direct dependencies of a project by license."""
        return await asyncio.to_thread(build_license_report, cwd or os.getcwd(), production)

    async def check_license(self, package_name: str, version: str | None = None) -> LicenseInfo:
        """
        Get the license of a published package version.

        Raises:
            PackageNotFoundError: the package or version does not exist
            UpstreamError: the registry is unavailable
        """
        lookup = await self.registry.get_package_info(package_name, version)
        if isinstance(lookup, NotFound):
            raise PackageNotFoundError(package_name, version)
        if isinstance(lookup, TransientError):
            raise UpstreamError(lookup.message, status_code=lookup.status_code)

        record = lookup.record
        return LicenseInfo(
            name=record.name,
            version=record.version,
            license=record.license,
            repository=record.repository,
            author=record.author,
            maintainers=record.maintainers
        )

    def cache_metrics(self) -> CacheMetrics:
        """Get cache statistics."""
        return self.cache.metrics()


def create_orchestrator(settings: Settings | None = None) -> PackageOrchestrator:
    """Wire an orchestrator and its collaborators from settings."""
    settings = settings or Settings.from_env()

    return PackageOrchestrator(
        cache=TTLCache(default_ttl=settings.cache_default_ttl, max_keys=settings.cache_max_keys),
        registry=RegistryClient(
            registry_url=settings.registry_url,
            npm_api_url=settings.npm_api_url,
            bundlephobia_url=settings.bundlephobia_url,
            timeout=settings.http_timeout
        ),
        scanner=SecurityScanner(
            github_advisory_url=settings.github_advisory_url,
            osv_url=settings.osv_url,
            github_token=settings.github_token,
            timeout=settings.http_timeout
        ),
        runner=PackageManagerRunner(timeout=settings.command_timeout),
        search_ttl=settings.search_cache_ttl,
        package_ttl=settings.package_cache_ttl,
        security_ttl=settings.security_cache_ttl
    )
