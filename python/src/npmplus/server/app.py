"""
npmplus HTTP Service

A FastAPI adapter over the PackageOrchestrator. It validates requests,
maps tagged lookup results and errors to HTTP status codes, and returns the
orchestrator's records as JSON. Presentation is left to the client.
"""

import os
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field

from ..config.logging_config import configure_logging, pkg_logger
from ..config.settings import Settings
from ..errors import ManifestError, PackageNotFoundError, SecurityScanError, UpstreamError
from ..packages.models import Dialect, DownloadPeriod, Found, NotFound
from ..packages.orchestrator import PackageOrchestrator, create_orchestrator


class InstallRequest(BaseModel):
    """Request model for installing packages."""
    packages: list[str] = Field(default_factory=list, description="Packages to install; empty installs the project")
    cwd: str | None = None
    dev: bool = False
    global_: bool = Field(default=False, alias="global")
    package_manager: Dialect | None = None

    model_config = {"populate_by_name": True}


class UpdateRequest(BaseModel):
    """Request model for updating packages."""
    packages: list[str] | None = None
    cwd: str | None = None
    package_manager: Dialect | None = None


class RemoveRequest(BaseModel):
    """Request model for removing packages."""
    packages: list[str] = Field(min_length=1)
    cwd: str | None = None
    global_: bool = Field(default=False, alias="global")
    package_manager: Dialect | None = None

    model_config = {"populate_by_name": True}


class ProjectRequest(BaseModel):
    """Request model for outdated checks and cache cleaning."""
    cwd: str | None = None
    global_: bool = Field(default=False, alias="global")
    package_manager: Dialect | None = None

    model_config = {"populate_by_name": True}


class AuditRequest(BaseModel):
    """Request model for dependency audits."""
    cwd: str | None = None
    fix: bool = False
    force: bool = False
    production: bool = False
    package_manager: Dialect | None = None


class DependencyTreeRequest(BaseModel):
    """Request model for dependency tree listings."""
    cwd: str | None = None
    depth: int = Field(default=0, ge=0)
    production: bool = False
    package_manager: Dialect | None = None


def create_app(orchestrator: PackageOrchestrator | None = None, settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI app; the orchestrator is built at startup unless injected."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        if orchestrator is None:
            app_settings = settings or Settings.from_env()
            configure_logging(app_settings.log_level, app_settings.log_json)
            app.state.orchestrator = create_orchestrator(app_settings)
        else:
            app.state.orchestrator = orchestrator
        pkg_logger.info("npmplus service started")

        yield

        pkg_logger.info("npmplus service shutdown complete")

    app = FastAPI(
        title="npmplus",
        description="JavaScript package intelligence service",
        version="1.0.0",
        lifespan=lifespan
    )

    def get_orchestrator(request: Request) -> PackageOrchestrator:
        return request.app.state.orchestrator

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/packages/search")
    async def search_packages(
        request: Request,
        q: str = Query(min_length=1),
        limit: int = Query(default=25, ge=1, le=100),
        offset: int = Query(default=0, ge=0)
    ):
        """Search the npm registry."""
        try:
            results = await get_orchestrator(request).search_packages(q, limit, offset)
        except UpstreamError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return [asdict(r) for r in results]

    @app.get("/packages/info")
    async def get_package_info(request: Request, name: str = Query(min_length=1), version: str | None = None):
        """Get an enriched package record."""
        lookup = await get_orchestrator(request).get_package_info(name, version)

        if isinstance(lookup, Found):
            return asdict(lookup.record)
        if isinstance(lookup, NotFound):
            target = f"{name}@{version}" if version else name
            raise HTTPException(status_code=404, detail=f"Package not found: {target}")
        raise HTTPException(status_code=503, detail=lookup.message)

    @app.get("/packages/security")
    async def check_vulnerabilities(request: Request, name: str = Query(min_length=1), version: str | None = None):
        """Scan a package for known vulnerabilities."""
        try:
            info = await get_orchestrator(request).check_vulnerabilities(name, version)
        except SecurityScanError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return {**asdict(info), "count": info.count}

    @app.get("/packages/downloads")
    async def get_download_stats(
        request: Request,
        name: str = Query(min_length=1),
        period: DownloadPeriod = DownloadPeriod.LAST_WEEK
    ):
        """Get download statistics."""
        try:
            stats = await get_orchestrator(request).get_download_stats(name, period)
        except UpstreamError as e:
            status_code = 404 if e.status_code == 404 else 503
            raise HTTPException(status_code=status_code, detail=str(e))
        return asdict(stats)

    @app.get("/packages/bundle-size")
    async def get_bundle_size(request: Request, name: str = Query(min_length=1), version: str | None = None):
        """Get bundle size data."""
        return asdict(await get_orchestrator(request).get_bundle_size(name, version))

    @app.get("/packages/exists")
    async def package_exists(request: Request, name: str = Query(min_length=1)):
        """Check whether a package exists."""
        return {"name": name, "exists": await get_orchestrator(request).package_exists(name)}

    @app.get("/packages/versions")
    async def get_package_versions(request: Request, name: str = Query(min_length=1)):
        """List published versions, newest first."""
        try:
            versions = await get_orchestrator(request).get_package_versions(name)
        except PackageNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except UpstreamError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return {"name": name, "versions": versions}

    @app.get("/packages/license")
    async def check_license(request: Request, name: str = Query(min_length=1), version: str | None = None):
        """Get the license of a published package."""
        try:
            info = await get_orchestrator(request).check_license(name, version)
        except PackageNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except UpstreamError as e:
            raise HTTPException(status_code=503, detail=str(e))
        return asdict(info)

    @app.get("/projects/detect")
    async def detect_package_manager(request: Request, cwd: str | None = None):
        """Detect the package manager of a project."""
        return asdict(await get_orchestrator(request).detect_package_manager(cwd))

    @app.post("/projects/install")
    async def install_packages(request: Request, body: InstallRequest):
        """Install packages."""
        result = await get_orchestrator(request).install_packages(
            body.packages, body.cwd, dev=body.dev, global_=body.global_, dialect=body.package_manager
        )
        return asdict(result)

    @app.post("/projects/update")
    async def update_packages(request: Request, body: UpdateRequest):
        """Update packages."""
        result = await get_orchestrator(request).update_packages(body.packages, body.cwd, dialect=body.package_manager)
        return asdict(result)

    @app.post("/projects/remove")
    async def remove_packages(request: Request, body: RemoveRequest):
        """Remove packages."""
        result = await get_orchestrator(request).remove_packages(
            body.packages, body.cwd, global_=body.global_, dialect=body.package_manager
        )
        return asdict(result)

    @app.post("/projects/outdated")
    async def check_outdated(request: Request, body: ProjectRequest):
        """Check for outdated packages."""
        result = await get_orchestrator(request).check_outdated(
            body.cwd, global_=body.global_, dialect=body.package_manager
        )
        return asdict(result)

    @app.post("/projects/audit")
    async def audit_dependencies(request: Request, body: AuditRequest):
        """Audit dependencies."""
        result = await get_orchestrator(request).audit_dependencies(
            body.cwd, fix=body.fix, force=body.force, production=body.production, dialect=body.package_manager
        )
        payload = asdict(result)
        if result.audit is not None:
            payload["audit"]["total"] = result.audit.total
        return payload

    @app.post("/projects/cache-clean")
    async def clean_cache(request: Request, body: ProjectRequest):
        """Clean the package manager cache."""
        result = await get_orchestrator(request).clean_cache(
            body.cwd, global_=body.global_, dialect=body.package_manager
        )
        return asdict(result)

    @app.post("/projects/dependency-tree")
    async def dependency_tree(request: Request, body: DependencyTreeRequest):
        """List the installed dependency tree."""
        result = await get_orchestrator(request).dependency_tree(
            body.cwd, depth=body.depth, production=body.production, dialect=body.package_manager
        )
        return asdict(result)

    @app.get("/projects/licenses")
    async def list_licenses(request: Request, cwd: str | None = None, production: bool = False):
        """Group installed dependencies by license."""
        try:
            report = await get_orchestrator(request).list_licenses(cwd, production)
        except ManifestError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return asdict(report)

    @app.get("/cache/metrics")
    async def cache_metrics(request: Request):
        """Get cache statistics."""
        return asdict(get_orchestrator(request).cache_metrics())

    return app


def main() -> None:
    """Run the service under uvicorn."""
    import uvicorn

    uvicorn.run(
        create_app(),
        host=os.getenv("NPMPLUS_HOST", "127.0.0.1"),
        port=int(os.getenv("NPMPLUS_PORT", "8080"))
    )
