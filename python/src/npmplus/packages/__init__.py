"""
npm Package Intelligence

Provides package discovery, vulnerability scanning and package manager
operations for JavaScript projects.

This module supports:
- npm registry search and package metadata
- Download statistics and bundle size enrichment
- Vulnerability scanning across GitHub advisories and OSV
- npm, yarn and pnpm detection and command execution
- License reports for published and installed packages

Components:
- orchestrator: cache-aside lookups and operation delegation
- registry_client: npm registry, downloads and bundle size client
- security_scanner: multi-source vulnerability scanner
- runner: package manager detection and execution
- licenses: license report over installed dependencies
"""

from .models import (
    DetectionResult,
    Dialect,
    Found,
    InstalledLicense,
    LicenseInfo,
    LicenseReport,
    NotFound,
    OperationKind,
    OperationResult,
    PackageRecord,
    SearchResult,
    SecurityInfo,
    Severity,
    TransientError,
    Vulnerability,
)
from .orchestrator import PackageOrchestrator, create_orchestrator
from .registry_client import RegistryClient
from .runner import PackageManagerRunner
from .security_scanner import SecurityScanner

__all__ = [
    "DetectionResult",
    "Dialect",
    "Found",
    "InstalledLicense",
    "LicenseInfo",
    "LicenseReport",
    "NotFound",
    "OperationKind",
    "OperationResult",
    "PackageManagerRunner",
    "PackageOrchestrator",
    "PackageRecord",
    "RegistryClient",
    "SearchResult",
    "SecurityInfo",
    "SecurityScanner",
    "Severity",
    "TransientError",
    "Vulnerability",
    "create_orchestrator",
]
