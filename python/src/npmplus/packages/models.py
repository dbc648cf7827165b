"""
Package Models

This module defines the data models used by the package intelligence core:
registry records, vulnerability reports, package manager detection and
operation results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Severity(str, Enum):
    """Vulnerability severity, ordered critical > high > moderate > low > info."""
    INFO = "info"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.INFO: 0,
    Severity.LOW: 1,
    Severity.MODERATE: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class DownloadPeriod(str, Enum):
    """Fixed periods supported by the download statistics API."""
    LAST_DAY = "last-day"
    LAST_WEEK = "last-week"
    LAST_MONTH = "last-month"
    LAST_YEAR = "last-year"


class Dialect(str, Enum):
    """Supported package managers."""
    NPM = "npm"
    YARN = "yarn"
    PNPM = "pnpm"


class OperationKind(str, Enum):
    """Package manager operations."""
    INSTALL = "install"
    UPDATE = "update"
    REMOVE = "remove"
    AUDIT = "audit"
    OUTDATED = "outdated"
    CACHE_CLEAN = "cache-clean"
    LIST = "list"


@dataclass(frozen=True)
class Author:
    """Package author or maintainer."""
    name: str
    email: str | None = None
    url: str | None = None


@dataclass(frozen=True)
class Repository:
    """Source repository reference."""
    url: str
    type: str = "git"
    directory: str | None = None


@dataclass(frozen=True)
class DownloadStats:
    """Point-in-time download count for one period."""
    downloads: int
    period: DownloadPeriod
    start: str = ""
    end: str = ""


@dataclass(frozen=True)
class BundleSize:
    """Bundle size analysis; all zero when the data is unavailable."""
    size: int = 0
    gzip: int = 0
    dependency_count: int = 0


@dataclass(frozen=True)
class Vulnerability:
    """A vulnerability in the common shape shared by every source."""
    id: str
    title: str
    severity: Severity
    url: str = ""
    overview: str = ""
    recommendation: str = ""
    versions: tuple[str, ...] = ()
    published: str | None = None
    updated: str | None = None
    source: str = ""


@dataclass(frozen=True)
class SecurityInfo:
    """Deduplicated vulnerabilities with their aggregate severity."""
    vulnerabilities: tuple[Vulnerability, ...] = ()
    has_vulnerabilities: bool = False
    severity: Severity = Severity.INFO
    sources_consulted: tuple[str, ...] = ()

    @property
    def count(self) -> int:
        return len(self.vulnerabilities)


@dataclass(frozen=True)
class PackageRecord:
    """Package metadata, optionally enriched with downloads, size and security data."""
    name: str
    version: str
    description: str = ""
    keywords: tuple[str, ...] = ()
    homepage: str | None = None
    repository: Repository | None = None
    bugs: str | None = None
    license: str | None = None
    author: Author | None = None
    maintainers: tuple[Author, ...] = ()
    dependencies: dict[str, str] = field(default_factory=dict)
    dev_dependencies: dict[str, str] = field(default_factory=dict)
    peer_dependencies: dict[str, str] = field(default_factory=dict)
    engines: dict[str, str] = field(default_factory=dict)
    download_stats: DownloadStats | None = None
    bundle_size: BundleSize | None = None
    security_info: SecurityInfo | None = None


@dataclass(frozen=True)
class SearchScore:
    """Registry ranking score."""
    final: float = 0.0
    quality: float = 0.0
    popularity: float = 0.0
    maintenance: float = 0.0


@dataclass(frozen=True)
class SearchResult:
    """One hit from a registry search, in source ranking order."""
    name: str
    version: str
    description: str = ""
    keywords: tuple[str, ...] = ()
    author: Author | None = None
    published_at: str | None = None
    score: SearchScore = field(default_factory=SearchScore)
    search_score: float | None = None


@dataclass(frozen=True)
class Found:
    """Lookup succeeded."""
    record: PackageRecord


@dataclass(frozen=True)
class NotFound:
    """The registry has no such package or version."""
    name: str
    version: str | None = None


@dataclass(frozen=True)
class TransientError:
    """The lookup failed for a transient reason (timeout, 5xx, rate limit)."""
    name: str
    message: str
    status_code: int | None = None


PackageLookup = Found | NotFound | TransientError


@dataclass(frozen=True)
class LicenseInfo:
    """License and ownership details of one published package version."""
    name: str
    version: str
    license: str | None = None
    repository: Repository | None = None
    author: Author | None = None
    maintainers: tuple[Author, ...] = ()


@dataclass(frozen=True)
class InstalledLicense:
    """License of a dependency as installed in node_modules."""
    name: str
    version: str
    license: str


@dataclass
class LicenseReport:
    """Licenses of a project's direct dependencies, grouped by license."""
    packages: list[InstalledLicense] = field(default_factory=list)
    by_license: dict[str, list[str]] = field(default_factory=dict)
    missing: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DetectionResult:
    """Package manager governing a project directory."""
    dialect: Dialect
    lock_file: str | None = None
    version: str | None = None


@dataclass
class AuditSummary:
    """Vulnerability counts reported by a package manager audit."""
    info: int = 0
    low: int = 0
    moderate: int = 0
    high: int = 0
    critical: int = 0

    @property
    def total(self) -> int:
        return self.info + self.low + self.moderate + self.high + self.critical


@dataclass
class OperationResult:
    """Outcome of a package manager operation."""
    success: bool
    operation: OperationKind
    dialect: Dialect
    packages: list[str] = field(default_factory=list)
    output: str = ""
    errors: list[str] | None = None
    duration: float = 0.0
    exit_code: int | None = None
    data: Any | None = None
    audit: AuditSummary | None = None
