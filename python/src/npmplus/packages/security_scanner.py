"""
Security Scanner

This module checks npm packages against two independent vulnerability
databases, the GitHub Security Advisory API and OSV, and merges their
findings into one deduplicated report.

Both sources are queried concurrently; one failing source only reduces the
number of sources consulted. Only when every source fails is the scan an error.
"""

import asyncio
from typing import Any

import httpx

from ..config.logging_config import pkg_logger
from ..errors import SecurityScanError, UpstreamError, UpstreamTimeoutError
from .models import SecurityInfo, Severity, Vulnerability
from .version_range import events_affect, events_to_expressions, is_usable_range, matches_expression

NPM_ECOSYSTEM = "npm"

GITHUB_SOURCE = "github"
OSV_SOURCE = "osv"

_TEXT_SEVERITIES = {
    "critical": Severity.CRITICAL,
    "high": Severity.HIGH,
    "moderate": Severity.MODERATE,
    "medium": Severity.MODERATE,
    "low": Severity.LOW,
}


def severity_from_text(value: Any) -> Severity | None:
    """Map a textual severity; None when it is not a known level."""
    if not isinstance(value, str):
        return None
    return _TEXT_SEVERITIES.get(value.strip().lower())


def severity_from_score(score: float) -> Severity:
    """Bucket a numeric CVSS score."""
    if score >= 9.0:
        return Severity.CRITICAL
    if score >= 7.0:
        return Severity.HIGH
    if score >= 4.0:
        return Severity.MODERATE
    if score > 0:
        return Severity.LOW
    return Severity.INFO


def _as_score(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def aggregate_severity(vulnerabilities: list[Vulnerability] | tuple[Vulnerability, ...]) -> Severity:
    """Worst severity present, or info for an empty set."""
    return max((v.severity for v in vulnerabilities), key=lambda s: s.rank, default=Severity.INFO)


def deduplicate(vulnerabilities: list[Vulnerability]) -> list[Vulnerability]:
    """Drop repeated ids; the first occurrence wins."""
    seen: set[str] = set()
    unique = []
    for vuln in vulnerabilities:
        if vuln.id in seen:
            continue
        seen.add(vuln.id)
        unique.append(vuln)
    return unique


def _range_data_affects(version: str, ranges: list[dict[str, Any]]) -> bool | None:
    """Evaluate event ranges; None when no range is usable."""
    usable = [r for r in ranges if is_usable_range(r)]
    if not usable:
        return None
    return any(events_affect(version, r["events"]) for r in usable)


def _usable_ranges(entry: dict[str, Any]) -> list[dict[str, Any]]:
    return [r for r in entry.get("ranges") or [] if is_usable_range(r)]


class SecurityScanner:
    """Checks packages against GitHub advisories and OSV."""

    def __init__(
        self,
        github_advisory_url: str = "https://api.github.com/advisories",
        osv_url: str = "https://api.osv.dev/v1",
        github_token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None
    ):
        self.github_advisory_url = github_advisory_url.rstrip("/")
        self.osv_url = osv_url.rstrip("/")
        self.github_token = github_token
        self.timeout = timeout
        self.transport = transport

    async def check_vulnerabilities(self, package_name: str, version: str | None = None) -> SecurityInfo:
        """Scan a package (optionally a specific version) across both sources."""
        github_result, osv_result = await asyncio.gather(
            self.check_github_advisories(package_name, version),
            self.check_osv(package_name, version),
            return_exceptions=True
        )

        vulnerabilities: list[Vulnerability] = []
        sources: list[str] = []
        failures: list[str] = []

        for source, result in ((GITHUB_SOURCE, github_result), (OSV_SOURCE, osv_result)):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                pkg_logger.warning(f"{source} vulnerability check failed for {package_name}: {result}")
                failures.append(f"{source}: {result}")
            else:
                vulnerabilities.extend(result)
                sources.append(source)

        if not sources:
            raise SecurityScanError(
                f"All vulnerability sources failed for {package_name}: {'; '.join(failures)}"
            )

        unique = deduplicate(vulnerabilities)
        return SecurityInfo(
            vulnerabilities=tuple(unique),
            has_vulnerabilities=len(unique) > 0,
            severity=aggregate_severity(unique),
            sources_consulted=tuple(sources)
        )

    async def check_github_advisories(self, package_name: str, version: str | None = None) -> list[Vulnerability]:
        """Query the GitHub advisory database by ecosystem and affected package."""
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "npmplus/1.0.0",
        }
        if self.github_token:
            headers["Authorization"] = f"Bearer {self.github_token}"

        params = {"ecosystem": NPM_ECOSYSTEM, "affects": package_name}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.github_advisory_url, params=params, headers=headers)

            if response.status_code == 404:
                return []
            response.raise_for_status()
            advisories = response.json()

        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"GitHub advisory query timed out after {self.timeout:g}s") from e
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"GitHub advisory API failed: {e.response.status_code}",
                status_code=e.response.status_code
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamError(f"GitHub advisory API failed: {e}") from e

        return [
            self._transform_github_advisory(advisory, package_name)
            for advisory in advisories or []
            if self._github_affects(advisory, package_name, version)
        ]

    async def check_osv(self, package_name: str, version: str | None = None) -> list[Vulnerability]:
        """Query OSV by ecosystem, package name and optional version."""
        query: dict[str, Any] = {"package": {"name": package_name, "ecosystem": NPM_ECOSYSTEM}}
        if version:
            query["version"] = version

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.osv_url}/query", json=query)
                response.raise_for_status()
                data = response.json()

        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"OSV query timed out after {self.timeout:g}s") from e
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"OSV API failed: {e.response.status_code}",
                status_code=e.response.status_code
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamError(f"OSV API failed: {e}") from e

        return [
            self._transform_osv_vulnerability(vuln, package_name)
            for vuln in (data or {}).get("vulns", [])
            if self._osv_affects(vuln, package_name, version)
        ]

    def _github_package_entries(self, advisory: dict[str, Any], package_name: str) -> list[dict[str, Any]]:
        return [
            entry for entry in advisory.get("vulnerabilities") or []
            if (entry.get("package") or {}).get("ecosystem", "").lower() == NPM_ECOSYSTEM
            and (entry.get("package") or {}).get("name") == package_name
        ]

    def _github_affects(self, advisory: dict[str, Any], package_name: str, version: str | None) -> bool:
        entries = self._github_package_entries(advisory, package_name)
        if not entries:
            return False
        if not version:
            return True

        for entry in entries:
            expression = entry.get("vulnerable_version_range")
            if expression:
                if matches_expression(version, expression):
                    return True
                continue

            in_range = _range_data_affects(version, entry.get("ranges") or [])
            # No range data: assume vulnerable
            if in_range is None or in_range:
                return True

        return False

    def _osv_package_entries(self, vuln: dict[str, Any], package_name: str) -> list[dict[str, Any]]:
        return [
            entry for entry in vuln.get("affected") or []
            if (entry.get("package") or {}).get("ecosystem", "").lower() == NPM_ECOSYSTEM
            and (entry.get("package") or {}).get("name") == package_name
        ]

    def _osv_affects(self, vuln: dict[str, Any], package_name: str, version: str | None) -> bool:
        entries = self._osv_package_entries(vuln, package_name)
        if not entries:
            return False
        if not version:
            return True

        for entry in entries:
            listed = entry.get("versions") or []
            if version in listed:
                return True

            in_range = _range_data_affects(version, entry.get("ranges") or [])
            if in_range:
                return True
            # No range data and no version list: assume vulnerable
            if in_range is None and not listed:
                return True

        return False

    def _transform_github_advisory(self, advisory: dict[str, Any], package_name: str) -> Vulnerability:
        ghsa_id = advisory.get("ghsa_id") or advisory.get("id") or ""
        summary = advisory.get("summary") or advisory.get("title") or ""

        versions: list[str] = []
        patched: list[str] = []
        for entry in self._github_package_entries(advisory, package_name):
            if entry.get("vulnerable_version_range"):
                versions.append(entry["vulnerable_version_range"])
            for range_data in _usable_ranges(entry):
                versions.extend(events_to_expressions(range_data["events"]))
            first_patched = entry.get("first_patched_version")
            if isinstance(first_patched, dict):
                first_patched = first_patched.get("identifier")
            if first_patched:
                patched.append(str(first_patched))

        return Vulnerability(
            id=str(ghsa_id),
            title=summary,
            severity=self._github_severity(advisory),
            url=advisory.get("html_url") or f"https://github.com/advisories/{ghsa_id}",
            overview=advisory.get("description") or summary,
            recommendation=self._github_recommendation(advisory, patched),
            versions=tuple(dict.fromkeys(versions)),
            published=advisory.get("published_at"),
            updated=advisory.get("updated_at"),
            source=GITHUB_SOURCE
        )

    def _github_severity(self, advisory: dict[str, Any]) -> Severity:
        severity = severity_from_text(advisory.get("severity"))
        if severity is not None:
            return severity
        score = _as_score((advisory.get("cvss") or {}).get("score"))
        return severity_from_score(score) if score is not None else Severity.INFO

    def _github_recommendation(self, advisory: dict[str, Any], patched: list[str]) -> str:
        if advisory.get("recommendation"):
            return advisory["recommendation"]
        if patched:
            return f"Upgrade to version {', '.join(patched)} or later"

        description = (advisory.get("description") or "").lower()
        if "upgrade" in description or "update" in description:
            return "Upgrade to a patched version"
        return "Review advisory for specific recommendations"

    def _transform_osv_vulnerability(self, vuln: dict[str, Any], package_name: str) -> Vulnerability:
        vuln_id = vuln.get("id", "")
        details = vuln.get("details") or ""

        versions: list[str] = []
        fixed: list[str] = []
        for entry in self._osv_package_entries(vuln, package_name):
            for range_data in _usable_ranges(entry):
                events = range_data["events"]
                versions.extend(events_to_expressions(events))
                fixed.extend(str(e["fixed"]) for e in events if "fixed" in e)

        recommendation = (vuln.get("database_specific") or {}).get("recommendation")
        if not recommendation:
            recommendation = (
                f"Upgrade to version {', '.join(dict.fromkeys(fixed))} or later" if fixed
                else "Check vulnerability details for remediation steps"
            )

        return Vulnerability(
            id=vuln_id,
            title=vuln.get("summary") or (details[:100] + "..." if len(details) > 100 else details),
            severity=self._osv_severity(vuln),
            url=f"https://osv.dev/vulnerability/{vuln_id}",
            overview=details or vuln.get("summary") or "",
            recommendation=recommendation,
            versions=tuple(dict.fromkeys(versions)),
            published=vuln.get("published"),
            updated=vuln.get("modified") or vuln.get("published"),
            source=OSV_SOURCE
        )

    def _osv_severity(self, vuln: dict[str, Any]) -> Severity:
        # Numeric scores first; CVSS vector strings are not scores
        for entry in vuln.get("severity") or []:
            score = _as_score(entry.get("score"))
            if score is not None:
                return severity_from_score(score)

        severity = severity_from_text((vuln.get("database_specific") or {}).get("severity"))
        return severity if severity is not None else Severity.INFO
