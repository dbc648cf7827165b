"""
Tests for the multi-source security scanner.
"""

import json

import httpx
import pytest

from npmplus.errors import SecurityScanError
from npmplus.packages.models import Severity, Vulnerability
from npmplus.packages.security_scanner import (
    SecurityScanner,
    aggregate_severity,
    deduplicate,
    severity_from_score,
    severity_from_text,
)


def github_advisory(ghsa_id="GHSA-aaaa-0001", name="lodash", severity="high", vulnerable_range="< 4.17.19"):
    return {
        "ghsa_id": ghsa_id,
        "summary": "Prototype pollution in lodash",
        "description": "Upgrade to 4.17.19.",
        "severity": severity,
        "html_url": f"https://github.com/advisories/{ghsa_id}",
        "published_at": "2020-07-15T00:00:00Z",
        "updated_at": "2021-01-01T00:00:00Z",
        "vulnerabilities": [{
            "package": {"ecosystem": "npm", "name": name},
            "vulnerable_version_range": vulnerable_range,
            "first_patched_version": "4.17.19",
        }],
    }


def osv_vuln(vuln_id="OSV-2021-0001", name="lodash", introduced="0", fixed="4.17.21", severity=None):
    vuln = {
        "id": vuln_id,
        "summary": "Command injection in lodash",
        "details": "template() allows command injection",
        "published": "2021-02-15T00:00:00Z",
        "modified": "2021-03-01T00:00:00Z",
        "affected": [{
            "package": {"ecosystem": "npm", "name": name},
            "ranges": [{"type": "SEMVER", "events": [{"introduced": introduced}, {"fixed": fixed}]}],
        }],
    }
    if severity is not None:
        vuln.update(severity)
    return vuln


def make_scanner(github=None, osv=None, requests=None, **kwargs) -> SecurityScanner:
    """Route GitHub and OSV requests to canned responses (Response or exception)."""

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        outcome = github if request.url.host == "api.github.com" else osv
        if isinstance(outcome, Exception):
            raise outcome
        # Fresh response per request so a scanner can be called repeatedly
        return httpx.Response(outcome.status_code, content=outcome.content, headers=outcome.headers)

    return SecurityScanner(transport=httpx.MockTransport(handler), **kwargs)


class TestSeverity:

    @pytest.mark.parametrize("score, expected", [
        (10.0, Severity.CRITICAL),
        (9.0, Severity.CRITICAL),
        (8.9, Severity.HIGH),
        (7.0, Severity.HIGH),
        (6.9, Severity.MODERATE),
        (4.0, Severity.MODERATE),
        (3.9, Severity.LOW),
        (0.1, Severity.LOW),
        (0.0, Severity.INFO),
    ])
    def test_score_buckets(self, score, expected):
        assert severity_from_score(score) is expected

    @pytest.mark.parametrize("text, expected", [
        ("critical", Severity.CRITICAL),
        ("HIGH", Severity.HIGH),
        ("moderate", Severity.MODERATE),
        ("medium", Severity.MODERATE),
        ("low", Severity.LOW),
        ("unknown", None),
        (None, None),
    ])
    def test_text_mapping(self, text, expected):
        assert severity_from_text(text) is expected

    def test_aggregate(self):
        def vuln(severity):
            return Vulnerability(id=severity.value, title="", severity=severity)

        assert aggregate_severity([vuln(Severity.CRITICAL), vuln(Severity.LOW)]) is Severity.CRITICAL
        assert aggregate_severity([vuln(Severity.LOW), vuln(Severity.HIGH)]) is Severity.HIGH
        assert aggregate_severity([vuln(Severity.MODERATE)]) is Severity.MODERATE
        assert aggregate_severity([]) is Severity.INFO

    def test_deduplicate_keeps_first(self):
        first = Vulnerability(id="GHSA-1", title="first", severity=Severity.HIGH, source="github")
        second = Vulnerability(id="GHSA-1", title="second", severity=Severity.LOW, source="osv")
        other = Vulnerability(id="OSV-2", title="other", severity=Severity.LOW, source="osv")

        assert deduplicate([first, second, other]) == [first, other]


class TestCheckVulnerabilities:

    @pytest.mark.asyncio
    async def test_merges_and_deduplicates_sources(self):
        scanner = make_scanner(
            github=httpx.Response(200, json=[github_advisory("GHSA-aaaa-0001")]),
            osv=httpx.Response(200, json={"vulns": [
                osv_vuln("GHSA-aaaa-0001", severity={"database_specific": {"severity": "LOW"}}),
                osv_vuln("OSV-2021-0002", severity={"severity": [{"type": "CVSS_V3", "score": "9.8"}]}),
            ]}),
        )

        info = await scanner.check_vulnerabilities("lodash")

        assert [v.id for v in info.vulnerabilities] == ["GHSA-aaaa-0001", "OSV-2021-0002"]
        assert info.vulnerabilities[0].source == "github"
        assert info.vulnerabilities[0].severity is Severity.HIGH
        assert info.has_vulnerabilities
        assert info.severity is Severity.CRITICAL
        assert info.count == 2
        assert info.sources_consulted == ("github", "osv")

    @pytest.mark.asyncio
    async def test_no_vulnerabilities(self):
        scanner = make_scanner(
            github=httpx.Response(200, json=[]),
            osv=httpx.Response(200, json={}),
        )

        info = await scanner.check_vulnerabilities("left-pad", "1.3.0")

        assert info.vulnerabilities == ()
        assert not info.has_vulnerabilities
        assert info.severity is Severity.INFO

    @pytest.mark.asyncio
    async def test_version_outside_range_is_filtered(self):
        scanner = make_scanner(
            github=httpx.Response(200, json=[github_advisory(vulnerable_range="< 4.17.19")]),
            osv=httpx.Response(200, json={"vulns": [osv_vuln(fixed="4.17.21")]}),
        )

        patched = await scanner.check_vulnerabilities("lodash", "4.17.21")
        assert patched.vulnerabilities == ()

    @pytest.mark.asyncio
    async def test_version_inside_range_is_kept(self):
        scanner = make_scanner(
            github=httpx.Response(200, json=[github_advisory(vulnerable_range="< 4.17.19")]),
            osv=httpx.Response(200, json={"vulns": [osv_vuln(fixed="4.17.21")]}),
        )

        info = await scanner.check_vulnerabilities("lodash", "4.17.20")
        assert [v.id for v in info.vulnerabilities] == ["OSV-2021-0001"]

    @pytest.mark.asyncio
    async def test_other_packages_are_filtered(self):
        scanner = make_scanner(
            github=httpx.Response(200, json=[github_advisory(name="lodash-es")]),
            osv=httpx.Response(200, json={"vulns": [osv_vuln(name="lodash.template")]}),
        )

        info = await scanner.check_vulnerabilities("lodash")
        assert info.vulnerabilities == ()

    @pytest.mark.asyncio
    async def test_missing_range_data_assumes_vulnerable(self):
        advisory = github_advisory()
        del advisory["vulnerabilities"][0]["vulnerable_version_range"]
        vuln = osv_vuln()
        vuln["affected"][0]["ranges"] = []

        scanner = make_scanner(
            github=httpx.Response(200, json=[advisory]),
            osv=httpx.Response(200, json={"vulns": [vuln]}),
        )

        info = await scanner.check_vulnerabilities("lodash", "99.0.0")
        assert {v.id for v in info.vulnerabilities} == {"GHSA-aaaa-0001", "OSV-2021-0001"}

    @pytest.mark.asyncio
    async def test_osv_explicit_version_list(self):
        vuln = osv_vuln()
        vuln["affected"][0]["ranges"] = [{"type": "SEMVER", "events": [{"introduced": "5.0.0"}]}]
        vuln["affected"][0]["versions"] = ["4.0.0"]

        scanner = make_scanner(
            github=httpx.Response(200, json=[]),
            osv=httpx.Response(200, json={"vulns": [vuln]}),
        )

        assert (await scanner.check_vulnerabilities("lodash", "4.0.0")).has_vulnerabilities
        assert not (await scanner.check_vulnerabilities("lodash", "4.5.0")).has_vulnerabilities

    @pytest.mark.asyncio
    async def test_one_source_down_degrades_silently(self):
        scanner = make_scanner(
            github=httpx.Response(500),
            osv=httpx.Response(200, json={"vulns": [osv_vuln()]}),
        )

        info = await scanner.check_vulnerabilities("lodash")

        assert [v.id for v in info.vulnerabilities] == ["OSV-2021-0001"]
        assert info.sources_consulted == ("osv",)

    @pytest.mark.asyncio
    async def test_github_404_means_no_advisories(self):
        scanner = make_scanner(
            github=httpx.Response(404),
            osv=httpx.Response(200, json={}),
        )

        info = await scanner.check_vulnerabilities("left-pad")
        assert info.sources_consulted == ("github", "osv")

    @pytest.mark.asyncio
    async def test_all_sources_down_is_an_error(self):
        scanner = make_scanner(
            github=httpx.ConnectError("unreachable"),
            osv=httpx.ReadTimeout("timed out"),
        )

        with pytest.raises(SecurityScanError):
            await scanner.check_vulnerabilities("lodash")


class TestRequests:

    @pytest.mark.asyncio
    async def test_query_shapes(self):
        requests: list[httpx.Request] = []
        scanner = make_scanner(
            github=httpx.Response(200, json=[]),
            osv=httpx.Response(200, json={}),
            requests=requests,
            github_token="secret",
        )

        await scanner.check_vulnerabilities("lodash", "4.17.20")

        github_request = next(r for r in requests if r.url.host == "api.github.com")
        assert github_request.url.params["ecosystem"] == "npm"
        assert github_request.url.params["affects"] == "lodash"
        assert github_request.headers["Authorization"] == "Bearer secret"

        osv_request = next(r for r in requests if r.url.host == "api.osv.dev")
        assert osv_request.method == "POST"
        assert osv_request.url.path == "/v1/query"
        assert json.loads(osv_request.content) == {
            "package": {"name": "lodash", "ecosystem": "npm"},
            "version": "4.17.20",
        }


class TestTransforms:

    def test_github_advisory_fields(self):
        scanner = SecurityScanner()
        vuln = scanner._transform_github_advisory(github_advisory(severity="medium"), "lodash")

        assert vuln.id == "GHSA-aaaa-0001"
        assert vuln.severity is Severity.MODERATE
        assert vuln.url == "https://github.com/advisories/GHSA-aaaa-0001"
        assert vuln.versions == ("< 4.17.19",)
        assert vuln.recommendation == "Upgrade to version 4.17.19 or later"
        assert vuln.published == "2020-07-15T00:00:00Z"

    def test_osv_fields(self):
        scanner = SecurityScanner()
        vuln = scanner._transform_osv_vulnerability(osv_vuln(), "lodash")

        assert vuln.url == "https://osv.dev/vulnerability/OSV-2021-0001"
        assert vuln.versions == (">=0", "<4.17.21")
        assert vuln.recommendation == "Upgrade to version 4.17.21 or later"
        assert vuln.severity is Severity.INFO
        assert vuln.updated == "2021-03-01T00:00:00Z"

    def test_osv_vector_falls_back_to_database_severity(self):
        scanner = SecurityScanner()
        vuln = osv_vuln(severity={
            "severity": [{"type": "CVSS_V3", "score": "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:H/I:H/A:H"}],
            "database_specific": {"severity": "HIGH"},
        })

        assert scanner._transform_osv_vulnerability(vuln, "lodash").severity is Severity.HIGH

    def test_github_cvss_score_when_severity_missing(self):
        scanner = SecurityScanner()
        advisory = github_advisory(severity=None)
        advisory["cvss"] = {"score": 7.5}

        assert scanner._transform_github_advisory(advisory, "lodash").severity is Severity.HIGH


class TestRangeTypes:

    @pytest.mark.asyncio
    async def test_git_range_does_not_widen_semver_range(self):
        vuln = osv_vuln("OSV-1", fixed="1.0.0")
        vuln["affected"][0]["ranges"].insert(
            0, {"type": "GIT", "repo": "https://github.com/lodash/lodash", "events": [
                {"introduced": "0"}, {"fixed": "deadbeefcafe"}
            ]}
        )
        scanner = make_scanner(
            github=httpx.Response(200, json=[]),
            osv=httpx.Response(200, json={"vulns": [vuln]}),
        )

        assert not (await scanner.check_vulnerabilities("lodash", "2.0.0")).has_vulnerabilities
        assert (await scanner.check_vulnerabilities("lodash", "0.9.0")).has_vulnerabilities

    def test_git_range_is_left_out_of_affected_versions(self):
        vuln = osv_vuln(fixed="1.0.0")
        vuln["affected"][0]["ranges"].append(
            {"type": "GIT", "events": [{"introduced": "0"}, {"fixed": "deadbeefcafe"}]}
        )

        transformed = SecurityScanner()._transform_osv_vulnerability(vuln, "lodash")

        assert transformed.versions == (">=0", "<1.0.0")
        assert transformed.recommendation == "Upgrade to version 1.0.0 or later"
