"""
Version Range Matching

A single range-matching algorithm for every vulnerability source:

- comparator expressions (``>= 1.0.0, < 1.2.3`` or ``<1.2.3 || >=2.0.0 <2.1.0``)
  as used by GitHub advisories
- OSV range events (``introduced`` / ``fixed`` / ``last_affected``), evaluated
  by walking the sorted events

npm versions are semver; they are coerced to ``packaging`` versions. Semver
prerelease tags that PEP 440 cannot express as a prerelease are mapped to a
dev release so they still sort before the final release.
"""

import operator
import re
from typing import Any

from packaging.version import InvalidVersion, Version

_SEMVER_PATTERN = re.compile(
    r"^\s*[v=]*\s*(?P<core>\d+(?:\.\d+){0,2})(?:-(?P<pre>[0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?\s*$"
)
_COMPARATOR_PATTERN = re.compile(r"(<=|>=|<|>|==|=)?\s*v?(\d[0-9A-Za-z.+-]*)")

_OPERATORS = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "=": operator.eq,
    "==": operator.eq,
    "": operator.eq,
}

EVENT_KINDS = ("introduced", "fixed", "last_affected")
USABLE_RANGE_TYPES = {"SEMVER", "ECOSYSTEM"}


def parse_version(value: str | None) -> Version | None:
    """Coerce an npm version string to a comparable Version, or None."""
    if not value:
        return None

    match = _SEMVER_PATTERN.match(str(value))
    if not match:
        return None

    core, pre = match.group("core"), match.group("pre")
    if not pre:
        return Version(core)

    try:
        candidate = Version(f"{core}-{pre}")
    except InvalidVersion:
        candidate = None

    # "-1" and "-post.1" parse as PEP 440 post releases, which sort after the release
    if candidate is not None and candidate.is_prerelease:
        return candidate
    return Version(f"{core}.dev0")


def matches_expression(version: str, expression: str) -> bool:
    """
    Check a version against a comparator expression.

    Alternatives are separated by ``||``; within an alternative every
    comparator (comma or whitespace separated) must hold. A bare version
    means equality. Unparseable expressions never match.
    """
    parsed = parse_version(version)
    if parsed is None:
        return False

    for alternative in expression.split("||"):
        comparators = _COMPARATOR_PATTERN.findall(alternative)
        if not comparators:
            continue

        satisfied = True
        for op, bound in comparators:
            bound_version = parse_version(bound)
            if bound_version is None or not _OPERATORS[op](parsed, bound_version):
                satisfied = False
                break

        if satisfied:
            return True

    return False


def _event_version(event: dict[str, Any]) -> tuple[str, Version] | None:
    for kind in EVENT_KINDS:
        if kind in event:
            raw = event[kind]
            # OSV uses "0" for "since the first release"
            if kind == "introduced" and str(raw) == "0":
                return kind, Version("0")
            parsed = parse_version(raw)
            return (kind, parsed) if parsed is not None else None
    return None


def is_usable_range(range_data: dict[str, Any]) -> bool:
    """
    Check whether a range can be evaluated against npm versions.

    Only ``SEMVER`` and ``ECOSYSTEM`` ranges (or untyped ones) carry package
    versions; ``GIT`` ranges are bounded by commit hashes. A range with an
    unparseable bound cannot be evaluated either, since dropping a ``fixed``
    event would leave the interval open.
    """
    range_type = range_data.get("type")
    if range_type is not None and str(range_type).upper() not in USABLE_RANGE_TYPES:
        return False

    events = range_data.get("events") or []
    if not events:
        return False

    # Other event kinds ("limit") are ignored
    return all(
        _event_version(event) is not None
        for event in events
        if any(kind in event for kind in EVENT_KINDS)
    )


def events_affect(version: str, events: list[dict[str, Any]]) -> bool:
    """
    Evaluate OSV-style range events for ``version``.

    Events are sorted by version and applied in order: ``introduced`` at or
    below the version opens a vulnerable interval, ``fixed`` at or below it
    closes the interval, and ``last_affected`` strictly below it closes it.
    """
    parsed = parse_version(version)
    if parsed is None:
        return False

    ordered = sorted(
        (e for e in (_event_version(ev) for ev in events) if e is not None),
        key=lambda item: item[1]
    )

    affected = False
    for kind, bound in ordered:
        if kind == "introduced" and parsed >= bound:
            affected = True
        elif kind == "fixed" and parsed >= bound:
            affected = False
        elif kind == "last_affected" and parsed > bound:
            affected = False

    return affected


def events_to_expressions(events: list[dict[str, Any]]) -> list[str]:
    """Render range events as comparator strings (``>=1.0.0``, ``<1.2.3``)."""
    expressions = []
    for event in events:
        if "introduced" in event:
            expressions.append(f">={event['introduced']}")
        if "fixed" in event:
            expressions.append(f"<{event['fixed']}")
        if "last_affected" in event:
            expressions.append(f"<={event['last_affected']}")
    return expressions
