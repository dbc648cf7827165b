"""
License Report

Reads a project's package.json and the manifests of its installed direct
dependencies under node_modules, and groups the dependencies by license.
Dependencies that are declared but not installed are listed as missing.
"""

import json
import os
from typing import Any

from ..config.logging_config import pkg_logger
from ..errors import ManifestError
from .models import InstalledLicense, LicenseReport
from .registry_client import normalize_license

UNKNOWN_LICENSE = "Unknown"


def _read_json(path: str) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def read_project_dependencies(cwd: str, production: bool = False) -> dict[str, str]:
    """Declared direct dependencies; devDependencies are left out for production."""
    manifest_path = os.path.join(cwd, "package.json")
    try:
        manifest = _read_json(manifest_path)
    except (OSError, ValueError) as e:
        raise ManifestError(f"Cannot read {manifest_path}: {e}") from e

    if not isinstance(manifest, dict):
        raise ManifestError(f"{manifest_path} is not a JSON object")

    dependencies: dict[str, str] = {}
    if not production:
        dependencies.update(manifest.get("devDependencies") or {})
    dependencies.update(manifest.get("dependencies") or {})
    return dependencies


def build_license_report(cwd: str, production: bool = False) -> LicenseReport:
    """Build the license report for the project in ``cwd``."""
    report = LicenseReport()

    for name in read_project_dependencies(cwd, production):
        installed_path = os.path.join(cwd, "node_modules", *name.split("/"), "package.json")
        try:
            installed = _read_json(installed_path)
        except (OSError, ValueError) as e:
            pkg_logger.debug(f"No installed manifest for {name}: {e}")
            report.missing.append(name)
            continue
        if not isinstance(installed, dict):
            report.missing.append(name)
            continue

        license_name = normalize_license(installed.get("license") or installed.get("licenses")) or UNKNOWN_LICENSE
        version = str(installed.get("version") or "")

        report.packages.append(InstalledLicense(name=name, version=version, license=license_name))
        report.by_license.setdefault(license_name, []).append(f"{name}@{version}")

    report.packages.sort(key=lambda p: p.name)
    return report
