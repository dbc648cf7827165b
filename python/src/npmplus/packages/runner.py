"""
Package Manager Runner

This module detects which package manager governs a project directory and
runs npm, yarn or pnpm operations as bounded subprocesses, always returning
a structured OperationResult instead of raising.
"""

import asyncio
import json
import os
from typing import Any

from ..config.logging_config import pkg_logger
from ..errors import CommandTimeoutError
from .commands import (
    build_audit_args,
    build_clean_cache_args,
    build_install_args,
    build_list_args,
    build_outdated_args,
    build_remove_args,
    build_update_args,
)
from .executor import AsyncSubprocessExecutor, CommandExecutor, CommandResult
from .models import AuditSummary, DetectionResult, Dialect, OperationKind, OperationResult

# Detection priority, most specific first
LOCK_FILES: list[tuple[Dialect, str]] = [
    (Dialect.PNPM, "pnpm-lock.yaml"),
    (Dialect.YARN, "yarn.lock"),
    (Dialect.NPM, "package-lock.json"),
]

DEFAULT_DIALECT = Dialect.NPM

# Operations whose tools report findings (vulnerabilities, outdated or
# invalid dependencies) through a non-zero exit code
_FINDINGS_EXIT_OPERATIONS = {OperationKind.AUDIT, OperationKind.OUTDATED, OperationKind.LIST}


def parse_json_output(text: str) -> Any | None:
    """Parse a JSON document or NDJSON stream; None when neither fits."""
    text = text.strip()
    if not text:
        return None

    try:
        return json.loads(text)
    except ValueError:
        pass

    items = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            items.append(json.loads(line))
        except ValueError:
            return None
    return items or None


def extract_audit_summary(data: Any) -> AuditSummary | None:
    """Read vulnerability counts from npm/pnpm JSON or the yarn auditSummary line."""
    counts = None

    if isinstance(data, dict):
        if isinstance(data.get("audit"), dict):
            # npm audit fix --json nests the audit report
            return extract_audit_summary(data["audit"])
        counts = (data.get("metadata") or {}).get("vulnerabilities")
    elif isinstance(data, list):
        for item in data:
            if isinstance(item, dict) and item.get("type") == "auditSummary":
                counts = (item.get("data") or {}).get("vulnerabilities")
                break

    if not isinstance(counts, dict):
        return None

    return AuditSummary(
        info=int(counts.get("info") or 0),
        low=int(counts.get("low") or 0),
        moderate=int(counts.get("moderate") or 0),
        high=int(counts.get("high") or 0),
        critical=int(counts.get("critical") or 0)
    )


class PackageManagerRunner:
    """Detects the package manager and runs its operations."""

    def __init__(self, executor: CommandExecutor | None = None, timeout: float = 60.0):
        self.executor = executor or AsyncSubprocessExecutor()
        self.timeout = timeout

    def detect(self, cwd: str | None = None) -> DetectionResult:
        """Detect the dialect from lock files; npm when there is none."""
        working_dir = cwd or os.getcwd()

        for dialect, lock_file in LOCK_FILES:
            lock_path = os.path.join(working_dir, lock_file)
            if os.path.isfile(lock_path):
                return DetectionResult(dialect=dialect, lock_file=lock_path)

        return DetectionResult(dialect=DEFAULT_DIALECT, lock_file=None)

    async def detect_with_version(self, cwd: str | None = None) -> DetectionResult:
        """Detect the dialect and query ``<dialect> --version``."""
        detection = self.detect(cwd)
        version = await self.get_version(detection.dialect)
        return DetectionResult(dialect=detection.dialect, lock_file=detection.lock_file, version=version)

    async def get_version(self, dialect: Dialect) -> str | None:
        """Installed version of a package manager, or None."""
        try:
            result = await self.executor.run([dialect.value, "--version"], timeout=min(self.timeout, 10.0))
        except (OSError, CommandTimeoutError) as e:
            pkg_logger.debug(f"Could not get {dialect.value} version: {e}")
            return None
        if not result.success:
            return None
        return result.stdout.strip() or None

    async def install(
        self,
        packages: list[str],
        cwd: str | None = None,
        dialect: Dialect = DEFAULT_DIALECT,
        dev: bool = False,
        global_: bool = False
    ) -> OperationResult:
        """Install packages."""
        args = build_install_args(packages, dialect, dev=dev, global_=global_)
        return await self._execute(OperationKind.INSTALL, dialect, args, cwd, list(packages))

    async def update(
        self,
        packages: list[str] | None = None,
        cwd: str | None = None,
        dialect: Dialect = DEFAULT_DIALECT
    ) -> OperationResult:
        """Update packages (all when none are given)."""
        args = build_update_args(packages, dialect)
        return await self._execute(OperationKind.UPDATE, dialect, args, cwd, list(packages or ["all packages"]))

    async def remove(
        self,
        packages: list[str],
        cwd: str | None = None,
        dialect: Dialect = DEFAULT_DIALECT,
        global_: bool = False
    ) -> OperationResult:
        """Remove packages."""
        args = build_remove_args(packages, dialect, global_=global_)
        return await self._execute(OperationKind.REMOVE, dialect, args, cwd, list(packages))

    async def outdated(
        self,
        cwd: str | None = None,
        dialect: Dialect = DEFAULT_DIALECT,
        global_: bool = False
    ) -> OperationResult:
        """List outdated packages. A non-zero exit means "outdated packages found"."""
        args = build_outdated_args(dialect, global_=global_)
        return await self._execute(OperationKind.OUTDATED, dialect, args, cwd, ["outdated check"])

    async def audit(
        self,
        cwd: str | None = None,
        dialect: Dialect = DEFAULT_DIALECT,
        fix: bool = False,
        force: bool = False,
        production: bool = False
    ) -> OperationResult:
        """Audit dependencies. A non-zero exit means "vulnerabilities found"."""
        args = build_audit_args(dialect, fix=fix, force=force, production=production)
        return await self._execute(OperationKind.AUDIT, dialect, args, cwd, ["audit"])

    async def clean_cache(
        self,
        cwd: str | None = None,
        dialect: Dialect = DEFAULT_DIALECT,
        global_: bool = False
    ) -> OperationResult:
        """Clean the package manager cache."""
        args = build_clean_cache_args(dialect, global_=global_)
        return await self._execute(OperationKind.CACHE_CLEAN, dialect, args, cwd, ["cache"])

    async def list_dependencies(
        self,
        cwd: str | None = None,
        dialect: Dialect = DEFAULT_DIALECT,
        depth: int = 0,
        production: bool = False
    ) -> OperationResult:
        """Print the installed dependency tree. A non-zero exit means "tree has problems"."""
        args = build_list_args(dialect, depth=depth, production=production)
        return await self._execute(OperationKind.LIST, dialect, args, cwd, ["dependency tree"])

    async def _execute(
        self,
        operation: OperationKind,
        dialect: Dialect,
        args: list[str],
        cwd: str | None,
        packages: list[str]
    ) -> OperationResult:
        """Run a command and convert every outcome into an OperationResult."""
        loop = asyncio.get_event_loop()
        start_time = loop.time()
        command = [dialect.value, *args]

        try:
            result = await self.executor.run(command, cwd=cwd or os.getcwd(), timeout=self.timeout)

        except CommandTimeoutError as e:
            pkg_logger.error(f"{operation.value} timed out: {e}")
            return self._error_result(operation, dialect, packages, str(e), loop.time() - start_time)
        except OSError as e:
            pkg_logger.error(f"Could not run {dialect.value}: {e}")
            return self._error_result(
                operation, dialect, packages, f"Failed to run {dialect.value}: {e}", loop.time() - start_time
            )
        except Exception as e:
            pkg_logger.error(f"Unexpected error running {' '.join(command)}: {e}")
            return self._error_result(operation, dialect, packages, str(e), loop.time() - start_time)

        return self._build_result(operation, dialect, packages, result, loop.time() - start_time)

    def _build_result(
        self,
        operation: OperationKind,
        dialect: Dialect,
        packages: list[str],
        result: CommandResult,
        duration: float
    ) -> OperationResult:
        success = result.success or operation in _FINDINGS_EXIT_OPERATIONS
        output = "\n".join(part for part in (result.stdout.strip(), result.stderr.strip()) if part)

        data = None
        audit = None
        if operation in _FINDINGS_EXIT_OPERATIONS:
            data = parse_json_output(result.stdout)
            if data is None and result.stdout.strip():
                pkg_logger.debug(f"{dialect.value} {operation.value} output is not JSON, keeping raw output")
            if operation == OperationKind.AUDIT:
                audit = extract_audit_summary(data)

        errors = None
        if not success:
            errors = [result.stderr.strip() or f"{dialect.value} exited with code {result.returncode}"]
            pkg_logger.error(f"{dialect.value} {operation.value} failed with code {result.returncode}")

        return OperationResult(
            success=success,
            operation=operation,
            dialect=dialect,
            packages=packages,
            output=output,
            errors=errors,
            duration=duration,
            exit_code=result.returncode,
            data=data,
            audit=audit
        )

    def _error_result(
        self,
        operation: OperationKind,
        dialect: Dialect,
        packages: list[str],
        message: str,
        duration: float
    ) -> OperationResult:
        return OperationResult(
            success=False,
            operation=operation,
            dialect=dialect,
            packages=packages,
            output=message,
            errors=[message],
            duration=duration
        )
