"""
npmplus Errors

All component failures derive from NpmPlusError. The HTTP adapter maps the
``code`` attribute to a response; the orchestrator converts expected negative
outcomes into tagged results before they reach a caller.
"""


class NpmPlusError(Exception):
    """Base error for the package intelligence core."""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(NpmPlusError):
    """Configuration is missing or invalid."""

    code = "CONFIG_ERROR"


class UpstreamError(NpmPlusError):
    """An upstream service failed: 5xx, rate limiting, network error."""

    code = "UPSTREAM_ERROR"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpstreamTimeoutError(UpstreamError):
    """An upstream call exceeded its deadline."""

    code = "UPSTREAM_TIMEOUT"


class PackageNotFoundError(NpmPlusError):
    """The package (or requested version) does not exist in the registry."""

    code = "PACKAGE_NOT_FOUND"

    def __init__(self, name: str, version: str | None = None) -> None:
        target = f"{name}@{version}" if version else name
        super().__init__(f"Package not found: {target}")
        self.name = name
        self.version = version


class SecurityScanError(NpmPlusError):
    """Every vulnerability source failed."""

    code = "SECURITY_SCAN_FAILED"


class CommandTimeoutError(NpmPlusError):
    """A package manager subprocess exceeded its deadline and was killed."""

    code = "COMMAND_TIMEOUT"

    def __init__(self, command: list[str], timeout: float) -> None:
        super().__init__(f"Command timed out after {timeout:g}s: {' '.join(command)}")
        self.command = command
        self.timeout = timeout


class ManifestError(NpmPlusError):
    """A project's package.json is missing or unreadable."""

    code = "MANIFEST_ERROR"
