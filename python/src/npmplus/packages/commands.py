"""
Package Manager Commands

Builds dialect-specific argument vectors for npm, yarn (v1) and pnpm.
Flags a dialect does not support are dropped with a warning instead of
failing the operation.
"""

from ..config.logging_config import pkg_logger
from .models import Dialect


def _unsupported(dialect: Dialect, flag: str, operation: str) -> None:
    pkg_logger.warning(f"{dialect.value} does not support {flag} for {operation}, ignoring it")


def build_install_args(
    packages: list[str],
    dialect: Dialect,
    dev: bool = False,
    global_: bool = False
) -> list[str]:
    """Arguments for installing packages (or the whole project when none are given)."""
    if not packages:
        if dev or global_:
            _unsupported(dialect, "--dev/--global without packages", "install")
        return ["install"]

    if dev and global_:
        _unsupported(dialect, "a dev dependency flag", "global install")
        dev = False

    if dialect == Dialect.NPM:
        args = ["install"]
        if global_:
            args.append("--global")
        if dev:
            args.append("--save-dev")
    elif dialect == Dialect.YARN:
        args = ["global", "add"] if global_ else ["add"]
        if dev:
            args.append("--dev")
    else:
        args = ["add"]
        if global_:
            args.append("--global")
        if dev:
            args.append("--save-dev")

    return args + list(packages)


def build_update_args(packages: list[str] | None, dialect: Dialect) -> list[str]:
    """Arguments for updating some or all packages."""
    verb = "upgrade" if dialect == Dialect.YARN else "update"
    return [verb] + list(packages or [])


def build_remove_args(packages: list[str], dialect: Dialect, global_: bool = False) -> list[str]:
    """Arguments for removing packages."""
    if dialect == Dialect.NPM:
        args = ["uninstall"]
        if global_:
            args.append("--global")
    elif dialect == Dialect.YARN:
        args = ["global", "remove"] if global_ else ["remove"]
    else:
        args = ["remove"]
        if global_:
            args.append("--global")

    return args + list(packages)


def build_outdated_args(dialect: Dialect, global_: bool = False) -> list[str]:
    """Arguments for listing outdated packages as JSON."""
    args = ["outdated"]
    if global_:
        if dialect == Dialect.YARN:
            _unsupported(dialect, "--global", "outdated")
        else:
            args.append("--global")
    args.append("--json")
    return args


def build_audit_args(
    dialect: Dialect,
    fix: bool = False,
    force: bool = False,
    production: bool = False
) -> list[str]:
    """Arguments for auditing dependencies."""
    args = ["audit"]

    if force and not (fix and dialect == Dialect.NPM):
        _unsupported(dialect, "--force", "audit without npm fix")

    if dialect == Dialect.NPM:
        if fix:
            args.append("fix")
            if force:
                args.append("--force")
        if production:
            args.append("--omit=dev")
    elif dialect == Dialect.YARN:
        if fix:
            _unsupported(dialect, "fix", "audit")
        if production:
            args.extend(["--groups", "dependencies"])
    else:
        if fix:
            args.append("--fix")
        if production:
            args.append("--prod")

    args.append("--json")
    return args


def build_clean_cache_args(dialect: Dialect, global_: bool = False) -> list[str]:
    """Arguments for cleaning the package manager cache."""
    if global_:
        _unsupported(dialect, "--global", "cache clean")

    if dialect == Dialect.NPM:
        return ["cache", "clean", "--force"]
    elif dialect == Dialect.YARN:
        return ["cache", "clean"]
    return ["store", "prune"]


def build_list_args(dialect: Dialect, depth: int = 0, production: bool = False) -> list[str]:
    """Arguments for printing the installed dependency tree as JSON."""
    if depth < 0:
        raise ValueError("depth must not be negative")

    args = ["list", f"--depth={depth}"]
    if production:
        if dialect == Dialect.NPM:
            args.append("--omit=dev")
        elif dialect == Dialect.YARN:
            args.append("--production")
        else:
            args.append("--prod")

    args.append("--json")
    return args
