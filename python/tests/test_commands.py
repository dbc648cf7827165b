"""
Tests for dialect-specific argument vectors.
"""

import pytest

from npmplus.packages.commands import (
    build_audit_args,
    build_clean_cache_args,
    build_install_args,
    build_list_args,
    build_outdated_args,
    build_remove_args,
    build_update_args,
)
from npmplus.packages.models import Dialect


class TestInstallArgs:

    def test_npm(self):
        assert build_install_args(["left-pad"], Dialect.NPM) == ["install", "left-pad"]
        assert build_install_args(["left-pad"], Dialect.NPM, dev=True) == ["install", "--save-dev", "left-pad"]
        assert build_install_args(["a", "b"], Dialect.NPM, global_=True) == ["install", "--global", "a", "b"]

    def test_yarn(self):
        assert build_install_args(["left-pad"], Dialect.YARN) == ["add", "left-pad"]
        assert build_install_args(["left-pad"], Dialect.YARN, dev=True) == ["add", "--dev", "left-pad"]
        assert build_install_args(["left-pad"], Dialect.YARN, global_=True) == ["global", "add", "left-pad"]

    def test_pnpm(self):
        assert build_install_args(["left-pad"], Dialect.PNPM) == ["add", "left-pad"]
        assert build_install_args(["left-pad"], Dialect.PNPM, dev=True) == ["add", "--save-dev", "left-pad"]
        assert build_install_args(["left-pad"], Dialect.PNPM, global_=True) == ["add", "--global", "left-pad"]

    @pytest.mark.parametrize("dialect", list(Dialect))
    def test_no_packages_installs_project(self, dialect):
        assert build_install_args([], dialect) == ["install"]
        assert build_install_args([], dialect, dev=True) == ["install"]

    def test_global_dev_drops_dev_flag(self):
        assert build_install_args(["tsc"], Dialect.NPM, dev=True, global_=True) == ["install", "--global", "tsc"]


class TestUpdateRemoveArgs:

    def test_update(self):
        assert build_update_args(None, Dialect.NPM) == ["update"]
        assert build_update_args(["react"], Dialect.YARN) == ["upgrade", "react"]
        assert build_update_args(["react"], Dialect.PNPM) == ["update", "react"]

    def test_remove(self):
        assert build_remove_args(["left-pad"], Dialect.NPM) == ["uninstall", "left-pad"]
        assert build_remove_args(["left-pad"], Dialect.NPM, global_=True) == ["uninstall", "--global", "left-pad"]
        assert build_remove_args(["left-pad"], Dialect.YARN, global_=True) == ["global", "remove", "left-pad"]
        assert build_remove_args(["left-pad"], Dialect.PNPM, global_=True) == ["remove", "--global", "left-pad"]


class TestOutdatedArgs:

    def test_outdated(self):
        assert build_outdated_args(Dialect.NPM) == ["outdated", "--json"]
        assert build_outdated_args(Dialect.PNPM, global_=True) == ["outdated", "--global", "--json"]

    def test_yarn_global_is_dropped(self):
        assert build_outdated_args(Dialect.YARN, global_=True) == ["outdated", "--json"]


class TestAuditArgs:

    def test_npm(self):
        assert build_audit_args(Dialect.NPM) == ["audit", "--json"]
        assert build_audit_args(Dialect.NPM, fix=True, force=True) == ["audit", "fix", "--force", "--json"]
        assert build_audit_args(Dialect.NPM, production=True) == ["audit", "--omit=dev", "--json"]

    def test_yarn_fix_is_dropped(self):
        assert build_audit_args(Dialect.YARN, fix=True) == ["audit", "--json"]
        assert build_audit_args(Dialect.YARN, production=True) == ["audit", "--groups", "dependencies", "--json"]

    def test_pnpm(self):
        assert build_audit_args(Dialect.PNPM, fix=True, production=True) == ["audit", "--fix", "--prod", "--json"]

    def test_force_without_npm_fix_is_dropped(self):
        assert build_audit_args(Dialect.NPM, force=True) == ["audit", "--json"]
        assert build_audit_args(Dialect.PNPM, fix=True, force=True) == ["audit", "--fix", "--json"]


def test_clean_cache_args():
    assert build_clean_cache_args(Dialect.NPM) == ["cache", "clean", "--force"]
    assert build_clean_cache_args(Dialect.YARN) == ["cache", "clean"]
    assert build_clean_cache_args(Dialect.PNPM, global_=True) == ["store", "prune"]


class TestListArgs:

    def test_depth(self):
        assert build_list_args(Dialect.NPM) == ["list", "--depth=0", "--json"]
        assert build_list_args(Dialect.PNPM, depth=2) == ["list", "--depth=2", "--json"]

    @pytest.mark.parametrize("dialect, flag", [
        (Dialect.NPM, "--omit=dev"),
        (Dialect.YARN, "--production"),
        (Dialect.PNPM, "--prod"),
    ])
    def test_production(self, dialect, flag):
        assert build_list_args(dialect, depth=1, production=True) == ["list", "--depth=1", flag, "--json"]

    def test_negative_depth(self):
        with pytest.raises(ValueError):
            build_list_args(Dialect.NPM, depth=-1)
