"""Shared fixtures for npmplus tests."""

import pytest

from npmplus.packages.executor import CommandResult


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeExecutor:
    """Records commands and returns a canned result (or raises)."""

    def __init__(self, result: CommandResult | None = None, error: Exception | None = None):
        self.result = result or CommandResult(returncode=0, stdout="", stderr="")
        self.error = error
        self.calls: list[dict] = []

    async def run(self, command, *, cwd=None, timeout=60.0):
        self.calls.append({"command": command, "cwd": cwd, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def executor():
    return FakeExecutor()
