"""
Command Executor

Runs package manager commands as bounded subprocesses. The CommandExecutor
protocol lets tests substitute a fake without touching real binaries.
"""

import asyncio
from dataclasses import dataclass
from typing import Protocol

from ..config.logging_config import pkg_logger
from ..errors import CommandTimeoutError


@dataclass
class CommandResult:
    """Captured output of a finished command."""
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


class CommandExecutor(Protocol):
    """Executes a command and returns its captured output."""

    async def run(self, command: list[str], *, cwd: str | None = None, timeout: float = 60.0) -> CommandResult:
        """
        Run ``command`` in ``cwd``.

        Raises:
            CommandTimeoutError: the deadline passed; the child has been killed
            FileNotFoundError: the executable does not exist
        """
        ...


class AsyncSubprocessExecutor:
    """Default executor backed by ``asyncio.create_subprocess_exec``."""

    async def run(self, command: list[str], *, cwd: str | None = None, timeout: float = 60.0) -> CommandResult:
        pkg_logger.debug(f"Running {' '.join(command)} (cwd={cwd})")

        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except TimeoutError:
            await self._kill(process)
            raise CommandTimeoutError(command, timeout)
        except asyncio.CancelledError:
            await self._kill(process)
            raise

        return CommandResult(
            returncode=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace")
        )

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()
