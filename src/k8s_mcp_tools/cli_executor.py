"""Executors that run CLI commands for K8s MCP Tools.

An executor takes a binary name and a discrete argument vector and returns the
captured output. Two implementations are provided:

- ``SubprocessExecutor`` spawns a real process (never through a shell) and
  kills its whole process group when the deadline fires or the calling task is
  cancelled.
- ``ScriptedExecutor`` answers from pre-registered expectations and fails the
  test on any invocation nobody expected.

Which one is used is decided by whoever constructs the ``ToolRuntime``; tool
handlers never branch on it.
"""

import asyncio
import os
import shlex
import signal
import time
from asyncio.subprocess import PIPE
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

from k8s_mcp_tools.errors import CommandCancelledError, CommandFailedError, ExecutionError
from k8s_mcp_tools.logging_utils import get_logger

logger = get_logger("cli_executor")


@dataclass(frozen=True)
class ExecutionResult:
    """Captured output of one completed command."""

    stdout: str
    stderr: str = ""
    exit_code: int = 0


@runtime_checkable
class Executor(Protocol):
    async def run(
        self,
        binary: str,
        args: Sequence[str],
        *,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ExecutionResult:
        """Run ``binary`` with ``args`` and return its captured output.

        Raises:
            ExecutionError: If the command could not be started.
            CommandFailedError: If the command exited with a non-zero status.
            CommandCancelledError: If ``timeout`` expired first.
        """
        ...


class SubprocessExecutor:
    """Runs commands as real OS processes."""

    async def run(
        self,
        binary: str,
        args: Sequence[str],
        *,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ExecutionResult:
        argv = [binary, *args]
        child_env = os.environ.copy()
        if env:
            child_env.update(env)

        logger.info(f"Executing command: {shlex.join(argv)}")
        start_time = time.monotonic()

        try:
            # A new session makes the child the leader of its own process
            # group, so a timeout can take down anything it spawned as well.
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=PIPE,
                stderr=PIPE,
                env=child_env,
                start_new_session=True,
            )
        except FileNotFoundError as e:
            logger.error(f"Command '{binary}' not found")
            raise ExecutionError(
                f"Command '{binary}' not found. Please ensure {binary} is installed and in PATH.", argv
            ) from e
        except OSError as e:
            logger.exception(f"Failed to create subprocess for command: {shlex.join(argv)}")
            raise ExecutionError(f"Failed to execute command: {e}", argv) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Command timed out after {timeout} seconds: {shlex.join(argv)}")
            await _terminate(process)
            raise CommandCancelledError(argv, timeout) from None
        except asyncio.CancelledError:
            logger.warning(f"Command cancelled: {shlex.join(argv)}")
            await _terminate(process)
            raise

        duration = time.monotonic() - start_time
        stdout_str = stdout.decode("utf-8", errors="replace")
        stderr_str = stderr.decode("utf-8", errors="replace")

        if process.returncode != 0:
            logger.warning(
                f"Command failed with return code {process.returncode} after {duration:.2f}s: {shlex.join(argv)}"
            )
            logger.debug(f"Command error output: {stderr_str}")
            raise CommandFailedError(argv, process.returncode, stderr=stderr_str, stdout=stdout_str)

        logger.info(f"Command completed in {duration:.2f}s: {shlex.join(argv)}")
        if stderr_str.strip():
            logger.debug(f"Command produced stderr output: {stderr_str.strip()}")
        return ExecutionResult(stdout=stdout_str, stderr=stderr_str, exit_code=process.returncode)


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Kill the process group led by ``process`` and reap the child."""
    if process.returncode is None:
        try:
            if hasattr(os, "killpg"):
                os.killpg(process.pid, signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.error(f"Error killing process {process.pid}: {e}")
            process.kill()
    await process.wait()


class UnexpectedCommandError(AssertionError):
    """Raised by ``ScriptedExecutor`` for an invocation nobody registered."""


@dataclass
class Expectation:
    binary: str
    args: tuple[str, ...]
    stdout: str = ""
    stderr: str = ""
    error: Optional[BaseException] = None
    exit_code: int = 0
    prefix: bool = False
    calls: int = 0

    def matches(self, binary: str, args: Sequence[str]) -> bool:
        if binary != self.binary:
            return False
        if self.prefix:
            return tuple(args[: len(self.args)]) == self.args
        return tuple(args) == self.args

    def describe(self) -> str:
        suffix = " ..." if self.prefix else ""
        return shlex.join([self.binary, *self.args]) + suffix


@dataclass(frozen=True)
class Invocation:
    binary: str
    args: tuple[str, ...]
    env: dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None


class ScriptedExecutor:
    """Test double answering commands from an ordered list of expectations.

    Expectations are tried in registration order and the first one whose
    binary and argument vector match wins; prefix expectations match any
    invocation whose arguments start with the registered ones. Expectations
    stay registered after use, so a command may be answered repeatedly.
    """

    def __init__(self):
        self.expectations: list[Expectation] = []
        self.invocations: list[Invocation] = []

    def expect(
        self,
        binary: str,
        args: Sequence[str],
        stdout: str = "",
        *,
        stderr: str = "",
        error: Optional[BaseException] = None,
        exit_code: int = 0,
    ) -> Expectation:
        """Register an answer for exactly ``binary args``."""
        expectation = Expectation(binary, tuple(args), stdout, stderr, error, exit_code)
        self.expectations.append(expectation)
        return expectation

    def expect_prefix(
        self,
        binary: str,
        args: Sequence[str],
        stdout: str = "",
        *,
        stderr: str = "",
        error: Optional[BaseException] = None,
        exit_code: int = 0,
    ) -> Expectation:
        """Register an answer for any invocation starting with ``binary args``."""
        expectation = Expectation(binary, tuple(args), stdout, stderr, error, exit_code, prefix=True)
        self.expectations.append(expectation)
        return expectation

    async def run(
        self,
        binary: str,
        args: Sequence[str],
        *,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ExecutionResult:
        self.invocations.append(Invocation(binary, tuple(args), dict(env or {}), timeout))

        for expectation in self.expectations:
            if not expectation.matches(binary, args):
                continue
            expectation.calls += 1
            if expectation.error is not None:
                raise expectation.error
            if expectation.exit_code != 0:
                raise CommandFailedError(
                    [binary, *args], expectation.exit_code, stderr=expectation.stderr, stdout=expectation.stdout
                )
            return ExecutionResult(stdout=expectation.stdout, stderr=expectation.stderr)

        registered = "\n".join(f"  {e.describe()}" for e in self.expectations) or "  (none)"
        raise UnexpectedCommandError(
            f"no expectation registered for command: {shlex.join([binary, *args])}\nregistered:\n{registered}"
        )

    def assert_all_called(self) -> None:
        uncalled = [e.describe() for e in self.expectations if e.calls == 0]
        if uncalled:
            raise AssertionError(f"expected commands were never run: {', '.join(uncalled)}")

    @property
    def commands(self) -> list[list[str]]:
        """Every argv seen so far, binary first."""
        return [[i.binary, *i.args] for i in self.invocations]


async def check_cli_installed(binary: str, executor: Executor, args: Sequence[str] = ("version",)) -> bool:
    """Check whether ``binary`` can be run successfully."""
    try:
        await executor.run(binary, args, timeout=10)
        return True
    except (ExecutionError, CommandFailedError, CommandCancelledError) as e:
        logger.warning(f"{binary} is not available: {e}")
        return False
