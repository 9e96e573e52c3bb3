"""Fluent construction and execution of CLI commands.

Tool handlers describe a command with a ``CommandBuilder`` and await
``execute()``::

    output = await (
        runtime.command("kubectl")
        .with_args("get", "pods", "-n", namespace)
        .with_cache()
        .execute()
    )

Arguments are appended verbatim and always travel as discrete argv elements;
nothing is ever joined into a shell string. Handlers validate untrusted values
with ``k8s_mcp_tools.security`` before appending them.
"""

import shlex
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from k8s_mcp_tools.cache import ResultCache, fingerprint
from k8s_mcp_tools.cli_executor import ExecutionResult, Executor
from k8s_mcp_tools.errors import ValidationError
from k8s_mcp_tools.logging_utils import get_logger
from k8s_mcp_tools.security import (
    ALLOWED_BINARIES,
    ValidationPolicy,
    is_allowed_binary,
    is_mutating_command,
)

logger = get_logger("commands")

KUBECONFIG_FLAG = "--kubeconfig"
TRUNCATION_MARKER = "\n... (output truncated)"


class CaptureMode(Enum):
    """Which captured streams make up the returned text."""

    COMBINED = "combined"
    STDOUT = "stdout"


@dataclass(frozen=True)
class CommandSpec:
    """An immutable description of one CLI invocation."""

    binary: str
    args: tuple[str, ...] = ()
    kubeconfig: str = ""
    capture: CaptureMode = CaptureMode.COMBINED
    cacheable: bool = False
    cache_ttl: Optional[float] = None
    timeout: Optional[float] = None
    env: tuple[tuple[str, str], ...] = ()

    @property
    def argv(self) -> list[str]:
        """Arguments passed to the binary, with the kubeconfig flag first."""
        if self.kubeconfig:
            return [KUBECONFIG_FLAG, self.kubeconfig, *self.args]
        return list(self.args)

    @property
    def command_line(self) -> str:
        return shlex.join([self.binary, *self.argv])

    @property
    def cache_key(self) -> str:
        return fingerprint(self.binary, self.argv, self.kubeconfig, dict(self.env))


class CommandBuilder:
    def __init__(
        self,
        binary: str,
        *,
        executor: Executor,
        cache: Optional[ResultCache] = None,
        timeout: Optional[float] = None,
        max_output_size: Optional[int] = None,
        policy: Optional[ValidationPolicy] = None,
    ):
        self._binary = binary
        self._executor = executor
        self._cache = cache
        self._timeout = timeout
        self._max_output_size = max_output_size
        self._policy = policy
        self._args: list[str] = []
        self._kubeconfig = ""
        self._capture = CaptureMode.COMBINED
        self._cacheable = False
        self._cache_ttl: Optional[float] = None
        self._env: dict[str, str] = {}

    def with_args(self, *args: str) -> "CommandBuilder":
        self._args.extend(args)
        return self

    def with_kubeconfig(self, path: Optional[str]) -> "CommandBuilder":
        """Inject ``--kubeconfig path``; an empty path leaves the argv alone."""
        self._kubeconfig = path or ""
        return self

    def with_capture(self, mode: CaptureMode) -> "CommandBuilder":
        self._capture = mode
        return self

    def with_stderr(self, include: bool = True) -> "CommandBuilder":
        return self.with_capture(CaptureMode.COMBINED if include else CaptureMode.STDOUT)

    def with_cache(self, enabled: bool = True, ttl: Optional[float] = None) -> "CommandBuilder":
        """Opt this command in to (or out of) the result cache.

        Only idempotent reads should be marked cacheable.
        """
        self._cacheable = enabled
        self._cache_ttl = ttl
        return self

    def with_timeout(self, seconds: Optional[float]) -> "CommandBuilder":
        self._timeout = seconds
        return self

    def with_env(self, key: str, value: str) -> "CommandBuilder":
        self._env[key] = value
        return self

    def build(self) -> CommandSpec:
        if not is_allowed_binary(self._binary):
            raise ValidationError("binary", f"'{self._binary}' is not one of {ALLOWED_BINARIES}")
        for position, arg in enumerate(self._args):
            if not isinstance(arg, str):
                raise ValidationError(f"argument {position}", f"must be a string, got {type(arg).__name__}")
            if "\x00" in arg:
                raise ValidationError(f"argument {position}", "contains a null byte")
        if "\x00" in self._kubeconfig:
            raise ValidationError("kubeconfig", "contains a null byte")

        return CommandSpec(
            binary=self._binary,
            args=tuple(self._args),
            kubeconfig=self._kubeconfig,
            capture=self._capture,
            cacheable=self._cacheable,
            cache_ttl=self._cache_ttl,
            timeout=self._timeout,
            env=tuple(sorted(self._env.items())),
        )

    async def execute(self) -> str:
        """Run the command, or answer it from the cache.

        Returns:
            The captured text according to the capture mode.

        Raises:
            ValidationError: If the command is malformed.
            ExecutionError: If the command could not be started.
            CommandFailedError: If the command exited with a non-zero status.
            CommandCancelledError: If the timeout expired first.
        """
        spec = self.build()
        mutating = is_mutating_command(spec.args, policy=self._policy, binary=spec.binary)

        key = None
        if spec.cacheable and self._cache is not None:
            if mutating:
                logger.warning(f"Refusing to cache mutating command: {spec.command_line}")
            else:
                key = spec.cache_key
                cached, hit = self._cache.get(key)
                if hit:
                    logger.debug(f"Serving cached result for: {spec.command_line}")
                    return self._render(spec, cached)

        result = await self._executor.run(
            spec.binary, spec.argv, env=dict(spec.env) or None, timeout=spec.timeout
        )
        if key is not None:
            self._cache.set(key, result, spec.cache_ttl)
        elif mutating and self._cache is not None:
            self._cache.invalidate()

        return self._render(spec, result)

    def _render(self, spec: CommandSpec, result: ExecutionResult) -> str:
        output = result.stdout
        if spec.capture is CaptureMode.COMBINED and result.stderr:
            if output and not output.endswith("\n"):
                output += "\n"
            output += result.stderr

        if self._max_output_size is not None and len(output) > self._max_output_size:
            logger.info(f"Output truncated from {len(output)} to {self._max_output_size} characters")
            output = output[: self._max_output_size] + TRUNCATION_MARKER
        return output
