"""Error types for K8s MCP Tools.

Two families live here:

- the execution taxonomy raised by the validators, the command builder and the
  executors (``ValidationError``, ``ExecutionError``, ``CommandFailedError``,
  ``CommandCancelledError``, ``MarshalError``);
- ``ToolError``, the structured error a tool handler builds from one of the
  above, enriches with call-specific context and renders at the protocol
  boundary.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from k8s_mcp_tools.models import ErrorDetails, ToolResult


class ToolsError(Exception):
    """Base class for all errors raised by the execution core."""

    code = "TOOL_ERROR"


class ValidationError(ToolsError):
    """Raised when an input is rejected before any process is spawned."""

    code = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"invalid {field}: {reason}")


class ExecutionError(ToolsError):
    """Raised when the executor could not start the command at all."""

    code = "EXECUTION_ERROR"

    def __init__(self, message: str, command: Sequence[str] = ()):
        self.command = list(command)
        super().__init__(message)


class CommandFailedError(ToolsError):
    """Raised when a command ran and exited with a non-zero status."""

    code = "COMMAND_FAILED"

    def __init__(
        self,
        command: Sequence[str],
        exit_code: int | None,
        stderr: str = "",
        stdout: str = "",
    ):
        self.command = list(command)
        self.exit_code = exit_code
        self.stderr = stderr
        self.stdout = stdout
        detail = stderr.strip() or "no error output"
        super().__init__(f"command exited with status {exit_code}: {detail}")


class CommandCancelledError(ToolsError):
    """Raised when a command's deadline expired before it completed."""

    code = "TIMEOUT_ERROR"

    def __init__(self, command: Sequence[str], timeout: float | None = None):
        self.command = list(command)
        self.timeout = timeout
        if timeout is not None:
            message = f"command timed out after {timeout:g} seconds"
        else:
            message = "command was cancelled"
        super().__init__(message)


class MarshalError(ToolsError):
    """Raised when a successful result cannot be encoded for the client."""

    code = "MARSHAL_ERROR"


class ToolError(Exception):
    """A failure of one tool operation, carrying diagnostic context.

    Instances are treated as immutable: ``with_context`` returns a new error
    with the extra key appended, leaving the receiver untouched. Context keys
    are unique; re-adding a key replaces its value in place.
    """

    def __init__(
        self,
        component: str,
        operation: str,
        cause: BaseException,
        context: dict[str, str] | None = None,
    ):
        self.component = component
        self.operation = operation
        self.cause = cause
        self._context = dict(context or {})
        super().__init__(f"{component} {operation} failed: {cause}")

    @property
    def context(self) -> dict[str, str]:
        return dict(self._context)

    @property
    def code(self) -> str:
        return getattr(self.cause, "code", ToolsError.code)

    def with_context(self, key: str, value: Any) -> ToolError:
        context = dict(self._context)
        context[key] = _stringify(value)
        return ToolError(self.component, self.operation, self.cause, context)

    def render(self) -> str:
        lines = [f"Error: {self.component} operation '{self.operation}' failed: {self.cause}"]
        if self._context:
            lines.append("Context:")
            lines.extend(f"  {key}: {value}" for key, value in self._context.items())
        return "\n".join(lines)

    def to_result(self) -> ToolResult:
        """Render this error into an error-flagged result for the client."""
        details: dict[str, Any] = {"component": self.component, "operation": self.operation}
        details.update(self._context)
        return ToolResult(
            text=self.render(),
            is_error=True,
            error=ErrorDetails(message=str(self.cause), code=self.code, details=details),
        )


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return " ".join(str(item) for item in value)
    return str(value)


def new_command_error(command: str, cause: BaseException) -> ToolError:
    """Wrap a failure of a single CLI invocation, keeping its stderr visible."""
    error = ToolError("command", command, cause)
    if isinstance(cause, CommandFailedError):
        if cause.exit_code is not None:
            error = error.with_context("exit_code", cause.exit_code)
        if cause.stderr.strip():
            error = error.with_context("stderr", cause.stderr.strip())
    return error


def new_k8s_error(operation: str, cause: BaseException) -> ToolError:
    return ToolError("kubernetes", operation, cause)


def new_helm_error(operation: str, cause: BaseException) -> ToolError:
    return ToolError("helm", operation, cause)


def new_istio_error(operation: str, cause: BaseException) -> ToolError:
    return ToolError("istio", operation, cause)


def new_linkerd_error(operation: str, cause: BaseException) -> ToolError:
    return ToolError("linkerd", operation, cause)


def new_cilium_error(operation: str, cause: BaseException) -> ToolError:
    return ToolError("cilium", operation, cause)


def new_prometheus_error(operation: str, cause: BaseException) -> ToolError:
    return ToolError("prometheus", operation, cause)


def render_error(error: BaseException, operation: str = "tool call") -> ToolResult:
    """Convert any exception into an error-flagged result.

    This is the only place where errors cross the protocol boundary. Handlers
    either return ``ToolError.to_result()`` directly or hand whatever they
    caught to this function.
    """
    if isinstance(error, ToolError):
        return error.to_result()
    if isinstance(error, ValidationError):
        return ToolResult(
            text=f"Error: {error}",
            is_error=True,
            error=ErrorDetails(
                message=error.reason,
                code=error.code,
                details={"field": error.field, "operation": operation},
            ),
        )
    if isinstance(error, CommandFailedError):
        return new_command_error(operation, error).to_result()
    if isinstance(error, CommandCancelledError):
        wrapped = ToolError("command", operation, error)
        if error.timeout is not None:
            wrapped = wrapped.with_context("timeout_seconds", f"{error.timeout:g}")
        return wrapped.to_result()
    return ToolError("command", operation, error).to_result()
