"""Helm tools."""

from typing import Optional

from k8s_mcp_tools.errors import ToolError, ToolsError, ValidationError, new_helm_error
from k8s_mcp_tools.models import ToolResult, text_result
from k8s_mcp_tools.runtime import ToolRuntime
from k8s_mcp_tools.security import validate_command_input, validate_k8s_resource_name, validate_namespace
from k8s_mcp_tools.tools.common import BoolLike, append_bool_flag, append_flag, parse_bool

LIST_OUTPUT_FORMATS = ("table", "json", "yaml")


async def run_helm_command(runtime: ToolRuntime, args: list[str], cacheable: bool = False) -> str:
    """Run helm, attaching the operation and arguments to any failure."""
    try:
        return await runtime.command("helm").with_args(*args).with_cache(cacheable).execute()
    except ToolsError as e:
        raise new_helm_error(args[0] if args else "helm", e).with_context("helm_args", args) from e


async def helm_list_releases(
    runtime: ToolRuntime,
    namespace: Optional[str] = None,
    all_namespaces: BoolLike = None,
    filter: Optional[str] = None,
    output: Optional[str] = None,
) -> ToolResult:
    try:
        args = ["list"]
        if parse_bool(all_namespaces, "all_namespaces"):
            args.append("-A")
        elif namespace:
            validate_namespace(namespace, policy=runtime.policy)
            args.extend(["-n", namespace])
        if filter:
            validate_command_input(filter, "filter", policy=runtime.policy)
        append_flag(args, "--filter", filter)
        if output:
            if output not in LIST_OUTPUT_FORMATS:
                raise ValidationError("output", f"must be one of: {', '.join(LIST_OUTPUT_FORMATS)}")
            args.extend(["-o", output])
        result = await run_helm_command(runtime, args, cacheable=True)
    except ToolsError as e:
        return new_helm_error("list", e).to_result()
    except ToolError as e:
        return _with_namespace(e, namespace).to_result()
    return text_result(result)


async def helm_uninstall(
    runtime: ToolRuntime,
    name: str,
    namespace: str,
    dry_run: BoolLike = None,
    wait: BoolLike = None,
) -> ToolResult:
    try:
        validate_k8s_resource_name(name, "release name", policy=runtime.policy)
        validate_namespace(namespace, policy=runtime.policy)
        args = ["uninstall", name, "-n", namespace]
        append_bool_flag(args, "--dry-run", dry_run)
        append_bool_flag(args, "--wait", wait)
        result = await run_helm_command(runtime, args)
    except ToolsError as e:
        return new_helm_error("uninstall", e).to_result()
    except ToolError as e:
        return _with_namespace(e, namespace).to_result()
    return text_result(result)


def _with_namespace(error: ToolError, namespace: Optional[str]) -> ToolError:
    return error.with_context("namespace", namespace) if namespace else error
