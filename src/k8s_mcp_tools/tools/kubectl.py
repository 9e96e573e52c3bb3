"""kubectl tools."""

from typing import Optional

from k8s_mcp_tools.errors import ToolsError, ValidationError, new_k8s_error
from k8s_mcp_tools.models import ToolResult, text_result
from k8s_mcp_tools.runtime import ToolRuntime
from k8s_mcp_tools.security import validate_command_input, validate_k8s_resource_name, validate_namespace
from k8s_mcp_tools.tools.common import BoolLike, parse_bool, temporary_manifest, validate_manifest

OUTPUT_FORMATS = ("wide", "json", "yaml", "name")


async def kubectl_get(
    runtime: ToolRuntime,
    resource_type: str,
    resource_name: Optional[str] = None,
    namespace: Optional[str] = None,
    all_namespaces: BoolLike = None,
    output: Optional[str] = "wide",
) -> ToolResult:
    """List or fetch Kubernetes resources. Results are cached briefly."""
    try:
        validate_command_input(resource_type, "resource_type", policy=runtime.policy)
        args = ["get", resource_type]
        if resource_name:
            validate_k8s_resource_name(resource_name, policy=runtime.policy)
            args.append(resource_name)
        if parse_bool(all_namespaces, "all_namespaces"):
            args.append("--all-namespaces")
        elif namespace:
            validate_namespace(namespace, policy=runtime.policy)
            args.extend(["-n", namespace])
        output = output or "wide"
        if output not in OUTPUT_FORMATS:
            raise ValidationError("output", f"must be one of: {', '.join(OUTPUT_FORMATS)}")
        args.extend(["-o", output])

        result = await runtime.command("kubectl").with_args(*args).with_cache().execute()
    except ToolsError as e:
        error = new_k8s_error("get", e).with_context("resource_type", resource_type)
        if resource_name:
            error = error.with_context("resource_name", resource_name)
        if namespace:
            error = error.with_context("namespace", namespace)
        return error.to_result()
    return text_result(result)


async def kubectl_logs(
    runtime: ToolRuntime,
    pod_name: str,
    namespace: Optional[str] = "default",
    container: Optional[str] = None,
    tail_lines: Optional[int] = 50,
) -> ToolResult:
    namespace = namespace or "default"
    try:
        validate_k8s_resource_name(pod_name, "pod_name", policy=runtime.policy)
        validate_namespace(namespace, policy=runtime.policy)
        args = ["logs", pod_name, "-n", namespace]
        if container:
            validate_k8s_resource_name(container, "container", policy=runtime.policy)
            args.extend(["-c", container])
        if tail_lines and tail_lines > 0:
            args.extend(["--tail", str(tail_lines)])

        result = await runtime.command("kubectl").with_args(*args).with_stderr(False).execute()
    except ToolsError as e:
        return (
            new_k8s_error("logs", e)
            .with_context("pod_name", pod_name)
            .with_context("namespace", namespace)
            .to_result()
        )
    return text_result(result)


async def kubectl_apply_manifest(runtime: ToolRuntime, manifest: str) -> ToolResult:
    """Apply YAML manifest content through a temporary file."""
    try:
        validate_manifest(manifest)
        with temporary_manifest(manifest) as path:
            result = await runtime.command("kubectl").with_args("apply", "-f", path).execute()
    except ToolsError as e:
        return new_k8s_error("apply", e).to_result()
    return text_result(result)
