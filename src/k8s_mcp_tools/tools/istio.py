"""Istio tools."""

from typing import Optional

from k8s_mcp_tools.errors import ToolsError, new_istio_error
from k8s_mcp_tools.models import ToolResult, text_result
from k8s_mcp_tools.runtime import ToolRuntime
from k8s_mcp_tools.security import validate_k8s_resource_name, validate_namespace
from k8s_mcp_tools.tools.common import BoolLike, parse_bool


async def istio_proxy_status(
    runtime: ToolRuntime,
    pod_name: Optional[str] = None,
    namespace: Optional[str] = None,
) -> ToolResult:
    """Show the xDS sync status of the mesh proxies, optionally for one pod."""
    try:
        args = ["proxy-status"]
        if pod_name:
            validate_k8s_resource_name(pod_name, "pod_name", policy=runtime.policy)
            target = pod_name
            if namespace:
                validate_namespace(namespace, policy=runtime.policy)
                target = f"{pod_name}.{namespace}"
            args.append(target)
        elif namespace:
            validate_namespace(namespace, policy=runtime.policy)
            args.extend(["-n", namespace])

        result = await runtime.command("istioctl").with_args(*args).execute()
    except ToolsError as e:
        error = new_istio_error("proxy_status", e)
        if pod_name:
            error = error.with_context("pod_name", pod_name)
        if namespace:
            error = error.with_context("namespace", namespace)
        return error.to_result()
    return text_result(result)


async def istio_analyze(
    runtime: ToolRuntime,
    namespace: Optional[str] = None,
    all_namespaces: BoolLike = None,
) -> ToolResult:
    try:
        args = ["analyze"]
        if parse_bool(all_namespaces, "all_namespaces"):
            args.append("-A")
        elif namespace:
            validate_namespace(namespace, policy=runtime.policy)
            args.extend(["-n", namespace])

        result = await runtime.command("istioctl").with_args(*args).with_cache(ttl=60).execute()
    except ToolsError as e:
        error = new_istio_error("analyze", e)
        if namespace:
            error = error.with_context("namespace", namespace)
        return error.to_result()
    return text_result(result)
