"""Cilium tools."""

from k8s_mcp_tools.errors import ToolsError, new_cilium_error
from k8s_mcp_tools.models import ToolResult, text_result
from k8s_mcp_tools.runtime import ToolRuntime


async def cilium_status_and_version(runtime: ToolRuntime) -> ToolResult:
    """Report the Cilium agent status followed by the CLI and agent versions."""
    try:
        status = await runtime.command("cilium").with_args("status").with_cache(ttl=30).execute()
    except ToolsError as e:
        return new_cilium_error("status", e).to_result()

    try:
        version = await runtime.command("cilium").with_args("version").with_cache().execute()
    except ToolsError as e:
        return new_cilium_error("version", e).to_result()

    return text_result(f"Cilium status:\n{status.strip()}\n\nCilium version:\n{version.strip()}")
