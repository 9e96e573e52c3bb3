"""Prometheus query tools.

These talk to the Prometheus HTTP API directly rather than through a CLI, but
share the validators and the structured error rendering with the CLI tools.
"""

import json
import time
from typing import Optional

import httpx

from k8s_mcp_tools.errors import ToolsError, new_prometheus_error
from k8s_mcp_tools.logging_utils import get_logger
from k8s_mcp_tools.models import ToolResult, text_result
from k8s_mcp_tools.runtime import ToolRuntime
from k8s_mcp_tools.security import validate_command_input, validate_promql_query, validate_url

logger = get_logger("tools.prometheus")


def pretty_json_or_raw(body: bytes) -> str:
    text = body.decode("utf-8", errors="replace")
    try:
        return json.dumps(json.loads(text), indent=2)
    except ValueError:
        return text


async def prometheus_query(
    runtime: ToolRuntime,
    query: str,
    prometheus_url: Optional[str] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> ToolResult:
    """Evaluate an instant PromQL query."""
    prometheus_url = (prometheus_url or runtime.config.K8S_MCP_PROMETHEUS_URL).rstrip("/")
    try:
        validate_url(prometheus_url, "prometheus_url", policy=runtime.policy)
        validate_promql_query(query, policy=runtime.policy)
    except ToolsError as e:
        return new_prometheus_error("validate", e).with_context("prometheus_url", prometheus_url).to_result()

    params = {"query": query, "time": str(int(time.time()))}
    return await _get(runtime, f"{prometheus_url}/api/v1/query", params, prometheus_url, client)


async def prometheus_range_query(
    runtime: ToolRuntime,
    query: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
    step: Optional[str] = "15s",
    prometheus_url: Optional[str] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> ToolResult:
    """Evaluate a PromQL query over a time range, defaulting to the last hour."""
    prometheus_url = (prometheus_url or runtime.config.K8S_MCP_PROMETHEUS_URL).rstrip("/")
    step = step or "15s"
    try:
        validate_url(prometheus_url, "prometheus_url", policy=runtime.policy)
        validate_promql_query(query, policy=runtime.policy)
        for name, value in (("start", start), ("end", end), ("step", step)):
            if value:
                validate_command_input(value, name, policy=runtime.policy)
    except ToolsError as e:
        return new_prometheus_error("validate", e).with_context("prometheus_url", prometheus_url).to_result()

    now = int(time.time())
    params = {
        "query": query,
        "start": start or str(now - 3600),
        "end": end or str(now),
        "step": step,
    }
    return await _get(runtime, f"{prometheus_url}/api/v1/query_range", params, prometheus_url, client)


async def _get(
    runtime: ToolRuntime,
    api_url: str,
    params: dict[str, str],
    prometheus_url: str,
    client: Optional[httpx.AsyncClient],
) -> ToolResult:
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=runtime.config.K8S_MCP_TIMEOUT)
    try:
        logger.info(f"Querying Prometheus at {api_url}")
        response = await client.get(api_url, params=params)
    except httpx.TimeoutException as e:
        return _error("query_timeout", e, prometheus_url, params).with_context("api_url", api_url).to_result()
    except httpx.HTTPError as e:
        return _error("query_execution", e, prometheus_url, params).with_context("api_url", api_url).to_result()
    except Exception as e:
        logger.error(f"Unexpected error querying Prometheus at {api_url}: {e}")
        return _error("query_execution", e, prometheus_url, params).with_context("api_url", api_url).to_result()
    finally:
        if owns_client:
            await client.aclose()

    if response.status_code != httpx.codes.OK:
        body = response.text
        return (
            _error("api_error", RuntimeError(f"HTTP {response.status_code}: {body}"), prometheus_url, params)
            .with_context("status_code", response.status_code)
            .with_context("response_body", body)
            .to_result()
        )

    return text_result(pretty_json_or_raw(response.content))


def _error(operation: str, cause: BaseException, prometheus_url: str, params: dict[str, str]):
    return (
        new_prometheus_error(operation, cause)
        .with_context("prometheus_url", prometheus_url)
        .with_context("query", params["query"])
    )
