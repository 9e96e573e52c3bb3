"""
K8s MCP Tools - an MCP server exposing Kubernetes CLI tools and Prometheus using fastapi-mcp.
"""
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from fastapi_mcp import FastApiMCP
from pydantic import BaseModel, Field

from k8s_mcp_tools import __version__
from k8s_mcp_tools.cli_executor import check_cli_installed
from k8s_mcp_tools.config import SUPPORTED_CLI_TOOLS
from k8s_mcp_tools.errors import MarshalError, render_error
from k8s_mcp_tools.logging_utils import get_logger
from k8s_mcp_tools.models import ToolResult, json_result
from k8s_mcp_tools.runtime import ToolRuntime
from k8s_mcp_tools.tools import cilium, helm, istio, kubectl, linkerd, prometheus

logger = get_logger("app")

MCP_OPERATIONS = [
    "kubectl_get",
    "kubectl_logs",
    "kubectl_apply_manifest",
    "helm_list_releases",
    "helm_uninstall",
    "istio_proxy_status",
    "istio_analyze",
    "linkerd_check",
    "linkerd_version",
    "linkerd_patch_workload_injection",
    "linkerd_install",
    "cilium_status_and_version",
    "prometheus_query",
    "prometheus_range_query",
    "tools_status",
]


# --- Pydantic Models ---
class KubectlGetRequest(BaseModel):
    resource_type: str = Field(..., description="Type of resource to get (e.g. pods, deployments)")
    resource_name: Optional[str] = Field(None, description="Name of a specific resource")
    namespace: Optional[str] = Field(None, description="Namespace to query")
    all_namespaces: Optional[bool] = Field(None, description="Query all namespaces")
    output: Optional[str] = Field("wide", description="Output format: wide, json, yaml or name")


class KubectlLogsRequest(BaseModel):
    pod_name: str = Field(..., description="Name of the pod")
    namespace: Optional[str] = Field("default", description="Namespace of the pod")
    container: Optional[str] = Field(None, description="Container name, for multi-container pods")
    tail_lines: Optional[int] = Field(50, description="Number of lines to show from the end of the logs")


class ApplyManifestRequest(BaseModel):
    manifest: str = Field(..., description="YAML manifest content to apply")


class HelmListRequest(BaseModel):
    namespace: Optional[str] = Field(None, description="Namespace to list releases from")
    all_namespaces: Optional[bool] = Field(None, description="List releases across all namespaces")
    filter: Optional[str] = Field(None, description="Regular expression filtering release names")
    output: Optional[str] = Field(None, description="Output format: table, json or yaml")


class HelmUninstallRequest(BaseModel):
    name: str = Field(..., description="Name of the release")
    namespace: str = Field(..., description="Namespace of the release")
    dry_run: Optional[bool] = Field(None, description="Simulate the uninstall")
    wait: Optional[bool] = Field(None, description="Wait for all resources to be deleted")


class IstioProxyStatusRequest(BaseModel):
    pod_name: Optional[str] = Field(None, description="Pod to show the proxy status of")
    namespace: Optional[str] = Field(None, description="Namespace of the pod")


class IstioAnalyzeRequest(BaseModel):
    namespace: Optional[str] = Field(None, description="Namespace to analyze")
    all_namespaces: Optional[bool] = Field(None, description="Analyze all namespaces")


class LinkerdCheckRequest(BaseModel):
    namespace: Optional[str] = Field(None, description="Namespace to check the data plane in")
    pre_check: Optional[bool] = Field(None, description="Run pre-installation checks")
    proxy_check: Optional[bool] = Field(None, description="Run data plane proxy checks")
    wait: Optional[str] = Field(None, description="Time to wait for checks to complete, e.g. 30s")
    output: Optional[str] = Field(None, description="Output format, e.g. short or json")


class LinkerdVersionRequest(BaseModel):
    client_only: Optional[bool] = Field(None, description="Only show the CLI version")


class LinkerdInjectionRequest(BaseModel):
    workload_name: str = Field(..., description="Name of the workload to patch")
    namespace: Optional[str] = Field("default", description="Namespace of the workload")
    workload_type: str = Field("deployment", description="Workload kind, e.g. deployment or statefulset")
    inject_state: str = Field("disabled", description="enabled, disabled or ingress")
    remove_annotation: Optional[bool] = Field(None, description="Remove the annotation instead of setting it")


class LinkerdInstallRequest(BaseModel):
    ha: Optional[bool] = Field(None, description="Install the control plane in high availability mode")
    crds_only: Optional[bool] = Field(None, description="Only install the CRDs")
    skip_checks: Optional[bool] = Field(None, description="Skip the Kubernetes and environment checks")
    set_overrides: Optional[str] = Field(None, description="Comma separated list of key=value chart overrides")


class PrometheusQueryRequest(BaseModel):
    query: str = Field(..., description="PromQL expression to evaluate")
    prometheus_url: Optional[str] = Field(None, description="Base URL of the Prometheus server")


class PrometheusRangeQueryRequest(PrometheusQueryRequest):
    start: Optional[str] = Field(None, description="Start timestamp, defaults to one hour ago")
    end: Optional[str] = Field(None, description="End timestamp, defaults to now")
    step: Optional[str] = Field("15s", description="Query resolution step width")


def get_runtime(request: Request) -> ToolRuntime:
    return request.app.state.runtime


class ToolResultRoute(APIRoute):
    """A route whose unexpected failures come back as error-flagged ToolResults."""

    def get_route_handler(self):
        handler = super().get_route_handler()
        operation = self.operation_id or self.name

        async def run_tool(request: Request) -> Response:
            try:
                return await handler(request)
            except (HTTPException, RequestValidationError):
                raise
            except Exception as e:
                logger.error(f"Unhandled error in {operation}: {e}", exc_info=True)
                return JSONResponse(render_error(e, operation).model_dump(mode="json"))

        return run_tool


def create_app(runtime: Optional[ToolRuntime] = None) -> FastAPI:
    """Build the FastAPI application and mount its tool endpoints as MCP tools."""
    app = FastAPI(
        title="K8s MCP Tools",
        description="An MCP server for Kubernetes tools (kubectl, helm, istioctl, linkerd, cilium) and Prometheus.",
        version=__version__,
    )
    app.state.runtime = runtime or ToolRuntime.from_env()
    router = APIRouter(route_class=ToolResultRoute)

    # --- Tool Endpoints ---
    @router.post("/tools/kubectl/get", response_model=ToolResult, operation_id="kubectl_get",
              summary="Get Kubernetes resources")
    async def run_kubectl_get(req: KubectlGetRequest, rt: ToolRuntime = Depends(get_runtime)):
        return await kubectl.kubectl_get(rt, **req.model_dump())

    @router.post("/tools/kubectl/logs", response_model=ToolResult, operation_id="kubectl_logs",
              summary="Get pod logs")
    async def run_kubectl_logs(req: KubectlLogsRequest, rt: ToolRuntime = Depends(get_runtime)):
        return await kubectl.kubectl_logs(rt, **req.model_dump())

    @router.post("/tools/kubectl/apply", response_model=ToolResult, operation_id="kubectl_apply_manifest",
              summary="Apply a YAML manifest")
    async def run_kubectl_apply(req: ApplyManifestRequest, rt: ToolRuntime = Depends(get_runtime)):
        return await kubectl.kubectl_apply_manifest(rt, req.manifest)

    @router.post("/tools/helm/list", response_model=ToolResult, operation_id="helm_list_releases",
              summary="List Helm releases")
    async def run_helm_list(req: HelmListRequest, rt: ToolRuntime = Depends(get_runtime)):
        return await helm.helm_list_releases(rt, **req.model_dump())

    @router.post("/tools/helm/uninstall", response_model=ToolResult, operation_id="helm_uninstall",
              summary="Uninstall a Helm release")
    async def run_helm_uninstall(req: HelmUninstallRequest, rt: ToolRuntime = Depends(get_runtime)):
        return await helm.helm_uninstall(rt, **req.model_dump())

    @router.post("/tools/istio/proxy-status", response_model=ToolResult, operation_id="istio_proxy_status",
              summary="Show Istio proxy sync status")
    async def run_istio_proxy_status(req: IstioProxyStatusRequest, rt: ToolRuntime = Depends(get_runtime)):
        return await istio.istio_proxy_status(rt, **req.model_dump())

    @router.post("/tools/istio/analyze", response_model=ToolResult, operation_id="istio_analyze",
              summary="Analyze Istio configuration")
    async def run_istio_analyze(req: IstioAnalyzeRequest, rt: ToolRuntime = Depends(get_runtime)):
        return await istio.istio_analyze(rt, **req.model_dump())

    @router.post("/tools/linkerd/check", response_model=ToolResult, operation_id="linkerd_check",
              summary="Run Linkerd control plane or data plane checks")
    async def run_linkerd_check(req: LinkerdCheckRequest, rt: ToolRuntime = Depends(get_runtime)):
        return await linkerd.linkerd_check(rt, **req.model_dump())

    @router.post("/tools/linkerd/version", response_model=ToolResult, operation_id="linkerd_version",
              summary="Show Linkerd versions")
    async def run_linkerd_version(req: LinkerdVersionRequest, rt: ToolRuntime = Depends(get_runtime)):
        return await linkerd.linkerd_version(rt, **req.model_dump())

    @router.post("/tools/linkerd/injection", response_model=ToolResult, operation_id="linkerd_patch_workload_injection",
              summary="Set or remove the Linkerd injection annotation on a workload")
    async def run_linkerd_injection(req: LinkerdInjectionRequest, rt: ToolRuntime = Depends(get_runtime)):
        return await linkerd.linkerd_patch_workload_injection(rt, **req.model_dump())

    @router.post("/tools/linkerd/install", response_model=ToolResult, operation_id="linkerd_install",
              summary="Install Linkerd")
    async def run_linkerd_install(req: LinkerdInstallRequest, rt: ToolRuntime = Depends(get_runtime)):
        return await linkerd.linkerd_install(rt, **req.model_dump())

    @router.post("/tools/cilium/status", response_model=ToolResult, operation_id="cilium_status_and_version",
              summary="Show Cilium status and version")
    async def run_cilium_status(rt: ToolRuntime = Depends(get_runtime)):
        return await cilium.cilium_status_and_version(rt)

    @router.post("/tools/prometheus/query", response_model=ToolResult, operation_id="prometheus_query",
              summary="Run an instant PromQL query")
    async def run_prometheus_query(req: PrometheusQueryRequest, rt: ToolRuntime = Depends(get_runtime)):
        return await prometheus.prometheus_query(rt, req.query, req.prometheus_url)

    @router.post("/tools/prometheus/query-range", response_model=ToolResult, operation_id="prometheus_range_query",
              summary="Run a PromQL range query")
    async def run_prometheus_range_query(req: PrometheusRangeQueryRequest, rt: ToolRuntime = Depends(get_runtime)):
        return await prometheus.prometheus_range_query(
            rt, req.query, start=req.start, end=req.end, step=req.step, prometheus_url=req.prometheus_url
        )

    # --- Health Check ---
    @app.get("/health",
             summary="Health check",
             description="Check if the server is running and healthy.")
    async def health_check(rt: ToolRuntime = Depends(get_runtime)):
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__, "cache": asdict(rt.cache.stats())}

    # --- Tool Status Check ---
    @router.get("/tools/status", response_model=ToolResult, operation_id="tools_status",
             summary="Check tool availability",
             description="Check which CLI tools are available on the system.")
    async def check_tools_status(rt: ToolRuntime = Depends(get_runtime)):
        """Check which CLI tools are available."""
        status = {}
        for tool, spec in SUPPORTED_CLI_TOOLS.items():
            status[tool] = {
                "available": await check_cli_installed(tool, rt.executor, spec["check_args"]),
                "description": spec["description"],
            }
        try:
            return json_result({"tools": status})
        except MarshalError as e:
            return render_error(e, "tools_status")

    app.include_router(router)

    # --- Create and Mount MCP Server ---
    mcp = FastApiMCP(
        app,
        name="K8s MCP Tools",
        description="MCP server for Kubernetes CLI tools (kubectl, helm, istioctl, linkerd, cilium) and Prometheus",
        include_operations=MCP_OPERATIONS,
    )
    mcp.mount_http()

    return app
