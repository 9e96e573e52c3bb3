"""Integration tests for the Kubernetes CLI tools.

These tests require a reachable Kubernetes cluster and the kubectl binary. They
are skipped unless K8S_MCP_TEST_USE_EXISTING_CLUSTER=true is set.
"""

import shutil

import pytest

from k8s_mcp_tools.cli_executor import check_cli_installed
from k8s_mcp_tools.tools.helm import helm_list_releases
from k8s_mcp_tools.tools.kubectl import kubectl_apply_manifest, kubectl_get


@pytest.mark.integration
@pytest.mark.asyncio
async def test_kubectl_get_namespaces(live_runtime, test_namespace):
    result = await kubectl_get(live_runtime, "namespaces", output="name")

    assert result.is_error is False
    assert f"namespace/{test_namespace}" in result.text


@pytest.mark.integration
@pytest.mark.asyncio
async def test_apply_manifest_then_get(live_runtime, test_namespace):
    """Test an applied ConfigMap is visible to the next read despite caching."""
    before = await kubectl_get(live_runtime, "configmaps", namespace=test_namespace, output="name")
    assert "configmap/k8s-mcp-test" not in before.text

    manifest = f"""\
apiVersion: v1
kind: ConfigMap
metadata:
  name: k8s-mcp-test
  namespace: {test_namespace}
data:
  key: value
"""
    applied = await kubectl_apply_manifest(live_runtime, manifest)
    assert applied.is_error is False, applied.text

    after = await kubectl_get(live_runtime, "configmaps", namespace=test_namespace, output="name")
    assert "configmap/k8s-mcp-test" in after.text


@pytest.mark.integration
@pytest.mark.asyncio
async def test_kubectl_get_missing_resource(live_runtime, test_namespace):
    result = await kubectl_get(live_runtime, "pods", resource_name="does-not-exist", namespace=test_namespace)

    assert result.is_error is True
    assert result.error.code == "COMMAND_FAILED"
    assert "NotFound" in result.text


@pytest.mark.integration
@pytest.mark.asyncio
async def test_helm_list_releases(live_runtime, test_namespace):
    if shutil.which("helm") is None:
        pytest.skip("helm is not installed")

    assert await check_cli_installed("helm", live_runtime.executor)
    result = await helm_list_releases(live_runtime, namespace=test_namespace)

    assert result.is_error is False, result.text
