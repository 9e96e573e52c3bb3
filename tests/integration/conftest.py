# File: tests/integration/conftest.py
import os
import shutil
import subprocess
import uuid
from collections.abc import Generator

import pytest

from k8s_mcp_tools.config import K8sMcpToolsConfig
from k8s_mcp_tools.runtime import ToolRuntime


class KubernetesClusterManager:
    """Manager class for Kubernetes cluster operations during tests."""

    def __init__(self):
        self.kubeconfig = os.environ.get("KUBECONFIG")
        self.use_existing = os.environ.get("K8S_MCP_TEST_USE_EXISTING_CLUSTER", "false").lower() == "true"
        self.skip_cleanup = os.environ.get("K8S_SKIP_CLEANUP", "").lower() == "true"

    def kubectl(self, *args: str, timeout: int = 20) -> subprocess.CompletedProcess:
        cmd = ["kubectl", *args]
        if self.kubeconfig:
            cmd = ["kubectl", "--kubeconfig", self.kubeconfig, *args]
        return subprocess.run(cmd, check=True, capture_output=True, text=True, timeout=timeout)

    def verify_connection(self) -> bool:
        """Verify connection to the Kubernetes cluster."""
        try:
            self.kubectl("cluster-info")
            return True
        except (OSError, subprocess.SubprocessError) as e:
            print(f"Cluster connection failed: {str(e)}")
            return False

    def create_namespace(self) -> str:
        name = f"k8s-mcp-test-{uuid.uuid4().hex[:8]}"
        self.kubectl("create", "namespace", name)
        print(f"Created test namespace: {name}")
        return name

    def delete_namespace(self, name: str) -> None:
        if self.skip_cleanup:
            print(f"Skipping cleanup of namespace {name} as requested")
            return
        try:
            self.kubectl("delete", "namespace", name, "--wait=false")
            print(f"Deleted test namespace: {name}")
        except subprocess.SubprocessError as e:
            print(f"Warning: failed to delete namespace {name}: {e}")


@pytest.fixture(scope="session")
def cluster_manager() -> KubernetesClusterManager:
    manager = KubernetesClusterManager()
    if not manager.use_existing:
        pytest.skip("Set K8S_MCP_TEST_USE_EXISTING_CLUSTER=true to run integration tests")
    if shutil.which("kubectl") is None:
        pytest.skip("kubectl is not installed")
    if not manager.verify_connection():
        pytest.skip("No reachable Kubernetes cluster")
    return manager


@pytest.fixture
def test_namespace(cluster_manager) -> Generator[str, None, None]:
    name = cluster_manager.create_namespace()
    yield name
    cluster_manager.delete_namespace(name)


@pytest.fixture
def live_runtime(cluster_manager) -> ToolRuntime:
    """A runtime that runs real binaries against the test cluster."""
    return ToolRuntime(config=K8sMcpToolsConfig(KUBECONFIG=cluster_manager.kubeconfig))
