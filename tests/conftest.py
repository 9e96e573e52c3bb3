"""Test fixtures for the K8s MCP Tools tests."""

import pytest

from k8s_mcp_tools.cache import ResultCache
from k8s_mcp_tools.cli_executor import ScriptedExecutor
from k8s_mcp_tools.config import K8sMcpToolsConfig
from k8s_mcp_tools.runtime import ToolRuntime


class FakeClock:
    """A monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def config():
    """Configuration with no ambient kubeconfig or security file."""
    return K8sMcpToolsConfig(KUBECONFIG=None, K8S_MCP_SECURITY_CONFIG_PATH=None)


@pytest.fixture
def scripted():
    return ScriptedExecutor()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def cache(fake_clock):
    return ResultCache(default_ttl=300.0, max_size=500, clock=fake_clock)


@pytest.fixture
def runtime(config, scripted, cache):
    """A runtime whose commands are answered by the scripted executor."""
    return ToolRuntime(config=config, executor=scripted, cache=cache)
