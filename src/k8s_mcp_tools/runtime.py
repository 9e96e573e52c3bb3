"""The collaborators every tool handler needs, bundled in one object."""

from dataclasses import dataclass, field, replace
from typing import Optional

from k8s_mcp_tools.cache import ResultCache
from k8s_mcp_tools.cli_executor import Executor, SubprocessExecutor
from k8s_mcp_tools.commands import CommandBuilder
from k8s_mcp_tools.config import K8sMcpToolsConfig, KubeconfigHolder
from k8s_mcp_tools.security import ValidationPolicy, policy_from_config


@dataclass
class ToolRuntime:
    """Config, executor, result cache, kubeconfig and validation policy.

    Built once at startup and passed to every handler. Tests build one around
    a ``ScriptedExecutor`` instead of patching anything.
    """

    config: K8sMcpToolsConfig
    executor: Executor = field(default_factory=SubprocessExecutor)
    cache: Optional[ResultCache] = None
    kubeconfig: Optional[KubeconfigHolder] = None
    policy: Optional[ValidationPolicy] = None

    def __post_init__(self):
        if self.cache is None:
            self.cache = ResultCache(
                default_ttl=self.config.K8S_MCP_CACHE_TTL,
                max_size=self.config.K8S_MCP_CACHE_MAX_SIZE,
            )
        if self.kubeconfig is None:
            self.kubeconfig = KubeconfigHolder.from_config(self.config)
        if self.policy is None:
            self.policy = policy_from_config(self.config)

    @classmethod
    def from_env(cls) -> "ToolRuntime":
        return cls(config=K8sMcpToolsConfig())

    def command(self, binary: str) -> CommandBuilder:
        """Start a command for ``binary`` with the default kubeconfig and timeout."""
        return CommandBuilder(
            binary,
            executor=self.executor,
            cache=self.cache,
            timeout=self.config.K8S_MCP_TIMEOUT,
            max_output_size=self.config.K8S_MCP_MAX_OUTPUT_SIZE,
            policy=self.policy,
        ).with_kubeconfig(self.kubeconfig.get())

    def with_executor(self, executor: Executor) -> "ToolRuntime":
        """Return a runtime sharing everything but the executor."""
        return replace(self, executor=executor)
