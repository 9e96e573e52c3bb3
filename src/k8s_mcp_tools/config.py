"""Configuration settings for K8s MCP Tools.

This module contains configuration settings for the tools server,
loaded from environment variables using Pydantic, plus the holder for the
process-wide default kubeconfig path.
"""

import threading
from contextlib import contextmanager
from typing import Optional

from pydantic_settings import BaseSettings

from k8s_mcp_tools.logging_utils import get_logger

logger = get_logger("config")


class K8sMcpToolsConfig(BaseSettings):
    """
    Defines all configuration settings for the server.
    Settings are loaded from environment variables (case-insensitive).
    Example: set K8S_MCP_TIMEOUT=600 to override the default.
    """
    # Command execution settings
    K8S_MCP_TIMEOUT: int = 300
    K8S_MCP_MAX_OUTPUT_SIZE: int = 100000

    # Result cache settings
    K8S_MCP_CACHE_TTL: float = 300.0
    K8S_MCP_CACHE_MAX_SIZE: int = 500

    # Kubernetes specific settings
    KUBECONFIG: Optional[str] = None

    # Security settings
    K8S_MCP_MAX_INPUT_LENGTH: int = 1024
    K8S_MCP_MAX_QUERY_LENGTH: int = 4096
    K8S_MCP_SECURITY_CONFIG_PATH: Optional[str] = None

    # Logging settings
    K8S_MCP_LOG_LEVEL: str = "INFO"
    K8S_MCP_LOG_FILE: Optional[str] = None

    # Server settings
    K8S_MCP_HOST: str = "0.0.0.0"
    K8S_MCP_PORT: int = 9096
    K8S_MCP_PROMETHEUS_URL: str = "http://localhost:9090"


# --- Application-level constants below ---

SUPPORTED_CLI_TOOLS = {
    "kubectl": {
        "description": "Kubernetes command-line tool",
        "check_args": ["version", "--client"],
    },
    "helm": {
        "description": "Kubernetes package manager",
        "check_args": ["version"],
    },
    "istioctl": {
        "description": "Command-line tool for Istio service mesh",
        "check_args": ["version", "--remote=false"],
    },
    "linkerd": {
        "description": "Command-line tool for the Linkerd service mesh",
        "check_args": ["version", "--client"],
    },
    "cilium": {
        "description": "Command-line tool for Cilium networking",
        "check_args": ["version", "--client"],
    },
}


class ReadWriteLock:
    """A lock that admits many concurrent readers or a single writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class KubeconfigHolder:
    """Holds the default kubeconfig path injected into every command build.

    The path is normally set once at startup and read on every build, so reads
    share the lock and only ``set`` takes it exclusively.
    """

    def __init__(self, path: Optional[str] = None):
        self._lock = ReadWriteLock()
        self._path = path or ""

    def get(self) -> str:
        with self._lock.read():
            return self._path

    def set(self, path: Optional[str]) -> None:
        with self._lock.write():
            self._path = path or ""
        logger.info(f"Setting shared kubeconfig: {path or '<default>'}")

    @classmethod
    def from_config(cls, config: K8sMcpToolsConfig) -> "KubeconfigHolder":
        return cls(config.KUBECONFIG)
