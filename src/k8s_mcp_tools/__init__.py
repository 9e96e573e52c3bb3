"""K8s MCP Tools - Kubernetes CLI tools and HTTP APIs exposed as MCP tools."""

__version__ = "0.1.0"
