"""Main entry point for K8s MCP Tools.

Running this module will start the K8s MCP Tools server.
"""

import uvicorn

from k8s_mcp_tools.config import K8sMcpToolsConfig
from k8s_mcp_tools.logging_utils import configure_root_logger, get_logger

logger = get_logger("main")


def main() -> None:
    """Run the K8s MCP Tools server."""
    config = K8sMcpToolsConfig()
    configure_root_logger(config.K8S_MCP_LOG_LEVEL, config.K8S_MCP_LOG_FILE)

    # Import here so logging is configured before the app is built
    from k8s_mcp_tools.app import create_app
    from k8s_mcp_tools.runtime import ToolRuntime

    app = create_app(ToolRuntime(config=config))

    logger.info(f"Starting K8s MCP Tools on {config.K8S_MCP_HOST}:{config.K8S_MCP_PORT}")
    logger.info(f"MCP endpoint available at: http://{config.K8S_MCP_HOST}:{config.K8S_MCP_PORT}/mcp")
    uvicorn.run(app, host=config.K8S_MCP_HOST, port=config.K8S_MCP_PORT)


if __name__ == "__main__":
    main()
