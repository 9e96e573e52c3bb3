"""Logging utilities for K8s MCP Tools.

This module provides standardized logging configuration and logger creation
for consistent logging across the application.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOGGER_PREFIX = "k8s-mcp-tools"


def configure_root_logger(level: str = "INFO", log_file: Optional[str] = None):
    """Configure the root logger for the application.

    Sets up logging with a consistent format and a console handler on stderr,
    so stdout stays free for protocol traffic. A file handler is added when
    ``log_file`` is given.

    Args:
        level: Name of the log level, e.g. "DEBUG" or "INFO"
        log_file: Optional path of a file to copy log records to
    """
    # Create formatter
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Console handler
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Log startup information
    root_logger.info(f"Logging initialized at level {level.upper()}. Log file: {log_file or 'none'}")


def get_logger(name):
    """Get a standardized logger with the application prefix.

    Args:
        name: The name of the module or component

    Returns:
        A logger instance with the application prefix
    """
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")
