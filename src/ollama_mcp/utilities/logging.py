"""Logging utilities for the Ollama MCP server."""

import logging
from typing import Literal

from rich.console import Console
from rich.logging import RichHandler

# Namespace logger for all package logging. Only this logger is configured,
# never the root logger.
_LOGGER_NAME = "ollama_mcp"


def get_logger(name: str) -> logging.Logger:
    """Get a logger nested under the package namespace.

    Args:
        name: The name of the logger.

    Returns:
        A configured logger instance.
    """
    return logging.getLogger(name)


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO",
) -> None:
    """Configure logging for the server.

    Records go to stderr: on the stdio transport stdout carries protocol
    messages only.

    Args:
        level: The log level to use.
    """
    package_logger = logging.getLogger(_LOGGER_NAME)
    package_logger.setLevel(level)

    # Avoid adding duplicate handlers on repeated calls.
    if package_logger.handlers:
        return

    handler = RichHandler(console=Console(stderr=True), rich_tracebacks=True)
    package_logger.addHandler(handler)
