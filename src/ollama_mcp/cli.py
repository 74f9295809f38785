"""Command-line entry point: ``ollama-mcp-server`` / ``python -m ollama_mcp``."""

from __future__ import annotations

import sys

import anyio

from ollama_mcp.config import Settings, load_settings
from ollama_mcp.exceptions import ConfigError
from ollama_mcp.server.protocol import create_protocol_session
from ollama_mcp.server.stdio import StdioGateway
from ollama_mcp.utilities.logging import configure_logging, get_logger

logger = get_logger(__name__)


async def run_stdio_async(settings: Settings) -> None:
    """Serve a single session over stdin/stdout until EOF or a termination signal."""
    await StdioGateway(create_protocol_session(settings)).run()


async def run_streamable_http_async(settings: Settings) -> None:
    """Serve the Streamable HTTP gateway with uvicorn."""
    import uvicorn

    from ollama_mcp.server.starlette import create_starlette_app

    config = uvicorn.Config(
        create_starlette_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    logger.info("Ollama MCP server listening on http://%s:%d/mcp", settings.host, settings.port)
    await uvicorn.Server(config).serve()


def main() -> int:
    try:
        settings = load_settings()
    except ConfigError as exc:
        configure_logging()
        logger.error("%s", exc)
        return 1

    configure_logging(settings.log_level)
    logger.info("Using Ollama at %s", settings.ollama_base_url)

    if settings.uses_http:
        anyio.run(run_streamable_http_async, settings)
    else:
        anyio.run(run_stdio_async, settings)
    return 0


if __name__ == "__main__":
    sys.exit(main())
