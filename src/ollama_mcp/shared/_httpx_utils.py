"""Utilities for creating standardized httpx AsyncClient instances."""

from typing import Any, Protocol

import httpx

__all__ = ["OllamaHttpClientFactory", "create_ollama_http_client"]


class OllamaHttpClientFactory(Protocol):
    def __call__(self, **kwargs: Any) -> httpx.AsyncClient: ...


def create_ollama_http_client(*, timeout: float | None = None, retries: int = 0, **kwargs: Any) -> httpx.AsyncClient:
    """Create an httpx AsyncClient for talking to the Ollama API.

    Unlike httpx itself, the client has no timeout unless one is given:
    model pulls and long generations legitimately take minutes.

    Args:
        timeout: Seconds before any phase of a request times out, or None for no limit.
        retries: Number of connection retries performed by the transport. Only
            connection failures are retried, never requests that reached the server.
        Any other keyword argument supported by httpx.AsyncClient (e.g. base_url, headers).

    Returns:
        Configured httpx.AsyncClient instance. It must be used as a context
        manager to ensure proper cleanup of connections.

    Examples:
        async with create_ollama_http_client(base_url="http://localhost:11434") as client:
            response = await client.get("/api/tags")

        async with create_ollama_http_client(timeout=120.0, retries=3) as client:
            response = await client.post("/api/generate", json=payload)
    """
    default_kwargs: dict[str, Any] = {
        "follow_redirects": True,
        "timeout": httpx.Timeout(timeout),
    }
    if "transport" not in kwargs:
        default_kwargs["transport"] = httpx.AsyncHTTPTransport(retries=retries)
    default_kwargs.update(kwargs)
    return httpx.AsyncClient(**default_kwargs)
