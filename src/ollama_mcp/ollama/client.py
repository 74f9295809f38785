"""Async client for the Ollama HTTP API."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

import httpx
from pydantic import TypeAdapter

from ollama_mcp.exceptions import BackendUnavailable
from ollama_mcp.ollama.types import ChatMessage, ChatResponse, OllamaModel
from ollama_mcp.shared._httpx_utils import OllamaHttpClientFactory, create_ollama_http_client

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"

_models_adapter: TypeAdapter[list[OllamaModel]] = TypeAdapter(list[OllamaModel])


class OllamaBackend(Protocol):
    """The operations the tool registry needs from a backend."""

    async def list_models(self) -> list[OllamaModel]: ...

    async def chat(self, model: str, messages: Sequence[ChatMessage]) -> ChatResponse: ...

    async def generate(self, model: str, prompt: str) -> str: ...

    async def pull_model(self, model: str) -> None: ...

    async def delete_model(self, model: str) -> None: ...


def _describe(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


class OllamaClient:
    """Typed mapping of the five Ollama operations onto HTTP calls.

    The client holds no connection state: every operation opens a short-lived
    ``httpx.AsyncClient`` from ``http_client_factory``. Timeouts and retries are
    explicit and off by default.

    Every failure (connection error, non-2xx status, undecodable body) is raised
    as ``BackendUnavailable`` with a message of the form
    ``Failed to <action>: <cause>``.

    Args:
        base_url: Root URL of the Ollama server.
        timeout: Per-request timeout in seconds, or None for no limit.
        retries: Connection retries performed by the transport.
        http_client_factory: Factory for the underlying httpx client.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float | None = None,
        retries: int = 0,
        http_client_factory: OllamaHttpClientFactory = create_ollama_http_client,
    ) -> None:
        if retries < 0:
            raise ValueError("retries must be >= 0")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retries = retries
        self._http_client_factory = http_client_factory

    async def list_models(self) -> list[OllamaModel]:
        data = await self._request_json("GET", "/api/tags", action="list models")
        try:
            return _models_adapter.validate_python(data.get("models") or [])
        except ValueError as exc:
            raise BackendUnavailable(f"Failed to list models: {_describe(exc)}") from exc

    async def chat(self, model: str, messages: Sequence[ChatMessage]) -> ChatResponse:
        payload = {
            "model": model,
            "messages": [message.model_dump() for message in messages],
            "stream": False,
        }
        data = await self._request_json("POST", "/api/chat", action="chat with model", json=payload)
        try:
            return ChatResponse.model_validate(data)
        except ValueError as exc:
            raise BackendUnavailable(f"Failed to chat with model: {_describe(exc)}") from exc

    async def generate(self, model: str, prompt: str) -> str:
        payload = {"model": model, "prompt": prompt, "stream": False}
        data = await self._request_json("POST", "/api/generate", action="generate response", json=payload)
        response = data.get("response")
        if not isinstance(response, str):
            raise BackendUnavailable("Failed to generate response: missing 'response' field")
        return response

    async def pull_model(self, model: str) -> None:
        """Download ``model`` and return once the pull has finished.

        The request asks for a single non-streamed reply, so the call waits for
        the whole download rather than returning when Ollama starts streaming
        progress. A pull that fails part-way is then reported as an HTTP error.
        """
        await self._request("POST", "/api/pull", action="pull model", json={"name": model, "stream": False})

    async def delete_model(self, model: str) -> None:
        await self._request("DELETE", "/api/delete", action="delete model", json={"name": model})

    async def _request(self, method: str, path: str, *, action: str, json: Any = None) -> httpx.Response:
        logger.debug("Ollama %s %s", method, path)
        try:
            async with self._http_client_factory(
                base_url=self.base_url,
                timeout=self.timeout,
                retries=self.retries,
            ) as client:
                response = await client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            raise BackendUnavailable(f"Failed to {action}: {_describe(exc)}") from exc

        if response.is_error:
            raise BackendUnavailable(f"Failed to {action}: HTTP error! status: {response.status_code}")
        return response

    async def _request_json(self, method: str, path: str, *, action: str, json: Any = None) -> dict[str, Any]:
        response = await self._request(method, path, action=action, json=json)
        try:
            data = response.json()
        except ValueError as exc:
            raise BackendUnavailable(f"Failed to {action}: {_describe(exc)}") from exc
        if not isinstance(data, dict):
            raise BackendUnavailable(f"Failed to {action}: unexpected response body")
        return data
