"""Exceptions raised by the Ollama MCP server."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ollama_mcp.types.json_rpc import JSONRPCErrorResponse


class OllamaMCPError(Exception):
    """Base error for the Ollama MCP server."""


class ConfigError(OllamaMCPError):
    """Invalid configuration detected at startup. Fatal."""


class BackendUnavailable(OllamaMCPError):
    """The Ollama API could not be reached or answered with a non-success status."""


class UnknownTool(OllamaMCPError):
    """A tool invocation named a tool that is not in the catalog."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ToolArgumentError(OllamaMCPError):
    """A tool invocation is missing a required argument."""


class InvalidSession(OllamaMCPError):
    """A non-handshake HTTP request carried a missing, unknown or closed session ID."""

    def __init__(self, session_id: str | None = None):
        super().__init__(f"Invalid or missing session ID: {session_id!r}")
        self.session_id = session_id


class StreamConflict(OllamaMCPError):
    """A session already has a standalone notification stream open."""


class MalformedMessage(OllamaMCPError):
    """An inbound message could not be parsed. ``response`` is the JSON-RPC error to send back."""

    def __init__(self, response: JSONRPCErrorResponse):
        super().__init__(response.error.message)
        self.response = response
