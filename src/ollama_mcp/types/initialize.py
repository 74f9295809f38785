"""MCP Initialize Types - Types for the initialize handshake."""

from typing import Annotated, Literal

from pydantic import Field

from ollama_mcp.types.base import ClientCapabilities, Implementation, Meta, RequestParams, Result, ServerCapabilities
from ollama_mcp.types.json_rpc import RequestBase


class InitializeRequestParams(RequestParams):
    """Parameters for the initialize request."""

    protocol_version: Annotated[str, Field(alias="protocolVersion")]
    capabilities: ClientCapabilities
    client_info: Annotated[Implementation, Field(alias="clientInfo")]


class InitializeRequest(RequestBase[Literal["initialize"], InitializeRequestParams]):
    """Sent from client to server when first connecting."""

    method: Literal["initialize"] = "initialize"
    params: InitializeRequestParams


class InitializeResult(Result[Meta]):
    """Server's response to an initialize request."""

    protocol_version: Annotated[str, Field(alias="protocolVersion")]
    capabilities: ServerCapabilities
    server_info: Annotated[Implementation, Field(alias="serverInfo")]
    instructions: str | None = None

