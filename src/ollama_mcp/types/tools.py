"""MCP Tools Types - Types for tool listing and invocation."""

from typing import Annotated, Any, Literal

from pydantic import Field

from ollama_mcp.types.base import MCPModel, Meta, RequestParams, Result
from ollama_mcp.types.json_rpc import RequestBase


class JsonSchema(MCPModel):
    """A JSON Schema object."""

    type: Literal["object"] = "object"
    properties: dict[str, Any] | None = None
    required: list[str] | None = None


class Tool(MCPModel):
    """Definition of a tool the server provides."""

    name: str
    input_schema: Annotated[JsonSchema, Field(alias="inputSchema")]
    description: str | None = None
    title: str | None = None


class TextContent(MCPModel):
    """Text provided to or from an LLM."""

    type: Literal["text"] = "text"
    text: str


class ListToolsRequestParams(RequestParams):
    """Parameters for tools/list request."""

    cursor: str | None = None


# noinspection PyTypeChecker
class ListToolsRequest(RequestBase[Literal["tools/list"], ListToolsRequestParams | None]):
    """Request to list available tools."""

    method: Literal["tools/list"] = "tools/list"
    params: ListToolsRequestParams | None = None


class ListToolsResult(Result[Meta]):
    """Server's response to a tools/list request."""

    tools: list[Tool]
    next_cursor: Annotated[str | None, Field(alias="nextCursor")] = None


class CallToolRequestParams(RequestParams):
    """Parameters for tools/call request."""

    name: str
    arguments: dict[str, Any] | None = None


class CallToolRequest(RequestBase[Literal["tools/call"], CallToolRequestParams]):
    """Request to call a tool."""

    method: Literal["tools/call"] = "tools/call"


class CallToolResult(Result[Meta]):
    """Server's response to a tools/call request.

    ``is_error`` stays unset on success so it is omitted from the wire.
    """

    content: list[TextContent]
    is_error: Annotated[bool | None, Field(alias="isError")] = None
