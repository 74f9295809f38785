from ollama_mcp.types.base import (
    LATEST_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    EmptyResult,
    Implementation,
    ServerCapabilities,
)
from ollama_mcp.types.initialize import InitializeRequest, InitializeResult
from ollama_mcp.types.json_rpc import (
    ErrorData,
    JSONRPCErrorResponse,
    JSONRPCMessage,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    JSONRPCResultResponse,
)
from ollama_mcp.types.requests import ClientMessage, PingRequest, read_client_message
from ollama_mcp.types.tools import (
    CallToolRequest,
    CallToolResult,
    JsonSchema,
    ListToolsRequest,
    ListToolsResult,
    TextContent,
    Tool,
)

__all__ = [
    "LATEST_PROTOCOL_VERSION",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "CallToolRequest",
    "CallToolResult",
    "ClientMessage",
    "EmptyResult",
    "ErrorData",
    "Implementation",
    "InitializeRequest",
    "InitializeResult",
    "JSONRPCErrorResponse",
    "JSONRPCMessage",
    "JSONRPCNotification",
    "JSONRPCRequest",
    "JSONRPCResponse",
    "JSONRPCResultResponse",
    "JsonSchema",
    "ListToolsRequest",
    "ListToolsResult",
    "PingRequest",
    "ServerCapabilities",
    "TextContent",
    "Tool",
    "read_client_message",
]
