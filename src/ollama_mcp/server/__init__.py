from ollama_mcp.server.protocol import ProtocolSession, create_protocol_session
from ollama_mcp.server.session_store import HTTPSession, SessionState, SessionStore
from ollama_mcp.server.stdio import StdioGateway, stdio_server
from ollama_mcp.server.streamable_http import MCP_SESSION_ID_HEADER, StreamableHTTPGateway

__all__ = [
    "MCP_SESSION_ID_HEADER",
    "HTTPSession",
    "ProtocolSession",
    "SessionState",
    "SessionStore",
    "StdioGateway",
    "StreamableHTTPGateway",
    "create_protocol_session",
    "stdio_server",
]
