"""Protocol session - one logical MCP conversation, independent of transport.

A ProtocolSession answers the five client requests it knows (initialize, ping,
tools/list, tools/call, logging/setLevel) from one ``ToolRegistry`` and
answers anything else with ``METHOD_NOT_FOUND``. Tool failures never escape as protocol errors: they come
back as ``CallToolResult`` objects with ``isError`` set.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final

from pydantic import BaseModel

from ollama_mcp import __version__
from ollama_mcp.ollama.client import OllamaClient
from ollama_mcp.server.sink import NotificationSink
from ollama_mcp.tools.registry import ToolRegistry
from ollama_mcp.types.base import (
    LATEST_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    EmptyResult,
    Implementation,
    LoggingLevel,
    ServerCapabilities,
)
from ollama_mcp.types.initialize import InitializeRequest, InitializeResult
from ollama_mcp.types.json_rpc import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    JSONRPCNotification,
    JSONRPCResponse,
    JSONRPCResultResponse,
    RequestBase,
    error_response,
)
from ollama_mcp.types.logging import LoggingMessageNotificationParams, SetLevelRequest
from ollama_mcp.types.requests import ClientMessage, PingRequest
from ollama_mcp.types.tools import (
    CallToolRequest,
    CallToolResult,
    ListToolsRequest,
    ListToolsResult,
    TextContent,
    Tool,
)

if TYPE_CHECKING:
    from ollama_mcp.config import Settings

logger = logging.getLogger(__name__)

SERVER_NAME: Final[str] = "ollama-mcp-server"

SERVER_CAPABILITIES: Final = ServerCapabilities(tools={}, logging={})

_LEVEL_ORDER: Final[tuple[str, ...]] = (
    "debug",
    "info",
    "notice",
    "warning",
    "error",
    "critical",
    "alert",
    "emergency",
)


def _error_result(message: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(text=f"Error: {message}")], is_error=True)


class ProtocolSession:
    """Transport-agnostic state of one client conversation.

    A session is bound to at most one transport at a time through ``bind``;
    the transport delivers every inbound message to ``handle_message`` and
    writes back whatever response it returns.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        name: str = SERVER_NAME,
        version: str = __version__,
        instructions: str | None = None,
    ) -> None:
        self.registry = registry
        self.instructions = instructions
        self.client_info: Implementation | None = None
        self.protocol_version: str | None = None
        self.initialized = False
        self._log_level: LoggingLevel = "info"
        self._sink: NotificationSink | None = None
        self._server_info = Implementation(name=name, version=version)

    @property
    def server_info(self) -> Implementation:
        return self._server_info

    def bind(self, sink: NotificationSink) -> None:
        """Attach the transport that carries server-initiated notifications."""
        if self._sink is not None:
            raise RuntimeError("ProtocolSession is already bound to a transport")
        self._sink = sink

    def unbind(self) -> None:
        self._sink = None

    def set_log_level(self, level: LoggingLevel) -> None:
        self._log_level = level

    @property
    def is_bound(self) -> bool:
        return self._sink is not None

    async def handle_message(self, message: ClientMessage) -> JSONRPCResponse | None:
        """Process one inbound message.

        Returns the response for requests, None for notifications and for
        responses to server-initiated requests.
        """
        match message:
            case InitializeRequest():
                return self._handle_initialize(message)
            case RequestBase():
                return await self._handle_request(message)
            case JSONRPCNotification(method="notifications/initialized"):
                self.initialized = True
            case JSONRPCNotification():
                logger.debug("Ignoring notification %s", message.method)
            case _:
                # Responses from the client are never solicited by this server.
                logger.debug("Ignoring client response %r", message)
        return None

    def list_tools(self) -> list[Tool]:
        return self.registry.list_tools()

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> CallToolResult:
        """Invoke a tool. Never raises: every failure becomes an error result."""
        try:
            result = await self.registry.invoke(name, arguments)
        except Exception as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            await self.send_log_message("error", f"Tool {name} failed: {exc}")
            return _error_result(str(exc))
        await self.send_log_message("debug", f"Tool {name} completed")
        return result

    async def send_notification(self, notification: JSONRPCNotification) -> None:
        if self._sink is None:
            logger.debug("No transport bound, dropping %s", notification.method)
            return
        await self._sink.send_notification(notification)

    async def send_log_message(self, level: LoggingLevel, data: Any, logger_name: str = SERVER_NAME) -> None:
        """Send a ``notifications/message`` if ``level`` passes the client's threshold."""
        if _LEVEL_ORDER.index(level) < _LEVEL_ORDER.index(self._log_level):
            return
        params = LoggingMessageNotificationParams(level=level, logger=logger_name, data=data)
        payload = params.model_dump(by_alias=True, exclude_none=True)
        await self.send_notification(JSONRPCNotification(method="notifications/message", params=payload))

    def _handle_initialize(self, request: InitializeRequest) -> JSONRPCResponse:
        if self.client_info is not None:
            return error_response(INVALID_REQUEST, "Invalid Request: Server already initialized", request.id)

        params = request.params
        requested = params.protocol_version
        self.protocol_version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION
        self.client_info = params.client_info
        logger.info("Initialized session for client %s %s", params.client_info.name, params.client_info.version)

        result = InitializeResult(
            protocol_version=self.protocol_version,
            capabilities=SERVER_CAPABILITIES,
            server_info=self.server_info,
            instructions=self.instructions,
        )
        return JSONRPCResultResponse(id=request.id, result=result.model_dump(by_alias=True, exclude_none=True))

    async def _handle_request(self, request: RequestBase[Any, Any]) -> JSONRPCResponse:
        try:
            result = await self._respond(request)
        except Exception:
            logger.exception("Error handling %s", request.method)
            return error_response(INTERNAL_ERROR, "Internal error", request.id)
        if result is None:
            return error_response(METHOD_NOT_FOUND, f"Method not found: {request.method}", request.id)
        return JSONRPCResultResponse(id=request.id, result=result.model_dump(by_alias=True, exclude_none=True))

    async def _respond(self, request: RequestBase[Any, Any]) -> BaseModel | None:
        match request:
            case PingRequest():
                return EmptyResult()
            case ListToolsRequest():
                return ListToolsResult(tools=self.list_tools())
            case CallToolRequest(params=params):
                return await self.call_tool(params.name, params.arguments)
            case SetLevelRequest(params=params):
                self.set_log_level(params.level)
                return EmptyResult()
        return None


def create_protocol_session(settings: Settings) -> ProtocolSession:
    """Build a session with its own backend client and tool registry."""
    client = OllamaClient(
        settings.ollama_base_url,
        timeout=settings.ollama_timeout,
        retries=settings.ollama_retries,
    )
    return ProtocolSession(ToolRegistry(client))
