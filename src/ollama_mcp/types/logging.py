"""MCP Logging Types - Level control and log message notifications."""

from typing import Any, Literal

from ollama_mcp.types.base import LoggingLevel, NotificationParams, RequestParams
from ollama_mcp.types.json_rpc import RequestBase


class SetLevelRequestParams(RequestParams):
    """Parameters for logging/setLevel request."""

    level: LoggingLevel


class SetLevelRequest(RequestBase[Literal["logging/setLevel"], SetLevelRequestParams]):
    """Request from the client to adjust the level of log messages it receives."""

    method: Literal["logging/setLevel"] = "logging/setLevel"


class LoggingMessageNotificationParams(NotificationParams):
    """Parameters for notifications/message."""

    level: LoggingLevel
    logger: str | None = None
    data: Any

