"""Notification sink protocol shared by the transports."""

from typing import Protocol, runtime_checkable

from ollama_mcp.types.json_rpc import JSONRPCNotification


@runtime_checkable
class NotificationSink(Protocol):
    """Transport-specific channel for server-initiated notifications.

    One per bound transport:
    - StdoutSink (stdio): writes to the process's stdout
    - HTTPSession (HTTP): forwards to the session's standalone GET stream, if open
    """

    async def send_notification(self, notification: JSONRPCNotification) -> None:
        """Deliver a notification to the client, or drop it if there is no channel."""
        ...
