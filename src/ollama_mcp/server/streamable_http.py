"""Streamable HTTP gateway - framework-agnostic session multiplexing.

Resolves each request to a live ``HTTPSession``, creates sessions on the
initialize handshake and tears them down on DELETE or shutdown. Nothing here
depends on Starlette; ``ollama_mcp.server.starlette`` maps the results onto
HTTP responses.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from anyio.streams.memory import MemoryObjectReceiveStream

from ollama_mcp.exceptions import InvalidSession, MalformedMessage
from ollama_mcp.server.protocol import ProtocolSession
from ollama_mcp.server.session_store import HTTPSession, SessionStore
from ollama_mcp.types.initialize import InitializeRequest
from ollama_mcp.types.json_rpc import (
    INVALID_REQUEST,
    JSONRPCErrorResponse,
    JSONRPCNotification,
    JSONRPCResponse,
    error_response,
)
from ollama_mcp.types.requests import read_client_message

logger = logging.getLogger(__name__)

MCP_SESSION_ID_HEADER = "mcp-session-id"

SessionFactory = Callable[[], ProtocolSession]


# --- Post result types ---


@dataclass
class AcceptedResponse:
    """Notification or client response. Ack with 202."""

    session_id: str


@dataclass
class JSONResult:
    """A JSON-RPC response to return as the JSON body."""

    body: JSONRPCResponse
    session_id: str | None
    status_code: int = 200


PostResult = AcceptedResponse | JSONResult


class StreamableHTTPGateway:
    """Maps HTTP requests onto protocol sessions.

    Each gateway owns its ``SessionStore``, so several gateways can run side
    by side. ``session_factory`` builds a fresh ``ProtocolSession`` for every
    handshake.
    """

    def __init__(self, session_factory: SessionFactory, *, store: SessionStore | None = None) -> None:
        self._session_factory = session_factory
        self.store = store if store is not None else SessionStore()

    async def handle_post(self, session_id: str | None, body: bytes, *, json_content: bool = True) -> PostResult:
        """Handle a POST request body.

        A known ``session_id`` is reused, even when the body is an initialize
        request. Without a ``session_id`` only an initialize request is
        accepted and it creates a new session.

        ``json_content`` is False when the request did not declare a JSON
        Content-Type; a resolved session answers it with ``INVALID_REQUEST``.

        Raises:
            InvalidSession: the id is unknown or closed, or the id is absent
                and the body is not a JSON initialize request.
        """
        if session_id:
            session = self.store.get(session_id)
            if session is None:
                raise InvalidSession(session_id)
            if not json_content:
                response = error_response(INVALID_REQUEST, "Invalid Request: Content-Type must be application/json")
                return JSONResult(body=response, session_id=session.session_id, status_code=400)
            return await self._dispatch(session, body)

        if not json_content:
            raise InvalidSession(None)
        try:
            message = read_client_message(body)
        except MalformedMessage:
            raise InvalidSession(None) from None
        if not isinstance(message, InitializeRequest):
            raise InvalidSession(None)
        return await self._handshake(message)

    def open_stream(self, session_id: str | None) -> tuple[HTTPSession, MemoryObjectReceiveStream[JSONRPCNotification]]:
        """Open the standalone notification stream of a session.

        The caller must call ``session.close_stream()`` when its client goes away.

        Raises:
            InvalidSession: the id is absent, unknown or closed.
            StreamConflict: the session already has an open stream.
        """
        session = self._require(session_id)
        return session, session.open_stream()

    async def handle_delete(self, session_id: str | None) -> None:
        """Terminate a session.

        Raises:
            InvalidSession: the id is absent, unknown or closed.
        """
        session = self._require(session_id)
        logger.info("Terminating session %s", session.session_id)
        await session.close()

    async def aclose(self) -> None:
        """Close every live session."""
        await self.store.close_all()

    def _require(self, session_id: str | None) -> HTTPSession:
        session = self.store.get(session_id) if session_id else None
        if session is None:
            raise InvalidSession(session_id)
        return session

    async def _handshake(self, request: InitializeRequest) -> JSONResult:
        session = HTTPSession(self._session_factory())
        response = await session.protocol.handle_message(request)
        if isinstance(response, JSONRPCErrorResponse):
            await session.close()
            return JSONResult(body=response, session_id=None, status_code=400)

        await self.store.insert(session)
        logger.info("Created session %s", session.session_id)
        return JSONResult(body=response, session_id=session.session_id)

    async def _dispatch(self, session: HTTPSession, body: bytes) -> PostResult:
        try:
            message = read_client_message(body)
        except MalformedMessage as exc:
            status_code = 400 if exc.response.id is None else 200
            return JSONResult(body=exc.response, session_id=session.session_id, status_code=status_code)

        response = await session.protocol.handle_message(message)
        if response is None:
            return AcceptedResponse(session_id=session.session_id)

        status_code = 200
        if isinstance(message, InitializeRequest) and isinstance(response, JSONRPCErrorResponse):
            # Repeated handshake on an existing session.
            status_code = 400
        return JSONResult(body=response, session_id=session.session_id, status_code=status_code)
