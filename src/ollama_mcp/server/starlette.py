"""Starlette adapter - thin wrapper around StreamableHTTPGateway.

This is the only module with a Starlette dependency. It converts HTTP
requests to gateway calls and gateway results to HTTP responses.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from functools import partial
from typing import Any

from sse_starlette import EventSourceResponse
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from ollama_mcp.config import Settings
from ollama_mcp.exceptions import InvalidSession, StreamConflict
from ollama_mcp.server.protocol import create_protocol_session
from ollama_mcp.server.streamable_http import (
    MCP_SESSION_ID_HEADER,
    AcceptedResponse,
    JSONResult,
    SessionFactory,
    StreamableHTTPGateway,
)
from ollama_mcp.server.transport_security import TransportSecurityMiddleware, is_json_content_type
from ollama_mcp.types.json_rpc import GATEWAY_ERROR, INVALID_SESSION, dump_message, error_response

logger = logging.getLogger(__name__)

MCP_PATH = "/mcp"
HEALTH_PATH = "/healthz"

Endpoint = Callable[[Request], Awaitable[Response]]


def _rpc_error(code: int, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(dump_message(error_response(code, message)), status_code=status_code)


def _internal_error() -> JSONResponse:
    return _rpc_error(GATEWAY_ERROR, "Internal server error", 500)


def _guarded(endpoint: Endpoint) -> Endpoint:
    """Answer any unexpected exception with a 500 JSON-RPC error instead of crashing."""

    async def wrapper(request: Request) -> Response:
        try:
            return await endpoint(request)
        except Exception:
            logger.exception("Error handling %s %s", request.method, request.url.path)
            return _internal_error()

    return wrapper


def create_starlette_app(
    settings: Settings,
    *,
    session_factory: SessionFactory | None = None,
) -> Starlette:
    """Create the HTTP app serving MCP at ``/mcp`` and a liveness check at ``/healthz``.

    Usage:
        app = create_starlette_app(load_settings())
        uvicorn.run(app, host="0.0.0.0", port=8080)

    Live sessions are closed when the app shuts down.
    """
    gateway = StreamableHTTPGateway(session_factory or partial(create_protocol_session, settings))
    security = TransportSecurityMiddleware(settings.transport_security)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info("Streamable HTTP gateway started")
        try:
            yield
        finally:
            await app.state.gateway.aclose()
            logger.info("Streamable HTTP gateway stopped")

    async def handle_post(request: Request) -> Response:
        if error := await security.validate_request(request):
            return error
        gateway: StreamableHTTPGateway = request.app.state.gateway
        body = await request.body()
        json_content = is_json_content_type(request.headers.get("content-type"))

        try:
            result = await gateway.handle_post(
                request.headers.get(MCP_SESSION_ID_HEADER), body, json_content=json_content
            )
        except InvalidSession:
            return _rpc_error(INVALID_SESSION, "Bad Request: No valid session ID provided", 400)

        match result:
            case AcceptedResponse(session_id=sid):
                return Response(status_code=202, headers={MCP_SESSION_ID_HEADER: sid})

            case JSONResult(body=response_body, session_id=sid, status_code=status_code):
                headers = {MCP_SESSION_ID_HEADER: sid} if sid else None
                return JSONResponse(dump_message(response_body), status_code=status_code, headers=headers)

        return _internal_error()  # unreachable but satisfies type checker

    async def handle_get(request: Request) -> Response:
        if error := await security.validate_request(request):
            return error
        gateway: StreamableHTTPGateway = request.app.state.gateway

        if "text/event-stream" not in request.headers.get("accept", ""):
            return PlainTextResponse("Not Acceptable: Client must accept text/event-stream", status_code=406)

        try:
            session, stream = gateway.open_stream(request.headers.get(MCP_SESSION_ID_HEADER))
        except InvalidSession:
            return PlainTextResponse("Invalid or missing session ID", status_code=400)
        except StreamConflict:
            return PlainTextResponse("Conflict: Only one notification stream is allowed per session", status_code=409)

        async def events() -> AsyncIterator[dict[str, Any]]:
            try:
                async with stream:
                    async for notification in stream:
                        data = notification.model_dump_json(by_alias=True, exclude_none=True)
                        yield {"event": "message", "data": data}
            finally:
                session.close_stream()

        return EventSourceResponse(events(), headers={MCP_SESSION_ID_HEADER: session.session_id})

    async def handle_delete(request: Request) -> Response:
        if error := await security.validate_request(request):
            return error
        gateway: StreamableHTTPGateway = request.app.state.gateway

        try:
            await gateway.handle_delete(request.headers.get(MCP_SESSION_ID_HEADER))
        except InvalidSession:
            return PlainTextResponse("Invalid or missing session ID", status_code=400)
        return Response(status_code=200)

    async def handle_health(request: Request) -> Response:
        return JSONResponse({"status": "ok"})

    app = Starlette(
        lifespan=lifespan,
        routes=[
            Route(MCP_PATH, _guarded(handle_post), methods=["POST"]),
            Route(MCP_PATH, _guarded(handle_get), methods=["GET"]),
            Route(MCP_PATH, _guarded(handle_delete), methods=["DELETE"]),
            Route(HEALTH_PATH, handle_health, methods=["GET"]),
        ],
    )
    app.state.gateway = gateway
    return app
