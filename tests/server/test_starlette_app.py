"""End-to-end tests of the HTTP app, exercised via httpx's ASGI transport.

The gateway is created with the app, so no lifespan is needed to serve
requests; ``test_lifespan_closes_sessions`` drives the lifespan explicitly.
"""

import json
from collections.abc import AsyncIterator
from typing import Any

import anyio
import httpx
import pytest
from starlette.applications import Starlette

from ollama_mcp.config import Settings
from ollama_mcp.exceptions import BackendUnavailable
from ollama_mcp.server.protocol import ProtocolSession
from ollama_mcp.server.starlette import create_starlette_app
from ollama_mcp.server.streamable_http import MCP_SESSION_ID_HEADER, StreamableHTTPGateway
from ollama_mcp.tools import ToolRegistry

pytestmark = pytest.mark.anyio

JSON_HEADERS = {"content-type": "application/json", "accept": "application/json, text/event-stream"}

INVALID_SESSION_BODY = {
    "jsonrpc": "2.0",
    "error": {"code": -32000, "message": "Bad Request: No valid session ID provided"},
    "id": None,
}


def _request(method: str, params: dict[str, Any] | None = None, request_id: int | None = 1) -> dict[str, Any]:
    payload: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
    if params is not None:
        payload["params"] = params
    if request_id is not None:
        payload["id"] = request_id
    return payload


def _init_request() -> dict[str, Any]:
    return _request(
        "initialize",
        {"protocolVersion": "2025-06-18", "capabilities": {}, "clientInfo": {"name": "test-client", "version": "1.0"}},
    )


def _call_tool(name: str, arguments: dict[str, Any], request_id: int = 2) -> dict[str, Any]:
    return _request("tools/call", {"name": name, "arguments": arguments}, request_id)


def _make_app(backend_factory, **settings: Any) -> Starlette:
    return create_starlette_app(
        Settings(**settings),
        session_factory=lambda: ProtocolSession(ToolRegistry(backend_factory())),
    )


@pytest.fixture
def app(stub_backend_cls) -> Starlette:
    return _make_app(stub_backend_cls)


@pytest.fixture
async def client(app: Starlette) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client


async def _initialize(client: httpx.AsyncClient) -> str:
    response = await client.post("/mcp", json=_init_request(), headers=JSON_HEADERS)
    assert response.status_code == 200
    return response.headers[MCP_SESSION_ID_HEADER]


def _headers(session_id: str) -> dict[str, str]:
    return {**JSON_HEADERS, MCP_SESSION_ID_HEADER: session_id}


async def test_healthz_without_sessions(client: httpx.AsyncClient):
    response = await client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_initialize_returns_session_id(client: httpx.AsyncClient):
    response = await client.post("/mcp", json=_init_request(), headers=JSON_HEADERS)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    body = response.json()
    assert body["id"] == 1
    assert body["result"]["serverInfo"]["name"] == "ollama-mcp-server"
    assert body["result"]["capabilities"]["tools"] == {}
    assert len(response.headers[MCP_SESSION_ID_HEADER]) == 32


async def test_session_ids_are_distinct(client: httpx.AsyncClient):
    ids = [await _initialize(client) for _ in range(3)]
    assert len(set(ids)) == 3


async def test_session_is_reused(client: httpx.AsyncClient):
    """The stub backend's generate counter advances only within one session."""
    first = await _initialize(client)
    second = await _initialize(client)
    generate = {"model": "llama2", "prompt": "count"}

    texts = []
    for session_id in (first, first, second, first):
        response = await client.post("/mcp", json=_call_tool("ollama_generate", generate), headers=_headers(session_id))
        assert response.status_code == 200
        assert response.headers[MCP_SESSION_ID_HEADER] == session_id
        texts.append(response.json()["result"]["content"][0]["text"])

    assert texts == ["1", "2", "1", "3"]


async def test_tools_list_returns_five_tools(client: httpx.AsyncClient):
    session_id = await _initialize(client)

    response = await client.post("/mcp", json=_request("tools/list", request_id=2), headers=_headers(session_id))

    assert response.status_code == 200
    assert [tool["name"] for tool in response.json()["result"]["tools"]] == [
        "ollama_list_models",
        "ollama_chat",
        "ollama_generate",
        "ollama_pull_model",
        "ollama_delete_model",
    ]


async def test_list_models_tool(client: httpx.AsyncClient):
    session_id = await _initialize(client)

    response = await client.post("/mcp", json=_call_tool("ollama_list_models", {}), headers=_headers(session_id))

    result = response.json()["result"]
    assert "isError" not in result
    text = result["content"][0]["text"]
    assert json.loads(text) == [{"name": "llama2", "size": 3826793677}]
    assert text == json.dumps([{"name": "llama2", "size": 3826793677}], indent=2)


async def test_unknown_tool_is_not_a_transport_fault(client: httpx.AsyncClient):
    session_id = await _initialize(client)

    response = await client.post("/mcp", json=_call_tool("ollama_fly", {}), headers=_headers(session_id))

    assert response.status_code == 200
    assert response.json()["result"] == {
        "content": [{"type": "text", "text": "Error: Unknown tool: ollama_fly"}],
        "isError": True,
    }


async def test_backend_network_error_becomes_error_result(stub_backend_cls):
    def backend():
        return stub_backend_cls(error=BackendUnavailable("Failed to chat with model: Connection refused"))

    app = _make_app(backend)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        session_id = await _initialize(client)
        arguments = {"model": "llama2", "messages": [{"role": "user", "content": "Hi"}]}
        response = await client.post("/mcp", json=_call_tool("ollama_chat", arguments), headers=_headers(session_id))

    assert response.status_code == 200
    assert response.json()["result"] == {
        "content": [{"type": "text", "text": "Error: Failed to chat with model: Connection refused"}],
        "isError": True,
    }


@pytest.mark.parametrize("session_id", [None, "deadbeef"])
async def test_post_without_valid_session_rejected(client: httpx.AsyncClient, session_id: str | None):
    headers = JSON_HEADERS if session_id is None else _headers(session_id)

    response = await client.post("/mcp", json=_request("tools/list"), headers=headers)

    assert response.status_code == 400
    assert response.json() == INVALID_SESSION_BODY
    assert MCP_SESSION_ID_HEADER not in response.headers


async def test_initialize_with_unknown_session_rejected(client: httpx.AsyncClient):
    response = await client.post("/mcp", json=_init_request(), headers=_headers("deadbeef"))
    assert response.status_code == 400
    assert response.json() == INVALID_SESSION_BODY


async def test_delete_then_post_is_rejected(client: httpx.AsyncClient):
    session_id = await _initialize(client)

    deleted = await client.delete("/mcp", headers={MCP_SESSION_ID_HEADER: session_id})
    assert deleted.status_code == 200

    response = await client.post("/mcp", json=_request("tools/list"), headers=_headers(session_id))
    assert response.status_code == 400
    assert response.json() == INVALID_SESSION_BODY


async def test_repeated_initialize_on_session(client: httpx.AsyncClient):
    session_id = await _initialize(client)

    response = await client.post("/mcp", json=_init_request(), headers=_headers(session_id))

    assert response.status_code == 400
    assert response.json()["error"] == {"code": -32600, "message": "Invalid Request: Server already initialized"}


async def test_notification_returns_202(client: httpx.AsyncClient):
    session_id = await _initialize(client)

    response = await client.post(
        "/mcp", json=_request("notifications/initialized", request_id=None), headers=_headers(session_id)
    )

    assert response.status_code == 202
    assert response.content == b""


async def test_parse_error_on_live_session(client: httpx.AsyncClient):
    session_id = await _initialize(client)

    response = await client.post("/mcp", content=b"{oops", headers=_headers(session_id))

    assert response.status_code == 400
    assert response.json() == {"jsonrpc": "2.0", "error": {"code": -32700, "message": "Parse error"}, "id": None}


@pytest.mark.parametrize("session_id", [None, "deadbeef"])
@pytest.mark.parametrize("method", ["GET", "DELETE"])
async def test_get_and_delete_without_valid_session(client: httpx.AsyncClient, method: str, session_id: str | None):
    headers = {"accept": "text/event-stream"}
    if session_id is not None:
        headers[MCP_SESSION_ID_HEADER] = session_id

    response = await client.request(method, "/mcp", headers=headers)

    assert response.status_code == 400
    assert response.text == "Invalid or missing session ID"


async def test_get_requires_event_stream_accept(client: httpx.AsyncClient):
    session_id = await _initialize(client)
    response = await client.get("/mcp", headers={"accept": "application/json", MCP_SESSION_ID_HEADER: session_id})
    assert response.status_code == 406


async def test_second_get_stream_conflicts(app: Starlette, client: httpx.AsyncClient):
    session_id = await _initialize(client)
    gateway: StreamableHTTPGateway = app.state.gateway
    session, stream = gateway.open_stream(session_id)

    response = await client.get("/mcp", headers={"accept": "text/event-stream", MCP_SESSION_ID_HEADER: session_id})

    assert response.status_code == 409
    stream.close()
    session.close_stream()


async def test_get_stream_delivers_notifications(app: Starlette, client: httpx.AsyncClient):
    """Failed tool calls are logged to the session's standalone stream.

    httpx's ASGI transport buffers whole responses, so the stream is read by
    calling the ASGI app directly.
    """
    session_id = await _initialize(client)
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": "/mcp",
        "raw_path": b"/mcp",
        "root_path": "",
        "query_string": b"",
        "headers": [
            (b"host", b"test"),
            (b"accept", b"text/event-stream"),
            (MCP_SESSION_ID_HEADER.encode(), session_id.encode()),
        ],
        "client": ("127.0.0.1", 12345),
        "server": ("test", 80),
    }
    messages_send, messages_receive = anyio.create_memory_object_stream[dict[str, Any]](100)
    disconnected = anyio.Event()

    async def receive() -> dict[str, Any]:
        await disconnected.wait()
        return {"type": "http.disconnect"}

    async def send(message: dict[str, Any]) -> None:
        await messages_send.send(message)

    body = b""
    with anyio.fail_after(5):
        async with anyio.create_task_group() as tg:
            tg.start_soon(app, scope, receive, send)

            start = await messages_receive.receive()
            assert start["type"] == "http.response.start"
            assert start["status"] == 200

            session = app.state.gateway.store.get(session_id)
            assert session is not None
            assert session.has_stream

            await client.post("/mcp", json=_call_tool("ollama_fly", {}), headers=_headers(session_id))
            while b"data:" not in body or not body.endswith((b"\r\n\r\n", b"\n\n")):
                message = await messages_receive.receive()
                body += message.get("body", b"")
            disconnected.set()

    data_line = next(line for line in body.decode().splitlines() if line.startswith("data:"))
    data = json.loads(data_line.removeprefix("data:").strip())
    assert data["method"] == "notifications/message"
    assert data["params"]["level"] == "error"
    assert data["params"]["data"] == "Tool ollama_fly failed: Unknown tool: ollama_fly"
    assert not session.has_stream


@pytest.mark.parametrize("session_id", [None, "deadbeef"])
async def test_non_json_post_without_valid_session_rejected(client: httpx.AsyncClient, session_id: str | None):
    headers = {"content-type": "text/plain"}
    if session_id is not None:
        headers[MCP_SESSION_ID_HEADER] = session_id

    response = await client.post("/mcp", content=json.dumps(_request("tools/list")), headers=headers)

    assert response.status_code == 400
    assert response.json() == INVALID_SESSION_BODY


async def test_non_json_post_on_live_session(client: httpx.AsyncClient):
    session_id = await _initialize(client)
    headers = {"content-type": "text/plain", MCP_SESSION_ID_HEADER: session_id}

    response = await client.post("/mcp", content=json.dumps(_request("tools/list")), headers=headers)

    assert response.status_code == 400
    assert response.headers[MCP_SESSION_ID_HEADER] == session_id
    body = response.json()
    assert body["id"] is None
    assert body["error"]["code"] == -32600


async def test_dns_rebinding_protection(stub_backend_cls):
    app = _make_app(
        stub_backend_cls,
        enable_dns_rebinding_protection=True,
        allowed_hosts=["test"],
        allowed_origins=["http://localhost:*"],
    )
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        local = {**JSON_HEADERS, "origin": "http://localhost:3000"}
        evil = {**JSON_HEADERS, "origin": "http://evil.com"}
        allowed = await client.post("/mcp", json=_init_request(), headers=local)
        bad_origin = await client.post("/mcp", json=_init_request(), headers=evil)
        bad_host = await client.post("/mcp", json=_init_request(), headers={**JSON_HEADERS, "host": "evil.com"})
        health = await client.get("/healthz", headers={"host": "evil.com"})

    assert allowed.status_code == 200
    assert bad_origin.status_code == 403
    assert bad_host.status_code == 421
    assert health.status_code == 200


async def test_unexpected_error_returns_500(stub_backend_cls):
    def broken_factory() -> ProtocolSession:
        raise RuntimeError("factory exploded")

    app = create_starlette_app(Settings(), session_factory=broken_factory)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post("/mcp", json=_init_request(), headers=JSON_HEADERS)
        health = await client.get("/healthz")

    assert response.status_code == 500
    assert response.json() == {
        "jsonrpc": "2.0",
        "error": {"code": -32002, "message": "Internal server error"},
        "id": None,
    }
    assert health.status_code == 200


async def test_lifespan_closes_sessions(app: Starlette, client: httpx.AsyncClient):
    session_id = await _initialize(client)

    async with app.router.lifespan_context(app):
        pass

    response = await client.post("/mcp", json=_request("ping"), headers=_headers(session_id))
    assert response.status_code == 400
