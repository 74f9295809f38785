"""Tagged-union parsing of inbound client messages.

Every message a transport receives is parsed exactly once. Requests whose
``method`` names one of the known request kinds are validated into their typed
model; anything else stays a plain JSON-RPC envelope so the session can answer
with ``METHOD_NOT_FOUND``.
"""

from typing import Annotated, Literal

from pydantic import Field, TypeAdapter, ValidationError

from ollama_mcp.exceptions import MalformedMessage
from ollama_mcp.types.base import RequestParams
from ollama_mcp.types.initialize import InitializeRequest
from ollama_mcp.types.json_rpc import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    PARSE_ERROR,
    JSONRPCMessage,
    JSONRPCMessageAdapter,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    RequestBase,
    error_response,
)
from ollama_mcp.types.logging import SetLevelRequest
from ollama_mcp.types.tools import CallToolRequest, ListToolsRequest


# noinspection PyTypeChecker
class PingRequest(RequestBase[Literal["ping"], RequestParams | None]):
    """A ping, issued by either side to check that the other is still alive."""

    method: Literal["ping"] = "ping"
    params: RequestParams | None = None


ClientRequest = Annotated[
    InitializeRequest | PingRequest | ListToolsRequest | CallToolRequest | SetLevelRequest,
    Field(discriminator="method"),
]

ClientRequestAdapter: TypeAdapter[ClientRequest] = TypeAdapter(ClientRequest)

CLIENT_REQUEST_METHODS = frozenset({"initialize", "ping", "tools/list", "tools/call", "logging/setLevel"})

ClientMessage = (
    InitializeRequest
    | PingRequest
    | ListToolsRequest
    | CallToolRequest
    | SetLevelRequest
    | JSONRPCRequest
    | JSONRPCNotification
    | JSONRPCResponse
)


def classify_message(message: JSONRPCMessage) -> ClientMessage:
    """Narrow an already-validated envelope into its typed request kind.

    Raises:
        pydantic.ValidationError: if a known request kind carries invalid params.
    """
    if isinstance(message, JSONRPCRequest) and message.method in CLIENT_REQUEST_METHODS:
        return ClientRequestAdapter.validate_python(message.model_dump(by_alias=True, exclude_none=True))
    return message


def _is_json_error(exc: ValidationError) -> bool:
    return any(error["type"] == "json_invalid" for error in exc.errors())


def read_client_message(data: str | bytes | bytearray) -> ClientMessage:
    """Parse raw JSON, turning malformed input into a ready-made error response.

    Invalid JSON yields ``PARSE_ERROR`` and a malformed envelope yields
    ``INVALID_REQUEST``, both with a null id. A known request kind whose
    params fail validation yields ``INVALID_PARAMS`` carrying the request id.

    Raises:
        MalformedMessage: carrying the error response for the client.
    """
    try:
        envelope = JSONRPCMessageAdapter.validate_json(data)
    except ValidationError as exc:
        if _is_json_error(exc):
            raise MalformedMessage(error_response(PARSE_ERROR, "Parse error")) from exc
        raise MalformedMessage(error_response(INVALID_REQUEST, "Invalid Request")) from exc

    try:
        return classify_message(envelope)
    except ValidationError as exc:
        request_id = envelope.id if isinstance(envelope, JSONRPCRequest) else None
        message = f"Invalid params: {exc.error_count()} validation error(s)"
        raise MalformedMessage(error_response(INVALID_PARAMS, message, request_id)) from exc
