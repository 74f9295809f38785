"""Stdio transport.

Newline-delimited JSON-RPC over the process' stdin and stdout. One
``ProtocolSession`` lives for the whole process:

    protocol = ProtocolSession(ToolRegistry(OllamaClient()))
    anyio.run(StdioGateway(protocol).run)
"""

from __future__ import annotations

import json
import logging
import signal
import sys
import threading
from collections.abc import AsyncIterator
from concurrent.futures import CancelledError
from contextlib import asynccontextmanager, suppress
from io import TextIOWrapper
from typing import BinaryIO, TextIO

import anyio
import anyio.abc
import anyio.lowlevel
from anyio.from_thread import BlockingPortal
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from ollama_mcp.exceptions import MalformedMessage
from ollama_mcp.server.protocol import ProtocolSession
from ollama_mcp.types.json_rpc import (
    INTERNAL_ERROR,
    JSONRPCMessage,
    JSONRPCNotification,
    RequestBase,
    dump_message,
    error_response,
)
from ollama_mcp.types.requests import ClientMessage, read_client_message

logger = logging.getLogger(__name__)

InboundItem = ClientMessage | MalformedMessage


class _NonClosingTextIOWrapper(TextIOWrapper):
    """Text wrapper that never closes the underlying binary stream."""

    def close(self) -> None:
        if self.closed:
            return
        if self.writable():
            self.flush()


def _wrap_process_stdio(binary_stream: BinaryIO) -> anyio.AsyncFile[str]:
    return anyio.wrap_file(_NonClosingTextIOWrapper(binary_stream, encoding="utf-8"))


def _pump_stdin(stdin: TextIO, portal: BlockingPortal, line_writer: MemoryObjectSendStream[str]) -> None:
    """Forward stdin lines into the event loop, then close ``line_writer`` at EOF.

    Runs in a daemon thread rather than an anyio worker thread: a read still
    blocked when the gateway stops must not keep the process alive.
    """
    try:
        for line in iter(stdin.readline, ""):
            portal.call(line_writer.send, line)
    except (anyio.BrokenResourceError, anyio.ClosedResourceError, RuntimeError, CancelledError):
        logger.debug("stdio transport stopped, abandoning stdin")
        return
    except Exception:
        logger.exception("Error reading stdin")

    with suppress(RuntimeError, CancelledError):
        portal.call(line_writer.aclose)


@asynccontextmanager
async def stdio_server(
    stdin: anyio.AsyncFile[str] | None = None,
    stdout: anyio.AsyncFile[str] | None = None,
) -> AsyncIterator[tuple[MemoryObjectReceiveStream[InboundItem], MemoryObjectSendStream[JSONRPCMessage]]]:
    """Read client messages from stdin and write outgoing messages to stdout.

    Lines that fail to parse arrive on the read stream as ``MalformedMessage``
    so the caller can answer them. The process' real handles are never closed.
    """
    # stdio encoding is platform-dependent, so re-wrap the binary streams as UTF-8.
    if not stdin:
        stdin = _wrap_process_stdio(sys.stdin.buffer)
    if not stdout:
        stdout = _wrap_process_stdio(sys.stdout.buffer)

    read_stream_writer, read_stream = anyio.create_memory_object_stream[InboundItem](0)
    write_stream, write_stream_reader = anyio.create_memory_object_stream[JSONRPCMessage](0)
    line_writer, line_reader = anyio.create_memory_object_stream[str](0)

    async def stdin_reader() -> None:
        try:
            async with read_stream_writer, line_reader:
                async for line in line_reader:
                    if not line.strip():
                        continue
                    try:
                        item: InboundItem = read_client_message(line)
                    except MalformedMessage as exc:
                        logger.warning("Unparseable message on stdin: %s", exc)
                        item = exc
                    await read_stream_writer.send(item)
        except anyio.ClosedResourceError:
            await anyio.lowlevel.checkpoint()

    async def stdout_writer() -> None:
        try:
            async with write_stream_reader:
                async for message in write_stream_reader:
                    await stdout.write(json.dumps(dump_message(message)) + "\n")
                    await stdout.flush()
        except anyio.ClosedResourceError:
            await anyio.lowlevel.checkpoint()

    async with BlockingPortal() as portal, anyio.create_task_group() as tg:
        threading.Thread(
            target=_pump_stdin,
            args=(stdin.wrapped, portal, line_writer),
            name="ollama-mcp-stdin",
            daemon=True,
        ).start()
        tg.start_soon(stdin_reader)
        tg.start_soon(stdout_writer)
        yield read_stream, write_stream


class StdoutSink:
    """Notification sink writing to the stdio write stream."""

    def __init__(self, write_stream: MemoryObjectSendStream[JSONRPCMessage]) -> None:
        self._write_stream = write_stream

    async def send_notification(self, notification: JSONRPCNotification) -> None:
        try:
            await self._write_stream.send(notification)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            logger.debug("stdout is closed, dropping %s", notification.method)


class StdioGateway:
    """Serves one ``ProtocolSession`` over stdio until EOF or SIGINT/SIGTERM.

    Inbound messages are handled concurrently; responses are written in the
    order they complete.
    """

    def __init__(
        self,
        protocol: ProtocolSession,
        *,
        stdin: anyio.AsyncFile[str] | None = None,
        stdout: anyio.AsyncFile[str] | None = None,
        handle_signals: bool = True,
    ) -> None:
        self.protocol = protocol
        self._stdin = stdin
        self._stdout = stdout
        self._handle_signals = handle_signals

    async def run(self) -> None:
        async with anyio.create_task_group() as tg:
            if self._handle_signals:
                await tg.start(self._watch_signals, tg.cancel_scope)
            await self._serve()
            tg.cancel_scope.cancel()

    async def _serve(self) -> None:
        async with stdio_server(self._stdin, self._stdout) as (read_stream, write_stream):
            self.protocol.bind(StdoutSink(write_stream))
            logger.info("Serving MCP over stdio")
            try:
                async with read_stream, anyio.create_task_group() as handlers:
                    async for item in read_stream:
                        handlers.start_soon(self._handle, item, write_stream)
            finally:
                self.protocol.unbind()
                await write_stream.aclose()
        logger.info("stdin closed, stdio transport stopped")

    async def _handle(self, item: InboundItem, write_stream: MemoryObjectSendStream[JSONRPCMessage]) -> None:
        if isinstance(item, MalformedMessage):
            response = item.response
        else:
            try:
                response = await self.protocol.handle_message(item)
            except Exception:
                logger.exception("Unhandled error while handling %r", item)
                if not isinstance(item, RequestBase):
                    return
                response = error_response(INTERNAL_ERROR, "Internal error", item.id)

        if response is not None:
            try:
                await write_stream.send(response)
            except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                logger.debug("stdout is closed, dropping response")

    async def _watch_signals(
        self, scope: anyio.CancelScope, *, task_status: anyio.abc.TaskStatus[None] = anyio.TASK_STATUS_IGNORED
    ) -> None:
        with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
            task_status.started()
            async for signum in signals:
                logger.info("Received %s, shutting down", signal.Signals(signum).name)
                scope.cancel()
                return
