"""HTTP sessions and the per-gateway live-session store."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from uuid import uuid4

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from ollama_mcp.exceptions import InvalidSession, StreamConflict
from ollama_mcp.server.protocol import ProtocolSession
from ollama_mcp.types.json_rpc import JSONRPCNotification

logger = logging.getLogger(__name__)

CloseListener = Callable[["HTTPSession"], Awaitable[None]]

# Notifications buffered for a slow GET stream before new ones are dropped.
STREAM_BUFFER_SIZE = 64


class SessionState(Enum):
    UNBORN = "unborn"
    ACTIVE = "active"
    CLOSED = "closed"


class HTTPSession:
    """One client conversation carried over many HTTP requests.

    The session is created UNBORN while its initialize handshake runs, becomes
    ACTIVE when a ``SessionStore`` accepts it and ends CLOSED. CLOSED is
    terminal. The session is also the notification sink of its protocol
    session: notifications go to the standalone GET stream when one is open
    and are dropped otherwise.
    """

    def __init__(self, protocol: ProtocolSession, *, session_id: str | None = None) -> None:
        self.session_id = session_id or uuid4().hex
        self.created_at = time.time()
        self.protocol = protocol
        self.state = SessionState.UNBORN
        self._close_listeners: list[CloseListener] = []
        self._stream: MemoryObjectSendStream[JSONRPCNotification] | None = None
        protocol.bind(self)

    def __repr__(self) -> str:
        return f"HTTPSession(session_id={self.session_id!r}, state={self.state.value})"

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    @property
    def has_stream(self) -> bool:
        return self._stream is not None

    def activate(self) -> None:
        if self.state is not SessionState.UNBORN:
            raise RuntimeError(f"Cannot activate a session in state {self.state.value}")
        self.state = SessionState.ACTIVE

    def on_close(self, listener: CloseListener) -> None:
        """Register a coroutine function called once with this session when it closes."""
        self._close_listeners.append(listener)

    async def close(self) -> None:
        """Close the session. Calling it again is a no-op."""
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        self.close_stream()
        self.protocol.unbind()
        logger.debug("Closed session %s", self.session_id)

        listeners, self._close_listeners = self._close_listeners, []
        for listener in listeners:
            try:
                await listener(self)
            except Exception:
                logger.exception("Close listener failed for session %s", self.session_id)

    def open_stream(self) -> MemoryObjectReceiveStream[JSONRPCNotification]:
        """Open the standalone notification stream.

        Raises:
            InvalidSession: the session is not active.
            StreamConflict: a stream is already open for this session.
        """
        if not self.is_active:
            raise InvalidSession(self.session_id)
        if self._stream is not None:
            raise StreamConflict(f"Session {self.session_id} already has an open stream")
        send_stream, receive_stream = anyio.create_memory_object_stream[JSONRPCNotification](STREAM_BUFFER_SIZE)
        self._stream = send_stream
        return receive_stream

    def close_stream(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    async def send_notification(self, notification: JSONRPCNotification) -> None:
        stream = self._stream
        if stream is None:
            logger.debug("No stream open for session %s, dropping %s", self.session_id, notification.method)
            return
        try:
            stream.send_nowait(notification)
        except anyio.WouldBlock:
            logger.warning("Stream for session %s is full, dropping %s", self.session_id, notification.method)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            # The client went away; a new GET may open a fresh stream.
            if self._stream is stream:
                self._stream = None


class SessionStore:
    """Live sessions of one gateway, keyed by session id.

    Mutations hold an ``anyio.Lock``. A closed session leaves the store and
    cannot be activated again, so its id is never accepted afterwards.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, HTTPSession] = {}
        self._lock = anyio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> HTTPSession | None:
        """Return the live session for ``session_id``, or None if it is unknown or closed."""
        session = self._sessions.get(session_id)
        if session is None or not session.is_active:
            return None
        return session

    async def insert(self, session: HTTPSession) -> None:
        """Activate ``session`` and make it reachable by its id.

        The session is removed again automatically when it closes.
        """
        async with self._lock:
            if session.session_id in self._sessions:
                raise ValueError(f"Session id {session.session_id} is already live")
            session.activate()
            self._sessions[session.session_id] = session
        session.on_close(self._on_session_closed)

    async def remove(self, session_id: str) -> HTTPSession | None:
        async with self._lock:
            return self._sessions.pop(session_id, None)

    async def close_all(self) -> None:
        async with self._lock:
            sessions = list(self._sessions.values())
        if sessions:
            logger.info("Closing %d live session(s)", len(sessions))
        for session in sessions:
            await session.close()

    async def _on_session_closed(self, session: HTTPSession) -> None:
        await self.remove(session.session_id)
