"""Session management for the streaming-HTTP (SSE) transport.

Each client connection gets its own session: a generated identifier, a
transport bridging HTTP to in-memory message streams, and a dedicated
protocol-server instance running in a background task. Sessions live
exactly as long as the client's event stream.
"""

import asyncio
import uuid
from typing import Any, AsyncIterator, Callable, Optional

import anyio
import mcp.types as types
import pydantic
from mcp.shared.message import SessionMessage

from shared.errors import SessionNotFoundError, ValidationError
from shared.logging import get_logger

logger = get_logger(__name__)


ServerFactory = Callable[[str], Any]


class SseSessionTransport:
    """
    Bridges one HTTP client to one protocol-server instance.

    Inbound messages arrive through ``handle_post_message`` and are read
    by the server from ``read_stream``. The server writes responses to
    ``write_stream``; ``events`` turns them into server-sent events.
    """

    def __init__(self, session_id: str, endpoint: str, buffer_size: int = 32) -> None:
        self.session_id = session_id
        self.endpoint = endpoint
        self._inbound_writer, self.read_stream = anyio.create_memory_object_stream(buffer_size)
        self.write_stream, self._outbound_reader = anyio.create_memory_object_stream(buffer_size)

    async def handle_post_message(self, body: bytes) -> None:
        """
        Parse one JSON-RPC message and hand it to the server.

        Raises:
            ValidationError: If the body is not a JSON-RPC message
        """
        try:
            message = types.JSONRPCMessage.model_validate_json(body)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid JSON-RPC message: {e}") from e

        await self._inbound_writer.send(SessionMessage(message))

    async def events(self) -> AsyncIterator[dict[str, str]]:
        """Yield the endpoint announcement, then every outbound message."""
        yield {"event": "endpoint", "data": self.endpoint}

        async for session_message in self._outbound_reader:
            yield {
                "event": "message",
                "data": session_message.message.model_dump_json(
                    by_alias=True, exclude_none=True
                ),
            }

    def close(self) -> None:
        for stream in (
            self._inbound_writer,
            self.read_stream,
            self.write_stream,
            self._outbound_reader,
        ):
            stream.close()


class Session:
    """A live session: identifier, transport and protocol-server instance."""

    def __init__(self, session_id: str, transport: SseSessionTransport, server: Any) -> None:
        self.session_id = session_id
        self.transport = transport
        self.server = server
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Bind the transport to the server instance."""
        self._task = asyncio.create_task(
            self._run(), name=f"mcp-session-{self.session_id}"
        )

    async def _run(self) -> None:
        try:
            await self.server.run(
                self.transport.read_stream,
                self.transport.write_stream,
                self.server.create_initialization_options(),
            )
        except Exception as e:
            logger.error(
                "Session server stopped with an error",
                session_id=self.session_id,
                error=str(e),
                exc_info=True
            )
        finally:
            # Ends the event stream, which in turn destroys the session
            self.transport.write_stream.close()

    def stop(self) -> None:
        # In-flight backend calls are abandoned; their responses have nowhere to go
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self.transport.close()


class SessionManager:
    """
    Owns the session table for the SSE transport.

    Responsibilities:
    - Create a session per incoming connection
    - Route inbound messages by session identifier
    - Destroy sessions when their connection closes

    The table is process memory only. Insertions and removals never span
    an await, so under the single-threaded event loop they cannot
    interleave; routing for different sessions proceeds independently.
    """

    def __init__(
        self,
        server_factory: ServerFactory,
        message_path: str = "/messages",
        buffer_size: int = 32
    ) -> None:
        """
        Initialize the session manager.

        Args:
            server_factory: Builds a protocol-server instance for a session id
            message_path: Path clients POST their messages to
            buffer_size: Per-direction message buffer of each session
        """
        self._server_factory = server_factory
        self.message_path = message_path
        self.buffer_size = buffer_size
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def create(self) -> Session:
        """
        Create, register and start a new session.

        Must be called from within the running event loop.
        """
        session_id = uuid.uuid4().hex
        transport = SseSessionTransport(
            session_id,
            endpoint=f"{self.message_path}?sessionId={session_id}",
            buffer_size=self.buffer_size,
        )
        session = Session(session_id, transport, self._server_factory(session_id))

        self._sessions[session_id] = session
        session.start()

        logger.info("Session created", session_id=session_id, active_sessions=len(self))
        return session

    def get(self, session_id: str) -> Session:
        """
        Look up a live session.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def route(self, session_id: str, body: bytes) -> None:
        """
        Deliver a raw inbound message to its session's transport.

        Raises:
            SessionNotFoundError: If the session does not exist or closed meanwhile
            ValidationError: If the body is not a JSON-RPC message
        """
        session = self.get(session_id)
        try:
            await session.transport.handle_post_message(body)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError) as e:
            raise SessionNotFoundError(session_id) from e

    def destroy(self, session_id: str) -> bool:
        """
        Remove a session and stop its server.

        Returns:
            True if the session existed
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False

        session.stop()
        logger.info("Session closed", session_id=session_id, active_sessions=len(self))
        return True

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.destroy(session_id)
