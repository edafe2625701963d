"""Tests for the SSE transport application."""

import asyncio
import json
import re

import anyio
import httpx
import pytest

PING = b'{"jsonrpc": "2.0", "id": 1, "method": "ping"}'


@pytest.fixture
def app(settings, context):
    from mcp_server.main import create_app

    return create_app(settings, context=context)


@pytest.fixture
def client(app):
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_check(self, client, store):
        async with client:
            response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["version"] == "1.0.0"
        assert body["tool_count"] == 6
        assert store.token is None


class TestPostMessage:

    @pytest.mark.asyncio
    async def test_missing_session_id(self, client, app):
        async with client:
            response = await client.post("/messages", content=PING)

        assert response.status_code == 400
        assert "sessionId" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_session(self, client, app):
        async with client:
            response = await client.post("/messages?sessionId=nope", content=PING)

        assert response.status_code == 404
        assert len(app.state.sessions) == 0

    @pytest.mark.asyncio
    async def test_live_session_accepts(self, client, app):
        sessions = app.state.sessions
        session = sessions.create()

        async with client:
            response = await client.post(
                "/messages", params={"sessionId": session.session_id}, content=PING
            )
            assert response.status_code == 202
            assert response.text == "Accepted"

            sessions.destroy(session.session_id)
            response = await client.post(
                "/messages", params={"sessionId": session.session_id}, content=PING
            )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_malformed_message(self, client, app):
        sessions = app.state.sessions
        session = sessions.create()

        async with client:
            response = await client.post(
                "/messages", params={"sessionId": session.session_id}, content=b"{oops"
            )

        assert response.status_code == 400
        assert session.session_id in sessions
        sessions.close_all()


class EventStreamReader:
    """Drives ``GET /sse`` at the ASGI level so the stream can be read incrementally."""

    def __init__(self, app) -> None:
        self.app = app
        self.messages: asyncio.Queue = asyncio.Queue()
        self.disconnected = asyncio.Event()
        self.buffer = b""
        self.task = None

    async def _receive(self):
        await self.disconnected.wait()
        return {"type": "http.disconnect"}

    async def _send(self, message) -> None:
        await self.messages.put(message)

    def open(self) -> None:
        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": "/sse",
            "raw_path": b"/sse",
            "root_path": "",
            "query_string": b"",
            "headers": [(b"host", b"test"), (b"accept", b"text/event-stream")],
            "client": ("127.0.0.1", 50000),
            "server": ("test", 80),
            "state": {},
        }
        self.task = asyncio.create_task(self.app(scope, self._receive, self._send))

    async def status(self) -> int:
        message = await self.messages.get()
        assert message["type"] == "http.response.start"
        return message["status"]

    async def next_data(self, event: str) -> str:
        """Return the data of the next event of the given type."""
        pattern = re.compile(
            rb"event: " + event.encode() + rb"\r?\ndata: ([^\r\n]*)\r?\n\r?\n"
        )
        while True:
            match = pattern.search(self.buffer)
            if match:
                self.buffer = self.buffer[match.end():]
                return match.group(1).decode()
            message = await self.messages.get()
            self.buffer += message.get("body", b"")

    async def close(self) -> None:
        self.disconnected.set()
        await self.task


class TestEventStream:
    """Session lifetime follows the ``GET /sse`` connection."""

    @pytest.mark.asyncio
    async def test_endpoint_post_and_disconnect(self, client, app):
        sessions = app.state.sessions
        stream = EventStreamReader(app)
        stream.open()

        async with client:
            with anyio.fail_after(5):
                assert await stream.status() == 200
                endpoint = await stream.next_data("endpoint")
                assert endpoint.startswith("/messages?sessionId=")
                assert len(sessions) == 1

                response = await client.post(endpoint, content=PING)
                assert response.status_code == 202

                reply = json.loads(await stream.next_data("message"))
                assert reply == {"jsonrpc": "2.0", "id": 1, "result": {}}

                await stream.close()

            assert len(sessions) == 0
            response = await client.post(endpoint, content=PING)

        assert response.status_code == 404
