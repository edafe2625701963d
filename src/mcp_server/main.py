"""PocketBase MCP Server - entry point and streaming-HTTP application.

Endpoints of the SSE transport:
- ``GET /sse`` opens a session and streams server-to-client messages
- ``POST /messages?sessionId=<id>`` delivers one client-to-server message
- ``GET /health`` liveness check, no backend interaction
"""

import asyncio
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from shared.config import Settings, get_settings
from shared.errors import SessionNotFoundError, ValidationError
from shared.logging import get_logger, setup_logging
from mcp_server.server import (
    SERVER_VERSION,
    ServerContext,
    authenticate_backend,
    build_server,
    create_context,
    run_stdio,
)
from mcp_server.sessions import SessionManager

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    tool_count: int


def create_app(
    settings: Optional[Settings] = None,
    context: Optional[ServerContext] = None
) -> FastAPI:
    """
    Build the SSE transport application.

    Args:
        settings: Application settings (cached settings when omitted)
        context: Shared collaborators (built from settings when omitted)
    """
    settings = settings or get_settings()
    context = context or create_context(settings)
    sessions = SessionManager(
        lambda session_id: build_server(context, session_id=session_id, transport="sse"),
        message_path=settings.mcp_server.message_path,
        buffer_size=settings.mcp_server.session_buffer_size,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting PocketBase MCP server",
            transport="sse",
            host=settings.mcp_server.host,
            port=settings.mcp_server.port
        )
        await authenticate_backend(context.store, settings.pocketbase)

        yield

        logger.info("Shutting down PocketBase MCP server", active_sessions=len(sessions))
        sessions.close_all()
        await context.aclose()

    app = FastAPI(
        title="PocketBase MCP Server",
        description="MCP bridge exposing PocketBase collections to AI agents",
        version=SERVER_VERSION,
        lifespan=lifespan
    )
    app.state.context = context
    app.state.sessions = sessions

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check():
        """Static liveness response."""
        return HealthResponse(
            status="healthy",
            version=SERVER_VERSION,
            tool_count=len(context.registry)
        )

    @app.get("/sse", tags=["MCP"])
    async def open_session(request: Request):
        """Open a session and stream its messages until the client disconnects."""
        session = sessions.create()

        async def event_stream():
            try:
                async for event in session.transport.events():
                    yield event
            finally:
                sessions.destroy(session.session_id)

        return EventSourceResponse(event_stream())

    @app.post(settings.mcp_server.message_path, tags=["MCP"])
    async def post_message(
        request: Request,
        session_id: Optional[str] = Query(default=None, alias="sessionId")
    ):
        """Deliver one client message to its session."""
        if not session_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing sessionId query parameter"
            )

        body = await request.body()
        try:
            await sessions.route(session_id, body)
        except SessionNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
        except ValidationError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
        except Exception as e:
            logger.error(
                "Message dispatch failed",
                session_id=session_id,
                error=str(e),
                exc_info=True
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Internal error dispatching message"
            )

        return PlainTextResponse("Accepted", status_code=status.HTTP_202_ACCEPTED)

    return app


def main():
    """Run the MCP server on the configured transport."""
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level, json_output=settings.environment == "production")

    try:
        if settings.mcp_server.transport == "stdio":
            asyncio.run(run_stdio(settings))
        else:
            uvicorn.run(
                create_app(settings),
                host=settings.mcp_server.host,
                port=settings.mcp_server.port,
            )
    except Exception as e:
        logger.critical("Fatal error running server", error=str(e), exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
