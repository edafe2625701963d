"""Protocol-server factory and the stdio transport.

Business logic (dispatcher, resource provider, store client, identity
resolver) is built once per process in a ``ServerContext``. Each
transport session gets its own lightweight MCP ``Server`` bound to that
shared context.
"""

import json
import uuid
from typing import Any, Optional

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from pydantic import AnyUrl

from shared.config import PocketBaseSettings, Settings
from shared.errors import BackendError
from shared.logging import get_logger
from shared.models import ExecutionContext, ToolCall, ToolResult
from pocketbase_store import PocketBaseClient
from mcp_server.audit import AuditLogger
from mcp_server.registry import ToolRegistry, get_registry
from mcp_server.resources import SCHEMA_MIME_TYPE, ResourceProvider
from mcp_server.router import ToolDispatcher
from mcp_server.tools import RecordTools

logger = get_logger(__name__)

SERVER_NAME = "pocketbase-mcp"
SERVER_VERSION = "1.0.0"


class ServerContext:
    """Process-wide collaborators shared by every session."""

    def __init__(
        self,
        settings: Settings,
        store: Any,
        registry: ToolRegistry,
        dispatcher: ToolDispatcher,
        resources: ResourceProvider,
        audit_logger: AuditLogger
    ) -> None:
        self.settings = settings
        self.store = store
        self.registry = registry
        self.dispatcher = dispatcher
        self.resources = resources
        self.audit_logger = audit_logger

    async def aclose(self) -> None:
        await self.audit_logger.flush()
        await self.store.close()


def create_context(settings: Settings, store: Any = None) -> ServerContext:
    """
    Wire up the shared collaborators.

    Args:
        settings: Application settings
        store: Backend store client; a ``PocketBaseClient`` is built when omitted
    """
    if store is None:
        store = PocketBaseClient(
            base_url=settings.pocketbase.url,
            timeout=settings.pocketbase.timeout_seconds,
            admin_auth_path=settings.pocketbase.admin_auth_path,
        )

    registry = get_registry()
    audit_logger = AuditLogger(
        log_path=settings.mcp_server.audit_log_path,
        enabled=settings.mcp_server.enable_audit,
    )
    dispatcher = ToolDispatcher(registry=registry, audit_logger=audit_logger)
    tools = RecordTools.from_settings(
        store, settings.pocketbase, settings.mcp_server.schema_path
    )
    dispatcher.register_handlers(tools.handlers)

    return ServerContext(
        settings=settings,
        store=store,
        registry=registry,
        dispatcher=dispatcher,
        resources=ResourceProvider(settings.mcp_server.schema_path),
        audit_logger=audit_logger,
    )


async def authenticate_backend(store: Any, settings: PocketBaseSettings) -> bool:
    """
    Authenticate against PocketBase as admin if credentials are configured.

    Failures are logged and never stop the server; later calls then run
    unauthenticated.

    Returns:
        True if authenticated
    """
    if not (settings.email and settings.password):
        logger.info("No PocketBase admin credentials configured, running unauthenticated")
        return False

    try:
        await store.authenticate_admin(settings.email, settings.password)
    except BackendError as e:
        logger.error("PocketBase admin authentication failed", error=e.message, status=e.status)
        return False

    logger.info("Authenticated to PocketBase as admin", email=settings.email)
    return True


def to_call_tool_result(result: ToolResult) -> types.CallToolResult:
    """Render a tool result as the single-text-payload response envelope."""
    if result.is_error:
        text = result.error or "Unknown error"
        if result.error_details:
            text = f"{text}\n{json.dumps(result.error_details, indent=2)}"
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=text)],
            isError=True,
        )

    if isinstance(result.data, str):
        text = result.data
    else:
        text = json.dumps(result.data, indent=2, ensure_ascii=False, default=str)
    return types.CallToolResult(content=[types.TextContent(type="text", text=text)])


def build_server(
    context: ServerContext,
    session_id: Optional[str] = None,
    transport: str = "stdio"
) -> Server:
    """
    Create a protocol-server instance bound to the shared context.

    Args:
        context: Shared collaborators
        session_id: Session the instance serves (None for stdio)
        transport: Transport name recorded on every invocation
    """
    server: Server = Server(SERVER_NAME, version=SERVER_VERSION)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return context.registry.to_mcp_tools()

    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any]) -> types.CallToolResult:
        call = ToolCall(
            tool_name=name,
            arguments=arguments or {},
            context=ExecutionContext(
                request_id=str(uuid.uuid4()),
                session_id=session_id,
                transport=transport,
            ),
        )
        result = await context.dispatcher.execute(call)
        return to_call_tool_result(result)

    @server.list_resources()
    async def list_resources() -> list[types.Resource]:
        return context.resources.list_resources()

    @server.read_resource()
    async def read_resource(uri: AnyUrl) -> list[ReadResourceContents]:
        text = await context.resources.read(str(uri))
        return [ReadResourceContents(content=text, mime_type=SCHEMA_MIME_TYPE)]

    return server


async def run_stdio(settings: Settings) -> None:
    """Serve a single implicit session over stdin/stdout until EOF."""
    context = create_context(settings)
    try:
        await authenticate_backend(context.store, settings.pocketbase)
        server = build_server(context, transport="stdio")

        logger.info("PocketBase MCP server running on stdio")
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
    finally:
        await context.aclose()
