"""MCP Server - PocketBase tools, ownership enforcement and transports.

Exposes a fixed set of PocketBase operations to AI agents over stdio or
SSE, scoping every data access to the calling user's own records.
"""

from mcp_server.registry import ToolRegistry, get_registry
from mcp_server.router import ToolDispatcher
from mcp_server.auth import IdentityResolver, build_owner_filter
from mcp_server.audit import AuditLogger
from mcp_server.resources import ResourceProvider
from mcp_server.sessions import SessionManager

__all__ = [
    "ToolRegistry",
    "get_registry",
    "ToolDispatcher",
    "IdentityResolver",
    "build_owner_filter",
    "AuditLogger",
    "ResourceProvider",
    "SessionManager",
]
