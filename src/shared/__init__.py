"""Shared utilities and models for the PocketBase MCP server."""

from shared.models import (
    AuditEntry,
    ExecutionContext,
    ExecutionType,
    ToolCall,
    ToolDefinition,
    ToolResult,
    ToolResultStatus,
)
from shared.config import Settings, get_settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "AuditEntry",
    "ExecutionContext",
    "ExecutionType",
    "ToolCall",
    "ToolDefinition",
    "ToolResult",
    "ToolResultStatus",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
