"""Core data models for the PocketBase MCP server.

Tool descriptors, invocation context, tagged tool results and audit
entries shared by the registry, the dispatcher and the transports.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ExecutionType(str, Enum):
    """Effect of a tool on the backend."""
    READ = "read"
    WRITE = "write"
    DELETE = "delete"


class ToolDefinition(BaseModel):
    """
    Static descriptor of an invocable tool.

    The full catalog is immutable for the process lifetime.
    """
    name: str = Field(..., description="Tool name as exposed to the agent")
    description: str = Field(..., description="Description for LLM usage")
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON Schema for argument validation"
    )
    execution_type: ExecutionType = Field(default=ExecutionType.READ)


class ExecutionContext(BaseModel):
    """
    Context for a single tool invocation.

    Identifies the session and transport the request arrived on.
    """
    request_id: str = Field(..., description="Unique request identifier")
    session_id: Optional[str] = None
    transport: str = Field(default="stdio", description="stdio or sse")
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ToolCall(BaseModel):
    """A request to execute a tool."""
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    context: ExecutionContext


class ToolResultStatus(str, Enum):
    """Outcome tag of a tool invocation."""
    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    BACKEND_ERROR = "backend_error"
    SCHEMA_ERROR = "schema_error"
    ERROR = "error"


class ToolResult(BaseModel):
    """
    Result of a tool invocation.

    ``data`` holds the backend payload (or a plain message) on success,
    ``error`` a human-readable message otherwise.
    """
    tool_name: str
    status: ToolResultStatus
    data: Optional[Any] = None
    error: Optional[str] = None
    error_details: dict[str, Any] = Field(default_factory=dict)
    execution_time_ms: float = 0

    @property
    def is_error(self) -> bool:
        return self.status != ToolResultStatus.SUCCESS


class AuditEntry(BaseModel):
    """
    Audit log entry for tool executions.

    Captures caller, tool, arguments, timestamp and result.
    """
    id: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    tool_name: str
    execution_type: ExecutionType
    caller_identity: Optional[str] = None

    arguments: dict[str, Any] = Field(default_factory=dict)

    status: ToolResultStatus
    error: Optional[str] = None
    execution_time_ms: float = 0

    request_id: str
    session_id: Optional[str] = None
    transport: str = "stdio"
