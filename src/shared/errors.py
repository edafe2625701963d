"""Error taxonomy for the PocketBase MCP server.

Callers branch on exception type, never on message text. The tool
dispatcher converts every one of these into a tagged ``ToolResult``.
"""

from typing import Any, Optional


class MCPServerError(Exception):
    """Base exception for all server errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(MCPServerError):
    """Tool arguments failed validation."""

    def __init__(self, message: str, errors: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class NotFoundError(MCPServerError):
    """Base class for everything that resolves to 'not found'."""
    pass


class ToolNotFoundError(NotFoundError):
    """Requested tool is not in the catalog."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool '{tool_name}' not found")
        self.tool_name = tool_name


class ResourceNotFoundError(NotFoundError):
    """Requested resource URI is not served."""

    def __init__(self, uri: str) -> None:
        super().__init__(f"Resource not found: {uri}")
        self.uri = uri


class SessionNotFoundError(NotFoundError):
    """No live session for the given identifier."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id


class RecordNotOwnedError(NotFoundError):
    """Record is absent or belongs to another caller.

    Both cases share one message so a caller cannot probe for records
    it does not own.
    """

    def __init__(self) -> None:
        super().__init__("Record not found or not owned by the caller.")


class BackendError(MCPServerError):
    """Failure reported by the backend store.

    ``message`` is the backend's own message, passed through verbatim.
    ``details`` holds per-field errors when the backend supplies them.
    """

    def __init__(
        self,
        message: str,
        status: int = 0,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(message)
        self.status = status
        self.details = details or {}

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500


class BackendNotFoundError(BackendError):
    """Backend lookup matched nothing."""

    def __init__(
        self,
        message: str = "The requested resource wasn't found.",
        details: Optional[dict[str, Any]] = None
    ) -> None:
        super().__init__(message, status=404, details=details)


class BackendUnavailableError(BackendError):
    """Backend could not be reached at all."""
    pass


class SchemaApplyError(MCPServerError):
    """Applying the schema document failed at a named stage."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"Failed to apply schema ({stage}): {message}")
        self.stage = stage
