"""Tool Dispatcher for the MCP server.

Routes tool calls to their handlers. Every invocation runs the same
stages: validate, execute (identity resolution, ownership filter and
ownership check happen inside the handler, in that order), format. Any
stage may short-circuit to an error result; nothing is retried.
"""

import time
from typing import Any, Awaitable, Callable, Optional

from shared.errors import (
    BackendError,
    NotFoundError,
    SchemaApplyError,
    ToolNotFoundError,
    ValidationError,
)
from shared.logging import get_logger
from shared.models import (
    ExecutionContext,
    ToolCall,
    ToolResult,
    ToolResultStatus,
)
from mcp_server.audit import AuditLogger
from mcp_server.registry import ToolRegistry, get_registry

logger = get_logger(__name__)


ToolHandler = Callable[[dict[str, Any], ExecutionContext], Awaitable[Any]]


class ToolDispatcher:
    """
    Dispatches tool calls to handlers.

    Responsibilities:
    - Validate arguments against the tool schema
    - Route to the tool's handler
    - Convert every failure into a tagged ``ToolResult``
    - Audit all executions

    Unknown tool names are the one failure raised instead of returned.
    """

    def __init__(
        self,
        registry: Optional[ToolRegistry] = None,
        audit_logger: Optional[AuditLogger] = None
    ) -> None:
        self.registry = registry or get_registry()
        self.audit_logger = audit_logger
        self._handlers: dict[str, ToolHandler] = {}

    def register_handler(self, tool_name: str, handler: ToolHandler) -> None:
        """
        Register the handler for a catalog tool.

        Raises:
            ToolNotFoundError: If the tool is not in the registry
        """
        if tool_name not in self.registry:
            raise ToolNotFoundError(tool_name)
        self._handlers[tool_name] = handler

    def register_handlers(self, handlers: dict[str, ToolHandler]) -> None:
        for tool_name, handler in handlers.items():
            self.register_handler(tool_name, handler)

    async def execute(self, call: ToolCall) -> ToolResult:
        """
        Execute a tool call.

        Args:
            call: Tool call request

        Returns:
            Tool execution result; never raises for business failures

        Raises:
            ToolNotFoundError: If the tool name is unknown
        """
        start_time = time.time()
        tool_name = call.tool_name

        tool = self.registry.get(tool_name)
        if not tool:
            logger.warning("Unknown tool requested", tool=tool_name)
            raise ToolNotFoundError(tool_name)

        logger.debug(
            "Executing tool",
            tool=tool_name,
            session_id=call.context.session_id,
            request_id=call.context.request_id
        )

        try:
            result = await self._execute(call)
        except ValidationError as e:
            result = self._failure(tool_name, ToolResultStatus.VALIDATION_ERROR, e.message)
        except NotFoundError as e:
            result = self._failure(tool_name, ToolResultStatus.NOT_FOUND, e.message)
        except SchemaApplyError as e:
            logger.warning("Schema apply failed", stage=e.stage, error=e.message)
            result = self._failure(tool_name, ToolResultStatus.SCHEMA_ERROR, e.message)
        except BackendError as e:
            result = self._failure(
                tool_name, ToolResultStatus.BACKEND_ERROR, e.message, e.details
            )
        except Exception as e:
            logger.error(
                "Tool execution failed",
                tool=tool_name,
                error=str(e),
                exc_info=True
            )
            result = self._failure(tool_name, ToolResultStatus.ERROR, str(e) or repr(e))

        result.execution_time_ms = (time.time() - start_time) * 1000

        if self.audit_logger is not None:
            await self.audit_logger.log(tool, call, result)

        return result

    async def _execute(self, call: ToolCall) -> ToolResult:
        is_valid, errors = self.registry.validate_input(call.tool_name, call.arguments)
        if not is_valid:
            raise ValidationError(f"Validation failed: {'; '.join(errors)}", errors)

        handler = self._handlers.get(call.tool_name)
        if handler is None:
            raise RuntimeError(f"No handler registered for tool '{call.tool_name}'")

        data = await handler(call.arguments, call.context)
        return ToolResult(
            tool_name=call.tool_name,
            status=ToolResultStatus.SUCCESS,
            data=data
        )

    @staticmethod
    def _failure(
        tool_name: str,
        status: ToolResultStatus,
        message: str,
        details: Optional[dict[str, Any]] = None
    ) -> ToolResult:
        return ToolResult(
            tool_name=tool_name,
            status=status,
            error=message,
            error_details=details or {}
        )
