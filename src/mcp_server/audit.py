"""Audit logging for the MCP server.

Logs all tool executions for compliance and debugging.
Captures: caller identity, tool, arguments, session, timestamp, result.
"""

import asyncio
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

import aiofiles

from shared.logging import get_logger
from shared.models import (
    AuditEntry,
    ToolCall,
    ToolDefinition,
    ToolResult,
)

logger = get_logger(__name__)


class AuditLogger:
    """
    Audit logger for MCP tool executions.

    Entries go to the structured logger at once and are buffered for
    batched JSON-lines writes to ``log_path``.
    """

    # Argument keys redacted at any depth, compared case-insensitively
    SENSITIVE_KEYS = {
        "password", "passwordconfirm", "oldpassword", "token",
        "secret", "api_key", "apikey", "credential",
    }

    def __init__(
        self,
        log_path: str = "logs/audit.log",
        enabled: bool = True,
        buffer_size: int = 100
    ) -> None:
        self.log_path = Path(log_path)
        self.enabled = enabled
        self.buffer_size = buffer_size
        self._buffer: list[AuditEntry] = []
        self._lock = asyncio.Lock()

        if self.enabled:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def _redact_sensitive(self, value: Any) -> Any:
        """Redact sensitive keys from nested arguments."""
        if isinstance(value, dict):
            return {
                key: "[REDACTED]" if str(key).lower() in self.SENSITIVE_KEYS
                else self._redact_sensitive(item)
                for key, item in value.items()
            }
        if isinstance(value, list):
            return [self._redact_sensitive(item) for item in value]
        return value

    def create_entry(
        self,
        tool: ToolDefinition,
        call: ToolCall,
        result: ToolResult
    ) -> AuditEntry:
        """Create an audit entry from tool execution data."""
        caller = call.arguments.get("user_id")
        return AuditEntry(
            id=str(uuid.uuid4()),
            timestamp=datetime.utcnow(),
            tool_name=tool.name,
            execution_type=tool.execution_type,
            caller_identity=caller if isinstance(caller, str) else None,
            arguments=self._redact_sensitive(call.arguments),
            status=result.status,
            error=result.error,
            execution_time_ms=result.execution_time_ms,
            request_id=call.context.request_id,
            session_id=call.context.session_id,
            transport=call.context.transport,
        )

    async def log(
        self,
        tool: ToolDefinition,
        call: ToolCall,
        result: ToolResult
    ) -> None:
        """Log a tool execution."""
        if not self.enabled:
            return

        entry = self.create_entry(tool, call, result)

        logger.info(
            "Tool executed",
            audit_id=entry.id,
            tool=entry.tool_name,
            caller=entry.caller_identity,
            session_id=entry.session_id,
            status=entry.status.value,
            execution_time_ms=round(entry.execution_time_ms, 2)
        )

        async with self._lock:
            self._buffer.append(entry)

            if len(self._buffer) >= self.buffer_size:
                await self._flush()

    async def _flush(self) -> None:
        """Flush buffered entries to file."""
        if not self._buffer:
            return

        entries_to_write = self._buffer.copy()
        self._buffer.clear()

        try:
            async with aiofiles.open(self.log_path, "a") as f:
                for entry in entries_to_write:
                    await f.write(entry.model_dump_json() + "\n")
        except OSError as e:
            logger.error("Failed to write audit log", error=str(e))
            # Keep entries for the next flush
            self._buffer.extend(entries_to_write)

    async def flush(self) -> None:
        """Public method to flush audit buffer."""
        async with self._lock:
            await self._flush()
