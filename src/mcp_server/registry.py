"""Tool Registry for the MCP server.

Holds the tool catalog and exposes lookup, argument validation and the
protocol-level tool listing. Listing has no side effects and needs no
caller identity.
"""

from typing import Any, Optional

import mcp.types as types

from shared.logging import get_logger
from shared.models import ExecutionType, ToolDefinition
from shared.schema import validate_schema

logger = get_logger(__name__)


class ToolRegistry:
    """
    Registry of invocable tools.

    Responsibilities:
    - Register tool descriptors
    - Lookup tools by name
    - Validate arguments against a tool's input schema
    - Render descriptors as MCP ``Tool`` objects
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, tool_name: str) -> bool:
        return tool_name in self._tools

    def register(self, tool: ToolDefinition) -> None:
        """
        Register a tool in the registry.

        Args:
            tool: Tool definition to register

        Raises:
            ValueError: If tool name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")

        self._tools[tool.name] = tool
        logger.debug(
            "Tool registered",
            tool=tool.name,
            execution_type=tool.execution_type.value
        )

    def register_many(self, tools: list[ToolDefinition]) -> None:
        """Register multiple tools at once."""
        for tool in tools:
            self.register(tool)

    def get(self, tool_name: str) -> Optional[ToolDefinition]:
        """
        Get a tool by name.

        Returns:
            ToolDefinition if found, None otherwise
        """
        return self._tools.get(tool_name)

    def list_tools(self) -> list[ToolDefinition]:
        """List all registered tools in registration order."""
        return list(self._tools.values())

    def validate_input(
        self,
        tool_name: str,
        arguments: dict[str, Any]
    ) -> tuple[bool, list[str]]:
        """
        Validate arguments against the tool's input schema.

        Args:
            tool_name: Tool name
            arguments: Arguments to validate

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        tool = self.get(tool_name)
        if not tool:
            return False, [f"Tool '{tool_name}' not found"]

        return validate_schema(arguments, tool.input_schema)

    def to_mcp_tools(self) -> list[types.Tool]:
        """Render the catalog as MCP tool descriptors."""
        return [
            types.Tool(
                name=tool.name,
                description=tool.description,
                inputSchema=tool.input_schema,
                annotations=types.ToolAnnotations(
                    readOnlyHint=tool.execution_type == ExecutionType.READ,
                    destructiveHint=tool.execution_type == ExecutionType.DELETE,
                ),
            )
            for tool in self._tools.values()
        ]


# Global registry instance
_registry: Optional[ToolRegistry] = None


def get_registry() -> ToolRegistry:
    """Get the global registry, populated with the static tool catalog."""
    global _registry
    if _registry is None:
        from mcp_server.catalog import TOOL_DEFINITIONS

        _registry = ToolRegistry()
        _registry.register_many(TOOL_DEFINITIONS)
    return _registry
