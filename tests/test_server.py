"""Tests for the protocol-server factory."""

import json

import mcp.types as types
import pytest
from unittest.mock import AsyncMock

from shared.config import PocketBaseSettings
from shared.errors import BackendError, BackendUnavailableError
from shared.models import ToolResult, ToolResultStatus


class TestAuthenticateBackend:

    @pytest.mark.asyncio
    async def test_without_credentials(self):
        from mcp_server.server import authenticate_backend

        store = AsyncMock()
        settings = PocketBaseSettings(email=None, password=None)

        assert await authenticate_backend(store, settings) is False
        store.authenticate_admin.assert_not_called()

    @pytest.mark.asyncio
    async def test_with_credentials(self, store):
        from mcp_server.server import authenticate_backend

        settings = PocketBaseSettings(email="admin@example.com", password="pw")

        assert await authenticate_backend(store, settings) is True
        assert store.token == "token-for-admin@example.com"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            BackendError("Failed to authenticate.", status=400),
            BackendUnavailableError("Cannot reach PocketBase"),
        ],
    )
    async def test_failure_does_not_raise(self, error):
        from mcp_server.server import authenticate_backend

        store = AsyncMock()
        store.authenticate_admin.side_effect = error
        settings = PocketBaseSettings(email="admin@example.com", password="pw")

        assert await authenticate_backend(store, settings) is False


class TestToCallToolResult:

    def test_string_payload_is_verbatim(self):
        from mcp_server.server import to_call_tool_result

        result = to_call_tool_result(ToolResult(
            tool_name="apply_schema",
            status=ToolResultStatus.SUCCESS,
            data="Schema imported successfully."
        ))

        assert not result.isError
        assert result.content[0].text == "Schema imported successfully."

    def test_structured_payload_is_pretty_json(self):
        from mcp_server.server import to_call_tool_result

        data = {"id": "abc", "title": "A"}
        result = to_call_tool_result(ToolResult(
            tool_name="create_record", status=ToolResultStatus.SUCCESS, data=data
        ))

        assert result.content[0].text == json.dumps(data, indent=2)
        assert len(result.content) == 1

    def test_error_with_details(self):
        from mcp_server.server import to_call_tool_result

        details = {"title": {"code": "validation_required"}}
        result = to_call_tool_result(ToolResult(
            tool_name="create_record",
            status=ToolResultStatus.BACKEND_ERROR,
            error="Failed to create record.",
            error_details=details
        ))

        assert result.isError
        text = result.content[0].text
        assert text.startswith("Failed to create record.\n")
        assert json.loads(text.split("\n", 1)[1]) == details


class TestBuildServer:
    """Requests go through the registered protocol handlers."""

    @pytest.mark.asyncio
    async def test_list_tools(self, context):
        from mcp_server.server import build_server

        server = build_server(context)
        response = await server.request_handlers[types.ListToolsRequest](
            types.ListToolsRequest(method="tools/list")
        )

        names = {tool.name for tool in response.root.tools}
        assert names == {
            "list_collections", "get_records", "create_record",
            "update_record", "delete_record", "apply_schema",
        }

    @pytest.mark.asyncio
    async def test_call_tool(self, context, store):
        from mcp_server.server import build_server

        server = build_server(context, session_id="s1", transport="sse")
        response = await server.request_handlers[types.CallToolRequest](
            types.CallToolRequest(
                method="tools/call",
                params=types.CallToolRequestParams(
                    name="create_record",
                    arguments={"collection": "notes", "user_id": "u1", "data": {"title": "A"}},
                ),
            )
        )

        result = response.root
        assert not result.isError
        assert json.loads(result.content[0].text)["title"] == "A"
        assert len(store.collections["notes"]) == 1

    @pytest.mark.asyncio
    async def test_call_unknown_tool_is_error(self, context):
        from mcp_server.server import build_server

        server = build_server(context)
        response = await server.request_handlers[types.CallToolRequest](
            types.CallToolRequest(
                method="tools/call",
                params=types.CallToolRequestParams(name="drop_everything", arguments={}),
            )
        )

        assert response.root.isError
        assert "drop_everything" in response.root.content[0].text

    @pytest.mark.asyncio
    async def test_read_schema_resource(self, context, schema_file):
        from mcp_server.server import build_server

        server = build_server(context)
        response = await server.request_handlers[types.ReadResourceRequest](
            types.ReadResourceRequest(
                method="resources/read",
                params=types.ReadResourceRequestParams(uri="pocketbase://schema"),
            )
        )

        contents = response.root.contents[0]
        assert contents.text == schema_file.read_text()
        assert contents.mimeType == "application/json"
