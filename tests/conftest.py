"""Shared fixtures: an in-memory PocketBase double and wired-up server context."""

import itertools
import json
import re
import uuid
from typing import Any, Optional

import pytest

from shared.config import MCPServerSettings, PocketBaseSettings, Settings
from shared.errors import BackendError, BackendNotFoundError
from shared.models import ExecutionContext, ToolCall

CLAUSE = re.compile(r'^(\w+)\s*(=|!=)\s*(".*"|true|false|-?\d+(?:\.\d+)?)$')


def _matches(record: dict[str, Any], expression: Optional[str]) -> bool:
    """Evaluate the '&&'-joined equality filters this server generates."""
    if not expression:
        return True

    for clause in expression.split("&&"):
        clause = clause.strip()
        while clause.startswith("(") and clause.endswith(")"):
            clause = clause[1:-1].strip()
        match = CLAUSE.match(clause)
        if not match:
            raise BackendError("Invalid filter parameters.", status=400)
        field, operator, literal = match.groups()
        equal = record.get(field) == json.loads(literal)
        if equal != (operator == "="):
            return False
    return True


class InMemoryPocketBase:
    """Duck-typed stand-in for ``PocketBaseClient``."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, dict[str, Any]]] = {
            "users": {},
            "notes": {},
            "legacy": {},
        }
        self.imports: list[tuple[list[dict[str, Any]], bool]] = []
        self.token: Optional[str] = None
        self.closed = False
        self._ids = itertools.count(1)

    def _records(self, collection: str) -> dict[str, dict[str, Any]]:
        if collection not in self.collections:
            raise BackendNotFoundError("Missing collection context.")
        return self.collections[collection]

    async def authenticate_admin(self, email: str, password: str) -> None:
        self.token = f"token-for-{email}"

    async def list_collections(self) -> list[dict[str, Any]]:
        return [{"name": name} for name in self.collections]

    async def get_list(
        self,
        collection: str,
        page: int = 1,
        per_page: int = 50,
        filter: Optional[str] = None,
        sort: Optional[str] = None
    ) -> dict[str, Any]:
        items = [
            dict(r) for r in self._records(collection).values() if _matches(r, filter)
        ]
        start = (page - 1) * per_page
        return {
            "page": page,
            "perPage": per_page,
            "totalItems": len(items),
            "totalPages": -(-len(items) // per_page),
            "items": items[start:start + per_page],
        }

    async def get_first_list_item(self, collection: str, filter: str) -> dict[str, Any]:
        for record in self._records(collection).values():
            if _matches(record, filter):
                return dict(record)
        raise BackendNotFoundError()

    async def create_record(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        records = self._records(collection)
        record_id = f"{next(self._ids):015d}"
        record = {"id": record_id, "collectionName": collection, **data}
        records[record_id] = record
        return {k: v for k, v in record.items() if not k.startswith("password")}

    async def update_record(
        self, collection: str, record_id: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        records = self._records(collection)
        if record_id not in records:
            raise BackendNotFoundError()
        records[record_id].update(data)
        return dict(records[record_id])

    async def delete_record(self, collection: str, record_id: str) -> None:
        records = self._records(collection)
        if record_id not in records:
            raise BackendNotFoundError()
        del records[record_id]

    async def import_collections(
        self, collections: list[dict[str, Any]], delete_missing: bool = False
    ) -> None:
        self.imports.append((collections, delete_missing))
        names = {c["name"] for c in collections}
        for name in names:
            self.collections.setdefault(name, {})
        if delete_missing:
            for name in list(self.collections):
                if name not in names:
                    del self.collections[name]

    async def close(self) -> None:
        self.closed = True

    def users_with_identity(self, caller_identity: str) -> list[dict[str, Any]]:
        return [
            u for u in self.collections["users"].values()
            if u.get("supabase_id") == caller_identity
        ]


SCHEMA_DOCUMENT = [
    {"name": "users", "type": "auth", "schema": []},
    {"name": "notes", "type": "base", "schema": []},
]


@pytest.fixture
def store() -> InMemoryPocketBase:
    return InMemoryPocketBase()


@pytest.fixture
def schema_file(tmp_path):
    path = tmp_path / "pb_schema.json"
    path.write_text(json.dumps(SCHEMA_DOCUMENT))
    return path


@pytest.fixture
def settings(tmp_path, schema_file) -> Settings:
    return Settings(
        pocketbase=PocketBaseSettings(url="http://pocketbase.test"),
        mcp_server=MCPServerSettings(
            schema_path=str(schema_file),
            enable_audit=False,
            audit_log_path=str(tmp_path / "audit.log"),
        ),
    )


@pytest.fixture
def context(settings, store):
    from mcp_server.server import create_context

    return create_context(settings, store=store)


@pytest.fixture
def call_tool(context):
    """Invoke a tool through the dispatcher, as a transport would."""

    async def _call(name: str, **arguments: Any):
        call = ToolCall(
            tool_name=name,
            arguments=arguments,
            context=ExecutionContext(request_id=str(uuid.uuid4())),
        )
        return await context.dispatcher.execute(call)

    return _call
