"""Tool handlers backed by PocketBase.

Each handler maps one tool invocation onto exactly one backend
operation, resolving the caller identity and enforcing ownership first
where the tool acts on user data. Handlers raise; the dispatcher turns
exceptions into tagged results.
"""

from typing import Any

from shared.config import PocketBaseSettings
from shared.errors import BackendError, SchemaApplyError
from shared.logging import get_logger
from shared.models import ExecutionContext
from mcp_server.auth import IdentityResolver, build_owner_filter, ensure_owned
from mcp_server.resources import load_schema_collections

logger = get_logger(__name__)


class RecordTools:
    """
    Handlers for the tool catalog.

    Stateless apart from the shared store client and identity resolver,
    so one instance serves every session.
    """

    def __init__(
        self,
        store: Any,
        resolver: IdentityResolver,
        schema_path: str,
        owner_field: str = "user"
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.schema_path = schema_path
        self.owner_field = owner_field

    @classmethod
    def from_settings(
        cls,
        store: Any,
        settings: PocketBaseSettings,
        schema_path: str
    ) -> "RecordTools":
        resolver = IdentityResolver(
            store,
            users_collection=settings.users_collection,
            identity_field=settings.identity_field,
            email_domain=settings.placeholder_email_domain,
        )
        return cls(store, resolver, schema_path, owner_field=settings.owner_field)

    @property
    def handlers(self) -> dict[str, Any]:
        """Tool name to handler coroutine."""
        return {
            "list_collections": self.list_collections,
            "get_records": self.get_records,
            "create_record": self.create_record,
            "update_record": self.update_record,
            "delete_record": self.delete_record,
            "apply_schema": self.apply_schema,
        }

    async def list_collections(
        self, args: dict[str, Any], context: ExecutionContext
    ) -> list[dict[str, Any]]:
        return await self.store.list_collections()

    async def get_records(
        self, args: dict[str, Any], context: ExecutionContext
    ) -> dict[str, Any]:
        user_id = await self.resolver.resolve(args["user_id"])
        effective_filter = build_owner_filter(
            user_id, args.get("filter"), owner_field=self.owner_field
        )
        return await self.store.get_list(
            args["collection"],
            page=int(args.get("page", 1)),
            per_page=int(args.get("perPage", 50)),
            filter=effective_filter,
            sort=args.get("sort") or None,
        )

    async def create_record(
        self, args: dict[str, Any], context: ExecutionContext
    ) -> dict[str, Any]:
        user_id = await self.resolver.resolve(args["user_id"])
        data = {**args["data"], self.owner_field: user_id}
        return await self.store.create_record(args["collection"], data)

    async def update_record(
        self, args: dict[str, Any], context: ExecutionContext
    ) -> dict[str, Any]:
        collection, record_id = args["collection"], args["id"]
        user_id = await self.resolver.resolve(args["user_id"])
        await ensure_owned(
            self.store, collection, record_id, user_id, owner_field=self.owner_field
        )
        # Ownership cannot be handed over through an update
        data = {**args["data"], self.owner_field: user_id}
        return await self.store.update_record(collection, record_id, data)

    async def delete_record(
        self, args: dict[str, Any], context: ExecutionContext
    ) -> str:
        collection, record_id = args["collection"], args["id"]
        user_id = await self.resolver.resolve(args["user_id"])
        await ensure_owned(
            self.store, collection, record_id, user_id, owner_field=self.owner_field
        )
        await self.store.delete_record(collection, record_id)
        return f"Record {record_id} deleted from {collection}"

    async def apply_schema(
        self, args: dict[str, Any], context: ExecutionContext
    ) -> str:
        """
        Import the schema document without deleting unlisted collections.

        Raises:
            SchemaApplyError: If the document is unusable or the import is rejected
        """
        collections = await load_schema_collections(self.schema_path)

        try:
            await self.store.import_collections(collections, delete_missing=False)
        except BackendError as e:
            raise SchemaApplyError(
                "import",
                f"{e.message}. Check that your PocketBase version supports collection import.",
            ) from e

        logger.info("Schema imported", collections=len(collections))
        return "Schema imported successfully."
