"""Static catalog of the tools exposed to the agent."""

from shared.models import ExecutionType, ToolDefinition
from shared.schema import object_schema, string_param

COLLECTION = string_param("Collection name")
RECORD_ID = string_param("Record ID")
CALLER_IDENTITY = string_param("External user ID (Supabase UUID) the call acts on behalf of")

TOOL_DEFINITIONS: list[ToolDefinition] = [
    ToolDefinition(
        name="list_collections",
        description="List all PocketBase collections.",
        input_schema=object_schema({}),
        execution_type=ExecutionType.READ,
    ),
    ToolDefinition(
        name="get_records",
        description=(
            "Get the caller's records from a collection. Results are always "
            "restricted to records owned by the given user."
        ),
        input_schema=object_schema(
            {
                "collection": COLLECTION,
                "user_id": CALLER_IDENTITY,
                "page": {"type": "integer", "minimum": 1, "description": "Page number"},
                "perPage": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 500,
                    "description": "Records per page",
                },
                "filter": {
                    "type": "string",
                    "description": "PocketBase filter (e.g. 'status = true')",
                },
                "sort": {"type": "string", "description": "Sort order (e.g. '-created')"},
            },
            required=["collection", "user_id"],
        ),
        execution_type=ExecutionType.READ,
    ),
    ToolDefinition(
        name="create_record",
        description="Create a new record in a collection, owned by the given user.",
        input_schema=object_schema(
            {
                "collection": COLLECTION,
                "user_id": CALLER_IDENTITY,
                "data": {"type": "object", "description": "Record data"},
            },
            required=["collection", "user_id", "data"],
        ),
        execution_type=ExecutionType.WRITE,
    ),
    ToolDefinition(
        name="update_record",
        description="Update an existing record owned by the given user.",
        input_schema=object_schema(
            {
                "collection": COLLECTION,
                "id": RECORD_ID,
                "user_id": CALLER_IDENTITY,
                "data": {"type": "object", "description": "Fields to update"},
            },
            required=["collection", "id", "user_id", "data"],
        ),
        execution_type=ExecutionType.WRITE,
    ),
    ToolDefinition(
        name="delete_record",
        description="Delete a record owned by the given user.",
        input_schema=object_schema(
            {
                "collection": COLLECTION,
                "id": RECORD_ID,
                "user_id": CALLER_IDENTITY,
            },
            required=["collection", "id", "user_id"],
        ),
        execution_type=ExecutionType.DELETE,
    ),
    ToolDefinition(
        name="apply_schema",
        description=(
            "Apply the local schema file (pb_schema.json) to the PocketBase instance. "
            "Creates missing collections; existing collections not in the file are kept."
        ),
        input_schema=object_schema({}),
        execution_type=ExecutionType.WRITE,
    ),
]
