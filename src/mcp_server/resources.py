"""Schema document access and the resource provider.

The schema document is re-read from disk on every access, so external
edits are visible immediately.
"""

import json
from pathlib import Path
from typing import Any

import aiofiles
import mcp.types as types

from shared.errors import ResourceNotFoundError, SchemaApplyError
from shared.logging import get_logger

logger = get_logger(__name__)

SCHEMA_URI = "pocketbase://schema"
SCHEMA_MIME_TYPE = "application/json"


async def read_schema_document(path: str | Path) -> str:
    """Return the raw text of the schema document."""
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        return await f.read()


async def load_schema_collections(path: str | Path) -> list[dict[str, Any]]:
    """
    Read and parse the schema document into collection definitions.

    Raises:
        SchemaApplyError: With stage ``read``, ``parse`` or ``validate``
    """
    try:
        content = await read_schema_document(path)
    except (OSError, UnicodeDecodeError) as e:
        raise SchemaApplyError("read", f"cannot read schema file at {path}: {e}") from e

    try:
        collections = json.loads(content)
    except json.JSONDecodeError as e:
        raise SchemaApplyError("parse", f"invalid JSON in {path}: {e}") from e

    if not isinstance(collections, list):
        raise SchemaApplyError(
            "validate", "the schema file does not contain an array of collections"
        )
    if not all(isinstance(c, dict) for c in collections):
        raise SchemaApplyError(
            "validate", "every collection definition must be a JSON object"
        )

    return collections


class ResourceProvider:
    """Serves the schema document as the single MCP resource."""

    def __init__(self, schema_path: str | Path) -> None:
        self.schema_path = Path(schema_path)

    def list_resources(self) -> list[types.Resource]:
        return [
            types.Resource(
                uri=SCHEMA_URI,
                name="PocketBase Schema",
                mimeType=SCHEMA_MIME_TYPE,
                description="Full PocketBase database schema (collections, fields, rules)",
            )
        ]

    async def read(self, uri: str) -> str:
        """
        Read a resource by URI.

        Raises:
            ResourceNotFoundError: If the URI is not served
            OSError: If the schema file cannot be read
        """
        if uri.rstrip("/") != SCHEMA_URI:
            raise ResourceNotFoundError(uri)

        try:
            return await read_schema_document(self.schema_path)
        except OSError as e:
            logger.error("Schema file unreadable", path=str(self.schema_path), error=str(e))
            raise OSError(f"Could not read schema file at {self.schema_path}: {e}") from e
