"""Asynchronous PocketBase REST client.

Thin passthroughs over the PocketBase HTTP API. Every call is a
suspension point; failures surface as ``BackendError`` subclasses so
callers can tell "not found" apart from everything else.
"""

from typing import Any, Optional
from urllib.parse import quote

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shared.errors import BackendError, BackendNotFoundError, BackendUnavailableError
from shared.logging import get_logger

logger = get_logger(__name__)

# PocketBase caps perPage at 500
FULL_LIST_BATCH = 500


class PocketBaseClient:
    """
    Client for the PocketBase REST API.

    Provides methods for:
    - Admin authentication
    - Collection listing and bulk schema import
    - Record query, create, update and delete

    One client is shared by every session in the process.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8090",
        timeout: float = 30.0,
        admin_auth_path: str = "/api/admins/auth-with-password",
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: PocketBase base URL
            timeout: Request timeout in seconds
            admin_auth_path: Path of the admin password-auth endpoint
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.admin_auth_path = admin_auth_path
        self._token: Optional[str] = None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    async def close(self) -> None:
        """Close the HTTP client."""
        if not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "PocketBaseClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and decode the JSON body, raising on error statuses."""
        headers = kwargs.pop("headers", {})
        if self._token:
            headers["Authorization"] = self._token

        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as e:
            raise BackendUnavailableError(
                f"Cannot reach PocketBase at {self.base_url}: {e}"
            ) from e

        if response.status_code == 204 or not response.content:
            payload: Any = None
        else:
            try:
                payload = response.json()
            except ValueError:
                payload = None

        if response.is_error:
            body = payload if isinstance(payload, dict) else {}
            message = body.get("message") or response.text or response.reason_phrase
            details = body.get("data") or {}
            if response.status_code == 404:
                raise BackendNotFoundError(message, details=details)
            raise BackendError(message, status=response.status_code, details=details)

        return payload

    @staticmethod
    def _records_path(collection: str, record_id: Optional[str] = None) -> str:
        path = f"/api/collections/{quote(collection, safe='')}/records"
        if record_id is not None:
            path = f"{path}/{quote(record_id, safe='')}"
        return path

    @retry(
        retry=retry_if_exception_type(BackendUnavailableError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True
    )
    async def authenticate_admin(self, email: str, password: str) -> None:
        """
        Authenticate as a PocketBase admin; later calls carry the token.

        Raises:
            BackendError: If the credentials are rejected
            BackendUnavailableError: If PocketBase stays unreachable
        """
        payload = await self._request(
            "POST",
            self.admin_auth_path,
            json={"identity": email, "password": password},
        )
        self._token = payload["token"]

    async def list_collections(self) -> list[dict[str, Any]]:
        """Return every collection descriptor, following pagination."""
        collections: list[dict[str, Any]] = []
        page = 1
        while True:
            payload = await self._request(
                "GET",
                "/api/collections",
                params={"page": page, "perPage": FULL_LIST_BATCH, "skipTotal": 1},
            )
            items = payload.get("items", [])
            collections.extend(items)
            if len(items) < FULL_LIST_BATCH:
                return collections
            page += 1

    async def get_list(
        self,
        collection: str,
        page: int = 1,
        per_page: int = 50,
        filter: Optional[str] = None,
        sort: Optional[str] = None
    ) -> dict[str, Any]:
        """Return one page of records (``page``, ``perPage``, ``totalItems``, ``items``...)."""
        params: dict[str, Any] = {"page": page, "perPage": per_page}
        if filter:
            params["filter"] = filter
        if sort:
            params["sort"] = sort
        return await self._request("GET", self._records_path(collection), params=params)

    async def get_first_list_item(self, collection: str, filter: str) -> dict[str, Any]:
        """
        Return the first record matching ``filter``.

        Raises:
            BackendNotFoundError: If nothing matches
        """
        payload = await self._request(
            "GET",
            self._records_path(collection),
            params={"page": 1, "perPage": 1, "filter": filter, "skipTotal": 1},
        )
        items = payload.get("items") or []
        if not items:
            raise BackendNotFoundError()
        return items[0]

    async def create_record(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", self._records_path(collection), json=data)

    async def update_record(
        self,
        collection: str,
        record_id: str,
        data: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request(
            "PATCH", self._records_path(collection, record_id), json=data
        )

    async def delete_record(self, collection: str, record_id: str) -> None:
        await self._request("DELETE", self._records_path(collection, record_id))

    async def import_collections(
        self,
        collections: list[dict[str, Any]],
        delete_missing: bool = False
    ) -> None:
        """
        Bulk-import collection definitions.

        Args:
            collections: Collection definitions
            delete_missing: Drop existing collections absent from ``collections``
        """
        await self._request(
            "PUT",
            "/api/collections/import",
            json={"collections": collections, "deleteMissing": delete_missing},
        )
