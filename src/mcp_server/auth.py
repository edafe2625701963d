"""Caller identity resolution and ownership enforcement.

Handles:
- Mapping an external caller identity to an internal PocketBase user,
  provisioning the user on first sight
- Building filters that scope every query to the caller's own records
- Ownership checks ahead of update and delete

The real authentication boundary lives outside this server; the caller
identity arrives as a tool argument.
"""

import asyncio
import secrets
import weakref
from typing import Any, Optional

from shared.errors import BackendError, BackendNotFoundError, RecordNotOwnedError
from shared.logging import get_logger

logger = get_logger(__name__)


def quote_filter_value(value: str) -> str:
    """Render a string as a double-quoted PocketBase filter literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_owner_filter(
    user_id: str,
    caller_filter: Optional[str] = None,
    owner_field: str = "user"
) -> str:
    """
    Combine an optional caller filter with the ownership clause.

    The caller filter is parenthesized so its operators cannot change the
    precedence of the ownership clause. Its syntax is not checked here;
    mistakes surface as backend query errors.

    Args:
        user_id: Internal user id of the caller
        caller_filter: Filter expression supplied by the caller
        owner_field: Record field referencing the owning user

    Returns:
        Effective filter expression
    """
    ownership = f"{owner_field} = {quote_filter_value(user_id)}"
    if caller_filter:
        return f"({caller_filter}) && {ownership}"
    return ownership


class IdentityResolver:
    """
    Resolves caller identities to internal user ids (get-or-create).

    Lookups for the same identity are serialized by a per-identity lock,
    so concurrent first calls inside one process create a single user.
    Separate processes can still race; a unique index on the identity
    field makes the backend reject the second create in that case.
    """

    def __init__(
        self,
        store: Any,
        users_collection: str = "users",
        identity_field: str = "supabase_id",
        email_domain: str = "placeholder.local"
    ) -> None:
        self.store = store
        self.users_collection = users_collection
        self.identity_field = identity_field
        self.email_domain = email_domain
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, caller_identity: str) -> asyncio.Lock:
        lock = self._locks.get(caller_identity)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[caller_identity] = lock
        return lock

    def placeholder_user(self, caller_identity: str) -> dict[str, Any]:
        """Body of the user record provisioned for a new caller identity."""
        password = secrets.token_urlsafe(24)
        return {
            self.identity_field: caller_identity,
            "email": f"{caller_identity}@{self.email_domain}",
            "password": password,
            "passwordConfirm": password,
            "verified": True,
        }

    async def resolve(self, caller_identity: str) -> str:
        """
        Return the internal user id for a caller identity.

        Args:
            caller_identity: External identifier supplied with the tool call

        Returns:
            Internal PocketBase user id

        Raises:
            BackendError: If the lookup fails for any reason other than
                "not found", or if provisioning fails
        """
        lookup = f"{self.identity_field} = {quote_filter_value(caller_identity)}"

        async with self._lock_for(caller_identity):
            try:
                user = await self.store.get_first_list_item(self.users_collection, lookup)
                return user["id"]
            except BackendNotFoundError:
                pass

            user = await self.store.create_record(
                self.users_collection, self.placeholder_user(caller_identity)
            )

        logger.info(
            "Provisioned internal user",
            caller=caller_identity,
            user_id=user["id"]
        )
        return user["id"]


async def ensure_owned(
    store: Any,
    collection: str,
    record_id: str,
    user_id: str,
    owner_field: str = "user"
) -> dict[str, Any]:
    """
    Confirm a record exists and belongs to ``user_id``.

    Absent records, records owned by someone else and lookups the backend
    rejects as a client error all raise the same ``RecordNotOwnedError``.
    Nothing is locked between this check and the caller's mutation.

    Raises:
        RecordNotOwnedError: If the record is missing or not owned
        BackendError: If the backend fails for another reason
    """
    lookup = (
        f"id = {quote_filter_value(record_id)} && "
        f"{owner_field} = {quote_filter_value(user_id)}"
    )
    try:
        return await store.get_first_list_item(collection, lookup)
    except BackendError as e:
        if not e.is_client_error:
            raise
        logger.debug(
            "Ownership check failed",
            collection=collection,
            record_id=record_id,
            error=str(e)
        )
        raise RecordNotOwnedError() from e
