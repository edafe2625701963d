"""PocketBase backend store client."""

from pocketbase_store.client import PocketBaseClient

__all__ = ["PocketBaseClient"]
