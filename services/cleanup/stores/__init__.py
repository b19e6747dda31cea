# stores package: remote document store and blob store adapters
from services.cleanup.stores.base import (
    BlobStore,
    CollectionQuery,
    DocumentStore,
    StoredDocument,
    Subscription,
    TRIPS_BY_DATE,
)

__all__ = [
    "BlobStore",
    "CollectionQuery",
    "DocumentStore",
    "StoredDocument",
    "Subscription",
    "TRIPS_BY_DATE",
]
