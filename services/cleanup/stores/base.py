"""
Consumed remote interfaces.

DocumentStore is bound to one collection. Field deltas passed to
update_document() may contain ArrayUnion / ArrayRemove / SERVER_TIMESTAMP
markers from services.cleanup.trips.models; adapters translate them into the
backend's own atomic operations.

All remote failures surface as RemoteUnavailable. A point read of a missing
document returns None; updating a missing document raises TripNotFound.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Protocol


@dataclass(frozen=True)
class StoredDocument:
    id: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CollectionQuery:
    order_by: str | None = "date"
    descending: bool = False


TRIPS_BY_DATE = CollectionQuery(order_by="date")

SnapshotCallback = Callable[[list[StoredDocument]], None]
ErrorCallback = Callable[[Exception], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class DocumentStore(Protocol):
    """Single-collection document store with push subscriptions."""

    async def subscribe_collection(
        self,
        query: CollectionQuery,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        """
        Deliver the full ordered collection on every remote change.

        Callbacks run on the caller's event loop thread.
        """
        ...

    async def get_collection(self, query: CollectionQuery) -> list[StoredDocument]: ...

    async def get_document(self, doc_id: str) -> StoredDocument | None: ...

    def new_document_id(self) -> str: ...

    async def set_document(self, doc_id: str, data: dict[str, Any]) -> None: ...

    async def update_document(self, doc_id: str, delta: dict[str, Any]) -> None: ...

    async def delete_document(self, doc_id: str) -> None: ...


class BlobStore(Protocol):
    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key`` and return the asset id."""
        ...

    async def get_download_url(self, asset_id: str) -> str: ...

    async def delete(self, asset_id: str) -> None: ...
