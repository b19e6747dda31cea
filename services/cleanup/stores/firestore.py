"""
Firestore-backed DocumentStore.

Reads and writes go through google.cloud.firestore.AsyncClient. Push
subscriptions use the synchronous client's on_snapshot() listener, which
delivers on a background thread; every delivery is handed back to the
subscribing event loop with call_soon_threadsafe so consumers only ever see
callbacks on the loop thread. Once a subscription is unsubscribed, deliveries
still queued on the loop are dropped.

The listener has no error callback of its own. When its stream terminates
(permission change, network loss, ...) it simply goes inactive, so a small
monitor task checks watch.is_active every ``health_interval_s`` and reports
RemoteUnavailable through on_error once it stops.

Delta markers:
  ArrayUnion / ArrayRemove  -> firestore.ArrayUnion / firestore.ArrayRemove
  SERVER_TIMESTAMP          -> firestore.SERVER_TIMESTAMP
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any

from services.cleanup.stores.base import (
    CollectionQuery,
    ErrorCallback,
    SnapshotCallback,
    StoredDocument,
)
from services.cleanup.trips.errors import RemoteUnavailable, TripNotFound
from services.cleanup.trips.models import SERVER_TIMESTAMP, ArrayRemove, ArrayUnion

logger = logging.getLogger(__name__)


def _transport_errors() -> tuple[type[BaseException], ...]:
    from google.api_core import exceptions as api_exceptions
    from google.auth import exceptions as auth_exceptions

    return (api_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError)


def to_firestore_fields(delta: dict[str, Any]) -> dict[str, Any]:
    """Translate delta markers into Firestore transforms."""
    from google.cloud import firestore

    fields: dict[str, Any] = {}
    for key, value in delta.items():
        if isinstance(value, ArrayUnion):
            fields[key] = firestore.ArrayUnion(list(value.values))
        elif isinstance(value, ArrayRemove):
            fields[key] = firestore.ArrayRemove(list(value.values))
        elif value is SERVER_TIMESTAMP:
            fields[key] = firestore.SERVER_TIMESTAMP
        else:
            fields[key] = value
    return fields


def _ordered(collection_ref: Any, query: CollectionQuery) -> Any:
    from google.cloud import firestore

    if not query.order_by:
        return collection_ref
    direction = firestore.Query.DESCENDING if query.descending else firestore.Query.ASCENDING
    return collection_ref.order_by(query.order_by, direction=direction)


def _stored(snapshot: Any) -> StoredDocument:
    return StoredDocument(id=snapshot.id, data=snapshot.to_dict() or {})


class _WatchSubscription:
    def __init__(self, watch: Any, monitor: asyncio.Task, closed: threading.Event) -> None:
        self._watch = watch
        self._monitor = monitor
        self._closed = closed

    def unsubscribe(self) -> None:
        if self._closed.is_set():
            return
        # deliveries already queued on the loop check this flag and are dropped
        self._closed.set()
        self._monitor.cancel()
        self._watch.unsubscribe()


class FirestoreDocumentStore:
    """
    DocumentStore over one Firestore collection.

    Usage:
        store = FirestoreDocumentStore("paddleTrips", project_id=settings.gcp_project_id)
        docs = await store.get_collection(TRIPS_BY_DATE)
    """

    def __init__(
        self,
        collection: str,
        project_id: str = "",
        client: Any = None,
        listen_client: Any = None,
        health_interval_s: float = 5.0,
    ) -> None:
        self._collection = collection
        self._project_id = project_id
        self._client = client
        self._listen_client = listen_client
        self._health_interval_s = health_interval_s

    # -- clients --------------------------------------------------------------

    def _kwargs(self) -> dict[str, Any]:
        return {"project": self._project_id} if self._project_id else {}

    def _async_collection(self) -> Any:
        if self._client is None:
            from google.cloud import firestore

            self._client = firestore.AsyncClient(**self._kwargs())
        return self._client.collection(self._collection)

    def _listen_collection(self) -> Any:
        if self._listen_client is None:
            from google.cloud import firestore

            self._listen_client = firestore.Client(**self._kwargs())
        return self._listen_client.collection(self._collection)

    def _unavailable(self, operation: str, exc: BaseException) -> RemoteUnavailable:
        logger.warning(
            "firestore_%s_failed collection=%s error=%s",
            operation, self._collection, exc,
        )
        return RemoteUnavailable("We couldn't reach the trip service. Please try again.")

    # -- subscription -----------------------------------------------------------

    async def subscribe_collection(
        self,
        query: CollectionQuery,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> _WatchSubscription:
        loop = asyncio.get_running_loop()
        closed = threading.Event()

        def _on_loop(callback: Any, arg: Any) -> None:
            if not closed.is_set():
                callback(arg)

        def _deliver(col_snapshot: list[Any], changes: Any, read_time: Any) -> None:
            if closed.is_set():
                return
            try:
                docs = [_stored(s) for s in col_snapshot]
            except Exception as exc:
                loop.call_soon_threadsafe(_on_loop, on_error, exc)
                return
            loop.call_soon_threadsafe(_on_loop, on_snapshot, docs)

        try:
            watch = _ordered(self._listen_collection(), query).on_snapshot(_deliver)
        except _transport_errors() as exc:
            raise self._unavailable("subscribe", exc) from exc

        monitor = loop.create_task(self._monitor(watch, on_error))
        logger.info("firestore_subscribed collection=%s order_by=%s", self._collection, query.order_by)
        return _WatchSubscription(watch, monitor, closed)

    async def _monitor(self, watch: Any, on_error: ErrorCallback) -> None:
        while True:
            await asyncio.sleep(self._health_interval_s)
            if not watch.is_active:
                logger.warning("firestore_listener_terminated collection=%s", self._collection)
                on_error(RemoteUnavailable("The live trip feed stopped."))
                return

    # -- reads ------------------------------------------------------------------

    async def get_collection(self, query: CollectionQuery) -> list[StoredDocument]:
        try:
            return [_stored(s) async for s in _ordered(self._async_collection(), query).stream()]
        except _transport_errors() as exc:
            raise self._unavailable("get_collection", exc) from exc

    async def get_document(self, doc_id: str) -> StoredDocument | None:
        try:
            snapshot = await self._async_collection().document(doc_id).get()
        except _transport_errors() as exc:
            raise self._unavailable("get_document", exc) from exc
        if not snapshot.exists:
            return None
        return _stored(snapshot)

    # -- writes -----------------------------------------------------------------

    def new_document_id(self) -> str:
        return self._async_collection().document().id

    async def set_document(self, doc_id: str, data: dict[str, Any]) -> None:
        try:
            await self._async_collection().document(doc_id).set(to_firestore_fields(data))
        except _transport_errors() as exc:
            raise self._unavailable("set_document", exc) from exc

    async def update_document(self, doc_id: str, delta: dict[str, Any]) -> None:
        from google.api_core.exceptions import NotFound

        try:
            await self._async_collection().document(doc_id).update(to_firestore_fields(delta))
        except NotFound as exc:
            raise TripNotFound(doc_id) from exc
        except _transport_errors() as exc:
            raise self._unavailable("update_document", exc) from exc

    async def delete_document(self, doc_id: str) -> None:
        try:
            await self._async_collection().document(doc_id).delete()
        except _transport_errors() as exc:
            raise self._unavailable("delete_document", exc) from exc
